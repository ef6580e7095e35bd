"""Field descriptors and the helpers that declare them on dataclasses.

A target class is an ordinary dataclass whose fields are declared with the
helpers below::

    @dataclass
    class Team:
        name: str | None = extract_value("//h2")
        players: list[str] = extract_list("//li[@class='player']")

Each helper returns a ``dataclasses.field`` carrying a :class:`FieldDescriptor`
in its metadata and a default, so every target class stays constructible
with no arguments.
"""
from __future__ import annotations

import dataclasses
import re
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from .conversion import DEFAULT_CONVERTER, DEFAULT_TRANSFORMER, RegexGroupTransformer

#: dataclass field metadata key holding the descriptor
METADATA_KEY = "entity_mapper"


class FieldKind(str, Enum):
    VALUE = "value"
    ENTITY = "entity"
    CONDITIONAL = "conditional"
    URL = "url"
    CONSTANT = "constant"
    CURRENT_URL = "current_url"
    COLLECTION_INDEX = "collection_index"


class Cardinality(str, Enum):
    SCALAR = "scalar"
    LIST = "list"


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid regex {pattern!r}: {e}") from e


# =============================================================================
# Descriptor models
# =============================================================================


class ConditionalRule(BaseModel):
    """Extract from ``then_path`` when the text at ``guard_path`` matches ``pattern``."""

    model_config = ConfigDict(frozen=True)

    guard_path: str
    pattern: str
    then_path: str | None = None
    guard_attribute: str | None = None
    then_attribute: str | None = None
    then_constant: Any = None
    group: str | None = None  # rule applies only if this named group matched

    _compiled: re.Pattern = PrivateAttr()

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        _compile(v)
        return v

    @model_validator(mode="after")
    def validate_target(self) -> "ConditionalRule":
        if self.then_path is None and self.then_constant is None:
            raise ValueError("A conditional rule needs then_path or then_constant")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._compiled = _compile(self.pattern)

    @property
    def compiled(self) -> re.Pattern:
        return self._compiled


class RegexGroup(BaseModel):
    """Named-group extraction applied to raw text before transformation."""

    model_config = ConfigDict(frozen=True)

    patterns: tuple[str, ...] = Field(min_length=1)
    group: str
    default: str | None = None

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in v:
            _compile(pattern)
        return v

    def transformer(self) -> RegexGroupTransformer:
        return RegexGroupTransformer(
            patterns=tuple(_compile(p) for p in self.patterns),
            group=self.group,
            default=self.default,
        )


class FieldDescriptor(BaseModel):
    """How one attribute of a target class is extracted."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = ""
    kind: FieldKind = FieldKind.VALUE
    path: str | None = None
    attribute: str | None = None
    cardinality: Cardinality = Cardinality.SCALAR
    optional: bool = False
    entity: type | None = None
    transformer_ref: str = DEFAULT_TRANSFORMER
    converter_ref: str = DEFAULT_CONVERTER
    conditional_rules: tuple[ConditionalRule, ...] = ()
    regex: RegexGroup | None = None
    value: Any = None
    base_index: int = 0

    @model_validator(mode="after")
    def validate_kind(self) -> "FieldDescriptor":
        if self.kind in (FieldKind.VALUE, FieldKind.URL, FieldKind.ENTITY) and not self.path:
            raise ValueError(f"A {self.kind.value} field needs a path")
        if self.kind is FieldKind.ENTITY and self.entity is None:
            raise ValueError("An entity field needs an entity class")
        if self.kind is not FieldKind.ENTITY and self.entity is not None:
            raise ValueError("Only entity fields may name an entity class")
        if self.kind is FieldKind.CONDITIONAL and not self.conditional_rules:
            raise ValueError("A conditional field needs at least one rule")
        if self.kind is FieldKind.URL and self.cardinality is Cardinality.LIST:
            raise ValueError("A url field is always scalar")
        return self

    @property
    def nested(self) -> bool:
        return self.kind is FieldKind.ENTITY

    @property
    def is_list(self) -> bool:
        return self.cardinality is Cardinality.LIST

    def empty_value(self) -> Any:
        return [] if self.is_list else None

    def named(self, name: str) -> "FieldDescriptor":
        return self.model_copy(update={"name": name})

    def describe(self) -> str:
        """Short human-readable location, used in logs and the CLI."""
        if self.kind is FieldKind.CONDITIONAL:
            target = " | ".join(f"{r.pattern!r}->{r.then_path or r.then_constant!r}" for r in self.conditional_rules)
        elif self.kind is FieldKind.CONSTANT:
            target = repr(self.value)
        elif self.kind is FieldKind.COLLECTION_INDEX:
            target = f"index+{self.base_index}"
        else:
            target = self.path or ""
        if self.attribute:
            target += f"/@{self.attribute}"
        return target


# =============================================================================
# Declaration helpers
# =============================================================================


def _field(descriptor: FieldDescriptor, default: Any = dataclasses.MISSING) -> Any:
    metadata = {METADATA_KEY: descriptor}
    if descriptor.is_list:
        return dataclasses.field(default_factory=list, metadata=metadata)
    if default is dataclasses.MISSING:
        default = None
    return dataclasses.field(default=default, metadata=metadata)


def _regex(regex: str | Sequence[str] | None, group: str, default: str | None) -> RegexGroup | None:
    if regex is None:
        return None
    patterns = (regex,) if isinstance(regex, str) else tuple(regex)
    return RegexGroup(patterns=patterns, group=group, default=default)


def extract_value(
    path: str,
    *,
    attribute: str | None = None,
    optional: bool = False,
    transformer: str = DEFAULT_TRANSFORMER,
    converter: str = DEFAULT_CONVERTER,
    regex: str | Sequence[str] | None = None,
    group: str = "value",
    regex_default: str | None = None,
    default: Any = dataclasses.MISSING,
) -> Any:
    """A scalar field read from the text (or ``attribute``) of one element."""
    return _field(
        FieldDescriptor(
            kind=FieldKind.VALUE,
            path=path,
            attribute=attribute,
            optional=optional,
            transformer_ref=transformer,
            converter_ref=converter,
            regex=_regex(regex, group, regex_default),
        ),
        default,
    )


def extract_list(
    path: str,
    *,
    attribute: str | None = None,
    transformer: str = DEFAULT_TRANSFORMER,
    converter: str = DEFAULT_CONVERTER,
    regex: str | Sequence[str] | None = None,
    group: str = "value",
    regex_default: str | None = None,
) -> Any:
    """A list field with one converted value per matching element."""
    return _field(
        FieldDescriptor(
            kind=FieldKind.VALUE,
            path=path,
            attribute=attribute,
            cardinality=Cardinality.LIST,
            optional=True,
            transformer_ref=transformer,
            converter_ref=converter,
            regex=_regex(regex, group, regex_default),
        )
    )


def extract_entity(path: str, entity: type, *, optional: bool = False) -> Any:
    """A nested entity extracted with the matched element as its root."""
    return _field(FieldDescriptor(kind=FieldKind.ENTITY, path=path, entity=entity, optional=optional))


def extract_entities(path: str, entity: type, *, optional: bool = False) -> Any:
    """A list of nested entities, one per matching element.

    With ``optional`` set, items whose extraction fails are left out instead
    of failing the parent.
    """
    return _field(
        FieldDescriptor(
            kind=FieldKind.ENTITY,
            path=path,
            entity=entity,
            cardinality=Cardinality.LIST,
            optional=optional,
        )
    )


def rule(
    guard_path: str,
    pattern: str,
    then_path: str | None = None,
    *,
    guard_attribute: str | None = None,
    then_attribute: str | None = None,
    then_constant: Any = None,
    group: str | None = None,
) -> ConditionalRule:
    return ConditionalRule(
        guard_path=guard_path,
        pattern=pattern,
        then_path=then_path,
        guard_attribute=guard_attribute,
        then_attribute=then_attribute,
        then_constant=then_constant,
        group=group,
    )


def extract_conditional(
    *rules: ConditionalRule,
    path: str | None = None,
    attribute: str | None = None,
    optional: bool = False,
    many: bool = False,
    transformer: str = DEFAULT_TRANSFORMER,
    converter: str = DEFAULT_CONVERTER,
    default: Any = dataclasses.MISSING,
) -> Any:
    """A field whose location is chosen by the first rule whose guard matches.

    ``path`` is the fallback used when no rule applies.
    """
    return _field(
        FieldDescriptor(
            kind=FieldKind.CONDITIONAL,
            path=path,
            attribute=attribute,
            optional=optional,
            cardinality=Cardinality.LIST if many else Cardinality.SCALAR,
            transformer_ref=transformer,
            converter_ref=converter,
            conditional_rules=tuple(rules),
        ),
        default,
    )


def extract_url(
    url_xpath: str,
    *,
    attribute: str | None = None,
    optional: bool = False,
    transformer: str = DEFAULT_TRANSFORMER,
    converter: str = DEFAULT_CONVERTER,
) -> Any:
    """A link-like attribute of one element.

    Without ``attribute``, the engine's ``url_attributes`` are tried in order
    (``href`` then ``src`` by default) and the first one present wins. That
    covers both anchors and media elements with one declaration. ``href``
    comes first because on an element carrying both, it names where the
    element links to, while ``src`` names embedded content. Pass
    ``attribute="src"`` or set ``ENTITY_MAPPER_URL_ATTRIBUTES=src,href`` to
    prefer the source.
    """
    return _field(
        FieldDescriptor(
            kind=FieldKind.URL,
            path=url_xpath,
            attribute=attribute,
            optional=optional,
            transformer_ref=transformer,
            converter_ref=converter,
        )
    )


def constant(value: Any) -> Any:
    return _field(FieldDescriptor(kind=FieldKind.CONSTANT, value=value, optional=True))


def current_url(
    *,
    transformer: str = DEFAULT_TRANSFORMER,
    converter: str = DEFAULT_CONVERTER,
    regex: str | Sequence[str] | None = None,
    group: str = "value",
    regex_default: str | None = None,
) -> Any:
    """The URL the document was loaded from, as passed to ``extract``.

    With ``regex``, only the named ``group`` of the first pattern matching
    the whole URL is kept, e.g. an id out of ``.../matches/(?P<value>\\d+)``.
    """
    return _field(
        FieldDescriptor(
            kind=FieldKind.CURRENT_URL,
            optional=True,
            transformer_ref=transformer,
            converter_ref=converter,
            regex=_regex(regex, group, regex_default),
        )
    )


def collection_index(base: int = 0) -> Any:
    """Position of this entity inside the parent's entity list, plus ``base``."""
    return _field(FieldDescriptor(kind=FieldKind.COLLECTION_INDEX, base_index=base))
