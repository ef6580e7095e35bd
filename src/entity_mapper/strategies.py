"""One extraction strategy per field kind.

A strategy resolves a :class:`FieldDescriptor` against the current root
element and returns raw text (``None`` when absent), a list of raw texts, or,
for nested entities, the finished instances. Strategies whose output still
needs conversion set ``converts = True``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Sequence

from .element import Element
from .errors import (
    AmbiguousConditionalError,
    ExtractionError,
    MissingRequiredFieldError,
    PathEvaluationError,
)
from .logging import get_logger
from .schema import ConditionalRule, FieldDescriptor, FieldKind

if TYPE_CHECKING:
    from .engine import ExtractionEngine

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExtractionContext:
    """Per-call state threaded through the recursion."""

    source_url: str | None = None
    index: int | None = None
    depth: int = 0

    def child(self, index: int | None = None) -> "ExtractionContext":
        return replace(self, index=index, depth=self.depth + 1)


# =============================================================================
# Element reading helpers
# =============================================================================


def find_one(root: Element, path: str) -> Element | None:
    try:
        return root.find_element(path)
    except ExtractionError:
        raise
    except Exception as e:
        raise PathEvaluationError(f"Lookup failed for {path!r}", cause=e) from e


def find_all(root: Element, path: str) -> Sequence[Element]:
    try:
        return root.find_elements(path)
    except ExtractionError:
        raise
    except Exception as e:
        raise PathEvaluationError(f"Lookup failed for {path!r}", cause=e) from e


def read(element: Element, attribute: str | None) -> str | None:
    try:
        if attribute:
            return element.get_attribute(attribute)
        return element.get_text()
    except ExtractionError:
        raise
    except Exception as e:
        raise PathEvaluationError(f"Cannot read {attribute or 'text'} of {element!r}", cause=e) from e


def read_one(root: Element, path: str, attribute: str | None, optional: bool) -> str | None:
    element = find_one(root, path)
    if element is None:
        if optional:
            return None
        raise MissingRequiredFieldError(f"No element matches {path!r}")
    return read(element, attribute)


def read_all(root: Element, path: str, attribute: str | None) -> list[str | None]:
    return [read(element, attribute) for element in find_all(root, path)]


# =============================================================================
# Strategies
# =============================================================================


class FieldStrategy(ABC):
    converts: bool = True

    @abstractmethod
    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> Any:
        ...


class ValueStrategy(FieldStrategy):
    """Scalar or list of element texts / attribute values."""

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> Any:
        if descriptor.is_list:
            return read_all(root, descriptor.path, descriptor.attribute)
        return read_one(root, descriptor.path, descriptor.attribute, descriptor.optional)


class UrlAttributeStrategy(FieldStrategy):
    """Reads a link attribute; without an explicit one, the first present default."""

    def __init__(self, default_attributes: Sequence[str] = ("href", "src")):
        self.default_attributes = tuple(default_attributes)

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> str | None:
        element = find_one(root, descriptor.path)
        if element is None:
            if descriptor.optional:
                return None
            raise MissingRequiredFieldError(f"No element matches {descriptor.path!r}")
        if descriptor.attribute:
            return read(element, descriptor.attribute)
        for attribute in self.default_attributes:
            value = read(element, attribute)
            if value is not None:
                return value
        return None


class ConstantStrategy(FieldStrategy):
    converts = False

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> Any:
        return descriptor.value


class CurrentUrlStrategy(FieldStrategy):
    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> str | None:
        return context.source_url


class CollectionIndexStrategy(FieldStrategy):
    converts = False

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> int:
        if context.index is None:
            raise ExtractionError("Collection index used outside of an entity list")
        return context.index + descriptor.base_index


class ConditionalStrategy(FieldStrategy):
    """Picks the value location from the first rule whose guard matches.

    Falls back to the descriptor's own path, or absence, when no rule applies.
    """

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> Any:
        for position, rule in enumerate(descriptor.conditional_rules):
            try:
                applies = self._applies(root, rule)
            except AmbiguousConditionalError as e:
                logger.warning(
                    "conditional.rule_skipped",
                    field=descriptor.name,
                    rule=position,
                    reason=e.message,
                )
                continue
            if not applies:
                continue
            logger.debug("conditional.rule_matched", field=descriptor.name, rule=position)
            if rule.then_path is None:
                return [rule.then_constant] if descriptor.is_list else rule.then_constant
            return self._read(root, descriptor, rule.then_path, rule.then_attribute)

        if descriptor.path:
            return self._read(root, descriptor, descriptor.path, descriptor.attribute)
        if descriptor.optional or descriptor.is_list:
            return descriptor.empty_value()
        raise MissingRequiredFieldError("No conditional rule matched and no fallback path is set")

    @staticmethod
    def _applies(root: Element, rule: ConditionalRule) -> bool:
        guard = read_one(root, rule.guard_path, rule.guard_attribute, optional=True)
        if guard is None:
            return False
        match = rule.compiled.search(guard)
        if match is None:
            return False
        if rule.group is None:
            return True
        if rule.group not in rule.compiled.groupindex:
            raise AmbiguousConditionalError(f"Pattern {rule.pattern!r} has no group {rule.group!r}")
        return match.group(rule.group) is not None

    @staticmethod
    def _read(root: Element, descriptor: FieldDescriptor, path: str, attribute: str | None) -> Any:
        if descriptor.is_list:
            return read_all(root, path, attribute)
        return read_one(root, path, attribute, descriptor.optional)


class NestedEntityStrategy(FieldStrategy):
    """Recurses into the engine with each matched element as the new root."""

    converts = False

    def __init__(self, engine: "ExtractionEngine"):
        self.engine = engine

    def extract(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> Any:
        if descriptor.is_list:
            return self._extract_many(root, descriptor, context)

        element = find_one(root, descriptor.path)
        if element is None:
            if descriptor.optional:
                return None
            raise MissingRequiredFieldError(f"No element matches {descriptor.path!r}")
        try:
            return self.engine.extract_from(element, descriptor.entity, context.child())
        except ExtractionError as e:
            if not descriptor.optional:
                raise
            logger.debug("nested.absorbed", field=descriptor.name, error=str(e))
            return None

    def _extract_many(self, root: Element, descriptor: FieldDescriptor, context: ExtractionContext) -> list:
        instances = []
        for index, element in enumerate(find_all(root, descriptor.path)):
            try:
                instances.append(self.engine.extract_from(element, descriptor.entity, context.child(index)))
            except ExtractionError as e:
                if not descriptor.optional:
                    e.prepend_path(f"[{index}]")
                    raise
                logger.debug("nested.item_skipped", field=descriptor.name, index=index, error=str(e))
        return instances


def default_strategies(engine: "ExtractionEngine", url_attributes: Sequence[str]) -> dict[FieldKind, FieldStrategy]:
    return {
        FieldKind.VALUE: ValueStrategy(),
        FieldKind.URL: UrlAttributeStrategy(url_attributes),
        FieldKind.CONDITIONAL: ConditionalStrategy(),
        FieldKind.ENTITY: NestedEntityStrategy(engine),
        FieldKind.CONSTANT: ConstantStrategy(),
        FieldKind.CURRENT_URL: CurrentUrlStrategy(),
        FieldKind.COLLECTION_INDEX: CollectionIndexStrategy(),
    }
