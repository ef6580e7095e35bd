"""Per-class descriptor cache.

``describe`` reflects a dataclass once, keeps the fields that carry an
extraction marker, resolves their conversion steps and caches the result for
the registry's lifetime. Classes that are not dataclasses are registered
explicitly with ``register``.
"""
from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from pydantic import ValidationError

from .conversion import ConversionPipeline, ConversionRegistry
from .errors import EntityDefinitionError
from .logging import get_logger
from .schema import METADATA_KEY, FieldDescriptor, FieldKind

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntityClassDescriptor:
    """The extraction program for one target class."""

    entity_class: type
    fields: tuple[FieldDescriptor, ...]
    pipelines: Mapping[str, ConversionPipeline] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pipelines", MappingProxyType(dict(self.pipelines)))

    @property
    def name(self) -> str:
        return self.entity_class.__name__

    def pipeline_for(self, descriptor: FieldDescriptor) -> ConversionPipeline:
        return self.pipelines[descriptor.name]

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class MetadataRegistry:
    """Thread-safe, lazily populated map of class -> EntityClassDescriptor."""

    def __init__(self, conversions: ConversionRegistry | None = None):
        self.conversions = conversions or ConversionRegistry()
        self._descriptors: dict[type, EntityClassDescriptor] = {}
        self._lock = threading.Lock()

    def describe(self, entity_class: type) -> EntityClassDescriptor:
        cached = self._descriptors.get(entity_class)
        if cached is not None:
            return cached

        built = self._build(entity_class, self._reflect(entity_class))
        with self._lock:
            # Another thread may have won the race; keep its descriptor.
            stored = self._descriptors.setdefault(entity_class, built)
        if stored is built:
            logger.debug("registry.described", entity=built.name, fields=built.field_names())
        return stored

    def register(self, entity_class: type, descriptors: Iterable[FieldDescriptor]) -> EntityClassDescriptor:
        """Register descriptors for a class explicitly, replacing any cached entry."""
        descriptors = list(descriptors)
        for descriptor in descriptors:
            if not descriptor.name:
                raise EntityDefinitionError("Registered descriptors must be named", entity=entity_class.__name__)
        built = self._build(entity_class, descriptors)
        with self._lock:
            self._descriptors[entity_class] = built
        logger.debug("registry.registered", entity=built.name, fields=built.field_names())
        return built

    def is_described(self, entity_class: type) -> bool:
        return entity_class in self._descriptors

    def clear(self) -> None:
        with self._lock:
            self._descriptors.clear()

    def __len__(self) -> int:
        return len(self._descriptors)

    def _reflect(self, entity_class: type) -> list[FieldDescriptor]:
        if not isinstance(entity_class, type):
            raise EntityDefinitionError(f"{entity_class!r} is not a class")
        if not dataclasses.is_dataclass(entity_class):
            raise EntityDefinitionError(
                "Not a dataclass and not registered explicitly", entity=entity_class.__name__
            )
        return [
            f.metadata[METADATA_KEY].named(f.name)
            for f in dataclasses.fields(entity_class)
            if METADATA_KEY in f.metadata
        ]

    def _build(self, entity_class: type, descriptors: list[FieldDescriptor]) -> EntityClassDescriptor:
        name = entity_class.__name__
        seen: set[str] = set()
        pipelines: dict[str, ConversionPipeline] = {}
        for descriptor in descriptors:
            if descriptor.name in seen:
                raise EntityDefinitionError("Duplicate field", entity=name, field_path=descriptor.name)
            seen.add(descriptor.name)
            if descriptor.entity is entity_class:
                raise EntityDefinitionError(
                    "Entity nests itself directly", entity=name, field_path=descriptor.name
                )
            if descriptor.kind is FieldKind.ENTITY:
                continue
            try:
                pipelines[descriptor.name] = self.conversions.pipeline(
                    descriptor.transformer_ref,
                    descriptor.converter_ref,
                    descriptor.regex.transformer() if descriptor.regex else None,
                )
            except KeyError as e:
                raise EntityDefinitionError(
                    str(e.args[0]), entity=name, field_path=descriptor.name, cause=e
                ) from e

        return EntityClassDescriptor(entity_class=entity_class, fields=tuple(descriptors), pipelines=pipelines)


def build_descriptor(**kwargs) -> FieldDescriptor:
    """Build a named descriptor for ``MetadataRegistry.register``.

    Pydantic validation errors are reported as EntityDefinitionError.
    """
    try:
        return FieldDescriptor(**kwargs)
    except ValidationError as e:
        raise EntityDefinitionError(
            "Invalid field descriptor", field_path=kwargs.get("name"), cause=e
        ) from e
