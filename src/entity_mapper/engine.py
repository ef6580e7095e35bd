"""Extraction engine: assembles a populated object graph from an element tree."""
from __future__ import annotations

from typing import Any, TypeVar

from .config import EngineConfig
from .conversion import ConversionRegistry
from .element import Element
from .errors import ExtractionError, MaxDepthExceededError
from .factory import InstanceFactory
from .logging import get_logger
from .registry import EntityClassDescriptor, MetadataRegistry
from .schema import FieldDescriptor
from .strategies import ExtractionContext, FieldStrategy, default_strategies

logger = get_logger(__name__)

T = TypeVar("T")


class ExtractionEngine:
    """Entry point for extracting entities.

    Example:
        >>> engine = ExtractionEngine()
        >>> match = engine.extract(parse_html(page), Match, source_url=url)

    An engine may be shared between threads; every ``extract`` call owns its
    instance and recursion state, only the metadata registry is shared.
    """

    def __init__(
        self,
        registry: MetadataRegistry | None = None,
        factory: InstanceFactory | None = None,
        conversions: ConversionRegistry | None = None,
        config: EngineConfig | None = None,
    ):
        if registry is not None and conversions is not None and registry.conversions is not conversions:
            raise ValueError("registry was built with a different ConversionRegistry")
        self.registry = registry or MetadataRegistry(conversions)
        self.factory = factory or InstanceFactory()
        self.config = config or EngineConfig()
        self._strategies: dict = default_strategies(self, self.config.url_attributes)

    @property
    def conversions(self) -> ConversionRegistry:
        return self.registry.conversions

    def register_strategy(self, kind, strategy: FieldStrategy) -> None:
        """Replace the strategy used for one field kind."""
        self._strategies[kind] = strategy

    def describe(self, entity_class: type) -> EntityClassDescriptor:
        return self.registry.describe(entity_class)

    def extract(self, root: Element, entity_class: type[T], *, source_url: str | None = None) -> T:
        """Extract an instance of ``entity_class`` from ``root``.

        Raises the first :class:`ExtractionError` that no field's optionality
        absorbed; no partially populated instance is returned.
        """
        logger.debug("extract.start", entity=entity_class.__name__, source_url=source_url)
        instance = self.extract_from(root, entity_class, ExtractionContext(source_url=source_url))
        logger.debug("extract.done", entity=entity_class.__name__)
        return instance

    def extract_from(self, root: Element, entity_class: type[T], context: ExtractionContext) -> T:
        """Recursive step, also used by nested entity fields."""
        if context.depth >= self.config.max_depth:
            raise MaxDepthExceededError(
                f"Nesting deeper than {self.config.max_depth} levels; is the schema self-referential?",
                entity=entity_class.__name__,
            )

        try:
            descriptor = self.registry.describe(entity_class)
            instance = self.factory.create(entity_class)
        except ExtractionError as e:
            e.entity = e.entity or entity_class.__name__
            raise

        for field in descriptor.fields:
            try:
                value = self._extract_field(root, descriptor, field, context)
                self.factory.assign(instance, field.name, value)
            except ExtractionError as e:
                e.prepend_path(field.name)
                e.entity = descriptor.name
                logger.debug("field.failed", entity=descriptor.name, field=field.name, error=e.message)
                raise
            logger.debug("field.extracted", entity=descriptor.name, field=field.name, depth=context.depth)
        return instance

    def _extract_field(
        self,
        root: Element,
        descriptor: EntityClassDescriptor,
        field: FieldDescriptor,
        context: ExtractionContext,
    ) -> Any:
        strategy = self._strategies.get(field.kind)
        if strategy is None:
            raise ExtractionError(f"No strategy for field kind {field.kind.value!r}")

        raw = strategy.extract(root, field, context)
        if not strategy.converts:
            return raw

        pipeline = descriptor.pipeline_for(field)
        if field.is_list:
            return pipeline.apply_all(list(raw or []))
        return pipeline.apply(raw)
