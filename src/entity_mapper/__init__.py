"""entity-mapper - declarative extraction of typed entities from element trees.

Target classes declare, per field, where a value lives in the document and
how its text is converted. The :class:`ExtractionEngine` runs that
declaration against a root element and returns a populated instance.
"""

__version__ = "0.1.0"

from .conversion import ConversionPipeline, ConversionRegistry, Converter
from .engine import ExtractionEngine
from .errors import (
    AmbiguousConditionalError,
    EntityDefinitionError,
    ExtractionError,
    InstantiationError,
    MappingError,
    MaxDepthExceededError,
    MissingRequiredFieldError,
    PathEvaluationError,
)
from .html import LxmlElement, parse_html
from .registry import EntityClassDescriptor, MetadataRegistry
from .schema import (
    Cardinality,
    ConditionalRule,
    FieldDescriptor,
    FieldKind,
    collection_index,
    constant,
    current_url,
    extract_conditional,
    extract_entities,
    extract_entity,
    extract_list,
    extract_url,
    extract_value,
    rule,
)

__all__ = [
    "AmbiguousConditionalError",
    "Cardinality",
    "ConditionalRule",
    "ConversionPipeline",
    "ConversionRegistry",
    "Converter",
    "EntityClassDescriptor",
    "EntityDefinitionError",
    "ExtractionEngine",
    "ExtractionError",
    "FieldDescriptor",
    "FieldKind",
    "InstantiationError",
    "LxmlElement",
    "MappingError",
    "MaxDepthExceededError",
    "MetadataRegistry",
    "MissingRequiredFieldError",
    "PathEvaluationError",
    "collection_index",
    "constant",
    "current_url",
    "extract_conditional",
    "extract_entities",
    "extract_entity",
    "extract_list",
    "extract_url",
    "extract_value",
    "parse_html",
    "rule",
]
