"""Two-stage value conversion: transform (str -> str), then convert (str -> value).

Steps are looked up by symbolic key in a :class:`ConversionRegistry`, so the
set of available steps is an explicit table. Keys are resolved once, when a
class is described, never per extracted value.
"""
from __future__ import annotations

import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Generic, TypeVar

from .errors import MappingError
from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Transformer = Callable[[str], str]

DEFAULT_TRANSFORMER = "identity"
DEFAULT_CONVERTER = "str"


# =============================================================================
# Converters
# =============================================================================


class Converter(ABC, Generic[T]):
    """Maps normalized text to a typed value."""

    @abstractmethod
    def convert(self, value: str | None) -> T | None:
        ...

    def __call__(self, value: str | None) -> T | None:
        return self.convert(value)


class StringConverter(Converter[str]):
    """Passthrough. Absent stays absent."""

    def convert(self, value: str | None) -> str | None:
        return value


class _BlankAwareConverter(Converter[T]):
    """Base for converters whose target type has a zero value.

    Blank input maps to ``None`` when ``nullable`` is set, otherwise to the
    type's zero value.
    """

    zero: Any = None

    def __init__(self, nullable: bool = False):
        self.nullable = nullable

    def convert(self, value: str | None) -> T | None:
        if value is None or not value.strip():
            return None if self.nullable else self.zero
        try:
            return self.parse(value.strip())
        except MappingError:
            raise
        except (ValueError, ArithmeticError) as e:
            raise MappingError(f"Cannot convert {value!r} with {type(self).__name__}", cause=e) from e

    @abstractmethod
    def parse(self, value: str) -> T:
        ...


class IntegerConverter(_BlankAwareConverter[int]):
    zero = 0

    def parse(self, value: str) -> int:
        return int(value.replace(",", ""))


class FloatConverter(_BlankAwareConverter[float]):
    zero = 0.0

    def parse(self, value: str) -> float:
        return float(value.replace(",", ""))


_MONTHS = {
    name: number
    for number, names in enumerate(
        [
            ("january", "jan"),
            ("february", "feb"),
            ("march", "mar"),
            ("april", "apr"),
            ("may",),
            ("june", "jun"),
            ("july", "jul"),
            ("august", "aug"),
            ("september", "sep", "sept"),
            ("october", "oct"),
            ("november", "nov"),
            ("december", "dec"),
        ],
        start=1,
    )
    for name in names
}


class DateConverter(_BlankAwareConverter[date]):
    """Parses dates such as ``28th February 2023`` into :class:`datetime.date`.

    Also accepts ``28 February 2023``, ``February 28, 2023`` and ISO
    ``2023-02-28``. Month names may be abbreviated to three letters.
    """

    zero = date.min

    PATTERNS = [
        re.compile(r"(?P<day>\d{1,2})(?:st|nd|rd|th)?\s+(?P<month>[A-Za-z]+)\.?,?\s+(?P<year>\d{4})"),
        re.compile(r"(?P<month>[A-Za-z]+)\.?\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?,?\s+(?P<year>\d{4})"),
        re.compile(r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"),
    ]

    def parse(self, value: str) -> date:
        for pattern in self.PATTERNS:
            match = pattern.search(value)
            if not match:
                continue
            month = self._month(match.group("month"))
            if month is None:
                continue
            return date(int(match.group("year")), month, int(match.group("day")))
        raise MappingError(f"Unsupported date format: {value!r}")

    @staticmethod
    def _month(token: str) -> int | None:
        if token.isdigit():
            return int(token)
        return _MONTHS.get(token.lower())


class BooleanConverter(_BlankAwareConverter[bool]):
    zero = False

    TRUE = {"true", "yes", "y", "1", "on"}
    FALSE = {"false", "no", "n", "0", "off"}

    def parse(self, value: str) -> bool:
        low = value.lower()
        if low in self.TRUE:
            return True
        if low in self.FALSE:
            return False
        raise ValueError(f"not a boolean: {value!r}")


class SplitConverter(Converter[list[str]]):
    """Splits one string into a list of trimmed, non-empty parts."""

    def __init__(self, separator: str = ","):
        self.separator = separator

    def convert(self, value: str | None) -> list[str]:
        if value is None:
            return []
        return [part.strip() for part in value.split(self.separator) if part.strip()]


class CallableConverter(Converter[Any]):
    """Adapts a plain ``(str) -> value`` function.

    ``ValueError``/``TypeError`` raised by the function become
    :class:`MappingError`.
    """

    def __init__(self, func: Callable[[str], Any], skip_absent: bool = True):
        self.func = func
        self.skip_absent = skip_absent

    def convert(self, value: str | None) -> Any:
        if value is None and self.skip_absent:
            return None
        try:
            return self.func(value)
        except MappingError:
            raise
        except (ValueError, TypeError) as e:
            name = getattr(self.func, "__name__", repr(self.func))
            raise MappingError(f"Cannot convert {value!r} with {name}", cause=e) from e


# =============================================================================
# Transformers
# =============================================================================


def identity(value: str) -> str:
    return value


def strip(value: str) -> str:
    return value.strip()


def collapse_whitespace(value: str) -> str:
    return " ".join(value.split())


@dataclass(frozen=True)
class RegexGroupTransformer:
    """Pulls a named group out of the first fully matching pattern.

    Patterns are tried in order. A pattern that does not define ``group``
    never matches. When nothing matches, ``default`` is returned.
    """

    patterns: tuple[re.Pattern, ...]
    group: str
    default: str | None = None

    def __call__(self, value: str | None) -> str | None:
        if value is None:
            return None
        for pattern in self.patterns:
            match = pattern.fullmatch(value)
            if not match:
                continue
            try:
                found = match.group(self.group)
            except IndexError:
                continue
            if found is not None:
                return found
        return self.default


# =============================================================================
# Pipeline
# =============================================================================


@dataclass(frozen=True)
class ConversionPipeline:
    """The resolved conversion steps for one field."""

    transformer: Transformer
    converter: Converter
    regex: RegexGroupTransformer | None = None

    def apply(self, raw: str | None) -> Any:
        value = raw
        if self.regex is not None:
            value = self.regex(value)
        if value is not None:
            try:
                value = self.transformer(value)
            except (ValueError, TypeError, AttributeError) as e:
                raise MappingError(f"Cannot transform {raw!r}", cause=e) from e
        return self.converter(value)

    def apply_all(self, raws: list[str | None]) -> list[Any]:
        return [self.apply(raw) for raw in raws]


# =============================================================================
# Registry
# =============================================================================


class ConversionRegistry:
    """Keyed table of transformers and converters."""

    def __init__(self, include_builtins: bool = True):
        self._transformers: dict[str, Transformer] = {}
        self._converters: dict[str, Converter] = {}
        self._lock = threading.Lock()
        if include_builtins:
            self._register_builtins()

    def _register_builtins(self) -> None:
        self.register_transformer("identity", identity)
        self.register_transformer("strip", strip)
        self.register_transformer("collapse_whitespace", collapse_whitespace)
        self.register_transformer("lower", str.lower)
        self.register_transformer("upper", str.upper)

        self.register_converter("str", StringConverter())
        self.register_converter("int", IntegerConverter())
        self.register_converter("optional_int", IntegerConverter(nullable=True))
        self.register_converter("float", FloatConverter())
        self.register_converter("optional_float", FloatConverter(nullable=True))
        self.register_converter("date", DateConverter())
        self.register_converter("optional_date", DateConverter(nullable=True))
        self.register_converter("bool", BooleanConverter())
        self.register_converter("split", SplitConverter(","))
        self.register_converter("lines", SplitConverter("\n"))

    def register_transformer(self, key: str, transformer: Transformer) -> None:
        if not callable(transformer):
            raise TypeError(f"Transformer {key!r} is not callable")
        with self._lock:
            self._transformers[key] = transformer
        logger.debug("conversion.transformer_registered", key=key)

    def register_converter(self, key: str, converter: Converter | Callable[[str], Any]) -> None:
        if not isinstance(converter, Converter):
            if not callable(converter):
                raise TypeError(f"Converter {key!r} is not callable")
            converter = CallableConverter(converter)
        with self._lock:
            self._converters[key] = converter
        logger.debug("conversion.converter_registered", key=key)

    def transformer(self, key: str) -> Transformer:
        try:
            return self._transformers[key]
        except KeyError:
            raise KeyError(f"Unknown transformer {key!r}") from None

    def converter(self, key: str) -> Converter:
        try:
            return self._converters[key]
        except KeyError:
            raise KeyError(f"Unknown converter {key!r}") from None

    def list_transformers(self) -> list[str]:
        return sorted(self._transformers)

    def list_converters(self) -> list[str]:
        return sorted(self._converters)

    def pipeline(
        self,
        transformer_ref: str = DEFAULT_TRANSFORMER,
        converter_ref: str = DEFAULT_CONVERTER,
        regex: RegexGroupTransformer | None = None,
    ) -> ConversionPipeline:
        """Resolve a pair of keys into a pipeline."""
        return ConversionPipeline(
            transformer=self.transformer(transformer_ref),
            converter=self.converter(converter_ref),
            regex=regex,
        )

    def apply(
        self,
        raw: str | None,
        transformer_ref: str = DEFAULT_TRANSFORMER,
        converter_ref: str = DEFAULT_CONVERTER,
    ) -> Any:
        return self.pipeline(transformer_ref, converter_ref).apply(raw)
