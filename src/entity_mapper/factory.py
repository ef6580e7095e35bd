"""Default construction of target instances."""
from __future__ import annotations

import inspect
from typing import Any, TypeVar

from .errors import InstantiationError

T = TypeVar("T")


class InstanceFactory:
    """Creates a fresh, default-constructed instance of a target class."""

    def create(self, entity_class: type[T]) -> T:
        if not isinstance(entity_class, type):
            raise InstantiationError(f"{entity_class!r} is not a class")

        name = entity_class.__name__
        if inspect.isabstract(entity_class):
            raise InstantiationError("Cannot instantiate an abstract class", entity=name)

        try:
            inspect.signature(entity_class).bind()
        except TypeError as e:
            raise InstantiationError("Class has no zero-argument constructor", entity=name, cause=e) from e
        except ValueError:
            # Builtins without an introspectable signature; let the call decide.
            pass

        try:
            return entity_class()
        except Exception as e:
            raise InstantiationError("Constructor raised", entity=name, cause=e) from e

    def assign(self, instance: Any, name: str, value: Any) -> None:
        try:
            setattr(instance, name, value)
        except (AttributeError, TypeError) as e:
            raise InstantiationError(f"Cannot assign field {name!r}", cause=e) from e
