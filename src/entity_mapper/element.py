"""Element lookup contract consumed by the extraction engine.

The engine never builds elements. Any document driver (a parsed HTML tree,
a live browser page) can be extracted from by exposing this interface.
"""
from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class Element(Protocol):
    """A node in a path-addressable document tree."""

    def find_element(self, path: str) -> Element | None:
        """Return the first element matching ``path`` relative to this one."""
        ...

    def find_elements(self, path: str) -> Sequence[Element]:
        """Return every element matching ``path``, in document order."""
        ...

    def get_text(self) -> str:
        ...

    def get_attribute(self, name: str) -> str | None:
        ...

    def get_children_by_tag(self, tag: str) -> Sequence[Element]:
        ...
