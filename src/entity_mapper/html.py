"""lxml-backed implementation of the element contract."""
from __future__ import annotations

import copy
from typing import Sequence

import lxml.html
from lxml import etree

from .errors import PathEvaluationError


class LxmlTextNode:
    """A string XPath result (attribute value, ``text()``) seen as an element."""

    def __init__(self, text: str):
        self._text = str(text)

    def find_element(self, path: str) -> None:
        return None

    def find_elements(self, path: str) -> list:
        return []

    def get_text(self) -> str:
        return self._text.strip()

    def get_attribute(self, name: str) -> None:
        return None

    def get_children_by_tag(self, tag: str) -> list:
        return []

    def __repr__(self) -> str:
        return f"LxmlTextNode({self._text!r})"


class LxmlElement:
    """Wraps an ``lxml.html`` element.

    Paths are XPath 1.0. An element found by a lookup is a scoped root: its
    paths are evaluated against a detached copy of its subtree, so ``/`` and
    ``//`` anywhere in an expression (inside parentheses, in either branch
    of a union) cannot reach the rest of the document. A path starting with
    ``/`` is also rewritten to start with ``./``, making ``/h2`` select child
    ``h2`` elements rather than the scope root itself.
    """

    def __init__(self, element: etree._Element, scoped: bool | None = None):
        self._element = element
        self._scoped = element.getparent() is not None if scoped is None else scoped
        self._scope: etree._Element | None = None

    @property
    def tag(self) -> str:
        return self._element.tag

    @property
    def is_document_root(self) -> bool:
        return not self._scoped

    def _relative(self, path: str) -> str:
        if path.startswith("/") and self._scoped:
            return "." + path
        return path

    def _context(self) -> etree._Element:
        if not self._scoped:
            return self._element
        if self._scope is None:
            scope = copy.deepcopy(self._element)
            scope.tail = None
            self._scope = scope
        return self._scope

    def _evaluate(self, path: str) -> list:
        try:
            result = self._context().xpath(self._relative(path))
        except (etree.XPathSyntaxError, etree.XPathEvalError) as e:
            raise PathEvaluationError(f"Invalid path expression {path!r}", cause=e) from e

        if isinstance(result, list):
            return result
        # count(), string(), boolean() and friends
        if isinstance(result, bool):
            return [str(result).lower()]
        if isinstance(result, float) and result.is_integer():
            return [str(int(result))]
        return [str(result)]

    @staticmethod
    def _wrap(node) -> LxmlElement | LxmlTextNode:
        if isinstance(node, str):
            return LxmlTextNode(node)
        return LxmlElement(node, scoped=True)

    def find_element(self, path: str) -> LxmlElement | LxmlTextNode | None:
        for node in self._evaluate(path):
            return self._wrap(node)
        return None

    def find_elements(self, path: str) -> list[LxmlElement | LxmlTextNode]:
        return [self._wrap(node) for node in self._evaluate(path)]

    def get_text(self) -> str:
        return self._element.text_content().strip()

    def get_attribute(self, name: str) -> str | None:
        return self._element.get(name)

    def get_children_by_tag(self, tag: str) -> Sequence[LxmlElement]:
        return [LxmlElement(child, scoped=True) for child in self._element if child.tag == tag]

    def __repr__(self) -> str:
        return f"LxmlElement(<{self._element.tag}>)"


def parse_html(text: str) -> LxmlElement:
    """Parse an HTML document and return its root element."""
    if not text or not text.strip():
        raise ValueError("Cannot parse an empty document")
    return LxmlElement(lxml.html.document_fromstring(text))
