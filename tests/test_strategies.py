"""Tests for the per-kind field strategies against an in-memory element tree."""
from __future__ import annotations

import pytest

from entity_mapper.errors import ExtractionError, MissingRequiredFieldError, PathEvaluationError
from entity_mapper.schema import Cardinality, FieldDescriptor, FieldKind, rule
from entity_mapper.strategies import (
    CollectionIndexStrategy,
    ConditionalStrategy,
    ConstantStrategy,
    CurrentUrlStrategy,
    ExtractionContext,
    UrlAttributeStrategy,
    ValueStrategy,
)


class FakeElement:
    """Element whose lookups come from a path -> children table."""

    def __init__(self, text: str = "", attributes: dict | None = None, paths: dict | None = None):
        self.text = text
        self.attributes = attributes or {}
        self.paths = paths or {}

    def find_element(self, path):
        found = self.find_elements(path)
        return found[0] if found else None

    def find_elements(self, path):
        if path == "boom":
            raise RuntimeError("driver went away")
        return self.paths.get(path, [])

    def get_text(self):
        return self.text

    def get_attribute(self, name):
        return self.attributes.get(name)

    def get_children_by_tag(self, tag):
        return []


def descriptor(**kwargs) -> FieldDescriptor:
    kwargs.setdefault("name", "field")
    return FieldDescriptor(**kwargs)


@pytest.fixture
def context():
    return ExtractionContext(source_url="https://example.com/match/1")


class TestValueStrategy:
    """Tests for scalar and list value extraction."""

    def test_scalar_text(self, context):
        root = FakeElement(paths={"title": [FakeElement("Final")]})
        assert ValueStrategy().extract(root, descriptor(path="title"), context) == "Final"

    def test_scalar_attribute(self, context):
        root = FakeElement(paths={"link": [FakeElement("Go", {"href": "/next"})]})
        field = descriptor(path="link", attribute="href")
        assert ValueStrategy().extract(root, field, context) == "/next"

    def test_missing_optional_scalar_is_absent(self, context):
        field = descriptor(path="title", optional=True)
        assert ValueStrategy().extract(FakeElement(), field, context) is None

    def test_missing_required_scalar_fails(self, context):
        with pytest.raises(MissingRequiredFieldError):
            ValueStrategy().extract(FakeElement(), descriptor(path="title"), context)

    def test_list_keeps_document_order(self, context):
        root = FakeElement(paths={"li": [FakeElement("a"), FakeElement("b"), FakeElement("c")]})
        field = descriptor(path="li", cardinality=Cardinality.LIST)
        assert ValueStrategy().extract(root, field, context) == ["a", "b", "c"]

    def test_empty_list_never_fails(self, context):
        """Zero matches is an empty list even when the field is required."""
        field = descriptor(path="li", cardinality=Cardinality.LIST, optional=False)
        assert ValueStrategy().extract(FakeElement(), field, context) == []

    def test_lookup_failure_becomes_path_error(self, context):
        with pytest.raises(PathEvaluationError) as exc_info:
            ValueStrategy().extract(FakeElement(), descriptor(path="boom"), context)
        assert isinstance(exc_info.value.cause, RuntimeError)


class TestUrlAttributeStrategy:
    """Tests for URL-attribute extraction."""

    def test_default_attributes_in_order(self, context):
        root = FakeElement(
            paths={
                "a": [FakeElement(attributes={"href": "/a", "src": "/ignored"})],
                "img": [FakeElement(attributes={"src": "/logo.png"})],
            }
        )
        strategy = UrlAttributeStrategy(("href", "src"))
        assert strategy.extract(root, descriptor(kind=FieldKind.URL, path="a"), context) == "/a"
        assert strategy.extract(root, descriptor(kind=FieldKind.URL, path="img"), context) == "/logo.png"

    def test_explicit_attribute(self, context):
        root = FakeElement(paths={"a": [FakeElement(attributes={"href": "/a", "data-url": "/b"})]})
        field = descriptor(kind=FieldKind.URL, path="a", attribute="data-url")
        assert UrlAttributeStrategy().extract(root, field, context) == "/b"

    def test_optional_missing(self, context):
        field = descriptor(kind=FieldKind.URL, path="a", optional=True)
        assert UrlAttributeStrategy().extract(FakeElement(), field, context) is None

    def test_required_missing(self, context):
        with pytest.raises(MissingRequiredFieldError):
            UrlAttributeStrategy().extract(FakeElement(), descriptor(kind=FieldKind.URL, path="a"), context)


class TestConditionalStrategy:
    """Tests for regex-gated extraction."""

    @pytest.fixture
    def root(self):
        return FakeElement(
            paths={
                "format": [FakeElement("long form")],
                "long": [FakeElement("28th February 2023")],
                "short": [FakeElement("2023-02-28")],
                "fallback": [FakeElement("fallback value")],
            }
        )

    def test_first_matching_rule_wins(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            conditional_rules=(rule("format", "long", "long"), rule("format", "form", "short")),
        )
        assert ConditionalStrategy().extract(root, field, context) == "28th February 2023"

    def test_later_rule_when_earlier_does_not_match(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            conditional_rules=(rule("format", "^short", "long"), rule("format", "form$", "short")),
        )
        assert ConditionalStrategy().extract(root, field, context) == "2023-02-28"

    def test_falls_back_to_own_path(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            path="fallback",
            conditional_rules=(rule("format", "^iso$", "short"),),
        )
        assert ConditionalStrategy().extract(root, field, context) == "fallback value"

    def test_no_match_optional_is_absent(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL, optional=True, conditional_rules=(rule("format", "^iso$", "short"),)
        )
        assert ConditionalStrategy().extract(root, field, context) is None

    def test_no_match_required_fails(self, root, context):
        field = descriptor(kind=FieldKind.CONDITIONAL, conditional_rules=(rule("format", "^iso$", "short"),))
        with pytest.raises(MissingRequiredFieldError):
            ConditionalStrategy().extract(root, field, context)

    def test_missing_guard_means_rule_does_not_apply(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            conditional_rules=(rule("absent", ".*", "long"), rule("format", "long", "short")),
        )
        assert ConditionalStrategy().extract(root, field, context) == "2023-02-28"

    def test_unknown_group_skips_rule(self, root, context):
        """A rule naming a group its pattern lacks is treated as not applying."""
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            conditional_rules=(
                rule("format", r"(?P<kind>long)", "long", group="missing"),
                rule("format", r"(?P<kind>long)", "short", group="kind"),
            ),
        )
        assert ConditionalStrategy().extract(root, field, context) == "2023-02-28"

    def test_then_constant(self, root, context):
        field = descriptor(
            kind=FieldKind.CONDITIONAL, conditional_rules=(rule("format", "long", then_constant="LONG"),)
        )
        assert ConditionalStrategy().extract(root, field, context) == "LONG"

    def test_list_cardinality(self, context):
        root = FakeElement(paths={"mode": [FakeElement("many")], "li": [FakeElement("x"), FakeElement("y")]})
        field = descriptor(
            kind=FieldKind.CONDITIONAL,
            cardinality=Cardinality.LIST,
            conditional_rules=(rule("mode", "many", "li"),),
        )
        assert ConditionalStrategy().extract(root, field, context) == ["x", "y"]


class TestContextStrategies:
    def test_constant(self, context):
        field = descriptor(kind=FieldKind.CONSTANT, value=3)
        assert ConstantStrategy().extract(FakeElement(), field, context) == 3

    def test_current_url(self, context):
        field = descriptor(kind=FieldKind.CURRENT_URL)
        assert CurrentUrlStrategy().extract(FakeElement(), field, context) == "https://example.com/match/1"

    def test_collection_index(self, context):
        field = descriptor(kind=FieldKind.COLLECTION_INDEX, base_index=1)
        assert CollectionIndexStrategy().extract(FakeElement(), field, context.child(index=2)) == 3

    def test_collection_index_outside_list(self, context):
        field = descriptor(kind=FieldKind.COLLECTION_INDEX)
        with pytest.raises(ExtractionError):
            CollectionIndexStrategy().extract(FakeElement(), field, context)
