"""
Tests for ModelCatalog domain logic.

These tests demonstrate:
- Testing factory methods (load from the shipped JSON)
- Testing alias resolution and the uniqueness rule
- NOT testing frozen=True (that's Pydantic's job)
"""

import pytest
from pydantic import ValidationError

from llamagpt.domain.model_catalog import ModelCatalog, ModelSpec


def test_model_catalog_loads_from_json(model_catalog: ModelCatalog):
    """
    Demonstrates: Testing factory method behavior, not validation.

    The shipped catalog loads and its first entry is the default model.
    """
    assert model_catalog.ids()[0] == "llama3-8b-q4"
    assert "mistral-7b-q4" in model_catalog.ids()


@pytest.mark.parametrize("identifier", ["llama3", "llama3-8b", "llama3:8b-instruct-q4_0", " llama3-8b-q4 "])
def test_any_identifier_resolves_to_canonical_spec(model_catalog: ModelCatalog, identifier: str):
    spec = model_catalog.parse_spec(identifier)

    assert spec == ModelSpec(variant_id="llama3-8b-q4")
    assert spec.to_backend_model(model_catalog) == "llama3:8b-instruct-q4_0"


def test_unknown_identifier_raises_key_error(model_catalog: ModelCatalog):
    with pytest.raises(KeyError, match="not registered"):
        model_catalog.find_variant("gpt-9")


def test_duplicate_identifiers_are_rejected():
    """
    Demonstrates: Testing our validator, not Pydantic's.

    An alias shared by two variants would make lookups ambiguous.
    """
    with pytest.raises(ValidationError, match="Duplicate model identifiers"):
        ModelCatalog.from_list(
            [
                {"id": "a", "backend_id": "a:latest", "family": "x", "aliases": ["shared"]},
                {"id": "b", "backend_id": "b:latest", "family": "x", "aliases": ["shared"]},
            ]
        )


def test_model_spec_equality_by_value_not_identity():
    spec1 = ModelSpec(variant_id="phi3-mini")
    spec2 = ModelSpec(variant_id="phi3-mini")

    assert spec1 is not spec2
    assert spec1 == spec2
    assert {spec1, spec2} == {spec1}
