"""Model Catalog - Configuration-Driven Local Model Management.

Provides type-safe, validated management of the on-device models the
assistant can run. The catalog is loaded from JSON configuration and gives
O(1) lookups from any accepted identifier to a model variant.

Architecture:
    ModelCatalog: Root container, loaded from model_metadata.json
    ├─ ModelVariant: One runnable model with its backend tag and aliases
    └─ ModelSpec: Normalized reference (canonical variant id)

Key Features:
    - O(1) Model Lookup: Uses a cached dict, not linear search
    - Validation: Pydantic ensures no duplicate identifiers
    - Flexible Identifiers: Aliases resolve to the canonical variant
      (e.g., "llama3" → "llama3-8b-q4")
"""

from __future__ import annotations

import json
from functools import cached_property
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, RootModel, computed_field, model_validator

DEFAULT_CATALOG_PATH = Path(__file__).with_name("model_metadata.json")


class ModelVariant(BaseModel):
    """A Runnable Local Model.

    Multiple identifiers (ID, backend tag, aliases) can all resolve to the
    same variant.

    Attributes:
        id: Canonical identifier used on the command line (e.g., "llama3-8b-q4")
        backend_id: Tag the inference backend knows the model by
            (e.g., "llama3:8b-instruct-q4_0" for Ollama)
        family: Model family for grouping (e.g., "llama3")
        parameters: Human-readable size (e.g., "8B")
        quantization: Weight quantization, None for full precision
        aliases: Alternative names that resolve to this variant
        notes: Human-readable description/usage notes
    """

    id: str
    backend_id: str
    family: str
    parameters: str | None = None
    quantization: str | None = None
    aliases: tuple[str, ...] = ()
    notes: str | None = None

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def identifiers(self) -> frozenset[str]:
        """All valid lookup keys for this variant: {id, backend_id, *aliases}."""
        return frozenset({self.id, self.backend_id, *self.aliases})


class ModelSpec(BaseModel):
    """Normalized reference to a catalog variant."""

    variant_id: str

    model_config = ConfigDict(frozen=True)

    def variant(self, catalog: ModelCatalog) -> ModelVariant:
        return catalog.find_variant(self.variant_id)

    def to_backend_model(self, catalog: ModelCatalog) -> str:
        return self.variant(catalog).backend_id


class ModelCatalog(RootModel[tuple[ModelVariant, ...]]):
    """Catalog of local models - wraps a tuple for validation and lookup."""

    root: tuple[ModelVariant, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_duplicate_identifiers(self) -> ModelCatalog:
        """Validate No Duplicate Model Identifiers.

        Ensures all identifiers (including aliases) are unique across the
        catalog, so an alias can never resolve to two different models.

        Raises:
            ValueError: If any identifier appears in multiple variants
        """
        all_ids = [ident for variant in self.root for ident in variant.identifiers]
        unique_ids = set(all_ids)
        if len(all_ids) != len(unique_ids):
            duplicates = [x for x in unique_ids if all_ids.count(x) > 1]
            raise ValueError(f"Duplicate model identifiers: {sorted(duplicates)}")
        return self

    @cached_property
    def variant_lookup(self) -> dict[str, ModelVariant]:
        return {ident: variant for variant in self.root for ident in variant.identifiers}

    @classmethod
    def from_list(cls, data: list[dict[str, Any]]) -> ModelCatalog:
        return cls.model_validate(data)

    @classmethod
    def from_json_file(cls, path: Path) -> ModelCatalog:
        """Load and validate catalog from JSON."""
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.from_list(data)

    def find_variant(self, identifier: str) -> ModelVariant:
        """Find Model Variant by Any Valid Identifier.

        Args:
            identifier: Model identifier string (whitespace stripped)

        Raises:
            KeyError: If identifier not found in catalog
        """
        variant = self.variant_lookup.get(identifier.strip())
        if variant is None:
            raise KeyError(f"Model '{identifier}' not registered")
        return variant

    def parse_spec(self, identifier: str) -> ModelSpec:
        return ModelSpec(variant_id=self.find_variant(identifier).id)

    def ids(self) -> tuple[str, ...]:
        return tuple(variant.id for variant in self.root)


__all__ = ["DEFAULT_CATALOG_PATH", "ModelCatalog", "ModelSpec", "ModelVariant"]
