"""Model Pool - Reuse of Pydantic AI Agents per Local Model.

Key Insight:
    Pydantic AI Agents are stateless executors. Prompts and model settings
    are passed per run, so one Agent per model serves every session and
    every temperature.

Backends:
    By default each catalog variant runs on a local Ollama server through
    its OpenAI-compatible endpoint. A pre-built Pydantic AI model can be
    injected as `backend` instead (used by tests and by embedders that bring
    their own engine); it then serves every spec.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, PrivateAttr

from .model_catalog import ModelCatalog, ModelSpec

if TYPE_CHECKING:
    from pydantic_ai import Agent
    from pydantic_ai.models import Model

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class ModelPool(BaseModel):
    """Lazily built Agent per ModelSpec.

    Attributes:
        catalog: Source of truth for available models and their backend tags
        base_url: OpenAI-compatible endpoint of the local model server
        system_prompt: Instructions given to every agent, None for none
        backend: Optional Pydantic AI model overriding the server for all specs
        _cache: Private dict storing Agent instances

    Example:
        >>> pool = ModelPool(catalog=catalog)
        >>> agent1 = pool.get_agent(catalog.parse_spec("llama3"))
        >>> agent2 = pool.get_agent(catalog.parse_spec("llama3-8b-q4"))
        >>> assert agent1 is agent2  # aliases resolve to one spec
    """

    catalog: ModelCatalog
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    system_prompt: str | None = None
    backend: Any | None = None
    _cache: dict[ModelSpec, Agent[None, str]] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def _build_model(self, spec: ModelSpec) -> Model:
        if self.backend is not None:
            return self.backend

        from pydantic_ai.models.openai import OpenAIChatModel
        from pydantic_ai.providers.ollama import OllamaProvider

        return OpenAIChatModel(
            spec.to_backend_model(self.catalog),
            provider=OllamaProvider(base_url=self.base_url),
        )

    def get_agent(self, spec: ModelSpec) -> Agent[None, str]:
        """Get or create the Agent for `spec` (created on first use)."""
        if spec not in self._cache:
            from pydantic_ai import Agent

            self._cache[spec] = Agent(
                self._build_model(spec),
                output_type=str,
                system_prompt=self.system_prompt or (),
            )
        return self._cache[spec]


__all__ = ["DEFAULT_OLLAMA_BASE_URL", "ModelPool"]
