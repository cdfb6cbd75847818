"""Inference Gateway - The Boundary to the On-Device Model.

The orchestrator only knows the InferenceGateway protocol: a prompt and
generation parameters go in, text comes out, or an InferenceError says why
not. AgentGateway implements it on top of Pydantic AI and the ModelPool.

Error Mapping:
    unknown model id, HTTP 404 from the server   → MODEL_NOT_FOUND
    deadline expired                             → TIMEOUT
    anything else the backend raises             → BACKEND_FAILURE

Cancellation is not an error: cancelling the awaiting task propagates
CancelledError unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.settings import ModelSettings

from .domain_type import InferenceErrorKind
from .errors import InferenceError
from .model_pool import ModelPool

logger = logging.getLogger(__name__)


class InferenceGateway(Protocol):
    """Anything that can turn a prompt into generated text."""

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float,
        model_id: str,
        deadline: float | None = None,
    ) -> str:
        """Generate a completion for `prompt`.

        Args:
            prompt: User text to answer
            temperature: Sampling temperature
            model_id: Catalog identifier (id or alias) of the model to run
            deadline: Seconds to wait before giving up, None for no bound

        Raises:
            InferenceError: No text could be produced for this call
        """
        ...


class AgentGateway:
    """
    InferenceGateway backed by Pydantic AI agents from a ModelPool.

    Each call is a single-turn run: the model sees the prompt (and the pool's
    system prompt) but not the chat history, which keeps the output a
    function of exactly the inputs the response cache keys on.
    """

    def __init__(self, pool: ModelPool):
        self.pool = pool

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float,
        model_id: str,
        deadline: float | None = None,
    ) -> str:
        try:
            spec = self.pool.catalog.parse_spec(model_id)
        except KeyError as exc:
            raise InferenceError(InferenceErrorKind.MODEL_NOT_FOUND, f"Unknown model '{model_id}'") from exc

        logger.debug("Running %s (temperature=%s, deadline=%s)", spec.variant_id, temperature, deadline)
        try:
            agent = self.pool.get_agent(spec)
            run = agent.run(prompt, model_settings=ModelSettings(temperature=temperature))
            if deadline is None:
                result = await run
            else:
                result = await asyncio.wait_for(run, timeout=deadline)
        except TimeoutError as exc:
            limit = f" within {deadline:g}s" if deadline is not None else ""
            raise InferenceError(
                InferenceErrorKind.TIMEOUT,
                f"{spec.variant_id} did not answer{limit}",
            ) from exc
        except ModelHTTPError as exc:
            if exc.status_code == 404:
                raise InferenceError(
                    InferenceErrorKind.MODEL_NOT_FOUND,
                    f"Model '{spec.variant_id}' is not available on the inference server",
                ) from exc
            raise InferenceError(InferenceErrorKind.BACKEND_FAILURE, str(exc)) from exc
        except Exception as exc:
            raise InferenceError(
                InferenceErrorKind.BACKEND_FAILURE,
                str(exc) or type(exc).__name__,
            ) from exc

        return result.output


__all__ = ["AgentGateway", "InferenceGateway"]
