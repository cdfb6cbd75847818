"""Orchestrator - Routing Every Input to a Command, the Cache, or the Model.

Execution Flow:
    1. Trim the input; empty input is a no-op
    2. Command Registry: first matching command runs, output is never cached
    3. Response Cache: fingerprint(prompt, model, temperature) lookup
    4. Inference Gateway: on a miss; successful output is cached
    5. run_turn(): append user + assistant messages and save the session

Precedence:
    Commands always win. A registered command shadows any cached or
    generated text for the same input, even if an identical prompt was
    answered by the model earlier: commands are structure, the cache and
    the model are content.

Failure Handling:
    - Command failure → "Error: ..." reply, session continues
    - Inference failure → "AI Error: ..." reply, nothing cached
    - Cache failure → logged, treated as a miss
    - Save failure → HistorySaveError raised by run_turn(), history kept
    - Cancellation while waiting on the model → nothing appended or cached
"""

from __future__ import annotations

import logging

from .chat_session import ChatSession
from .commands import CommandRegistry
from .domain_type import ReplySource, Role
from .domain_value import GenerationParams, Reply
from .errors import InferenceError, SessionStateError
from .inference import InferenceGateway
from .response_cache import ResponseCache, fingerprint

logger = logging.getLogger(__name__)

COMMAND_ERROR_PREFIX = "Error:"
INFERENCE_ERROR_PREFIX = "AI Error:"


class Orchestrator:
    """
    Per-run coordinator of registry, cache, gateway and session.

    The registry and session belong to this orchestrator for the duration
    of a run; the cache is the process-wide instance handed in by the
    composition root and may be shared with other orchestrators.
    Without a session (one-shot use) only respond() is available.

    Example:
        >>> orchestrator = Orchestrator(registry=registry, cache=cache, gateway=gateway, session=session)
        >>> params = GenerationParams(model="llama3-8b-q4", temperature=0.7)
        >>> reply = await orchestrator.run_turn("what is the capital of France?", params)
        >>> reply.source
        <ReplySource.INFERENCE: 'inference'>
    """

    def __init__(
        self,
        *,
        registry: CommandRegistry,
        cache: ResponseCache,
        gateway: InferenceGateway,
        session: ChatSession | None = None,
    ):
        self.registry = registry
        self.cache = cache
        self.gateway = gateway
        self.session = session

    async def respond(self, text: str, params: GenerationParams) -> Reply | None:
        """
        Produce the reply for one input without touching the session.

        Returns:
            Reply, or None when the input is empty after trimming
        """
        prompt = text.strip()
        if not prompt:
            return None

        # === Step 1: Structured commands ===
        handle = self.registry.find(prompt)
        if handle is not None:
            logger.debug("Input routed to command '%s'", handle.name)
            result = self.registry.execute(handle)
            if result.ok:
                return Reply(text=result.text, source=ReplySource.COMMAND)
            return Reply(
                text=f"{COMMAND_ERROR_PREFIX} {result.text}",
                source=ReplySource.COMMAND,
                is_error=True,
            )

        # === Step 2: Cache ===
        key = self._fingerprint(prompt, params)
        if key is not None:
            cached = self._cache_get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key[:12])
                return Reply(text=cached, source=ReplySource.CACHE)
            logger.debug("Cache miss for %s", key[:12])

        # === Step 3: Inference ===
        try:
            generated = await self.gateway.generate(
                prompt,
                temperature=params.temperature,
                model_id=params.model,
                deadline=params.timeout,
            )
        except InferenceError as exc:
            logger.warning("Inference failed (%s): %s", exc.kind.value, exc.args[0])
            return Reply(
                text=f"{INFERENCE_ERROR_PREFIX} {exc}",
                source=ReplySource.INFERENCE,
                is_error=True,
            )

        if key is not None:
            self._cache_put(key, generated)
        return Reply(text=generated, source=ReplySource.INFERENCE)

    async def run_turn(self, text: str, params: GenerationParams) -> Reply | None:
        """
        Respond, then record the turn and persist it.

        Raises:
            HistorySaveError: The turn is in memory but could not be saved
            SessionStateError: The orchestrator has no session
        """
        if self.session is None:
            raise SessionStateError("run_turn() needs a chat session")
        reply = await self.respond(text, params)
        if reply is None:
            return None

        self.session.add_message(Role.USER, text.strip())
        self.session.add_message(Role.ASSISTANT, reply.text)
        await self.session.save_history()
        return reply

    # Cache access is best-effort: no cache problem may fail a turn.

    def _fingerprint(self, prompt: str, params: GenerationParams) -> str | None:
        try:
            return fingerprint(prompt, params.model, params.temperature)
        except Exception:
            logger.warning("Could not fingerprint prompt; skipping cache", exc_info=True)
            return None

    def _cache_get(self, key: str) -> str | None:
        try:
            return self.cache.get(key)
        except Exception:
            logger.warning("Cache lookup failed; treating as miss", exc_info=True)
            return None

    def _cache_put(self, key: str, response: str) -> None:
        try:
            self.cache.put(key, response)
        except Exception:
            logger.warning("Cache store failed; response not cached", exc_info=True)


__all__ = ["COMMAND_ERROR_PREFIX", "INFERENCE_ERROR_PREFIX", "Orchestrator"]
