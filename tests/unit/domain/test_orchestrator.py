"""
Tests for Orchestrator routing.

These tests demonstrate:
- Testing precedence (command > cache > inference)
- Testing the cache contract (hit skips the model, errors are never cached)
- Testing turn recording (user + assistant appended, then saved)
- Testing failure containment (inference, cache, cancellation)
"""

import asyncio

import pytest

from llamagpt.domain.chat_session import ChatSession
from llamagpt.domain.commands import CommandRegistry
from llamagpt.domain.domain_type import InferenceErrorKind, ReplySource, Role
from llamagpt.domain.domain_value import GenerationParams
from llamagpt.domain.errors import HistorySaveError, InferenceError, SessionStateError
from llamagpt.domain.orchestrator import Orchestrator
from llamagpt.domain.response_cache import ResponseCache, fingerprint


class BrokenCache(ResponseCache):
    """Cache whose every operation fails."""

    def get(self, key: str) -> str | None:
        raise RuntimeError("cache offline")

    def put(self, key: str, response: str) -> None:
        raise RuntimeError("cache offline")


async def test_repeated_prompt_is_served_from_cache(
    orchestrator: Orchestrator,
    gateway,
    session: ChatSession,
    params: GenerationParams,
):
    """
    Demonstrates: The capital-of-France scenario.

    The first turn runs the model and caches its answer; the identical
    second turn is answered from the cache without calling the model.
    Both turns are recorded in the history.
    """
    first = await orchestrator.run_turn("What is the capital of France?", params)
    second = await orchestrator.run_turn("What is the capital of France?", params)

    assert first.text == "Paris"
    assert first.source is ReplySource.INFERENCE
    assert second.text == "Paris"
    assert second.source is ReplySource.CACHE
    assert len(gateway.calls) == 1
    assert [(m.role, m.content) for m in session.history] == [
        (Role.USER, "What is the capital of France?"),
        (Role.ASSISTANT, "Paris"),
        (Role.USER, "What is the capital of France?"),
        (Role.ASSISTANT, "Paris"),
    ]


async def test_changed_parameters_miss_the_cache(orchestrator: Orchestrator, gateway, params: GenerationParams):
    await orchestrator.respond("hello", params)
    await orchestrator.respond("hello", params.model_copy(update={"temperature": 0.2}))
    await orchestrator.respond("hello", params.model_copy(update={"model": "mistral-7b-q4"}))

    assert len(gateway.calls) == 3


async def test_timeout_is_reported_and_not_cached(
    registry: CommandRegistry,
    cache: ResponseCache,
    session: ChatSession,
    make_gateway,
    timeout_error: InferenceError,
    params: GenerationParams,
):
    """
    Demonstrates: An inference failure becomes an error reply.

    The reply carries the "AI Error:" prefix, the turn is still recorded,
    and nothing is cached so the next attempt reaches the model again.
    """
    gateway = make_gateway(error=timeout_error)
    orchestrator = Orchestrator(registry=registry, cache=cache, gateway=gateway, session=session)

    reply = await orchestrator.run_turn("Write a novel", params)

    assert reply.is_error
    assert reply.source is ReplySource.INFERENCE
    assert reply.text == "AI Error: llama3-8b-q4 did not answer within 1s (timeout)"
    assert len(cache) == 0
    assert [m.content for m in session.history] == ["Write a novel", reply.text]

    await orchestrator.respond("Write a novel", params)
    assert len(gateway.calls) == 2


async def test_commands_shadow_cached_responses(
    orchestrator: Orchestrator,
    cache: ResponseCache,
    gateway,
    params: GenerationParams,
):
    """
    Demonstrates: Commands always win.

    Even with a cached model answer for the exact input, "help" runs the
    command, and command output is never written to the cache.
    """
    cache.put(fingerprint("help", params.model, params.temperature), "stale model answer")

    reply = await orchestrator.respond("help", params)

    assert reply.source is ReplySource.COMMAND
    assert reply.text.startswith("Available commands: help")
    assert gateway.calls == []
    assert len(cache) == 1


async def test_command_failure_is_prefixed(orchestrator: Orchestrator, tmp_path, params: GenerationParams):
    reply = await orchestrator.respond(f"ls {tmp_path / 'missing'}", params)

    assert reply.is_error
    assert reply.source is ReplySource.COMMAND
    assert reply.text.startswith("Error: No such directory")


async def test_cache_failures_are_absorbed(
    registry: CommandRegistry,
    gateway,
    session: ChatSession,
    params: GenerationParams,
):
    orchestrator = Orchestrator(registry=registry, cache=BrokenCache(), gateway=gateway, session=session)

    reply = await orchestrator.run_turn("hello", params)

    assert reply.text == "Paris"
    assert reply.source is ReplySource.INFERENCE
    assert len(session.history) == 2


async def test_empty_input_is_a_no_op(orchestrator: Orchestrator, session: ChatSession, gateway, params):
    assert await orchestrator.run_turn("   ", params) is None
    assert session.history == ()
    assert gateway.calls == []


async def test_input_is_trimmed_before_routing(orchestrator: Orchestrator, gateway, session, params):
    reply = await orchestrator.run_turn("  hello  ", params)

    assert reply.source is ReplySource.INFERENCE
    assert gateway.calls[0][0] == "hello"
    assert session.history[0].content == "hello"


async def test_generation_params_reach_gateway(orchestrator: Orchestrator, gateway):
    params = GenerationParams(model="phi3-mini", temperature=1.3, timeout=9.0)

    await orchestrator.respond("hello", params)

    assert gateway.calls == [("hello", 1.3, "phi3-mini", 9.0)]


async def test_cancellation_records_nothing(
    registry: CommandRegistry,
    cache: ResponseCache,
    session: ChatSession,
    make_gateway,
    params: GenerationParams,
):
    """
    Demonstrates: Cancelling a turn mid-inference leaves no trace.

    CancelledError propagates; history and cache are untouched.
    """
    gateway = make_gateway(delay=10.0)
    orchestrator = Orchestrator(registry=registry, cache=cache, gateway=gateway, session=session)

    task = asyncio.create_task(orchestrator.run_turn("slow question", params))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert session.history == ()
    assert len(cache) == 0


async def test_save_failure_propagates_with_turn_in_memory(
    orchestrator: Orchestrator,
    session: ChatSession,
    memory_store,
    params: GenerationParams,
):
    memory_store.fail_writes = True

    with pytest.raises(HistorySaveError):
        await orchestrator.run_turn("hello", params)

    assert [m.content for m in session.history] == ["hello", "Paris"]
    assert session.dirty


async def test_run_turn_needs_a_session(registry, cache, gateway, params):
    orchestrator = Orchestrator(registry=registry, cache=cache, gateway=gateway)

    assert (await orchestrator.respond("hello", params)).text == "Paris"
    with pytest.raises(SessionStateError):
        await orchestrator.run_turn("hello", params)


async def test_model_not_found_reply(registry, cache, session, make_gateway, params):
    gateway = make_gateway(error=InferenceError(InferenceErrorKind.MODEL_NOT_FOUND, "Unknown model 'gpt-9'"))
    orchestrator = Orchestrator(registry=registry, cache=cache, gateway=gateway, session=session)

    reply = await orchestrator.respond("hello", params)

    assert reply.text == "AI Error: Unknown model 'gpt-9' (model_not_found)"
