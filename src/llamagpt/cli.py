"""Command-line front end.

Modes:
    llamagpt "PROMPT"                one-shot: print one reply, keep no history
    llamagpt -c ID "PROMPT"          chat turn: load ID, answer, save, exit
    llamagpt -c ID | llamagpt        interactive chat until exit/quit, Ctrl-C or Ctrl-D

Exit codes: 0 on success, 1 on an unrecovered orchestrator or persistence
error, 2 on invalid arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import itertools
import logging
import signal
import sys
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Sequence
from typing import TextIO, TypeVar

from pydantic import ValidationError

from .config import Settings, get_settings
from .domain.domain_type import Role
from .domain.domain_value import GenerationParams, Message, Reply, SessionKey
from .domain.errors import HistorySaveError, StorageUnavailableError
from .service.conversation import ConversationService, create_conversation_service
from .telemetry import configure_logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROMPT = "🦙> "
ASSISTANT_PREFIX = "🦙 "
USER_PREFIX = "You: "
EXIT_WORDS = frozenset({"exit", "quit"})
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llamagpt",
        description="Intelligent CLI assistant with on-device inference.",
    )
    parser.add_argument("prompt", nargs="?", default="", help="prompt to answer (omit for interactive chat)")
    parser.add_argument("-c", "--chat", metavar="ID", help="chat id whose history to load and save")
    parser.add_argument("-m", "--model", default=settings.default_model, help="model identifier or alias")
    parser.add_argument(
        "-t",
        "--temperature",
        type=float,
        default=settings.default_temperature,
        help="sampling temperature (0-2)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.inference_timeout,
        help="seconds to wait for the model before giving up (0 for no limit)",
    )
    parser.add_argument("--no-animations", action="store_true", help="disable the thinking spinner")
    parser.add_argument("-d", "--debug", action="store_true", help="verbose logging")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {settings.app_version}")
    return parser


def is_one_shot(args: argparse.Namespace) -> bool:
    return bool(args.prompt) and args.chat is None


def params_from_args(args: argparse.Namespace) -> GenerationParams:
    """Generation parameters from the command line; a non-positive timeout means no deadline."""
    timeout = args.timeout if args.timeout is not None and args.timeout > 0 else None
    return GenerationParams(model=args.model, temperature=args.temperature, timeout=timeout)


# ---------------------------------------------------------------------------
# Interaction helpers
# ---------------------------------------------------------------------------


@contextlib.asynccontextmanager
async def spinner(enabled: bool, stream: TextIO = sys.stderr) -> AsyncIterator[None]:
    """Show a thinking animation while the body awaits."""
    if not enabled:
        yield
        return

    async def spin() -> None:
        for frame in itertools.cycle(SPINNER_FRAMES):
            stream.write(f"\r{ASSISTANT_PREFIX}Thinking {frame}")
            stream.flush()
            await asyncio.sleep(0.1)

    task = asyncio.create_task(spin())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        stream.write("\r" + " " * 20 + "\r")
        stream.flush()


@contextlib.contextmanager
def prompt_interrupts() -> Iterator[None]:
    """
    Make Ctrl-C raise KeyboardInterrupt at the prompt.

    asyncio.run() replaces the SIGINT handler with one that only cancels the
    main task, which a blocking input() never notices. Inside this block the
    default handler is in force except while run_interruptible() owns SIGINT.
    """
    try:
        previous = signal.signal(signal.SIGINT, signal.default_int_handler)
    except ValueError:
        # Not the main thread: signal handlers cannot be changed here.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)


async def run_interruptible(awaitable: Awaitable[T]) -> T:
    """Await `awaitable` in its own task; Ctrl-C cancels only that task."""
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(awaitable)
    try:
        loop.add_signal_handler(signal.SIGINT, task.cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal handling (Windows, non-main thread): Ctrl-C stays fatal.
        installed = False
    try:
        return await task
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def print_history(history: Sequence[Message], out: TextIO) -> None:
    if not history:
        return
    print("=== Chat History ===", file=out)
    for msg in history:
        prefix = USER_PREFIX if msg.role is Role.USER else ASSISTANT_PREFIX
        print(f"{prefix}{msg.content}", file=out)
    print("====================", file=out)


def print_reply(reply: Reply, out: TextIO, err: TextIO) -> None:
    if reply.is_error:
        print(reply.text, file=err)
    else:
        print(f"{ASSISTANT_PREFIX}{reply.text}", file=out)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


async def handle_one_shot(
    service: ConversationService,
    prompt: str,
    params: GenerationParams,
    *,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Answer one prompt without any chat history."""
    out = out or sys.stdout
    err = err or sys.stderr
    logger.info("Processing one-shot prompt")
    reply = await service.orchestrator_for().respond(prompt, params)
    if reply is None:
        return 0
    if reply.is_error:
        print(reply.text, file=err)
        return 1
    print(reply.text, file=out)
    return 0


async def handle_chat_turn(
    service: ConversationService,
    chat_id: str,
    prompt: str,
    params: GenerationParams,
    *,
    animations: bool = False,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Run a single turn on a persisted chat and exit."""
    out = out or sys.stdout
    err = err or sys.stderr
    session = await service.open_session(chat_id)
    if session.load_warning:
        print(f"Warning: starting with empty history ({session.load_warning})", file=err)
    orchestrator = service.orchestrator_for(session)
    try:
        async with spinner(animations, err):
            reply = await orchestrator.run_turn(prompt, params)
    except HistorySaveError as exc:
        print(f"Error: could not save chat '{chat_id}': {exc}", file=err)
        return 1
    if reply is not None:
        print_reply(reply, out, err)
    return 0


async def interactive_chat(
    service: ConversationService,
    chat_id: str,
    params: GenerationParams,
    *,
    animations: bool = True,
    read_line: Callable[[str], str] = input,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """
    Read-eval-print loop over one chat.

    Each input is handled to completion before the next prompt. A failed
    save does not end the loop; the unsaved turn stays in memory and is
    written with the next successful save. The exit code is 1 only if the
    history is still unsaved when the loop ends.
    """
    out = out or sys.stdout
    err = err or sys.stderr
    session = await service.open_session(chat_id)
    if session.load_warning:
        print(f"Warning: starting with empty history ({session.load_warning})", file=err)
    orchestrator = service.orchestrator_for(session)

    print(f"{ASSISTANT_PREFIX}Welcome to LlamaGPT chat '{session.key}'! Type 'exit' or 'quit' to end.", file=out)
    print_history(session.history, out)

    with prompt_interrupts():
        while True:
            try:
                line = read_line(PROMPT)
            except KeyboardInterrupt:
                print("\nCtrl-C pressed, exiting...", file=out)
                break
            except EOFError:
                print("\nCtrl-D pressed, exiting...", file=out)
                break

            text = line.strip()
            if not text:
                continue
            if text.lower() in EXIT_WORDS:
                print("Goodbye! 👋", file=out)
                break

            try:
                async with spinner(animations, err):
                    reply = await run_interruptible(orchestrator.run_turn(text, params))
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                print("\nInterrupted.", file=err)
                continue
            except HistorySaveError as exc:
                print(f"Error: could not save chat '{session.key}': {exc}", file=err)
                continue

            if reply is not None:
                print_reply(reply, out, err)

    if session.dirty:
        try:
            await session.save_history()
        except HistorySaveError as exc:
            print(f"Error: chat '{session.key}' has unsaved messages: {exc}", file=err)
            return 1
    return 0


async def run(
    args: argparse.Namespace,
    settings: Settings,
    service: ConversationService,
    params: GenerationParams,
) -> int:
    try:
        if is_one_shot(args):
            return await handle_one_shot(service, args.prompt, params)

        animations = not args.no_animations and sys.stderr.isatty()
        chat_id = args.chat or settings.default_chat
        if args.prompt:
            return await handle_chat_turn(service, chat_id, args.prompt, params, animations=animations)
        return await interactive_chat(service, chat_id, params, animations=animations)
    finally:
        await service.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    configure_logging(settings.log_level, debug=args.debug)

    try:
        params = params_from_args(args)
    except ValidationError as exc:
        parser.error(f"invalid generation parameters: {exc.errors()[0]['msg']}")
    if args.chat is not None:
        try:
            SessionKey(args.chat)
        except ValidationError:
            parser.error(f"invalid chat id {args.chat!r}: use letters, digits, '.', '_' or '-'")

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    try:
        service = create_conversation_service(settings)
        return asyncio.run(run(args, settings, service, params))
    except KeyboardInterrupt:
        return 130
    except StorageUnavailableError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except (OSError, ValidationError) as exc:
        logger.error("Startup failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
