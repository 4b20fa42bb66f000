"""Interactive CLI for multi-turn conversations with the orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import base64
import mimetypes
import re
from pathlib import Path
from typing import Dict, Optional, Tuple

from agentura.agents import AgentKind
from agentura.config import get_settings
from agentura.runtime import build_orchestrator
from agentura.session.models import FileAttachment, Message
from agentura.session.store import StoreEvent, StoreEventType
from agentura.utils.error_handler import AgenturaError
from agentura.utils.logging_utils import setup_logging

HELP = """Commands:
  /help                 - show this help
  /quit, /exit          - leave
  /stop                 - stop the running request
  /reset                - clear the conversation
  /ingest <file>        - add a text file to the local archive
  /archive              - list archived sources
  /archive delete <src> - remove one source from the archive
  /archive clear        - empty the archive
  /attach <file>        - attach a file to the next message
  /agent <kind> <text>  - send a message straight to one agent
Paste a GitHub URL in a message to add the repository as context."""

_GITHUB_URL = re.compile(r"https?://github\.com/[\w.-]+/[\w.-]+")


class TracePrinter:
    """Store listener that prints trace lines as they are published."""

    def __init__(self) -> None:
        self._seen: Dict[str, int] = {}

    def __call__(self, event: StoreEvent) -> None:
        if event.message is None or event.type == StoreEventType.APPENDED:
            return
        message = event.message
        start = self._seen.get(message.id, 0)
        for line in message.trace[start:]:
            print(f"  {line}")
        self._seen[message.id] = len(message.trace)


def load_attachment(path: str) -> FileAttachment:
    file_path = Path(path).expanduser()
    mime_type = mimetypes.guess_type(file_path.name)[0] or "text/plain"
    data = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return FileAttachment(name=file_path.name, mime_type=mime_type, content=data)


def render_message(message: Message) -> str:
    lines = [f"Agent ({message.agent.value if message.agent else 'assistant'})> {message.content}"]
    if message.plan is not None:
        lines.append("Plan:")
        lines.extend(f"  {row}" for row in message.plan.status_summary().splitlines())
    if message.critique is not None:
        lines.append(f"Critique: {message.critique.average:.2f}/5 {message.critique.critique}")
    for source in message.sources:
        lines.append(f"Source: {source.title or source.uri} <{source.uri}>")
    for call in message.function_calls:
        lines.append(f"Tool call: {call.name} {call.args}")
    return "\n".join(lines)


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: input(prompt).strip())


async def _run_request(orchestrator, coro) -> Tuple["asyncio.Future[Message]", "asyncio.Future[str]"]:
    """Await a request while still accepting /stop from the keyboard.

    Returns the finished request task and the keyboard reader, which may
    still be waiting for (or already hold) the next line.
    """

    task = asyncio.ensure_future(coro)
    reader = asyncio.ensure_future(_read_line(""))
    while not task.done():
        done, _ = await asyncio.wait({task, reader}, return_when=asyncio.FIRST_COMPLETED)
        if reader in done:
            if reader.result().lower() == "/stop":
                orchestrator.stop()
                print("Stopping after the current step...")
            else:
                print("A request is running; type /stop to stop it.")
            if not task.done():
                reader = asyncio.ensure_future(_read_line(""))
    return task, reader


async def async_main() -> None:
    settings = get_settings()
    logger = setup_logging(logs_dir=Path(settings.observability.log_dir))
    orchestrator = build_orchestrator(settings)
    orchestrator.subscribe(TracePrinter())

    print("Agentura CLI ready. Type /help for commands.")
    attachment: Optional[FileAttachment] = None
    pending = None

    while True:
        try:
            if pending is not None:
                user_input = await pending
                pending = None
            else:
                user_input = await _read_line("You> ")
        except (KeyboardInterrupt, EOFError):
            print("\nBye!")
            logger.info("Session ended by user")
            break

        if not user_input:
            continue
        command = user_input.lower()

        if command in {"/quit", "/exit"}:
            print("Session ended.")
            break
        if command == "/help":
            print(HELP)
            continue
        if command == "/stop":
            print("Nothing is running.")
            continue
        if command == "/reset":
            orchestrator.reset_session()
            attachment = None
            print("Conversation cleared.")
            continue
        if command.startswith("/ingest "):
            path = Path(user_input[8:].strip()).expanduser()
            try:
                count = await orchestrator.ingest_document(path.read_text(encoding="utf-8"), path.name)
            except OSError as e:
                print(f"Cannot read {path}: {e}")
                continue
            print(f"Ingested {count} chunks from {path.name}.")
            continue
        if command == "/archive":
            sources = orchestrator.archive_sources()
            if not sources:
                print("The archive is empty.")
            for source, count in sorted(sources.items()):
                print(f"  {source}: {count} chunks")
            continue
        if command.startswith("/archive delete "):
            source = user_input[16:].strip()
            print(f"Removed {orchestrator.delete_source(source)} chunks from {source}.")
            continue
        if command == "/archive clear":
            orchestrator.clear_archive()
            print("Archive cleared.")
            continue
        if command.startswith("/attach "):
            try:
                attachment = load_attachment(user_input[8:].strip())
            except OSError as e:
                print(f"Cannot attach file: {e}")
                continue
            print(f"Attached {attachment.name} ({attachment.mime_type}) to the next message.")
            continue

        forced: Optional[AgentKind] = None
        prompt = user_input
        if command.startswith("/agent "):
            _, _, rest = user_input.partition(" ")
            name, _, prompt = rest.strip().partition(" ")
            forced = AgentKind.parse(name)
            if forced is None or not orchestrator.agents.is_user_facing(forced):
                print(f"Unknown agent '{name}'. Choose from: {', '.join(k.value for k in orchestrator.agents.user_facing_kinds())}")
                continue
        elif command.startswith("/"):
            print("Unknown command. Type /help for commands.")
            continue

        url = _GITHUB_URL.search(prompt)
        task, pending = await _run_request(
            orchestrator,
            orchestrator.send_message(
                prompt,
                file=attachment,
                repo_url=url.group(0) if url else None,
                forced_agent=forced,
            ),
        )
        try:
            message = task.result()
        except (AgenturaError, ValueError) as e:
            print(f"Error: {getattr(e, 'user_message', e)}")
            continue
        attachment = None
        print(render_message(message))


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="agentura", description="Multi-agent orchestration CLI")
    parser.add_argument("--persona", choices=["default", "creative", "concise"], help="Persona for user-facing agents")
    parser.add_argument("--chat-mode", choices=["developer", "normal"], help="normal mode disables planning")
    parser.add_argument("--no-guard", action="store_true", help="Disable the constitution check")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.persona:
        settings.governance.persona = args.persona
    if args.chat_mode:
        settings.governance.chat_mode = args.chat_mode
    if args.no_guard:
        settings.safety.constitution_enabled = False

    asyncio.run(async_main())


if __name__ == "__main__":
    main()
