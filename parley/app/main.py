from __future__ import annotations

import logging
import sys
import traceback
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

from parley.app.config import resolve_args
from parley.app.diagnostics import hint_for_exception, summarize_exception
from parley.app.logging_setup import setup_app_logger
from parley.app.runtime import ConversationRuntime
from parley.app.services import build_services
from parley.audio.mic import SoundDeviceMicSource
from parley.contracts import Lane
from parley.live.orchestrator import TurnResult
from parley.live.progress import Stage

HELP = """Commands:
  start primary|counterpart   open the microphone for a speaker
  stop                        stop recording and translate
  say <lane> <text>           translate typed text
  history [query]             list (or search) saved turns
  delete <id>                 delete one turn
  clear                       delete every turn of the current user
  export <path>               write the history to a JSON file
  import <path>               replace the history with a JSON file
  user <identity>             switch to another user's history
  lang <primary> <counterpart>
  help
  quit"""

Printer = Callable[[str], None]


def parse_lane(token: str) -> Optional[Lane]:
    token = (token or "").strip().lower()
    for lane in Lane:
        if lane.value.startswith(token) and token:
            return lane
    return None


def format_turn(turn) -> str:
    return (
        f"{turn.id[:8]}  [{turn.source_language}->{turn.target_language}] "
        f"{turn.original_text} => {turn.translated_text} ({turn.confidence:.2f})"
    )


def handle_command(runtime: ConversationRuntime, line: str, out: Printer = print) -> bool:
    """Run one prompt command. Returns False when the prompt should exit."""
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return True
    cmd = parts[0].lower()
    rest = parts[1].strip() if len(parts) > 1 else ""

    if cmd in ("quit", "exit"):
        return False
    if cmd == "help":
        out(HELP)
    elif cmd == "start":
        lane = parse_lane(rest)
        if lane is None:
            out("Usage: start primary|counterpart")
        elif runtime.start(lane):
            out(f"Recording {lane.value} ({runtime.context.language_for(lane)}). Type 'stop' when done.")
    elif cmd == "stop":
        future = runtime.stop()
        if future is None:
            out("Nothing recorded.")
        else:
            future.result()
    elif cmd == "say":
        lane_token, _, text = rest.partition(" ")
        lane = parse_lane(lane_token)
        if lane is None or not text.strip():
            out("Usage: say <lane> <text>")
        else:
            future = runtime.submit_text(lane, text)
            if future is not None:
                future.result()
    elif cmd == "history":
        turns = runtime.history.search(rest)
        if not turns:
            out("No conversations.")
        for turn in turns:
            out(format_turn(turn))
    elif cmd == "delete":
        matches = [t for t in runtime.history.turns() if rest and t.id.startswith(rest)]
        if len(matches) != 1:
            out("Usage: delete <id> (an unambiguous id prefix)")
        else:
            runtime.history.delete(matches[0].id)
            out(f"Deleted {matches[0].id}")
    elif cmd == "clear":
        runtime.history.clear_all()
        out("History cleared.")
    elif cmd == "export":
        if not rest:
            out("Usage: export <path>")
        else:
            Path(rest).write_text(runtime.history.export_document(), encoding="utf-8")
            out(f"Exported {runtime.history.total_turns()} turns to {rest}")
    elif cmd == "import":
        path = Path(rest) if rest else None
        if path is None or not path.exists():
            out("Usage: import <path> (file must exist)")
        elif runtime.history.import_document(path.read_text(encoding="utf-8-sig")):
            out(f"Imported {runtime.history.total_turns()} turns.")
        else:
            out("Import failed: not a valid history document.")
    elif cmd == "user":
        out(f"History user: {runtime.switch_user(rest or None)}")
    elif cmd == "lang":
        codes = rest.split()
        if len(codes) != 2:
            out("Usage: lang <primary> <counterpart>")
        else:
            try:
                runtime.set_languages(codes[0], codes[1])
            except ValueError as e:
                out(str(e))
            else:
                out(f"Languages: primary={codes[0]} counterpart={codes[1]}")
    else:
        out(f"Unknown command: {cmd}. Type 'help'.")
    return True


def main(argv: list[str] | None = None) -> int:
    load_dotenv()  # Load .env before any service reads env vars
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(level=logging.DEBUG if args.debug else logging.INFO)
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return 0

    def _on_message(lane: Lane, message: str) -> None:
        print(f"[{lane.value}] {message}")

    def _on_warning(lane: Lane, warning: str) -> None:
        print(f"[{lane.value}] warning: {warning}")

    def _on_result(result: TurnResult) -> None:
        if result.turn is not None:
            print(f"[{result.lane.value}] {result.transcript}")
            print(f"[{result.lane.other.value}] {result.translation}")

    def _on_progress(lane: Lane, stage: Optional[Stage]) -> None:
        if stage is not None and args.debug:
            print(f"[{lane.value}] ... {stage.value}")

    try:
        services = build_services(args)
        runtime = ConversationRuntime.from_args(
            args,
            services,
            on_message=_on_message,
            on_warning=_on_warning,
            on_result=_on_result,
            on_progress=_on_progress,
        )
    except Exception as e:
        logger.exception("startup_failed")
        summary = summarize_exception(traceback.format_exc() or str(e))
        print(f"Startup failed: {summary}")
        print(hint_for_exception(summary))
        return 1

    runtime.open()
    print(f"Parley ready ({runtime.context.primary_language} <-> {runtime.context.counterpart_language}).")
    print(f"Logs: {log_path}")
    print("Type 'help' for commands.")
    try:
        while True:
            try:
                line = input("parley> ")
            except EOFError:
                break
            try:
                if not handle_command(runtime, line):
                    break
            except Exception as e:
                logger.exception("command_failed", extra={"command": line})
                print(f"Error: {summarize_exception(str(e))}")
    except KeyboardInterrupt:
        print()
    finally:
        runtime.shutdown()
        logger.info("app_exit")
    return 0


if __name__ == "__main__":
    sys.exit(main())
