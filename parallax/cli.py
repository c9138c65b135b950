"""
Parallax CLI

Usage:
    parallax lenses <mode>                      List the lenses a context mode runs
    parallax prompt <mode> [--goal G] ...       Print the analysis system prompt
    parallax parse <file|-> --mode <mode>       Parse a raw model reply into an Analysis
    parallax session --mode <mode>              Run a mediated session in the terminal
    parallax version                            Print version
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from parallax.config import settings

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    settings.LOG_DIR.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    if any(isinstance(h, logging.FileHandler) for h in root_logger.handlers):
        return

    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(settings.LOG_FILE, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )

    # Phase transitions get their own file for post-mortems on stuck sessions
    audit_logger = logging.getLogger("parallax.audit")
    audit_logger.propagate = False
    audit_handler = logging.FileHandler(settings.AUDIT_LOG_FILE, encoding="utf-8")
    audit_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    audit_logger.addHandler(audit_handler)
    audit_logger.setLevel(logging.INFO)


def _mode(value: str) -> str:
    from parallax.services.lens_registry import resolve_context_mode

    try:
        return resolve_context_mode(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def cmd_lenses(args):
    """List the lenses a context mode runs, in prompt order."""
    from parallax.services.lens_registry import CONTEXT_MODE_INFO, get_lenses

    info = CONTEXT_MODE_INFO[args.mode]
    print(f"{info.name} ({args.mode}): {info.description}")
    for lens in get_lenses(args.mode):
        print(f"  {lens.id:<14} {lens.name} [{lens.tier}, {lens.category}]")


def cmd_prompt(args):
    """Print the analysis system prompt for a context mode."""
    from parallax.services.prompt_composer import SessionContext, build_system_prompt, get_max_tokens

    context = None
    if args.goal or args.summary:
        context = SessionContext(goals=tuple(args.goal or ()), context_summary=args.summary or "")
    print(build_system_prompt(args.mode, context))
    print(f"\n# max_tokens={get_max_tokens(args.mode)}", file=sys.stderr)


def cmd_parse(args):
    """Parse a raw model reply (file or stdin) and print the Analysis as JSON."""
    from parallax.services.analysis_parser import parse_analysis

    if args.source == "-":
        raw = sys.stdin.read()
    else:
        path = Path(args.source)
        if not path.exists():
            print(f"❌ No such file: {path}")
            sys.exit(1)
        raw = path.read_text(encoding="utf-8")

    analysis = parse_analysis(raw, args.mode)
    if analysis is None:
        print("❌ Analysis unavailable (reply could not be parsed)")
        sys.exit(1)
    print(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))


def _print_new_mediator_messages(store, session_id: str, seen: set) -> None:
    for message in store.list_messages(session_id):
        if message.id in seen:
            continue
        seen.add(message.id)
        if message.sender == "mediator":
            print(f"\n🕊  {settings.MEDIATOR_NAME}: {message.content}\n")


def _read_line(prompt: str) -> str | None:
    try:
        return input(prompt).strip()
    except EOFError:
        return None


def cmd_session(args):
    """Run a session in the terminal. Both people type at the same keyboard."""
    from parallax.services.analysis_parser import temperature_label
    from parallax.services.completion import CompletionClient
    from parallax.services.conductor import Conductor
    from parallax.services.interventions import InterventionScheduler
    from parallax.services.issues import IssueTracker
    from parallax.services.lotl_client import LotLClient
    from parallax.services.mediation import MediationService
    from parallax.services.prompt_composer import build_name_map
    from parallax.services.record_store import InMemoryRecordStore, JsonRecordStore, Message, Session

    _configure_logging()

    store = JsonRecordStore() if args.store == "json" else InMemoryRecordStore()
    backend = CompletionClient(lotl_client=LotLClient(settings.LOTL_BASE_URL, settings.LOTL_TIMEOUT))
    # Interventions and issue re-analysis run on background timers once the session is active.
    interventions = InterventionScheduler(lambda sid: conductor.handle("check_intervention", sid))
    conductor = Conductor(
        store,
        backend,
        intervention_scheduler=interventions,
        issue_tracker=IssueTracker(store, backend),
    )
    mediation = MediationService(store, backend)

    session = store.create_session(
        Session(context_mode=args.mode, mode="in_person" if args.in_person else "remote")
    )
    print(f"Session {session.id} (room {session.room_code}, {args.mode})")
    print("Type 'a: ...' or 'b: ...' to speak as a person, /join when person B arrives, /end to finish.")

    seen: set = set()
    opening = "in_person_message" if args.in_person else "person_a_ready"
    result = conductor.handle(opening, session.id)
    if result.error:
        print(f"❌ {result.error}")
    _print_new_mediator_messages(store, session.id, seen)

    try:
        while True:
            session = store.get_session(session.id)
            names = build_name_map(session.person_a_name, session.person_b_name)
            line = _read_line(f"[{names[session.current_speaker]}] > ")
            if line is None or line == "/end":
                break
            if not line:
                continue
            if line == "/join":
                result = conductor.handle("person_b_joined", session.id)
            else:
                sender = session.current_speaker
                if line[:2].lower() in ("a:", "b:"):
                    sender = "person_a" if line[0].lower() == "a" else "person_b"
                    line = line[2:].strip()
                message = store.insert_message(Message(session_id=session.id, sender=sender, content=line))
                seen.add(message.id)

                if session.phase == "active":
                    analysis = mediation.analyze_message(session.id, message.id)
                    if analysis is None:
                        print("   (analysis unavailable)")
                    else:
                        temperature = analysis.emotional_temperature
                        print(
                            f"   temperature {temperature:.2f} ({temperature_label(temperature)})"
                            f" - {analysis.meta.primary_insight}"
                        )
                    result = conductor.handle("message_sent", session.id, message.id)
                elif args.in_person:
                    result = conductor.handle("in_person_message", session.id, message.id)
                else:
                    result = conductor.handle("message_sent", session.id, message.id)

            if result.error:
                print(f"❌ {result.error}")
            _print_new_mediator_messages(store, session.id, seen)
    except KeyboardInterrupt:
        print()
    finally:
        conductor.end_session(session.id)

    summary = mediation.summarize_session(session.id)
    if summary is not None:
        print(f"\n📋 {summary.overall_insight}\n   {summary.temperature_arc}")
    mediation.forget(session.id)


def cmd_version(args):
    """Print version."""
    from parallax import __version__

    print(f"parallax {__version__}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="parallax",
        description="Parallax - conflict intelligence and mediated conversation",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # lenses
    p_lenses = subparsers.add_parser("lenses", help="List the lenses for a context mode")
    p_lenses.add_argument("mode", type=_mode)
    p_lenses.set_defaults(func=cmd_lenses)

    # prompt
    p_prompt = subparsers.add_parser("prompt", help="Print the analysis system prompt")
    p_prompt.add_argument("mode", type=_mode)
    p_prompt.add_argument("--goal", action="append", help="Session goal (repeatable)")
    p_prompt.add_argument("--summary", help="Mediator's synthesis of both perspectives")
    p_prompt.set_defaults(func=cmd_prompt)

    # parse
    p_parse = subparsers.add_parser("parse", help="Parse a raw model reply")
    p_parse.add_argument("source", help="File with the raw reply, or - for stdin")
    p_parse.add_argument("--mode", type=_mode, default=settings.DEFAULT_CONTEXT_MODE)
    p_parse.set_defaults(func=cmd_parse)

    # session
    p_session = subparsers.add_parser("session", help="Run a mediated session in the terminal")
    p_session.add_argument("--mode", type=_mode, default=settings.DEFAULT_CONTEXT_MODE)
    p_session.add_argument("--in-person", action="store_true", help="Adaptive in-person onboarding")
    p_session.add_argument("--store", choices=("json", "memory"), default="memory")
    p_session.set_defaults(func=cmd_session)

    # version
    p_version = subparsers.add_parser("version", help="Print version")
    p_version.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
