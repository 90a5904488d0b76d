"""
Main CLI entry point for cortexstream.

Streams one question to the agent chat endpoint and renders the answer.
"""

import argparse
import sys

from cortexstream import __version__

from .._types import StreamState
from ..client import CortexChat, build_chat_request
from .display import create_display
from .util import CANCELLED_EXIT, configure_logging, graceful_main, print_cancelled


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cortexstream",
        description="Stream answers from a conversational data agent",
    )
    parser.add_argument(
        "--base-url", help="Chat server URL (or set CORTEX_CHAT_BASE_URL environment variable)"
    )
    parser.add_argument(
        "--token", help="Bearer token (or set CORTEX_CHAT_TOKEN environment variable)"
    )
    parser.add_argument("--timeout", type=int, default=300, help="Request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logs")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ask = subparsers.add_parser("ask", help="Ask one question and stream the answer")
    ask.add_argument("message", help="Question to send")
    ask.add_argument("--agent-id", help="Agent to route the question to")
    ask.add_argument("--thread-id", help="Continue an existing thread")
    ask.add_argument("--parent-message-id", type=int, help="Message to reply to")
    ask.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")
    return parser


def _run_ask(args: argparse.Namespace) -> int:
    display = create_display("json" if args.json else "verbose")
    chat = CortexChat(base_url=args.base_url, token=args.token, timeout=args.timeout)
    session = chat.session(on_update=display.on_update)
    body = build_chat_request(
        args.message,
        thread_id=args.thread_id,
        parent_message_id=args.parent_message_id,
        agent_id=args.agent_id,
    )

    cancelled = False
    try:
        session.start(body)
    except KeyboardInterrupt:
        session.stop()
        cancelled = True
    finally:
        chat.close()

    snapshot = session.snapshot
    display.finish(snapshot)
    if cancelled:
        print_cancelled()
        return CANCELLED_EXIT
    return 1 if snapshot.stream_state == StreamState.ERROR else 0


def _real_main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "ask":
        return _run_ask(args)

    parser.print_help()
    return 0


def main() -> None:
    """Main CLI entry point with graceful interrupt handling."""
    code = graceful_main(_real_main, sys.argv[1:])
    raise SystemExit(code)


if __name__ == "__main__":
    main()
