"""CLI for scholia - review comments anchored to rendered Markdown."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx
import uvicorn

from . import __version__
from .adapters.span_wrapper import SpanWrapper
from .adapters.sqlite_store import group_threads
from .api.app import create_app, generate_token
from .core.model import AnnotationEntry
from .core.overlay import OverlayManager
from .runtime import build_runtime


def _project_file(rt: Any, file: str) -> tuple[Path, str] | None:
    """Absolute path and project-relative path of a Markdown file, or None."""
    root = Path(rt.project_directory)
    path = (root / file).resolve()
    try:
        rel = path.relative_to(root).as_posix()
    except ValueError:
        print(f"Error: {file} is outside the project {root}", file=sys.stderr)
        return None
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    return path, rel


def cmd_render(args: argparse.Namespace, rt: Any) -> int:
    """Print annotated HTML with every open comment highlighted."""
    found = _project_file(rt, args.file)
    if found is None:
        return 1
    path, rel = found

    document = rt.renderer.render(path.read_text(encoding="utf-8"))
    overlay = OverlayManager(document, SpanWrapper())
    for comment in rt.store.list_comments(rt.project_directory, rel):
        if not comment.is_reply:
            overlay.materialize(comment)

    print(document.html())

    if not args.quiet:
        for diag in overlay.diagnostics:
            print(f"{diag.severity}: comment {diag.comment_id}: {diag.message}", file=sys.stderr)

    return 0


def cmd_address(args: argparse.Namespace, rt: Any) -> int:
    """List open comment threads of a file."""
    found = _project_file(rt, args.file)
    if found is None:
        return 1
    _, rel = found

    comments = rt.store.list_comments(rt.project_directory, rel)

    if args.json:
        print(json.dumps([c.to_dict() for c in comments], indent=2))
        return 0

    threads = group_threads(comments)
    if not threads:
        if not args.quiet:
            print(f"No unresolved comments for {rel}")
        return 0

    print(f"Found {len(threads)} unresolved comment(s) for {rel}:")
    for root, replies in threads:
        label = AnnotationEntry(
            root.id, root.line_start, root.line_end, root.selected_text, root.comment_text
        ).line_label
        print()
        print(f"#{root.id} {label or '-'} [{root.author}] {root.selected_text!r}")
        print(f"    {root.comment_text}")
        for reply in replies:
            print(f"    Reply from {reply.author.capitalize()}: (#{reply.id})")
            print(f"        {reply.comment_text}")

    return 0


def cmd_reply(args: argparse.Namespace, rt: Any) -> int:
    """Reply to a root comment (as the agent by default)."""
    message = args.message.strip()
    if not message:
        print("Error: --message must not be empty", file=sys.stderr)
        return 1

    try:
        reply = rt.store.reply(args.comment_id, message, author=args.author)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(reply.to_dict()))
    elif not args.quiet:
        print(f"Reply added (#{reply.id}) to comment #{args.comment_id}")

    return 0


def cmd_resolve(args: argparse.Namespace, rt: Any) -> int:
    """Resolve a whole file, or one thread with --comment-id."""
    if args.comment_id is not None:
        comment = rt.store.get(args.comment_id)
        if comment is None:
            print(f"Error: Comment {args.comment_id} not found", file=sys.stderr)
            return 1
        root_id = comment.root_id or comment.id
        count = rt.store.resolve_thread(root_id)
        if args.json:
            print(json.dumps({"comment_id": root_id, "resolved": count}))
        elif not args.quiet:
            print(f"Resolved thread #{root_id} ({count} comment(s))")
        return 0

    if args.file is None:
        print("Error: give a file or --comment-id", file=sys.stderr)
        return 1

    found = _project_file(rt, args.file)
    if found is None:
        return 1
    _, rel = found

    count = rt.store.resolve_all(rt.project_directory, rel)

    if args.json:
        print(json.dumps({"file_path": rel, "resolved": count}))
    elif not args.quiet:
        print(f"Resolved {count} comment(s) in {rel}")

    return 0


def cmd_register(args: argparse.Namespace, rt: Any) -> int:
    """Register the project directory with the comments database."""
    rt.store.register_project(rt.project_directory)

    if args.json:
        print(json.dumps({"project_directory": rt.project_directory}))
    elif not args.quiet:
        print(f"Registered project: {rt.project_directory}")

    return 0


def cmd_review(args: argparse.Namespace, rt: Any) -> int:
    """Register the project and print where the file's review lives."""
    found = _project_file(rt, args.file.removeprefix("@"))
    if found is None:
        return 1
    _, rel = found

    rt.store.register_project(rt.project_directory)

    host = args.host or rt.config.server.host
    port = args.port or rt.config.server.port
    base = f"http://{host}:{port}"
    query = urlencode({"project_directory": rt.project_directory, "file_path": rel})
    url = f"{base}/api/document?{query}"

    if args.json:
        print(json.dumps({"project_directory": rt.project_directory, "file_path": rel, "url": url}))
        return 0

    print(f"Review {rel} at:\n\n{url}")
    if not args.quiet and not _server_running(base):
        print(f"No server answered at {base}; start one with: scholia serve", file=sys.stderr)

    return 0


def _server_running(base_url: str) -> bool:
    try:
        return httpx.get(f"{base_url}/health", timeout=1.0).status_code < 500
    except httpx.HTTPError:
        return False


def cmd_watch(args: argparse.Namespace, rt: Any) -> int:
    """Watch the project and print changed Markdown files."""
    from .watch import watch_project

    debounce_ms = getattr(args, "debounce_ms", None) or rt.config.watch.debounce_ms

    return watch_project(
        root=Path(rt.project_directory),
        debounce_ms=debounce_ms,
        quiet=args.quiet,
        json_output=args.json,
    )


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start the comments API server."""
    # Determine token
    token_arg = getattr(args, "token", "none")
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        token = None
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=args.cors, watch=args.watch)

    host = args.host or rt.config.server.host
    port = args.port or rt.config.server.port

    print(f"Starting server on http://{host}:{port}")
    if token:
        print(f"Authorization required: Bearer {token}")

    uvicorn.run(app, host=host, port=port, log_level=rt.config.logging.level.lower())

    return 0


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="scholia", description="Review comments anchored to rendered Markdown"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/scholia.toml, project/scholia.toml)",
    )
    parser.add_argument(
        "--project",
        type=Path,
        default=None,
        help="Path to project directory (overrides config)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to SQLite comments DB (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides config, e.g. DEBUG)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # render command
    parser_render = subparsers.add_parser("render", help="Print annotated HTML for a file")
    parser_render.add_argument("file", help="Markdown file, relative to the project")

    # address command
    parser_address = subparsers.add_parser("address", help="List open comment threads of a file")
    parser_address.add_argument("file", help="Markdown file, relative to the project")

    # reply command
    parser_reply = subparsers.add_parser("reply", help="Reply to a root comment")
    parser_reply.add_argument("--comment-id", type=int, required=True, help="Root comment to reply to")
    parser_reply.add_argument("--message", required=True, help="Reply text")
    parser_reply.add_argument(
        "--author", choices=["agent", "user"], default="agent",
        help="Who is replying (default: agent)"
    )

    # resolve command
    parser_resolve = subparsers.add_parser(
        "resolve", help="Resolve all open comments of a file, or one thread"
    )
    parser_resolve.add_argument("file", nargs="?", help="Markdown file, relative to the project")
    parser_resolve.add_argument(
        "--comment-id", type=int, default=None,
        help="Resolve only this comment's thread"
    )

    # register command
    subparsers.add_parser("register", help="Register the project directory")

    # review command
    parser_review = subparsers.add_parser(
        "review", help="Register the project and print the review URL of a file"
    )
    parser_review.add_argument("file", help="Markdown file, relative to the project")
    parser_review.add_argument("--host", default=None, help="Server host (default: from config)")
    parser_review.add_argument("--port", type=int, default=None, help="Server port (default: from config)")

    # watch command
    parser_watch = subparsers.add_parser("watch", help="Watch the project for Markdown changes")
    parser_watch.add_argument(
        "--debounce-ms", type=int, default=None,
        help="Debounce period in milliseconds (default: from config, 150)"
    )

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start the comments API server")
    parser_serve.add_argument(
        "--host", default=None,
        help="Host to bind to (default: from config, 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=None,
        help="Port to bind to (default: from config, 4779)"
    )
    parser_serve.add_argument(
        "--token", default="none",
        help="Bearer token (auto|<string>|none, default: none)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )
    parser_serve.add_argument(
        "--watch", action="store_true",
        help="Push file_updated events when Markdown files change"
    )

    args = parser.parse_args()

    rt = build_runtime(
        project_path=args.project,
        db_path=args.db,
        config_path=args.config,
    )

    level = (args.log_level or rt.config.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "render": cmd_render,
        "address": cmd_address,
        "reply": cmd_reply,
        "resolve": cmd_resolve,
        "register": cmd_register,
        "review": cmd_review,
        "watch": cmd_watch,
        "serve": cmd_serve,
    }

    handler = handlers.get(args.cmd)

    if handler:
        try:
            exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
