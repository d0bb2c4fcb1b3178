"""Command-line interface for PrepDeck."""
from __future__ import annotations

import argparse
import logging
import socket
import sys
from collections.abc import Callable
from pathlib import Path

from . import __version__
from .config import settings
from .errors import PrepDeckError
from .models.review import Grade, ReviewSession
from .services.records import export_file, import_file
from .services.repository import ContentRepository
from .services.scheduler import ReviewPolicy, Scheduler
from .services.session_builder import build_session


_GRADE_KEYS = {"f": Grade.FAIL, "h": Grade.HARD, "g": Grade.GOOD, "e": Grade.EASY}


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="prepdeck", description="Interview prep deck with spaced review")
    p.add_argument("--data-dir", type=Path, default=None, help="Directory holding the deck database")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    p.add_argument("--version", action="version", version=f"prepdeck {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add an entry")
    add.add_argument("--id", required=True)
    add.add_argument("--category", required=True)
    add.add_argument("--prompt", required=True)
    add.add_argument("--answer", required=True)
    add.add_argument("--tag", action="append", default=[], help="Repeat for several tags")
    add.add_argument("--difficulty", type=int, default=1)
    add.add_argument("--source", default="")

    review = sub.add_parser("review", help="Grade one entry")
    review.add_argument("id")
    review.add_argument("grade", help="fail, hard, good, easy or 0-3")

    lst = sub.add_parser("list", help="List entries")
    lst.add_argument("--category", default=None)
    lst.add_argument("--tag", action="append", default=[])

    for name, help_text in (("due", "Show entries due now"), ("drill", "Review due entries interactively")):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("--category", default=None)
        sp.add_argument("--limit", type=int, default=settings.session_limit)

    exp = sub.add_parser("export", help="Write all entries with review state as JSON Lines")
    exp.add_argument("path", type=Path)

    imp = sub.add_parser("import", help="Add entries from a JSON Lines or JSON array file")
    imp.add_argument("path", type=Path)

    sub.add_parser("stats", help="Show deck statistics")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=0, help="0 picks a free port")

    return p.parse_args(argv)


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


def run_drill(
    repo: ContentRepository,
    scheduler: Scheduler,
    session: ReviewSession,
    *,
    ask: Callable[[str], str] = input,
    inform: Callable[[str], None] = print,
) -> int:
    """Walk through a session: show prompt, reveal answer, read a grade. Returns entries graded."""
    graded = 0
    for n, item in enumerate(session.items, start=1):
        entry = item.entry
        inform(f"\n[{n}/{session.total}] ({entry.category}) {entry.prompt}")
        if ask("Enter to reveal, q to quit: ").strip().lower() == "q":
            break
        inform(entry.answer)
        while True:
            raw = ask("Grade [f]ail [h]ard [g]ood [e]asy: ").strip().lower()
            if raw == "q":
                inform(f"Graded {graded} of {session.total}.")
                return graded
            try:
                grade = _GRADE_KEYS.get(raw) or Grade.parse(raw)
            except PrepDeckError as exc:
                inform(str(exc))
                continue
            break
        result = scheduler.grade(repo, entry.id, grade)
        inform(f"Next review in {result.due_in_days} day(s).")
        graded += 1
    inform(f"Graded {graded} of {session.total}.")
    return graded


def _dispatch(args: argparse.Namespace) -> int:
    data_dir = args.data_dir or settings.data_dir

    if args.command == "serve":
        import uvicorn

        from . import create_app

        port = args.port or find_free_port()
        print(f"PORT={port}", flush=True)
        uvicorn.run(create_app(data_dir), host=args.host, port=port, log_level=settings.log_level.lower())
        return 0

    policy = ReviewPolicy.from_settings(settings)
    repo = ContentRepository.open(data_dir, initial_ease=policy.initial_ease)
    scheduler = Scheduler(policy)

    if args.command == "add":
        entry = repo.add(
            {
                "id": args.id,
                "category": args.category,
                "prompt": args.prompt,
                "answer": args.answer,
                "tags": args.tag,
                "difficulty": args.difficulty,
                "source": args.source,
            }
        )
        print(f"Added {entry.id}")
    elif args.command == "review":
        result = scheduler.grade(repo, args.id, args.grade)
        print(
            f"{result.id}: {result.grade.value}, next review {result.next_due.date().isoformat()} "
            f"(in {result.due_in_days} day(s), ease {result.ease_factor:.2f})"
        )
    elif args.command == "list":
        for e in repo.list(category=args.category, tags=args.tag):
            print(f"{e.id}\t{e.category}\t{e.difficulty}\t{','.join(e.tags)}\t{e.prompt}")
    elif args.command == "due":
        session = build_session(repo, category=args.category, limit=args.limit)
        if not session.items:
            print("Nothing due.")
        for item in session.items:
            print(f"{item.entry.id}\t{item.entry.category}\t{item.overdue_days:.1f}d overdue\t{item.entry.prompt}")
    elif args.command == "drill":
        session = build_session(repo, category=args.category, limit=args.limit)
        if not session.items:
            print("Nothing due.")
            return 0
        run_drill(repo, scheduler, session)
    elif args.command == "export":
        count = export_file(repo, args.path)
        print(f"Exported {count} entries to {args.path}")
    elif args.command == "import":
        added = import_file(repo, args.path, policy=policy)
        print(f"Imported {len(added)} entries from {args.path}")
    elif args.command == "stats":
        stats = repo.stats()
        print(f"Entries: {stats.total_entries}  Due: {stats.due_now}  Reviewed: {stats.reviewed}")
        for c in stats.per_category:
            print(f"  {c.category}: {c.total} total, {c.due} due")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return _dispatch(args)
    except PrepDeckError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
