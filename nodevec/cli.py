from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable

from .config import Config
from .errors import NodeUpdateError, NodevecError
from .service import NodeIndex

logger = logging.getLogger(__name__)

SHELL_PROMPT = "nodevec> "
EXIT_WORDS = {"exit", "quit", "/exit", "/quit"}


def _positive_int(value: str) -> int:
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("value must be a positive integer")
    return ivalue


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m nodevec",
        description="Embed knowledge-base nodes and search them by similarity.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config TOML (defaults to $NODEVEC_CONFIG, then ./config.toml).",
    )
    subparsers = parser.add_subparsers(
        dest="command", metavar="<command>", required=True
    )

    update_cmd = subparsers.add_parser("update", help="Re-embed one node.")
    update_cmd.add_argument("node_id", help="Id of the node to re-embed.")

    subparsers.add_parser("update-all", help="Re-embed every node of the configured source.")

    clear_cmd = subparsers.add_parser(
        "clear-db", help="Delete every stored embedding and re-create an empty store."
    )
    clear_cmd.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt.",
    )

    search_cmd = subparsers.add_parser("search", help="List spans most similar to TEXT.")
    search_cmd.add_argument("text", nargs="+", help="Query text.")
    search_cmd.add_argument(
        "-k",
        type=_positive_int,
        default=None,
        help="Maximum number of results (overrides index.search_k).",
    )

    subparsers.add_parser("status", help="Show store location, backend and record counts.")
    subparsers.add_parser(
        "reconcile", help="Remove registry rows without vectors and vectors without rows."
    )
    subparsers.add_parser(
        "shell", help="Interactive prompt accepting /update, /search, /clear_db, ... commands."
    )

    return parser


def _confirm(prompt: str, read: Callable[[str], str] = input) -> bool:
    try:
        answer = read(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


async def _run_command(
    index: NodeIndex, args: argparse.Namespace, cfg: Config, read: Callable[[str], str]
) -> int:
    if args.command == "update":
        try:
            report = await index.update_embeddings(args.node_id)
        except NodeUpdateError as exc:
            print(
                f"{args.node_id}: {len(exc.report.record_ids)} span(s) stored, "
                f"{len(exc.errors)} failed"
            )
            for err in exc.errors:
                print(f"  - {err}")
            return 1
        print(f"{args.node_id}: {len(report.record_ids)} span(s) stored")
        return 0

    if args.command == "update-all":
        bulk = await index.update_all()
        print(f"{len(bulk.updated)} node(s) updated, {len(bulk.failed)} failed")
        for node_id, err in sorted(bulk.failed.items()):
            print(f"  - {node_id}: {err}")
        return 0 if bulk.ok else 1

    if args.command == "clear-db":
        confirmed = args.force or _confirm(
            "Delete every stored embedding? [y/N] ", read
        )
        if not await index.clear_db(confirm=confirmed):
            print("Aborted.")
            return 1
        print("Embedding store cleared.")
        return 0

    if args.command == "search":
        results = await index.search(" ".join(args.text), k=args.k)
        if not results:
            print("No matches.")
        for rank, hit in enumerate(results, start=1):
            print(f"{rank:>3}. {hit.distance:.4f}  {hit.node.id} [{hit.span.start}:{hit.span.end}]")
        return 0

    if args.command == "status":
        for key, value in (await index.status()).items():
            print(f"{key}: {value}")
        return 0

    if args.command == "reconcile":
        report = await index.reconcile()
        print(
            f"removed {report.dangling_rows} dangling row(s), "
            f"{report.orphan_vectors} orphan vector(s)"
        )
        return 0

    if args.command == "shell":
        await run_shell(index, cfg.index.MAINTENANCE_INTERVAL, read)
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def run_shell(
    index: NodeIndex, maintenance_interval: float, read: Callable[[str], str] = input
) -> None:
    """Read command lines until EOF or ``exit``, dispatching each one."""
    from .commands import dispatch

    async def _reply(text: str) -> None:
        print(text)

    if maintenance_interval > 0:
        await index.start_maintenance(maintenance_interval)
    try:
        while True:
            try:
                line = await asyncio.to_thread(read, SHELL_PROMPT)
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line.lower() in EXIT_WORDS:
                break
            if not await dispatch(index, line, _reply):
                await _reply("Unknown command. Try /help.")
    finally:
        await index.stop_maintenance()


async def _main(args: argparse.Namespace, read: Callable[[str], str]) -> int:
    cfg = Config.load(args.config)
    async with NodeIndex.from_config(cfg) as index:
        return await _run_command(index, args, cfg, read)


def main(argv: list[str] | None = None, read: Callable[[str], str] = input) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return asyncio.run(_main(args, read))
    except NodevecError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2


__all__ = ["main", "build_parser", "run_shell"]
