# =============================================================================
# fileready/cli/manage.py - Operator CLI
# =============================================================================
#
# Maintenance commands for a running fileready deployment. Services are
# assembled from Settings (environment / .env) exactly as the worker does,
# so the CLI sees the same file store and search index.
#
# The job queue is in-memory, so `retry` drains it before exiting rather
# than leaving jobs behind in a queue that dies with the process.  The
# per-user hourly manual retry limit is likewise per process: it bounds
# the user-facing retry path, not operator runs of this command.
#
# Supported subcommands:
#
#   cleanup    - run one cleanup sweep (or all of them), optionally dry-run
#   readiness  - show a file's readiness and per-stage status
#   retry      - manually restart a permanently failed file and run the
#                restarted stages in-process until it is ready or failed
#   chunk      - chunk a local text file and print statistics
#
# Usage examples:
#   python -m fileready.cli cleanup all --dry-run
#   python -m fileready.cli cleanup failed-files --days 14
#   python -m fileready.cli readiness --user u1 --file f1
#   python -m fileready.cli retry --user u1 --file f1 --scope embedding_only
#   python -m fileready.cli chunk --file notes.txt --max-tokens 256
# =============================================================================

"""Operator CLI for cleanup, readiness inspection, manual retry and chunking.

Usage::

    python -m fileready.cli cleanup all --dry-run
    python -m fileready.cli readiness --user u1 --file f1
    python -m fileready.cli chunk --file notes.txt
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError

from fileready.config.processing import ChunkingConfig
from fileready.config.settings import Settings
from fileready.main import ServiceContainer, build_services
from fileready.models.file import ReadinessState
from fileready.models.retry import ManualRetryScope
from fileready.services.ingestion.chunker import RecursiveTextChunker
from fileready.utils.errors import FileReadyError
from fileready.utils.logging import configure_logging

_CLEANUP_TARGETS = ("failed-files", "orphaned-chunks", "orphaned-search-docs", "all")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_cleanup(args: argparse.Namespace, services: ServiceContainer) -> int:
    """Run the requested cleanup sweep and print what it did."""
    cleaner = services.cleaner
    mode = " (dry run)" if args.dry_run else ""
    print(f"Cleanup: {args.target}{mode}")

    if args.target == "all":
        summary = await services.cleanup_job.run(dry_run=args.dry_run)
        if summary.failed_files is not None:
            print(f"  Failed files cleaned:     {summary.failed_files.files_processed}")
        print(f"  Orphaned chunks:          {summary.orphaned_chunks_deleted}")
        print(f"  Orphaned search docs:     {summary.orphaned_search_docs_deleted}")
        for error in summary.errors:
            print(f"  Error: {error}", file=sys.stderr)
        return 1 if summary.errors else 0

    if args.target == "failed-files":
        result = await cleaner.cleanup_old_failed_files(
            older_than_days=args.days, dry_run=args.dry_run
        )
        print(f"  Files processed:      {result.files_processed}")
        print(f"  Chunks deleted:       {result.total_chunks_deleted}")
        print(f"  Search docs deleted:  {result.total_search_docs_deleted}")
        for failure in result.failures:
            print(f"  Failed: {failure.file_id}: {failure.error}", file=sys.stderr)
        return 1 if result.failures else 0

    if args.target == "orphaned-chunks":
        count = await cleaner.cleanup_orphaned_chunks(
            older_than_days=args.days, dry_run=args.dry_run
        )
        print(f"  Orphaned chunks: {count}")
        return 0

    if args.dry_run:
        print("  Search-index sweep has no dry-run mode; skipped.")
        return 0
    count = await cleaner.cleanup_orphaned_search_docs()
    print(f"  Orphaned search docs deleted: {count}")
    return 0


async def _handle_readiness(args: argparse.Namespace, services: ServiceContainer) -> int:
    """Print a file's derived readiness and both stage statuses."""
    record = await services.store.get_file(args.user, args.file)
    if record is None:
        print(f"File {args.file} not found for user {args.user}.", file=sys.stderr)
        return 1

    print(f"{record.name} ({record.file_id})")
    print(f"  Readiness:   {record.readiness_state.value}")
    print(
        f"  Processing:  {record.processing_status.value}"
        f" (retries: {record.processing_retry_count})"
    )
    print(
        f"  Embedding:   {record.embedding_status.value}"
        f" (retries: {record.embedding_retry_count})"
    )
    last_error = record.last_embedding_error or record.last_processing_error
    if last_error:
        print(f"  Last error:  {last_error}")
    return 0


async def _handle_retry(args: argparse.Namespace, services: ServiceContainer) -> int:
    """Manually restart a failed file and run the restarted stages to completion.

    The job queue lives in this process, so the queued work is drained here,
    scheduled retries included, before the command exits.
    """
    scope = ManualRetryScope(args.scope)
    result = await services.retry_manager.execute_manual_retry(args.user, args.file, scope)
    if not result.success:
        print(f"Retry refused: {result.error}", file=sys.stderr)
        return 1
    if result.scope != scope:
        print(f"No stored chunks for {args.file}; running a {result.scope.value} retry")

    jobs_run = await services.job_runner.drain(ignore_delay=True)
    record = await services.store.get_file(args.user, args.file)
    if record is None:
        print(f"File {args.file} was deleted during the retry.", file=sys.stderr)
        return 1

    state = record.readiness_state
    print(f"Retry finished for {args.file}: {state.value} ({jobs_run} jobs run)")
    if state != ReadinessState.READY:
        last_error = record.last_embedding_error or record.last_processing_error
        if last_error:
            print(f"  Last error:  {last_error}", file=sys.stderr)
        return 1
    return 0


def _handle_chunk(args: argparse.Namespace) -> int:
    """Chunk a local file and print per-chunk token estimates."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: {path} is not a file", file=sys.stderr)
        return 1

    try:
        budget = ChunkingConfig(max_tokens=args.max_tokens, overlap_tokens=args.overlap)
    except ValidationError as exc:
        print(f"Error: invalid chunk budget: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 2

    text = path.read_text(encoding="utf-8", errors="replace")
    chunks = RecursiveTextChunker(budget).chunk(text)

    print(f"Chunked {path.name}: {len(chunks)} chunks")
    if not chunks:
        return 0
    tokens = [c.token_count for c in chunks]
    print(f"  Total tokens:  {sum(tokens)}")
    print(f"  Min / max:     {min(tokens)} / {max(tokens)}")
    if args.verbose:
        print()
        for c in chunks:
            preview = c.text[:60].replace("\n", " ")
            print(
                f"  #{c.chunk_index:<4} {c.token_count:>5} tok "
                f"[{c.start_offset}:{c.end_offset}] {preview}"
            )
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m fileready.cli",
        description="Maintain fileready file processing state.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- cleanup --
    cleanup_parser = subparsers.add_parser("cleanup", help="Run cleanup sweeps")
    cleanup_parser.add_argument("target", choices=_CLEANUP_TARGETS, help="Which sweep to run")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default: configured value)",
    )
    cleanup_parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Report what would be deleted without deleting",
    )

    # -- readiness --
    readiness_parser = subparsers.add_parser("readiness", help="Show a file's readiness")
    readiness_parser.add_argument("--user", required=True, help="Owning user id")
    readiness_parser.add_argument("--file", required=True, help="File id")

    # -- retry --
    retry_parser = subparsers.add_parser("retry", help="Manually retry a failed file")
    retry_parser.add_argument("--user", required=True, help="Owning user id")
    retry_parser.add_argument("--file", required=True, help="File id")
    retry_parser.add_argument(
        "--scope",
        choices=[s.value for s in ManualRetryScope],
        default=ManualRetryScope.FULL.value,
        help="full re-runs both stages; embedding_only keeps the chunks",
    )

    # -- chunk --
    chunk_parser = subparsers.add_parser("chunk", help="Chunk a local text file")
    chunk_parser.add_argument("--file", required=True, help="Path to a UTF-8 text file")
    chunk_parser.add_argument("--max-tokens", type=int, default=512, dest="max_tokens")
    chunk_parser.add_argument("--overlap", type=int, default=50, help="Overlap in tokens")
    chunk_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Print one line per chunk"
    )

    return parser


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    services = build_services(app_settings)
    await services.initialize()

    if args.command == "cleanup":
        return await _handle_cleanup(args, services)
    if args.command == "readiness":
        return await _handle_readiness(args, services)
    return await _handle_retry(args, services)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    ``chunk`` runs standalone; the other commands build the full service
    container from Settings first.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "chunk":
        sys.exit(_handle_chunk(args))

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except FileReadyError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
