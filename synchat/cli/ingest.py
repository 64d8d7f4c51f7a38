# =============================================================================
# synchat/cli/ingest.py - Knowledge-Base Management CLI
# =============================================================================
#
# Operator tool for a tenant's knowledge base: ingest a page, try a query,
# purge a page, or print what is stored.
#
# Supported subcommands:
#
#   ingest - Fetch a URL (or read a saved HTML file) and store its chunks
#   search - Run a hybrid search and print the ranked chunks
#   purge  - Delete every chunk stored for one (tenant, url)
#   stats  - Chunk counts per source URL for a tenant
#
# Usage examples:
#   python -m synchat.cli ingest --tenant acme --url https://acme.example/pricing
#   python -m synchat.cli ingest --tenant acme --url https://acme.example/pricing \
#       --html-file ./pricing.html
#   python -m synchat.cli search --tenant acme --query "how much is the pro plan"
#   python -m synchat.cli purge --tenant acme --url https://acme.example/pricing --yes
#   python -m synchat.cli stats --tenant acme
# =============================================================================

"""Standalone CLI for managing a tenant's knowledge base."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections import Counter
from pathlib import Path

from synchat.config.settings import Settings

# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings) -> int:
    """Run one ingestion in the foreground and print its report."""
    from synchat.main import open_services

    html: str | None = None
    if args.html_file:
        path = Path(args.html_file)
        if not path.is_file():
            print(f"Error: file not found: {path}", file=sys.stderr)
            return 1
        html = path.read_text(encoding="utf-8", errors="replace")

    async with open_services(app_settings) as services:
        print(f"Ingesting {args.url} for tenant {args.tenant}")
        if html is None:
            result = await services.ingestion.ingest(args.tenant, args.url)
        else:
            result = await services.ingestion.ingest_html(args.tenant, args.url, html)

    if not result.ok:
        print(f"Error ({result.error_kind.value}): {result.message}", file=sys.stderr)
        return 1

    report = result.unwrap()
    print("\nIngestion complete:")
    print(f"  Previous chunks deleted: {report.deleted_previous}")
    print(f"  Chunks created:          {report.chunks_created}")
    print(f"  Chunks embedded:         {report.chunks_embedded}")
    print(f"  Chunks stored:           {report.chunks_stored}")
    print(f"  Time:                    {report.elapsed_seconds:.2f}s")
    print(f"  {report.message}")
    return 0


async def _handle_search(args: argparse.Namespace, app_settings: Settings) -> int:
    """Print the ranked results of a hybrid search."""
    from synchat.main import open_services

    async with open_services(app_settings) as services:
        result = await services.search.search(args.tenant, args.query, limit=args.limit)

    if not result.ok:
        print(f"Error ({result.error_kind.value}): {result.message}", file=sys.stderr)
        return 1

    results = result.unwrap()
    if not results:
        print("No relevant knowledge found.")
        return 0

    for rank, item in enumerate(results, start=1):
        section = item.metadata.section_path or "(no section)"
        print(
            f"{rank}. [{item.hybrid_score:.3f}] vector={item.vector_score:.3f} "
            f"lexical={item.lexical_score:.3f}  {item.metadata.source_url} :: {section}"
        )
        preview = item.text.replace("\n", " ")
        print(f"   {preview[:160]}{'...' if len(preview) > 160 else ''}")
    return 0


async def _handle_purge(args: argparse.Namespace, app_settings: Settings) -> int:
    """Delete all chunks of one (tenant, url).

    Destructive; asks for confirmation unless --yes is passed.
    """
    from synchat.main import build_knowledge_store

    store = build_knowledge_store(app_settings)
    await store.initialize()
    try:
        count = await store.count_chunks(args.tenant, args.url)
        if count == 0:
            print(f"No chunks stored for {args.url}. Nothing to purge.")
            return 0

        print(f"  Found {count} chunks for {args.url}")
        if not args.yes:
            confirm = input(f"  Delete all {count} chunks? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                print("  Aborted.")
                return 0

        deleted = await store.delete_by_tenant_and_url(args.tenant, args.url)
        print(f"\n  Deleted {deleted} chunks.")
        return 0
    finally:
        await store.close()


async def _handle_stats(args: argparse.Namespace, app_settings: Settings) -> int:
    """Display chunk counts for a tenant."""
    from synchat.main import build_knowledge_store

    store = build_knowledge_store(app_settings)
    await store.initialize()
    try:
        chunks = await store.list_chunks(args.tenant)
    finally:
        await store.close()

    by_url = Counter(chunk.metadata.source_url for chunk in chunks)
    print(f"Knowledge base for tenant {args.tenant}")
    print("=" * 40)
    print(f"  Total chunks:  {len(chunks)}")
    print(f"  Source pages:  {len(by_url)}")
    if by_url:
        print("\n  Chunks by page:")
        for url, count in sorted(by_url.items()):
            print(f"    {count:>5}  {url}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge-base CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m synchat.cli",
        description="Manage a SynChat tenant knowledge base.",
    )
    parser.add_argument("--config", help="YAML file to use instead of config/config.yaml")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Knowledge-base commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest one web page")
    ingest_parser.add_argument("--tenant", required=True, help="Tenant (client) id")
    ingest_parser.add_argument("--url", required=True, help="Page URL")
    ingest_parser.add_argument(
        "--html-file",
        dest="html_file",
        help="Use this saved HTML instead of downloading the URL",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Run a hybrid search")
    search_parser.add_argument("--tenant", required=True, help="Tenant (client) id")
    search_parser.add_argument("--query", required=True, help="Question or search text")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximum results")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", help="Delete the chunks of one page")
    purge_parser.add_argument("--tenant", required=True, help="Tenant (client) id")
    purge_parser.add_argument("--url", required=True, help="Page URL to purge")
    purge_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show knowledge-base statistics")
    stats_parser.add_argument("--tenant", required=True, help="Tenant (client) id")

    return parser


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "purge": _handle_purge,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, load settings and run the chosen subcommand.

    Returns the process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    from synchat.config.loader import load_settings
    from synchat.utils.errors import SynChatError
    from synchat.utils.logging import configure_logging

    try:
        app_settings = load_settings(args.config)
    except SynChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(app_settings.log_level, json_output=args.json_logs)

    try:
        return asyncio.run(_HANDLERS[args.command](args, app_settings))
    except SynChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
