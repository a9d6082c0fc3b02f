"""Argument and reporting helpers shared by the region commands."""

import argparse

from ..schemas import RunSummary
from ..store import DocumentBatch


def add_env_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("env_file", nargs="?", default=".env",
                        help="Env file with HOSTNAME and related settings (default: .env)")


def report_document_errors(batch: DocumentBatch, summary: RunSummary) -> None:
    for error in batch.errors:
        print(f"  ✗ Error parsing {error.path.name}: {error.message}")
        summary.record_error(f"{error.path.name}: {error.message}")


def print_summary(summary: RunSummary, title: str, dry_run: bool = False) -> None:
    print(f"\n{'=' * 60}")
    print("📊 Summary:")
    print(f"  Total {title}: {summary.total}")
    if summary.created:
        print(f"  ✓ Created: {summary.created}")
    if summary.updated:
        print(f"  ✓ Updated: {summary.updated}")
    print(f"  ⊘ Skipped: {summary.skipped}")
    if summary.errors:
        print(f"  ✗ Errors: {summary.errors}")
    if dry_run:
        print("\n⚠️  This was a DRY RUN. Run without --dry-run to write files.")
