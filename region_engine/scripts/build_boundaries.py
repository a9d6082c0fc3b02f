"""Compute region boundaries from their geo_definitions.

For every area (or community) with a geo_definition, union the included
states, counties and zipcodes, subtract the excluded ones, and store the
result in the document's ``geo_json`` field.

Usage:
    build-boundaries [.env] [--host HOST] [--kind areas|communities] [--name NAME] [--dry-run] [--pretty]
"""

import argparse
import sys

import httpx

from ..boundaries import BoundaryBuilder
from ..config import ConfigurationError, Settings, configure_logging, load_settings
from ..reference import ReferenceDataError, load_reference_index
from ..schemas import RegionKind, RunSummary
from ..store import DocumentStore, MissingDirectoryError
from .common import add_env_file_argument, print_summary, report_document_errors


def run(
    settings: Settings,
    kind: RegionKind = RegionKind.AREA,
    name_filter: str | None = None,
    dry_run: bool = False,
    pretty: bool = False,
    client: httpx.Client | None = None,
) -> int:
    hostname = settings.require_hostname()
    print(f"Processing {kind.value} for hostname: {hostname}")
    if name_filter:
        print(f"Filtering {kind.value}: {name_filter}")
    if dry_run:
        print("⚠️  DRY RUN MODE: No files will be modified")
    print()

    index = load_reference_index(settings, client)
    store = DocumentStore(settings.data_dir, hostname)
    batch = store.read_all(kind.value)

    documents = [d for d in batch.documents if d.data.get("geo_definition")]
    if name_filter:
        needle = name_filter.lower()
        documents = [d for d in documents if needle in str(d.data.get("name", "")).lower()]

    parse_errors = RunSummary()
    report_document_errors(batch, parse_errors)

    if not documents:
        if name_filter:
            print(f"No {kind.value} found matching: {name_filter}")
        else:
            print(f"No {kind.value} with geo_definition found")
        return parse_errors.exit_code

    print(f"Found {len(documents)} {kind.value} with geo_definition")
    summary = BoundaryBuilder(index, store, dry_run=dry_run, pretty=pretty).run(documents)
    summary.errors += parse_errors.errors
    summary.error_messages = parse_errors.error_messages + summary.error_messages

    print_summary(summary, f"{kind.value} processed", dry_run)
    return summary.exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build region boundaries from geo_definitions")
    add_env_file_argument(parser)
    parser.add_argument("--host", help="Dataset namespace (overrides HOSTNAME)")
    parser.add_argument("--kind", choices=[k.value for k in RegionKind], default=RegionKind.AREA.value,
                        help="Which region documents to process (default: areas)")
    parser.add_argument("--name", dest="name_filter", metavar="NAME",
                        help="Only process regions whose name contains NAME")
    parser.add_argument("--dry-run", action="store_true", help="Print actions without writing files")
    parser.add_argument("--pretty", action="store_true", help="Write indented JSON")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file, host=args.host)
        configure_logging(settings)
        return run(
            settings,
            RegionKind(args.kind),
            name_filter=args.name_filter,
            dry_run=args.dry_run,
            pretty=args.pretty,
        )
    except (ConfigurationError, MissingDirectoryError, ReferenceDataError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
