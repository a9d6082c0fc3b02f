"""Interactively define the geo_definition of communities or areas.

For every region document in ``<data>/<host>/<communities|areas>`` the
operator may add signed states, counties and zipcodes, each checked against
the Census reference datasets.

Usage:
    define-communities [.env] [--host HOST] [--community NAME] [--pretty]
    define-areas [.env] [--host HOST] [--area NAME] [--pretty]
"""

import argparse
import sys

import httpx

from ..config import ConfigurationError, Settings, configure_logging, load_settings
from ..editor import ConsoleLineSource, LineSource, RegionEditor
from ..reference import ReferenceDataError, load_reference_index
from ..rules import RuleValidator
from ..schemas import RegionKind, RunSummary
from ..store import AREAS, DocumentStore, MissingDirectoryError
from .common import add_env_file_argument, print_summary, report_document_errors


def load_area_names(store: DocumentStore) -> dict[str, tuple[str, str]]:
    """Area id -> (name, code), for showing a community's area."""
    batch = store.read_all(AREAS, required=False)
    return {
        str(doc.data["id"]): (doc.data.get("name", ""), doc.data.get("code", ""))
        for doc in batch.documents
        if doc.data.get("id")
    }


def run(
    settings: Settings,
    kind: RegionKind,
    name_filter: str | None,
    lines: LineSource,
    pretty: bool = False,
    client: httpx.Client | None = None,
) -> int:
    hostname = settings.require_hostname()
    print(f"Processing {kind.value} for hostname: {hostname}\n")

    index = load_reference_index(settings, client)
    store = DocumentStore(settings.data_dir, hostname)
    batch = store.read_all(
        kind.value,
        hint=f"Please ensure {kind.singular} JSON files exist in this directory.",
    )

    documents = batch.documents
    if name_filter:
        needle = name_filter.lower()
        documents = [d for d in documents if needle in str(d.data.get("name", "")).lower()]

    summary = RunSummary()
    report_document_errors(batch, summary)

    if not documents:
        print(f"No {kind.value} found matching: {name_filter}" if name_filter else f"No {kind.value} found")
        return summary.exit_code

    print(f"Found {len(documents)} {kind.singular if len(documents) == 1 else kind.value}")

    area_names = load_area_names(store) if kind is RegionKind.COMMUNITY else {}
    editor = RegionEditor(
        RuleValidator(index), store, kind, lines, pretty=pretty, area_names=area_names
    )
    result = editor.run(documents)
    result.errors += summary.errors
    result.error_messages = summary.error_messages + result.error_messages

    print_summary(result, kind.value)
    if not result.errors:
        print("\n✅ Complete!")
    return result.exit_code


def build_parser(kind: RegionKind) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Define geo_definition rules for {kind.value}"
    )
    add_env_file_argument(parser)
    parser.add_argument("--host", help="Dataset namespace (overrides HOSTNAME)")
    parser.add_argument(f"--{kind.singular}", dest="name_filter", metavar="NAME",
                        help=f"Only edit {kind.value} whose name contains NAME")
    parser.add_argument("--pretty", action="store_true", help="Write indented JSON")
    return parser


def main(argv: list[str] | None = None, kind: RegionKind = RegionKind.COMMUNITY,
         lines: LineSource | None = None) -> int:
    args = build_parser(kind).parse_args(argv)
    try:
        settings = load_settings(args.env_file, host=args.host)
        configure_logging(settings)
        return run(settings, kind, args.name_filter, lines or ConsoleLineSource(), pretty=args.pretty)
    except (ConfigurationError, MissingDirectoryError, ReferenceDataError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main_communities() -> int:
    return main(kind=RegionKind.COMMUNITY)


def main_areas() -> int:
    return main(kind=RegionKind.AREA)


if __name__ == "__main__":
    sys.exit(main_communities())
