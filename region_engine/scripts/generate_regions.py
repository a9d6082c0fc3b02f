"""Generate Community or Area documents from exported zipcode assignments.

Reads ``<data>/<source>/mkp-community-zipcodes/*.json``, groups the zipcodes by
community (or area) label, merges their polygons, and writes one document
per group to ``<data>/<target>/<communities|areas>/<code>.json``.

Generate areas first so communities can reference them by id.

Usage:
    generate-areas [.env] [--source-host HOST] [--target-host HOST] [--dry-run] [--pretty]
    generate-communities [.env] [--source-host HOST] [--target-host HOST] [--dry-run] [--pretty]
"""

import argparse
import sys

from ..aggregation import RegionAggregator, group_assignments, load_area_lookup, load_assignments
from ..config import ConfigurationError, Settings, configure_logging, load_settings
from ..schemas import RegionKind, RunSummary
from ..store import ZIPCODE_ASSIGNMENTS, DocumentStore, MissingDirectoryError
from .common import add_env_file_argument, print_summary


def run(settings: Settings, kind: RegionKind, dry_run: bool = False, pretty: bool = False) -> int:
    source = settings.require_source_host()
    target = settings.require_target_host()
    print(f"Source data from: {source}")
    print(f"Target output to: {target}")
    if dry_run:
        print("⚠️  DRY RUN MODE: No files will be written\n")

    source_store = DocumentStore(settings.data_dir, source)
    target_store = DocumentStore(settings.data_dir, target)

    area_lookup = {}
    if kind is RegionKind.COMMUNITY:
        area_lookup = load_area_lookup(target_store)
        print(f"Loaded {len(area_lookup)} areas for lookup")

    print(f"Reading zipcode files from: {source_store.directory(ZIPCODE_ASSIGNMENTS)}")
    batch = load_assignments(source_store, ZIPCODE_ASSIGNMENTS)
    if not batch.assignments and not batch.errors:
        print(f"No JSON files found in {source_store.directory(ZIPCODE_ASSIGNMENTS)}")
        return 0
    print(f"Found {len(batch.assignments) + len(batch.errors)} zipcode files")

    grouped = group_assignments(batch.assignments, kind)
    print(f"\nFound {len(grouped.groups)} unique {kind.value}")

    summary = RunSummary(total=len(grouped.groups), skipped=len(grouped.unlabeled))
    for error in batch.errors:
        print(f"  ✗ Error parsing {error.path.name}: {error.message}")
        summary.record_error(f"{error.path.name}: {error.message}")

    aggregator = RegionAggregator(kind, area_lookup)
    labels_by_code: dict[str, str] = {}

    for label, members in grouped.groups.items():
        print(f"\nProcessing: {label} ({len(members)} zipcodes)")
        region = aggregator.build(label, members)
        record = region.record

        if kind is RegionKind.COMMUNITY and region.area_label:
            if region.area_resolved:
                print(f"  Area: {region.area_label} ({record.area_id})")
            else:
                print(f"  ⚠ Warning: Area '{region.area_label}' not found in generated areas")

        if region.fold is None:
            print("  ⚠ No zipcodes with geo_polygon data")
        else:
            for zipcode, reason in region.fold.skipped:
                print(f"  ⚠ Warning: Failed to union polygon {zipcode}: {reason}")
            print(f"  ✓ Merged {region.fold.merged} polygon(s)")

        if record.code in labels_by_code:
            message = f"Code '{record.code}' for {label} already used by {labels_by_code[record.code]}"
            print(f"  ✗ {message}")
            summary.record_error(message)
            continue
        labels_by_code[record.code] = label

        path = target_store.path_for(kind.value, record.code)
        if dry_run:
            print(f"  [DRY RUN] Would create: {path.name}")
            summary.created += 1
            continue
        try:
            target_store.write(path, record.model_dump(mode="json"), pretty)
        except OSError as e:
            print(f"  ✗ Error writing {path.name}: {e}")
            summary.record_error(f"{path.name}: {e}")
            continue
        print(f"  ✓ Created: {path.name}")
        summary.created += 1

    print_summary(summary, kind.value, dry_run)
    if not dry_run:
        print(f"\nOutput directory: {target_store.directory(kind.value)}")
    return summary.exit_code


def build_parser(kind: RegionKind) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Generate {kind.value} from community zipcode exports"
    )
    add_env_file_argument(parser)
    parser.add_argument("--source-host", help="Namespace to read zipcode exports from")
    parser.add_argument("--target-host", help="Namespace to write generated documents to")
    parser.add_argument("--dry-run", action="store_true", help="Print actions without writing files")
    parser.add_argument("--pretty", action="store_true", help="Write indented JSON")
    return parser


def main(argv: list[str] | None = None, kind: RegionKind = RegionKind.COMMUNITY) -> int:
    args = build_parser(kind).parse_args(argv)
    try:
        settings = load_settings(args.env_file, source_host=args.source_host, target_host=args.target_host)
        configure_logging(settings)
        return run(settings, kind, dry_run=args.dry_run, pretty=args.pretty)
    except (ConfigurationError, MissingDirectoryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main_communities() -> int:
    return main(kind=RegionKind.COMMUNITY)


def main_areas() -> int:
    return main(kind=RegionKind.AREA)


if __name__ == "__main__":
    sys.exit(main_communities())
