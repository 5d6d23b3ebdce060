# /// script
# requires-python = "==3.12.*"
# dependencies = [
#   "humanize"
# ]
# ///

"""
Compares the scraper's progress marker with what the per-year files actually hold,
and prints per-year statistics.

An under-count is reported as a warning only; it is never repaired automatically.
With `--clean-tail`, an empty record left at the resume boundary is removed and the
marker moved back one item, so the next `--resume` fetches it again.

Usage:
  uv run ./verify_and_recover.py
  uv run ./verify_and_recover.py --clean-tail
"""

import argparse
import logging
from pathlib import Path

from json_store import LinkIndexStore, PartitionStore, ProgressMarker, ProgressStore
from recovery import (
    ConsistencyReport,
    clean_incomplete_tail,
    format_statistics,
    partition_statistics,
    verify_consistency,
)
from scraper_settings import FLAT_LINKS_FILE, OUTPUT_DIR, PROGRESS_FILE, configure_logging
from work_items import DocumentItem

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Verify scraped judgements against the progress marker.')
    parser.add_argument('--links-file', default=FLAT_LINKS_FILE, help=f'Flat link index (default: {FLAT_LINKS_FILE}).')
    parser.add_argument('--output-dir', default=OUTPUT_DIR, help=f'Per-year JSON directory (default: {OUTPUT_DIR}).')
    parser.add_argument('--progress-file', default=PROGRESS_FILE, help=f'Progress marker (default: {PROGRESS_FILE}).')
    parser.add_argument(
        '--clean-tail', action='store_true',
        help='Remove the record at the resume boundary if it has no texts.',
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Loads marker, links and partitions; reports consistency and statistics.
    Called by: dundermain
    """
    configure_logging()
    args: argparse.Namespace = build_parser().parse_args(argv)
    partitions = PartitionStore(Path(args.output_dir).expanduser().resolve())
    links_path: Path = Path(args.links_file).expanduser().resolve()
    progress_store = ProgressStore(Path(args.progress_file).expanduser().resolve())

    try:
        marker: ProgressMarker | None = progress_store.load()
        items: list[DocumentItem] = LinkIndexStore(links_path).load() if links_path.exists() else []
    except ValueError as exc:
        log.error(f'cannot verify: {exc}')
        return 1
    if marker is None:
        log.info('no progress file')
    if not items:
        log.info('no links file')

    try:
        if args.clean_tail:
            removed: dict[str, object] | None = clean_incomplete_tail(partitions, marker, items, progress_store=progress_store)
            print(f'Tail record removed: doc {removed.get("docId")} (fetched again on --resume)' if removed else 'Tail record kept.')
        loaded: dict[str, list[dict[str, object]]] = partitions.load_all()
    except ValueError as exc:
        log.error(f'cannot read partitions: {exc}')
        return 1
    report: ConsistencyReport = verify_consistency(marker, loaded, len(items))
    if report.checked:
        print(f'Expected to have processed: {report.expected_count} links')
        print(f'Actual judgements in data:  {report.actual_count}')
        if report.under_count:
            print('Inconsistency detected! Some judgements might be missing.')
            print('Run the scraper again with --resume to continue from the last good position.')
        else:
            print('Data appears consistent')
    print()
    print(format_statistics(partition_statistics(partitions)))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
