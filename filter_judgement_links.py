# /// script
# requires-python = "==3.12.*"
# dependencies = [
#   "humanize"
# ]
# ///

"""
Filters the grouped listing links down to actual judgement links (`/doc/<id>/`) and
writes the flat link index that `scrape_judgements.py` walks by position.

The flat list comes out in year, page, on-page order every time, so re-running this
on the same input never shifts an index the scraper's progress marker refers to.

Usage:
  uv run ./filter_judgement_links.py
  uv run ./filter_judgement_links.py --input ./supreme_court_links.json --flat-output ./all_judgement_links_flat.json
"""

import argparse
import logging
from pathlib import Path

import humanize

from json_store import GroupedLinksStore, LinkIndexStore, write_json_atomic
from scraper_settings import FILTERED_LINKS_FILE, FLAT_LINKS_FILE, GROUPED_LINKS_FILE, configure_logging
from work_items import DocumentItem, flatten_link_index

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Filter grouped links into the flat judgement link index.')
    parser.add_argument('--input', default=GROUPED_LINKS_FILE, help=f'Grouped links (default: {GROUPED_LINKS_FILE}).')
    parser.add_argument(
        '--filtered-output', default=FILTERED_LINKS_FILE,
        help=f'Filtered grouped links (default: {FILTERED_LINKS_FILE}).',
    )
    parser.add_argument('--flat-output', default=FLAT_LINKS_FILE, help=f'Flat link index (default: {FLAT_LINKS_FILE}).')
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Reads grouped links, writes filtered grouped links and the flat index.
    Called by: dundermain
    """
    configure_logging()
    args: argparse.Namespace = build_parser().parse_args(argv)
    input_path: Path = Path(args.input).expanduser().resolve()
    if not input_path.exists():
        log.error(f'grouped links file not found, ``{input_path}``')
        return 1
    try:
        grouped: dict[str, dict[str, list[str]]] = GroupedLinksStore(input_path).load()
    except ValueError as exc:
        log.error(f'cannot read grouped links: {exc}')
        return 1

    items: list[DocumentItem]
    filtered, items = flatten_link_index(grouped)
    write_json_atomic(Path(args.filtered_output).expanduser().resolve(), filtered)
    LinkIndexStore(Path(args.flat_output).expanduser().resolve()).save(items)

    print('Filtering complete!')
    print(f'Total judgement links: {humanize.intcomma(len(items))}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
