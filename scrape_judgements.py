# /// script
# requires-python = "==3.12.*"
# dependencies = [
#   "beautifulsoup4",
#   "httpx",
#   "humanize",
#   "tqdm"
# ]
# ///

"""
Fetches every judgement in the flat link index and saves them as one JSON file per year.
It's server-friendly, in that it makes one request at a time with a fixed delay,
  and saves progress every few items (and on Ctrl-C) so a run can be resumed with `--resume`.

Usage:
  uv run ./scrape_judgements.py --resume
  uv run ./scrape_judgements.py --links-file ./all_judgement_links_flat.json --output-dir ./judgements --limit 10

Args:
  --resume (optional) -- continue after the last saved index; without it the run starts at index 0
  --links-file, --output-dir, --progress-file (optional) -- paths; defaults in scraper_settings.py
  --delay, --flush-every, --timeout (optional) -- run knobs
  --limit (optional) -- stop after this many items (useful for testing)
  --no-progress-bar (optional)
"""

import argparse
import logging
from pathlib import Path

import humanize

from checkpointed_driver import CheckpointedDriver, InterruptGuard
from http_transport import HttpTransport, build_client
from json_store import LinkIndexStore, PartitionStore, ProgressMarker, ProgressStore
from recovery import clean_incomplete_tail
from scraper_settings import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_FLUSH_EVERY,
    DEFAULT_MAX_TRIES,
    DEFAULT_TIMEOUT_SECONDS,
    FLAT_LINKS_FILE,
    OUTPUT_DIR,
    PROGRESS_FILE,
    configure_logging,
)
from work_items import DocumentItem

log = logging.getLogger(__name__)


class CLI:
    """
    Manages command-line parsing for the script entrypoint.
    - Exposes a parse helper to support testing with custom argv.
    """

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description='Scrape judgements listed in the flat link index.')
        parser.add_argument('--resume', action='store_true', help='Continue after the last saved progress index.')
        parser.add_argument('--links-file', default=FLAT_LINKS_FILE, help=f'Flat link index (default: {FLAT_LINKS_FILE}).')
        parser.add_argument('--output-dir', default=OUTPUT_DIR, help=f'Directory for per-year JSON (default: {OUTPUT_DIR}).')
        parser.add_argument('--progress-file', default=PROGRESS_FILE, help=f'Progress marker (default: {PROGRESS_FILE}).')
        parser.add_argument(
            '--delay', type=float, default=DEFAULT_DELAY_SECONDS, metavar='SECONDS',
            help=f'Pause between judgements (default: {DEFAULT_DELAY_SECONDS}).',
        )
        parser.add_argument(
            '--flush-every', type=int, default=DEFAULT_FLUSH_EVERY, metavar='INTEGER',
            help=f'Save partition and progress every N items (default: {DEFAULT_FLUSH_EVERY}).',
        )
        parser.add_argument(
            '--timeout', type=float, default=DEFAULT_TIMEOUT_SECONDS, metavar='SECONDS',
            help=f'Read timeout per request (default: {DEFAULT_TIMEOUT_SECONDS}).',
        )
        parser.add_argument(
            '--limit', type=int, default=None, metavar='INTEGER',
            help='Optional. Stop after this many items have been attempted (useful for testing).',
        )
        parser.add_argument('--no-progress-bar', action='store_true', help='Hide the tqdm progress bar.')
        return parser

    @staticmethod
    def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
        return CLI.build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Loads the link index, resumes if asked, runs the checkpointed driver, and reports.

    Flow:
    - Parses CLI args.
    - Loads the flat link index; a missing or unreadable index is fatal (exit 1).
    - With --resume, loads the progress marker; an empty record at the resume boundary is dropped and its item queued again.
    - Runs the driver inside an interrupt guard, so Ctrl-C saves before exiting (exit 0).
    - Any other error is logged and exits 1, after the driver's best-effort flush.

    Called by: dundermain
    """
    configure_logging()
    args: argparse.Namespace = CLI.parse_args(argv)
    links_path: Path = Path(args.links_file).expanduser().resolve()
    output_dir: Path = Path(args.output_dir).expanduser().resolve()
    progress_store = ProgressStore(Path(args.progress_file).expanduser().resolve())
    partitions = PartitionStore(output_dir)

    ## load inputs (fatal on failure) -------------------------------
    try:
        items: list[DocumentItem] = LinkIndexStore(links_path).load()
        log.info(f'loaded {humanize.intcomma(len(items))} links from ``{links_path}``')
        persisted: ProgressMarker | None = progress_store.load() if args.resume else None
        if args.resume:
            clean_incomplete_tail(partitions, persisted, items, progress_store=progress_store)
    except (OSError, ValueError) as exc:
        log.error(f'cannot start: {exc}')
        return 1

    ## run --------------------------------------------------------------
    with build_client(args.timeout) as client:
        driver = CheckpointedDriver(
            HttpTransport(client, max_tries=DEFAULT_MAX_TRIES),
            partitions,
            progress_store,
            flush_every=args.flush_every,
            delay_s=args.delay,
            show_progress=not args.no_progress_bar,
        )
        start: int = driver.resume_from(persisted, args.resume)
        try:
            with InterruptGuard(driver):
                marker: ProgressMarker = driver.run(items, start, limit=args.limit)
        except KeyboardInterrupt:
            log.info('interrupted; progress saved up to the last completed item')
            return 0
        except Exception:
            log.exception('scrape aborted')
            return 1

    ## wrap up output -----------------------------------------------
    print(f'Done. Status: {marker.status}; last index: {marker.index} of {len(items) - 1}.')
    print(f'Judgements recorded (all runs): {humanize.intcomma(marker.total_processed)}')
    print(f'Output dir:    {output_dir}')
    print(f'Progress file: {progress_store.path}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
