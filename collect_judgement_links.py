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
Collects judgement links from the search listings, year by year and page by page.
Links are saved grouped as `{year: {page: [url, ...]}}` after every page, and the
  current (year, page) is saved before every request, so `--resume` picks up where a
  previous run stopped. Next step: `filter_judgement_links.py`.

Usage:
  uv run ./collect_judgement_links.py --start-year 2010 --end-year 2026
  uv run ./collect_judgement_links.py --resume

Args:
  --start-year, --end-year (optional) -- inclusive year range
  --resume (optional)
  --links-file, --progress-file (optional) -- paths
  --delay (optional) -- pause between listing pages
"""

import argparse
import logging
import threading
from pathlib import Path

import humanize

from checkpointed_driver import InterruptGuard
from http_transport import HttpTransport, ListingFetcher, build_client
from judgement_extractor import ListingPage
from json_store import STATUS_COMPLETED, STATUS_PROCESSING, GroupedLinksStore, ProgressMarker, ProgressStore
from scraper_settings import (
    DEFAULT_TIMEOUT_SECONDS,
    END_YEAR,
    GROUPED_LINKS_FILE,
    LINK_COLLECTOR_PROGRESS_FILE,
    LISTING_DELAY_SECONDS,
    START_YEAR,
    configure_logging,
)
from work_items import EnumerationItem, listing_pages, listing_years

log = logging.getLogger(__name__)


class LinkCollector:
    """
    Walks listing pages for each year until a page comes back without results.
    - Saves the enumeration marker (year, page) before each fetch.
    - Saves the grouped links after each page that yielded links.
    - Stops cleanly between pages when asked (see InterruptGuard).
    """

    def __init__(
        self,
        fetcher: ListingFetcher,
        grouped_store: GroupedLinksStore,
        progress_store: ProgressStore,
        *,
        delay_s: float = LISTING_DELAY_SECONDS,
    ) -> None:
        self.fetcher: ListingFetcher = fetcher
        self.grouped_store: GroupedLinksStore = grouped_store
        self.progress_store: ProgressStore = progress_store
        self.delay_s: float = delay_s
        self.marker: ProgressMarker = ProgressMarker()
        self._stop = threading.Event()

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(self, start_year: int, end_year: int, resume_marker: ProgressMarker | None = None) -> dict[str, dict[str, list[str]]]:
        grouped: dict[str, dict[str, list[str]]] = self.grouped_store.load()
        resume_from: EnumerationItem | None = None
        if resume_marker is not None:
            if resume_marker.status == STATUS_COMPLETED:
                log.info('link collection already completed; nothing to resume')
                return grouped
            if resume_marker.year is not None:
                resume_from = EnumerationItem(year=resume_marker.year, page=resume_marker.page or 0)
                log.info(f'resuming from year {resume_from.year}, page {resume_from.page_number}')
            self.marker.total_processed = resume_marker.total_processed
        self.marker.status = STATUS_PROCESSING

        for year in listing_years(start_year, end_year, resume_from):
            log.info(f'starting year {year}')
            year_links: dict[str, list[str]] = grouped.setdefault(str(year), {})
            start_page: int = resume_from.page if resume_from is not None and resume_from.year == year else 0
            for item in listing_pages(year, start_page):
                if self.stop_requested:
                    break
                self.marker.year = item.year
                self.marker.page = item.page
                self.progress_store.save(self.marker)

                page: ListingPage = self.fetcher.fetch_listing_page(item.year, item.page)
                log.info(f'year {year}, page {item.page_number}: found {len(page.links)} links')
                if page.links:
                    year_links[str(item.page_number)] = page.links
                    self.grouped_store.save(grouped)
                    self.marker.total_processed += 1

                self._stop.wait(self.delay_s)
                if not (page.links and page.has_more_content):
                    break
            if self.stop_requested:
                log.info(f'stop requested during year {year}')
                break
            log.info(f'completed year {year}')

        if not self.stop_requested:
            self.marker.status = STATUS_COMPLETED
        self.grouped_store.save(grouped)
        self.progress_store.save(self.marker)
        return grouped


class CLI:
    """
    Manages command-line parsing for the script entrypoint.
    """

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description='Collect judgement links from the search listings.')
        parser.add_argument('--start-year', type=int, default=START_YEAR, help=f'First year (default: {START_YEAR}).')
        parser.add_argument('--end-year', type=int, default=END_YEAR, help=f'Last year, inclusive (default: {END_YEAR}).')
        parser.add_argument('--resume', action='store_true', help='Continue from the saved (year, page).')
        parser.add_argument('--links-file', default=GROUPED_LINKS_FILE, help=f'Grouped links output (default: {GROUPED_LINKS_FILE}).')
        parser.add_argument(
            '--progress-file', default=LINK_COLLECTOR_PROGRESS_FILE,
            help=f'Progress marker (default: {LINK_COLLECTOR_PROGRESS_FILE}).',
        )
        parser.add_argument(
            '--delay', type=float, default=LISTING_DELAY_SECONDS, metavar='SECONDS',
            help=f'Pause between listing pages (default: {LISTING_DELAY_SECONDS}).',
        )
        return parser

    @staticmethod
    def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
        return CLI.build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Runs link collection over the year range, resuming if asked.
    Called by: dundermain
    """
    configure_logging()
    args: argparse.Namespace = CLI.parse_args(argv)
    grouped_store = GroupedLinksStore(Path(args.links_file).expanduser().resolve())
    progress_store = ProgressStore(Path(args.progress_file).expanduser().resolve())

    try:
        resume_marker: ProgressMarker | None = progress_store.load() if args.resume else None
    except ValueError as exc:
        log.error(f'cannot start: {exc}')
        return 1

    with build_client(DEFAULT_TIMEOUT_SECONDS) as client:
        collector = LinkCollector(
            ListingFetcher(HttpTransport(client)), grouped_store, progress_store, delay_s=args.delay
        )
        try:
            with InterruptGuard(collector):
                grouped: dict[str, dict[str, list[str]]] = collector.run(args.start_year, args.end_year, resume_marker)
        except KeyboardInterrupt:
            log.info('interrupted; progress saved')
            return 0
        except Exception:
            log.exception('link collection aborted')
            return 1

    total_links: int = sum(len(links) for pages in grouped.values() for links in pages.values())
    print(f'Done. Status: {collector.marker.status}. Links collected: {humanize.intcomma(total_links)}')
    print(f'Links file: {grouped_store.path}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
