"""
The checkpointed crawl loop.

`CheckpointedDriver.run()` walks the flat document list strictly in order, one
request at a time, buffering records per partition (a year) and flushing the
active partition and then the progress marker every `flush_every` items, on
every partition switch, at the end of the loop, and when a stop is requested.

Resume works off a single integer cursor: the marker's `index` is the last item
whose outcome was committed, so a resumed run starts at `index + 1`. Each record
carries the `index` of the item it came from; when a partition is loaded, records
with an index at or after the start index are dropped, so a partition written
ahead of its marker can't produce duplicates.
"""

import dataclasses
import logging
import signal
import threading
from collections.abc import Callable
from types import FrameType

import httpx
import humanize
from tqdm import tqdm

from json_store import STATUS_COMPLETED, STATUS_PROCESSING, PartitionStore, ProgressMarker, ProgressStore
from judgement_extractor import extract_judgement
from scraper_settings import DEFAULT_DELAY_SECONDS, DEFAULT_FLUSH_EVERY
from work_items import DocumentItem, year_partition_key

log = logging.getLogger(__name__)


def resume_index(persisted_marker: ProgressMarker | None, resume_requested: bool) -> int:
    """
    Returns where a run should start: just past the committed marker when resuming, else 0.
    """
    if resume_requested and persisted_marker is not None:
        return max(0, persisted_marker.index + 1)
    return 0


class CheckpointedDriver:
    """
    Owns the active partition buffer and the progress marker for one run.
    - Fetches via an injected transport (`fetch(url) -> FetchResult`, raising httpx errors).
    - Extracts via an injected `extractor(html, url) -> record`.
    - Treats transport failures and non-200 responses as "no record"; the item still counts as done.
    - Lets persistence errors propagate after one best-effort flush.
    """

    def __init__(
        self,
        transport,
        partitions: PartitionStore,
        progress_store: ProgressStore,
        *,
        extractor: Callable[[str, str], dict[str, object]] = extract_judgement,
        partition_key: Callable[[DocumentItem], str] = year_partition_key,
        flush_every: int = DEFAULT_FLUSH_EVERY,
        delay_s: float = DEFAULT_DELAY_SECONDS,
        show_progress: bool = True,
    ) -> None:
        self.transport = transport
        self.partitions: PartitionStore = partitions
        self.progress_store: ProgressStore = progress_store
        self.extractor = extractor
        self.partition_key = partition_key
        self.flush_every: int = max(1, flush_every)
        self.delay_s: float = delay_s
        self.show_progress: bool = show_progress

        self.marker: ProgressMarker = ProgressMarker()
        self.active_key: str | None = None
        self.buffer: list[dict[str, object]] = []
        self._dirty: bool = False
        self._start_index: int = 0
        self._stop = threading.Event()

    ## state -----------------------------------------------------------

    def resume_from(self, persisted_marker: ProgressMarker | None, resume_requested: bool) -> int:
        """
        Adopts the persisted marker's counters when resuming and returns the start index.
        """
        start: int = resume_index(persisted_marker, resume_requested)
        if resume_requested and persisted_marker is not None:
            self.marker = dataclasses.replace(persisted_marker)
            log.info(f'resuming at index {start}')
        else:
            self.marker = ProgressMarker()
        return start

    def request_stop(self) -> None:
        """
        Asks the loop to stop before starting the next item; an in-flight fetch is left to finish.
        """
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    ## persistence -----------------------------------------------------

    def flush_partition(self) -> None:
        if self.active_key is None:
            return
        self.partitions.save(self.active_key, self.buffer)
        self._dirty = False

    def flush(self) -> None:
        """
        Writes the active partition, then the marker; the marker never claims work the partition lacks.
        """
        self.flush_partition()
        self.progress_store.save(self.marker)
        log.debug(f'flushed partition {self.active_key} ({len(self.buffer)} records) at index {self.marker.index}')

    def _switch_partition(self, key: str) -> None:
        if key == self.active_key:
            return
        if self.active_key is not None and (self.buffer or self._dirty):
            self.flush()
        records: list[dict[str, object]] = self.partitions.load(key)
        kept: list[dict[str, object]] = [r for r in records if not self._is_uncommitted(r)]
        self._dirty = len(kept) != len(records)
        if self._dirty:
            log.info(f'partition {key}: dropped {len(records) - len(kept)} record(s) past the committed index')
        self.active_key = key
        self.buffer = kept
        log.info(f'switched to partition {key} ({len(kept)} existing records)')

    def _is_uncommitted(self, record: dict[str, object]) -> bool:
        index: object = record.get('index')
        return isinstance(index, int) and index >= self._start_index

    ## per-item work ---------------------------------------------------

    def process_one(self, item: DocumentItem) -> dict[str, object] | None:
        """
        Fetches and extracts one judgement; returns None when the fetch failed.

        A page without the judgement container still yields a record (with empty texts).
        """
        try:
            result = self.transport.fetch(item.url)
        except httpx.HTTPError as exc:
            log.warning(f'fetch failed for doc {item.doc_id} ``{item.url}``: {exc!r}')
            return None
        if result.status != 200:
            log.warning(f'doc {item.doc_id} returned status {result.status}')
            return None
        record: dict[str, object] = self.extractor(result.body, item.url)
        record['year'] = item.year
        record['page'] = item.page
        record['docId'] = item.doc_id
        if not record.get('texts'):
            log.info(f'doc {item.doc_id} had no judgement text')
        return record

    ## main loop -------------------------------------------------------

    def run(self, items: list[DocumentItem], start_index: int = 0, *, limit: int | None = None) -> ProgressMarker:
        """
        Processes `items[start_index:]` in order and returns the final marker.

        Stops early (status stays `processing`) on a stop request or after `limit` items.
        """
        total: int = len(items)
        self._start_index = start_index
        self.marker.status = STATUS_PROCESSING
        attempted: int = 0
        next_index: int = start_index
        log.info(f'starting from index {start_index} of {humanize.intcomma(total)}')
        try:
            for i in tqdm(
                range(start_index, total), total=total, initial=min(start_index, total),
                desc='Scraping judgements', disable=not self.show_progress,
            ):
                if self.stop_requested:
                    log.info(f'stop requested; halting before index {i}')
                    break
                if limit is not None and attempted >= limit:
                    log.info(f'limit of {limit} item(s) reached; halting before index {i}')
                    break
                item: DocumentItem = items[i]
                self._switch_partition(self.partition_key(item))

                record: dict[str, object] | None = self.process_one(item)
                if record is not None:
                    record['index'] = i
                    self.buffer.append(record)
                    self._dirty = True
                # the record is buffered before the marker moves past it
                self.marker = dataclasses.replace(
                    self.marker,
                    year=item.year,
                    page=item.page,
                    index=i,
                    total_processed=self.marker.total_processed + (1 if record is not None else 0),
                )
                attempted += 1
                next_index = i + 1

                if (i + 1) % self.flush_every == 0:
                    self.flush()
                if i < total - 1 and not self.stop_requested:
                    self._stop.wait(self.delay_s)  # returns early when a stop is requested

            if next_index >= total:
                self.marker.status = STATUS_COMPLETED
            self.flush()
        except BaseException:
            log.exception(f'run aborted after index {self.marker.index}; attempting a final flush')
            self._best_effort_flush()
            raise
        log.info(
            f'done at index {self.marker.index}; {humanize.intcomma(self.marker.total_processed)} judgement(s) '
            f'recorded in total, status {self.marker.status}'
        )
        return self.marker

    def _best_effort_flush(self) -> None:
        try:
            self.flush()
        except Exception:
            log.exception('final flush failed; buffered records may be lost')


class InterruptGuard:
    """
    Routes SIGINT/SIGTERM to `owner.request_stop()` for the duration of a `with` block.

    `owner` is anything with `request_stop()` and a `stop_requested` property (the driver,
    or the link collector).

    The first signal asks for a graceful stop (finish the item, flush, exit); a second
    one raises KeyboardInterrupt, which still goes through the owner's final flush.
    Previous handlers are restored on exit.
    """

    def __init__(self, owner, signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> None:
        self.owner = owner
        self.signals: tuple[int, ...] = signals
        self.previous: dict[int, object] = {}

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        if self.owner.stop_requested:
            raise KeyboardInterrupt
        log.info(f'received signal {signum}; saving progress after the current item')
        self.owner.request_stop()

    def __enter__(self) -> 'InterruptGuard':
        if threading.current_thread() is not threading.main_thread():
            log.debug('not on the main thread; signal handlers not installed')
            return self
        for signum in self.signals:
            self.previous[signum] = signal.signal(signum, self._handle)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for signum, handler in self.previous.items():
            signal.signal(signum, handler)  # type: ignore[arg-type]
        self.previous.clear()
