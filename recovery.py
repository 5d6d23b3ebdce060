"""
Checks and repairs run between scraper runs.

- `verify_consistency()` compares the progress marker against what the partitions hold
  and reports an under-count; it never repairs anything.
- `clean_incomplete_tail()` drops the record at the resume boundary when it has no
  texts and moves the marker back one item, so a resumed run fetches it again.
- `partition_statistics()` summarizes the partition files for display.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

import humanize

from json_store import STATUS_PROCESSING, PartitionStore, ProgressMarker, ProgressStore
from work_items import DocumentItem, year_partition_key

log = logging.getLogger(__name__)

SAMPLE_TITLE_CHARS = 80


@dataclass
class ConsistencyReport:
    checked: bool
    expected_count: int = 0
    actual_count: int = 0

    @property
    def under_count(self) -> bool:
        return self.checked and self.actual_count < self.expected_count


@dataclass
class PartitionStats:
    key: str
    record_count: int
    size_bytes: int
    sample_title: str
    sample_sections: int


def count_records(partitions: dict[str, list[dict[str, object]]]) -> int:
    return sum(len(records) for records in partitions.values())


def verify_consistency(
    marker: ProgressMarker | None, partitions: dict[str, list[dict[str, object]]], total_links: int
) -> ConsistencyReport:
    """
    Flags when fewer records exist than the marker says were processed.

    Only checks when the marker points inside the link list. Fetch failures also
    leave gaps, so an under-count is a warning to investigate, not proof of loss.
    """
    if marker is None or not (0 <= marker.index < total_links):
        log.info('no progress marker inside the link list; nothing to compare')
        return ConsistencyReport(checked=False)
    report = ConsistencyReport(checked=True, expected_count=marker.index + 1, actual_count=count_records(partitions))
    log.info(f'expected to have processed {report.expected_count} link(s); found {report.actual_count} record(s)')
    if report.under_count:
        log.warning(
            f'inconsistency: {report.expected_count - report.actual_count} record(s) missing; '
            'some judgements may not have been saved'
        )
    return report


def clean_incomplete_tail(
    store: PartitionStore,
    marker: ProgressMarker | None,
    items: list[DocumentItem],
    partition_key: Callable[[DocumentItem], str] = year_partition_key,
    progress_store: ProgressStore | None = None,
) -> dict[str, object] | None:
    """
    Removes the record for the marker's item if it is its partition's last record and has empty texts.

    The marker is moved back one item in place (and saved first, when `progress_store`
    is given), so the removed item is fetched again on resume. If the process dies
    between the two writes, the record is left past the marker and a resumed run
    drops it when loading the partition.

    Returns the removed record, or None when nothing was removed.
    """
    if marker is None or not (0 <= marker.index < len(items)):
        return None
    item: DocumentItem = items[marker.index]
    key: str = partition_key(item)
    records: list[dict[str, object]] = store.load(key)
    if not records:
        return None
    last: dict[str, object] = records[-1]
    if str(last.get('docId')) != item.doc_id or last.get('texts'):
        return None
    rewind_marker(marker, items)
    if progress_store is not None:
        progress_store.save(marker)
    records.pop()
    store.save(key, records)
    log.info(f'removed empty tail record for doc {item.doc_id} from partition {key}; it will be fetched again')
    return last


def rewind_marker(marker: ProgressMarker, items: list[DocumentItem]) -> None:
    """
    Moves `marker` back by one item, un-counting that item's record.
    """
    marker.index -= 1
    marker.total_processed = max(0, marker.total_processed - 1)
    previous: DocumentItem | None = items[marker.index] if marker.index >= 0 else None
    marker.year = previous.year if previous is not None else None
    marker.page = previous.page if previous is not None else None
    marker.status = STATUS_PROCESSING


def partition_statistics(store: PartitionStore) -> list[PartitionStats]:
    stats: list[PartitionStats] = []
    for key in store.keys():
        records: list[dict[str, object]] = store.load(key)
        sample: dict[str, object] = records[0] if records else {}
        stats.append(
            PartitionStats(
                key=key,
                record_count=len(records),
                size_bytes=store.path_for(key).stat().st_size,
                sample_title=str(sample.get('title') or '')[:SAMPLE_TITLE_CHARS],
                sample_sections=len(sample.get('texts') or []),  # type: ignore[arg-type]
            )
        )
    return stats


def format_statistics(stats: list[PartitionStats]) -> str:
    lines: list[str] = ['=== Current Data Statistics ===', f'Years with data: {len(stats)}']
    for s in stats:
        lines.append('')
        lines.append(f'{s.key}: {humanize.intcomma(s.record_count)} judgements ({humanize.naturalsize(s.size_bytes)})')
        if s.record_count:
            lines.append(f'  Sample: "{s.sample_title}..."')
            lines.append(f'  Text sections: {s.sample_sections}')
    return '\n'.join(lines)
