"""
JSON persistence for the scraper.

Every write goes to a sibling `.tmp` file which is then renamed over the target,
so a reader (or a resumed run) sees either the old document or the new one.
Write failures (disk full, permissions) are not caught here; callers decide.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from work_items import DocumentItem

log = logging.getLogger(__name__)

STATUS_IDLE = 'idle'
STATUS_PROCESSING = 'processing'
STATUS_COMPLETED = 'completed'


class LinkIndexError(ValueError):
    """
    Raised when the flat link index can't be parsed into document items.
    """


class ProgressFileError(ValueError):
    """
    Raised when a progress marker file exists but isn't a usable marker.
    """


def dump_json(data: object) -> str:
    """
    Serializes with stable formatting so an unchanged document always produces the same bytes.
    """
    return json.dumps(data, ensure_ascii=False, indent=2)


def write_json_atomic(path: Path, data: object) -> None:
    """
    Writes `data` to `path` via write-to-temp-then-rename.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    text: str = dump_json(data)  # serialize first; a TypeError must not leave a truncated tmp behind
    tmp_path: Path = path.with_name(f'{path.name}.tmp')
    with tmp_path.open('w', encoding='utf-8') as fh:
        fh.write(text)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp_path, path)
    log.debug(f'wrote ``{path}``')


def read_json(path: Path) -> object:
    with path.open('r', encoding='utf-8') as fh:
        return json.load(fh)


@dataclass
class ProgressMarker:
    """
    Durable cursor for a crawl phase.

    `index` is the global position in the flat document list of the last item whose
    result was committed (-1 = none), so a resumed run starts at `index + 1`.
    """

    year: int | None = None
    page: int | None = None
    index: int = -1
    total_processed: int = 0
    status: str = STATUS_IDLE

    def to_dict(self) -> dict[str, object]:
        return {
            'year': self.year,
            'page': self.page,
            'index': self.index,
            'totalProcessed': self.total_processed,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> 'ProgressMarker':
        year: object = data.get('year')
        page: object = data.get('page')
        return cls(
            year=int(year) if year is not None else None,  # type: ignore[arg-type]
            page=int(page) if page is not None else None,  # type: ignore[arg-type]
            index=int(data.get('index', -1)),  # type: ignore[arg-type]
            total_processed=int(data.get('totalProcessed', 0)),  # type: ignore[arg-type]
            status=str(data.get('status', STATUS_IDLE)),
        )


class ProgressStore:
    """
    Loads and saves a single progress marker file.
    """

    def __init__(self, path: Path) -> None:
        self.path: Path = path

    def load(self) -> ProgressMarker | None:
        """
        Returns the persisted marker, or None when no marker file exists.
        """
        if not self.path.exists():
            return None
        try:
            data: object = read_json(self.path)
        except json.JSONDecodeError as exc:
            raise ProgressFileError(f'progress file ``{self.path}`` is not valid JSON: {exc}') from exc
        if not isinstance(data, dict):
            raise ProgressFileError(f'progress file ``{self.path}`` does not hold an object')
        try:
            return ProgressMarker.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise ProgressFileError(f'progress file ``{self.path}`` has a bad field: {exc}') from exc

    def save(self, marker: ProgressMarker) -> None:
        write_json_atomic(self.path, marker.to_dict())


class PartitionStore:
    """
    Stores one JSON list of records per partition key (a year) as `<dir>/<key>.json`.
    """

    def __init__(self, directory: Path) -> None:
        self.directory: Path = directory

    def path_for(self, key: str) -> Path:
        return self.directory / f'{key}.json'

    def load(self, key: str) -> list[dict[str, object]]:
        path: Path = self.path_for(key)
        if not path.exists():
            return []
        data: object = read_json(path)
        if not isinstance(data, list):
            raise ValueError(f'partition file ``{path}`` does not hold a list')
        return data

    def save(self, key: str, records: list[dict[str, object]]) -> None:
        write_json_atomic(self.path_for(key), records)

    def keys(self) -> list[str]:
        """
        Returns the partition keys that have a file, in sorted order.
        """
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob('*.json') if p.is_file())

    def load_all(self) -> dict[str, list[dict[str, object]]]:
        return {key: self.load(key) for key in self.keys()}


class LinkIndexStore:
    """
    The flat link index: a JSON list of `{year, page, link, docId}` entries.
    """

    def __init__(self, path: Path) -> None:
        self.path: Path = path

    def load(self) -> list[DocumentItem]:
        """
        Loads document items; raises FileNotFoundError or LinkIndexError.
        """
        try:
            data: object = read_json(self.path)
        except json.JSONDecodeError as exc:
            raise LinkIndexError(f'link index ``{self.path}`` is not valid JSON: {exc}') from exc
        if not isinstance(data, list):
            raise LinkIndexError(f'link index ``{self.path}`` does not hold a list')
        items: list[DocumentItem] = []
        for position, entry in enumerate(data):
            try:
                items.append(DocumentItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                raise LinkIndexError(f'link index entry {position} is malformed: {exc!r}') from exc
        return items

    def save(self, items: list[DocumentItem]) -> None:
        write_json_atomic(self.path, [item.to_dict() for item in items])


class GroupedLinksStore:
    """
    Links grouped by year then 1-based page number: `{year: {page: [url, ...]}}`.
    """

    def __init__(self, path: Path) -> None:
        self.path: Path = path

    def load(self) -> dict[str, dict[str, list[str]]]:
        if not self.path.exists():
            return {}
        data: object = read_json(self.path)
        if not isinstance(data, dict):
            raise ValueError(f'grouped links file ``{self.path}`` does not hold an object')
        return data  # type: ignore[return-value]

    def save(self, grouped: dict[str, dict[str, list[str]]]) -> None:
        write_json_atomic(self.path, grouped)
