"""
Work items for both crawl phases.

- `EnumerationItem` is one listing page (year + 0-based pagenum) to scan for links.
- `DocumentItem` is one judgement to fetch; the flattened list of these is what
  the checkpointed driver walks by integer index, so `flatten_link_index()` must
  return the same order every time it's given the same grouped links.
"""

import itertools
import re
from collections.abc import Iterator
from dataclasses import dataclass

DOC_ID_PATTERN = re.compile(r'/doc/(\d+)/')


@dataclass(frozen=True)
class EnumerationItem:
    year: int
    page: int  # 0-based `pagenum` on the listing site

    @property
    def page_number(self) -> int:
        """
        The 1-based page number used as the key in the grouped links file.
        """
        return self.page + 1


@dataclass(frozen=True)
class DocumentItem:
    year: int
    page: int
    url: str
    doc_id: str

    def to_dict(self) -> dict[str, object]:
        return {'year': self.year, 'page': self.page, 'link': self.url, 'docId': self.doc_id}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> 'DocumentItem':
        """
        Builds an item from a flat link-index entry; raises KeyError/ValueError on a bad entry.
        """
        return cls(
            year=int(data['year']),  # type: ignore[arg-type]
            page=int(data['page']),  # type: ignore[arg-type]
            url=str(data['link']),
            doc_id=str(data['docId']),
        )


def listing_years(start_year: int, end_year: int, resume_from: EnumerationItem | None = None) -> Iterator[int]:
    """
    Yields the years still to enumerate, inclusive of both ends.
    """
    first: int = start_year
    if resume_from is not None and start_year <= resume_from.year <= end_year:
        first = resume_from.year
    yield from range(first, end_year + 1)


def listing_pages(year: int, start_page: int = 0) -> Iterator[EnumerationItem]:
    """
    Lazily yields listing pages for a year; the caller stops when a page has no more content.
    """
    for page in itertools.count(start_page):
        yield EnumerationItem(year=year, page=page)


def doc_id_from_url(url: str) -> str | None:
    """
    Returns the numeric document id for a proper judgement link, else None.

    Fragment links (`/docfragment/`) point into search snippets, not documents.
    """
    if '/doc/' not in url or '/docfragment/' in url:
        return None
    match = DOC_ID_PATTERN.search(url)
    return match.group(1) if match else None


def _numeric_keys(mapping: dict) -> list:
    """
    Returns the digit-only keys sorted numerically; anything else is not a year or page.
    """
    return sorted((k for k in mapping if str(k).isdigit()), key=lambda k: int(k))


def flatten_link_index(
    grouped: dict[str, dict[str, list[str]]],
) -> tuple[dict[str, dict[str, list[str]]], list[DocumentItem]]:
    """
    Filters grouped `{year: {page: [url, ...]}}` links down to judgement links.

    Returns (filtered_grouped, flat_items). Years and pages are visited in ascending
    numeric order and links keep their on-page order, so the flat list is stable.
    Pages left with no judgement links are dropped from `filtered_grouped`.
    """
    filtered: dict[str, dict[str, list[str]]] = {}
    flat: list[DocumentItem] = []
    for year in _numeric_keys(grouped):
        filtered[str(year)] = {}
        pages: dict[str, list[str]] = grouped[year] or {}
        for page in _numeric_keys(pages):
            kept: list[str] = []
            for link in pages[page] or []:
                doc_id: str | None = doc_id_from_url(link)
                if doc_id is None:
                    continue
                kept.append(link)
                flat.append(DocumentItem(year=int(year), page=int(page), url=link, doc_id=doc_id))
            if kept:
                filtered[str(year)][str(page)] = kept
    return filtered, flat


def year_partition_key(item: DocumentItem) -> str:
    """
    Partition key for the document phase: one partition per year.
    """
    return str(item.year)
