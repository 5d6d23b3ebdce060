"""
Turns fetched HTML into records.

- `extract_judgement()` parses a judgement page into `{title, texts, url, timestamp}`.
  It never raises for malformed markup; when the judgement container is missing
  it returns the record with an empty title and no texts.
- `parse_listing_page()` pulls result links out of a search-listing page.
"""

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from scraper_settings import now_iso

log = logging.getLogger(__name__)

CONTAINER_SELECTOR = 'div.judgments'
TITLE_SELECTOR = 'h2.doc_title'
REMOVE_SELECTOR = 'div.covers, h3'
UNTITLED = 'Untitled Judgement'
DEFAULT_LABEL = 'text'
STRUCTURAL_TAGS = frozenset({'p', 'div', 'span', 'pre', 'blockquote'})
SKIPPED_TAGS = frozenset({'script', 'style'})

RESULT_LINK_SELECTOR = 'article.result a, .result a, .result_title a'
RESULT_CONTAINER_SELECTOR = 'article.result, .result, .result_title'


@dataclass
class ListingPage:
    links: list[str] = field(default_factory=list)
    has_more_content: bool = False


def _direct_text(node: Tag) -> str:
    """
    Joins the node's own text nodes (not its descendants'); comments and the like don't count.
    """
    parts: list[str] = [
        str(child)
        for child in node.children
        if isinstance(child, NavigableString) and not isinstance(child, PreformattedString)
    ]
    return ''.join(parts).strip()


def _label_for(node: Tag, inherited_label: str) -> str:
    return node.get('title') or node.get('id') or inherited_label  # type: ignore[return-value]


def extract_labeled_fragments(node: Tag, inherited_label: str = DEFAULT_LABEL) -> list[dict[str, str]]:
    """
    Walks `node` and returns its text as `{type, content}` fragments, in document order.

    The label is the node's `title` or `id` attribute, else the one passed down from its
    nearest labeled ancestor. The node's own text becomes one fragment; structural
    children (p/div/span/pre/blockquote) are walked with that label passed down, and
    any other child contributes its whole text as one fragment.
    """
    label: str = _label_for(node, inherited_label)
    fragments: list[dict[str, str]] = []

    own_text: str = _direct_text(node)
    if own_text:
        fragments.append({'type': label, 'content': own_text})

    for child in node.children:
        if not isinstance(child, Tag):
            continue
        tag: str = (child.name or '').lower()
        if tag in SKIPPED_TAGS:
            continue
        child_text: str = child.get_text().strip()
        if not child_text:
            continue
        if tag in STRUCTURAL_TAGS:
            fragments.extend(extract_labeled_fragments(child, label))
        else:
            fragments.append({'type': label, 'content': child_text})
    return fragments


def extract_judgement(html: str, url: str) -> dict[str, object]:
    """
    Parses a judgement page.
    Called by: CheckpointedDriver.process_one()
    """
    record: dict[str, object] = {
        'title': '',
        'texts': [],
        'url': url,
        'timestamp': now_iso(),
    }
    soup = BeautifulSoup(html or '', 'html.parser')
    container: Tag | None = soup.select_one(CONTAINER_SELECTOR)
    if container is None:
        log.debug(f'no judgement container at ``{url}``')
        return record

    title_el: Tag | None = container.select_one(TITLE_SELECTOR)
    title: str = title_el.get_text().strip() if title_el is not None else ''
    record['title'] = title or UNTITLED

    for unwanted in container.select(REMOVE_SELECTOR):
        unwanted.decompose()

    texts: list[dict[str, str]] = []
    for child in container.find_all(recursive=False):
        if (child.name or '').lower() in SKIPPED_TAGS:
            continue
        if child.get_text().strip():
            texts.extend(extract_labeled_fragments(child))
    record['texts'] = texts
    return record


def parse_listing_page(html: str, base_url: str) -> ListingPage:
    """
    Collects result links (made absolute) and whether the page had any result blocks at all.
    """
    soup = BeautifulSoup(html or '', 'html.parser')
    links: list[str] = []
    for anchor in soup.select(RESULT_LINK_SELECTOR):
        href = anchor.get('href')
        if not href:
            continue
        href = str(href)
        links.append(href if href.startswith('http') else f'{base_url}{href}')
    has_content: bool = bool(soup.select(RESULT_CONTAINER_SELECTOR))
    return ListingPage(links=links, has_more_content=has_content)
