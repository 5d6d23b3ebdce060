"""
HTTP access for both crawl phases.

`HttpTransport.fetch()` is the only place a request is made. It retries
server errors and network errors a few times with backoff, then raises the
last `httpx` exception; callers treat that as "no result for this item".
"""

import logging
from dataclasses import dataclass

import httpx

from judgement_extractor import ListingPage, parse_listing_page
from scraper_settings import (
    ACCEPT,
    BASE_URL,
    DEFAULT_MAX_TRIES,
    DEFAULT_TIMEOUT_SECONDS,
    DOCTYPE,
    MAX_REDIRECTS,
    SEARCH_URL,
    USER_AGENT,
    sleep,
)

log = logging.getLogger(__name__)


@dataclass
class FetchResult:
    status: int
    body: str


def build_client(timeout_s: float = DEFAULT_TIMEOUT_SECONDS, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """
    Creates the shared httpx client (headers, timeouts, redirect policy).
    """
    headers: dict[str, str] = {'user-agent': USER_AGENT, 'accept': ACCEPT}
    timeout: httpx.Timeout = httpx.Timeout(connect=30.0, read=timeout_s, write=30.0, pool=30.0)
    limits: httpx.Limits = httpx.Limits(max_keepalive_connections=2, max_connections=2)
    return httpx.Client(
        headers=headers,
        timeout=timeout,
        limits=limits,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        transport=transport,
    )


class HttpTransport:
    """
    Performs single GETs with a small retry budget.
    - Treats 5xx responses and network errors as retryable.
    - Returns any other response as-is (status + text); the caller decides what 404 means.
    - Raises the last encountered exception after exhausting the retry budget.
    """

    def __init__(self, client: httpx.Client, *, max_tries: int = DEFAULT_MAX_TRIES) -> None:
        self.client: httpx.Client = client
        self.max_tries: int = max(1, max_tries)

    def fetch(self, url: str) -> FetchResult:
        last_exc: Exception | None = None
        for attempt in range(1, self.max_tries + 1):
            try:
                resp: httpx.Response = self.client.get(url)
                if resp.status_code >= 500:
                    raise httpx.HTTPStatusError(f'server error {resp.status_code}', request=resp.request, response=resp)
                return FetchResult(status=resp.status_code, body=resp.text)
            except httpx.HTTPError as exc:
                last_exc = exc
                log.debug(f'attempt {attempt}/{self.max_tries} for ``{url}`` failed: {exc!r}')
                if attempt < self.max_tries:
                    sleep(min(2**attempt, 15))
        assert last_exc is not None
        raise last_exc


def listing_url(year: int, page: int, search_url: str = SEARCH_URL, doctype: str = DOCTYPE) -> str:
    """
    Builds the search-listing URL for a year; page 0 carries no `pagenum`.
    """
    params: dict[str, str | int] = {'formInput': f'doctypes:{doctype} year:{year}'}
    if page > 0:
        params['pagenum'] = page
    return str(httpx.URL(search_url, params=params))


class ListingFetcher:
    """
    Fetches and parses one search-listing page for the link-discovery phase.
    """

    def __init__(self, transport: HttpTransport, base_url: str = BASE_URL) -> None:
        self.transport: HttpTransport = transport
        self.base_url: str = base_url

    def fetch_listing_page(self, year: int, page: int) -> ListingPage:
        """
        Returns the page's links; on any transport failure returns an empty page,
        which ends enumeration for that year.
        """
        url: str = listing_url(year, page, search_url=f'{self.base_url}/search/')
        log.debug(f'listing url, ``{url}``')
        try:
            result: FetchResult = self.transport.fetch(url)
        except httpx.HTTPError as exc:
            log.warning(f'listing fetch failed for year {year}, page {page + 1}: {exc!r}')
            return ListingPage()
        if result.status != 200:
            log.warning(f'listing page for year {year}, page {page + 1} returned status {result.status}')
            return ListingPage()
        return parse_listing_page(result.body, self.base_url)
