import unittest
from pathlib import Path
from unittest import mock

import httpx

from http_transport import HttpTransport, ListingFetcher, build_client, listing_url

TEST_DATA: Path = Path(__file__).parent / 'test_data'


def client_for(handler) -> httpx.Client:
    return build_client(transport=httpx.MockTransport(handler))


class TestHttpTransport(unittest.TestCase):
    """
    Tests HttpTransport.fetch() against an in-memory httpx transport.
    """

    def test_ok_response(self) -> None:
        with client_for(lambda request: httpx.Response(200, text='<html>ok</html>')) as client:
            result = HttpTransport(client).fetch('https://indiankanoon.org/doc/1/')
        self.assertEqual((result.status, result.body), (200, '<html>ok</html>'))

    def test_client_error_is_returned_not_raised(self) -> None:
        """
        Checks that a 404 comes back as a status for the caller to judge.
        """
        with client_for(lambda request: httpx.Response(404, text='gone')) as client:
            result = HttpTransport(client).fetch('https://indiankanoon.org/doc/1/')
        self.assertEqual(result.status, 404)

    def test_server_errors_are_retried_then_raised(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(503)

        with mock.patch('http_transport.sleep') as fake_sleep, client_for(handler) as client:
            with self.assertRaises(httpx.HTTPStatusError):
                HttpTransport(client, max_tries=3).fetch('https://indiankanoon.org/doc/1/')
        self.assertEqual(len(calls), 3)
        self.assertEqual(fake_sleep.call_count, 2)

    def test_retry_recovers_after_network_error(self) -> None:
        """
        Checks that a connect error followed by a 200 yields the 200.
        """
        outcomes: list = [httpx.ConnectError('boom'), httpx.Response(200, text='fine')]

        def handler(request: httpx.Request) -> httpx.Response:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        with mock.patch('http_transport.sleep'), client_for(handler) as client:
            result = HttpTransport(client, max_tries=2).fetch('https://indiankanoon.org/doc/1/')
        self.assertEqual(result.body, 'fine')


class TestListing(unittest.TestCase):
    """
    Tests listing URL building and ListingFetcher.
    """

    def test_listing_url(self) -> None:
        first: httpx.URL = httpx.URL(listing_url(2010, 0))
        later: httpx.URL = httpx.URL(listing_url(2010, 2))
        self.assertEqual(first.params.get('formInput'), 'doctypes:supremecourt year:2010')
        self.assertNotIn('pagenum', first.params)
        self.assertEqual(later.params.get('pagenum'), '2')

    def test_fetch_listing_page(self) -> None:
        html: str = (TEST_DATA / 'listing_page.html').read_text(encoding='utf-8')
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, text=html)

        with client_for(handler) as client:
            page = ListingFetcher(HttpTransport(client), base_url='https://indiankanoon.org').fetch_listing_page(2010, 1)
        self.assertEqual(len(page.links), 3)
        self.assertTrue(page.has_more_content)
        self.assertEqual(seen[0].params.get('pagenum'), '1')

    def test_failed_listing_fetch_is_an_empty_page(self) -> None:
        """
        Checks that transport failures end the year instead of raising.
        """

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('unreachable')

        with mock.patch('http_transport.sleep'), client_for(handler) as client:
            page = ListingFetcher(HttpTransport(client, max_tries=1)).fetch_listing_page(2010, 0)
        self.assertEqual(page.links, [])
        self.assertFalse(page.has_more_content)

    def test_non_200_listing_is_an_empty_page(self) -> None:
        with client_for(lambda request: httpx.Response(403, text='blocked')) as client:
            page = ListingFetcher(HttpTransport(client)).fetch_listing_page(2010, 0)
        self.assertEqual(page.links, [])


if __name__ == '__main__':
    unittest.main()
