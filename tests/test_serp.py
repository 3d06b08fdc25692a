"""
Tests for the SERP stage and the DataForSEO client.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests

from article_pipeline.clients.dataforseo import DataForSEOClient
from article_pipeline.errors import DataForSEOError
from article_pipeline.serp import fetch_serp_results, parse_organic_results
from tests.factories import make_product, make_state

ORGANIC_ITEMS = [
    {"type": "featured_snippet", "url": "https://snippet.example.com", "title": "Snippet"},
    {"type": "organic", "rank_absolute": 2, "url": "https://a.example.com", "title": "A", "description": "About A"},
    {"type": "organic", "rank_absolute": 3, "url": "", "title": "No URL"},
    {"type": "organic", "rank_absolute": 4, "url": "https://b.example.com", "title": "B"},
    {"type": "organic", "rank_absolute": 5, "url": "https://c.example.com", "title": "C"},
    {"type": "organic", "rank_absolute": 6, "url": "https://d.example.com", "title": "D"},
]


class TestParseOrganicResults(unittest.TestCase):

    def test_keeps_top_three_organic_with_url_and_title(self):
        results = parse_organic_results(ORGANIC_ITEMS)
        self.assertEqual([r.url for r in results],
                         ["https://a.example.com", "https://b.example.com", "https://c.example.com"])
        self.assertEqual(results[0].position, 2)
        self.assertEqual(results[0].description, "About A")

    def test_position_defaults_to_order(self):
        results = parse_organic_results([{"type": "organic", "url": "https://a.example.com", "title": "A"}])
        self.assertEqual(results[0].position, 1)
        self.assertIsNone(results[0].html)

    def test_empty(self):
        self.assertEqual(parse_organic_results([]), [])


class TestFetchSerpResults(unittest.TestCase):
    """The SERP stage never aborts the pipeline."""

    def setUp(self):
        self.client = MagicMock(spec=DataForSEOClient)

    def test_success_uses_product_locale(self):
        self.client.search.return_value = ORGANIC_ITEMS
        state = make_state(product=make_product(country="DE", language="de"))

        result = fetch_serp_results(state, self.client)

        self.assertFalse(result.degraded)
        self.assertEqual(len(result.state.serp_results), 3)
        self.client.search.assert_called_once_with(
            "best project management tools", location_code=2276, language_code="de")

    def test_provider_error_degrades(self):
        self.client.search.side_effect = DataForSEOError("Invalid Field", status_code=40501)
        result = fetch_serp_results(make_state(), self.client)
        self.assertTrue(result.degraded)
        self.assertIn("40501", result.degraded_reason)
        self.assertEqual(result.state.serp_results, [])

    def test_request_failure_degrades(self):
        self.client.search.side_effect = requests.ConnectionError("down")
        result = fetch_serp_results(make_state(), self.client)
        self.assertTrue(result.degraded)

    def test_no_results_is_not_degraded(self):
        self.client.search.return_value = []
        result = fetch_serp_results(make_state(), self.client)
        self.assertFalse(result.degraded)
        self.assertEqual(result.state.serp_results, [])


class TestDataForSEOClient(unittest.TestCase):

    def _client_with_payload(self, payload):
        client = DataForSEOClient("login", "secret")
        response = MagicMock()
        response.json.return_value = payload
        client.session = MagicMock()
        client.session.post.return_value = response
        return client

    def test_basic_auth_header(self):
        client = DataForSEOClient("login", "secret")
        self.assertTrue(client.configured)
        self.assertEqual(client.headers["Authorization"], "Basic bG9naW46c2VjcmV0")

    def test_search_returns_items(self):
        client = self._client_with_payload({
            "status_code": 20000,
            "tasks": [{"status_code": 20000, "result": [{"items": ORGANIC_ITEMS}]}],
        })
        items = client.search("crm", location_code=2826, language_code="en")

        self.assertEqual(items, ORGANIC_ITEMS)
        payload = client.session.post.call_args.kwargs["json"]
        self.assertEqual(payload[0]["keyword"], "crm")
        self.assertEqual(payload[0]["location_code"], 2826)
        self.assertTrue(client.session.post.call_args.args[0].endswith("/serp/google/organic/live/advanced"))

    def test_task_error_raises_with_status_code(self):
        client = self._client_with_payload({
            "status_code": 20000,
            "tasks": [{"status_code": 40501, "status_message": "Invalid Field"}],
        })
        with self.assertRaises(DataForSEOError) as ctx:
            client.search("crm")
        self.assertEqual(ctx.exception.status_code, 40501)

    def test_empty_result_returns_empty_list(self):
        client = self._client_with_payload({"status_code": 20000, "tasks": [{"status_code": 20000, "result": None}]})
        self.assertEqual(client.search("crm"), [])

    @patch('article_pipeline.clients.dataforseo.requests.Session')
    def test_missing_credentials(self, mock_session):
        client = DataForSEOClient("", "")
        self.assertFalse(client.configured)
        with self.assertRaises(DataForSEOError):
            client.search("crm")
        mock_session.return_value.post.assert_not_called()


if __name__ == '__main__':
    unittest.main()
