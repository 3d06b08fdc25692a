"""
Tests for internal link candidates: the repository, the sitemap snapshot and link detection.
"""

import json
import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import requests

from article_pipeline.clients.repository import ArticleRepository, JsonArticleRepository
from article_pipeline.errors import ArticleNotFoundError
from article_pipeline.internal_links import fetch_link_candidates
from article_pipeline.schemas import LinkCandidate
from article_pipeline.utils.linking import (
    MAX_SITEMAP_DEPTH,
    detect_links_from_sitemap,
    extract_markdown_links,
    fetch_page_title,
    fetch_sitemap_urls,
    find_linked_candidates,
    title_from_path,
)
from tests.factories import make_product, make_state

STORE = {
    "products": {
        "prod-1": {"name": "Taskly", "url": "https://taskly.example.com", "internal_links": 2},
    },
    "articles": [
        {"id": "art-1", "product_id": "prod-1", "keyword": "project tools", "type": "guide",
         "status": "pending"},
        {"id": "art-2", "product_id": "prod-1", "keyword": "kanban boards", "title": "Kanban Boards Explained",
         "status": "published", "content": "...", "created_at": "2024-01-01",
         "publication_urls": ["https://taskly.example.com/kanban"]},
        {"id": "art-3", "product_id": "prod-1", "keyword": "gantt charts", "status": "generated",
         "content": "...", "created_at": "2024-03-01",
         "publication_urls": ["https://taskly.example.com/gantt"]},
        {"id": "art-4", "product_id": "prod-1", "keyword": "draft", "status": "draft", "content": "...",
         "publication_urls": ["https://taskly.example.com/draft"]},
        {"id": "art-5", "product_id": "prod-1", "keyword": "no url", "status": "published", "content": "..."},
        {"id": "art-6", "product_id": "other", "keyword": "other", "status": "published", "content": "...",
         "publication_urls": ["https://other.example.com/x"]},
    ],
}


class TestJsonArticleRepository(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "articles.json")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(STORE, f)
        self.repo = JsonArticleRepository(self.path)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_load_article(self):
        article, product = self.repo.load_article("art-1")
        self.assertEqual(article.keyword, "project tools")
        self.assertEqual(product.id, "prod-1")
        self.assertEqual(product.internal_links, 2)

    def test_missing_article(self):
        with self.assertRaises(ArticleNotFoundError) as ctx:
            self.repo.load_article("nope")
        self.assertEqual(ctx.exception.stage, "load_article")

    def test_missing_product(self):
        with self.assertRaises(ArticleNotFoundError):
            self.repo.load_article("art-6")

    def test_link_candidates_newest_first_with_urls(self):
        candidates = self.repo.load_link_candidates("prod-1", exclude_article_id="art-1")
        self.assertEqual([c.id for c in candidates], ["art-3", "art-2"])
        self.assertEqual(candidates[0].title, "gantt charts")
        self.assertEqual(candidates[1].title, "Kanban Boards Explained")

    def test_link_candidates_excludes_current_article_and_limit(self):
        candidates = self.repo.load_link_candidates("prod-1", exclude_article_id="art-3", limit=1)
        self.assertEqual([c.id for c in candidates], ["art-2"])

    def test_save_detected_links(self):
        links = [LinkCandidate(title="Pricing", url="https://taskly.example.com/pricing")]
        self.repo.save_detected_links("prod-1", links)
        _, product = self.repo.load_article("art-1")
        self.assertEqual(product.detected_links, links)

    def test_missing_file_is_empty_store(self):
        repo = JsonArticleRepository(os.path.join(self.tmpdir.name, "missing.json"))
        self.assertEqual(repo.load_link_candidates("prod-1"), [])


class TestFetchLinkCandidates(unittest.TestCase):

    def setUp(self):
        self.repo = MagicMock(spec=ArticleRepository)

    def test_database_mode(self):
        links = [LinkCandidate(title="Kanban", url="https://taskly.example.com/kanban")]
        self.repo.load_link_candidates.return_value = links

        result = fetch_link_candidates(make_state(), self.repo)

        self.assertEqual(result.state.link_candidates, links)
        self.repo.load_link_candidates.assert_called_once_with("prod-1", exclude_article_id="art-1")

    def test_sitemap_mode_uses_snapshot(self):
        snapshot = [LinkCandidate(title=f"Page {i}", url=f"https://taskly.example.com/{i}") for i in range(25)]
        state = make_state(product=make_product(link_source="sitemap", detected_links=snapshot))

        result = fetch_link_candidates(state, self.repo)

        self.assertEqual(len(result.state.link_candidates), 20)
        self.repo.load_link_candidates.assert_not_called()

    def test_no_candidates(self):
        self.repo.load_link_candidates.return_value = []
        result = fetch_link_candidates(make_state(), self.repo)
        self.assertFalse(result.degraded)
        self.assertEqual(result.state.link_candidates, [])

    def test_repository_failure_degrades(self):
        self.repo.load_link_candidates.side_effect = OSError("disk")
        result = fetch_link_candidates(make_state(), self.repo)
        self.assertTrue(result.degraded)


def _response(text="", status_code=200):
    response = MagicMock()
    response.text = text
    response.status_code = status_code
    return response


class TestSitemapLinks(unittest.TestCase):

    def test_title_from_path(self):
        self.assertEqual(title_from_path("https://x.example.com/blog/seo-tips_2024"), "Seo Tips 2024")
        self.assertEqual(title_from_path("https://x.example.com/"), "Untitled")

    def test_fetch_sitemap_follows_index(self):
        index = ('<?xml version="1.0"?><sitemapindex><sitemap><loc>https://x.example.com/posts.xml</loc>'
                 '</sitemap></sitemapindex>')
        posts = ('<?xml version="1.0"?><urlset><url><loc>https://x.example.com/a</loc></url>'
                 '<url><loc>https://x.example.com/b</loc></url></urlset>')
        session = MagicMock()
        session.get.side_effect = [_response(index), _response(posts)]

        urls = fetch_sitemap_urls("https://x.example.com/sitemap.xml", session)

        self.assertEqual(urls, ["https://x.example.com/a", "https://x.example.com/b"])

    def test_fetch_sitemap_self_listing_index(self):
        session = MagicMock()
        session.get.return_value = _response(
            "<sitemapindex><sitemap><loc>https://e.com/s.xml</loc></sitemap></sitemapindex>")

        self.assertEqual(fetch_sitemap_urls("https://e.com/s.xml", session), [])
        self.assertEqual(session.get.call_count, 1)

    def test_fetch_sitemap_depth_limited(self):
        def nested_index(url, timeout):
            level = int(url.rsplit("-", 1)[1].split(".")[0])
            return _response(f"<sitemapindex><sitemap><loc>https://e.com/s-{level + 1}.xml</loc>"
                             f"</sitemap></sitemapindex>")

        session = MagicMock()
        session.get.side_effect = nested_index

        self.assertEqual(fetch_sitemap_urls("https://e.com/s-0.xml", session), [])
        self.assertEqual(session.get.call_count, MAX_SITEMAP_DEPTH + 1)

    def test_fetch_sitemap_stops_at_max_urls(self):
        index = ("<sitemapindex>" + "".join(f"<sitemap><loc>https://e.com/s-{i}.xml</loc></sitemap>"
                                            for i in range(5)) + "</sitemapindex>")
        pages = "<urlset>" + "".join(f"<url><loc>https://e.com/p{i}</loc></url>" for i in range(3)) + "</urlset>"
        session = MagicMock()
        session.get.side_effect = lambda url, timeout: _response(index if url.endswith("sitemap.xml") else pages)

        urls = fetch_sitemap_urls("https://e.com/sitemap.xml", session, max_urls=2)

        self.assertEqual(urls, ["https://e.com/p0", "https://e.com/p1"])
        self.assertEqual(session.get.call_count, 2)

    def test_fetch_sitemap_skips_unreadable_child(self):
        index = ("<sitemapindex><sitemap><loc>https://e.com/broken.xml</loc></sitemap>"
                 "<sitemap><loc>https://e.com/posts.xml</loc></sitemap></sitemapindex>")
        posts = "<urlset><url><loc>https://e.com/a</loc></url></urlset>"

        def get(url, timeout):
            if url.endswith("broken.xml"):
                raise requests.ConnectionError("refused")
            return _response(index if url.endswith("sitemap.xml") else posts)

        session = MagicMock()
        session.get.side_effect = get

        self.assertEqual(fetch_sitemap_urls("https://e.com/sitemap.xml", session), ["https://e.com/a"])

        session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(requests.ConnectionError):
            fetch_sitemap_urls("https://e.com/sitemap.xml", session)

    def test_page_title_falls_back_to_path(self):
        session = MagicMock()
        session.get.return_value = _response("", status_code=404)
        self.assertEqual(fetch_page_title("https://x.example.com/my-post", session), "My Post")

        session.get.side_effect = requests.Timeout("slow")
        self.assertEqual(fetch_page_title("https://x.example.com/other-post", session), "Other Post")

    def test_page_title_from_html(self):
        session = MagicMock()
        session.get.return_value = _response("<html><head><title> My Title </title></head></html>")
        self.assertEqual(fetch_page_title("https://x.example.com/p", session), "My Title")

    @patch('article_pipeline.utils.linking.fetch_page_title')
    @patch('article_pipeline.utils.linking.fetch_sitemap_urls')
    def test_detect_links_caps_urls(self, mock_urls, mock_title):
        mock_urls.return_value = [f"https://x.example.com/{i}" for i in range(5)]
        mock_title.side_effect = lambda url, session: f"Title {url[-1]}"

        links = detect_links_from_sitemap("https://x.example.com/sitemap.xml", max_urls=3)

        self.assertEqual([link.title for link in links], ["Title 0", "Title 1", "Title 2"])
        self.assertTrue(all(link.keyword == "" for link in links))


class TestLinkDetection(unittest.TestCase):

    def test_extract_ignores_images(self):
        content = "See [Kanban](https://x.example.com/kanban) and ![chart](https://cdn.example.com/c.png)."
        self.assertEqual(extract_markdown_links(content), ["https://x.example.com/kanban"])

    def test_find_linked_candidates_ignores_trailing_slash(self):
        candidates = [
            LinkCandidate(title="Kanban", url="https://x.example.com/kanban/"),
            LinkCandidate(title="Gantt", url="https://x.example.com/gantt"),
        ]
        content = "Read [our guide](https://x.example.com/kanban)."
        self.assertEqual(find_linked_candidates(content, candidates), candidates[:1])


if __name__ == '__main__':
    unittest.main()
