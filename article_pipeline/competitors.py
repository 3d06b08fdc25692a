"""
Competitor Content Fetcher.
Downloads the top-ranking pages and reduces each one to the signals the brief needs:
title, meta description, heading outline, word count and a short text preview.
"""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from .config import BROWSER_USER_AGENT
from .errors import PipelineCancelledError, StageResult
from .schemas import CompetitorContent, PipelineState, SerpResult

logger = logging.getLogger(__name__)

UNWANTED_TAGS = ['script', 'style', 'nav', 'header', 'footer']
HEADING_TAGS = ['h1', 'h2', 'h3', 'h4']
PREVIEW_LENGTH = 1000
MAX_REDIRECTS = 5


def parse_competitor_html(html: str, url: str, fallback_title: str = "") -> CompetitorContent:
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(UNWANTED_TAGS):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""

    meta = soup.find("meta", attrs={"name": "description"}) or soup.find("meta", attrs={"property": "og:description"})
    meta_description = (meta.get("content") or "").strip() if meta else ""

    headings = []
    for tag in soup.find_all(HEADING_TAGS):
        text = tag.get_text(" ", strip=True)
        if text:
            headings.append(text)

    body = soup.body or soup
    text = re.sub(r'\s+', ' ', body.get_text(" ")).strip()

    return CompetitorContent(
        url=url,
        title=title or fallback_title,
        meta_description=meta_description,
        headings=headings,
        word_count=len(text.split()) if text else 0,
        content_preview=text[:PREVIEW_LENGTH],
    )


class CompetitorFetcher:
    """Fetch and parse the SERP pages on a bounded thread pool."""

    def __init__(self, max_workers: int = 3, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.max_workers = max_workers
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECTS
        self.session.headers.update({
            "User-Agent": BROWSER_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

    def fetch_html(self, url: str) -> str:
        response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        response.raise_for_status()
        return response.text

    def fetch_one(self, result: SerpResult,
                  cancel_event: Optional[threading.Event] = None) -> Optional[CompetitorContent]:
        """One competitor page, or None when it can't be fetched or parsed."""
        try:
            if result.html:
                html = result.html
            else:
                if cancel_event is not None and cancel_event.is_set():
                    return None
                html = self.fetch_html(result.url)
            return parse_competitor_html(html, result.url, fallback_title=result.title)
        except requests.RequestException as e:
            logger.warning(f"⚠️ Could not fetch competitor {result.url}: {e}")
        except Exception as e:
            logger.warning(f"⚠️ Could not parse competitor {result.url}: {e}")
        return None

    def fetch_all(self, state: PipelineState,
                  cancel_event: Optional[threading.Event] = None) -> StageResult:
        results = state.serp_results
        if not results:
            logger.info("No SERP results, skipping competitor analysis")
            return StageResult.ok(state)

        workers = max(1, min(self.max_workers, len(results)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            fetched: List[Optional[CompetitorContent]] = list(
                executor.map(lambda r: self.fetch_one(r, cancel_event), results)
            )

        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError("Cancelled while fetching competitors", stage="fetch_competitors")

        competitors = [c for c in fetched if c is not None]
        logger.info(f"Successfully analyzed {len(competitors)} of {len(results)} competitor pages")

        if not competitors:
            return StageResult.degrade(state, "no competitor pages could be analyzed")
        return StageResult.ok(state.extend(competitor_content=competitors))
