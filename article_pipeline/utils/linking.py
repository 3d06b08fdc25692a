"""
Internal link helpers.
Builds the sitemap snapshot used as link candidates, and checks which candidates an article links to.
"""

import re
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Set
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from ..schemas import LinkCandidate

logger = logging.getLogger(__name__)

MAX_SITEMAP_URLS = 100
MAX_SITEMAP_DEPTH = 3
TITLE_TIMEOUT = 5
LINK_DETECTOR_USER_AGENT = "Mozilla/5.0 (compatible; LinkDetector/1.0)"

MARKDOWN_LINK = re.compile(r'(?<!!)\[([^\]]+)\]\(([^)\s]+)[^)]*\)')


def normalize_text(text: str) -> str:
    """Normalize text for comparison (lowercase, remove special chars, extra spaces)."""
    text = text.lower()
    text = re.sub(r'[^\w\s]', '', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def title_from_path(url: str) -> str:
    """Readable title from the last URL path segment: '/blog/seo-tips_2024' -> 'Seo Tips 2024'."""
    try:
        segments = [s for s in urlparse(url).path.split('/') if s]
    except ValueError:
        return 'Untitled'
    if not segments:
        return 'Untitled'
    words = re.sub(r'[-_]', ' ', segments[-1]).split(' ')
    title = ' '.join(word[:1].upper() + word[1:] for word in words if word)
    return title or 'Untitled'


def _read_sitemap(url: str, session: requests.Session, timeout: float) -> BeautifulSoup:
    response = session.get(url, timeout=timeout)
    response.raise_for_status()
    return BeautifulSoup(response.text, 'html.parser')


def _locs(parent, tag: str) -> List[str]:
    found = []
    for entry in parent.find_all(tag):
        loc = entry.find('loc')
        if loc and loc.get_text(strip=True):
            found.append(loc.get_text(strip=True))
    return found


def fetch_sitemap_urls(sitemap_url: str, session: Optional[requests.Session] = None,
                       timeout: float = 10.0, max_urls: int = MAX_SITEMAP_URLS) -> List[str]:
    """Page URLs listed in a sitemap, following sitemap indexes.

    Each sitemap is read once and indexes are followed at most ``MAX_SITEMAP_DEPTH``
    levels deep. Reading stops once ``max_urls`` pages are collected. A child sitemap
    that can't be read is skipped.

    Raises:
        requests.RequestException: the top-level sitemap could not be fetched.
    """
    session = session or requests.Session()
    urls: List[str] = []
    seen_pages: Set[str] = set()
    visited: Set[str] = set()
    pending = deque([(sitemap_url, 0)])

    while pending and len(urls) < max_urls:
        current, depth = pending.popleft()
        if current in visited:
            continue
        visited.add(current)

        try:
            soup = _read_sitemap(current, session, timeout)
        except requests.RequestException as e:
            if depth == 0:
                raise
            logger.warning(f"⚠️ Skipping unreadable sitemap {current}: {e}")
            continue

        index = soup.find('sitemapindex')
        if index is not None:
            if depth >= MAX_SITEMAP_DEPTH:
                logger.warning(f"⚠️ Sitemap index {current} is nested too deep, not following it")
            else:
                pending.extend((child, depth + 1) for child in _locs(index, 'sitemap') if child not in visited)

        urlset = soup.find('urlset')
        if urlset is not None:
            for url in _locs(urlset, 'url'):
                if url not in seen_pages:
                    seen_pages.add(url)
                    urls.append(url)

    return urls[:max_urls]


def fetch_page_title(url: str, session: Optional[requests.Session] = None) -> str:
    """The page's <title>, or a title derived from its path when the page can't be read."""
    session = session or requests.Session()
    try:
        response = session.get(url, headers={'User-Agent': LINK_DETECTOR_USER_AGENT}, timeout=TITLE_TIMEOUT)
        if response.status_code != 200:
            return title_from_path(url)
        soup = BeautifulSoup(response.text, 'html.parser')
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(strip=True)
    except requests.RequestException as e:
        logger.debug(f"Title lookup failed for {url}: {e}")
    return title_from_path(url)


def detect_links_from_sitemap(sitemap_url: str, max_urls: int = MAX_SITEMAP_URLS,
                              max_workers: int = 5) -> List[LinkCandidate]:
    """Read a sitemap and return link candidates for the first ``max_urls`` pages.

    Raises:
        requests.RequestException: the sitemap itself could not be fetched.
    """
    session = requests.Session()
    urls = fetch_sitemap_urls(sitemap_url, session, max_urls=max_urls)
    logger.info(f"🗺️ Sitemap {sitemap_url}: {len(urls)} URLs found, resolving titles for {min(len(urls), max_urls)}")

    selected = urls[:max_urls]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        titles = list(executor.map(lambda u: fetch_page_title(u, session), selected))

    return [LinkCandidate(url=url, title=title, keyword="") for url, title in zip(selected, titles)]


def extract_markdown_links(content: str) -> List[str]:
    """URLs of the (non-image) markdown links in ``content``."""
    return [match.group(2) for match in MARKDOWN_LINK.finditer(content)]


def find_linked_candidates(content: str, candidates: List[LinkCandidate]) -> List[LinkCandidate]:
    """Candidates the article actually links to."""
    linked = {url.rstrip('/') for url in extract_markdown_links(content)}
    return [c for c in candidates if c.url.rstrip('/') in linked]
