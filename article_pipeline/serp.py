"""
Top organic search results for the target keyword.
"""

import logging
from typing import Dict, List

import requests

from .clients.dataforseo import DataForSEOClient
from .errors import DataForSEOError, StageResult
from .locales import get_language_code, get_location_code
from .schemas import PipelineState, SerpResult

logger = logging.getLogger(__name__)

MAX_SERP_RESULTS = 3


def parse_organic_results(items: List[Dict], limit: int = MAX_SERP_RESULTS) -> List[SerpResult]:
    """Keep organic items that have both a URL and a title, in rank order."""
    organic = [
        item for item in items
        if item.get("type") == "organic" and item.get("url") and item.get("title")
    ]
    results = []
    for index, item in enumerate(organic[:limit]):
        results.append(SerpResult(
            position=item.get("rank_absolute") or index + 1,
            url=item["url"],
            title=item["title"],
            description=item.get("description") or "",
            html=item.get("html") or item.get("content") or None,
        ))
    return results


def fetch_serp_results(state: PipelineState, client: DataForSEOClient) -> StageResult:
    article = state.article
    product = state.product
    location_code = get_location_code(product.country if product else None)
    language_code = get_language_code(product.language if product else None)

    logger.info(f"🔍 Fetching SERP for '{article.keyword}' (location {location_code}, language {language_code})")
    try:
        items = client.search(article.keyword, location_code=location_code, language_code=language_code)
    except DataForSEOError as e:
        logger.warning(f"⚠️ DataForSEO error (status {e.status_code}): {e}")
        return StageResult.degrade(state, f"DataForSEO error {e.status_code}")
    except requests.RequestException as e:
        logger.warning(f"⚠️ SERP request failed: {e}")
        return StageResult.degrade(state, "SERP request failed")

    results = parse_organic_results(items)
    if not results:
        logger.info(f"No organic results for '{article.keyword}', continuing without SERP data")
        return StageResult.ok(state)

    logger.info(f"✅ Found {len(results)} organic results")
    return StageResult.ok(state.extend(serp_results=results))
