import logging

from .clients.repository import MAX_LINK_CANDIDATES, ArticleRepository
from .errors import StageResult
from .schemas import PipelineState

logger = logging.getLogger(__name__)


def fetch_link_candidates(state: PipelineState, repository: ArticleRepository) -> StageResult:
    """Existing pages of the same site the article may link to.

    Sitemap mode uses the product's cached sitemap snapshot; database mode asks the
    repository for the product's other generated or published articles.
    """
    product = state.product
    article = state.article

    try:
        if product.link_source == "sitemap":
            candidates = [link for link in product.detected_links if link.url][:MAX_LINK_CANDIDATES]
            source = "sitemap"
        else:
            candidates = repository.load_link_candidates(product.id, exclude_article_id=article.id)
            source = "database"
    except Exception as e:
        logger.warning(f"⚠️ Could not load internal link candidates: {e}")
        return StageResult.degrade(state, "link candidates unavailable")

    if not candidates:
        logger.info(f"No internal link candidates ({source})")
        return StageResult.ok(state)

    logger.info(f"🔗 {len(candidates)} internal link candidates from {source}")
    return StageResult.ok(state.extend(link_candidates=candidates))
