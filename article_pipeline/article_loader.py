import logging

from .clients.repository import ArticleRepository
from .errors import StageResult
from .schemas import PipelineState

logger = logging.getLogger(__name__)


def load_article(state: PipelineState, repository: ArticleRepository) -> StageResult:
    """Resolve the article request and its product; a missing article is fatal."""
    article, product = repository.load_article(state.article_id)
    logger.info(f"📄 Loaded article {article.id}: '{article.keyword}' ({article.type}"
                f"{'/' + article.subtype if article.subtype else ''}) for product {product.id}")
    return StageResult.ok(state.extend(article=article, product=product))
