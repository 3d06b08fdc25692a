"""
Persistence collaborator: where article requests, products and past articles come from.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..errors import ArticleNotFoundError
from ..schemas import ArticleRequest, LinkCandidate, ProductConfig

logger = logging.getLogger(__name__)

LINKABLE_STATUSES = ("published", "generated")
MAX_LINK_CANDIDATES = 20


class ArticleRepository(ABC):

    @abstractmethod
    def load_article(self, article_id: str) -> Tuple[ArticleRequest, ProductConfig]:
        """Resolve an article request and its product. Raises ArticleNotFoundError."""

    @abstractmethod
    def load_link_candidates(self, product_id: str, exclude_article_id: Optional[str] = None,
                             limit: int = MAX_LINK_CANDIDATES) -> List[LinkCandidate]:
        """Published or generated articles of the product that have a public URL, newest first."""


class JsonArticleRepository(ArticleRepository):
    """Reads a JSON document of the form ``{"products": {...}, "articles": [...]}``.

    Article records carry ``product_id``, ``status``, ``content``, ``created_at`` and a
    ``publication_urls`` list alongside the request fields.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict:
        if not self.path.exists():
            logger.warning(f"Article store not found: {self.path}")
            return {"products": {}, "articles": []}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _products(self, data: Dict) -> Dict[str, Dict]:
        products = data.get("products") or {}
        if isinstance(products, list):
            return {str(p.get("id")): p for p in products}
        return {str(key): {"id": str(key), **value} for key, value in products.items()}

    def load_article(self, article_id: str) -> Tuple[ArticleRequest, ProductConfig]:
        data = self._read()
        record = next((a for a in data.get("articles", []) if str(a.get("id")) == str(article_id)), None)
        if record is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}", stage="load_article")

        product_record = self._products(data).get(str(record.get("product_id")))
        if product_record is None:
            raise ArticleNotFoundError(
                f"Product {record.get('product_id')} for article {article_id} not found",
                stage="load_article",
            )

        try:
            article = ArticleRequest.model_validate(record)
            product = ProductConfig.model_validate(product_record)
        except ValidationError as e:
            raise ArticleNotFoundError(f"Article {article_id} is not usable: {e}", stage="load_article") from e
        return article, product

    def save_detected_links(self, product_id: str, links: List[LinkCandidate]) -> None:
        """Replace the product's sitemap snapshot."""
        data = self._read()
        products = data.get("products") or {}
        entries = products if isinstance(products, list) else list(products.values())
        keyed = products if isinstance(products, dict) else {}
        product = keyed.get(str(product_id)) or next(
            (p for p in entries if str(p.get("id")) == str(product_id)), None)
        if product is None:
            raise ArticleNotFoundError(f"Product not found: {product_id}")

        product["detected_links"] = [link.model_dump(exclude_none=True) for link in links]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def load_link_candidates(self, product_id: str, exclude_article_id: Optional[str] = None,
                             limit: int = MAX_LINK_CANDIDATES) -> List[LinkCandidate]:
        data = self._read()
        records = [
            a for a in data.get("articles", [])
            if str(a.get("product_id")) == str(product_id)
            and a.get("status") in LINKABLE_STATUSES
            and str(a.get("id")) != str(exclude_article_id)
            and a.get("content")
        ]
        records.sort(key=lambda a: a.get("created_at") or "", reverse=True)

        candidates = []
        for record in records:
            urls = record.get("publication_urls") or []
            if not urls:
                continue
            candidates.append(LinkCandidate(
                id=str(record["id"]),
                title=record.get("title") or record.get("keyword", ""),
                keyword=record.get("keyword", ""),
                url=urls[0],
            ))
            if len(candidates) >= limit:
                break
        return candidates
