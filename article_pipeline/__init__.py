"""
SEO article generation pipeline: competitive research, LLM writing and AI images assembled into one markdown article.
"""

from .errors import PipelineError
from .pipeline import ArticlePipeline, run_article_generation
from .schemas import ArticleGenerationResult

__all__ = ["ArticlePipeline", "ArticleGenerationResult", "PipelineError", "run_article_generation"]
