"""
Article Pipeline - command line entry point.
Builds every client from configuration and runs the article generation pipeline.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from . import config
from .agents import build_agents
from .clients.dataforseo import DataForSEOClient
from .clients.gemini import GeminiClient
from .clients.repository import JsonArticleRepository
from .clients.storage import LocalStorage, ObjectStorage, S3Storage
from .competitors import CompetitorFetcher
from .content_writer import ContentWriter
from .errors import PipelineError
from .image_generator import ImageGenerator
from .image_planner import ImagePlanner
from .pipeline import ArticlePipeline
from .research_agent import ResearchAgent
from .schemas import ArticleGenerationResult
from .seo_system import SEOPromptBuilder
from .utils.linking import detect_links_from_sitemap

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO):
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')


def build_storage() -> ObjectStorage:
    if config.S3_BUCKET_NAME:
        return S3Storage(
            bucket_name=config.S3_BUCKET_NAME,
            region=config.AWS_REGION,
            access_key_id=config.AWS_ACCESS_KEY_ID,
            secret_access_key=config.AWS_SECRET_ACCESS_KEY,
            endpoint_url=config.S3_ENDPOINT_URL,
            public_url=config.S3_PUBLIC_URL,
        )
    logger.warning("S3_BUCKET_NAME not set, images will be saved locally")
    return LocalStorage()


# --- INITIALIZATION ---
def initialize_system() -> Dict:
    """Initialize all clients and pipeline components."""
    # 1. Clients
    gemini_client = GeminiClient(
        api_key=config.GEMINI_API_KEY,
        openrouter_api_key=config.OPENROUTER_API_KEY,
        timeout=config.LLM_TIMEOUT,
        image_timeout=config.IMAGE_TIMEOUT,
        fallback_models=[config.ANALYSIS_MODEL],
    )
    serp_client = DataForSEOClient(config.DATAFORSEO_LOGIN, config.DATAFORSEO_PASSWORD, timeout=config.SERP_TIMEOUT)
    repository = JsonArticleRepository(config.ARTICLE_STORE_PATH)

    # 2. Agents and stages
    agents = build_agents(gemini_client, config.CONTENT_MODEL, config.ANALYSIS_MODEL)
    competitor_fetcher = CompetitorFetcher(max_workers=config.MAX_CONCURRENCY, timeout=config.HTTP_TIMEOUT)
    researcher = ResearchAgent(agents["serp_analyzer"])
    writer = ContentWriter(agents["content_writer"], SEOPromptBuilder())

    # 3. Images (optional)
    storage = None
    planner = None
    image_gen = None
    if config.IMAGE_GENERATION_ENABLED:
        storage = build_storage()
        planner = ImagePlanner(agents["image_strategist"])
        image_gen = ImageGenerator(
            gemini_client,
            storage,
            model=config.IMAGE_MODEL,
            hf_token=config.HUGGINGFACE_API_KEY,
            openai_api_key=config.OPENAI_API_KEY,
            max_workers=config.MAX_CONCURRENCY,
            timeout=config.IMAGE_TIMEOUT,
        )
        logger.info("🖼️ Image generation enabled")
    else:
        logger.info("🖼️ Image generation disabled (text only)")

    pipeline = ArticlePipeline(
        repository=repository,
        serp_client=serp_client,
        competitor_fetcher=competitor_fetcher,
        research_agent=researcher,
        content_writer=writer,
        image_planner=planner,
        image_generator=image_gen,
    )

    return {
        "gemini": gemini_client,
        "serp": serp_client,
        "repository": repository,
        "storage": storage,
        "agents": agents,
        "pipeline": pipeline,
    }


# --- PROCESSES ---

def save_result(result: ArticleGenerationResult, output_dir: str = "output") -> Path:
    """Write the markdown body and a JSON sidecar with metadata and images."""
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    slug = result.article.slug or "article"

    markdown_path = directory / f"{slug}.md"
    with open(markdown_path, 'w', encoding='utf-8') as f:
        f.write(result.article.content)

    metadata = {
        "title": result.article.title,
        "slug": slug,
        "meta_description": result.article.meta_description,
        "featured_image_url": result.featured_image_url,
        "images": [image.model_dump() for image in result.images],
        "degradations": result.degradations,
    }
    with open(directory / f"{slug}.json", 'w', encoding='utf-8') as f:
        json.dump(metadata, f, indent=2, ensure_ascii=False)

    return markdown_path


def run_article(components: Dict, article_id: str, output_dir: str = "output") -> Optional[ArticleGenerationResult]:
    """Generate one article and save it; returns None when a required stage failed."""
    try:
        result = components["pipeline"].run_article_generation(article_id)
    except PipelineError as e:
        logger.error(f"❌ Article generation failed: {e}")
        return None

    path = save_result(result, output_dir)
    logger.info(f"💾 Saved article to {path}")
    return result


def run_detect_links(components: Dict, product_id: str, sitemap_url: str) -> int:
    """Refresh a product's sitemap link snapshot; returns the number of links stored."""
    links = detect_links_from_sitemap(sitemap_url)
    components["repository"].save_detected_links(product_id, links)
    logger.info(f"🔗 Stored {len(links)} links for product {product_id}")
    return len(links)


def show_help():
    """Display usage information."""
    help_text = """
Article Pipeline - Usage Guide

Commands:
  python -m article_pipeline.main <article_id> [output_dir]     Generate an article (default output dir: output)
  python -m article_pipeline.main detect-links <product_id> <sitemap_url>
                                                               Refresh a product's sitemap link snapshot
  python -m article_pipeline.main help                          Show this help message

Environment Variables (one LLM credential required):
  GEMINI_API_KEY            Google Gemini API key
  OPENROUTER_API_KEY        OpenRouter API key (used instead of Gemini when set)

Environment Variables (Optional):
  DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD   SERP provider credentials (no SERP data without them)
  S3_BUCKET_NAME, AWS_REGION, S3_ENDPOINT_URL, S3_PUBLIC_URL   Image storage (local folder when unset)
  HUGGINGFACE_API_KEY, OPENAI_API_KEY      Fallback image services
  ARTICLE_STORE_PATH        JSON file with products and articles (default: articles.json)
  CONTENT_MODEL / ANALYSIS_MODEL / IMAGE_MODEL   Model names
  MAX_CONCURRENCY           Parallel fetches and image renders, 1-5 (default: 3)
  IMAGE_GENERATION_ENABLED  Enable/disable image generation (default: true)
"""
    print(help_text)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0].lower() in ["help", "-h", "--help"]:
        show_help()
        return 0

    configure_logging()
    system = initialize_system()

    command = argv[0]
    if command.lower() == "detect-links":
        if len(argv) < 3:
            show_help()
            return 2
        run_detect_links(system, argv[1], argv[2])
        return 0

    output_dir = argv[1] if len(argv) > 1 else "output"
    return 0 if run_article(system, command, output_dir) else 1


if __name__ == "__main__":
    sys.exit(main())
