"""
Central configuration for the article generation pipeline.
Values come from the environment (optionally a local .env file).
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# --- LLM / IMAGE PROVIDERS ---
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY")
HUGGINGFACE_API_KEY = os.environ.get("HUGGINGFACE_API_KEY")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")

CONTENT_MODEL = os.environ.get("CONTENT_MODEL", "gemini-2.5-pro")
ANALYSIS_MODEL = os.environ.get("ANALYSIS_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.environ.get("IMAGE_MODEL", "gemini-2.5-flash-image")
LLM_TIMEOUT = _env_float("LLM_TIMEOUT", 120.0)
IMAGE_TIMEOUT = _env_float("IMAGE_TIMEOUT", 180.0)

# --- SERP PROVIDER (DataForSEO) ---
DATAFORSEO_LOGIN = os.environ.get("DATAFORSEO_LOGIN", "")
DATAFORSEO_PASSWORD = os.environ.get("DATAFORSEO_PASSWORD", "")
SERP_TIMEOUT = _env_float("SERP_TIMEOUT", 30.0)

# --- OBJECT STORAGE (S3 compatible) ---
S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME", "")
AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL")
S3_PUBLIC_URL = os.environ.get("S3_PUBLIC_URL")

# --- PERSISTENCE ---
ARTICLE_STORE_PATH = os.environ.get("ARTICLE_STORE_PATH", "articles.json")

# --- PIPELINE BEHAVIOUR ---
# Per-item concurrency for competitor fetching and image generation (1-5).
MAX_CONCURRENCY = max(1, min(5, _env_int("MAX_CONCURRENCY", 3)))
HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 10.0)
IMAGE_GENERATION_ENABLED = os.environ.get("IMAGE_GENERATION_ENABLED", "true").lower() == "true"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

WATERMARK = (
    '*Article created using [Lovarank](https://www.lovarank.com/ '
    '"Lovarank - The AI agent that grows your organic traffic")*'
)
