"""
Utility functions for the article pipeline.
"""

import re
import unicodedata
from typing import Any

# ---------------------------------------------------------------------------
# Field alias mapping: common AI-generated key names → canonical snake_case
# field names expected by the Pydantic schemas.
#
# After converting raw AI keys to snake_case we apply these aliases so that,
# e.g., a model that returns "markdown" (→ "markdown") is mapped to the
# canonical "content" field name.
# ---------------------------------------------------------------------------
FIELD_ALIASES: dict = {
    # article content
    "article_content": "content",
    "body": "content",
    "markdown": "content",
    "article_body": "content",
    "markdown_content": "content",
    # meta_description
    "description": "meta_description",
    "seo_description": "meta_description",
    "meta_desc": "meta_description",
    "meta": "meta_description",
    # slug
    "url_slug": "slug",
    "post_slug": "slug",
    # image plan
    "alt": "alt_text",
    "alttext": "alt_text",
    "image_prompt": "prompt",
    "style": "style_modifier",
    "heading": "placement",
    "image_plans": "images",
    # competitive brief
    "lsi": "lsi_keywords",
    "intent": "search_intent",
    "gaps": "content_gaps",
    "questions": "unanswered_questions",
    "sections": "required_sections",
    "word_count_min": "target_word_count_min",
    "word_count_max": "target_word_count_max",
}


def normalize_dict_keys(data: Any) -> Any:
    """
    Normalize dictionary keys to snake_case for Pydantic validation,
    then apply :data:`FIELD_ALIASES` to map common AI-generated key names to
    their canonical Pydantic field names.

    Nested dictionaries and lists of dictionaries are normalized recursively,
    because the competitive brief and image plan schemas are nested.

    Examples:
        'metaDescription'    → 'meta_description'
        'TARGET_INFORMATION' → 'target_information'
        'altText'            → 'alt_text'
        'markdown'           → 'content'

    Args:
        data: Value whose dictionary keys should be normalised.

    Returns:
        New structure with canonical snake_case keys and the same values.
        Non-container values are returned unchanged.
    """
    if isinstance(data, list):
        return [normalize_dict_keys(item) for item in data]
    if not isinstance(data, dict):
        return data

    normalized = {}
    for key, value in data.items():
        # Step 1 – split a run of capitals followed by a lower-case letter: "ABCDef" → "ABC_Def"
        s1 = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', str(key))
        # Step 2 – split lower-case/digit followed by upper-case: "camelCase" → "camel_Case"
        s2 = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', s1)
        snake_key = s2.lower().replace("-", "_").replace(" ", "_")
        canonical_key = FIELD_ALIASES.get(snake_key, snake_key)
        normalized[canonical_key] = normalize_dict_keys(value)

    return normalized


def slugify(text: str, max_length: int = 80) -> str:
    """Lowercase, ASCII, hyphen-separated slug."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r'[^\w\s-]', '', text.lower())
    text = re.sub(r'[\s_-]+', '-', text).strip('-')
    if len(text) > max_length:
        text = text[:max_length].rsplit('-', 1)[0] or text[:max_length]
    return text


def truncate_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text.strip()
    return ' '.join(words[:max_words])


def humanize_identifier(value: str) -> str:
    """'how_to' → 'How To'."""
    return ' '.join(part.capitalize() for part in value.split('_') if part)
