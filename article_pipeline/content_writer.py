"""
Content Generator.
Writes the article body from the brief, then cleans up what the model returned.
"""

import logging
import re
import threading
from typing import Optional

from .agents import GenerativeAgent
from .config import WATERMARK
from .errors import AgentError, ContentGenerationError, StageResult
from .research_agent import fallback_brief
from .schemas import GeneratedArticle, PipelineState
from .seo_system import SEOPromptBuilder
from .structures import generate_structure_guidelines
from .utils import slugify
from .utils.linking import find_linked_candidates, normalize_text

logger = logging.getLogger(__name__)

LEADING_IMAGE = re.compile(r'^\s*!\[[^\]]*\]\([^)]*\)\s*')
H1_LINE = re.compile(r'^\s*#\s+(.+?)\s*#*\s*$')


def clean_article_body(content: str, title: str) -> str:
    """Drop leading blank lines, leading images and a leading H1 that repeats the title."""
    lines = content.strip().splitlines()
    while lines:
        first = lines[0]
        if not first.strip():
            lines.pop(0)
            continue
        image = LEADING_IMAGE.match(first)
        if image:
            rest = first[image.end():]
            if rest.strip():
                lines[0] = rest
            else:
                lines.pop(0)
            continue
        h1 = H1_LINE.match(first)
        if h1 and normalize_text(h1.group(1)) == normalize_text(title):
            lines.pop(0)
            continue
        break
    body = "\n".join(lines).strip()
    # Images are fine inside the body, never as its first character
    return body.lstrip("!").lstrip() if body.startswith("!") else body


def append_watermark(content: str) -> str:
    if content.rstrip().endswith(WATERMARK):
        return content
    return f"{content.rstrip()}\n\n{WATERMARK}"


class ContentWriter:
    """Generates the article with the content-writer persona."""

    def __init__(self, agent: GenerativeAgent, prompt_builder: SEOPromptBuilder = None):
        self.agent = agent
        self.prompt_builder = prompt_builder or SEOPromptBuilder()

    def build_prompt(self, state: PipelineState) -> str:
        brief = state.competitive_brief or fallback_brief(state.article.keyword)
        guidelines = generate_structure_guidelines(brief, state.article)
        return self.prompt_builder.build_article_prompt(
            article=state.article,
            product=state.product,
            brief=brief,
            link_candidates=state.link_candidates,
            structure_guidelines=guidelines,
        )

    def generate(self, state: PipelineState, cancel_event: Optional[threading.Event] = None) -> StageResult:
        article = state.article
        product = state.product
        logger.info(f"✍️ Writing article for '{article.keyword}'")

        try:
            generated = self.agent.generate(self.build_prompt(state), GeneratedArticle, cancel_event=cancel_event)
        except AgentError as e:
            raise ContentGenerationError(f"Failed to generate article content: {e}",
                                         stage="generate_content") from e

        title = (generated.title or article.title or article.keyword).strip()
        body = clean_article_body(generated.content or "", title)
        if not body:
            raise ContentGenerationError("Model returned an empty article body", stage="generate_content")

        slug = slugify(generated.slug or "") or slugify(title) or slugify(article.keyword)
        if not product.remove_watermark:
            body = append_watermark(body)

        result = GeneratedArticle(
            title=title,
            content=body,
            meta_description=(generated.meta_description or "").strip(),
            slug=slug,
        )

        if state.link_candidates and product.internal_links > 0:
            linked = find_linked_candidates(result.content, state.link_candidates)
            expected = min(product.internal_links, len(state.link_candidates))
            logger.info(f"🔗 Article links to {len(linked)} of {expected} requested internal pages")

        logger.info(f"✅ Article written: '{result.title}' ({len(result.content.split())} words, slug '{result.slug}')")
        return StageResult.ok(state.extend(article_content=result))
