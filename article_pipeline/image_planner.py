"""
Image Planner.
Decides how many images the article gets, what they show and which heading each belongs under.
"""

import logging
import re
import threading
from typing import List, Optional

from .agents import GenerativeAgent
from .errors import AgentError, StageResult
from .schemas import GeneratedArticle, ImagePlan, ImagePlanItem, PipelineState
from .utils import truncate_words

logger = logging.getLogger(__name__)

MAX_IMAGES = 4
MAX_PROMPT_WORDS = 30
MAX_ALT_TEXT = 100
HEADING_LINE = re.compile(r'^\s*(#{1,6})\s+(.+?)\s*#*\s*$')


def extract_headings(content: str) -> List[str]:
    """Heading texts in document order."""
    headings = []
    for line in content.splitlines():
        match = HEADING_LINE.match(line)
        if match:
            headings.append(match.group(2))
    return headings


def split_in_thirds(items: List[str]) -> List[List[str]]:
    size = len(items)
    first = (size + 2) // 3
    second = first + (size - first + 1) // 2
    return [items[:first], items[first:second], items[second:]]


def hero_only_plan(article: GeneratedArticle) -> List[ImagePlanItem]:
    return [ImagePlanItem(
        type="hero",
        placement="hero",
        prompt=f"Professional header image representing: {article.title}",
        alt_text=article.title[:MAX_ALT_TEXT],
    )]


def normalize_plan(items: List[ImagePlanItem], article: GeneratedArticle) -> List[ImagePlanItem]:
    """At most four images, exactly one hero and it comes first, prompts capped at 30 words."""
    hero = None
    others = []
    for item in items:
        is_hero = item.type == "hero" or item.placement.strip().lower() == "hero"
        item = item.model_copy(update={
            "prompt": truncate_words(item.prompt, MAX_PROMPT_WORDS),
            "alt_text": item.alt_text.strip()[:MAX_ALT_TEXT] or article.title[:MAX_ALT_TEXT],
        })
        if is_hero:
            if hero is None:
                hero = item.model_copy(update={"type": "hero", "placement": "hero"})
            continue
        if item.placement.strip():
            others.append(item)

    if hero is None:
        hero = hero_only_plan(article)[0]
    return [hero] + others[:MAX_IMAGES - 1]


class ImagePlanner:
    """Plans article images with the image-strategist persona."""

    def __init__(self, agent: GenerativeAgent):
        self.agent = agent

    def build_prompt(self, state: PipelineState) -> str:
        content = state.article_content
        article = state.article
        headings = extract_headings(content.content)
        labels = ["Early", "Middle", "Late"]
        outline = []
        number = 1
        for label, part in zip(labels, split_in_thirds(headings)):
            outline.append(f"**{label} sections**:")
            for heading in part:
                outline.append(f"{number}. {heading}")
                number += 1
        outline_text = "\n".join(outline) if headings else "(the article has no headings)"

        return f"""Plan the images for this article.

## ARTICLE
**Title**: {content.title}
**Keyword**: {article.keyword}
**Type**: {article.type}

**Headings, split into thirds**:
{outline_text}

**Full content**:
{content.content}

## WHAT TO RETURN
Between 1 and {MAX_IMAGES} images:
1. Exactly one hero image (type "hero", placement "hero") that captures the whole article.
2. Up to 3 supporting images (type "section" or "diagram"), only where they add real value.
   Spread them out: ideally one heading from the early third, one from the middle third and one
   from the late third, never in consecutive sections.

For each image:
- type: hero, section or diagram
- placement: "hero", or the heading text copied EXACTLY from the list above
- prompt: at most {MAX_PROMPT_WORDS} words describing the core visual and nothing else.
  Diagrams must be basic: 2-4 steps with icons and arrows, minimal labels.
- alt_text: SEO-friendly description, at most {MAX_ALT_TEXT} characters
- style_modifier: optional, at most 10 words"""

    def plan(self, state: PipelineState, cancel_event: Optional[threading.Event] = None) -> StageResult:
        article = state.article_content
        try:
            plan = self.agent.generate(self.build_prompt(state), ImagePlan, cancel_event=cancel_event)
        except AgentError as e:
            logger.warning(f"⚠️ Image planning failed, falling back to a hero image only: {e}")
            return StageResult.degrade(state.extend(image_plan=hero_only_plan(article)), "hero-only image plan")

        items = normalize_plan(plan.images, article)
        logger.info(f"🖼️ Planned {len(items)} images: " + ", ".join(f"{i.type} ({i.placement})" for i in items))
        return StageResult.ok(state.extend(image_plan=items))
