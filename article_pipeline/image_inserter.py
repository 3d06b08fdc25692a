"""
Image Inserter.
Splices generated images into the markdown body under the heading each one was planned for.
Deterministic: no model calls.
"""

import logging
import re
from typing import List, Optional

from .errors import StageResult
from .schemas import GeneratedImage, PipelineState

logger = logging.getLogger(__name__)

HEADING_PREFIX = re.compile(r'^#+\s*')


def image_markdown(image: GeneratedImage) -> str:
    return f"![{image.alt_text}]({image.url})"


def heading_text(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped.startswith('#'):
        return None
    return HEADING_PREFIX.sub('', stripped).strip()


def find_heading_index(lines: List[str], placement: str) -> Optional[int]:
    """Line index of the heading that best matches ``placement``.

    An exact case-insensitive match wins outright. Otherwise the heading that contains,
    or is contained in, the placement with the largest max(len(heading), len(placement))
    wins, the first one on ties.
    """
    target = placement.strip().lower()
    if not target:
        return None

    best_index = None
    best_score = 0
    for index, line in enumerate(lines):
        text = heading_text(line)
        if not text:
            continue
        text = text.lower()
        if text == target:
            return index
        if target in text or text in target:
            score = max(len(text), len(target))
            if score > best_score:
                best_score = score
                best_index = index
    return best_index


def insert_after_heading(lines: List[str], heading_index: int, markdown: str) -> List[str]:
    position = heading_index + 1
    while position < len(lines) and not lines[position].strip():
        position += 1

    block = [markdown]
    if position == heading_index + 1:
        block.insert(0, '')
    if position < len(lines):
        block.append('')
    return lines[:position] + block + lines[position:]


def insert_images(content: str, images: List[GeneratedImage]) -> str:
    """Return ``content`` with every non-hero image placed under its heading.

    Images already present in the body are left alone, so running this twice changes nothing.
    Images whose placement matches no heading are appended at the end.
    """
    if not images:
        return content

    ordered = sorted(images, key=lambda image: not image.is_hero)
    lines = content.split('\n')

    for image in ordered:
        if image.is_hero:
            logger.debug("Skipping hero image (returned as the featured image)")
            continue
        if f"]({image.url})" in '\n'.join(lines):
            logger.debug(f"Image already in content, skipping: {image.url}")
            continue

        markdown = image_markdown(image)
        heading_index = find_heading_index(lines, image.placement)
        if heading_index is not None:
            lines = insert_after_heading(lines, heading_index, markdown)
            logger.info(f"Inserted {image.type} image after heading: {lines[heading_index].strip()}")
        else:
            logger.info(f"No heading matches '{image.placement}', appending image at the end")
            while lines and not lines[-1].strip():
                lines.pop()
            lines += ['', markdown]

    return '\n'.join(lines)


def insert_generated_images(state: PipelineState) -> StageResult:
    """Pipeline stage: splice ``state.images`` into the generated article."""
    if not state.images:
        logger.info("No images to insert into content")
        return StageResult.ok(state)

    article = state.article_content
    content = insert_images(article.content, state.images)
    inline = sum(1 for image in state.images if not image.is_hero)
    logger.info(f"✅ Inserted {inline} images into content")
    return StageResult.ok(state.extend(article_content=article.model_copy(update={"content": content})))
