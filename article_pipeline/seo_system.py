"""
SEO prompt assembly for article generation.

This module provides:
- Target word-count bands per content length
- The banned filler-phrase list
- SEOPromptBuilder, which turns the brief, product settings and link candidates into the writer prompt
"""

import os
import json
import logging
from typing import Dict, List, Optional, Tuple

from .schemas import ArticleRequest, CompetitiveBrief, LinkCandidate, ProductConfig
from .utils import humanize_identifier

logger = logging.getLogger(__name__)

CONTENT_LENGTH_WORDS: Dict[str, Tuple[int, int]] = {
    "short": (1200, 1600),
    "medium": (1600, 2400),
    "long": (2400, 3200),
    "comprehensive": (3200, 4200),
}
DEFAULT_CONTENT_LENGTH = "medium"

BANNED_PHRASES = [
    "In today's digital age",
    "It's important to note",
    "In conclusion",
    "Delve into",
    "Unlock",
    "Revolutionize",
    "Game-changing",
    "Cutting-edge",
    "Leverage",
    "Seamless",
]


def target_word_count(content_length: Optional[str]) -> Tuple[int, int]:
    return CONTENT_LENGTH_WORDS.get(content_length or DEFAULT_CONTENT_LENGTH,
                                    CONTENT_LENGTH_WORDS[DEFAULT_CONTENT_LENGTH])


def article_type_label(article: ArticleRequest) -> str:
    """'Guide: How To', 'Listicle', ..."""
    label = article.type.capitalize()
    if article.subtype:
        label += f": {humanize_identifier(article.subtype)}"
    return label


def _format_metric(value: Optional[float], prefix: str = "") -> str:
    if value is None:
        return "Unknown"
    if float(value).is_integer():
        return f"{prefix}{int(value)}"
    return f"{prefix}{value}"


class SEOPromptBuilder:
    """Builds SEO-optimized prompts for content generation."""

    def __init__(self, guidelines_path: Optional[str] = None):
        self.guidelines_path = guidelines_path or os.environ.get("BRAND_GUIDELINES_FILE", "brand_guidelines.json")
        self._load_guidelines()

    def _load_guidelines(self):
        """Load brand guidelines (keyword-triggered strict facts) from JSON file."""
        self.guidelines = []
        if os.path.exists(self.guidelines_path):
            try:
                with open(self.guidelines_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                    self.guidelines = data.get("guidelines", [])
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading guidelines: {e}")

    def get_applicable_guidelines(self, keyword: str, context: str = "") -> List[str]:
        """Facts whose trigger keywords appear in the article keyword or context."""
        text = (keyword + " " + context).upper()
        facts: List[str] = []
        for g in self.guidelines:
            if any(kw.upper() in text for kw in g.get("keywords", [])):
                facts.extend(f for f in g.get("strict_facts", []) if f not in facts)
        return facts

    # -- sections ---------------------------------------------------------

    def _article_details(self, article: ArticleRequest) -> str:
        low, high = target_word_count(article.content_length)
        length = article.content_length or DEFAULT_CONTENT_LENGTH
        lines = [
            "## ARTICLE DETAILS",
            "",
            f"**Target Keyword**: {article.keyword}",
            f"**Article Title**: {article.title or '[Write an engaging, SEO-optimized title for the keyword]'}",
            f"**Article Type**: {article_type_label(article)}",
            f"**Content Length**: {length} (target: {low}-{high} words)",
            "",
            "**SEO Metrics**:",
            f"- Search Volume: {_format_metric(article.search_volume)}",
            f"- Keyword Difficulty: {_format_metric(article.keyword_difficulty)}",
        ]
        if article.cpc is not None:
            lines.append(f"- CPC: {_format_metric(article.cpc, '$')}")
        if article.competition is not None:
            lines.append(f"- Competition: {_format_metric(article.competition)}")
        return "\n".join(lines)

    def _brief_section(self, article: ArticleRequest, brief: CompetitiveBrief) -> str:
        target = brief.target_information
        analysis = brief.competitive_analysis
        structure = brief.content_structure
        technical = brief.technical_elements
        low, high = target_word_count(article.content_length)

        lines = [
            "## COMPETITIVE ANALYSIS BRIEF",
            "",
            f'Built from the top-ranking pages for "{article.keyword}".',
            "",
            "### Target Information",
            f"- **Primary Keyword**: {target.primary_keyword}",
            f"- **Search Intent**: {target.search_intent}",
        ]
        if target.lsi_keywords:
            lines.append(f"- **LSI Keywords to Include**: {', '.join(target.lsi_keywords)}")

        lines += ["", "### Competitive Insights", f"- **Target Word Count**: {low}-{high} words"]
        if analysis.top_pages:
            lines += ["", "**Top Ranking Pages**:"]
            for idx, page in enumerate(analysis.top_pages, 1):
                lines.append(f"{idx}. {page.title} ({page.word_count} words)")
                lines.append(f"   URL: {page.url}")
                if page.headings:
                    lines.append(f"   Key sections: {', '.join(page.headings[:5])}")
                if page.main_points:
                    lines.append(f"   Main points: {'; '.join(page.main_points)}")
        if analysis.content_gaps:
            lines += ["", "**Content Gaps to Fill**:"] + [f"- {gap}" for gap in analysis.content_gaps]
        if analysis.unanswered_questions:
            lines += ["", "**Unanswered Questions to Address**:"] + [f"- {q}" for q in analysis.unanswered_questions]

        lines += ["", "### Content Structure Recommendations"]
        if structure.required_sections:
            lines.append(f"**Required Sections**: {', '.join(structure.required_sections)}")
        if structure.keyword_placements:
            lines.append(f"**Keyword Placement**: {', '.join(structure.keyword_placements)}")
        if structure.image_suggestions:
            lines.append(f"**Image Suggestions**: {'; '.join(structure.image_suggestions)}")
        if structure.internal_linking_opportunities:
            lines.append(f"**Internal Linking**: {'; '.join(structure.internal_linking_opportunities)}")

        lines += [
            "",
            "### Technical SEO Requirements",
            f"- **Title Tag**: {technical.title_tag_guidelines}",
            f"- **Meta Description**: {technical.meta_description_guidelines}",
            f"- **Schema Markup**: {technical.schema_markup_type}",
            f"- **Header Hierarchy**: {technical.header_hierarchy}",
            "",
            "Use this analysis to inform the article, never to copy competitors. The article must be original, "
            "more complete than the ranking pages and fill the gaps listed above.",
        ]
        return "\n".join(lines)

    def _product_section(self, product: ProductConfig) -> str:
        return "\n".join([
            "## PRODUCT/BRAND CONTEXT",
            "",
            f"**Product/Brand**: {product.name or 'Not specified'}",
            f"**Description**: {product.description or 'Not specified'}",
            f"**Website**: {product.url or 'Not specified'}",
            f"**Target Audiences**: {', '.join(product.target_audiences) or 'General audience'}",
            f"**Language**: {product.language}",
            f"**Country**: {product.country}",
        ])

    def _preferences_section(self, article: ArticleRequest, product: ProductConfig) -> str:
        lines = ["## CONTENT PREFERENCES", "", f"**Writing Style**: {product.article_style}"]
        if product.global_instructions:
            lines.append(f"**Custom Instructions**: {product.global_instructions}")
        if product.include_emojis:
            lines.append("**Emojis**: Use a few, only where they help readability")
        else:
            lines.append("**Emojis**: Do not use emojis")
        if product.include_youtube_video:
            lines.append("**Video Placeholder**: Mark one spot where a video would help, as "
                         "[VIDEO: suggested topic or title]")
        if product.include_call_to_action:
            lines.append(f"**Call-to-Action**: Near the end, add a natural call to action for "
                         f"{product.name or 'the product'} linking to {product.url}")
        if product.include_infographics:
            lines.append("**Infographic Placeholders**: Mark 1-2 spots for an infographic, as "
                         "[INFOGRAPHIC: data or concept to visualize]")

        facts = self.get_applicable_guidelines(article.keyword, product.description or "")
        if facts:
            lines += ["", "**Brand facts (must be respected)**:"] + [f"- {fact}" for fact in facts]
        return "\n".join(lines)

    def _internal_links_section(self, product: ProductConfig, candidates: List[LinkCandidate]) -> str:
        if product.internal_links <= 0:
            return ""
        if not candidates:
            return (f"**Internal Links**: {product.internal_links} internal links were requested, but no "
                    "existing pages are available yet. Do not add internal links.")

        count = min(product.internal_links, len(candidates))
        listing = []
        for idx, link in enumerate(candidates, 1):
            keyword = f" (Keyword: {link.keyword})" if link.keyword else ""
            listing.append(f"{idx}. **{link.title}**{keyword}\n   - URL: {link.url}")

        return "\n".join([
            f"**Internal Links**: Include exactly {count} internal links to pages from the list below, "
            "each placed in the section it is most relevant to.",
            "",
            "## AVAILABLE PAGES FOR INTERNAL LINKING",
            "",
            "\n".join(listing),
            "",
            "**Rules for internal links**:",
            "- Use markdown links: [anchor text](URL)",
            "- Copy the URL exactly as listed, never invent or modify a URL",
            "- Write descriptive anchor text, never \"click here\"",
            "- Spread the links across the article rather than grouping them",
        ])

    def _reference_articles_section(self, product: ProductConfig) -> str:
        if not product.best_articles:
            return ""
        refs = "\n".join(f"{idx}. {url}" for idx, url in enumerate(product.best_articles, 1))
        return ("## REFERENCE ARTICLES\n\n"
                "Match the tone and style of these articles without copying them:\n" + refs)

    def _writing_rules(self, article: ArticleRequest) -> str:
        low, high = target_word_count(article.content_length)
        banned = ", ".join(f'"{p}"' for p in BANNED_PHRASES)
        return f"""## WRITING RULES

### DO
- Sound like an experienced human writer: conversational, confident, approachable
- Mix short and long sentences, write in the active voice
- Back claims with specific examples, numbers and concrete details
- Give actionable takeaways and front-load the key information in each section
- Use subheadings, lists, bold text and quotes so the page is easy to scan
- Use the keyword naturally (around 1-2% density, readability first)

### DON'T
- Use these phrases or close variants: {banned}
- Write formulaic introductions or conclusions, fluff, or template-like passages
- Stuff keywords or overuse transitions such as "however", "moreover", "furthermore"
- Make vague claims without support, or slip into promotional language outside the call to action
- Leave walls of unbroken text

## SEO OPTIMIZATION

- Primary keyword: "{article.keyword}"
- The keyword must appear in the title (near the start), in the first 100 words, in at least one H2,
  naturally throughout the body, in the meta description and in the slug
- Use semantic variations and long-tail phrasings where they read naturally
- Keep a clean heading hierarchy (H1 > H2 > H3) and satisfy the search intent completely
- Stay within {low}-{high} words

## OUTPUT FORMAT

Return four fields:
1. title: the H1, including the keyword
2. content: the article body in clean Markdown (## for H2, ### for H3, lists, bold, blockquotes)
3. meta_description: 150-160 characters, including the keyword
4. slug: lowercase, hyphen-separated, keyword-rich

The content field holds ONLY the body:
- Do NOT repeat the title as a # heading
- Do NOT start with an image; the first character must be '#' or text, never '!'
- Images inside the body are fine, just not at the very beginning"""

    # -- entry point ------------------------------------------------------

    def build_article_prompt(self, article: ArticleRequest, product: ProductConfig,
                             brief: CompetitiveBrief, link_candidates: List[LinkCandidate],
                             structure_guidelines: str) -> str:
        """Assemble the full content-generation prompt."""
        sections = [
            "You are writing an SEO-optimized article that must read as if an expert human wrote it.",
            self._article_details(article),
            self._brief_section(article, brief),
            self._product_section(product),
            self._preferences_section(article, product),
            self._internal_links_section(product, link_candidates),
            self._reference_articles_section(product),
            "## ARTICLE STRUCTURE\n\n" + structure_guidelines,
            self._writing_rules(article),
            f"Now write the article. Check before answering that it follows the {article_type_label(article)} "
            "structure, stays in the word range, answers the search intent and contains none of the banned phrases.",
        ]
        return "\n\n".join(section for section in sections if section)
