"""
Research Agent Module - Competitive brief generation.
Turns the analyzed competitor pages into the brief that steers content generation.
"""
import logging
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

from .agents import GenerativeAgent
from .errors import AgentError, StageResult
from .schemas import (
    CompetitiveAnalysis,
    CompetitiveBrief,
    CompetitorContent,
    ContentStructure,
    PipelineState,
    TargetInformation,
    TechnicalElements,
    TopPage,
)
from .utils.linking import normalize_text

logger = logging.getLogger(__name__)

FALLBACK_WORD_COUNT = (1500, 2500)
DEFAULT_KEYWORD_PLACEMENTS = ["title", "introduction", "headings", "conclusion"]
MAX_PROMPT_HEADINGS = 15
MAX_DERIVED_SECTIONS = 8
MAX_DERIVED_LSI = 8

STOPWORDS = {
    "the", "and", "for", "with", "your", "you", "what", "how", "why", "when", "are", "that",
    "this", "from", "best", "into", "about", "does", "can", "our", "will", "which", "who",
}


def word_count_band(counts: List[int]) -> Tuple[int, int]:
    """Target band from observed word counts: (mean, 120% of the longest)."""
    observed = [c for c in counts if c > 0]
    if not observed:
        return FALLBACK_WORD_COUNT
    return round(sum(observed) / len(observed)), round(max(observed) * 1.2)


def derive_sections(competitors: List[CompetitorContent], limit: int = MAX_DERIVED_SECTIONS) -> List[str]:
    """Most common competitor headings, counted once per page, in first-seen order on ties."""
    counter: Counter = Counter()
    labels: Dict[str, str] = {}
    for comp in competitors:
        seen = set()
        for heading in comp.headings:
            key = normalize_text(heading)
            if not key or key in seen or len(heading) > 80:
                continue
            if comp.title and key == normalize_text(comp.title):
                continue
            seen.add(key)
            counter[key] += 1
            labels.setdefault(key, heading.strip())
    first_seen = {key: index for index, key in enumerate(labels)}
    ranked = sorted(counter, key=lambda k: (-counter[k], first_seen[k]))
    return [labels[key] for key in ranked[:limit]]


def derive_lsi_keywords(competitors: List[CompetitorContent], keyword: str,
                        limit: int = MAX_DERIVED_LSI) -> List[str]:
    keyword_words = set(normalize_text(keyword).split())
    words: List[str] = []
    for comp in competitors:
        for heading in comp.headings:
            words.extend(
                w for w in normalize_text(heading).split()
                if len(w) > 3 and w not in STOPWORDS and w not in keyword_words
            )
    return [w for w, _ in Counter(words).most_common(limit)]


def default_technical_elements(keyword: str) -> TechnicalElements:
    return TechnicalElements(
        title_tag_guidelines=f'Include "{keyword}" near the beginning, keep under 60 characters',
        meta_description_guidelines="Write a compelling 150-160 character description that includes the keyword",
        schema_markup_type="Article",
        header_hierarchy="Use H1 for the title, H2 for main sections, H3 for subsections",
    )


def fallback_brief(keyword: str) -> CompetitiveBrief:
    """Brief used when there is no competitor data at all."""
    low, high = FALLBACK_WORD_COUNT
    return CompetitiveBrief(
        target_information=TargetInformation(primary_keyword=keyword, lsi_keywords=[], search_intent="informational"),
        competitive_analysis=CompetitiveAnalysis(target_word_count_min=low, target_word_count_max=high),
        content_structure=ContentStructure(keyword_placements=list(DEFAULT_KEYWORD_PLACEMENTS)),
        technical_elements=default_technical_elements(keyword),
    )


def observed_top_pages(competitors: List[CompetitorContent]) -> List[TopPage]:
    return [
        TopPage(url=c.url, title=c.title, word_count=c.word_count, headings=list(c.headings))
        for c in competitors
    ]


def heuristic_brief(keyword: str, competitors: List[CompetitorContent]) -> CompetitiveBrief:
    """Brief built from the observed competitor data alone."""
    low, high = word_count_band([c.word_count for c in competitors])
    return CompetitiveBrief(
        target_information=TargetInformation(
            primary_keyword=keyword,
            lsi_keywords=derive_lsi_keywords(competitors, keyword),
            search_intent="informational",
        ),
        competitive_analysis=CompetitiveAnalysis(
            target_word_count_min=low,
            target_word_count_max=high,
            top_pages=observed_top_pages(competitors),
        ),
        content_structure=ContentStructure(
            required_sections=derive_sections(competitors),
            keyword_placements=list(DEFAULT_KEYWORD_PLACEMENTS),
        ),
        technical_elements=default_technical_elements(keyword),
    )


def reconcile_brief(brief: CompetitiveBrief, keyword: str,
                    competitors: List[CompetitorContent]) -> CompetitiveBrief:
    """Overwrite model-reported facts with what was actually observed."""
    low, high = word_count_band([c.word_count for c in competitors])

    main_points_by_url = {page.url.rstrip('/'): page.main_points for page in brief.competitive_analysis.top_pages}
    top_pages = []
    for index, page in enumerate(observed_top_pages(competitors)):
        points = main_points_by_url.get(page.url.rstrip('/'))
        if points is None and index < len(brief.competitive_analysis.top_pages):
            points = brief.competitive_analysis.top_pages[index].main_points
        top_pages.append(page.model_copy(update={"main_points": list(points or [])}))

    sections = [s.strip() for s in brief.content_structure.required_sections if s and s.strip()]
    if not sections:
        logger.info("Model returned no required sections, deriving them from competitor headings")
        sections = derive_sections(competitors)

    return brief.model_copy(update={
        "target_information": brief.target_information.model_copy(update={"primary_keyword": keyword}),
        "competitive_analysis": brief.competitive_analysis.model_copy(update={
            "target_word_count_min": low,
            "target_word_count_max": high,
            "top_pages": top_pages,
        }),
        "content_structure": brief.content_structure.model_copy(update={
            "required_sections": sections,
            "keyword_placements": brief.content_structure.keyword_placements or list(DEFAULT_KEYWORD_PLACEMENTS),
        }),
    })


class ResearchAgent:
    """Builds the competitive brief with the SERP-analyzer persona."""

    def __init__(self, agent: GenerativeAgent):
        self.agent = agent

    def build_prompt(self, keyword: str, competitors: List[CompetitorContent]) -> str:
        blocks = []
        for idx, comp in enumerate(competitors, 1):
            headings = "\n".join(f"  - {h}" for h in comp.headings[:MAX_PROMPT_HEADINGS])
            more = len(comp.headings) - MAX_PROMPT_HEADINGS
            if more > 0:
                headings += f"\n  ... plus {more} more headings"
            blocks.append(
                f"### Competitor {idx}: {comp.title}\n"
                f"- URL: {comp.url}\n"
                f"- Meta description: {comp.meta_description or 'n/a'}\n"
                f"- Word count: {comp.word_count}\n"
                f"- Headings ({len(comp.headings)}):\n{headings}\n"
                f"- Preview: {comp.content_preview}\n"
            )

        return f"""Analyze the pages currently ranking for "{keyword}" and write a content brief for an article that can outrank them.

## COMPETITOR PAGES
{chr(10).join(blocks)}
## WHAT THE BRIEF MUST CONTAIN

1. Target information
   - primary_keyword: "{keyword}"
   - lsi_keywords: 5-10 related terms that recur across several competitors (variants, heading vocabulary, jargon)
   - search_intent: one of informational, commercial, transactional, navigational

2. Competitive analysis
   - target_word_count_min / target_word_count_max: a band about 10-20% above the competitor average
   - top_pages: for each competitor, its url, title, word count and 3-5 main_points it covers
   - content_gaps: 3-7 topics the competitors miss or only skim (missing details, perspectives, data or examples)
   - unanswered_questions: 3-7 concrete questions a reader still has after reading them

3. Content structure
   - required_sections: 5-10 sections the article must have, taken from recurring heading patterns.
     Write short section titles such as "How It Works" or "Common Mistakes", never full sentences.
     These become the article outline.
   - keyword_placements: where the keyword goes (title, introduction, first_h2, headings, body, conclusion, meta)
   - image_suggestions: 3-5 specific visuals (diagram of X, chart comparing Y, screenshot of Z)
   - internal_linking_opportunities: 2-4 kinds of related content worth linking to

4. Technical elements
   - title_tag_guidelines: concrete rules for the title tag (keyword position, under 60 characters, hook)
   - meta_description_guidelines: concrete rules (keyword early, key benefit, call to action, 150-160 characters)
   - schema_markup_type: Article, HowTo, FAQPage, Product or VideoObject
   - header_hierarchy: the expected H1/H2/H3 layout

Ground every recommendation in the competitor data above and keep it specific and actionable."""

    def generate_brief(self, state: PipelineState, cancel_event: Optional[threading.Event] = None) -> StageResult:
        keyword = state.article.keyword
        competitors = state.competitor_content

        if not competitors:
            logger.info("No competitor content, using the fallback brief")
            return StageResult.ok(state.extend(competitive_brief=fallback_brief(keyword)))

        logger.info(f"🧠 Generating competitive brief from {len(competitors)} competitors")
        try:
            brief = self.agent.generate(self.build_prompt(keyword, competitors), CompetitiveBrief,
                                        cancel_event=cancel_event)
        except AgentError as e:
            logger.warning(f"⚠️ Brief generation failed, building it from competitor data: {e}")
            return StageResult.degrade(
                state.extend(competitive_brief=heuristic_brief(keyword, competitors)),
                "brief built from competitor data",
            )

        brief = reconcile_brief(brief, keyword, competitors)
        analysis = brief.competitive_analysis
        logger.info(f"✅ Brief ready: {len(brief.content_structure.required_sections)} sections, "
                    f"{len(analysis.content_gaps)} gaps, target {analysis.target_word_count_min}-"
                    f"{analysis.target_word_count_max} words")
        return StageResult.ok(state.extend(competitive_brief=brief))
