"""
Outline guidance for the content writer.

With competitor data the outline adapts to the brief; without it, one of the fixed
outlines for the article's type/subtype is used.
"""

from typing import Dict, List, NamedTuple, Optional

from .schemas import ArticleRequest, CompetitiveBrief
from .utils import humanize_identifier


class Section(NamedTuple):
    heading: str
    budget: str
    points: List[str]


STANDARD_OUTLINES: Dict[str, Dict] = {
    "how_to": {
        "label": "HOW-TO GUIDE",
        "goal": "Walk the reader through the task with clear, ordered steps.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "Open with the problem the reader is trying to solve",
                "Say what they will be able to do by the end",
                "Mention time, difficulty or prerequisites",
            ]),
            Section("Background", "200-300 words, optional", [
                "Only the context needed to follow the steps",
                "Define terms the steps rely on",
            ]),
            Section("Step-by-Step Instructions", "100-200 words per step", [
                "5-10 steps, each under its own heading such as \"Step 1: Set Up the Account\"",
                "Concrete examples, commands or screen references in every step",
                "Call out pitfalls and pro tips where they occur",
            ]),
            Section("Tips and Best Practices", "200-300 words", [
                "Advice that goes beyond the basic steps",
                "Frequent mistakes and how to avoid them",
            ]),
            Section("Conclusion", "100-150 words", [
                "What the reader has achieved",
                "A sensible next step",
            ]),
        ],
    },
    "explainer": {
        "label": "EXPLAINER GUIDE",
        "goal": "Make the topic understandable from first principles.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "Why the topic matters to the reader",
                "The concepts the article will cover",
            ]),
            Section("What Is [Topic]?", "300-400 words", [
                "A plain definition followed by the important nuances",
                "An analogy or everyday example",
                "Misconceptions worth correcting",
            ]),
            Section("How It Works", "400-600 words", [
                "The mechanism, explained in a logical order",
                "A diagram or flow description where it helps",
            ]),
            Section("Key Components", "400-600 words", [
                "3-5 parts, each explained with an example",
                "How the parts relate to each other",
            ]),
            Section("Real-World Applications", "300-400 words", [
                "Concrete uses, case studies or results",
            ]),
            Section("Common Questions", "200-300 words", [
                "Frequent questions and edge cases",
            ]),
            Section("Conclusion", "100-150 words", [
                "The key insights in a few sentences",
                "Where to learn more",
            ]),
        ],
    },
    "comparison": {
        "label": "COMPARISON GUIDE",
        "goal": "Help the reader pick the right option for their situation.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "The decision being made and who faces it",
                "The options under comparison",
            ]),
            Section("Overview of the Options", "300-400 words", [
                "A short introduction to each of the 2-5 options",
                "The main differentiators up front",
            ]),
            Section("Detailed Comparison", "800-1200 words", [
                "5-8 criteria such as features, pricing, ease of use, performance, support, integrations",
                "A comparison table where it makes the data easier to scan",
                "Specific numbers and examples, stated without bias",
            ]),
            Section("Pros and Cons", "400-600 words", [
                "Real strengths and limitations of each option",
            ]),
            Section("When to Choose Each Option", "300-400 words", [
                "Match each option to a scenario or reader profile",
            ]),
            Section("Conclusion and Recommendation", "150-200 words", [
                "A nuanced recommendation rather than a single winner",
            ]),
        ],
    },
    "reference": {
        "label": "REFERENCE GUIDE",
        "goal": "Build a resource readers come back to and scan quickly.",
        "sections": [
            Section("Introduction", "100-150 words", [
                "What the reference covers and who it is for",
                "How the guide is organized",
            ]),
            Section("Quick Reference", "200-300 words, optional", [
                "A cheat sheet of the most used information, as a table or list",
            ]),
            Section("Reference Sections", "5-10 sections", [
                "Logical categories, each with a description, specifics and usage examples",
                "Identical formatting across sections",
                "Tables, lists and code or syntax samples where relevant",
            ]),
            Section("Additional Resources", "100-150 words", [
                "Related documentation and further reading",
            ]),
        ],
    },
    "round_up": {
        "label": "ROUND-UP LISTICLE",
        "goal": "Present the best options and make the choice easy.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "Why this list is worth reading",
                "The selection criteria",
            ]),
            Section("Quick Summary", "100-150 words, optional", [
                "Top picks for different needs",
            ]),
            Section("The List", "7-10 items work best (5-15 allowed)", [
                "Heading per item, e.g. \"1. [Name] - Best for [Use Case]\"",
                "Overview (50-100 words), key features (100-150 words), what stands out (50-100 words)",
                "Best for (about 50 words) and pricing or access where relevant",
                "The same structure for every item, with specific details",
            ]),
            Section("How to Choose", "200-300 words", [
                "The factors that should drive the decision",
            ]),
            Section("Conclusion", "100-150 words", [
                "Recap of the top recommendations",
            ]),
        ],
    },
    "resources": {
        "label": "RESOURCES LISTICLE",
        "goal": "Curate the resources that are genuinely worth the reader's time.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "What kind of resources follow and who they help",
            ]),
            Section("The Resource List", "3-6 categories of 3-8 resources", [
                "Name and link reference for each resource",
                "Description (50-100 words) and why it is valuable (50-75 words)",
                "Resource type and access details (free, paid, requirements)",
            ]),
            Section("Getting the Most from These Resources", "200-300 words", [
                "A suggested order or learning path",
            ]),
            Section("Conclusion", "100-150 words", [
                "Invite readers to explore and share their favourites",
            ]),
        ],
    },
    "examples": {
        "label": "EXAMPLES LISTICLE",
        "goal": "Teach through real cases and the lessons they carry.",
        "sections": [
            Section("Introduction", "150-200 words", [
                "What the examples show and what the reader will learn",
            ]),
            Section("The Examples", "5-12 examples", [
                "Heading per example, e.g. \"Example 1: [Company] - [Lesson]\"",
                "Context (50-100 words), what they did (100-150 words), results (50-100 words)",
                "Key takeaway (50-75 words) backed by specific details",
            ]),
            Section("Common Patterns", "300-400 words", [
                "What the examples share and where they differ",
            ]),
            Section("How to Apply These Lessons", "200-300 words", [
                "Practical steps the reader can take",
            ]),
            Section("Conclusion", "100-150 words", [
                "The key lessons and a push to act",
            ]),
        ],
    },
}

GENERIC_OUTLINES: Dict[str, List[Section]] = {
    "guide": [
        Section("Introduction", "150-200 words", ["The reader's problem and what the guide delivers"]),
        Section("Main Sections", "4-7 H2 sections", [
            "Each section covers one aspect of the topic in depth",
            "Examples, data and practical advice in every section",
        ]),
        Section("Conclusion", "100-150 words", ["Key takeaways and a next step"]),
    ],
    "listicle": [
        Section("Introduction", "150-200 words", ["What the list covers and how items were chosen"]),
        Section("The List", "7-10 items", ["One heading per item with the same structure for each"]),
        Section("Conclusion", "100-150 words", ["The standout picks and a next step"]),
    ],
}


def _render_sections(sections: List[Section]) -> str:
    lines = []
    for idx, section in enumerate(sections, 1):
        lines.append(f"{idx}. **{section.heading}** ({section.budget})")
        lines.extend(f"   - {point}" for point in section.points)
    return "\n".join(lines)


def _numbered(items: List[str], empty: str, suffix: str = "") -> str:
    if not items:
        return empty
    return "\n".join(f"{idx}. {item}{suffix}" for idx, item in enumerate(items, 1))


def generate_standard_structure(article: ArticleRequest) -> str:
    header = (
        f"## CONTENT STRUCTURE (standard {article.type})\n\n"
        "Little competitive data is available, so follow the standard outline for this kind of article.\n"
    )
    outline = STANDARD_OUTLINES.get(article.subtype or "")
    if outline is None:
        return f"{header}\n{_render_sections(GENERIC_OUTLINES[article.type])}"
    return f"{header}\nThis is a {outline['label']}. {outline['goal']}\n\n{_render_sections(outline['sections'])}"


def generate_adaptive_structure(brief: CompetitiveBrief, article: ArticleRequest) -> str:
    analysis = brief.competitive_analysis
    sections = brief.content_structure.required_sections
    target = round((analysis.target_word_count_min + analysis.target_word_count_max) / 2)
    kind = article.type + (f" / {humanize_identifier(article.subtype)}" if article.subtype else "")

    patterns = []
    for idx, page in enumerate(analysis.top_pages, 1):
        approach = "; ".join(page.main_points[:3]) or "broad coverage of the topic"
        patterns.append(
            f"**Pattern {idx}** ({page.title}): {' > '.join(page.headings[:5]) or 'no clear headings'}\n"
            f"   - Approach: {approach}\n"
            f"   - Length: {page.word_count} words"
        )

    flow = ["1. **Introduction** (150-200 words): the problem, what the article covers, the gaps it fills"]
    for idx, section in enumerate(sections):
        extra = f"address the gap \"{analysis.content_gaps[idx]}\"" if idx < len(analysis.content_gaps) else "add an insight competitors lack"
        flow.append(f"{idx + 2}. **{section}**: specific examples and data; {extra}")
    if not sections:
        flow.append("2. **Main sections**: follow the patterns above, each section adding something new")
    flow.append("Last. **Conclusion** (100-150 words): key takeaways and a concrete next step")

    visuals = _numbered(
        brief.content_structure.image_suggestions,
        "Add images, diagrams or other visuals wherever they make a point clearer",
    )

    return f"""## ADAPTIVE CONTENT STRUCTURE (from SERP analysis)

### 1. Required sections
The article MUST include these sections, drawn from what the ranking pages cover:
{_numbered(sections, "(none identified, use the usual structure for this kind of article)")}

### 2. Length and depth
- Target length: {analysis.target_word_count_min}-{analysis.target_word_count_max} words, aim for about {target} and go beyond the competitors' depth
- Every section must carry real substance, never filler

### 3. What the ranking pages do
{chr(10).join(patterns)}

Borrow what works from these patterns without copying them.

### 4. Content gaps (your advantage)
{_numbered(analysis.content_gaps, "(no major gaps, win by doing everything better)", " - give this its own section")}

### 5. Questions to answer explicitly
{_numbered(analysis.unanswered_questions, "(no open questions, make coverage complete)")}

### 6. Recommended flow ({kind})
{chr(10).join(flow)}

### 7. Visuals
{visuals}

If the data points to an organization that would serve readers better, adapt it. The goal is to beat these pages, not to mirror them."""


def generate_structure_guidelines(brief: Optional[CompetitiveBrief], article: ArticleRequest) -> str:
    if brief is not None and brief.has_competitor_data:
        return generate_adaptive_structure(brief, article)
    return generate_standard_structure(article)
