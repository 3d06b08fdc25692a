"""
Data models for the article generation pipeline.

Every record that crosses a stage boundary is a Pydantic model. Records held by
the pipeline state are frozen: stages return updated copies instead of mutating
what they were given.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ContentType = Literal["guide", "listicle"]
GuideSubtype = Literal["how_to", "explainer", "comparison", "reference"]
ListicleSubtype = Literal["round_up", "resources", "examples"]
ContentLength = Literal["short", "medium", "long", "comprehensive"]
ImageStyle = Literal["brand-text", "photographic", "illustration", "abstract", "minimalist"]
ImageType = Literal["hero", "section", "diagram"]
LinkSource = Literal["sitemap", "database"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Inputs resolved by the article loader
# ---------------------------------------------------------------------------

class ArticleRequest(_Frozen):
    id: str
    product_id: str
    keyword: str
    title: Optional[str] = None
    type: ContentType = "guide"
    guide_subtype: Optional[GuideSubtype] = None
    listicle_subtype: Optional[ListicleSubtype] = None
    content_length: Optional[ContentLength] = None
    search_volume: Optional[float] = None
    keyword_difficulty: Optional[float] = None
    cpc: Optional[float] = None
    competition: Optional[float] = None

    @field_validator("keyword")
    @classmethod
    def _keyword_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("keyword must not be empty")
        return value

    @model_validator(mode="after")
    def _subtype_matches_type(self) -> "ArticleRequest":
        if self.guide_subtype and self.listicle_subtype:
            raise ValueError("an article cannot have both a guide and a listicle subtype")
        if self.type == "guide" and self.listicle_subtype:
            raise ValueError("listicle_subtype is only valid for listicles")
        if self.type == "listicle" and self.guide_subtype:
            raise ValueError("guide_subtype is only valid for guides")
        return self

    @property
    def subtype(self) -> Optional[str]:
        return self.guide_subtype or self.listicle_subtype


class LinkCandidate(_Frozen):
    title: str
    keyword: str = ""
    url: str
    id: Optional[str] = None


class ProductConfig(_Frozen):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    url: str = ""
    language: str = "en"
    country: str = "US"
    target_audiences: List[str] = Field(default_factory=list)
    article_style: str = "informative"
    internal_links: int = Field(default=3, ge=0, le=10)
    include_youtube_video: bool = False
    include_call_to_action: bool = False
    include_infographics: bool = False
    include_emojis: bool = False
    global_instructions: Optional[str] = None
    best_articles: List[str] = Field(default_factory=list, max_length=3)
    image_style: ImageStyle = "brand-text"
    brand_color: str = "#000000"
    remove_watermark: bool = False
    link_source: LinkSource = "database"
    detected_links: List[LinkCandidate] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------

class SerpResult(_Frozen):
    position: int
    url: str
    title: str
    description: str = ""
    html: Optional[str] = None


class CompetitorContent(_Frozen):
    url: str
    title: str
    meta_description: str = ""
    headings: List[str] = Field(default_factory=list)
    word_count: int = 0
    content_preview: str = ""


class TargetInformation(BaseModel):
    primary_keyword: str = Field(description="The main keyword being targeted")
    lsi_keywords: List[str] = Field(default_factory=list, description="5-10 semantic keywords seen across competitors")
    search_intent: str = Field(default="informational", description="informational, commercial, transactional or navigational")


class TopPage(BaseModel):
    url: str
    title: str
    word_count: int = 0
    main_points: List[str] = Field(default_factory=list, description="3-5 main points covered by the page")
    headings: List[str] = Field(default_factory=list)


class CompetitiveAnalysis(BaseModel):
    target_word_count_min: int = Field(description="Minimum target word count")
    target_word_count_max: int = Field(description="Maximum target word count")
    top_pages: List[TopPage] = Field(default_factory=list)
    content_gaps: List[str] = Field(default_factory=list, description="3-7 missing or under-covered topics")
    unanswered_questions: List[str] = Field(default_factory=list, description="3-7 questions readers still have")


class ContentStructure(BaseModel):
    required_sections: List[str] = Field(default_factory=list, description="5-10 short section titles, not sentences")
    keyword_placements: List[str] = Field(default_factory=list)
    image_suggestions: List[str] = Field(default_factory=list)
    internal_linking_opportunities: List[str] = Field(default_factory=list)


class TechnicalElements(BaseModel):
    title_tag_guidelines: str = ""
    meta_description_guidelines: str = ""
    schema_markup_type: str = "Article"
    header_hierarchy: str = ""


class CompetitiveBrief(BaseModel):
    target_information: TargetInformation
    competitive_analysis: CompetitiveAnalysis
    content_structure: ContentStructure
    technical_elements: TechnicalElements

    @property
    def has_competitor_data(self) -> bool:
        return len(self.competitive_analysis.top_pages) > 0


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class GeneratedArticle(_Frozen):
    title: str = Field(description="The final article title (H1)")
    content: str = Field(description="Complete article content in markdown format, including all sections and formatting")
    meta_description: str = Field(description="SEO meta description, 150-160 characters")
    slug: str = Field(description="URL-friendly slug")


class ImagePlanItem(_Frozen):
    type: ImageType
    placement: str = Field(description='"hero" or the EXACT heading text the image belongs under')
    prompt: str = Field(description="Concise image generation prompt (max 30 words)")
    alt_text: str = Field(description="SEO-optimized alt text (max 100 characters)")
    style_modifier: Optional[str] = Field(default=None, description="Optional style instructions (max 10 words)")


class ImagePlan(BaseModel):
    images: List[ImagePlanItem] = Field(default_factory=list, description="1-4 images; exactly one hero")


class GeneratedImage(_Frozen):
    url: str
    type: ImageType
    placement: str
    alt_text: str

    @property
    def is_hero(self) -> bool:
        return self.type == "hero" or self.placement.strip().lower() == "hero"


# ---------------------------------------------------------------------------
# Pipeline state and result
# ---------------------------------------------------------------------------

class PipelineState(_Frozen):
    article_id: str
    article: Optional[ArticleRequest] = None
    product: Optional[ProductConfig] = None
    serp_results: List[SerpResult] = Field(default_factory=list)
    link_candidates: List[LinkCandidate] = Field(default_factory=list)
    competitor_content: List[CompetitorContent] = Field(default_factory=list)
    competitive_brief: Optional[CompetitiveBrief] = None
    article_content: Optional[GeneratedArticle] = None
    image_plan: List[ImagePlanItem] = Field(default_factory=list)
    images: List[GeneratedImage] = Field(default_factory=list)
    degradations: List[str] = Field(default_factory=list)

    def extend(self, **updates) -> "PipelineState":
        """Return a copy with ``updates`` applied; populated fields are never cleared."""
        for name, value in updates.items():
            if name not in type(self).model_fields:
                raise AttributeError(f"Unknown pipeline state field: {name}")
            current = getattr(self, name)
            if current and not value and name != "degradations":
                raise ValueError(f"Refusing to discard populated pipeline state field: {name}")
        return self.model_copy(update=updates)

    def mark_degraded(self, stage: str) -> "PipelineState":
        return self.model_copy(update={"degradations": [*self.degradations, stage]})


class ArticleGenerationResult(BaseModel):
    article: GeneratedArticle
    images: List[GeneratedImage] = Field(default_factory=list)
    degradations: List[str] = Field(default_factory=list)

    @property
    def featured_image_url(self) -> Optional[str]:
        for image in self.images:
            if image.is_hero:
                return image.url
        return None
