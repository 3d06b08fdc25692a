"""
Article generation pipeline.

Runs the stages in order over an immutable PipelineState. Each stage returns a
StageResult; the driver decides whether a failure aborts the run (FATAL_STAGES)
or is recorded as a degradation and the run continues.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from .article_loader import load_article
from .clients.dataforseo import DataForSEOClient
from .clients.repository import ArticleRepository
from .competitors import CompetitorFetcher
from .content_writer import ContentWriter
from .errors import PipelineCancelledError, PipelineError, StageResult
from .image_generator import ImageGenerator
from .image_inserter import insert_generated_images
from .image_planner import ImagePlanner
from .internal_links import fetch_link_candidates
from .research_agent import ResearchAgent
from .schemas import ArticleGenerationResult, PipelineState
from .serp import fetch_serp_results

logger = logging.getLogger(__name__)

FATAL_STAGES = ("load_article", "generate_content")

Stage = Callable[[PipelineState, Optional[threading.Event]], StageResult]


class StepTimer:
    """Context manager to log stage durations."""

    def __init__(self, name: str):
        self.name = name
        self.start = 0.0
        self.duration = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.duration = time.perf_counter() - self.start
        status = "failed" if exc_type else "completed"
        logger.info(f"⏱️ Stage '{self.name}' {status} in {self.duration:.2f}s")


class ArticlePipeline:

    def __init__(self, repository: ArticleRepository, serp_client: DataForSEOClient,
                 competitor_fetcher: CompetitorFetcher, research_agent: ResearchAgent,
                 content_writer: ContentWriter, image_planner: Optional[ImagePlanner] = None,
                 image_generator: Optional[ImageGenerator] = None):
        self.repository = repository
        self.serp_client = serp_client
        self.competitor_fetcher = competitor_fetcher
        self.research_agent = research_agent
        self.content_writer = content_writer
        self.image_planner = image_planner
        self.image_generator = image_generator

    def stages(self) -> List[Tuple[str, Stage]]:
        stages: List[Tuple[str, Stage]] = [
            ("load_article", lambda s, c: load_article(s, self.repository)),
            ("fetch_serp", lambda s, c: fetch_serp_results(s, self.serp_client)),
            ("fetch_link_candidates", lambda s, c: fetch_link_candidates(s, self.repository)),
            ("fetch_competitors", lambda s, c: self.competitor_fetcher.fetch_all(s, cancel_event=c)),
            ("generate_brief", lambda s, c: self.research_agent.generate_brief(s, cancel_event=c)),
            ("generate_content", lambda s, c: self.content_writer.generate(s, cancel_event=c)),
        ]
        if self.image_planner is not None and self.image_generator is not None:
            stages += [
                ("plan_images", lambda s, c: self.image_planner.plan(s, cancel_event=c)),
                ("generate_images", lambda s, c: self.image_generator.generate_images(s, cancel_event=c)),
                ("insert_images", lambda s, c: insert_generated_images(s)),
            ]
        else:
            logger.info("Image generation disabled, the article will have no images")
        return stages

    def run_stage(self, name: str, stage: Stage, state: PipelineState,
                  cancel_event: Optional[threading.Event] = None) -> PipelineState:
        try:
            with StepTimer(name):
                result = stage(state, cancel_event)
        except PipelineCancelledError as e:
            if e.stage is None:
                e.stage = name
            logger.warning(f"🛑 Cancelled during stage '{name}'")
            raise
        except PipelineError as e:
            if e.stage is None:
                e.stage = name
            if name in FATAL_STAGES:
                logger.error(f"❌ Required stage failed: {e}")
                raise
            logger.warning(f"⚠️ Stage '{name}' failed, continuing: {e}")
            return state.mark_degraded(name)
        except Exception as e:
            if name in FATAL_STAGES:
                logger.error(f"❌ Required stage '{name}' failed: {e}")
                raise PipelineError(str(e), stage=name) from e
            logger.warning(f"⚠️ Stage '{name}' failed, continuing: {e}")
            return state.mark_degraded(name)

        if result.degraded:
            logger.warning(f"⚠️ Stage '{name}' degraded: {result.degraded_reason}")
            return result.state.mark_degraded(name)
        return result.state

    def run_article_generation(self, article_id: str,
                               cancel_event: Optional[threading.Event] = None) -> ArticleGenerationResult:
        """Generate the article for ``article_id``.

        Raises:
            PipelineError: a required stage failed (``stage`` names which one).
            PipelineCancelledError: ``cancel_event`` was set.
        """
        logger.info(f"🚀 Starting article generation for {article_id}")
        state = PipelineState(article_id=article_id)

        for name, stage in self.stages():
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelledError(f"Cancelled before stage '{name}'", stage=name)
            state = self.run_stage(name, stage, state, cancel_event)

        if state.article_content is None:
            raise PipelineError("Pipeline finished without an article", stage="generate_content")

        if state.degradations:
            logger.info(f"Finished with degraded stages: {', '.join(state.degradations)}")
        logger.info(f"🎉 Article '{state.article_content.title}' ready with {len(state.images)} images")

        return ArticleGenerationResult(
            article=state.article_content,
            images=state.images,
            degradations=state.degradations,
        )


def run_article_generation(article_id: str,
                           cancel_event: Optional[threading.Event] = None) -> ArticleGenerationResult:
    """Build the pipeline from configuration and run it once."""
    from .main import initialize_system

    components = initialize_system()
    return components["pipeline"].run_article_generation(article_id, cancel_event=cancel_event)
