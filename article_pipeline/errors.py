"""
Error types and per-stage outcomes for the article pipeline.
"""

from dataclasses import dataclass
from typing import Optional

from .schemas import PipelineState


class PipelineError(Exception):
    """A required stage failed; the run is aborted."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.stage}] {message}" if self.stage else message


class ArticleNotFoundError(PipelineError):
    pass


class ContentGenerationError(PipelineError):
    pass


class PipelineCancelledError(PipelineError):
    pass


class AgentError(Exception):
    """A generative agent call failed or returned output that does not match its schema."""


class DataForSEOError(Exception):
    """DataForSEO answered, but with a provider-level error code."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(Exception):
    pass


class ImageGenerationError(Exception):
    pass


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage: the new state, plus a reason when the stage ran degraded."""

    state: PipelineState
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None

    @classmethod
    def ok(cls, state: PipelineState) -> "StageResult":
        return cls(state)

    @classmethod
    def degrade(cls, state: PipelineState, reason: str) -> "StageResult":
        return cls(state, reason)
