"""
Generative agents: one structured-output capability, three personas.

An agent turns a prompt into an instance of a Pydantic schema. The model is asked
for JSON matching the schema; the reply is normalised (key casing, common aliases)
and validated before it is handed back.
"""

import json
import logging
import re
import threading
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .clients.gemini import GeminiClient
from .errors import AgentError, PipelineCancelledError
from .utils import normalize_dict_keys

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

CONTENT_WRITER_INSTRUCTIONS = (
    "You are an expert SEO content writer. You write long-form articles that read like a "
    "seasoned human specialist wrote them: concrete, specific, well structured and free of "
    "filler. You follow every formatting and keyword instruction exactly and always answer "
    "with JSON that matches the requested schema."
)

SERP_ANALYZER_INSTRUCTIONS = (
    "You are a senior SEO strategist who reverse-engineers why pages rank. You read the "
    "top-ranking competitor pages for a keyword and produce a precise, actionable content "
    "brief. Base every claim on the competitor data you are given and always answer with "
    "JSON that matches the requested schema."
)

IMAGE_STRATEGIST_INSTRUCTIONS = (
    "You are a visual content strategist for blog articles. You decide how many images an "
    "article needs, what each one should show and exactly where it belongs. Placements must "
    "copy heading text verbatim. Always answer with JSON that matches the requested schema."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class GenerativeAgent:
    """A configured LLM persona that returns validated structured output."""

    def __init__(self, client: GeminiClient, model: str, instructions: str,
                 name: str = "agent", temperature: float = 0.7):
        self.client = client
        self.model = model
        self.instructions = instructions
        self.name = name
        self.temperature = temperature

    def generate(self, prompt: str, schema: Type[T],
                 cancel_event: Optional[threading.Event] = None) -> T:
        """Run the prompt and parse the reply into ``schema``.

        Raises:
            PipelineCancelledError: ``cancel_event`` was set before or during the call.
            AgentError: the call failed, returned nothing, or the reply does not fit the schema.
        """
        self._raise_if_cancelled(cancel_event)
        logger.info(f"🤖 {self.name}: requesting {schema.__name__} from {self.model}")
        try:
            response = self.client.generate_structured_output(
                model=self.model,
                prompt=prompt,
                schema=schema.model_json_schema(),
                system_instruction=self.instructions,
                temperature=self.temperature,
                cancel_event=cancel_event,
            )
        except Exception as e:
            self._raise_if_cancelled(cancel_event)
            raise AgentError(f"{self.name} call failed: {e}") from e
        self._raise_if_cancelled(cancel_event)

        text = getattr(response, "text", None) if response is not None else None
        if not text:
            raise AgentError(f"{self.name} returned no output")

        return self.parse(text, schema)

    def _raise_if_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError(f"{self.name} call cancelled")

    def parse(self, text: str, schema: Type[T]) -> T:
        try:
            data = json.loads(_strip_code_fence(text))
        except json.JSONDecodeError as e:
            raise AgentError(f"{self.name} returned invalid JSON: {e}") from e

        # Some models wrap a single object in a list
        if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
            data = data[0]

        try:
            return schema.model_validate(normalize_dict_keys(data))
        except ValidationError as e:
            raise AgentError(f"{self.name} output does not match {schema.__name__}: {e}") from e


def _strip_code_fence(text: str) -> str:
    return _CODE_FENCE.sub("", text.strip())


def build_agents(client: GeminiClient, content_model: str, analysis_model: str,
                 temperature: Optional[float] = None) -> dict:
    """The three personas the pipeline uses, keyed by role."""
    return {
        "content_writer": GenerativeAgent(
            client, content_model, CONTENT_WRITER_INSTRUCTIONS,
            name="Content writer", temperature=temperature if temperature is not None else 0.7,
        ),
        "serp_analyzer": GenerativeAgent(
            client, analysis_model, SERP_ANALYZER_INSTRUCTIONS,
            name="SERP analyzer", temperature=0.3,
        ),
        "image_strategist": GenerativeAgent(
            client, analysis_model, IMAGE_STRATEGIST_INSTRUCTIONS,
            name="Image strategist", temperature=0.5,
        ),
    }
