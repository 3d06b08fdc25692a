import base64
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from google import genai
from google.genai import types
from google.genai.errors import ClientError, ServerError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


# OpenRouter Model Mapping
OPENROUTER_MODEL_MAP = {
    "gemini-2.0-flash": "google/gemini-2.0-flash-001",
    "gemini-2.5-flash": "google/gemini-2.5-flash",
    "gemini-2.5-pro": "google/gemini-2.5-pro",
    "gemini-2.5-flash-image": "google/gemini-2.5-flash-image-preview",
    "gemini-3-pro-image": "google/gemini-3-pro-image-preview",
}

def is_retryable_error(error: BaseException) -> bool:
    """Rate limits, upstream 5xx and transport failures are retried. Everything else surfaces immediately."""
    if isinstance(error, (ServerError, httpx.TransportError)):
        return True
    if isinstance(error, ClientError):
        status = getattr(error, "code", None)
    elif isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
    else:
        return False
    return status == 429 or (isinstance(status, int) and status >= 500)


def _cancel_requested(retry_state) -> bool:
    event = retry_state.kwargs.get("cancel_event")
    return event is not None and event.is_set()


class OpenRouterResponse:
    """Mimics the part of the genai response the pipeline reads (``.text``)."""

    def __init__(self, data: dict):
        self._data = data
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message", {})
        self.text = message.get("content", "") or ""

    def __repr__(self):
        return f"OpenRouterResponse(text='{self.text[:50]}...')"


class GeminiClient:
    """Centralized client for Gemini API interactions.

    Supports:
    - OpenRouter API (alternative backend)
    - Vertex AI with a service account
    - Google AI API (API key)
    """

    OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
    VERTEX_REGION = "us-central1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        service_account_file: Optional[str] = None,
        openrouter_api_key: Optional[str] = None,
        timeout: float = 120.0,
        image_timeout: float = 180.0,
        fallback_models: Optional[List[str]] = None,
    ):
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self.service_account_file = service_account_file or os.environ.get("GEMINI_SERVICE_ACCOUNT_KEY_FILE")
        self.openrouter_api_key = openrouter_api_key or os.environ.get("OPENROUTER_API_KEY")
        self.timeout = timeout
        self.image_timeout = image_timeout
        self.fallback_models = fallback_models if fallback_models is not None else ["gemini-2.5-flash"]
        self._using_vertexai = False
        self._using_openrouter = False
        self.client = self._initialize_client()

    def _initialize_client(self) -> Optional[genai.Client]:
        """Initialize the GenAI client with preferred authentication.

        Priority:
        1. OpenRouter (if OPENROUTER_API_KEY is set)
        2. Vertex AI (if service account file exists)
        3. Google AI API (if GEMINI_API_KEY is set)
        """
        try:
            if self.openrouter_api_key:
                logger.info("Initializing Gemini with OpenRouter backend")
                self._using_openrouter = True
                return None  # No genai.Client needed for OpenRouter

            if self.service_account_file:
                resolved_path = Path(self.service_account_file).resolve()
                if resolved_path.exists():
                    import google.oauth2.service_account as sa
                    logger.info(f"Initializing Gemini with service account: {resolved_path}")
                    credentials = sa.Credentials.from_service_account_file(
                        str(resolved_path),
                        scopes=['https://www.googleapis.com/auth/cloud-platform']
                    )
                    self._using_vertexai = True
                    return genai.Client(
                        vertexai=True,
                        project=credentials.project_id,
                        location=self.VERTEX_REGION,
                        credentials=credentials,
                    )
                logger.warning(f"Service account file not found: {resolved_path}")

            if self.api_key:
                logger.info("Initializing Gemini with API key")
                return genai.Client(api_key=self.api_key)

            logger.error("No valid Gemini credentials found")
        except Exception as e:
            logger.error(f"Error initializing Gemini client: {e}")
        return None

    def is_using_vertexai(self) -> bool:
        return self._using_vertexai

    def is_using_openrouter(self) -> bool:
        return self._using_openrouter

    def _map_model_to_openrouter(self, model: str) -> str:
        """Map a Gemini model name to its OpenRouter equivalent."""
        return OPENROUTER_MODEL_MAP.get(model, f"google/{model}")

    def _openrouter_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": os.environ.get("SITE_URL", "https://example.com"),
            "X-Title": os.environ.get("SITE_NAME", "Article Pipeline"),
        }

    def _generate_openrouter_content(self, model: str, contents: Any,
                                     config: Optional[types.GenerateContentConfig] = None) -> OpenRouterResponse:
        """Generate content using OpenRouter API."""
        openrouter_model = self._map_model_to_openrouter(model)
        logger.info(f"Calling OpenRouter API (Model: {openrouter_model})")

        messages = []
        if config is not None and getattr(config, "system_instruction", None):
            messages.append({"role": "system", "content": str(config.system_instruction)})
        if isinstance(contents, str):
            messages.append({"role": "user", "content": contents})
        elif isinstance(contents, list):
            for item in contents:
                if isinstance(item, str):
                    messages.append({"role": "user", "content": item})
                elif isinstance(item, dict):
                    messages.append(item)
        else:
            messages.append({"role": "user", "content": str(contents)})

        payload: Dict[str, Any] = {
            "model": openrouter_model,
            "messages": messages,
        }

        if config is not None:
            if getattr(config, "temperature", None) is not None:
                payload["temperature"] = config.temperature
            # Prefer strict JSON-schema enforcement over generic json_object when schema is available
            if getattr(config, "response_json_schema", None) is not None:
                payload["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {
                        "name": "response_schema",
                        "strict": True,
                        "schema": config.response_json_schema,
                    },
                }
            elif getattr(config, "response_mime_type", None) == "application/json":
                payload["response_format"] = {"type": "json_object"}

        with httpx.Client(timeout=self.timeout) as http_client:
            response = http_client.post(
                f"{self.OPENROUTER_BASE_URL}/chat/completions",
                headers=self._openrouter_headers(),
                json=payload
            )
            response.raise_for_status()
            return OpenRouterResponse(response.json())

    @retry(
        stop=stop_after_attempt(4) | _cancel_requested,
        wait=wait_exponential(multiplier=2, min=2, max=30),
        retry=retry_if_exception(is_retryable_error),
        reraise=True
    )
    def generate_content(self, model: str, contents: Any,
                         config: Optional[types.GenerateContentConfig] = None,
                         cancel_event: Optional[threading.Event] = None) -> Any:
        """Generate content with retry logic for API errors.

        A set ``cancel_event`` stops further retries; the last error is re-raised.
        """
        if self._using_openrouter:
            return self._generate_openrouter_content(model, contents, config)

        if not self.client:
            raise RuntimeError("Gemini client not initialized")

        logger.info(f"Calling Gemini API (Model: {model})")
        return self.client.models.generate_content(
            model=model,
            contents=contents,
            config=config
        )

    def generate_structured_output(self, model: str, prompt: str, schema: Dict,
                                   system_instruction: Optional[str] = None,
                                   temperature: float = 0.7,
                                   cancel_event: Optional[threading.Event] = None) -> Optional[Any]:
        """Generate content expected to match a JSON schema, trying fallback models in order.

        Returns the raw response (with ``.text`` holding the JSON), or None when every model
        failed or ``cancel_event`` was set before a model could be tried.
        """
        config_params: Dict[str, Any] = {
            "response_mime_type": "application/json",
            "response_json_schema": schema,
            "temperature": temperature,
        }
        if system_instruction:
            config_params["system_instruction"] = system_instruction
        config = types.GenerateContentConfig(**config_params)

        model_fallback_order = [model] + [m for m in self.fallback_models if m != model]
        for attempt_model in model_fallback_order:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"🛑 Cancelled before trying model: {attempt_model}")
                return None
            try:
                logger.info(f"Attempting structured output with model: {attempt_model}")
                response = self.generate_content(attempt_model, prompt, config, cancel_event=cancel_event)
                if response and response.text:
                    logger.info(f"✅ Structured output generated with model: {attempt_model}")
                    return response
                logger.warning(f"⚠️ Model {attempt_model} returned an empty response")
            except Exception as e:
                logger.warning(f"⚠️ Model {attempt_model} failed: {e}")

        logger.error("❌ All models failed for structured output generation")
        return None

    def generate_image(self, prompt: str, aspect_ratio: str = "1:1",
                       model: str = "gemini-2.5-flash-image") -> Optional[Union[bytes, str]]:
        """Generate an image and return its bytes, or a remote URL when the backend only hands one back."""
        if self._using_openrouter:
            return self.generate_image_openrouter(prompt, model=model, aspect_ratio=aspect_ratio)

        if not self.client:
            raise RuntimeError("Gemini client not initialized")

        logger.info(f"🎨 Generating image via Gemini (Model: {model}, aspect ratio {aspect_ratio})")
        response = self._generate_gemini_image(model, prompt, aspect_ratio)
        for part in response.parts or []:
            if part.inline_data and part.inline_data.data:
                return part.inline_data.data
        logger.warning("Gemini returned no image data")
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=30),
        retry=retry_if_exception(is_retryable_error),
        reraise=True
    )
    def _generate_gemini_image(self, model: str, prompt: str, aspect_ratio: str) -> Any:
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
        )
        return self.client.models.generate_content(model=model, contents=prompt, config=config)

    def generate_image_openrouter(self, prompt: str, model: str = "gemini-2.5-flash-image",
                                  aspect_ratio: str = "1:1") -> Optional[Union[bytes, str]]:
        """Generate an image via OpenRouter.

        Args:
            prompt: Text description of the image to generate
            model: Gemini image model name (mapped to its OpenRouter id)
            aspect_ratio: Requested aspect ratio, e.g. "16:9"

        Returns:
            Image bytes for data URLs, the URL itself for remote images, None otherwise
        """
        openrouter_model = self._map_model_to_openrouter(model)
        logger.info(f"🎨 Generating image via OpenRouter (Model: {openrouter_model})")

        payload = {
            "model": openrouter_model,
            "messages": [{"role": "user", "content": f"Generate an image: {prompt}"}],
            "modalities": ["image", "text"],
            "image_config": {"aspect_ratio": aspect_ratio},
        }

        with httpx.Client(timeout=self.image_timeout) as http_client:
            response = http_client.post(
                f"{self.OPENROUTER_BASE_URL}/chat/completions",
                headers=self._openrouter_headers(),
                json=payload
            )
            response.raise_for_status()
            data = response.json()

        choices = data.get("choices", [])
        if not choices:
            logger.error("No choices in OpenRouter response")
            return None

        message = choices[0].get("message", {})
        candidates: List[Any] = list(message.get("images") or [])
        content = message.get("content")
        if isinstance(content, list):
            candidates.extend(content)
        elif isinstance(content, str) and content.startswith("data:image"):
            candidates.append(content)

        for item in candidates:
            url = None
            if isinstance(item, str):
                url = item
            elif isinstance(item, dict):
                url = (item.get("image_url") or {}).get("url") or item.get("url")
                if not url and item.get("b64_json"):
                    return base64.b64decode(item["b64_json"])
            if not url:
                continue
            if url.startswith("data:image"):
                return base64.b64decode(url.split(",", 1)[1])
            if url.startswith("http"):
                return url

        logger.warning(f"OpenRouter returned unexpected image format: {str(content)[:300]}")
        return None
