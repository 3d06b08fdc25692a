"""
Image Generator Module.
Renders the planned images and stores them in object storage.

Service priority: Gemini image model (or OpenRouter, via GeminiClient) -> Hugging Face FLUX.1 -> DALL-E 3.
"""

import base64
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple, Union

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .clients.gemini import GeminiClient
from .clients.storage import ObjectStorage
from .errors import ImageGenerationError, PipelineCancelledError, StageResult
from .schemas import GeneratedImage, ImagePlanItem, PipelineState

logger = logging.getLogger(__name__)

HF_FLUX_URL = "https://router.huggingface.co/hf-inference/models/black-forest-labs/FLUX.1-dev"

STYLE_SUFFIXES = {
    "brand-text": "photo-realistic scene with short text matching the article topic, background in brand color {brand_color}",
    "photographic": "professional photography, natural lighting, realistic detail, high resolution",
    "illustration": "clean modern illustration, bold colors, simplified shapes",
    "abstract": "abstract composition, geometric shapes and gradients, conceptual",
    "minimalist": "minimalist design, plenty of negative space, limited color palette",
}
DEFAULT_STYLE_SUFFIX = "professional minimal design"

# Pixel sizes for services that take dimensions instead of an aspect ratio
FLUX_SIZES = {"16:9": (1344, 768), "1:1": (1024, 1024)}
DALLE_SIZES = {"16:9": "1792x1024", "1:1": "1024x1024"}


class RetryableImageError(Exception):
    """Rate limit or upstream error worth another attempt."""


def build_image_prompt(item: ImagePlanItem, image_style: str, brand_color: str) -> str:
    if item.type == "diagram":
        prompt = f"Simple diagram: {item.prompt}"
    else:
        suffix = STYLE_SUFFIXES.get(image_style, DEFAULT_STYLE_SUFFIX).format(brand_color=brand_color)
        prompt = f"{item.prompt}, {suffix}"
    if item.style_modifier:
        prompt = f"{prompt}, {item.style_modifier}"
    return prompt


def aspect_ratio_for(item: ImagePlanItem) -> str:
    return "16:9" if item.type == "hero" else "1:1"


def detect_image_type(data: bytes) -> Tuple[str, str]:
    """(content type, extension) from the file signature; PNG when unknown."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg", "jpg"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp", "webp"
    if data.startswith(b"GIF8"):
        return "image/gif", "gif"
    return "image/png", "png"


class ImageGenerator:
    """Generate article images using the configured AI services."""

    def __init__(self, gemini_client: Optional[GeminiClient], storage: ObjectStorage,
                 model: str = "gemini-2.5-flash-image", hf_token: Optional[str] = None,
                 openai_api_key: Optional[str] = None, max_workers: int = 3, timeout: float = 180.0):
        self.gemini_client = gemini_client
        self.storage = storage
        self.model = model
        self.hf_token = hf_token
        self.openai_api_key = openai_api_key
        self.max_workers = max_workers
        self.timeout = timeout
        self.session = requests.Session()

    # -- services ---------------------------------------------------------

    def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> Union[bytes, str]:
        """Image bytes or a remote URL. Raises ImageGenerationError when every service fails."""
        if self.gemini_client is not None and (self.gemini_client.client or self.gemini_client.is_using_openrouter()):
            try:
                image = self.gemini_client.generate_image(prompt, aspect_ratio=aspect_ratio, model=self.model)
                if image:
                    return image
            except Exception as e:
                logger.warning(f"Gemini image generation failed: {e}")

        if self.hf_token:
            try:
                logger.info("📸 Attempting Hugging Face FLUX.1 generation (fallback)...")
                return self.generate_image_huggingface(prompt, aspect_ratio)
            except Exception as e:
                logger.warning(f"Hugging Face failed: {e}")

        if self.openai_api_key:
            try:
                logger.info("📸 Attempting DALL-E 3 generation (fallback)...")
                return self.generate_image_dalle(prompt, aspect_ratio)
            except Exception as e:
                logger.warning(f"DALL-E 3 failed: {e}")

        raise ImageGenerationError("No image service produced an image")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=30),
        retry=retry_if_exception_type(RetryableImageError),
        reraise=True
    )
    def generate_image_huggingface(self, prompt: str, aspect_ratio: str = "1:1") -> bytes:
        width, height = FLUX_SIZES.get(aspect_ratio, FLUX_SIZES["1:1"])
        response = self.session.post(
            HF_FLUX_URL,
            headers={"Authorization": f"Bearer {self.hf_token}"},
            json={"inputs": prompt, "parameters": {"width": width, "height": height}},
            timeout=self.timeout,
        )
        if response.status_code == 200:
            logger.info("✅ Image generated via Hugging Face")
            return response.content
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableImageError(f"Hugging Face returned {response.status_code}")
        raise ImageGenerationError(f"Hugging Face error {response.status_code}: {response.text[:100]}")

    def generate_image_dalle(self, prompt: str, aspect_ratio: str = "1:1") -> bytes:
        from openai import OpenAI
        client = OpenAI(api_key=self.openai_api_key, timeout=self.timeout)
        response = client.images.generate(
            model="dall-e-3",
            prompt=prompt,
            n=1,
            size=DALLE_SIZES.get(aspect_ratio, DALLE_SIZES["1:1"]),
            response_format="b64_json",
        )
        return base64.b64decode(response.data[0].b64_json)

    # -- pipeline stage ---------------------------------------------------

    def render(self, item: ImagePlanItem, index: int, state: PipelineState) -> GeneratedImage:
        """Generate, re-host if needed, and upload a single planned image."""
        product = state.product
        prompt = build_image_prompt(item, product.image_style, product.brand_color)
        logger.info(f"Generating {item.type} image ({len(prompt.split())} words): {prompt}")

        image = self.generate_image(prompt, aspect_ratio=aspect_ratio_for(item))
        data = self.storage.download(image) if isinstance(image, str) else image
        content_type, extension = detect_image_type(data)
        key = f"articles/{state.article_id}/{index + 1:02d}-{item.type}-{uuid.uuid4().hex[:8]}.{extension}"
        url = self.storage.upload(data, content_type, key)

        return GeneratedImage(url=url, type=item.type, placement=item.placement, alt_text=item.alt_text)

    def _render_safely(self, item: ImagePlanItem, index: int, state: PipelineState,
                       cancel_event: Optional[threading.Event]) -> Optional[GeneratedImage]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        try:
            image = self.render(item, index, state)
            logger.info(f"Successfully generated {item.type} image")
            return image
        except Exception as e:
            logger.error(f"Error generating {item.type} image for '{item.placement}': {e}")
            return None

    def generate_images(self, state: PipelineState,
                        cancel_event: Optional[threading.Event] = None) -> StageResult:
        plan = state.image_plan
        if not plan:
            logger.info("No images planned")
            return StageResult.ok(state)

        workers = max(1, min(self.max_workers, len(plan)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            rendered: List[Optional[GeneratedImage]] = list(executor.map(
                lambda pair: self._render_safely(pair[1], pair[0], state, cancel_event),
                enumerate(plan),
            ))

        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError("Cancelled while generating images", stage="generate_images")

        images = [image for image in rendered if image is not None]
        logger.info(f"🖼️ Generated {len(images)} of {len(plan)} images")
        if not images:
            logger.warning("No images generated successfully, continuing without images")
            return StageResult.degrade(state, "no images generated")
        if len(images) < len(plan):
            return StageResult.degrade(state.extend(images=images), f"{len(plan) - len(images)} images failed")
        return StageResult.ok(state.extend(images=images))
