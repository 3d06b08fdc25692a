"""
Tests for image rendering, the service fallback chain and storage.
"""

import base64
import os
import tempfile
import threading
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from article_pipeline.clients.storage import LocalStorage, ObjectStorage, S3Storage, sanitize_key
from article_pipeline.errors import ImageGenerationError, PipelineCancelledError, StorageError
from article_pipeline.image_generator import (
    ImageGenerator,
    aspect_ratio_for,
    build_image_prompt,
    detect_image_type,
)
from article_pipeline.schemas import ImagePlanItem
from tests.factories import make_product, make_state

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 16
JPEG = b"\xff\xd8\xff\xe0" + b"0" * 16

PLAN = [
    ImagePlanItem(type="hero", placement="hero", prompt="Team planning a sprint", alt_text="Team planning"),
    ImagePlanItem(type="section", placement="Top Picks", prompt="Laptop with a kanban board", alt_text="Kanban"),
    ImagePlanItem(type="diagram", placement="Pricing", prompt="Three pricing tiers", alt_text="Pricing tiers"),
    ImagePlanItem(type="section", placement="FAQ", prompt="Question marks", alt_text="FAQ"),
]


def fake_storage():
    storage = MagicMock(spec=ObjectStorage)
    storage.upload.side_effect = lambda data, content_type, key: f"https://cdn.example.com/{key}"
    return storage


def fake_gemini(side_effect=None):
    gemini = MagicMock()
    gemini.client = object()
    gemini.generate_image.return_value = PNG
    if side_effect is not None:
        gemini.generate_image.side_effect = side_effect
    return gemini


class TestPromptHelpers(unittest.TestCase):

    def test_style_suffix_with_brand_color(self):
        prompt = build_image_prompt(PLAN[1], "brand-text", "#1a73e8")
        self.assertTrue(prompt.startswith("Laptop with a kanban board, "))
        self.assertIn("#1a73e8", prompt)

    def test_photographic_style(self):
        self.assertIn("professional photography", build_image_prompt(PLAN[0], "photographic", "#000"))

    def test_diagram_prefix(self):
        prompt = build_image_prompt(PLAN[2], "photographic", "#000")
        self.assertEqual(prompt, "Simple diagram: Three pricing tiers")

    def test_style_modifier_appended(self):
        item = PLAN[1].model_copy(update={"style_modifier": "warm tones"})
        self.assertTrue(build_image_prompt(item, "illustration", "#000").endswith(", warm tones"))

    def test_aspect_ratio(self):
        self.assertEqual(aspect_ratio_for(PLAN[0]), "16:9")
        self.assertEqual(aspect_ratio_for(PLAN[1]), "1:1")

    def test_detect_image_type(self):
        self.assertEqual(detect_image_type(JPEG), ("image/jpeg", "jpg"))
        self.assertEqual(detect_image_type(PNG), ("image/png", "png"))
        self.assertEqual(detect_image_type(b"RIFF0000WEBPVP8 "), ("image/webp", "webp"))


class TestServiceChain(unittest.TestCase):

    def test_gemini_first(self):
        gemini = fake_gemini()
        generator = ImageGenerator(gemini, fake_storage(), model="img-model", hf_token="hf")
        self.assertEqual(generator.generate_image("a cat", "16:9"), PNG)
        gemini.generate_image.assert_called_once_with("a cat", aspect_ratio="16:9", model="img-model")

    def test_falls_back_to_huggingface(self):
        generator = ImageGenerator(fake_gemini(side_effect=RuntimeError("quota")), fake_storage(), hf_token="hf")
        with patch.object(generator, "generate_image_huggingface", return_value=JPEG) as mock_hf:
            self.assertEqual(generator.generate_image("a cat", "1:1"), JPEG)
        mock_hf.assert_called_once_with("a cat", "1:1")

    def test_falls_back_to_dalle(self):
        generator = ImageGenerator(None, fake_storage(), openai_api_key="sk-test")
        with patch('openai.OpenAI') as mock_openai:
            mock_openai.return_value.images.generate.return_value.data = [
                MagicMock(b64_json=base64.b64encode(PNG).decode())
            ]
            self.assertEqual(generator.generate_image("a cat", "16:9"), PNG)
        kwargs = mock_openai.return_value.images.generate.call_args.kwargs
        self.assertEqual(kwargs["size"], "1792x1024")

    def test_all_services_fail(self):
        generator = ImageGenerator(fake_gemini(side_effect=RuntimeError("down")), fake_storage())
        with self.assertRaises(ImageGenerationError):
            generator.generate_image("a cat")

    def test_huggingface_sizes(self):
        generator = ImageGenerator(None, fake_storage(), hf_token="hf")
        response = MagicMock(status_code=200, content=PNG)
        generator.session = MagicMock()
        generator.session.post.return_value = response

        self.assertEqual(generator.generate_image_huggingface("a cat", "16:9"), PNG)
        payload = generator.session.post.call_args.kwargs["json"]
        self.assertEqual(payload["parameters"], {"width": 1344, "height": 768})

    def test_huggingface_client_error_not_retried(self):
        generator = ImageGenerator(None, fake_storage(), hf_token="hf")
        generator.session = MagicMock()
        generator.session.post.return_value = MagicMock(status_code=401, text="unauthorized")
        with self.assertRaises(ImageGenerationError):
            generator.generate_image_huggingface("a cat")
        self.assertEqual(generator.session.post.call_count, 1)


class TestGenerateImages(unittest.TestCase):

    def setUp(self):
        self.state = make_state(product=make_product(image_style="photographic"), image_plan=PLAN)

    def test_all_images_in_plan_order(self):
        storage = fake_storage()
        generator = ImageGenerator(fake_gemini(), storage)

        result = generator.generate_images(self.state)

        self.assertFalse(result.degraded)
        images = result.state.images
        self.assertEqual([i.placement for i in images], ["hero", "Top Picks", "Pricing", "FAQ"])
        self.assertTrue(images[0].url.startswith("https://cdn.example.com/articles/art-1/01-hero-"))
        self.assertTrue(images[0].url.endswith(".png"))
        self.assertEqual(images[1].alt_text, "Kanban")

    def test_one_failure_keeps_the_others(self):
        def render(prompt, aspect_ratio, model):
            if "pricing" in prompt.lower():
                raise RuntimeError("safety filter")
            return PNG

        generator = ImageGenerator(fake_gemini(side_effect=render), fake_storage())
        result = generator.generate_images(self.state)

        self.assertTrue(result.degraded)
        self.assertEqual([i.placement for i in result.state.images], ["hero", "Top Picks", "FAQ"])

    def test_no_images_degrades(self):
        generator = ImageGenerator(fake_gemini(side_effect=RuntimeError("down")), fake_storage())
        result = generator.generate_images(self.state)
        self.assertTrue(result.degraded)
        self.assertEqual(result.state.images, [])

    def test_remote_url_is_rehosted(self):
        storage = fake_storage()
        storage.download.return_value = JPEG
        gemini = fake_gemini()
        gemini.generate_image.return_value = "https://provider.example.com/tmp.jpg"

        result = ImageGenerator(gemini, storage).generate_images(self.state)

        storage.download.assert_called_with("https://provider.example.com/tmp.jpg")
        self.assertTrue(all(i.url.endswith(".jpg") for i in result.state.images))

    def test_cancellation(self):
        cancel = threading.Event()
        cancel.set()
        gemini = fake_gemini()
        with self.assertRaises(PipelineCancelledError):
            ImageGenerator(gemini, fake_storage()).generate_images(self.state, cancel_event=cancel)
        gemini.generate_image.assert_not_called()

    def test_empty_plan(self):
        result = ImageGenerator(fake_gemini(), fake_storage()).generate_images(make_state())
        self.assertFalse(result.degraded)


class TestStorage(unittest.TestCase):

    def test_sanitize_key(self):
        self.assertEqual(sanitize_key("articles/a b?/01-hero.png"), "articles/a_b/01-hero.png")

    def test_local_storage(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalStorage(root=tmp)
            url = storage.upload(PNG, "image/png", "articles/art-1/01-hero.png")
            self.assertTrue(url.startswith("file://"))
            with open(os.path.join(tmp, "articles", "art-1", "01-hero.png"), "rb") as f:
                self.assertEqual(f.read(), PNG)

    @patch('article_pipeline.clients.storage.boto3.client')
    def test_s3_upload(self, mock_client):
        storage = S3Storage("bucket", region="eu-west-1")
        url = storage.upload(PNG, "image/png", "articles/art-1/01-hero.png")

        self.assertEqual(url, "https://bucket.s3.eu-west-1.amazonaws.com/articles/art-1/01-hero.png")
        kwargs = mock_client.return_value.put_object.call_args.kwargs
        self.assertEqual(kwargs["ContentType"], "image/png")
        self.assertEqual(kwargs["Bucket"], "bucket")

    @patch('article_pipeline.clients.storage.boto3.client')
    def test_s3_public_url(self, mock_client):
        storage = S3Storage("bucket", public_url="https://cdn.example.com/")
        self.assertEqual(storage.public_url_for("k.png"), "https://cdn.example.com/k.png")

    @patch('article_pipeline.clients.storage.boto3.client')
    def test_s3_failure(self, mock_client):
        mock_client.return_value.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        storage = S3Storage("bucket")
        with self.assertRaises(StorageError):
            storage.upload(PNG, "image/png", "k.png")

    def test_s3_requires_bucket(self):
        with self.assertRaises(StorageError):
            S3Storage("")


if __name__ == '__main__':
    unittest.main()
