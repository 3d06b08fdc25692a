"""
Tests for article content generation and cleanup.
"""

import os
import tempfile
import unittest

from article_pipeline.config import WATERMARK
from article_pipeline.content_writer import ContentWriter, append_watermark, clean_article_body
from article_pipeline.errors import AgentError, ContentGenerationError
from article_pipeline.schemas import LinkCandidate
from article_pipeline.seo_system import SEOPromptBuilder
from tests.factories import agent_returning, make_brief, make_generated_article, make_product, make_state

RAW_BODY = """
![hero](https://cdn.example.com/hero.png)

# The 7 Best Project Management Tools

## Why Use a Tool

Teams grow. See [Kanban boards](https://taskly.example.com/kanban).

## Pricing

Plans start free.
"""


class TestCleanArticleBody(unittest.TestCase):

    def test_strips_leading_image_and_duplicate_title(self):
        body = clean_article_body(RAW_BODY, "The 7 Best Project Management Tools")
        self.assertTrue(body.startswith("## Why Use a Tool"))

    def test_keeps_different_h1(self):
        body = clean_article_body("# Something Else\n\nText", "Title")
        self.assertTrue(body.startswith("# Something Else"))

    def test_never_starts_with_bang(self):
        body = clean_article_body("![broken image\nText after", "Title")
        self.assertFalse(body.startswith("!"))

    def test_inline_leading_image_removed_whole(self):
        body = clean_article_body("![chart](https://x/y.png) Intro sentence.\n\n## A\ntext", "T")
        self.assertTrue(body.startswith("Intro sentence."))
        self.assertNotIn("[chart]", body)
        self.assertIn("## A\ntext", body)

    def test_several_leading_images_removed(self):
        body = clean_article_body("![a](https://x/a.png)![b](https://x/b.png)\n![c](https://x/c.png) Text", "T")
        self.assertEqual(body, "Text")

    def test_images_inside_body_kept(self):
        body = clean_article_body("Intro\n\n![chart](https://cdn.example.com/c.png)", "Title")
        self.assertIn("![chart](https://cdn.example.com/c.png)", body)


class TestWatermark(unittest.TestCase):

    def test_appended_once(self):
        once = append_watermark("Body")
        self.assertTrue(once.endswith(WATERMARK))
        self.assertEqual(append_watermark(once), once)


class TestContentWriter(unittest.TestCase):

    def setUp(self):
        self.prompt_builder = SEOPromptBuilder(guidelines_path=os.path.join(tempfile.gettempdir(), "none.json"))

    def writer(self, response):
        return ContentWriter(agent_returning(response), self.prompt_builder)

    def test_generate(self):
        generated = make_generated_article(content=RAW_BODY, slug="The 7 Best Tools!")
        state = make_state(
            competitive_brief=make_brief(),
            link_candidates=[LinkCandidate(title="Kanban", url="https://taskly.example.com/kanban")],
        )
        writer = self.writer(generated)

        result = writer.generate(state)

        article = result.state.article_content
        self.assertFalse(result.degraded)
        self.assertEqual(article.slug, "the-7-best-tools")
        self.assertTrue(article.content.startswith("## Why Use a Tool"))
        self.assertTrue(article.content.endswith(WATERMARK))
        prompt = writer.agent.generate.call_args.args[0]
        self.assertIn("https://taskly.example.com/kanban", prompt)

    def test_remove_watermark(self):
        state = make_state(product=make_product(remove_watermark=True), competitive_brief=make_brief())
        result = self.writer(make_generated_article()).generate(state)
        self.assertNotIn(WATERMARK, result.state.article_content.content)

    def test_slug_falls_back_to_title(self):
        state = make_state(competitive_brief=make_brief())
        result = self.writer(make_generated_article(slug="!!!")).generate(state)
        self.assertEqual(result.state.article_content.slug, "the-7-best-project-management-tools")

    def test_missing_brief_uses_fallback(self):
        result = self.writer(make_generated_article()).generate(make_state())
        self.assertIsNotNone(result.state.article_content)

    def test_agent_failure_is_fatal(self):
        with self.assertRaises(ContentGenerationError) as ctx:
            self.writer(AgentError("timeout")).generate(make_state(competitive_brief=make_brief()))
        self.assertEqual(ctx.exception.stage, "generate_content")

    def test_empty_body_is_fatal(self):
        generated = make_generated_article(content="![only](https://cdn.example.com/x.png)\n")
        with self.assertRaises(ContentGenerationError):
            self.writer(generated).generate(make_state(competitive_brief=make_brief()))


if __name__ == '__main__':
    unittest.main()
