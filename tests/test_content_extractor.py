"""Tests for the HtmlContentExtractor component."""

import unittest

from adaptive_crawler.components.content_extractor import HtmlContentExtractor
from adaptive_crawler.change_detector import split_paragraphs

PAGE = """
<html>
  <head><title> Example Page </title><style>body { color: red; }</style></head>
  <body>
    <h1>Welcome</h1>
    <p>First paragraph
       spread over lines.</p>
    <script>var tracking = true;</script>
    <a href="/about">About</a>
    <a href="docs/guide.html#intro">Guide</a>
    <a href="https://other.example/x">Elsewhere</a>
    <a href="/about">About again</a>
    <a href="mailto:team@example.com">Mail</a>
    <a href="#top">Top</a>
    <a href="javascript:void(0)">Noop</a>
  </body>
</html>
"""


class TestHtmlContentExtractor(unittest.TestCase):
    """Verify visible text and link extraction."""

    def setUp(self):
        self.extractor = HtmlContentExtractor()
        self.content = self.extractor.extract(PAGE, "https://example.com/section/")

    def test_title(self):
        self.assertEqual(self.content.title, "Example Page")

    def test_scripts_and_styles_removed(self):
        self.assertNotIn("tracking", self.content.text)
        self.assertNotIn("color", self.content.text)

    def test_text_is_split_into_paragraphs(self):
        paragraphs = split_paragraphs(self.content.text)
        self.assertIn("Welcome", paragraphs)
        self.assertIn("First paragraph", paragraphs)

    def test_links_are_absolute_and_unique(self):
        self.assertEqual(
            self.content.links,
            [
                "https://example.com/about",
                "https://example.com/section/docs/guide.html",
                "https://other.example/x",
            ],
        )
        self.assertEqual(self.content.links_count, 3)

    def test_empty_document(self):
        content = self.extractor.extract("", "https://example.com/")
        self.assertEqual(content.text, "")
        self.assertEqual(content.links, [])


if __name__ == "__main__":
    unittest.main()
