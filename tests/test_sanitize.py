from __future__ import annotations

import time
import unittest

from blog_pipeline.headings import index_headings
from blog_pipeline.sanitize import sanitize_html

_SAMPLES = [
    "<p>Plain paragraph</p>",
    '<p onclick="steal()">Click <strong>me</strong></p>',
    "<script>alert(1)</script><p>after</p>",
    '<a href="javascript:alert(1)">bad link</a>',
    '<img src="http://x/a.jpg" onerror="boom()" alt="A">',
    "<h2>Setup</h2><p>a &amp; b &lt; c</p><h2>Setup</h2>",
    "<div><iframe src='http://evil'></iframe><em>kept</em></div>",
    "<p>unclosed <b>bold",
    "<!-- comment --><ul><li>one</li><li>two</li></ul>",
    '<p style="color:red" class="lead">styled</p>',
]


class TestSanitize(unittest.TestCase):
    def test_removes_event_handlers(self) -> None:
        self.assertEqual(
            sanitize_html('<p onclick="steal()">Hi</p>'),
            "<p>Hi</p>",
        )

    def test_drops_script_blocks_with_content(self) -> None:
        out = sanitize_html("<script>alert(1)</script><p>ok</p>")
        self.assertEqual(out, "<p>ok</p>")
        self.assertNotIn("alert", out)

    def test_drops_style_and_iframe_blocks(self) -> None:
        out = sanitize_html("<style>p{}</style><iframe src='x'>fallback</iframe><p>ok</p>")
        self.assertEqual(out, "<p>ok</p>")

    def test_unclosed_drop_block_swallows_the_rest(self) -> None:
        out = sanitize_html("<p>ok</p><script>alert(1)<p>hidden</p>")
        self.assertEqual(out, "<p>ok</p>")

    def test_nested_drop_blocks(self) -> None:
        html = "<object><object>inner</object>tail</object><p>ok</p>"
        self.assertEqual(sanitize_html(html), "<p>ok</p>")

    def test_raw_text_containers_are_dropped(self) -> None:
        html = "<xmp><script>alert(1)</script></xmp><p>ok</p>"
        self.assertEqual(sanitize_html(html), "<p>ok</p>")

    def test_many_unclosed_style_openers_sanitize_in_linear_time(self) -> None:
        html = "<p>x</p><style>" * 16000
        started = time.perf_counter()
        out = sanitize_html(html)
        self.assertLess(time.perf_counter() - started, 3.0)
        self.assertEqual(out, "<p>x</p>")

    def test_neutralizes_javascript_uris(self) -> None:
        out = sanitize_html('<a href="javascript:alert(1)">x</a>')
        self.assertNotIn("javascript", out)
        self.assertIn(">x</a>", out)

    def test_keeps_safe_links_and_images(self) -> None:
        out = sanitize_html('<a href="https://example.com" title="t">x</a>')
        self.assertEqual(out, '<a href="https://example.com" title="t">x</a>')

        out = sanitize_html('<img src="http://x/a.jpg" onerror="boom()" alt="A">')
        self.assertIn('src="http://x/a.jpg"', out)
        self.assertIn('alt="A"', out)
        self.assertNotIn("onerror", out)

    def test_class_is_kept_on_every_allowed_tag(self) -> None:
        html = '<h2 class="t" id="a">A</h2><a class="l" href="https://x">x</a><img class="i" src="http://x/a.jpg">'
        out = sanitize_html(html)
        self.assertIn('class="t"', out)
        self.assertIn('class="l"', out)
        self.assertIn('class="i"', out)

    def test_data_uris_only_for_images(self) -> None:
        out = sanitize_html('<img src="data:image/png;base64,AAAA">')
        self.assertIn("data:image/png;base64,AAAA", out)

        out = sanitize_html('<img src="data:text/html;base64,AAAA">')
        self.assertNotIn("data:", out)

        out = sanitize_html('<a href="data:text/html,hi">x</a>')
        self.assertNotIn("data:", out)

    def test_preserves_structural_formatting(self) -> None:
        html = (
            "<blockquote><p><strong>a</strong> <em>b</em></p></blockquote>"
            "<pre><code>x = 1</code></pre><ol><li>one</li></ol>"
        )
        self.assertEqual(sanitize_html(html), html)

    def test_heading_ids_survive_only_on_h1_to_h4(self) -> None:
        self.assertEqual(sanitize_html('<h2 id="setup">Setup</h2>'), '<h2 id="setup">Setup</h2>')
        self.assertEqual(sanitize_html('<h5 id="x">T</h5>'), "<h5>T</h5>")
        self.assertEqual(sanitize_html('<p id="x">T</p>'), "<p>T</p>")

    def test_indexed_output_survives_resanitizing(self) -> None:
        indexed = index_headings(sanitize_html("<h2>Setup</h2><h2>Setup</h2>")).html
        self.assertEqual(sanitize_html(indexed), indexed)

    def test_idempotent(self) -> None:
        for html in _SAMPLES:
            with self.subTest(html=html):
                once = sanitize_html(html)
                self.assertEqual(sanitize_html(once), once)

    def test_non_string_input(self) -> None:
        self.assertEqual(sanitize_html(None), "")
        self.assertEqual(sanitize_html(123), "")
        self.assertEqual(sanitize_html(""), "")


if __name__ == "__main__":
    unittest.main()
