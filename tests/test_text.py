from __future__ import annotations

import unittest

from blog_pipeline.text import count_words, plain_text, preview_text, reading_time_minutes


def _words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n))


class TestReadingTime(unittest.TestCase):
    def test_450_words_is_two_minutes(self) -> None:
        self.assertEqual(reading_time_minutes(_words(450)), 2)

    def test_short_inputs_floor_at_one(self) -> None:
        self.assertEqual(reading_time_minutes(""), 1)
        self.assertEqual(reading_time_minutes("<p></p>"), 1)
        self.assertEqual(reading_time_minutes(_words(1)), 1)
        self.assertEqual(reading_time_minutes(_words(200)), 1)
        self.assertEqual(reading_time_minutes(None), 1)

    def test_rounds_half_up(self) -> None:
        self.assertEqual(reading_time_minutes(_words(299)), 1)
        self.assertEqual(reading_time_minutes(_words(300)), 2)
        self.assertEqual(reading_time_minutes(_words(500)), 3)

    def test_monotonic_in_word_count(self) -> None:
        previous = 0
        for n in range(0, 3001, 50):
            minutes = reading_time_minutes(_words(n))
            self.assertGreaterEqual(minutes, previous)
            self.assertGreaterEqual(minutes, 1)
            previous = minutes

    def test_tags_are_word_breaks(self) -> None:
        self.assertEqual(count_words("<p>one</p><p>two</p>"), 2)
        self.assertEqual(count_words("<h2>A</h2>\n<ul><li>b c</li></ul>"), 3)

    def test_custom_rate(self) -> None:
        self.assertEqual(reading_time_minutes(_words(400), words_per_minute=100), 4)


class TestPlainText(unittest.TestCase):
    def test_blocks_lists_and_inline_tags(self) -> None:
        html = "<p>Hello <strong>bold</strong> world</p><ul><li>one</li><li>two</li></ul>"
        self.assertEqual(plain_text(html), "Hello bold world - one - two")

    def test_anchor_keeps_visible_text(self) -> None:
        html = '<p>See <a href="http://x">the docs</a>.</p>'
        self.assertEqual(plain_text(html), "See the docs.")

    def test_inline_tags_do_not_split_words(self) -> None:
        self.assertEqual(plain_text("<p>un<em>believ</em>able</p>"), "unbelievable")

    def test_sub_and_sup_stay_attached(self) -> None:
        self.assertEqual(plain_text("x<sup>2</sup> + H<sub>2</sub>O"), "x2 + H2O")
        html = '<small>fine</small> <abbr title="t">HTML</abbr>'
        self.assertEqual(plain_text(html), "fine HTML")

    def test_quoted_gt_in_attribute_value(self) -> None:
        html = '<p>See <a href="http://x" title="a>b">the docs</a>.</p>'
        self.assertEqual(plain_text(html), "See the docs.")
        self.assertEqual(count_words('<p title="a > b">one two</p>'), 2)

    def test_line_breaks_and_entities(self) -> None:
        self.assertEqual(plain_text("a<br>b<br/>c&nbsp;d &amp; e"), "a b c d & e")

    def test_never_leaks_angle_brackets(self) -> None:
        out = plain_text("<p>&lt;script&gt;x&lt;/script&gt; and <broken")
        self.assertNotIn("<", out)
        self.assertNotIn(">", out)

    def test_non_string(self) -> None:
        self.assertEqual(plain_text(None), "")


class TestPreview(unittest.TestCase):
    def test_short_text_returned_as_is(self) -> None:
        self.assertEqual(preview_text("<p>a b c</p>", 3), "a b c")
        self.assertEqual(preview_text("<p>a b c</p>", 10), "a b c")

    def test_truncates_with_ellipsis(self) -> None:
        out = preview_text("<p>a b <em>c</em> d e</p>", 3)
        self.assertEqual(out, "a b c…")

    def test_truncated_output_is_tag_free(self) -> None:
        html = "<h2>Title</h2>" + "".join(f"<p>word{i} <a href='#'>link</a></p>" for i in range(40))
        out = preview_text(html, 10)
        self.assertTrue(out.endswith("…"))
        self.assertNotIn("<", out)
        self.assertNotIn(">", out)
        self.assertEqual(len(out[:-1].split(" ")), 10)

    def test_custom_ellipsis_and_zero_words(self) -> None:
        self.assertEqual(preview_text("a b c", 2, ellipsis="..."), "a b...")
        self.assertEqual(preview_text("a b c", 0), "")

    def test_empty_input(self) -> None:
        self.assertEqual(preview_text("", 5), "")
        self.assertEqual(preview_text(None, 5), "")


if __name__ == "__main__":
    unittest.main()
