"""test_sanitize.py — Unit tests for engtasks_shared.sanitize.

Run from shared_layer directory:
    PYTHONPATH=python python3 -m pytest test_sanitize.py -v
"""

from __future__ import annotations

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from engtasks_shared.sanitize import (
    MAX_REQUEST_BODY_SIZE,
    contains_prototype_pollution_keys,
    has_prototype_pollution,
    sanitize_string_fields,
    strip_control_characters,
    strip_html_tags,
    validate_request_body_size,
)


class StripControlCharactersTests(unittest.TestCase):
    def test_removes_c0_c1_and_del_but_keeps_newline(self):
        self.assertEqual(strip_control_characters("a\x00b\nc\x7f\x85d\te\r"), "ab\ncde")

    def test_idempotent(self):
        once = strip_control_characters("x\x01y\n\x9fz")
        self.assertEqual(strip_control_characters(once), once)

    def test_non_string_passthrough(self):
        self.assertEqual(strip_control_characters(42), 42)
        self.assertIsNone(strip_control_characters(None))


class StripHtmlTagsTests(unittest.TestCase):
    def test_removes_script_block_with_content(self):
        self.assertEqual(strip_html_tags("Hello <script>alert('x')</script>World"), "Hello World")

    def test_removes_style_block(self):
        self.assertEqual(strip_html_tags("a<style>body{display:none}</style>b"), "ab")

    def test_removes_unclosed_script(self):
        self.assertEqual(strip_html_tags("before<script>alert(1)"), "before")

    def test_nested_bypass_cannot_reassemble(self):
        result = strip_html_tags("<<script>script>alert(1)<</script>/script>")
        self.assertNotIn("<", result)
        self.assertNotIn("script>", result)

    def test_event_handler_and_tag_removed(self):
        self.assertEqual(strip_html_tags('x<img src="a.png" onerror="alert(1)">y'), "xy")

    def test_javascript_url_removed(self):
        self.assertEqual(
            strip_html_tags('Click <a href="javascript:alert(1)">here</a>'),
            "Click here",
        )

    def test_handler_like_prose_outside_tags_survives(self):
        text = "Set onboarding=true and ongoing=yes in config"
        self.assertEqual(strip_html_tags(text), text)
        self.assertEqual(
            strip_html_tags('Flag "online=1" <b onclick="x()">now</b>'),
            'Flag "online=1" now',
        )
        self.assertEqual(strip_html_tags("docs say href=javascript:void(0) is bad"),
                         "docs say href=javascript:void(0) is bad")

    def test_entity_encoded_brackets_removed(self):
        result = strip_html_tags("&lt;script&gt;alert(1)&lt;/script&gt;")
        self.assertNotIn("&lt;", result)
        self.assertNotIn("&gt;", result)
        self.assertEqual(strip_html_tags("&#60;b&#62;bold"), "bbold")
        self.assertEqual(strip_html_tags("&#X3C;i&#x3e;"), "i")

    def test_comment_removed(self):
        self.assertEqual(strip_html_tags("a<!-- hidden -->b"), "ab")

    def test_plain_text_comparisons_survive(self):
        text = "Ensure a < b and c > d before merging"
        self.assertEqual(strip_html_tags(text), text)

    def test_plain_text_preserved_around_tags(self):
        self.assertEqual(strip_html_tags("<b>Fix</b> the <i>login</i> bug"), "Fix the login bug")

    def test_non_string_passthrough(self):
        self.assertEqual(strip_html_tags(7), 7)
        self.assertEqual(strip_html_tags(["<b>"]), ["<b>"])


class SanitizeStringFieldsTests(unittest.TestCase):
    def test_recurses_into_dicts_and_lists(self):
        payload = {
            "a": "x\x00y",
            "b": ["\x01z", 5, None, True],
            "c": {"d": "ok\n"},
        }
        self.assertEqual(
            sanitize_string_fields(payload),
            {"a": "xy", "b": ["z", 5, None, True], "c": {"d": "ok\n"}},
        )

    def test_none(self):
        self.assertIsNone(sanitize_string_fields(None))


class PrototypePollutionTests(unittest.TestCase):
    def test_raw_key_detected(self):
        self.assertTrue(contains_prototype_pollution_keys('{"__proto__": {"admin": true}}'))
        self.assertTrue(contains_prototype_pollution_keys('{ "Constructor" :{"prototype":1}}'))

    def test_raw_value_is_not_flagged(self):
        self.assertFalse(contains_prototype_pollution_keys('{"description": "__proto__"}'))
        self.assertFalse(contains_prototype_pollution_keys('{"tags": ["prototype", "x"]}'))

    def test_raw_non_string_or_empty(self):
        self.assertFalse(contains_prototype_pollution_keys(None))
        self.assertFalse(contains_prototype_pollution_keys(""))
        self.assertFalse(contains_prototype_pollution_keys({"__proto__": 1}))

    def test_parsed_nested_in_list(self):
        self.assertTrue(has_prototype_pollution({"a": [{"b": {"constructor": 1}}]}))

    def test_parsed_values_ok(self):
        self.assertFalse(has_prototype_pollution({"a": ["__proto__"], "b": "prototype"}))

    def test_parsed_cycle_terminates(self):
        obj = {"a": 1}
        obj["self"] = obj
        self.assertFalse(has_prototype_pollution(obj))


class RequestBodySizeTests(unittest.TestCase):
    def test_at_limit_ok(self):
        self.assertIsNone(validate_request_body_size("a" * MAX_REQUEST_BODY_SIZE))

    def test_over_limit(self):
        self.assertEqual(
            validate_request_body_size("a" * (MAX_REQUEST_BODY_SIZE + 1)),
            "Request body exceeds maximum allowed size of 10240 bytes",
        )

    def test_counts_utf8_bytes(self):
        # 5121 two-byte characters is 10242 bytes
        self.assertIsNotNone(validate_request_body_size("é" * 5121))

    def test_none_accepted(self):
        self.assertIsNone(validate_request_body_size(None))


if __name__ == "__main__":
    unittest.main()
