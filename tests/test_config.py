from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from blog_pipeline.compress import CompressionSettings
from blog_pipeline.config import load_config, resolve_api_settings
from blog_pipeline.config_schema import AppConfig
from blog_pipeline.errors import ConfigError


def _write(tmp: str, body: str) -> Path:
    p = Path(tmp) / "config.yaml"
    p.write_text(textwrap.dedent(body), encoding="utf-8")
    return p


class TestLoadConfig(unittest.TestCase):
    def test_none_path_gives_defaults(self) -> None:
        cfg = load_config(None)
        self.assertEqual(cfg.content.preview_words, 50)
        self.assertEqual(cfg.content.words_per_minute, 200)
        self.assertEqual(cfg.uploads.target_max_bytes, 10 * 1024 * 1024)
        self.assertEqual(cfg.uploads.max_client_bytes, 20 * 1024 * 1024)
        self.assertEqual(cfg.uploads.max_video_bytes, 200 * 1024 * 1024)
        self.assertEqual(cfg.compression.min_dimension, 400)

    def test_valid_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = _write(
                td,
                """
                api:
                  base_url: "https://blog.example.com/"
                content:
                  preview_words: 30
                compression:
                  initial_quality: 0.9
                """,
            )
            cfg = load_config(p)

        self.assertEqual(cfg.api.base_url, "https://blog.example.com")
        self.assertEqual(cfg.content.preview_words, 30)
        self.assertEqual(CompressionSettings.from_config(cfg).initial_quality, 0.9)

    def test_empty_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, ""))
        self.assertEqual(cfg.api.timeout_seconds, 15.0)

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            load_config("/nonexistent/config.yaml")
        self.assertIn("not found", str(ctx.exception))

    def test_invalid_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, "api: [unclosed"))

    def test_top_level_must_be_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, "- a\n- b\n"))

    def test_validation_errors_are_readable(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = _write(
                td,
                """
                content:
                  preview_words: 0
                surprise: true
                """,
            )
            with self.assertRaises(ConfigError) as ctx:
                load_config(p)

        msg = str(ctx.exception)
        self.assertIn("content.preview_words", msg)
        self.assertIn("surprise", msg)

    def test_cross_field_rules(self) -> None:
        bodies = [
            """
            uploads:
              target_max_bytes: 2000
              max_client_bytes: 1000
            """,
            """
            compression:
              initial_quality: 0.4
              min_quality: 0.5
            """,
            """
            compression:
              dimension_shrink: 1.0
            """,
            """
            api:
              token_env: "not a name"
            """,
        ]
        for body in bodies:
            with self.subTest(body=body):
                with tempfile.TemporaryDirectory() as td:
                    with self.assertRaises(ConfigError):
                        load_config(_write(td, body))


class TestResolveApiSettings(unittest.TestCase):
    def test_explicit_base_url_wins(self) -> None:
        cfg = AppConfig.model_validate({"api": {"base_url": "http://a"}})
        settings = resolve_api_settings(cfg, environ={"BLOG_API_URL": "http://b"})
        self.assertEqual(settings.base_url, "http://a")
        self.assertIsNone(settings.token)

    def test_environment_fallback_and_token(self) -> None:
        settings = resolve_api_settings(
            load_config(None),
            environ={"BLOG_API_URL": " http://b/ ", "BLOG_API_TOKEN": "secret"},
        )
        self.assertEqual(settings.base_url, "http://b")
        self.assertEqual(settings.token, "secret")

    def test_missing_base_url(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            resolve_api_settings(load_config(None), environ={})
        self.assertIn("BLOG_API_URL", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
