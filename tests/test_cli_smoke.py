from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from PIL import Image

_PAYLOAD = {
    "data": [
        {
            "_id": "1",
            "slug": "first",
            "title": "First",
            "content": "<h2>Intro</h2><p>Hello <script>x()</script>world</p><h2>Intro</h2>",
        },
        {"_id": "2", "title": "Second", "content": "<p>Two words</p>"},
    ]
}


def _run(repo_root: Path, *args: str, env_extra: dict[str, str] | None = None):
    env = dict(os.environ)
    env.pop("BLOG_API_URL", None)
    env.update(env_extra or {})

    existing_pp = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)

    return subprocess.run(
        [sys.executable, "-m", "blog_pipeline", *args],
        cwd=repo_root,
        env=env,
        capture_output=True,
        text=True,
    )


class TestCLISmoke(unittest.TestCase):
    def setUp(self) -> None:
        self.repo_root = Path(__file__).resolve().parents[1]

    def test_render_cards(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            payload_path = Path(td) / "payload.json"
            payload_path.write_text(json.dumps(_PAYLOAD), encoding="utf-8")

            proc = _run(self.repo_root, "render", "--input", str(payload_path))

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        cards = json.loads(proc.stdout)
        self.assertEqual([c["post"]["id"] for c in cards], ["1", "2"])
        self.assertEqual(cards[0]["preview"], "Intro Hello world Intro")

    def test_render_article_by_slug(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            payload_path = Path(td) / "payload.json"
            payload_path.write_text(json.dumps(_PAYLOAD), encoding="utf-8")

            proc = _run(self.repo_root, "render", "--input", str(payload_path), "--slug", "first")
            missing = _run(self.repo_root, "render", "--input", str(payload_path), "--slug", "nope")

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        article = json.loads(proc.stdout)
        self.assertEqual([h["id"] for h in article["toc"]], ["intro", "intro-2"])
        self.assertNotIn("script", article["html"])

        self.assertEqual(missing.returncode, 4)

    def test_render_bad_payload_is_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            payload_path = Path(td) / "payload.json"
            payload_path.write_text("{not json", encoding="utf-8")
            proc = _run(self.repo_root, "render", "--input", str(payload_path))

        self.assertEqual(proc.returncode, 2)
        self.assertIn("not valid JSON", proc.stderr)

    def test_fetch_without_base_url_fails_and_logs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("{}", encoding="utf-8")
            out_dir = Path(td) / "out"

            proc = _run(self.repo_root, "fetch", "--config", str(cfg_path), "--out", str(out_dir))

            self.assertEqual(proc.returncode, 2)
            self.assertIn("BLOG_API_URL", proc.stderr)

            records = [
                json.loads(ln)
                for ln in (out_dir / "run.log").read_text(encoding="utf-8").splitlines()
            ]
            self.assertEqual(
                [r["event"] for r in records], ["fetch_command_started", "fetch_command_failed"]
            )
            self.assertFalse((out_dir / "posts.json").exists())

    def test_compress_small_image(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "in.png"
            Image.new("RGB", (64, 64), (10, 120, 200)).save(src)
            out = Path(td) / "out" / "in.png"

            proc = _run(self.repo_root, "compress", str(src), "--out", str(out))

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("compressed=false", proc.stdout)
            self.assertEqual(out.read_bytes(), src.read_bytes())


if __name__ == "__main__":
    unittest.main()
