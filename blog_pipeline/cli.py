from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any, Sequence

from .api_client import BlogApiClient
from .config import load_config
from .errors import ApiError, ConfigError, UploadRejectedError
from .normalize import normalize_payload
from .post import ImageFile
from .render import load_article, load_blog_index, render_article, render_cards
from .run_log import RunLogger
from .uploads import prepare_image_upload

_EXIT_NOT_FOUND = 4


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blog_pipeline")

    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser(
        "render",
        help="Normalize and render a saved backend payload (JSON file).",
    )
    render.add_argument("--input", required=True, help="Path to a JSON payload file.")
    render.add_argument("--config", help="Path to YAML config file.")
    render.add_argument(
        "--slug",
        help="Render the full article whose slug or id matches, instead of the card list.",
    )
    render.set_defaults(_handler=_cmd_render)

    fetch = subparsers.add_parser(
        "fetch",
        help="Fetch posts from the backend and write rendered JSON.",
    )
    fetch.add_argument("--config", required=True, help="Path to YAML config file.")
    fetch.add_argument("--out", required=True, help="Output directory for posts.json and run.log.")
    fetch.add_argument("--slug", help="Fetch and render a single article.")
    fetch.set_defaults(_handler=_cmd_fetch)

    compress = subparsers.add_parser(
        "compress",
        help="Fit an image under the upload budget.",
    )
    compress.add_argument("image", help="Path to the source image.")
    compress.add_argument("--out", required=True, help="Path for the compressed image.")
    compress.add_argument("--config", help="Path to YAML config file.")
    compress.set_defaults(_handler=_cmd_compress)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _cmd_render(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    wpm = cfg.content.words_per_minute

    path = Path(args.input)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read payload file: {path}") from e
    except ValueError as e:
        raise ConfigError(f"Payload file is not valid JSON: {path}: {e}") from e

    posts = normalize_payload(payload)

    slug = (args.slug or "").strip()
    if slug:
        match = next((p for p in posts if slug in (p.slug, p.id)), None)
        if match is None:
            _eprint(f"Post not found: {slug}")
            return _EXIT_NOT_FOUND
        print(_dump(render_article(match, words_per_minute=wpm).to_dict()))
        return 0

    cards = render_cards(posts, preview_words=cfg.content.preview_words, words_per_minute=wpm)
    print(_dump([c.to_dict() for c in cards]))
    return 0


def _cmd_fetch(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    log_path = out_dir / "run.log"
    posts_path = out_dir / "posts.json"

    with RunLogger.open(log_path, overwrite=True) as log:
        log.info("fetch_command_started", config_path=str(args.config), out_dir=str(out_dir))

        try:
            cfg = load_config(args.config)

            with BlogApiClient.from_config(cfg, logger=log) as client:
                log.info("config_loaded", base_url=client.base_url)

                slug = (args.slug or "").strip()
                if slug:
                    article = load_article(
                        client,
                        slug,
                        words_per_minute=cfg.content.words_per_minute,
                        logger=log,
                    )
                    if article is None:
                        _eprint(f"Post not found: {slug}")
                        log.info("fetch_command_completed", status="not_found")
                        return _EXIT_NOT_FOUND
                    data: Any = article.to_dict()
                    count = 1
                else:
                    cards = load_blog_index(
                        client,
                        preview_words=cfg.content.preview_words,
                        words_per_minute=cfg.content.words_per_minute,
                        logger=log,
                    )
                    data = [c.to_dict() for c in cards]
                    count = len(cards)

            posts_path.write_text(_dump(data) + "\n", encoding="utf-8")
            log.info("fetch_command_completed", status="ok", count=count, path=str(posts_path))

            print(f"posts={count}")
            print(f"posts_json={posts_path}")
            print(f"run_log={log_path}")
            return 0
        except Exception as e:
            log.exception("fetch_command_failed", exc=e)
            raise


def _cmd_compress(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    src = Path(args.image)
    try:
        data = src.read_bytes()
    except OSError as e:
        raise ConfigError(f"Failed to read image: {src}") from e

    content_type = mimetypes.guess_type(src.name)[0] or "application/octet-stream"
    source = ImageFile(name=src.name, data=data, content_type=content_type)

    result = prepare_image_upload(source, cfg)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.file.data)

    print(f"original_size={source.size}")
    print(f"output_size={result.file.size}")
    print(f"compressed={str(result.compressed).lower()}")
    print(f"budget={cfg.uploads.target_max_bytes}")
    print(f"output={out}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (ApiError, UploadRejectedError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
