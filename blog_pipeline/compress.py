from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePosixPath
from typing import Callable, Protocol, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from .config_schema import AppConfig, CompressionConfig, UploadsConfig
from .errors import ImageDecodeError
from .post import ImageFile
from .run_log import RunLogger

JPEG_CONTENT_TYPE = "image/jpeg"


class ImageCodec(Protocol):
    """A decoded image that can be re-encoded at a quality and a longest-side bound."""

    @property
    def size(self) -> tuple[int, int]: ...

    def encode(self, quality: float, max_dimension: int) -> bytes: ...


CodecFactory = Callable[[bytes], ImageCodec]


def _pillow_quality(quality: float) -> int:
    return max(1, min(95, int(round(quality * 100))))


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
    if not has_alpha:
        return img.convert("RGB")

    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


class PillowCodec:
    """JPEG re-encoder backed by Pillow."""

    def __init__(self, image: Image.Image) -> None:
        self._image = image
        self._resized: tuple[tuple[int, int], Image.Image] | None = None

    @classmethod
    def open(cls, data: bytes) -> "PillowCodec":
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                oriented = ImageOps.exif_transpose(img)
                rgb = _flatten_to_rgb(oriented if oriented is not None else img)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Failed to decode image: {e}") from e
        return cls(rgb)

    @property
    def size(self) -> tuple[int, int]:
        return self._image.size

    def _scaled(self, max_dimension: int) -> Image.Image:
        w, h = self._image.size
        ratio = min(1.0, max_dimension / max(w, h))
        target = (max(1, round(w * ratio)), max(1, round(h * ratio)))
        if target == (w, h):
            return self._image

        if self._resized is not None and self._resized[0] == target:
            return self._resized[1]

        resized = self._image.resize(target, Image.Resampling.LANCZOS)
        self._resized = (target, resized)
        return resized

    def encode(self, quality: float, max_dimension: int) -> bytes:
        buf = BytesIO()
        try:
            self._scaled(max_dimension).save(
                buf,
                format="JPEG",
                quality=_pillow_quality(quality),
                optimize=True,
            )
        except (OSError, ValueError) as e:
            raise ImageDecodeError(f"Failed to encode image: {e}") from e
        return buf.getvalue()


@dataclass(frozen=True)
class CompressionSettings:
    max_bytes: int = 10 * 1024 * 1024
    max_width: int = 1600
    max_height: int = 1600

    initial_quality: float = 0.92
    min_quality: float = 0.5
    quality_step: float = 0.07
    quality_bump: float = 0.05

    dimension_shrink: float = 0.8
    min_dimension: int = 400

    @classmethod
    def from_config(cls, config: AppConfig) -> "CompressionSettings":
        return cls.from_sections(config.uploads, config.compression)

    @classmethod
    def from_sections(
        cls, uploads: UploadsConfig, compression: CompressionConfig
    ) -> "CompressionSettings":
        return cls(
            max_bytes=uploads.target_max_bytes,
            max_width=uploads.max_width,
            max_height=uploads.max_height,
            initial_quality=compression.initial_quality,
            min_quality=compression.min_quality,
            quality_step=compression.quality_step,
            quality_bump=compression.quality_bump,
            dimension_shrink=compression.dimension_shrink,
            min_dimension=compression.min_dimension,
        )


@dataclass(frozen=True)
class CompressionResult:
    file: ImageFile
    compressed: bool
    attempts: int = 0
    quality: float | None = None
    max_dimension: int | None = None

    @classmethod
    def unchanged(cls, file: ImageFile, *, attempts: int = 0) -> "CompressionResult":
        return cls(file=file, compressed=False, attempts=attempts)


def _jpeg_name(name: str) -> str:
    p = PurePosixPath(name or "image")
    return str(p.with_suffix(".jpg")) if p.name else "image.jpg"


def compress_image(
    file: ImageFile,
    settings: CompressionSettings | None = None,
    *,
    codec_factory: CodecFactory | None = None,
    logger: RunLogger | None = None,
) -> CompressionResult:
    """
    Re-encode and shrink an image until it fits the byte budget.

    Lowers JPEG quality first, then the longest side down to min_dimension.
    Best effort: returns the last encoding when the floor is reached, and the
    original file when it is already small enough, cannot be decoded, or
    would not get smaller.
    """
    cfg = settings or CompressionSettings()
    if file.size <= cfg.max_bytes:
        return CompressionResult.unchanged(file)

    factory = codec_factory or PillowCodec.open
    attempts = 0

    try:
        codec = factory(file.data)

        w, h = codec.size
        ratio = min(1.0, cfg.max_width / w, cfg.max_height / h)
        dimension = max(1, round(max(w, h) * ratio))
        quality = cfg.initial_quality

        attempts += 1
        data = codec.encode(quality, dimension)

        while len(data) > cfg.max_bytes and quality > cfg.min_quality:
            quality = max(cfg.min_quality, round(quality - cfg.quality_step, 4))
            attempts += 1
            data = codec.encode(quality, dimension)

        reset_quality = min(cfg.initial_quality, round(cfg.min_quality + cfg.quality_bump, 4))
        while len(data) > cfg.max_bytes and dimension > cfg.min_dimension:
            dimension = max(cfg.min_dimension, round(dimension * cfg.dimension_shrink))
            quality = reset_quality
            attempts += 1
            data = codec.encode(quality, dimension)
    except ImageDecodeError as e:
        if logger is not None:
            logger.warning(
                "image_decode_failed",
                name=file.name,
                size=file.size,
                error=str(e),
            )
        return CompressionResult.unchanged(file, attempts=attempts)

    if len(data) >= file.size:
        return CompressionResult.unchanged(file, attempts=attempts)

    out = ImageFile(name=_jpeg_name(file.name), data=data, content_type=JPEG_CONTENT_TYPE)

    if logger is not None:
        logger.info(
            "image_compressed",
            name=file.name,
            original_size=file.size,
            compressed_size=out.size,
            quality=quality,
            max_dimension=dimension,
            attempts=attempts,
            under_budget=out.size <= cfg.max_bytes,
        )

    return CompressionResult(
        file=out,
        compressed=True,
        attempts=attempts,
        quality=quality,
        max_dimension=dimension,
    )


async def compress_image_async(
    file: ImageFile,
    settings: CompressionSettings | None = None,
    *,
    codec_factory: CodecFactory | None = None,
    logger: RunLogger | None = None,
) -> CompressionResult:
    return await asyncio.to_thread(
        compress_image,
        file,
        settings,
        codec_factory=codec_factory,
        logger=logger,
    )


async def compress_many(
    files: Sequence[ImageFile],
    settings: CompressionSettings | None = None,
    *,
    timeout: float | None = None,
    codec_factory: CodecFactory | None = None,
    logger: RunLogger | None = None,
) -> list[CompressionResult]:
    """
    Compress each file in its own task. A task that times out or fails yields
    the original file; results keep input order.
    """

    async def _one(file: ImageFile) -> CompressionResult:
        job = compress_image_async(file, settings, codec_factory=codec_factory, logger=logger)
        try:
            if timeout is None:
                return await job
            return await asyncio.wait_for(job, timeout)
        except asyncio.TimeoutError:
            if logger is not None:
                logger.warning("image_compress_timeout", name=file.name, timeout=timeout)
            return CompressionResult.unchanged(file)
        except Exception as e:
            if logger is not None:
                logger.exception("image_compress_failed", exc=e, name=file.name)
            return CompressionResult.unchanged(file)

    return list(await asyncio.gather(*(_one(f) for f in files)))
