from __future__ import annotations

from .compress import CodecFactory, CompressionResult, CompressionSettings, compress_image
from .config_schema import MIB, AppConfig, UploadsConfig
from .errors import UploadRejectedError
from .post import ImageFile
from .run_log import RunLogger


def _fmt_mb(n_bytes: int) -> str:
    mb = n_bytes / MIB
    return f"{mb:.0f}MB" if mb == int(mb) else f"{mb:.1f}MB"


def check_upload_size(file: ImageFile, kind: str, uploads: UploadsConfig) -> None:
    """Enforce the client-side hard limits; raises UploadRejectedError with a user-facing message."""
    if kind == "video":
        limit = uploads.max_video_bytes
        label = "Video"
    else:
        limit = uploads.max_client_bytes
        label = "File"

    if file.size > limit:
        raise UploadRejectedError(
            f'{label} "{file.name}" is too large ({_fmt_mb(file.size)}). '
            f"Max {_fmt_mb(limit)} allowed."
        )


def prepare_image_upload(
    file: ImageFile,
    config: AppConfig,
    *,
    codec_factory: CodecFactory | None = None,
    logger: RunLogger | None = None,
) -> CompressionResult:
    """
    Gate an image on the hard limit, then fit it under the soft upload budget.

    Files already under target_max_bytes pass through untouched.
    """
    check_upload_size(file, "image", config.uploads)
    return compress_image(
        file,
        CompressionSettings.from_config(config),
        codec_factory=codec_factory,
        logger=logger,
    )
