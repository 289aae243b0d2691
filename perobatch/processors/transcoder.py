import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from PIL import Image, ImageOps, UnidentifiedImageError

from perobatch.core.exceptions import TranscodeError
from perobatch.utils.file_detection import is_tiff

logger = logging.getLogger(__name__)

JPEG_QUALITY = 75


def _prepare_frame(frame: Image.Image) -> Image.Image:
    frame = ImageOps.exif_transpose(frame)
    if frame.mode not in ("RGB", "L"):
        frame = frame.convert("RGB")
    return frame


def _temp_sibling(source: Path) -> Path:
    fd, name = tempfile.mkstemp(prefix=f".{source.stem}.", suffix=".jpg", dir=source.parent)
    os.close(fd)
    return Path(name)


def transcode_tiff_to_jpeg(source: str | Path) -> Path:
    """
    Decode a TIFF and write its first page as a baseline JPEG to a hidden
    sibling temporary file. The caller owns and must delete the result.

    Raises:
        TranscodeError: The TIFF cannot be decoded or the JPEG cannot be
            written. No output file is left behind.
    """
    source = Path(source)
    try:
        out_path = _temp_sibling(source)
    except OSError as e:
        raise TranscodeError(str(source), f"cannot create output file: {e}") from e

    try:
        with Image.open(source) as image:
            image.load()
            frame = _prepare_frame(image)
            frame.save(out_path, format="JPEG", quality=JPEG_QUALITY, progressive=False)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        EOFError,
        ValueError,
        SyntaxError,
    ) as e:
        out_path.unlink(missing_ok=True)
        raise TranscodeError(str(source), str(e) or type(e).__name__) from e
    except BaseException:
        out_path.unlink(missing_ok=True)
        raise

    logger.debug("converted %s -> %s", source, out_path)
    return out_path


def prepare_for_upload(path: str | Path) -> Path:
    """TIFF files are transcoded to JPEG; everything else is returned unchanged."""
    path = Path(path)
    if is_tiff(path):
        return transcode_tiff_to_jpeg(path)
    return path


@contextmanager
def upload_source(path: str | Path) -> Iterator[Path]:
    """
    Yield the file to upload for ``path`` and delete any temporary JPEG on
    exit, whether the upload succeeded or not.
    """
    original = Path(path)
    prepared = prepare_for_upload(original)
    try:
        yield prepared
    finally:
        if prepared != original:
            try:
                prepared.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("cannot remove temporary file %s: %s", prepared, e)
