"""Helpers for turning PNG/JPEG/HEIC images into black-and-white PNG files.

The module exposes small building blocks that the CLI strings together:
* Image type classification and output naming
* Recursive expansion of file/directory inputs
* Decoding to an 8-bit grayscale buffer and re-encoding as PNG
* Binary thresholding of that buffer

Like the rest of the project, the functions are thin wrappers around Pillow so
they can be imported into other scripts as well as driven from ``img2bin_cli``.
"""
from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from PIL import Image
from pillow_heif import register_heif_opener

register_heif_opener()

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 128
OUTPUT_DIR_NAME = "output"
OUTPUT_SUFFIX = "-bin"


class Img2binError(Exception):
    """Base class for conversion failures."""


class DecodeError(Img2binError):
    pass


class EncodeError(Img2binError):
    pass


class FatalSetupError(Img2binError):
    """The run cannot start, e.g. the output directory cannot be created."""


class ImageKind(enum.Enum):
    PNG = "public.png"
    JPEG = "public.jpeg"
    HEIC = "public.heic"
    UNSUPPORTED = "public.data"


_KIND_BY_EXTENSION = {
    ".png": ImageKind.PNG,
    ".jpg": ImageKind.JPEG,
    ".jpeg": ImageKind.JPEG,
    ".jpe": ImageKind.JPEG,
    ".jfif": ImageKind.JPEG,
    ".heic": ImageKind.HEIC,
}


@dataclass(frozen=True)
class InputSpec:
    """One user-supplied input path plus the threshold shared by the whole run."""

    path: str
    threshold: int = DEFAULT_THRESHOLD


@dataclass(frozen=True)
class ImageFile:
    path: Path
    kind: ImageKind
    is_dir: bool

    @property
    def is_image(self) -> bool:
        return not self.is_dir and self.kind is not ImageKind.UNSUPPORTED


@dataclass
class PixelBuffer:
    """Row-major 8-bit grayscale samples, ``width * height`` bytes, no padding."""

    width: int
    height: int
    data: bytearray

    def index(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        return y * self.width + x

    def get(self, x: int, y: int) -> int:
        return self.data[self.index(x, y)]


def classify_path(path: os.PathLike[str] | str) -> ImageFile:
    """Return the detected type of ``path``; never raises."""
    p = Path(path)
    is_dir = p.is_dir()
    if is_dir:
        return ImageFile(path=p, kind=ImageKind.UNSUPPORTED, is_dir=True)
    kind = _KIND_BY_EXTENSION.get(p.suffix.lower(), ImageKind.UNSUPPORTED)
    return ImageFile(path=p, kind=kind, is_dir=False)


def is_image_file(path: os.PathLike[str] | str) -> bool:
    return classify_path(path).is_image


def output_path_for(input_path: os.PathLike[str] | str, output_dir: os.PathLike[str] | str) -> Path:
    """Flat output location: ``<output_dir>/<stem>-bin.png``."""
    return Path(output_dir) / f"{Path(input_path).stem}{OUTPUT_SUFFIX}.png"


def iter_candidate_paths(inputs: Iterable[str | os.PathLike[str]]) -> Iterator[Path]:
    """Yield absolute file paths for every input, descending into directories.

    Missing inputs are skipped silently. Symlinked directories are not followed,
    so link cycles cannot recurse forever. Order is whatever the filesystem gives.
    """
    for raw in inputs:
        path = Path(raw).absolute()
        if not path.exists():
            logger.debug("Input does not exist, skipping: %s", path)
            continue
        if not path.is_dir():
            yield path
            continue
        for dirpath, _dirnames, filenames in os.walk(path, onerror=_log_walk_error):
            for name in filenames:
                yield Path(dirpath) / name


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Cannot list directory %s: %s", exc.filename, exc.strerror or exc)


def decode_image(path: os.PathLike[str] | str) -> PixelBuffer:
    """Load ``path`` as 8-bit grayscale at native resolution.

    Alpha is dropped rather than composited onto a background, so transparent
    images convert on a best-effort basis.
    """
    try:
        with Image.open(path) as img:
            img.load()
            gray = img.convert("L")
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"{exc}") from exc

    width, height = gray.size
    if width <= 0 or height <= 0:
        raise DecodeError(f"image has empty dimensions {width}x{height}")
    return PixelBuffer(width=width, height=height, data=bytearray(gray.tobytes()))


def encode_image(buffer: PixelBuffer, path: os.PathLike[str] | str) -> Path:
    """Write ``buffer`` as a grayscale PNG, overwriting whatever is at ``path``."""
    if buffer.width <= 0 or buffer.height <= 0:
        raise EncodeError(f"cannot encode empty {buffer.width}x{buffer.height} buffer")
    if len(buffer.data) != buffer.width * buffer.height:
        raise EncodeError(
            f"buffer holds {len(buffer.data)} bytes; expected {buffer.width * buffer.height}"
        )

    out = Path(path)
    try:
        img = Image.frombytes("L", (buffer.width, buffer.height), bytes(buffer.data))
        img.save(out, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError(f"{exc}") from exc
    return out


def threshold_table(threshold: int) -> bytes:
    return bytes(255 if value > threshold else 0 for value in range(256))


def apply_threshold(buffer: PixelBuffer, threshold: int) -> PixelBuffer:
    """Binarize ``buffer`` in place: samples above ``threshold`` become 255, the rest 0.

    A sample equal to the threshold maps to 0, so ``threshold >= 255`` yields an
    all-black image and a negative threshold an all-white one.
    """
    buffer.data[:] = buffer.data.translate(threshold_table(threshold))
    return buffer


def convert_file(path: os.PathLike[str] | str, threshold: int, output_dir: os.PathLike[str] | str) -> Path | None:
    """Run one candidate through classify -> decode -> threshold -> encode.

    Returns the written path, or ``None`` when the file was skipped or failed.
    Failures are logged and never raised.
    """
    if not is_image_file(path):
        logger.info("Skipping non-image file: %s", path)
        return None

    try:
        buffer = decode_image(path)
    except DecodeError as exc:
        logger.warning("Cannot read image %s: %s", path, exc)
        return None

    apply_threshold(buffer, threshold)

    target = output_path_for(path, output_dir)
    try:
        encode_image(buffer, target)
    except EncodeError as exc:
        logger.error("Cannot write image %s: %s", target, exc)
        return None

    logger.info("Saved binarized image -> %s", target)
    return target


def prepare_output_dir(output_dir: os.PathLike[str] | str) -> Path:
    out = Path(output_dir)
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FatalSetupError(f"cannot create output directory {out}: {exc}") from exc
    return out


def convert_inputs(
    inputs: Iterable[str | os.PathLike[str]],
    threshold: int = DEFAULT_THRESHOLD,
    output_dir: os.PathLike[str] | str = OUTPUT_DIR_NAME,
) -> None:
    """Convert every image found under ``inputs`` into ``output_dir``.

    Only ``FatalSetupError`` escapes; per-file problems end up in the log.
    """
    specs = [InputSpec(path=os.fspath(raw), threshold=threshold) for raw in inputs]
    convert_specs(specs, output_dir)


def convert_specs(specs: Iterable[InputSpec], output_dir: os.PathLike[str] | str = OUTPUT_DIR_NAME) -> None:
    """Like ``convert_inputs``, but each spec carries its own threshold."""
    out = prepare_output_dir(output_dir)
    for spec in specs:
        for candidate in iter_candidate_paths([spec.path]):
            convert_file(candidate, spec.threshold, out)
