"""
Cover image pipeline.

Uploaded covers are staged in a temp file, decoded, shrunk so the larger
side is at most 1200px, re-encoded as WebP (or progressive JPEG) with all
metadata dropped except the EXIF orientation, and stored under ``covers/``.
The staged file is removed on every exit path.
"""

import io
import logging
import random
import time

from PIL import Image

from .errors import (
    ImageProcessingFailed,
    InvalidInput,
    PayloadTooLarge,
    UnsupportedMediaType,
)

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

OUTPUT_FORMATS = {
    "webp": ("WEBP", ".webp"),
    "jpeg": ("JPEG", ".jpg"),
}

EXIF_ORIENTATION = 0x0112

COVERS_DIR = "covers"
TEMP_DIR = "covers/temp"


def _unique_suffix():
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"


def fit_within(width, height, max_dimension):
    """Target size with the larger side clamped to max_dimension. Never upscales."""
    largest = max(width, height)
    if largest <= max_dimension:
        return width, height
    scale = max_dimension / largest
    return max(1, round(width * scale)), max(1, round(height * scale))


class CoverImageProcessor:
    def __init__(self, storage, max_dimension=1200, quality=90,
                 max_bytes=15 * 1024 * 1024, default_format="webp"):
        self.storage = storage
        self.max_dimension = max_dimension
        self.quality = quality
        self.max_bytes = max_bytes
        self.default_format = default_format

    def validate(self, data, mimetype):
        if (mimetype or "").lower() not in ALLOWED_MIME_TYPES:
            raise UnsupportedMediaType()
        if len(data) > self.max_bytes:
            raise PayloadTooLarge(
                f"File too large (max {self.max_bytes // (1024 * 1024)} MB)"
            )

    def process(self, data, mimetype, fmt=None):
        """
        Run the whole pipeline and return the stored cover's relative path.
        """
        fmt = (fmt or self.default_format).lower()
        if fmt == "jpg":
            fmt = "jpeg"
        if fmt not in OUTPUT_FORMATS:
            raise InvalidInput(f"Unknown cover format: {fmt}")
        self.validate(data, mimetype)

        temp_path = (
            f"{TEMP_DIR}/temp-{_unique_suffix()}{ALLOWED_MIME_TYPES[mimetype.lower()]}"
        )
        try:
            self.storage.write(temp_path, data)
            encoded, width, height = self._encode(temp_path, fmt)
            final_path = self.storage.write(
                f"{COVERS_DIR}/book-cover-{_unique_suffix()}{OUTPUT_FORMATS[fmt][1]}",
                encoded,
            )
        except Exception as exc:
            logger.exception("Failed to process cover image")
            raise ImageProcessingFailed() from exc
        finally:
            self.storage.delete(temp_path)

        original = len(data)
        compressed = len(encoded)
        logger.info(
            "Cover stored at %s (%dx%d): %.2f MB -> %.2f MB (%.1f%% smaller)",
            final_path,
            width,
            height,
            original / 1024 / 1024,
            compressed / 1024 / 1024,
            (1 - compressed / original) * 100 if original else 0.0,
        )
        return final_path

    def _encode(self, temp_path, fmt):
        with Image.open(self.storage.path(temp_path)) as image:
            image.load()
            logger.info("Cover upload: %sx%s (%s)", image.width, image.height, image.format)
            orientation = image.getexif().get(EXIF_ORIENTATION)

            if fmt == "jpeg":
                if image.mode != "RGB":
                    image = image.convert("RGB")
            elif image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")

            size = fit_within(image.width, image.height, self.max_dimension)
            if size != image.size:
                logger.info("Resizing cover to %dx%d", *size)
                image = image.resize(size, Image.Resampling.LANCZOS)

            options = {"quality": self.quality}
            if orientation:
                exif = Image.Exif()
                exif[EXIF_ORIENTATION] = orientation
                options["exif"] = exif.tobytes()
            if fmt == "jpeg":
                options.update(progressive=True, optimize=True)
            else:
                options.update(method=4)

            out = io.BytesIO()
            image.save(out, format=OUTPUT_FORMATS[fmt][0], **options)
            return out.getvalue(), image.width, image.height

    def discard(self, relative_path):
        if relative_path:
            self.storage.delete(relative_path)


class CoverUpload:
    """An uploaded cover as raw bytes plus its declared MIME type."""

    def __init__(self, data, mimetype, filename=None):
        self.data = data
        self.mimetype = mimetype
        self.filename = filename

    @classmethod
    def from_file_storage(cls, file):
        return cls(file.read(), file.mimetype, file.filename)
