import io
import os
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

EXIF_ORIENTATION_TAG = 274

# Orientation values we correct for. Flipped variants (2, 4, 5, 7) and the
# 180 degree case (3) are left as-is.
ORIENTATION_ROTATIONS = {
    6: Image.Transpose.ROTATE_270,  # 90 degrees clockwise
    8: Image.Transpose.ROTATE_90,   # 90 degrees counter-clockwise
}

DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


class ImageTransformError(Exception):
    """Base class for transform failures"""


class DecodeError(ImageTransformError):
    """Input bytes could not be parsed as an image"""


class EncodeError(ImageTransformError):
    """Resized raster could not be written to the output format"""


@dataclass(frozen=True)
class ImageSettings:
    max_width: int = 1080
    resized_suffix: str = "optimised"
    orientation_tag: int = EXIF_ORIENTATION_TAG
    output_format: str = "JPEG"
    output_extension: str = "jpg"
    content_type: str = "image/jpeg"
    jpeg_quality: int = 75
    access_policy: str = "public-read"

    def __post_init__(self):
        if self.max_width <= 0:
            raise ValueError(f"max_width must be positive, got {self.max_width}")
        if not 0 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be between 0 and 100, got {self.jpeg_quality}")

    @classmethod
    def from_env(cls) -> "ImageSettings":
        """
        Build settings from Lambda environment variables.

        Recognised: MAX_WIDTH, RESIZED_SUFFIX, JPEG_QUALITY, OUTPUT_ACL.
        Unset variables keep their defaults.
        """
        defaults = cls()
        return cls(
            max_width=int(os.environ.get('MAX_WIDTH', defaults.max_width)),
            resized_suffix=os.environ.get('RESIZED_SUFFIX', defaults.resized_suffix),
            jpeg_quality=int(os.environ.get('JPEG_QUALITY', defaults.jpeg_quality)),
            access_policy=os.environ.get('OUTPUT_ACL', defaults.access_policy),
        )

    @property
    def output_suffix(self) -> str:
        return f".{self.resized_suffix}.{self.output_extension}"


def read_orientation(image: Image.Image, tag: int = EXIF_ORIENTATION_TAG) -> Optional[int]:
    """Return the EXIF orientation value, or None when the image carries none"""
    value = image.getexif().get(tag)
    if isinstance(value, int):
        return value
    return None


def rotation_for_orientation(orientation: Optional[int]) -> Optional[Image.Transpose]:
    return ORIENTATION_ROTATIONS.get(orientation)


def compute_target_size(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """
    Proportional size for a raster scaled to exactly max_width.

    The height is truncated, and never drops below one pixel so very wide
    panoramas still produce an encodable image.
    """
    aspect_ratio = height / width
    new_height = int(max_width * aspect_ratio)
    return max_width, max(new_height, 1)


class ImageTransform:
    """
    Decode, orient, resize and re-encode a single image.

    Holds only its settings; every call owns its own rasters, so one
    instance may be shared freely across invocations.
    """

    def __init__(self, settings: Optional[ImageSettings] = None):
        self.settings = settings or ImageSettings()

    def transform(self, image_data: bytes) -> bytes:
        with ExitStack() as stack:
            image = self._decode(image_data)
            stack.callback(image.close)

            rotation = rotation_for_orientation(
                read_orientation(image, self.settings.orientation_tag)
            )
            if rotation is not None:
                image = image.transpose(rotation)
                stack.callback(image.close)

            # JPEG has no alpha channel; drop it by direct copy rather than
            # compositing onto a background.
            if image.mode not in ('RGB', 'L'):
                image = image.convert('RGB')
                stack.callback(image.close)

            size = compute_target_size(image.width, image.height, self.settings.max_width)
            resized = image.resize(size, resample=Image.Resampling.BICUBIC)
            stack.callback(resized.close)

            return self._encode(resized)

    def _decode(self, image_data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(image_data))
        except DECODE_ERRORS as e:
            raise DecodeError(f"Failed to decode image: {str(e)}") from e

        # Image.open is lazy; force the pixel data so truncation shows up here
        try:
            image.load()
        except DECODE_ERRORS as e:
            image.close()
            raise DecodeError(f"Failed to decode image: {str(e)}") from e
        return image

    def _encode(self, image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        try:
            image.save(buffer, format=self.settings.output_format, quality=self.settings.jpeg_quality)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(f"Failed to encode image as {self.settings.output_format}: {str(e)}") from e
        return buffer.getvalue()


def resize_image(image_data: bytes, settings: Optional[ImageSettings] = None) -> bytes:
    """Convenience wrapper around ImageTransform(settings).transform()"""
    return ImageTransform(settings).transform(image_data)
