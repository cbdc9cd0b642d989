"""
Image helpers for uploads: downscale and re-encode to JPEG before storage
"""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

JPEG_CONTENT_TYPE = 'image/jpeg'

# Roughly a 48MP phone photo; anything bigger is refused before decoding
MAX_IMAGE_PIXELS = 50_000_000


def scaled_size(width, height, max_width, max_height=None):
    """
    Size that fits (width, height) inside the bounds, keeping the aspect ratio.
    Images already inside the bounds keep their size.
    """
    if width <= 0 or height <= 0:
        raise ValueError("Image dimensions must be positive")

    scale = 1.0
    if max_width and width > max_width:
        scale = min(scale, max_width / width)
    if max_height and height > max_height:
        scale = min(scale, max_height / height)

    if scale >= 1.0:
        return width, height

    new_width = max(1, round(width * scale))
    new_height = max(1, round(height * scale))
    return new_width, new_height


def resize_image(data, max_width=1200, max_height=1200, quality=80, max_pixels=MAX_IMAGE_PIXELS):
    """
    Decode image bytes, shrink to fit max_width x max_height and re-encode as JPEG.

    Returns (jpeg_bytes, width, height). Raises ValueError when the bytes are not
    a readable image or the header declares more than max_pixels pixels.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            # only the header has been read so far
            if max_pixels and img.width * img.height > max_pixels:
                raise ValueError(
                    f"Image is too large: {img.width}x{img.height} pixels exceeds {max_pixels}"
                )

            # honour camera orientation before measuring
            img = ImageOps.exif_transpose(img)
            target = scaled_size(img.width, img.height, max_width, max_height)

            if img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            if target != img.size:
                logger.debug(f"Resizing image from {img.size} to {target}")
                img = img.resize(target, Image.Resampling.LANCZOS)

            output = io.BytesIO()
            img.save(output, format='JPEG', quality=quality, optimize=True)
            return output.getvalue(), img.width, img.height
    except Image.DecompressionBombError as e:
        raise ValueError(f"Image is too large: {str(e)}")
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unsupported or corrupt image: {str(e)}")
