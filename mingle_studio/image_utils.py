"""
Image Utilities for Mingle Studio
=================================

Provides the image plumbing shared by adapters, fetcher and renderer:
- Format detection from magic bytes
- Data-URI encoding/decoding
- Lossless encoding of rendered images
"""

import base64
import io
from typing import Optional, Tuple, Literal
from PIL import Image

# ═══════════════════════════════════════════════════════════════════════════════
# SECTION 1: FORMAT DETECTION
# ═══════════════════════════════════════════════════════════════════════════════

MIME_TYPES = {
    'PNG': 'image/png',
    'JPEG': 'image/jpeg',
    'WEBP': 'image/webp',
    'GIF': 'image/gif',
}


def detect_image_format(img_bytes: bytes) -> Optional[str]:
    """
    Detect image format from raw bytes.

    Args:
        img_bytes: Raw image data

    Returns:
        Format string ('PNG', 'JPEG', 'WEBP', 'GIF') or None if unknown
    """
    if len(img_bytes) < 8:
        return None

    # Check magic bytes
    if img_bytes[:8] == b'\x89PNG\r\n\x1a\n':
        return 'PNG'
    elif img_bytes[:2] == b'\xff\xd8':
        return 'JPEG'
    elif img_bytes[:4] == b'RIFF' and img_bytes[8:12] == b'WEBP':
        return 'WEBP'
    elif img_bytes[:6] in (b'GIF87a', b'GIF89a'):
        return 'GIF'

    return None


def detect_mime_type(img_bytes: bytes, content_type: Optional[str] = None) -> str:
    """
    Pick a MIME type for a payload.

    Magic bytes win, then an image/* content type from the response,
    then image/png.
    """
    fmt = detect_image_format(img_bytes)
    if fmt:
        return MIME_TYPES[fmt]

    if content_type:
        mime = content_type.split(';', 1)[0].strip().lower()
        if mime.startswith('image/'):
            return mime

    return 'image/png'


# ═══════════════════════════════════════════════════════════════════════════════
# SECTION 2: DATA URIs
# ═══════════════════════════════════════════════════════════════════════════════

def to_data_uri(img_bytes: bytes, content_type: Optional[str] = None) -> str:
    """Encode binary image data as a data-URI."""
    mime = detect_mime_type(img_bytes, content_type)
    b64_data = base64.b64encode(img_bytes).decode('utf-8')
    return f"data:{mime};base64,{b64_data}"


def strip_data_uri_prefix(value: str) -> str:
    """Return the bare base64 part of a data-URI (or the value unchanged)."""
    if value.startswith('data:') and ',' in value:
        return value.split(',', 1)[1]
    return value


def decode_data_uri(data_uri: str) -> bytes:
    """Decode a data-URI (or bare base64 string) back to bytes."""
    return base64.b64decode(strip_data_uri_prefix(data_uri))


def image_size_from_data_uri(data_uri: str) -> Tuple[int, int]:
    """Pixel (width, height) of the image behind a data-URI."""
    with Image.open(io.BytesIO(decode_data_uri(data_uri))) as img:
        return img.size


# ═══════════════════════════════════════════════════════════════════════════════
# SECTION 3: ENCODING OPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

ImageFormat = Literal['PNG', 'WEBP', 'JPEG']


def encode_image(
    pil_image: Image.Image,
    format: ImageFormat = 'PNG',
    quality: int = 100,
    lossless: bool = True
) -> bytes:
    """
    Encode PIL image to bytes with quality control.

    Args:
        pil_image: Source image
        format: Output format ('PNG', 'WEBP', 'JPEG')
        quality: Quality level (1-100, used by WEBP/JPEG)
        lossless: If True, use lossless compression for WebP

    Returns:
        Encoded image bytes
    """
    buffer = io.BytesIO()

    if format == 'PNG':
        # PNG is always lossless
        # Use compression level 6 (balanced) for reasonable file size
        pil_image.save(buffer, format='PNG', compress_level=6)

    elif format == 'WEBP':
        if lossless:
            pil_image.save(buffer, format='WEBP', lossless=True)
        else:
            pil_image.save(buffer, format='WEBP', quality=quality)

    elif format == 'JPEG':
        # JPEG doesn't support transparency
        if pil_image.mode == 'RGBA':
            # Composite on white background
            background = Image.new('RGB', pil_image.size, (255, 255, 255))
            background.paste(pil_image, mask=pil_image.split()[3])
            pil_image = background
        elif pil_image.mode != 'RGB':
            pil_image = pil_image.convert('RGB')

        pil_image.save(buffer, format='JPEG', quality=quality, subsampling=0)

    return buffer.getvalue()


def image_to_data_uri(pil_image: Image.Image, format: ImageFormat = 'PNG') -> str:
    """Encode a PIL image straight to a data-URI."""
    return to_data_uri(encode_image(pil_image, format=format))
