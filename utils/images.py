# utils/images.py
import io, logging, mimetypes
from concurrent.futures import ThreadPoolExecutor

from PIL import Image, ImageOps, UnidentifiedImageError

log = logging.getLogger(__name__)

MAX_SIZE_MB = 0.3
MAX_DIMENSION = 1920
IMAGE_FORMAT = "WEBP"
MIN_DIMENSION = 64

_QUALITIES = (85, 75, 65, 55, 45, 35)

def is_image_file(content_type: str | None, filename: str | None = None) -> bool:
    if content_type:
        return content_type.startswith("image/")
    guessed, _ = mimetypes.guess_type(filename or "")
    return bool(guessed and guessed.startswith("image/"))

def size_reduction(original_size: int, compressed_size: int) -> int:
    if not original_size:
        return 0
    return round((original_size - compressed_size) / original_size * 100)

def format_bytes(n: int) -> str:
    if n <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while n >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(n / 1024 ** i, 2)
    return f"{value:g} {units[i]}"

def _encode(img, image_format, quality):
    buf = io.BytesIO()
    img.save(buf, format=image_format, quality=quality, optimize=True)
    return buf.getvalue()

def _normalize_mode(img, image_format):
    if image_format == "JPEG":
        return img.convert("RGB") if img.mode != "RGB" else img
    if img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
    return img

def compress_image(data: bytes, *, max_size_mb: float = MAX_SIZE_MB, max_dimension: int = MAX_DIMENSION,
                   image_format: str = IMAGE_FORMAT) -> bytes:
    """
    Re-encode an uploaded image so it fits within max_dimension on its longest
    side and max_size_mb on disk. Quality steps down first; after that the
    picture shrinks until it fits or reaches MIN_DIMENSION. Anything Pillow
    can't read, or any failure along the way, gives back the original bytes.
    """
    limit = int(max_size_mb * 1024 * 1024)
    fmt = image_format.upper()
    try:
        with Image.open(io.BytesIO(data)) as src:
            src.load()
            img = ImageOps.exif_transpose(src)
        img = _normalize_mode(img, fmt)
        img.thumbnail((max_dimension, max_dimension))

        while True:
            for q in _QUALITIES:
                out = _encode(img, fmt, q)
                if len(out) <= limit:
                    break
            if len(out) <= limit or max(img.size) <= MIN_DIMENSION:
                break
            # size scales roughly with area
            scale = min(0.9, max(0.5, (limit / len(out)) ** 0.5 * 0.95))
            w, h = img.size
            img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.info("Not compressing (%s); keeping original %s", e.__class__.__name__, format_bytes(len(data)))
        return data
    except Exception:
        log.exception("Image compression failed; keeping original")
        return data

    if len(out) > limit:
        log.warning("Image still %s at %sx%s, over the %s cap", format_bytes(len(out)), *img.size, format_bytes(limit))
    log.info("Image compressed: %s -> %s (%d%% smaller)",
             format_bytes(len(data)), format_bytes(len(out)), size_reduction(len(data), len(out)))
    return out

def compress_many(blobs, **options) -> list[bytes]:
    """Compress several images on a small worker pool; order is preserved."""
    blobs = list(blobs)
    if not blobs:
        return []
    with ThreadPoolExecutor(max_workers=min(4, len(blobs))) as pool:
        return list(pool.map(lambda b: compress_image(b, **options), blobs))

def extension_for(image_format: str = IMAGE_FORMAT) -> str:
    return "." + image_format.lower().replace("jpeg", "jpg")
