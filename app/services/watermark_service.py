"""
Cloudinary watermark URL rewriting
Injects the ModelCast overlay into delivery URLs for preview-tier output
"""
import time
import logging
from typing import Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

logger = logging.getLogger(__name__)

WATERMARK_MARKER = "l_modelcast_watermark"
WATERMARK_OVERLAY = f"{WATERMARK_MARKER},o_25,g_south_east,x_10,y_10"
UPLOAD_SEGMENT = "/upload/"


def has_watermark(url: str) -> bool:
    return WATERMARK_MARKER in url


def _now_millis() -> int:
    return int(time.time() * 1000)


def append_cache_buster(url: str) -> str:
    """Set cb=<epoch millis>, replacing any previous value"""
    timestamp = str(_now_millis())
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError("not an absolute URL")
        query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "cb"]
        query.append(("cb", timestamp))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
    except ValueError:
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}cb={timestamp}"


def _insert_transformation(url: str, transformation: str) -> str:
    return url.replace(UPLOAD_SEGMENT, f"{UPLOAD_SEGMENT}{transformation}/", 1)


def ensure_watermark(url: str, cache_bust: bool = False) -> str:
    """Add the overlay once; cache-busting only happens when the overlay was inserted"""
    if not url or UPLOAD_SEGMENT not in url:
        return url
    if has_watermark(url):
        return url

    watermarked = _insert_transformation(url, WATERMARK_OVERLAY)
    return append_cache_buster(watermarked) if cache_bust else watermarked


def apply_watermark(url: str, width: Optional[int] = None, cache_bust: bool = False) -> str:
    """Overlay plus optional width directive; cache-busts whenever asked"""
    if not url or UPLOAD_SEGMENT not in url:
        return url

    watermarked = url
    if not has_watermark(url):
        transformation = f"w_{width},{WATERMARK_OVERLAY}" if width else WATERMARK_OVERLAY
        watermarked = _insert_transformation(url, transformation)

    return append_cache_buster(watermarked) if cache_bust else watermarked
