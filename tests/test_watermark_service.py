from app.services import watermark_service
from app.services.watermark_service import (
    WATERMARK_OVERLAY, append_cache_buster, apply_watermark, ensure_watermark, has_watermark
)

URL = "https://res.cloudinary.com/demo/image/upload/v1/modelcast/output.png"


def test_overlay_inserted_after_upload_segment():
    result = ensure_watermark(URL)

    assert result == f"https://res.cloudinary.com/demo/image/upload/{WATERMARK_OVERLAY}/v1/modelcast/output.png"
    assert has_watermark(result)


def test_ensure_watermark_is_idempotent():
    once = ensure_watermark(URL)
    assert ensure_watermark(once) == once
    assert ensure_watermark(once, cache_bust=True) == once


def test_non_cloudinary_urls_are_untouched():
    other = "https://cdn.fashn.ai/output/abc.png"
    assert ensure_watermark(other) == other
    assert apply_watermark(other, width=1024, cache_bust=True) == other


def test_apply_watermark_with_width_and_cache_buster(monkeypatch):
    monkeypatch.setattr(watermark_service, "_now_millis", lambda: 1700000000000)

    result = apply_watermark(URL, width=1024, cache_bust=True)

    assert f"/upload/w_1024,{WATERMARK_OVERLAY}/v1/" in result
    assert result.endswith("?cb=1700000000000")


def test_cache_buster_replaces_previous_value(monkeypatch):
    monkeypatch.setattr(watermark_service, "_now_millis", lambda: 42)

    result = append_cache_buster(f"{URL}?foo=bar&cb=1")

    assert result == f"{URL}?foo=bar&cb=42"


def test_cache_buster_on_relative_url(monkeypatch):
    monkeypatch.setattr(watermark_service, "_now_millis", lambda: 7)

    assert append_cache_buster("/image/upload/x.png?a=1") == "/image/upload/x.png?a=1&cb=7"
