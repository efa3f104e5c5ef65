"""Tests for playback sources and poster resolution."""

import os

from video_processor.modules.transcoding.playback import (
    build_inline_placeholder_poster,
    build_playback_poster_url,
    build_playback_sources,
    get_request_origin,
    infer_poster_from_filesystem,
    normalize_video_source_type,
    resolve_playback_url,
)


class TestPlaybackSources:
    """Variants largest first, then the original, each URL once."""

    def test_variants_sorted_by_size_then_original(self) -> None:
        doc = {
            "url": "https://cdn.example.com/media/clip.mov",
            "mimeType": "video/quicktime",
            "variants": [
                {"preset": "mobile360", "url": "/media/clip_mobile360.mp4", "size": 100},
                {"preset": "hd720", "url": "/media/clip_hd720.mp4", "size": 500},
                "not-a-variant",
            ],
        }

        sources = build_playback_sources(doc)

        assert [(s.src, s.type, s.preset) for s in sources] == [
            ("https://cdn.example.com/media/clip_hd720.mp4", "video/mp4", "hd720"),
            ("https://cdn.example.com/media/clip_mobile360.mp4", "video/mp4", "mobile360"),
            ("https://cdn.example.com/media/clip.mov", "video/mp4", None),
        ]

    def test_relative_urls_use_request_origin(self) -> None:
        doc = {
            "url": "/media/clip.webm",
            "mimeType": "video/webm",
            "variants": [{"preset": "sd", "url": "/media/clip sd.webm", "size": 10}],
        }

        sources = build_playback_sources(doc, "https://cms.example.com")

        assert [s.src for s in sources] == [
            "https://cms.example.com/media/clip%20sd.webm",
            "https://cms.example.com/media/clip.webm",
        ]
        assert sources[1].type == "video/webm"

    def test_duplicate_urls_listed_once(self) -> None:
        doc = {
            "url": "/media/clip.mp4",
            "variants": [{"preset": "same", "url": "/media/clip.mp4", "size": 1}],
        }

        sources = build_playback_sources(doc)

        assert len(sources) == 1
        assert sources[0].preset == "same"

    def test_without_origin_urls_stay_relative(self) -> None:
        sources = build_playback_sources({"url": "/media/clip.mp4", "mimeType": "video/mp4"})

        assert sources[0].src == "/media/clip.mp4"


class TestUrlHelpers:
    """URL resolution, MIME normalization and origin detection."""

    def test_data_and_blob_urls_untouched(self) -> None:
        assert resolve_playback_url("data:image/png;base64,AAA", []) == "data:image/png;base64,AAA"
        assert resolve_playback_url("blob:https://x/1", []) == "blob:https://x/1"

    def test_blank_value(self) -> None:
        assert resolve_playback_url("  ", ["https://example.com"]) == ""
        assert resolve_playback_url(None, ["https://example.com"]) == ""

    def test_mime_normalization(self) -> None:
        assert normalize_video_source_type("video/QuickTime", "/a.mov") == "video/mp4"
        assert normalize_video_source_type(None, "/a.ogv?x=1") == "video/ogg"
        assert normalize_video_source_type(None, "/a.mkv") is None

    def test_request_origin(self) -> None:
        assert get_request_origin("https://cms.example.com/admin") == "https://cms.example.com"
        assert get_request_origin(headers={"host": "localhost:3000"}) == "http://localhost:3000"
        assert (
            get_request_origin(headers={"x-forwarded-host": "media.example.com", "x-forwarded-proto": "https"})
            == "https://media.example.com"
        )
        assert get_request_origin() == ""


class TestPosters:
    """Poster URL from image sizes, thumbnail or a file beside the original."""

    def test_sizes_take_precedence(self) -> None:
        doc = {
            "url": "https://cdn.example.com/media/clip.mp4",
            "thumbnailURL": "/media/thumb.jpg",
            "sizes": {"thumbnail": {"url": "/media/t.jpg"}, "medium": {"url": "/media/m.jpg"}},
        }

        assert build_playback_poster_url(doc) == "https://cdn.example.com/media/m.jpg"

    def test_thumbnail_url_fallback(self) -> None:
        doc = {"url": "/media/clip.mp4", "thumbnailURL": "/media/thumb.jpg"}

        assert build_playback_poster_url(doc, "https://cms.example.com") == "https://cms.example.com/media/thumb.jpg"
        assert build_playback_poster_url({"url": "/media/clip.mp4"}) is None

    def test_poster_file_beside_original(self, tmp_path) -> None:
        original = tmp_path / "clip.mp4"
        original.write_bytes(b"video")
        poster = tmp_path / "clip-poster.jpg"
        poster.write_bytes(b"jpeg")
        doc = {"filename": "clip.mp4", "path": str(original), "url": "/media/clip.mp4?v=2"}

        inferred = infer_poster_from_filesystem(doc)

        assert inferred == {"url": "/media/clip-poster.jpg?v=2", "path": os.path.join(str(tmp_path), "clip-poster.jpg")}

    def test_no_poster_file(self, tmp_path) -> None:
        original = tmp_path / "clip.mp4"
        original.write_bytes(b"video")

        assert infer_poster_from_filesystem({"path": str(original), "url": "/media/clip.mp4"}) is None

    def test_placeholder_is_svg_data_uri(self) -> None:
        placeholder = build_inline_placeholder_poster()

        assert placeholder.startswith("data:image/svg+xml;charset=utf-8,")
        assert "%3Csvg" in placeholder
