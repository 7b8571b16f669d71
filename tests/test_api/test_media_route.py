"""Tests for GET /media/{filename}."""

from __future__ import annotations


class TestMediaRoute:
    """Tests for the media file route."""

    def test_serves_mp3(self, test_client) -> None:
        media_dir = test_client.kit.settings.media_path
        (media_dir / "abc123.mp3").write_bytes(b"ID3" + b"\0" * 100)

        response = test_client.get("/media/abc123.mp3")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content.startswith(b"ID3")

    def test_missing_file(self, test_client) -> None:
        assert test_client.get("/media/nope.mp3").status_code == 404

    def test_only_mp3(self, test_client) -> None:
        media_dir = test_client.kit.settings.media_path
        (media_dir / "notes.txt").write_text("secret")

        assert test_client.get("/media/notes.txt").status_code == 404
