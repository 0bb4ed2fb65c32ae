"""Unit tests for the moviepy render backend and its helpers."""

import hashlib

import httpx
import numpy as np
import pytest

from conftest import make_scene
from reelgate.editor import FrameTable, SoundDesignPlanner
from reelgate.editor.render import MoviepyRenderBackend, anchor_to_pixels, envelope_gain, fetch_asset
from reelgate.models import ANCHORS, Anchor, VoiceoverSegment


class FakeStream:
    """Streamed response that yields chunks, then optionally fails."""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        pass

    def iter_bytes(self):
        yield from self.chunks
        if self.error is not None:
            raise self.error


class TestAnchorToPixels:
    """Test overlay placement in pixels."""

    def test_center(self):
        """Test that the center anchor centers the overlay."""
        assert anchor_to_pixels(ANCHORS["center"], (1920, 1080), (200, 100)) == (860, 490)

    def test_corner_keeps_overlay_inside(self):
        """Test that corner anchors never push the overlay off-frame."""
        x, y = anchor_to_pixels(Anchor(name="edge", x_percent=100, y_percent=0), (1920, 1080), (300, 150))

        assert (x, y) == (1620, 0)

    def test_oversized_overlay(self):
        """Test that an overlay wider than the frame is pinned to the origin."""
        assert anchor_to_pixels(ANCHORS["bottom-right"], (100, 100), (200, 50)) == (0, 50)


class TestEnvelopeGain:
    """Test the per-sample music gain."""

    def test_matches_envelope(self):
        """Test that the gain curve agrees with the envelope's own interpolation."""
        scenes = [make_scene(0, 10, voiceover=VoiceoverSegment(offset_seconds=4, duration_seconds=3))]
        table = FrameTable.build(scenes, 30)
        envelope = SoundDesignPlanner().plan(table, scenes).ducking_envelope
        frames = np.array([0, 100, 112.5, 120, 200, 215, 300])

        gain = envelope_gain(envelope.keyframes, frames, envelope.base_volume)

        expected = [envelope.volume_at(f) for f in frames]
        assert gain == pytest.approx(expected)

    def test_empty_envelope(self):
        """Test a flat gain without keyframes."""
        gain = envelope_gain((), np.array([0.0, 5.0]), 0.35)

        assert gain.tolist() == [0.35, 0.35]


class TestFetchAsset:
    """Test the asset download cache."""

    def test_cache_hit(self, temp_dir):
        """Test that a cached asset is not downloaded again."""
        url = "https://cdn.example.com/clips/a.mp4"
        cached = temp_dir / f"{hashlib.sha1(url.encode()).hexdigest()}.mp4"
        cached.write_bytes(b"data")

        assert fetch_asset(url, temp_dir) == cached

    def test_failed_write_leaves_no_cache_entry(self, temp_dir, monkeypatch):
        """Test that an interrupted download is not returned as a cache hit later."""
        url = "https://cdn.example.com/clips/b.mp4"
        monkeypatch.setattr(httpx, "stream", lambda *args, **kwargs: FakeStream([b"par"], OSError("disk full")))

        with pytest.raises(OSError):
            fetch_asset(url, temp_dir)
        assert list(temp_dir.iterdir()) == []

        monkeypatch.setattr(httpx, "stream", lambda *args, **kwargs: FakeStream([b"full", b"-clip"]))
        path = fetch_asset(url, temp_dir)

        assert path.read_bytes() == b"full-clip"
        assert list(temp_dir.iterdir()) == [path]


class FakeVideo:
    """Records the encoder call instead of writing a file."""

    def __init__(self):
        self.calls = []

    def write_videofile(self, filename, **kwargs):
        self.calls.append((filename, kwargs))


class TestMoviepyRenderBackend:
    """Test the backend's encoder settings."""

    def test_write_uses_backend_export_params(self, temp_dir):
        """Test that encoding uses the timeline fps and skips an unset bitrate."""
        backend = MoviepyRenderBackend(cache_dir=temp_dir, preset="fast")
        video = FakeVideo()
        output = temp_dir / "out" / "final.mp4"

        assert backend._write(video, output, 24) == output

        assert output.parent.is_dir()
        assert video.calls == [
            (str(output), {"fps": 24, "codec": "libx264", "audio_codec": "aac", "preset": "fast"})
        ]

    def test_write_passes_bitrate(self, temp_dir):
        """Test that a configured bitrate reaches the encoder."""
        video = FakeVideo()

        MoviepyRenderBackend(cache_dir=temp_dir, bitrate="5000k")._write(video, temp_dir / "a.mp4", 30)

        assert video.calls[0][1]["bitrate"] == "5000k"
