"""Moviepy render backend: turns a RenderSpec into an encoded video."""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import httpx
import numpy as np
from moviepy import (
    AudioFileClip,
    CompositeAudioClip,
    CompositeVideoClip,
    ImageClip,
    TextClip,
    VideoClip,
    VideoFileClip,
    concatenate_videoclips,
)
from moviepy.video.fx import CrossFadeIn, Loop

from ..config import config
from ..models import (
    Anchor,
    AnimationKind,
    MediaKind,
    MusicTrack,
    OverlayTrackEntry,
    RenderSpec,
    SceneTrackEntry,
)
from ..services.base import RenderBackend

logger = logging.getLogger(__name__)


@dataclass
class TextStyle:
    """Styling for text overlays (the outro CTA block)."""

    font: Optional[str] = None
    font_size: int = 56
    color: str = "white"
    stroke_color: Optional[str] = "black"
    stroke_width: int = 2


def anchor_to_pixels(
    anchor: Anchor,
    frame_size: Tuple[int, int],
    overlay_size: Tuple[int, int],
) -> Tuple[int, int]:
    """Top-left pixel position that centers an overlay on its anchor.

    The overlay is kept fully inside the frame.
    """
    frame_w, frame_h = frame_size
    overlay_w, overlay_h = overlay_size
    x = round(frame_w * anchor.x_percent / 100 - overlay_w / 2)
    y = round(frame_h * anchor.y_percent / 100 - overlay_h / 2)
    x = min(max(x, 0), max(frame_w - overlay_w, 0))
    y = min(max(y, 0), max(frame_h - overlay_h, 0))
    return x, y


def envelope_gain(
    envelope: Sequence[Tuple[int, float]],
    frames: np.ndarray,
    base_volume: float,
) -> np.ndarray:
    """Music gain at (fractional) timeline frames from ducking keyframes."""
    if not envelope:
        return np.full(np.shape(frames), base_volume, dtype=float)
    xs = np.array([frame for frame, _ in envelope], dtype=float)
    ys = np.array([volume for _, volume in envelope], dtype=float)
    return np.interp(frames, xs, ys)


def fetch_asset(url: str, cache_dir: Path, max_retries: int = 3, retry_delay: float = 1.0) -> Path:
    """Download an asset once into the cache directory.

    Args:
        url: Public asset URL.
        cache_dir: Directory holding downloaded assets.
        max_retries: Attempts before giving up.
        retry_delay: Base delay between attempts (exponential backoff).

    Returns:
        Local path of the downloaded file.

    Raises:
        httpx.HTTPError: If the download fails after all retries.
    """
    suffix = Path(urlparse(url).path).suffix
    local_path = cache_dir / f"{hashlib.sha1(url.encode()).hexdigest()}{suffix}"
    if local_path.exists():
        return local_path

    cache_dir.mkdir(parents=True, exist_ok=True)
    # Only complete downloads ever appear under the cached name
    part_path = local_path.with_name(local_path.name + ".part")
    for attempt in range(max_retries):
        try:
            with httpx.stream("GET", url, follow_redirects=True, timeout=120.0) as response:
                response.raise_for_status()
                with open(part_path, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
            part_path.replace(local_path)
            logger.debug(f"Downloaded {url} to {local_path}")
            return local_path

        except httpx.HTTPError as e:
            if attempt == max_retries - 1:
                raise
            delay = retry_delay * (2**attempt)
            logger.warning(f"Download failed (attempt {attempt + 1}): {e}. Retrying in {delay}s...")
            time.sleep(delay)

        finally:
            part_path.unlink(missing_ok=True)

    raise RuntimeError("Max retries exceeded")


def fit_to_frame(clip: VideoClip, width: int, height: int) -> VideoClip:
    """Scale a clip to cover the frame, then center-crop the excess."""
    scale = max(width / clip.w, height / clip.h)
    clip = clip.resized(scale)
    x1 = max((clip.w - width) // 2, 0)
    y1 = max((clip.h - height) // 2, 0)
    return clip.cropped(x1=x1, y1=y1, x2=x1 + width, y2=y1 + height)


def loop_audio(audio: AudioFileClip, target_duration: float) -> AudioFileClip:
    """Loop or trim audio to exactly ``target_duration`` seconds."""
    if audio.duration >= target_duration:
        return audio.subclipped(0, target_duration)

    loops_needed = int(target_duration / audio.duration) + 1
    clips = [audio.with_start(i * audio.duration) for i in range(loops_needed)]
    return CompositeAudioClip(clips).subclipped(0, target_duration)


class MoviepyRenderBackend(RenderBackend):
    """Renders a RenderSpec with moviepy.

    Every position and duration comes from the RenderSpec's frame numbers; the
    backend makes no timing decisions of its own.
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        text_style: Optional[TextStyle] = None,
        codec: str = "libx264",
        audio_codec: str = "aac",
        bitrate: Optional[str] = None,
        preset: str = "medium",
    ) -> None:
        self._cache_dir = cache_dir or config.workspace / "assets"
        self._text_style = text_style or TextStyle()
        self._export_params = {
            "codec": codec,
            "audio_codec": audio_codec,
            "bitrate": bitrate,
            "preset": preset,
        }

    def render(self, spec: RenderSpec, output_path: Path) -> Path:
        """Render the timeline to ``output_path``.

        Raises:
            httpx.HTTPError: If an asset cannot be downloaded.
        """
        logger.info(
            f"Rendering {spec.project_name}: {spec.total_frames} frames, "
            f"{spec.width}x{spec.height} @ {spec.fps}fps"
        )
        size = (spec.width, spec.height)

        base = concatenate_videoclips(
            [self._scene_clip(entry, spec) for entry in spec.scene_track],
            method="compose",
        )
        layers: List[VideoClip] = [base]
        for overlay in spec.overlay_track:
            layers.append(self._overlay_clip(overlay, spec))

        video = CompositeVideoClip(layers, size=size).with_duration(spec.duration_seconds)

        audio = self._mix_audio(spec)
        if audio is not None:
            video = video.with_audio(audio)

        return self._write(video, output_path, spec.fps)

    def _write(self, video: VideoClip, output_path: Path, fps: int) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        params = {key: value for key, value in self._export_params.items() if value is not None}
        logger.debug(f"Encoding {output_path} with {params}")
        video.write_videofile(str(output_path), fps=fps, **params)
        logger.info(f"Wrote {output_path}")
        return output_path

    def _seconds(self, frames: int, spec: RenderSpec) -> float:
        return frames / spec.fps

    def _scene_clip(self, entry: SceneTrackEntry, spec: RenderSpec) -> VideoClip:
        path = fetch_asset(entry.asset_url, self._cache_dir)
        duration = self._seconds(entry.duration_frames, spec)

        if entry.media_kind == MediaKind.IMAGE:
            clip = ImageClip(str(path)).with_duration(duration)
        else:
            clip = VideoFileClip(str(path), audio=False)
            if clip.duration < duration:
                logger.debug(f"Looping scene {entry.scene_id}: {clip.duration:.2f}s < {duration:.2f}s")
                clip = clip.with_effects([Loop(duration=duration)])
            else:
                clip = clip.subclipped(0, duration)

        return fit_to_frame(clip, spec.width, spec.height).with_duration(duration)

    def _overlay_clip(self, overlay: OverlayTrackEntry, spec: RenderSpec) -> VideoClip:
        duration = self._seconds(overlay.duration_frames, spec)
        target_w = max(int(spec.width * overlay.size_percent / 100), 1)

        if overlay.asset_url:
            clip = ImageClip(str(fetch_asset(overlay.asset_url, self._cache_dir)))
            clip = clip.resized(width=target_w)
        else:
            style = self._text_style
            params = {
                "text": overlay.text or "",
                "font": style.font,
                "font_size": style.font_size,
                "color": style.color,
                "method": "caption",
                "size": (target_w, None),
                "text_align": "center",
            }
            if style.stroke_color and style.stroke_width > 0:
                params["stroke_color"] = style.stroke_color
                params["stroke_width"] = style.stroke_width
            clip = TextClip(**params)

        clip = clip.with_duration(duration).with_start(self._seconds(overlay.start_frame, spec))
        clip = clip.with_opacity(overlay.opacity)

        animation = self._seconds(overlay.animation_frames, spec)
        position = anchor_to_pixels(overlay.anchor, (spec.width, spec.height), (clip.w, clip.h))

        if animation > 0 and overlay.animation_kind != AnimationKind.NONE:
            clip = clip.with_effects([CrossFadeIn(min(animation, duration))])
            if overlay.animation_kind == AnimationKind.ZOOM:
                clip, position = self._zoom_in(clip, overlay.anchor, spec, animation)
            elif overlay.animation_kind == AnimationKind.SLIDE:
                x, y = position
                offset = spec.height * 0.1
                position = lambda t: (x, y + offset * max(0.0, 1 - t / animation))  # noqa: E731

        return clip.with_position(position)

    @staticmethod
    def _zoom_in(clip: VideoClip, anchor: Anchor, spec: RenderSpec, animation: float):
        full_w, full_h = clip.w, clip.h

        def scale(t: float) -> float:
            return 0.6 + 0.4 * min(1.0, t / animation)

        def position(t: float) -> Tuple[int, int]:
            size = (int(full_w * scale(t)), int(full_h * scale(t)))
            return anchor_to_pixels(anchor, (spec.width, spec.height), size)

        return clip.resized(scale), position

    def _mix_audio(self, spec: RenderSpec) -> Optional[CompositeAudioClip]:
        total = spec.duration_seconds
        tracks = []

        if spec.voiceover_track is not None:
            voiceover = AudioFileClip(str(fetch_asset(spec.voiceover_track.asset_url, self._cache_dir)))
            tracks.append(voiceover.subclipped(0, min(voiceover.duration, total)))

        if spec.music_track is not None:
            tracks.append(self._music_clip(spec.music_track, spec))

        for sfx in spec.sfx_track:
            clip = AudioFileClip(str(fetch_asset(sfx.asset_url, self._cache_dir)))
            duration = min(clip.duration, self._seconds(sfx.duration_frames, spec))
            tracks.append(
                clip.subclipped(0, duration)
                .with_volume_scaled(sfx.volume)
                .with_start(self._seconds(sfx.start_frame, spec))
            )

        if not tracks:
            return None
        return CompositeAudioClip(tracks).with_duration(total)

    def _music_clip(self, music: MusicTrack, spec: RenderSpec) -> AudioFileClip:
        clip = loop_audio(AudioFileClip(str(fetch_asset(music.asset_url, self._cache_dir))), spec.duration_seconds)
        fps = spec.fps

        def duck(get_frame, t):
            samples = get_frame(t)
            gain = envelope_gain(music.envelope, np.asarray(t, dtype=float) * fps, music.base_volume)
            if np.ndim(gain) == 1 and np.ndim(samples) == 2:
                gain = gain[:, None]
            return samples * gain

        return clip.transform(duck, keep_duration=True)
