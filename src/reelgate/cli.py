"""CLI entry point for reelgate."""

import asyncio
import logging
import typer
from pathlib import Path
from typing import Dict, Optional
from enum import Enum

from . import __version__
from .config import config
from .errors import (
    AssetResolutionFailure,
    CompositionInvariantViolation,
    ProjectCancelled,
    SceneNotReadyError,
)
from .models import GateStatus, Manifest, RenderSpec, SceneGenerationState

app = typer.Typer(
    name="reelgate",
    help="Quality-gated scene generation and frame-accurate timeline composition",
    no_args_is_help=True
)

DEFAULT_STATE = Path("generation_state.json")
DEFAULT_SPEC = Path("render_spec.json")

STATUS_ICONS = {
    GateStatus.APPROVED: "✅",
    GateStatus.ESCALATED: "🚩",
    GateStatus.CANCELLED: "⛔",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"reelgate version {__version__}")
        raise typer.Exit()


def _load_manifest(script: Path) -> Manifest:
    if not script.exists():
        typer.echo(f"❌ No project found at {script}")
        raise typer.Exit(1)
    try:
        return Manifest.from_yaml(script)
    except Exception as e:
        typer.echo(f"❌ Error loading manifest: {e}")
        raise typer.Exit(1)


def _load_states(path: Path, required: bool = True) -> Dict[str, SceneGenerationState]:
    from .generation import load_generation_state

    if not path.exists():
        if required:
            typer.echo(f"❌ No generation state at {path}")
            typer.echo("   Run 'reelgate generate' first")
            raise typer.Exit(1)
        return {}
    try:
        return load_generation_state(path)
    except Exception as e:
        typer.echo(f"❌ Error loading generation state: {e}")
        raise typer.Exit(1)


def _resolver():
    from .services import PublicUrlResolver

    try:
        return PublicUrlResolver()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)


def _plans(manifest: Manifest, resolver):
    """Frame table, brand plan and sound plan, built on one frame table."""
    from .editor import BrandInjectionPlanner, FrameTable, SoundDesignPlanner

    frames = FrameTable.build(manifest.scenes, manifest.fps)
    brand_plan = BrandInjectionPlanner(resolver).plan(manifest.brand, manifest.scenes, frames)
    sound_plan = SoundDesignPlanner(manifest.sound).plan(frames, manifest.scenes, brand_plan)
    return frames, brand_plan, sound_plan


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """reelgate - Generate, gate and compose narrated videos."""
    pass


@app.command()
def status(
    script: Path = typer.Option(
        Path("script.yaml"),
        "--script",
        "-s",
        help="Path to scenes YAML file",
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE,
        "--state",
        help="Generation state JSON file",
    ),
) -> None:
    """Show project status and the quality report."""
    from .generation import build_quality_report

    manifest = _load_manifest(script)
    states = _load_states(state_file, required=False)

    typer.echo(f"📁 Project: {manifest.project_name}")
    typer.echo(f"   Aspect ratio: {manifest.aspect_ratio} @ {manifest.fps}fps")
    typer.echo(f"   Scenes: {len(manifest.scenes)}")
    typer.echo(f"   Total duration: {manifest.total_duration:.1f}s")

    report = build_quality_report(manifest, states)
    typer.echo(f"\n📽️  Scenes ({report.state.value}):")
    for scene, row in zip(manifest.scenes, report.scenes):
        icon = STATUS_ICONS.get(GateStatus(row.status), "⏳")
        score = f" score {row.score:g}" if row.score is not None else ""
        flags = " (needs review)" if row.needs_review else ""
        flags += " (overridden)" if row.overridden else ""
        typer.echo(f"   {icon} [{scene.index}] {scene.id}: {row.status}{score}, {row.attempts} attempts{flags}")
        state = states.get(scene.id)
        if state is not None and state.escalation_reason:
            typer.echo(f"      → {state.escalation_reason}")

    typer.echo(f"\n📊 Average score: {report.average_score:g}")
    if report.can_compose:
        typer.echo("✅ Ready to compose")
    else:
        for reason in report.blocking_reasons:
            typer.echo(f"⚠️  {reason}")


@app.command()
def plan(
    script: Path = typer.Option(
        Path("script.yaml"),
        "--script",
        "-s",
        help="Path to scenes YAML file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Preview the frame table, brand overlays and sound cues."""
    setup_logging(verbose)
    manifest = _load_manifest(script)

    try:
        frames, brand_plan, sound_plan = _plans(manifest, _resolver())
    except CompositionInvariantViolation as e:
        typer.echo(f"❌ Invalid timeline: {e}")
        raise typer.Exit(1)

    typer.echo(f"🎞️  Frame table ({frames.total_frames} frames @ {frames.fps}fps):")
    for slot in frames.slots:
        typer.echo(f"   [{slot.index}] {slot.scene_id}: {slot.start_frame}-{slot.end_frame}")

    typer.echo("\n🏷️  Brand overlays:")
    for overlay in brand_plan.all_overlays():
        typer.echo(f"   • {overlay.kind.value} in {overlay.region.label()} at +{overlay.reveal_seconds:g}s")
    for reason in brand_plan.dropped:
        typer.echo(f"   ⚠️  {reason}")

    typer.echo("\n🔊 Sound cues:")
    for cue in sound_plan.all_cues():
        typer.echo(f"   • {cue.at_seconds:6.2f}s {cue.kind.value}: {cue.asset_key} ({cue.duration_seconds:g}s)")
    typer.echo(f"   Voiceover ranges: {len(sound_plan.voiceover_ranges)}")
    typer.echo(f"   Ducking keyframes: {len(sound_plan.ducking_envelope.keyframes)}")


@app.command()
def generate(
    script: Path = typer.Option(
        Path("script.yaml"),
        "--script",
        "-s",
        help="Path to scenes YAML file",
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE,
        "--state",
        help="Generation state JSON file (approved and escalated scenes are kept)",
    ),
    parallel: Optional[int] = typer.Option(
        None,
        "--parallel",
        "-p",
        help="Maximum concurrent provider calls (default REELGATE_MAX_CONCURRENT)",
        min=1,
        max=10
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Generate and score every scene through the quality gate."""
    from .generation import ProjectGenerator, ReviewQueue, save_generation_state
    from .services import ClaudeContentScorer, HttpTaskProvider, PROVIDERS, ProviderRegistry

    setup_logging(verbose)
    manifest = _load_manifest(script)

    try:
        config.validate_provider_required()
        config.validate_scorer_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    registry = ProviderRegistry(HttpTaskProvider.from_table(pid) for pid in PROVIDERS)
    generator = ProjectGenerator(
        manifest,
        registry,
        ClaudeContentScorer(),
        _resolver(),
        max_concurrent=parallel,
        previous=_load_states(state_file, required=False),
    )

    typer.echo(f"🎬 Generating {len(manifest.scenes)} scenes for {manifest.project_name}")
    exit_code = 0
    try:
        asyncio.run(generator.run())
    except (ProjectCancelled, KeyboardInterrupt):
        typer.echo("⛔ Generation cancelled")
        exit_code = 1
    finally:
        save_generation_state(generator.states, state_file, manifest.project_name)
        typer.echo(f"📄 State saved: {state_file}")

    queue = ReviewQueue(manifest, generator.states)
    for entry in queue.pending():
        typer.echo(f"   🚩 [{entry.scene_index}] {entry.scene_id}: {entry.reason}")
    if len(queue):
        typer.echo(f"\n⚠️  {len(queue)} scene(s) need review; use 'reelgate approve'")
        exit_code = 1
    elif exit_code == 0:
        typer.echo("\n✅ All scenes approved")
    raise typer.Exit(exit_code)


@app.command()
def approve(
    scene_id: str = typer.Argument(
        ...,
        help="Escalated scene to unblock"
    ),
    asset_url: Optional[str] = typer.Option(
        None,
        "--asset-url",
        "-u",
        help="Asset to use (default: the scene's best-scoring attempt)"
    ),
    script: Path = typer.Option(
        Path("script.yaml"),
        "--script",
        "-s",
        help="Path to scenes YAML file",
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE,
        "--state",
        help="Generation state JSON file",
    ),
) -> None:
    """Record a human override for an escalated scene."""
    from .generation import ReviewQueue, save_generation_state

    manifest = _load_manifest(script)
    states = _load_states(state_file)
    queue = ReviewQueue(manifest, states)

    try:
        url = queue.approve(scene_id, _resolver(), asset_url)
    except (KeyError, ValueError, AssetResolutionFailure) as e:
        typer.echo(f"❌ Cannot approve {scene_id}: {e}")
        raise typer.Exit(1)

    save_generation_state(states, state_file, manifest.project_name)
    typer.echo(f"✅ {scene_id} will render with {url}")
    if len(queue):
        typer.echo(f"   {len(queue)} scene(s) still need review")


@app.command()
def compose(
    script: Path = typer.Option(
        Path("script.yaml"),
        "--script",
        "-s",
        help="Path to scenes YAML file",
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE,
        "--state",
        help="Generation state JSON file",
    ),
    output: Path = typer.Option(
        DEFAULT_SPEC,
        "--output",
        "-o",
        help="Render spec JSON output path"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Compose the frame-accurate render timeline."""
    from .editor import TimelineComposer

    setup_logging(verbose)
    manifest = _load_manifest(script)
    states = _load_states(state_file)
    resolver = _resolver()

    try:
        frames, brand_plan, sound_plan = _plans(manifest, resolver)
        spec = TimelineComposer(resolver).compose(manifest, states, brand_plan, sound_plan, frames)
    except SceneNotReadyError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    except CompositionInvariantViolation as e:
        typer.echo(f"❌ Invalid timeline: {e}")
        raise typer.Exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(spec.to_json())
    typer.echo(f"✅ Render spec saved: {output}")
    typer.echo(f"   {spec.total_frames} frames ({spec.duration_seconds:.1f}s) @ {spec.fps}fps, {spec.width}x{spec.height}")
    typer.echo(f"   {len(spec.overlay_track)} overlays, {len(spec.sfx_track)} sound effects")


class OutputQuality(str, Enum):
    """Output quality presets."""
    DRAFT = "draft"
    FINAL = "final"


@app.command()
def render(
    spec_file: Path = typer.Option(
        DEFAULT_SPEC,
        "--spec",
        help="Render spec JSON file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    output: Path = typer.Option(
        Path("output/final.mp4"),
        "--output",
        "-o",
        help="Output file path"
    ),
    quality: OutputQuality = typer.Option(
        OutputQuality.FINAL,
        "--quality",
        "-q",
        help="Output quality preset"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Render a composed timeline to a video file."""
    from .editor.render import MoviepyRenderBackend

    setup_logging(verbose)
    try:
        spec = RenderSpec.from_json(spec_file.read_text())
    except Exception as e:
        typer.echo(f"❌ Error loading render spec: {e}")
        raise typer.Exit(1)

    backend = MoviepyRenderBackend(
        preset="medium" if quality == OutputQuality.FINAL else "ultrafast",
        bitrate="8000k" if quality == OutputQuality.FINAL else "3000k",
    )

    typer.echo(f"📼 Rendering {spec.project_name} to {output} ({quality.value} quality)...")
    try:
        backend.render(spec, output)
    except Exception as e:
        typer.echo(f"❌ Error rendering video: {e}")
        raise typer.Exit(1)

    typer.echo(f"✅ Video rendered: {output}")
    typer.echo(f"   Duration: {spec.duration_seconds:.1f}s")
    typer.echo(f"   Resolution: {spec.width}x{spec.height}")


if __name__ == "__main__":
    app()
