"""Data models for scene generation and timeline composition."""

from .scene import Scene, SceneType, MediaKind, VoiceoverSegment
from .manifest import Manifest, AudioSources, FRAME_SIZES
from .project import ProjectState, ProjectQualityReport, SceneQualityStatus
from .generation import (
    AttemptOutcome,
    DefectTag,
    GateStatus,
    GenerationAttempt,
    GenerationRequest,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    QualityPolicy,
    SceneGenerationState,
    ScoreBand,
    ScoreResult,
)
from .brand import (
    ANCHORS,
    Anchor,
    AnimationKind,
    BrandConfig,
    BrandOverlaySpec,
    BrandPlan,
    CallToAction,
    LogoSet,
    OverlayKind,
    OverlayRegion,
    RegionKind,
)
from .sound import (
    CueKind,
    DuckingEnvelope,
    DuckingSettings,
    SoundCue,
    SoundDesignSettings,
    SoundPlan,
    VoiceoverRange,
)
from .render import (
    MusicTrack,
    OverlayTrackEntry,
    RenderSpec,
    SceneTrackEntry,
    SfxTrackEntry,
    VoiceoverTrack,
)

__all__ = [
    "Scene", "SceneType", "MediaKind", "VoiceoverSegment",
    "Manifest", "AudioSources", "FRAME_SIZES",
    "ProjectState", "ProjectQualityReport", "SceneQualityStatus",
    "AttemptOutcome", "DefectTag", "GateStatus", "GenerationAttempt",
    "GenerationRequest", "ProviderFailure", "ProviderResult", "ProviderSuccess",
    "QualityPolicy", "SceneGenerationState", "ScoreBand", "ScoreResult",
    "ANCHORS", "Anchor", "AnimationKind", "BrandConfig", "BrandOverlaySpec",
    "BrandPlan", "CallToAction", "LogoSet", "OverlayKind", "OverlayRegion", "RegionKind",
    "CueKind", "DuckingEnvelope", "DuckingSettings", "SoundCue",
    "SoundDesignSettings", "SoundPlan", "VoiceoverRange",
    "MusicTrack", "OverlayTrackEntry", "RenderSpec", "SceneTrackEntry",
    "SfxTrackEntry", "VoiceoverTrack",
]
