"""
Timeline compiler.

Resolves a parsed document into a canonical timeline: a flat list of clips
with absolute start/end times and tracks, sorted by (start, track). Apart
from reading the probe table this is a pure function of the document.

Timing rules, per block:

  start     block.at if given, else the running cursor. Blocks with an
            explicit `at` do not move the cursor.
  duration  block.duration, else the probed audio duration, else the
            longest probed video visual, else STATIC_BLOCK_DURATION for
            blocks holding only stills/colours, else EMPTY_BLOCK_DURATION.

Each element inside a block starts at its own `at` (default 0). Without an
explicit duration it lasts for the shorter of its intrinsic duration and
what is left of the block.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .diagnostics import Diagnostics
from .document import Block, Canvas, Document, EffectSpec, Source, Transition
from .errors import ProbeError, ResolutionError
from .probe import MediaInfo, ProbeTable, probe_document

STATIC_BLOCK_DURATION = 5.0
EMPTY_BLOCK_DURATION = 1.0

BACKGROUND_TRACK = 0
AUDIO_TRACK = 0
BLOCK_TRACK_BASE = 1
OVERLAY_TRACK = 1_000_000


@dataclass(frozen=True)
class Clip:
    id: str
    kind: str
    src: str
    track: int
    start: float
    duration: float
    block_id: Optional[str] = None
    x: int = 0
    y: int = 0
    w: Optional[int] = None
    h: Optional[int] = None
    opacity: float = 1.0
    resize: str = 'stretch'
    volume: float = 100.0
    effects: Tuple[EffectSpec, ...] = ()
    has_video: bool = False
    has_audio: bool = False
    intrinsic_width: int = 0
    intrinsic_height: int = 0
    unresolved: Optional[str] = None
    end: float = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, 'end', self.start + self.duration)

    @property
    def is_visual(self) -> bool:
        return self.kind != 'audio'


@dataclass(frozen=True)
class CanonicalTimeline:
    canvas: Canvas
    clips: Tuple[Clip, ...] = ()
    transitions: Tuple[Transition, ...] = ()
    failures: Tuple[ResolutionError, ...] = ()

    @property
    def duration(self) -> float:
        return max((clip.end for clip in self.clips), default=0.0)

    def block_clips(self, block_id: str) -> List[Clip]:
        return [clip for clip in self.clips if clip.block_id == block_id]

    def clip(self, clip_id: str) -> Optional[Clip]:
        return next((clip for clip in self.clips if clip.id == clip_id), None)


def _require_probe(block: Block, source: Source, probes: ProbeTable) -> MediaInfo:
    try:
        return probes.lookup(source)
    except ProbeError as e:
        raise ResolutionError(block.id, source.src, e.reason)


def resolve_block_duration(block: Block, probes: ProbeTable) -> float:
    if block.duration is not None:
        return block.duration
    if block.audio is not None:
        info = _require_probe(block, block.audio, probes)
        if info.is_bounded:
            return info.duration
    video_durations = [
        _require_probe(block, visual, probes).duration
        for visual in block.visuals if visual.kind == 'video'
    ]
    bounded = [d for d in video_durations if math.isfinite(d)]
    if bounded:
        return max(bounded)
    if block.is_empty:
        return EMPTY_BLOCK_DURATION
    return STATIC_BLOCK_DURATION


class _ClipFactory(object):
    """Turns sources into clips, reporting the ones that resolve to nothing."""

    def __init__(self, probes: ProbeTable, diagnostics: Diagnostics):
        self.probes = probes
        self.diagnostics = diagnostics

    def media_info(self, clip_id: str, source: Source) -> Tuple[MediaInfo, Optional[str]]:
        """Probed info plus the probe failure, if any. A failed probe keeps default timing."""
        try:
            return self.probes.lookup(source), None
        except ProbeError as e:
            self.diagnostics.warn(clip_id, f"probe failed, falling back to default timing ({e.reason})")
            return MediaInfo(duration=math.inf, has_video=source.kind != 'audio', has_audio=False), e.reason

    def make(self, clip_id: str, source: Source, track: int, start: float, duration: float,
             info: MediaInfo, block_id: Optional[str] = None,
             effects: Tuple[EffectSpec, ...] = (),
             default_size: Tuple[Optional[int], Optional[int]] = (None, None),
             unresolved: Optional[str] = None) -> Optional[Clip]:
        if not duration > 0:
            self.diagnostics.warn(clip_id, f"resolved duration {duration} is not positive; clip dropped")
            return None
        if source.kind == 'video':
            has_video = info.has_video
        else:
            has_video = source.kind != 'audio'
        return Clip(
            id=clip_id,
            kind=source.kind,
            src=source.src,
            track=track,
            start=start,
            duration=duration,
            block_id=block_id,
            x=source.x or 0,
            y=source.y or 0,
            w=source.w if source.w is not None else default_size[0],
            h=source.h if source.h is not None else default_size[1],
            opacity=source.opacity,
            resize=source.resize,
            volume=source.volume,
            effects=effects,
            has_video=has_video,
            has_audio=source.kind == 'audio' or (source.kind == 'video' and info.has_audio),
            intrinsic_width=info.width,
            intrinsic_height=info.height,
            unresolved=unresolved,
        )

    def element(self, clip_id: str, source: Source, track: int, block: Block,
                block_start: float, block_duration: float) -> Optional[Clip]:
        info, unresolved = self.media_info(clip_id, source)
        at = source.at or 0.0
        if source.duration is not None:
            duration = source.duration
        else:
            duration = min(info.duration, block_duration - at)
        return self.make(clip_id, source, track, block_start + at, duration, info,
                         block_id=block.id, effects=block.effects, unresolved=unresolved)

    def global_layer(self, clip_id: str, source: Source, track: int, total: float,
                     default_size: Tuple[Optional[int], Optional[int]] = (None, None)) -> Optional[Clip]:
        info, unresolved = self.media_info(clip_id, source)
        start = source.at or 0.0
        if source.duration is not None:
            duration = source.duration
        elif total > start:
            duration = total - start
        else:
            duration = info.duration if info.is_bounded else 0.0
        return self.make(clip_id, source, track, start, duration, info,
                         default_size=default_size, unresolved=unresolved)


def compile_timeline(document: Document, probes: ProbeTable,
                     diagnostics: Optional[Diagnostics] = None) -> CanonicalTimeline:
    """Resolves every block of the document into time- and track-sorted clips."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    factory = _ClipFactory(probes, diagnostics)
    clips: List[Clip] = []
    failures: List[ResolutionError] = []
    cursor = 0.0

    for block in document.blocks:
        try:
            block_duration = resolve_block_duration(block, probes)
        except ResolutionError as e:
            diagnostics.warn(block.id, f"block skipped: {e}")
            failures.append(e)
            continue

        block_start = block.at if block.at is not None else cursor
        if block.at is None:
            cursor = block_start + max(0.0, block_duration)
        if block_duration <= 0:
            diagnostics.warn(block.id, f"block duration {block_duration} is not positive; its content is dropped")
            continue

        for index, visual in enumerate(block.visuals):
            clip = factory.element(f"{block.id}_visual_{index}", visual, BLOCK_TRACK_BASE + index,
                                   block, block_start, block_duration)
            if clip is not None:
                clips.append(clip)
        if block.audio is not None:
            clip = factory.element(f"{block.id}_audio", block.audio, AUDIO_TRACK,
                                   block, block_start, block_duration)
            if clip is not None:
                clips.append(clip)

    canvas = document.canvas
    total = max((clip.end for clip in clips), default=0.0)

    if document.background is not None:
        background = factory.global_layer('background', document.background, BACKGROUND_TRACK, total,
                                          default_size=(canvas.w, canvas.h))
        if background is not None:
            clips.insert(0, background)
            total = max(total, background.end)

    if document.overlay is not None:
        overlay = factory.global_layer('overlay', document.overlay, OVERLAY_TRACK, total)
        if overlay is not None:
            clips.append(overlay)

    # sorted() is stable: equal (start, track) keeps emission order
    ordered = sorted(clips, key=lambda clip: (clip.start, clip.track))
    return CanonicalTimeline(
        canvas=canvas,
        clips=tuple(ordered),
        transitions=document.transitions,
        failures=tuple(failures),
    )


async def compile_document(document: Document, prober,
                           diagnostics: Optional[Diagnostics] = None) -> CanonicalTimeline:
    """Probes all sources concurrently, then compiles once every probe is done."""
    probes = await probe_document(document, prober)
    return compile_timeline(document, probes, diagnostics)
