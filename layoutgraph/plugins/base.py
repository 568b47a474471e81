"""
The lowering protocol.

A source handler turns one clip into filter-graph streams, an effect handler
rewrites a clip's streams, and a transition handler joins the streams of two
clips. Handlers are stateless; all state lives in the FilterGraph passed in.
"""

from typing import Optional, Tuple

from ..document import Canvas, EffectSpec, Source, Transition
from ..graph import FilterGraph
from ..probe import MediaInfo
from ..timeline import Clip


def num(value: float) -> str:
    """Formats a number for a filter argument: 4 -> '4', 2.5 -> '2.5'."""
    text = f"{float(value):.6f}".rstrip('0').rstrip('.')
    return text if text not in ('', '-0') else '0'


class StreamPair(object):
    """The current video and/or audio stream labels of a clip."""

    def __init__(self, video: Optional[str] = None, audio: Optional[str] = None):
        self.video = video
        self.audio = audio

    @property
    def is_empty(self) -> bool:
        return self.video is None and self.audio is None

    def __eq__(self, other) -> bool:
        if not isinstance(other, StreamPair):
            return NotImplemented
        return (self.video, self.audio) == (other.video, other.audio)

    def __repr__(self) -> str:
        return f"StreamPair(video={self.video!r}, audio={self.audio!r})"


class TransitionInputs(object):
    def __init__(self, from_streams: StreamPair, to_streams: StreamPair):
        self.from_video = from_streams.video
        self.from_audio = from_streams.audio
        self.to_video = to_streams.video
        self.to_audio = to_streams.audio


class TransitionOutput(StreamPair):
    """Joined streams plus the length of the joined segment in seconds."""

    def __init__(self, video: Optional[str], audio: Optional[str], duration: float):
        super().__init__(video, audio)
        self.duration = duration


def target_size(clip: Clip, canvas: Canvas) -> Tuple[int, int]:
    """Clip size, else the probed size of the media, else the canvas size."""
    width = clip.w or clip.intrinsic_width or canvas.w
    height = clip.h or clip.intrinsic_height or canvas.h
    return int(width), int(height)


def size_chain(clip: Clip, canvas: Canvas) -> str:
    """Filters that bring a stream to the clip's box according to its resize mode."""
    width, height = target_size(clip, canvas)
    if clip.resize == 'fit':
        return (f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
                f"format=rgba,pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black@0,setsar=1")
    if clip.resize == 'fill':
        return f"scale={width}:{height}:force_original_aspect_ratio=increase,crop={width}:{height},setsar=1"
    return f"scale={width}:{height},setsar=1"


def opacity_chain(clip: Clip) -> str:
    """Alpha filters; empty for opaque clips. Must come after any resize."""
    if clip.opacity >= 1.0:
        return ""
    return f",format=rgba,colorchannelmixer=aa={num(clip.opacity)}"


def volume_filter(clip: Clip) -> str:
    if clip.volume == 100:
        return "anull"
    return f"volume={num(clip.volume / 100.0)}"


class SourceHandler(object):
    kind: str = None

    def probe(self, source: Source, prober) -> MediaInfo:
        return prober.probe(source)

    def register_inputs(self, graph: FilterGraph, clip: Clip) -> None:
        raise NotImplementedError

    def lower(self, graph: FilterGraph, clip: Clip, canvas: Canvas) -> StreamPair:
        raise NotImplementedError


class EffectHandler(object):
    kind: str = None

    def apply(self, graph: FilterGraph, clip: Clip, effect: EffectSpec,
              streams: StreamPair) -> StreamPair:
        raise NotImplementedError


class TransitionHandler(object):
    kind: str = None

    def apply(self, graph: FilterGraph, from_clip: Clip, to_clip: Clip,
              transition: Transition, streams: TransitionInputs) -> TransitionOutput:
        raise NotImplementedError
