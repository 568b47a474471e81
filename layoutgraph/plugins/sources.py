"""
Source handlers: one per media kind.

Every handler trims its stream to the clip duration and resets timestamps to
zero. The compositor shifts the result to the clip's absolute start.
"""

import math

from ..document import Canvas, Source
from ..errors import ElementSkipped, ProbeError
from ..graph import FilterGraph, ref
from ..probe import MediaInfo
from ..timeline import Clip
from .base import SourceHandler, StreamPair, num, opacity_chain, size_chain, target_size, volume_filter


def _input_index(graph: FilterGraph, clip: Clip) -> int:
    index = graph.input_index(clip.src)
    if index is None:
        raise ElementSkipped(clip.id, f"input '{clip.src}' was never registered")
    return index


def _register_file(graph: FilterGraph, clip: Clip) -> None:
    if not clip.src:
        raise ElementSkipped(clip.id, "source has no resolvable path")
    if clip.unresolved:
        raise ElementSkipped(clip.id, f"input '{clip.src}' is unusable: {clip.unresolved}")
    graph.register_input(clip.src)


def _lower_audio(graph: FilterGraph, clip: Clip, index: int) -> str:
    label = graph.fresh_label('audio')
    graph.emit(
        f"{ref(f'{index}:a')}atrim=duration={num(clip.duration)},asetpts=PTS-STARTPTS,"
        f"{volume_filter(clip)}{ref(label)}"
    )
    return label


class VideoSource(SourceHandler):
    kind = 'video'

    def register_inputs(self, graph: FilterGraph, clip: Clip) -> None:
        if not clip.has_video and not clip.has_audio:
            raise ElementSkipped(clip.id, f"'{clip.src}' has neither a video nor an audio stream")
        _register_file(graph, clip)

    def lower(self, graph: FilterGraph, clip: Clip, canvas: Canvas) -> StreamPair:
        index = _input_index(graph, clip)
        if not clip.has_video:
            graph.diagnostics.warn(clip.id, f"'{clip.src}' has no video stream; only its audio is used")
            return StreamPair(audio=_lower_audio(graph, clip, index))
        video = graph.fresh_label('video')
        graph.emit(
            f"{ref(f'{index}:v')}trim=duration={num(clip.duration)},setpts=PTS-STARTPTS,"
            f"fps={num(canvas.fps)},{size_chain(clip, canvas)}{opacity_chain(clip)}{ref(video)}"
        )
        # Only touch [n:a] when the probe saw an audio stream
        audio = _lower_audio(graph, clip, index) if clip.has_audio else None
        return StreamPair(video, audio)


class ImageSource(SourceHandler):
    kind = 'image'

    def register_inputs(self, graph: FilterGraph, clip: Clip) -> None:
        _register_file(graph, clip)

    def lower(self, graph: FilterGraph, clip: Clip, canvas: Canvas) -> StreamPair:
        index = _input_index(graph, clip)
        video = graph.fresh_label('video')
        fps = num(canvas.fps)
        graph.emit(
            f"{ref(f'{index}:v')}loop=loop=-1:size=1:start=0,setpts=N/{fps}/TB,fps={fps},"
            f"trim=duration={num(clip.duration)},setpts=PTS-STARTPTS,"
            f"{size_chain(clip, canvas)}{opacity_chain(clip)}{ref(video)}"
        )
        return StreamPair(video=video)


class ColourSource(SourceHandler):
    """Solid colour generated inside the graph; needs no input file."""
    kind = 'colour'

    def probe(self, source: Source, prober) -> MediaInfo:
        return MediaInfo(duration=math.inf, has_video=True)

    def register_inputs(self, graph: FilterGraph, clip: Clip) -> None:
        pass

    def lower(self, graph: FilterGraph, clip: Clip, canvas: Canvas) -> StreamPair:
        if not clip.src:
            raise ElementSkipped(clip.id, "colour source has no colour value")
        width, height = target_size(clip, canvas)
        video = graph.fresh_label('video')
        graph.emit(
            f"color=c={clip.src}:s={width}x{height}:d={num(clip.duration)}:r={num(canvas.fps)},"
            f"setsar=1{opacity_chain(clip)}{ref(video)}"
        )
        return StreamPair(video=video)


class AudioSource(SourceHandler):
    kind = 'audio'

    def probe(self, source: Source, prober) -> MediaInfo:
        info = prober.probe(source)
        if not info.has_audio:
            raise ProbeError(source.src, "file has no audio stream")
        return info

    def register_inputs(self, graph: FilterGraph, clip: Clip) -> None:
        _register_file(graph, clip)

    def lower(self, graph: FilterGraph, clip: Clip, canvas: Canvas) -> StreamPair:
        index = _input_index(graph, clip)
        return StreamPair(audio=_lower_audio(graph, clip, index))
