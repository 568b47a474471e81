"""
Effect handlers.
"""

from ..document import EffectSpec, FadeParams
from ..graph import FilterGraph, ref
from ..timeline import BACKGROUND_TRACK, Clip
from .base import EffectHandler, StreamPair, num


def fade_start(fade_type: str, clip_duration: float, fade_duration: float) -> float:
    """Clip-relative start of a fade. Fade-outs longer than the clip start at 0."""
    if fade_type == 'in':
        return 0.0
    return max(0.0, clip_duration - fade_duration)


class FadeEffect(EffectHandler):
    kind = 'fade'

    def apply(self, graph: FilterGraph, clip: Clip, effect: EffectSpec,
              streams: StreamPair) -> StreamPair:
        subject = f"{clip.id}/{effect.id}"
        if not isinstance(effect, FadeParams) or effect.type is None:
            graph.diagnostics.warn(subject, "fade needs a 'type' of 'in' or 'out'; effect ignored")
            return streams
        if effect.duration is None or effect.duration <= 0:
            graph.diagnostics.warn(subject, f"fade duration {effect.duration} is not positive; effect ignored")
            return streams

        start = num(fade_start(effect.type, clip.duration, effect.duration))
        duration = num(effect.duration)
        video, audio = streams.video, streams.audio

        if video is not None:
            video = graph.fresh_label('video')
            # Layers above the base fade through transparency instead of black
            alpha = clip.track > BACKGROUND_TRACK
            graph.emit(
                f"{ref(streams.video)}{'format=rgba,' if alpha else ''}"
                f"fade=type={effect.type}:start_time={start}:duration={duration}"
                f"{':alpha=1' if alpha else ''}{ref(video)}"
            )
        if audio is not None:
            audio = graph.fresh_label('audio')
            graph.emit(
                f"{ref(streams.audio)}afade=type={effect.type}:start_time={start}:duration={duration}{ref(audio)}"
            )
        return StreamPair(video, audio)
