"""
Transition handlers.
"""

from typing import Optional

from ..diagnostics import Diagnostics
from ..document import Transition
from ..errors import ElementSkipped
from ..graph import FilterGraph, ref
from ..timeline import Clip
from .base import TransitionHandler, TransitionInputs, TransitionOutput, num


def crossfade_offset(from_duration: float, transition_duration: float,
                     diagnostics: Optional[Diagnostics] = None, subject: str = "transition") -> float:
    """Where the incoming clip starts, relative to the start of the outgoing one."""
    offset = from_duration - transition_duration
    if offset < 0:
        if diagnostics is not None:
            diagnostics.warn(subject, f"transition ({transition_duration}s) is longer than the clip it leaves "
                                      f"({from_duration}s); offset clamped to 0")
        return 0.0
    return offset


class CrossfadeTransition(TransitionHandler):
    kind = 'crossfade'

    def apply(self, graph: FilterGraph, from_clip: Clip, to_clip: Clip,
              transition: Transition, streams: TransitionInputs) -> TransitionOutput:
        if transition.duration is None or transition.duration <= 0:
            raise ElementSkipped(transition.id, f"transition duration {transition.duration} is not positive")

        duration = transition.duration
        offset = crossfade_offset(from_clip.duration, duration, graph.diagnostics, transition.id)

        if streams.from_video is not None and streams.to_video is not None:
            video = graph.fresh_label('video')
            graph.emit(
                f"{ref(streams.from_video)}{ref(streams.to_video)}"
                f"xfade=transition=fade:duration={num(duration)}:offset={num(offset)}{ref(video)}"
            )
        else:
            video = streams.from_video if streams.from_video is not None else streams.to_video

        if streams.from_audio is not None and streams.to_audio is not None:
            audio = graph.fresh_label('audio')
            overlap = min(duration, from_clip.duration, to_clip.duration)
            graph.emit(
                f"{ref(streams.from_audio)}{ref(streams.to_audio)}"
                f"acrossfade=d={num(overlap)}:c1=tri:c2=tri{ref(audio)}"
            )
        else:
            audio = streams.from_audio if streams.from_audio is not None else streams.to_audio

        return TransitionOutput(video, audio, offset + to_clip.duration)
