"""
Graph compositor.

Walks a canonical timeline and drives the registered handlers to build one
filter graph, in a fixed order:

  1. register inputs and lower every clip's source
  2. fold each clip's effects over its streams
  3. join the blocks named by transitions into single segments
  4. establish the base canvas (background clip, or a generated solid colour)
  5. overlay every other visual onto the base, in (start, track) order
  6. delay and mix all audio into one stream
  7. finalize and build
"""

from dataclasses import replace
from typing import Dict, List, Optional

from .diagnostics import Diagnostics
from .errors import ElementSkipped, NoContentError
from .graph import FilterGraph, GraphArtifact, ref
from .plugins.base import StreamPair, TransitionInputs, num, target_size
from .plugins.registry import Registries, default_registries
from .timeline import BACKGROUND_TRACK, CanonicalTimeline, Clip

MIX_DROPOUT_TRANSITION = 2
MIX_SAMPLE_RATE = 48000
MIX_CHANNEL_LAYOUT = 'stereo'
DEFAULT_BASE_COLOR = 'black'


def _has_audio(layer, audio_layer) -> bool:
    if layer.streams.audio is not None:
        return True
    return audio_layer is not None and audio_layer.streams.audio is not None


class _Layer(object):
    """A clip together with the labels of its current streams."""

    def __init__(self, clip: Clip, streams: StreamPair):
        self.clip = clip
        self.streams = streams

    def __repr__(self) -> str:
        return f"_Layer({self.clip.id!r}, {self.streams!r})"


class GraphCompositor(object):
    def __init__(self, registries: Optional[Registries] = None,
                 diagnostics: Optional[Diagnostics] = None):
        self.registries = registries if registries is not None else default_registries()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def compose(self, timeline: CanonicalTimeline) -> GraphArtifact:
        graph = FilterGraph(self.diagnostics)
        layers = self._lower_sources(graph, timeline)
        self._apply_effects(graph, layers)
        layers = self._apply_transitions(graph, timeline, layers)

        if all(layer.streams.is_empty for layer in layers):
            raise NoContentError()

        video = self._composite_video(graph, timeline, layers)
        audio = self._mix_audio(graph, layers)
        if video is not None:
            graph.finalize_video(video)
        if audio is not None:
            graph.finalize_audio(audio)
        return graph.build()

    def _lower_sources(self, graph: FilterGraph, timeline: CanonicalTimeline) -> List[_Layer]:
        layers: List[_Layer] = []
        for clip in timeline.clips:
            # An unregistered kind is fatal: LoweringError propagates
            handler = self.registries.sources.get(clip.kind)
            try:
                handler.register_inputs(graph, clip)
                streams = handler.lower(graph, clip, timeline.canvas)
            except ElementSkipped as e:
                self.diagnostics.warn(e.subject, f"clip skipped: {e.reason}")
                continue
            layers.append(_Layer(clip, streams))
        return layers

    def _apply_effects(self, graph: FilterGraph, layers: List[_Layer]) -> None:
        for layer in layers:
            for effect in layer.clip.effects:
                handler = self.registries.effects.get(effect.kind)
                layer.streams = handler.apply(graph, layer.clip, effect, layer.streams)

    def _apply_transitions(self, graph: FilterGraph, timeline: CanonicalTimeline,
                           layers: List[_Layer]) -> List[_Layer]:
        if not timeline.transitions:
            return layers

        # Block id -> the layer holding its primary (lowest-track) visual, and its audio layer
        by_clip = {layer.clip.id: layer for layer in layers}
        primary: Dict[str, _Layer] = {}
        block_audio: Dict[str, _Layer] = {}
        named = dict.fromkeys(block_id for transition in timeline.transitions for block_id in transition.between)
        for block_id in named:
            for clip in timeline.block_clips(block_id):
                layer = by_clip.get(clip.id)
                if layer is None:
                    continue
                if layer.streams.video is not None:
                    current = primary.get(block_id)
                    if current is None or clip.track < current.clip.track:
                        primary[block_id] = layer
                elif not clip.is_visual and layer.streams.audio is not None:
                    block_audio[block_id] = layer

        joined_targets = set()
        for transition in timeline.transitions:
            handler = self.registries.transitions.get(transition.type)
            from_id, to_id = transition.between
            from_layer = primary.get(from_id) or block_audio.get(from_id)
            to_layer = primary.get(to_id) or block_audio.get(to_id)
            if from_layer is None or to_layer is None:
                missing = from_id if from_layer is None else to_id
                self.diagnostics.warn(transition.id, f"block '{missing}' has no content to transition; transition skipped")
                continue
            if from_layer is to_layer or to_id in joined_targets:
                self.diagnostics.warn(transition.id, f"block '{to_id}' is already joined to '{from_id}'; transition skipped")
                continue
            if transition.duration is None or transition.duration <= 0:
                self.diagnostics.warn(transition.id, f"transition duration {transition.duration} is not positive; "
                                                     f"transition skipped")
                continue

            # The outgoing side runs until the incoming block starts, plus the overlap,
            # so the joined segment ends exactly where the incoming block ends.
            from_length = max(to_layer.clip.start - from_layer.clip.start, 0.0) + transition.duration
            from_audio = block_audio.get(from_id)
            to_audio = block_audio.get(to_id)
            inputs = TransitionInputs(
                self._align_side(graph, timeline, from_layer, from_audio, from_layer.clip, from_length,
                                 _has_audio(to_layer, to_audio)),
                self._align_side(graph, timeline, to_layer, to_audio, from_layer.clip, to_layer.clip.duration,
                                 _has_audio(from_layer, from_audio)),
            )
            from_clip = replace(from_layer.clip, duration=from_length)
            try:
                output = handler.apply(graph, from_clip, to_layer.clip, transition, inputs)
            except ElementSkipped as e:
                self.diagnostics.warn(e.subject, f"transition skipped: {e.reason}")
                continue

            segment = _Layer(
                replace(from_layer.clip, id=transition.id, duration=output.duration, effects=(),
                        has_audio=output.audio is not None),
                StreamPair(output.video, output.audio),
            )
            consumed = {id(from_layer), id(to_layer)}
            for audio_layer in (from_audio, to_audio):
                if audio_layer is not None:
                    consumed.add(id(audio_layer))
            layers = [segment if layer is from_layer else layer
                      for layer in layers if layer is from_layer or id(layer) not in consumed]

            for block_id, layer in list(primary.items()):
                if id(layer) in consumed:
                    primary[block_id] = segment
            primary[from_id] = primary[to_id] = segment
            block_audio.pop(from_id, None)
            block_audio.pop(to_id, None)
            joined_targets.add(to_id)

        return sorted(layers, key=lambda layer: (layer.clip.start, layer.clip.track))

    def _align_side(self, graph: FilterGraph, timeline: CanonicalTimeline,
                    layer: _Layer, audio_layer: Optional[_Layer], size_clip: Clip,
                    length: float, other_has_audio: bool) -> StreamPair:
        """Brings one side of a transition to a common size, rate, format, length and audio layout."""
        canvas = timeline.canvas
        width, height = target_size(size_clip, canvas)
        hold = length - layer.clip.duration

        video = None
        if layer.streams.video is not None:
            chain = f"scale={width}:{height},setsar=1,fps={num(canvas.fps)},format=yuva420p"
            if hold > 0:
                chain += f",tpad=stop_mode=clone:stop_duration={num(hold)}"
            elif hold < 0:
                chain += f",trim=duration={num(length)}"
            video = graph.fresh_label('video')
            graph.emit(f"{ref(layer.streams.video)}{chain},settb=AVTB{ref(video)}")

        audio = self._side_audio(graph, layer, audio_layer)
        if audio is not None:
            aligned = graph.fresh_label('audio')
            graph.emit(
                f"{ref(audio)}aformat=sample_rates={MIX_SAMPLE_RATE}:channel_layouts={MIX_CHANNEL_LAYOUT},"
                f"apad,atrim=duration={num(length)}{ref(aligned)}"
            )
            audio = aligned
        elif other_has_audio:
            # Silence so the other side's audio still crossfades at the right point
            audio = graph.fresh_label('audio')
            graph.emit(
                f"anullsrc=r={MIX_SAMPLE_RATE}:cl={MIX_CHANNEL_LAYOUT},atrim=duration={num(length)}{ref(audio)}"
            )
        return StreamPair(video, audio)

    def _side_audio(self, graph: FilterGraph, layer: _Layer, audio_layer: Optional[_Layer]) -> Optional[str]:
        """The visual's own audio and the block's audio track, aligned to the visual and mixed."""
        owners = [layer]
        if audio_layer is not None and audio_layer is not layer:
            owners.append(audio_layer)

        labels: List[str] = []
        for owner in owners:
            label = owner.streams.audio
            if label is None:
                continue
            offset = owner.clip.start - layer.clip.start
            if offset > 0:
                delayed = graph.fresh_label('audio')
                graph.emit(f"{ref(label)}adelay=delays={int(round(offset * 1000))}:all=1{ref(delayed)}")
                label = delayed
            elif offset < 0:
                cut = graph.fresh_label('audio')
                graph.emit(f"{ref(label)}atrim=start={num(-offset)},asetpts=PTS-STARTPTS{ref(cut)}")
                label = cut
            labels.append(label)

        if not labels:
            return None
        if len(labels) == 1:
            return labels[0]
        mixed = graph.fresh_label('audio')
        graph.emit(
            f"{''.join(ref(label) for label in labels)}amix=inputs={len(labels)}:duration=longest:"
            f"dropout_transition={MIX_DROPOUT_TRANSITION}{ref(mixed)}"
        )
        return mixed

    def _base_layer(self, timeline: CanonicalTimeline, layers: List[_Layer], total: float) -> Optional[_Layer]:
        """The background clip, if it can serve as the base canvas as is."""
        canvas = timeline.canvas
        for layer in layers:
            clip = layer.clip
            if clip.id != 'background' or clip.track != BACKGROUND_TRACK or layer.streams.video is None:
                continue
            covers = clip.start == 0 and clip.end >= total
            if covers and target_size(clip, canvas) == (canvas.w, canvas.h) and clip.opacity >= 1.0:
                return layer
        return None

    def _composite_video(self, graph: FilterGraph, timeline: CanonicalTimeline,
                         layers: List[_Layer]) -> Optional[str]:
        visuals = [layer for layer in layers if layer.streams.video is not None]
        if not visuals:
            return None

        canvas = timeline.canvas
        total = max(layer.clip.end for layer in layers)
        base_layer = self._base_layer(timeline, visuals, total)
        if base_layer is not None:
            base = base_layer.streams.video
        else:
            base = graph.fresh_label('video')
            color = canvas.background_color or DEFAULT_BASE_COLOR
            graph.emit(f"color=c={color}:s={canvas.w}x{canvas.h}:d={num(total)}:r={num(canvas.fps)}{ref(base)}")

        for layer in visuals:
            if layer is base_layer:
                continue
            clip = layer.clip
            shifted = graph.fresh_label('video')
            graph.emit(f"{ref(layer.streams.video)}setpts=PTS+{num(clip.start)}/TB{ref(shifted)}")
            # Stills and colours vanish when their stream ends; video holds its last frame
            eof_action = 'repeat' if clip.kind == 'video' else 'pass'
            composited = graph.fresh_label('video')
            graph.emit(
                f"{ref(base)}{ref(shifted)}overlay=x={clip.x}:y={clip.y}:"
                f"enable='between(t,{num(clip.start)},{num(clip.end)})':eof_action={eof_action}{ref(composited)}"
            )
            base = composited
        return base

    def _mix_audio(self, graph: FilterGraph, layers: List[_Layer]) -> Optional[str]:
        tracks: List[str] = []
        for layer in layers:
            if layer.streams.audio is None:
                continue
            label = layer.streams.audio
            delay_ms = int(round(layer.clip.start * 1000))
            if delay_ms > 0:
                delayed = graph.fresh_label('audio')
                graph.emit(f"{ref(label)}adelay=delays={delay_ms}:all=1{ref(delayed)}")
                label = delayed
            tracks.append(label)

        if not tracks:
            return None
        if len(tracks) == 1:
            return tracks[0]
        mixed = graph.fresh_label('audio')
        graph.emit(
            f"{''.join(ref(t) for t in tracks)}amix=inputs={len(tracks)}:duration=longest:"
            f"dropout_transition={MIX_DROPOUT_TRANSITION}{ref(mixed)}"
        )
        return mixed
