"""
Tests for the source, effect and transition handlers and their registry.
"""

import pytest

from layoutgraph.diagnostics import Diagnostics
from layoutgraph.document import Canvas, Effect, FadeParams, Source, Transition
from layoutgraph.errors import ElementSkipped, LoweringError, ProbeError
from layoutgraph.graph import FilterGraph
from layoutgraph.plugins import (
    AudioSource,
    ColourSource,
    CrossfadeTransition,
    FadeEffect,
    HandlerProber,
    ImageSource,
    Registry,
    StreamPair,
    TransitionInputs,
    VideoSource,
    default_registries,
)
from layoutgraph.plugins.base import num
from layoutgraph.plugins.effects import fade_start
from layoutgraph.plugins.transitions import crossfade_offset
from layoutgraph.timeline import Clip

from conftest import FakeProber, video_info

CANVAS = Canvas(w=1280, h=720, fps=30)


def _clip(kind='video', src='/m/v.mp4', duration=5.0, **fields):
    fields.setdefault('track', 1)
    fields.setdefault('start', 0.0)
    fields.setdefault('has_video', kind != 'audio')
    return Clip(id=fields.pop('id', 'c'), kind=kind, src=src, duration=duration, **fields)


@pytest.fixture
def graph():
    return FilterGraph(Diagnostics(echo=False))


def test_num_formatting():
    assert num(4) == '4'
    assert num(2.5) == '2.5'
    assert num(0.1 + 0.2) == '0.3'
    assert num(-0.0) == '0'


# ---------------------------------------------------------------- sources

def test_video_source_lowering_with_audio(graph):
    clip = _clip(has_video=True, has_audio=True, w=640, h=360, volume=50)
    handler = VideoSource()
    handler.register_inputs(graph, clip)
    streams = handler.lower(graph, clip, CANVAS)

    assert streams == StreamPair('v1', 'a1')
    assert graph.operations == [
        '[0:v]trim=duration=5,setpts=PTS-STARTPTS,fps=30,scale=640:360,setsar=1[v1]',
        '[0:a]atrim=duration=5,asetpts=PTS-STARTPTS,volume=0.5[a1]',
    ]


def test_video_source_without_probed_audio_never_touches_the_audio_stream(graph):
    clip = _clip(has_video=True, has_audio=False)
    handler = VideoSource()
    handler.register_inputs(graph, clip)
    streams = handler.lower(graph, clip, CANVAS)
    assert streams.audio is None
    assert not any(':a]' in op for op in graph.operations)


def test_size_falls_back_to_intrinsic_then_canvas(graph):
    handler = VideoSource()
    intrinsic = _clip(src='/m/a.mp4', intrinsic_width=800, intrinsic_height=600)
    bare = _clip(src='/m/b.mp4')
    for clip in (intrinsic, bare):
        handler.register_inputs(graph, clip)
        handler.lower(graph, clip, CANVAS)
    assert 'scale=800:600' in graph.operations[0]
    assert 'scale=1280:720' in graph.operations[1]


@pytest.mark.parametrize('resize, expected', [
    ('fit', 'scale=640:360:force_original_aspect_ratio=decrease,format=rgba,pad=640:360'),
    ('fill', 'scale=640:360:force_original_aspect_ratio=increase,crop=640:360'),
    ('stretch', 'scale=640:360,setsar=1'),
])
def test_resize_modes(graph, resize, expected):
    clip = _clip(kind='image', src='/m/a.png', w=640, h=360, resize=resize)
    handler = ImageSource()
    handler.register_inputs(graph, clip)
    handler.lower(graph, clip, CANVAS)
    assert expected in graph.operations[0]


def test_opacity_is_applied_after_resize(graph):
    clip = _clip(kind='image', src='/m/a.png', w=640, h=360, opacity=0.4)
    handler = ImageSource()
    handler.register_inputs(graph, clip)
    handler.lower(graph, clip, CANVAS)
    operation = graph.operations[0]
    assert operation.index('scale=') < operation.index('colorchannelmixer=aa=0.4')


def test_image_source_loops_a_single_frame(graph):
    clip = _clip(kind='image', src='/m/a.png', duration=3)
    handler = ImageSource()
    handler.register_inputs(graph, clip)
    assert handler.lower(graph, clip, CANVAS) == StreamPair(video='v1')
    assert graph.operations[0].startswith('[0:v]loop=loop=-1:size=1:start=0,')
    assert 'trim=duration=3' in graph.operations[0]


def test_colour_source_needs_no_input(graph):
    clip = _clip(kind='colour', src='red', duration=2, w=100, h=50)
    handler = ColourSource()
    handler.register_inputs(graph, clip)
    streams = handler.lower(graph, clip, CANVAS)
    assert graph.input_count == 0
    assert streams == StreamPair(video='v1')
    assert graph.operations == ['color=c=red:s=100x50:d=2:r=30,setsar=1[v1]']


def test_audio_source_at_full_volume_uses_anull(graph):
    clip = _clip(kind='audio', src='/m/a.mp3', duration=4, track=0)
    handler = AudioSource()
    handler.register_inputs(graph, clip)
    assert handler.lower(graph, clip, CANVAS) == StreamPair(audio='a1')
    assert graph.operations == ['[0:a]atrim=duration=4,asetpts=PTS-STARTPTS,anull[a1]']


def test_shared_file_is_registered_once(graph):
    handler = VideoSource()
    for index in range(3):
        clip = _clip(id=f'c{index}')
        handler.register_inputs(graph, clip)
        handler.lower(graph, clip, CANVAS)
    assert graph.input_count == 1
    assert all(op.startswith('[0:v]') for op in graph.operations)


def test_source_without_path_is_skipped(graph):
    with pytest.raises(ElementSkipped) as excinfo:
        VideoSource().register_inputs(graph, _clip(id='orphan', src=''))
    assert excinfo.value.subject == 'orphan'


def test_unprobed_file_is_skipped_before_registration(graph):
    clip = _clip(id='lost', src='/m/lost.mp4', unresolved='file not found')
    with pytest.raises(ElementSkipped, match='file not found') as excinfo:
        VideoSource().register_inputs(graph, clip)
    assert excinfo.value.subject == 'lost'
    assert graph.input_count == 0


def test_video_source_without_video_stream_lowers_only_audio(graph):
    clip = _clip(id='music', has_video=False, has_audio=True, duration=2)
    handler = VideoSource()
    handler.register_inputs(graph, clip)
    assert handler.lower(graph, clip, CANVAS) == StreamPair(audio='a1')
    assert not any(':v]' in op for op in graph.operations)
    assert graph.diagnostics.subjects() == ['music']


def test_video_source_without_any_stream_is_skipped(graph):
    with pytest.raises(ElementSkipped):
        VideoSource().register_inputs(graph, _clip(has_video=False, has_audio=False))
    assert graph.input_count == 0


def test_audio_probe_requires_an_audio_stream():
    prober = FakeProber({'/m/silent.mp4': video_info(3)})
    with pytest.raises(ProbeError, match='no audio stream'):
        AudioSource().probe(Source(kind='audio', src='/m/silent.mp4'), prober)


# ---------------------------------------------------------------- effects

@pytest.mark.parametrize('fade_type, clip_duration, fade_duration, expected', [
    ('in', 5, 1, 0),
    ('out', 5, 1, 4),
    ('out', 1, 2, 0),
    ('in', 1, 2, 0),
])
def test_fade_start(fade_type, clip_duration, fade_duration, expected):
    assert fade_start(fade_type, clip_duration, fade_duration) == expected


def test_fade_out_longer_than_clip_starts_at_zero(graph):
    clip = _clip(duration=1, track=0)
    streams = FadeEffect().apply(graph, clip, FadeParams(id='f', type='out', duration=2), StreamPair('v0', 'a0'))
    assert streams == StreamPair('v1', 'a1')
    assert graph.operations == [
        '[v0]fade=type=out:start_time=0:duration=2[v1]',
        '[a0]afade=type=out:start_time=0:duration=2[a1]',
    ]


def test_fade_on_upper_layer_fades_alpha(graph):
    clip = _clip(duration=4, track=2)
    FadeEffect().apply(graph, clip, FadeParams(id='f', type='in', duration=1), StreamPair('v0'))
    assert graph.operations == ['[v0]format=rgba,fade=type=in:start_time=0:duration=1:alpha=1[v1]']


def test_fade_passes_untouched_streams_through(graph):
    clip = _clip(kind='audio', duration=4, track=0)
    streams = FadeEffect().apply(graph, clip, FadeParams(id='f', type='in', duration=1), StreamPair(audio='a0'))
    assert streams == StreamPair(video=None, audio='a1')


@pytest.mark.parametrize('effect', [
    FadeParams(id='f', type='in', duration=0),
    FadeParams(id='f', type='out', duration=-1),
    FadeParams(id='f', type='in', duration=None),
    FadeParams(id='f', type=None, duration=1),
    Effect(id='f', kind='fade'),
])
def test_invalid_fade_is_a_reported_no_op(graph, effect):
    streams = StreamPair('v1', 'a1')
    assert FadeEffect().apply(graph, _clip(id='c'), effect, streams) is streams
    assert graph.operations == []
    assert graph.diagnostics.subjects() == ['c/f']


# ---------------------------------------------------------------- transitions

def test_crossfade_offset():
    assert crossfade_offset(5, 1) == 4
    diagnostics = Diagnostics(echo=False)
    assert crossfade_offset(0.5, 1, diagnostics, 't') == 0
    assert diagnostics.subjects() == ['t']


def test_crossfade_joins_video_and_audio(graph):
    from_clip = _clip(id='a', duration=5)
    to_clip = _clip(id='b', duration=3)
    transition = Transition(id='t', type='crossfade', duration=1, between=('x', 'y'))
    inputs = TransitionInputs(StreamPair('fv', 'fa'), StreamPair('tv', 'ta'))

    output = CrossfadeTransition().apply(graph, from_clip, to_clip, transition, inputs)
    assert (output.video, output.audio, output.duration) == ('v1', 'a1', 7)
    assert graph.operations == [
        '[fv][tv]xfade=transition=fade:duration=1:offset=4[v1]',
        '[fa][ta]acrossfade=d=1:c1=tri:c2=tri[a1]',
    ]


def test_crossfade_longer_than_outgoing_clip_clamps_offset(graph):
    transition = Transition(id='t', type='crossfade', duration=1, between=('x', 'y'))
    inputs = TransitionInputs(StreamPair('fv'), StreamPair('tv'))
    output = CrossfadeTransition().apply(graph, _clip(duration=0.5), _clip(duration=3), transition, inputs)
    assert 'offset=0[' in graph.operations[0]
    assert output.duration == 3
    assert graph.diagnostics.subjects() == ['t']


def test_crossfade_with_one_sided_audio_passes_it_through(graph):
    transition = Transition(id='t', type='crossfade', duration=1, between=('x', 'y'))
    inputs = TransitionInputs(StreamPair('fv', None), StreamPair('tv', 'ta'))
    output = CrossfadeTransition().apply(graph, _clip(), _clip(), transition, inputs)
    assert output.audio == 'ta'
    assert len(graph.operations) == 1


def test_crossfade_with_bad_duration_is_skipped(graph):
    transition = Transition(id='t', type='crossfade', duration=0, between=('x', 'y'))
    inputs = TransitionInputs(StreamPair('fv'), StreamPair('tv'))
    with pytest.raises(ElementSkipped):
        CrossfadeTransition().apply(graph, _clip(), _clip(), transition, inputs)


# ---------------------------------------------------------------- registry

def test_default_registries():
    registries = default_registries()
    assert registries.sources.kinds == ['audio', 'colour', 'image', 'video']
    assert 'fade' in registries.effects
    assert isinstance(registries.transitions.get('crossfade'), CrossfadeTransition)


def test_unregistered_kind_is_a_lowering_error():
    with pytest.raises(LoweringError, match="wipe"):
        default_registries().transitions.get('wipe')


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError):
        Registry('source', [VideoSource(), VideoSource()])


def test_handler_prober_dispatches_by_kind():
    prober = HandlerProber(default_registries(), FakeProber({'/m/v.mp4': video_info(3)}))
    assert prober.probe(Source(kind='video', src='/m/v.mp4')).duration == 3
    assert not prober.probe(Source(kind='colour', src='red')).is_bounded
