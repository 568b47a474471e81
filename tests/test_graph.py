"""
Tests for the filter graph accumulator.
"""

import pytest

from layoutgraph.diagnostics import Diagnostics
from layoutgraph.graph import FRAGMENT_SEPARATOR, FilterGraph, GraphArtifact, ref


def test_register_input_is_idempotent():
    graph = FilterGraph()
    assert graph.register_input('/media/a.mp4') == 0
    assert graph.register_input('/media/a.mp4') == 0
    assert graph.input_count == 1


def test_distinct_inputs_get_sequential_indices():
    graph = FilterGraph()
    assert graph.register_input('/media/a.mp4') == 0
    assert graph.register_input('/media/b.mp4') == 1
    assert graph.register_input('/media/a.mp4') == 0
    assert graph.register_input('/media/c.png') == 2
    assert graph.input_index('/media/b.mp4') == 1
    assert graph.input_index('/media/missing.mp4') is None


def test_fresh_labels_never_repeat_across_categories():
    graph = FilterGraph()
    categories = ['video', 'audio', 'subtitle', 'generic']
    labels = [graph.fresh_label(categories[i % 4]) for i in range(1000)]
    assert len(set(labels)) == len(labels)


def test_fresh_label_prefixes():
    graph = FilterGraph()
    assert graph.fresh_label('video') == 'v1'
    assert graph.fresh_label('video') == 'v2'
    assert graph.fresh_label('audio') == 'a1'
    assert graph.fresh_label() == 'g1'
    assert graph.fresh_label('subtitle') == 's1'


def test_fresh_label_rejects_unknown_category():
    with pytest.raises(ValueError):
        FilterGraph().fresh_label('data')


def test_build_joins_fragments_and_maps_finals():
    graph = FilterGraph(Diagnostics(echo=False))
    graph.register_input('/media/a.mp4')
    graph.emit('[0:v]scale=640:360[v1]')
    graph.emit('[0:a]anull[a1]')
    graph.finalize_video('v1')
    graph.finalize_audio('a1')

    artifact = graph.build()
    assert artifact.inputs == ['/media/a.mp4']
    assert artifact.program == '[0:v]scale=640:360[v1]' + FRAGMENT_SEPARATOR + '[0:a]anull[a1]'
    assert artifact.output_mappings == ['-map', '[v1]', '-map', '[a1]']


def test_finalize_last_write_wins():
    graph = FilterGraph(Diagnostics(echo=False))
    graph.finalize_video('v1')
    graph.finalize_video('v7')
    assert graph.build().output_mappings == ['-map', '[v7]']


def test_build_without_finals_warns_but_succeeds():
    diagnostics = Diagnostics(echo=False)
    graph = FilterGraph(diagnostics)
    with pytest.warns(UserWarning):
        artifact = graph.build()
    assert artifact.output_mappings == []
    assert diagnostics.subjects() == ['graph']


def test_audio_only_build_does_not_warn():
    diagnostics = Diagnostics(echo=False)
    graph = FilterGraph(diagnostics)
    graph.finalize_audio('a3')
    assert graph.build().output_mappings == ['-map', '[a3]']
    assert len(diagnostics) == 0


def test_command_args():
    artifact = GraphArtifact(['/a.mp4', '/b.png'], '[0:v][1:v]overlay[v1]', ['-map', '[v1]'])
    assert artifact.command_args('/out.mp4', ['-c:v', 'libx264']) == [
        '-y', '-hide_banner',
        '-i', '/a.mp4', '-i', '/b.png',
        '-filter_complex', '[0:v][1:v]overlay[v1]',
        '-map', '[v1]',
        '-c:v', 'libx264',
        '/out.mp4',
    ]


def test_ref():
    assert ref('v1') == '[v1]'
    assert ref('0:a') == '[0:a]'
