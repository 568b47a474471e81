"""
Shared fixtures: a canned prober and a small layout builder.
"""

import asyncio
import math
import os
import sys

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from layoutgraph.diagnostics import Diagnostics
from layoutgraph.document import parse_document
from layoutgraph.errors import ProbeError
from layoutgraph.probe import MediaInfo, probe_document


class FakeProber(object):
    """Answers probe(source) from a dict keyed by src; unknown files fail."""

    def __init__(self, media=None):
        self.media = dict(media or {})
        self.calls = []

    def probe(self, source):
        self.calls.append(source.src)
        if source.kind == 'colour':
            return MediaInfo(duration=math.inf, has_video=True)
        if source.src not in self.media:
            raise ProbeError(source.src, "file not found")
        return self.media[source.src]


def video_info(duration, has_audio=False, width=1920, height=1080):
    return MediaInfo(duration=duration, has_video=True, has_audio=has_audio, width=width, height=height)


def audio_info(duration):
    return MediaInfo(duration=duration, has_audio=True)


def image_info(width=800, height=600):
    return MediaInfo(duration=math.inf, has_video=True, width=width, height=height)


def make_document(blocks, canvas=None, **extra):
    data = {
        'spec': 'layout/v1',
        'canvas': canvas or {'w': 1280, 'h': 720, 'fps': 30},
        'blocks': blocks,
    }
    data.update(extra)
    return parse_document(data)


def probe_table(document, media):
    return asyncio.run(probe_document(document, FakeProber(media)))


@pytest.fixture
def diagnostics():
    return Diagnostics(echo=False)
