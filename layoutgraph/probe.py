"""
Media probing.

Durations and stream presence come from ffprobe (through ffmpeg-python);
still images are measured with Pillow. Probing is the only I/O the compiler
depends on, so it happens up front: every file-backed source of a document
is probed concurrently and the results are handed to the compiler as a
`ProbeTable`.
"""

import asyncio
import math
import os
from typing import Dict, Iterator, Tuple, Union

import ffmpeg
import PIL.Image

from .document import Document, Source
from .errors import ProbeError

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.gif', '.webp', '.tif', '.tiff')


class MediaInfo(object):
    """Simple class to hold probed media information."""
    def __init__(self, duration: float = math.inf, has_audio: bool = False, has_video: bool = False,
                 width: int = 0, height: int = 0, path: str = None):
        self.path = path
        self.duration = duration
        self.has_audio = has_audio
        self.has_video = has_video
        self.width = width
        self.height = height

    @property
    def is_bounded(self) -> bool:
        return math.isfinite(self.duration)

    def __repr__(self) -> str:
        return (f"MediaInfo(duration={self.duration}, has_audio={self.has_audio}, "
                f"has_video={self.has_video}, width={self.width}, height={self.height})")


def _is_remote(src: str) -> bool:
    return '://' in src


class MediaProber(object):
    """Probes sources and caches the result by resolved path."""

    def __init__(self):
        self.cache: Dict[str, MediaInfo] = {}

    def probe(self, source: Source) -> MediaInfo:
        if source.kind == 'colour':
            return MediaInfo(duration=math.inf, has_video=True)
        if not source.src:
            raise ProbeError(source.src, "source has no path")

        path = source.src if _is_remote(source.src) else os.path.abspath(source.src)
        if path in self.cache:
            return self.cache[path]
        # Check file existence before probing to avoid long hangs on missing files
        if not _is_remote(path) and not os.path.exists(path):
            raise ProbeError(path, "file not found")

        if source.kind == 'image' or path.lower().endswith(IMAGE_EXTENSIONS):
            info = self._probe_image(path)
        else:
            info = self._probe_media(path)
        self.cache[path] = info
        return info

    def _probe_image(self, path: str) -> MediaInfo:
        try:
            with PIL.Image.open(path) as image:
                width, height = image.size
        except (OSError, ValueError) as e:
            raise ProbeError(path, f"not a readable image ({e})")
        return MediaInfo(duration=math.inf, has_video=True, width=width, height=height, path=path)

    def _probe_media(self, path: str) -> MediaInfo:
        try:
            probe_data = ffmpeg.probe(path)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode('utf-8', errors='replace') if e.stderr else str(e)
            raise ProbeError(path, f"ffprobe failed, it may be corrupt or an unsupported format: {stderr.strip()}")
        except FileNotFoundError:
            raise ProbeError(path, "ffprobe executable not found on PATH")

        streams = probe_data.get('streams', [])
        video_stream = next((s for s in streams if s.get('codec_type') == 'video'), None)
        audio_stream = next((s for s in streams if s.get('codec_type') == 'audio'), None)

        info = MediaInfo(duration=0.0, path=path)
        if video_stream:
            info.has_video = True
            info.width = int(video_stream.get('width', 0))
            info.height = int(video_stream.get('height', 0))
        if audio_stream:
            info.has_audio = True

        # Get duration from format (container) or stream if available
        duration_str = probe_data.get('format', {}).get('duration')
        if duration_str:
            info.duration = float(duration_str)
        elif video_stream and video_stream.get('duration'):
            info.duration = float(video_stream['duration'])
        elif audio_stream and audio_stream.get('duration'):
            info.duration = float(audio_stream['duration'])
        if info.duration <= 0:
            raise ProbeError(path, "no duration reported")
        return info


ProbeKey = Tuple[str, str]
ProbeResult = Union[MediaInfo, ProbeError]


def probe_key(source: Source) -> ProbeKey:
    return (source.kind, source.src)


def document_sources(document: Document) -> Iterator[Source]:
    """Yields every source of a document, background first and overlay last."""
    if document.background is not None:
        yield document.background
    for block in document.blocks:
        yield from block.visuals
        if block.audio is not None:
            yield block.audio
    if document.overlay is not None:
        yield document.overlay


class ProbeTable(object):
    """Probe outcomes keyed by source; failures are kept, not raised, until looked up."""

    def __init__(self, results: Dict[ProbeKey, ProbeResult] = None):
        self.results: Dict[ProbeKey, ProbeResult] = dict(results or {})

    def lookup(self, source: Source) -> MediaInfo:
        if source.kind == 'colour':
            return MediaInfo(duration=math.inf, has_video=True)
        result = self.results.get(probe_key(source))
        if result is None:
            raise ProbeError(source.src, "source was not probed")
        if isinstance(result, ProbeError):
            raise result
        return result


async def probe_document(document: Document, prober) -> ProbeTable:
    """Probes every distinct file-backed source of the document concurrently."""
    pending: Dict[ProbeKey, Source] = {}
    for source in document_sources(document):
        if source.is_file:
            pending.setdefault(probe_key(source), source)

    keys = list(pending)
    outcomes = await asyncio.gather(
        *(asyncio.to_thread(prober.probe, pending[key]) for key in keys),
        return_exceptions=True,
    )
    results: Dict[ProbeKey, ProbeResult] = {}
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, ProbeError):
            results[key] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[key] = outcome
    return ProbeTable(results)
