"""
LayoutGraph - compiles declarative JSON video layouts into ffmpeg filter graphs
"""

from .compositor import GraphCompositor
from .diagnostics import Diagnostic, Diagnostics, LayoutWarning
from .document import load_document, parse_document
from .errors import (
    ElementSkipped,
    EngineError,
    LayoutError,
    LoweringError,
    NoContentError,
    ProbeError,
    ResolutionError,
    ValidationError,
)
from .graph import FilterGraph, GraphArtifact
from .probe import MediaInfo, MediaProber, ProbeTable, probe_document
from .renderer import LayoutRenderer
from .timeline import CanonicalTimeline, Clip, compile_document, compile_timeline

__version__ = "0.1.0"
__all__ = [
    "CanonicalTimeline",
    "Clip",
    "Diagnostic",
    "Diagnostics",
    "ElementSkipped",
    "EngineError",
    "FilterGraph",
    "GraphArtifact",
    "GraphCompositor",
    "LayoutError",
    "LayoutRenderer",
    "LayoutWarning",
    "LoweringError",
    "MediaInfo",
    "MediaProber",
    "NoContentError",
    "ProbeError",
    "ProbeTable",
    "ResolutionError",
    "ValidationError",
    "compile_document",
    "compile_timeline",
    "load_document",
    "parse_document",
    "probe_document",
]
