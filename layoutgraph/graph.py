"""
Filter graph accumulator.

Collects the input files, the filter fragments and the final output streams
of one render. Fragments are plain ffmpeg filtergraph text such as
``[0:v]scale=640:360[v1]``; this class never looks inside them.
"""

from typing import Dict, List, Optional

from .diagnostics import Diagnostics

LABEL_PREFIXES = {
    'video': 'v',
    'audio': 'a',
    'subtitle': 's',
    'generic': 'g',
}

FRAGMENT_SEPARATOR = ";\n"


def ref(label: str) -> str:
    """Wraps a stream label or input specifier as a filtergraph pad, e.g. [v1]."""
    return f"[{label}]"


class GraphArtifact(object):
    """The finished graph: everything ffmpeg needs apart from output encoding."""

    def __init__(self, inputs: List[str], program: str, output_mappings: List[str]):
        self.inputs = inputs
        self.program = program
        self.output_mappings = output_mappings

    def input_args(self) -> List[str]:
        args: List[str] = []
        for path in self.inputs:
            args.extend(['-i', path])
        return args

    def command_args(self, output_path: str, output_options: Optional[List[str]] = None) -> List[str]:
        """Builds the ffmpeg argument vector (without the executable)."""
        args = ['-y', '-hide_banner'] + self.input_args()
        if self.program:
            args.extend(['-filter_complex', self.program])
        args.extend(self.output_mappings)
        args.extend(output_options or [])
        args.append(output_path)
        return args

    def __eq__(self, other) -> bool:
        if not isinstance(other, GraphArtifact):
            return NotImplemented
        return (self.inputs, self.program, self.output_mappings) == \
            (other.inputs, other.program, other.output_mappings)

    def __repr__(self) -> str:
        return f"GraphArtifact(inputs={self.inputs!r}, program={self.program!r}, output_mappings={self.output_mappings!r})"


class FilterGraph(object):
    """One per render. Only ever grows until build() is called."""

    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._inputs: List[str] = []
        self._input_index: Dict[str, int] = {}
        self._operations: List[str] = []
        self._counters: Dict[str, int] = {prefix: 0 for prefix in LABEL_PREFIXES.values()}
        self.final_video: Optional[str] = None
        self.final_audio: Optional[str] = None

    def register_input(self, path: str) -> int:
        """Returns the input index for path, adding it if it is new."""
        if path in self._input_index:
            return self._input_index[path]
        index = len(self._inputs)
        self._inputs.append(path)
        self._input_index[path] = index
        return index

    def input_index(self, path: str) -> Optional[int]:
        return self._input_index.get(path)

    @property
    def input_count(self) -> int:
        return len(self._inputs)

    def fresh_label(self, category: str = 'generic') -> str:
        if category not in LABEL_PREFIXES:
            raise ValueError(f"Unknown stream category '{category}'; expected one of {', '.join(LABEL_PREFIXES)}")
        prefix = LABEL_PREFIXES[category]
        self._counters[prefix] += 1
        return f"{prefix}{self._counters[prefix]}"

    def emit(self, operation: str) -> None:
        self._operations.append(operation)

    @property
    def operations(self) -> List[str]:
        return list(self._operations)

    def finalize_video(self, label: str) -> None:
        self.final_video = label

    def finalize_audio(self, label: str) -> None:
        self.final_audio = label

    def build(self) -> GraphArtifact:
        output_mappings: List[str] = []
        if self.final_video is not None:
            output_mappings.extend(['-map', ref(self.final_video)])
        if self.final_audio is not None:
            output_mappings.extend(['-map', ref(self.final_audio)])
        if not output_mappings:
            self.diagnostics.warn("graph", "no final video or audio stream was set; output has no mapped streams")
        return GraphArtifact(
            inputs=list(self._inputs),
            program=FRAGMENT_SEPARATOR.join(self._operations),
            output_mappings=output_mappings,
        )
