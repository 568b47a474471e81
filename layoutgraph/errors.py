"""
Exception types raised while turning a layout document into a filter graph.
"""

from typing import Optional


class LayoutError(Exception):
    """Base exception for layout parsing, compiling and rendering errors"""
    pass


class ValidationError(LayoutError):
    """The document is malformed and cannot be compiled at all."""
    pass


class ProbeError(LayoutError):
    """A media file could not be probed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to probe media file {path}: {reason}")
        self.path = path
        self.reason = reason


class ResolutionError(LayoutError):
    """The timing of a single block could not be resolved."""

    def __init__(self, block_id: str, src: Optional[str], reason: str):
        where = f"block '{block_id}'"
        if src:
            where += f" (source {src})"
        super().__init__(f"Cannot resolve {where}: {reason}")
        self.block_id = block_id
        self.src = src
        self.reason = reason


class LoweringError(LayoutError):
    """No handler is registered for a kind used by the timeline."""
    pass


class ElementSkipped(LayoutError):
    """A clip, effect or transition was dropped; processing continues."""

    def __init__(self, subject: str, reason: str):
        super().__init__(f"{subject}: {reason}")
        self.subject = subject
        self.reason = reason


class NoContentError(LayoutError):
    def __init__(self, message: str = "no content to render"):
        super().__init__(message)


class EngineError(LayoutError):
    """ffmpeg exited with a nonzero status."""

    def __init__(self, returncode: int, stderr: str = ""):
        super().__init__(f"ffmpeg exited with code {returncode}")
        self.returncode = returncode
        self.stderr = stderr
