"""
LayoutGraph renderer - compiles a JSON layout into one ffmpeg filter graph
and runs it.
"""

import asyncio
import os
import shlex
from typing import Dict, List, Optional

from .compositor import GraphCompositor
from .diagnostics import Diagnostics
from .document import Document, load_document
from .executor import run_ffmpeg
from .graph import GraphArtifact
from .plugins.registry import HandlerProber, Registries, default_registries
from .probe import MediaProber
from .timeline import CanonicalTimeline, compile_document

OUTPUT_SETTINGS: Dict[str, List[str]] = {
    'mp4': ['-c:v', 'libx264', '-pix_fmt', 'yuv420p', '-preset', 'medium', '-crf', '20',
            '-c:a', 'aac', '-b:a', '192k', '-movflags', '+faststart'],
    'mov': ['-c:v', 'prores_ks', '-profile:v', '3', '-c:a', 'pcm_s16le'],
    'webm': ['-c:v', 'libvpx-vp9', '-b:v', '0', '-crf', '32', '-c:a', 'libopus'],
}

PREVIEW_SETTINGS: Dict[str, List[str]] = {
    'mp4': ['-c:v', 'libx264', '-pix_fmt', 'yuv420p', '-preset', 'ultrafast', '-crf', '32',
            '-c:a', 'aac', '-b:a', '96k'],
    'mov': ['-c:v', 'prores_ks', '-profile:v', '0', '-c:a', 'pcm_s16le'],
    'webm': ['-c:v', 'libvpx-vp9', '-deadline', 'realtime', '-cpu-used', '8', '-b:v', '0', '-crf', '45',
             '-c:a', 'libopus'],
}


class LayoutRenderer(object):
    def __init__(self, document_path: str, output_path: str, ffmpeg_executable: str = 'ffmpeg',
                 preview_mode: bool = False, registries: Optional[Registries] = None,
                 prober=None, diagnostics: Optional[Diagnostics] = None):
        self.document_path = document_path
        self.output_path = os.path.abspath(output_path)
        self.ffmpeg_executable = ffmpeg_executable
        self.preview_mode = preview_mode
        self.registries = registries if registries is not None else default_registries()
        self.prober = prober if prober is not None else MediaProber()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.document: Optional[Document] = None
        self.timeline: Optional[CanonicalTimeline] = None
        self.artifact: Optional[GraphArtifact] = None

    def parse_document(self) -> Document:
        self.document = load_document(self.document_path)
        return self.document

    async def compile_async(self) -> GraphArtifact:
        if self.document is None:
            self.parse_document()
        print("2. Probing media and resolving the timeline...")
        prober = HandlerProber(self.registries, self.prober)
        self.timeline = await compile_document(self.document, prober, self.diagnostics)
        print(f"   {len(self.timeline.clips)} clips, {self.timeline.duration:.3f}s total")

        print("3. Building filter graph...")
        compositor = GraphCompositor(self.registries, self.diagnostics)
        self.artifact = compositor.compose(self.timeline)
        return self.artifact

    def compile(self) -> GraphArtifact:
        return asyncio.run(self.compile_async())

    def output_format(self) -> str:
        return os.path.splitext(self.output_path)[1].lstrip('.').lower()

    def output_settings(self) -> List[str]:
        """ffmpeg encoder options chosen from the output file extension."""
        output_format = self.output_format()
        table = PREVIEW_SETTINGS if self.preview_mode else OUTPUT_SETTINGS
        if output_format not in table:
            self.diagnostics.warn(self.output_path, f"Unsupported output format '{output_format}'. Defaulting to 'mp4' settings.")
            output_format = 'mp4'
        return list(table[output_format])

    def command(self) -> List[str]:
        """The full ffmpeg command line. Compiles the document if needed."""
        if self.artifact is None:
            self.compile()
        return [self.ffmpeg_executable] + self.artifact.command_args(self.output_path, self.output_settings())

    def dry_run(self) -> List[str]:
        """Compiles the document and prints the command without running ffmpeg"""
        print("--- LayoutGraph: Dry Run ---")
        print(f"1. Parsing layout file: {self.document_path}")
        command = self.command()
        print("\n--- Filter graph ---")
        print(self.artifact.program)
        print("\n--- Command ---")
        print(" ".join(shlex.quote(arg) for arg in command))
        return command

    async def render_async(self) -> None:
        print("--- LayoutGraph: ffmpeg filter graph mode ---")
        print(f"1. Parsing layout file: {self.document_path}")
        self.parse_document()
        await self.compile_async()
        args = self.artifact.command_args(self.output_path, self.output_settings())

        print("4. Executing ffmpeg...")
        print(f"   - Executable: {self.ffmpeg_executable}")
        print(f"   - Inputs: {len(self.artifact.inputs)}")
        print(f"   - Output: {self.output_path}")
        if self.preview_mode:
            print("   - Preview mode: fast, low quality settings")
        print("--------------------------------------------------")
        await run_ffmpeg(args, self.ffmpeg_executable)
        print("--------------------------------------------------")
        if self.diagnostics.records:
            print(f"   {len(self.diagnostics)} warning(s) while compiling")
        print(f"✓ Video rendered successfully: {self.output_path}")

    def render(self) -> None:
        """Main rendering function"""
        asyncio.run(self.render_async())
