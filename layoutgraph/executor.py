"""
Runs the ffmpeg process for a finished graph.

stderr is read line by line while ffmpeg runs so a long render never stalls
on a full pipe. Only the exit code decides success; the last lines of stderr
are kept for the error report.
"""

import asyncio
import collections
import sys
from typing import List

from .errors import EngineError, LayoutError

STDERR_TAIL_LINES = 50


async def run_ffmpeg(args: List[str], ffmpeg_executable: str = 'ffmpeg',
                     echo: bool = True, tail_lines: int = STDERR_TAIL_LINES) -> str:
    """Runs ffmpeg with args and returns the tail of its stderr.

    Raises EngineError on a nonzero exit. Cancelling the awaiting task kills
    the process.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            ffmpeg_executable, *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise LayoutError(f"ffmpeg executable not found at '{ffmpeg_executable}'. "
                          f"Please ensure ffmpeg is installed and in your PATH.")

    tail = collections.deque(maxlen=tail_lines)
    try:
        async for raw_line in proc.stderr:
            line = raw_line.decode('utf-8', errors='replace').rstrip()
            tail.append(line)
            if echo:
                print(f"   {line}", file=sys.stderr)
        returncode = await proc.wait()
    except asyncio.CancelledError:
        _kill(proc)
        await proc.wait()
        raise

    stderr_tail = "\n".join(tail)
    if returncode != 0:
        raise EngineError(returncode, stderr_tail)
    return stderr_tail


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            # exited between the check and the kill
            pass
