"""
One-shot evaluation: every request gets a freshly spawned runtime process.
"""
from __future__ import annotations

import asyncio
import os
import tempfile
from typing import Sequence

from blockeval.blockeval_datatypes import ProcessStartError, _dbg

TEMP_PREFIX = "blockeval-"


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def remove_temp(path: str) -> None:
    # Best-effort cleanup
    try:
        os.remove(path)
    except OSError:
        pass


def _fresh_temp_file(suffix: str, text: str = "") -> str:
    fd, path = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=suffix)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return path


async def spawn(argv: Sequence[str], **kwargs) -> asyncio.subprocess.Process:
    """Start `argv` directly, raising ProcessStartError when it cannot be executed."""
    argv = [str(a) for a in argv]
    _dbg("SPAWN", argv)
    try:
        return await asyncio.create_subprocess_exec(*argv, **kwargs)
    except OSError as e:
        raise ProcessStartError(argv, str(e)) from e


def allocate_sink(suffix: str = ".out") -> str:
    """Create an empty result sink file with a collision-resistant name."""
    return _fresh_temp_file(suffix)


async def run_output(argv: Sequence[str], body: str) -> str:
    """Pipe `body` into a new process and return its merged stdout/stderr verbatim."""
    proc = await spawn(
        argv,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    out, _ = await proc.communicate(input=(body or "").encode("utf-8"))
    # Exit status is reported but never turned into an error
    _dbg("EXIT", proc.returncode)
    return _decode(out)


async def run_value(argv: Sequence[str], wrapper_program: str, sink_path: str, *,
                    suffix: str = ".src") -> str:
    """Run `wrapper_program` as a source file and read back what it wrote to `sink_path`."""
    source_path = _fresh_temp_file(suffix, wrapper_program)
    cmd = [str(a) for a in argv] + [source_path]
    try:
        proc = await spawn(
            cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        out, _ = await proc.communicate()
        _dbg("EXIT", proc.returncode, _decode(out))
        try:
            with open(sink_path, "r", encoding="utf-8", errors="replace") as f:
                return f.read()
        except FileNotFoundError:
            return ""
    finally:
        remove_temp(source_path)


__all__ = [
    "allocate_sink",
    "remove_temp",
    "run_output",
    "spawn",
    "run_value",
]
