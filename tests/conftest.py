"""
Shared fixtures: a fake ffmpeg engine and clip files it understands.

The fake engine is a small executable Python script. Clip files contain a
descriptor such as b"seconds=2.0" (decoded into that many seconds of PCM) or
b"fail" (writes a few bytes, then exits 1). Every invocation is appended to
a log file so tests can count engine spawns.
"""

import sys
from pathlib import Path
from typing import List

import pytest

FAKE_ENGINE_SOURCE = """#!@PYTHON@
import os
import shutil
import sys

args = sys.argv[1:]
log = os.environ.get("FAKE_ENGINE_LOG")
if log:
    with open(log, "a") as f:
        f.write(" ".join(args) + "\\n")


def opt(flag, default=None):
    return args[args.index(flag) + 1] if flag in args else default


if args == ["-version"]:
    if os.environ.get("FAKE_ENGINE_PROBE_FAIL"):
        sys.exit(1)
    print("ffmpeg version fake-engine")
    sys.exit(0)

if args[:2] == ["-i", "pipe:0"]:
    text = sys.stdin.buffer.read().decode()
    if text.startswith("fail"):
        sys.stdout.buffer.write(b"\\x01" * 100)
        sys.stdout.flush()
        sys.stderr.write("Invalid data found when processing input\\n")
        sys.exit(1)
    seconds = float(text.split("=", 1)[1])
    size = int(int(opt("-ar")) * 2 * int(opt("-ac")) * seconds + 0.5)
    for offset in range(0, size, 4096):
        sys.stdout.buffer.write(b"\\x01" * min(4096, size - offset))
    sys.exit(0)

fail = os.environ.get("FAKE_ENGINE_FAIL_ENCODE", "")
target = args[-1]

if "pipe:0" in args:
    data = sys.stdin.buffer.read()
    if fail == "temp":
        sys.stderr.write("encoder exploded\\n")
        sys.exit(1)
    if target in ("pipe:", "pipe:1", "-"):
        sys.stdout.buffer.write(b"ENC" + data)
    else:
        with open(target, "wb") as f:
            f.write(b"RIFF" + data)
    sys.exit(0)

if fail == "final":
    sys.stderr.write("encoder exploded\\n")
    sys.exit(1)
shutil.copyfile(opt("-i"), target)
"""


class FakeEngine:
    """Handle on the fake engine script and its invocation log."""

    def __init__(self, path: Path, log: Path):
        self.path = str(path)
        self.log = log

    def calls(self) -> List[str]:
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def probes(self) -> int:
        return sum(1 for call in self.calls() if call == "-version")


@pytest.fixture
def fake_engine(tmp_path, monkeypatch):
    """Executable fake ffmpeg with an invocation log."""
    if sys.platform == "win32":
        pytest.skip("fake engine relies on a shebang script")

    script = tmp_path / "fake-ffmpeg"
    script.write_text(FAKE_ENGINE_SOURCE.replace("@PYTHON@", sys.executable))
    script.chmod(0o755)

    log = tmp_path / "engine.log"
    monkeypatch.setenv("FAKE_ENGINE_LOG", str(log))
    monkeypatch.delenv("FAKE_ENGINE_PROBE_FAIL", raising=False)
    monkeypatch.delenv("FAKE_ENGINE_FAIL_ENCODE", raising=False)
    return FakeEngine(script, log)


@pytest.fixture
def make_clip(tmp_path):
    """Write a clip descriptor file the fake engine can decode."""
    clips_dir = tmp_path / "clips"
    clips_dir.mkdir()

    def _make(name: str, seconds: float = 1.0, fail: bool = False) -> str:
        path = clips_dir / name
        path.write_bytes(b"fail" if fail else f"seconds={seconds}".encode())
        return str(path)

    return _make


@pytest.fixture
def temp_dir(tmp_path, monkeypatch):
    """Private directory for tempfile.mkstemp so leftovers can be checked."""
    import tempfile

    tmp = tmp_path / "tmp"
    tmp.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(tmp))
    return tmp
