"""
End-to-end tests for the AudioSprite session against the fake engine.

Tests decoding, timing, autoplay bookkeeping, exports and error handling.
"""

import io
import json
import os
from unittest.mock import patch

import pytest
from audiosprite import AudioSprite, SpriteOptions
from audiosprite.build.timeline import ClipEntry
from audiosprite.errors import (
    DecodeError,
    EncodeError,
    EngineNotFoundError,
    InputMissingError,
    InvalidRawArgumentsError,
    UnsupportedFormatError,
)

BYTES_PER_SECOND = 44100 * 2


@pytest.fixture
def sprite(fake_engine):
    """Mono 44.1 kHz session with a one-second gap."""
    return AudioSprite(
        SpriteOptions(engine_path=fake_engine.path, sample_rate=44100, channel_count=1, track_gap=1)
    )


class TestInput:
    """Test decoding clips into the sprite."""

    def test_single_clip(self, sprite, make_clip):
        """A 2 s clip spans [0, 2] and the next clip starts at 3 s."""
        entry = sprite.input_file(make_clip("a.ogg", 2.0))

        assert entry == ClipEntry(start=0.0, end=2.0, loop=False)
        assert sprite.output_json()["spritemap"]["a"] == {"start": 0.0, "end": 2.0, "loop": False}
        assert sprite.position_in_seconds == 3.0

        second = sprite.input_file(make_clip("b.ogg", 0.5))
        assert second.start == 3.0
        assert second.end == 3.5
        assert sprite.position_in_seconds == 5.0

    def test_decoded_bytes_in_buffer(self, sprite, make_clip):
        """Decoded PCM precedes the zeroed gap in the buffer."""
        sprite.input_file(make_clip("a.ogg", 0.5))
        data = bytes(sprite._accumulator.snapshot())

        assert len(data) == 2 * BYTES_PER_SECOND
        assert set(data[:BYTES_PER_SECOND // 2]) == {1}
        assert set(data[BYTES_PER_SECOND // 2:]) == {0}

    def test_fractional_clip_rounds_to_next_second(self, sprite, make_clip):
        """Trailing silence aligns the next clip to a whole second plus the gap."""
        sprite.input_file(make_clip("a.ogg", 1.25))
        assert sprite.position_in_seconds == pytest.approx(3.0)

    def test_min_track_length_padding(self, fake_engine, make_clip):
        """Short clips are padded up to the minimum length."""
        sprite = AudioSprite(SpriteOptions(engine_path=fake_engine.path, track_gap=1, min_track_length=3))
        entry = sprite.input_file(make_clip("a.ogg", 2.0))

        assert entry.end == pytest.approx(3.0)
        assert sprite.position_in_seconds == pytest.approx(4.0)

    def test_input_bytes(self, sprite):
        """Raw bytes can be fed directly with the default clip name."""
        entry = sprite.input(b"seconds=1.0")
        assert "default" in sprite.timeline
        assert entry.end == 1.0

    def test_input_stream(self, sprite):
        """Binary streams can be fed directly."""
        sprite.input(io.BytesIO(b"seconds=1.0"), name="stream")
        assert sprite.timeline["stream"].end == 1.0

    def test_batch_input_in_order(self, sprite, make_clip):
        """Batch inputs are decoded sequentially and named after their files."""
        entries = sprite.input_file([make_clip("one.ogg", 1.0), make_clip("two.wav", 1.0)])

        assert [e.start for e in entries] == [0.0, 2.0]
        assert list(sprite.timeline.spritemap) == ["one", "two"]

    def test_explicit_name(self, sprite, make_clip):
        sprite.input_file(make_clip("a.ogg", 1.0), name="intro")
        assert list(sprite.timeline.spritemap) == ["intro"]

    def test_same_name_overwrites(self, sprite, make_clip):
        """Re-adding a name replaces its entry and autoplay attribution."""
        sprite.input_file(make_clip("a.ogg", 1.0), name="x")
        sprite.input_file(make_clip("b.ogg", 1.0), name="y")
        sprite.input_file(make_clip("c.ogg", 0.5), name="x", loop=True)

        assert sprite.timeline["x"] == ClipEntry(4.0, 4.5, True)
        assert len(sprite.timeline) == 2
        assert sprite.timeline.autoplay == "x"

    def test_autoplay_bookkeeping(self, sprite, make_clip):
        """The last clip added without autoplay is the autoplay clip."""
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.input_file(make_clip("b.ogg", 1.0), autoplay=True)
        assert sprite.timeline.autoplay == "a"
        # Autoplay clips are marked as looping
        assert sprite.timeline["b"].loop is True

        sprite.input_file(make_clip("c.ogg", 1.0))
        assert sprite.timeline.autoplay == "c"

    def test_engine_probed_once(self, sprite, fake_engine, make_clip):
        """The version probe runs once per session."""
        sprite.input_file([make_clip("a.ogg", 1.0), make_clip("b.ogg", 1.0)])
        sprite.input(b"seconds=0.5", name="c")

        assert fake_engine.probes() == 1
        assert fake_engine.calls()[0] == "-version"


class TestSilence:
    """Test explicit silent clips."""

    def test_silence_on_empty_buffer(self, sprite):
        """Silence spans exactly its duration and loops."""
        entry = sprite.input_silence(1.5, name="pause")

        assert entry == ClipEntry(0.0, 1.5, True)
        assert sprite.output_json()["spritemap"]["pause"] == {"start": 0.0, "end": 1.5, "loop": True}
        assert sprite._accumulator.position == int(2.5 * BYTES_PER_SECOND)
        assert set(bytes(sprite._accumulator.snapshot())) == {0}

    def test_silence_spawns_nothing(self, sprite, fake_engine):
        sprite.input_silence(1.0)
        assert fake_engine.calls() == []
        assert sprite.timeline.autoplay == "silence"

    def test_negative_silence(self, sprite):
        """Negative durations are rejected without touching the sprite."""
        with pytest.raises(ValueError):
            sprite.input_silence(-1.0)
        assert len(sprite.timeline) == 0
        assert sprite.position_in_seconds == 0.0

    @pytest.mark.parametrize("duration", [float("nan"), float("inf")])
    def test_non_finite_silence(self, sprite, duration):
        """NaN and infinite durations leave the sprite and manifest untouched."""
        sprite.input_silence(1.0, name="pause")

        with pytest.raises(ValueError):
            sprite.input_silence(duration, name="bad")

        assert "bad" not in sprite.timeline
        assert sprite.timeline.autoplay == "pause"
        assert sprite.position_in_seconds == 2.0
        json.dumps(sprite.output_json(), allow_nan=False)

    def test_silence_after_clip(self, sprite, make_clip):
        sprite.input_file(make_clip("a.ogg", 1.0))
        entry = sprite.input_silence(0.5, name="gap")
        assert entry.start == 2.0
        assert sprite.position_in_seconds == 3.5


class TestInputErrors:
    """Test decode-side failures."""

    def test_decode_failure(self, sprite, make_clip):
        """A failing clip raises DecodeError and the session keeps working."""
        with pytest.raises(DecodeError) as excinfo:
            sprite.input_file(make_clip("bad.ogg", fail=True))

        assert excinfo.value.clip == "bad"
        assert excinfo.value.returncode == 1
        assert excinfo.value.signal is None
        assert "Invalid data" in excinfo.value.stderr
        assert "bad" not in sprite.timeline

        # Partial output stays in the buffer
        assert sprite._accumulator.position == 100

        entry = sprite.input_file(make_clip("good.ogg", 1.0))
        assert entry.start == pytest.approx(100 / BYTES_PER_SECOND)
        assert "good" in sprite.timeline

    def test_batch_stops_at_first_failure(self, sprite, fake_engine, make_clip):
        """Remaining files are skipped after a failure."""
        files = [make_clip("a.ogg", 1.0), make_clip("bad.ogg", fail=True), make_clip("c.ogg", 1.0)]
        with pytest.raises(DecodeError):
            sprite.input_file(files)

        assert list(sprite.timeline.spritemap) == ["a"]
        decodes = [call for call in fake_engine.calls() if call.startswith("-i pipe:0")]
        assert len(decodes) == 2

    def test_missing_file(self, sprite, fake_engine, tmp_path):
        """Missing inputs fail before any engine call."""
        with pytest.raises(InputMissingError) as excinfo:
            sprite.input_file(str(tmp_path / "nope.ogg"))

        assert isinstance(excinfo.value, FileNotFoundError)
        assert fake_engine.calls() == []

    def test_probe_failure_then_retry(self, sprite, fake_engine, make_clip, monkeypatch):
        """A failed probe leaves the session usable and is retried."""
        monkeypatch.setenv("FAKE_ENGINE_PROBE_FAIL", "1")
        with pytest.raises(EngineNotFoundError):
            sprite.input_file(make_clip("a.ogg", 1.0))
        assert len(sprite.timeline) == 0

        monkeypatch.delenv("FAKE_ENGINE_PROBE_FAIL")
        sprite.input_file(make_clip("a.ogg", 1.0))

        assert fake_engine.probes() == 2
        assert "a" in sprite.timeline

    def test_missing_engine(self, make_clip):
        sprite = AudioSprite(SpriteOptions(engine_path="/nonexistent/ffmpeg"))
        with pytest.raises(EngineNotFoundError):
            sprite.input_file(make_clip("a.ogg", 1.0))


class TestOutput:
    """Test exporting the sprite."""

    def test_two_outputs_leave_buffer_untouched(self, sprite, make_clip, tmp_path, temp_dir):
        """Exports never move the cursor; each adds a resource."""
        sprite.input_file(make_clip("a.ogg", 1.0))
        position = sprite._accumulator.position
        expected = b"RIFF" + bytes(sprite._accumulator.snapshot())

        names = sprite.output_file([str(tmp_path / "out" / "sprite.ogg"), str(tmp_path / "out" / "sprite.mp3")])

        assert names == ["sprite.ogg", "sprite.mp3"]
        assert sprite._accumulator.position == position
        assert sprite.timeline.resources == ["sprite.ogg", "sprite.mp3"]
        assert (tmp_path / "out" / "sprite.ogg").read_bytes() == expected
        assert (tmp_path / "out" / "sprite.mp3").read_bytes() == expected
        assert os.listdir(temp_dir) == []

    def test_format_from_extension(self, sprite, fake_engine, make_clip, tmp_path, temp_dir):
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.output_file(str(tmp_path / "sprite.m4a"))

        final = fake_engine.calls()[-1]
        assert "-c:a aac" in final
        assert final.endswith("sprite.m4a")

    def test_unknown_extension_defaults_to_ogg(self, sprite, fake_engine, make_clip, tmp_path, temp_dir):
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.output_file(str(tmp_path / "sprite.bin"))
        assert "libvorbis" in fake_engine.calls()[-1]

    def test_custom_resource_name(self, sprite, make_clip, tmp_path, temp_dir):
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.output_file(str(tmp_path / "sprite.ogg"), name="cdn/sprite.ogg")
        assert sprite.timeline.resources == ["cdn/sprite.ogg"]

    def test_raw_arguments(self, sprite, fake_engine, make_clip, tmp_path, temp_dir):
        """Raw arguments replace the profile in the final pass."""
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.output_file(str(tmp_path / "sprite.opus"), format="opus", raw_arguments=["-c:a", "libopus"])
        assert "-c:a libopus" in fake_engine.calls()[-1]
        assert sprite.timeline.resources == ["sprite.opus"]

    def test_unsupported_format_spawns_nothing(self, sprite, fake_engine, tmp_path):
        """Unsupported formats fail before any process is started."""
        with patch("audiosprite.render.engine.subprocess.Popen") as mock_popen:
            with pytest.raises(UnsupportedFormatError):
                sprite.output_file(str(tmp_path / "sprite.flac"), format="flac")

        mock_popen.assert_not_called()
        assert fake_engine.calls() == []
        assert sprite.timeline.resources == []

    def test_encode_failure(self, sprite, make_clip, tmp_path, temp_dir, monkeypatch):
        """A failed export raises EncodeError and records nothing."""
        sprite.input_file(make_clip("a.ogg", 1.0))
        sprite.output_file(str(tmp_path / "first.ogg"))

        monkeypatch.setenv("FAKE_ENGINE_FAIL_ENCODE", "final")
        with pytest.raises(EncodeError) as excinfo:
            sprite.output_file([str(tmp_path / "second.mp3"), str(tmp_path / "third.wav")])

        assert excinfo.value.format == "mp3"
        assert excinfo.value.returncode == 1
        assert "encoder exploded" in excinfo.value.stderr
        assert "second.mp3" in excinfo.value.cmd
        assert sprite.timeline.resources == ["first.ogg"]
        assert not (tmp_path / "third.wav").exists()
        assert os.listdir(temp_dir) == []

    def test_temp_pass_failure(self, sprite, make_clip, tmp_path, temp_dir, monkeypatch):
        sprite.input_file(make_clip("a.ogg", 1.0))
        monkeypatch.setenv("FAKE_ENGINE_FAIL_ENCODE", "temp")
        with pytest.raises(EncodeError):
            sprite.output_file(str(tmp_path / "sprite.ogg"))
        assert not (tmp_path / "sprite.ogg").exists()
        assert os.listdir(temp_dir) == []

    def test_output_stream(self, sprite, make_clip):
        """Stream exports encode in one pass from stdin to stdout."""
        sprite.input_file(make_clip("a.ogg", 0.25))
        target = io.BytesIO()

        name = sprite.output(target, format="mp3")

        assert name == "default"
        assert target.getvalue() == b"ENC" + bytes(sprite._accumulator.snapshot())
        assert sprite.timeline.resources == ["default"]

    def test_output_stream_raw_arguments(self, sprite, fake_engine, make_clip):
        sprite.input_file(make_clip("a.ogg", 0.25))
        target = io.BytesIO()
        sprite.output(
            target,
            raw_arguments=["-y", "-f", "s16le", "-i", "pipe:0", "-f", "ogg", "pipe:1"],
            name="sprite.ogg",
        )
        assert target.getvalue().startswith(b"ENC")
        assert sprite.timeline.resources == ["sprite.ogg"]

    def test_output_stream_invalid_raw_arguments(self, sprite, fake_engine):
        with pytest.raises(InvalidRawArgumentsError):
            sprite.output(io.BytesIO(), raw_arguments=["-f", "ogg", "out.ogg"])
        assert fake_engine.calls() == []
        assert sprite.timeline.resources == []

    def test_output_stream_batch(self, sprite, fake_engine, make_clip):
        """A list of streams is encoded in order, one engine run each."""
        sprite.input_file(make_clip("a.ogg", 0.25))
        targets = [io.BytesIO(), io.BytesIO()]

        names = sprite.output(targets, format="ogg", name="sprite.ogg")

        expected = b"ENC" + bytes(sprite._accumulator.snapshot())
        assert names == ["sprite.ogg", "sprite.ogg"]
        assert [t.getvalue() for t in targets] == [expected, expected]
        assert sprite.timeline.resources == ["sprite.ogg", "sprite.ogg"]
        encodes = [call for call in fake_engine.calls() if call.startswith("-y")]
        assert len(encodes) == 2

    def test_output_stream_batch_stops_at_first_failure(self, sprite, fake_engine, make_clip):
        """A failing stream aborts the batch; later streams are never written."""

        class FullDisk(io.RawIOBase):
            def writable(self):
                return True

            def write(self, data):
                raise OSError("No space left on device")

        sprite.input_file(make_clip("a.ogg", 0.25))
        first, last = io.BytesIO(), io.BytesIO()

        with pytest.raises(OSError, match="No space left"):
            sprite.output([first, FullDisk(), last])

        assert first.getvalue().startswith(b"ENC")
        assert last.getvalue() == b""
        assert sprite.timeline.resources == ["default"]
        encodes = [call for call in fake_engine.calls() if call.startswith("-y")]
        assert len(encodes) == 2

    def test_output_stream_batch_engine_failure(self, sprite, make_clip, monkeypatch):
        """An engine failure on the first stream leaves the rest untouched."""
        sprite.input_file(make_clip("a.ogg", 0.25))
        monkeypatch.setenv("FAKE_ENGINE_FAIL_ENCODE", "temp")
        targets = [io.BytesIO(), io.BytesIO()]

        with pytest.raises(EncodeError):
            sprite.output(targets, format="mp3")

        assert [t.getvalue() for t in targets] == [b"", b""]
        assert sprite.timeline.resources == []


class TestManifestOutput:
    """Test manifest generation from a session."""

    def test_output_json_file(self, sprite, make_clip, tmp_path, temp_dir):
        sprite.input_file(make_clip("a.ogg", 2.0))
        sprite.input_silence(1.0, name="pause")
        sprite.output_file(str(tmp_path / "sprite.ogg"))

        target = tmp_path / "sprite.json"
        manifest = sprite.output_json_file(str(target), "howler2")

        assert json.loads(target.read_text(encoding="utf-8")) == manifest
        assert manifest == {
            "src": ["sprite.ogg"],
            "sprite": {
                "a": [0.0, 2000.0],
                "pause": [3000.0, 1000.0, True],
            },
        }
        assert "\t" in target.read_text(encoding="utf-8")

    def test_default_manifest(self, sprite, make_clip):
        sprite.input_file(make_clip("a.ogg", 1.0))
        assert sprite.output_json() == {
            "resources": [],
            "spritemap": {"a": {"start": 0.0, "end": 1.0, "loop": False}},
            "autoplay": "a",
        }
