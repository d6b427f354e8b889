import json
import sys
import time

import pytest

from media.probe import AspectClass, FFprobeProber, StreamGeometry, classify_aspect_ratio
from services.errors import ProbeError


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (1920, 1080, AspectClass.LANDSCAPE),
        (1280, 720, AspectClass.LANDSCAPE),
        (854, 480, AspectClass.LANDSCAPE),
        (1080, 1920, AspectClass.PORTRAIT),
        (720, 1280, AspectClass.PORTRAIT),
        (1000, 1000, AspectClass.OTHER),
        (640, 480, AspectClass.OTHER),
        (1080, 1350, AspectClass.OTHER),
        (1920, 0, AspectClass.OTHER),
    ],
)
def test_classify_aspect_ratio_buckets(width, height, expected):
    assert classify_aspect_ratio(width, height) is expected


def test_classify_aspect_ratio_tolerance_is_strict():
    # 16/9 = 1.7778; 1.7877 is just inside, 1.7879 is outside.
    assert classify_aspect_ratio(17877, 10000) is AspectClass.LANDSCAPE
    assert classify_aspect_ratio(17879, 10000) is AspectClass.OTHER
    # 9/16 = 0.5625
    assert classify_aspect_ratio(5724, 10000) is AspectClass.PORTRAIT
    assert classify_aspect_ratio(5726, 10000) is AspectClass.OTHER


def test_aspect_class_values_are_storage_prefixes():
    assert [member.value for member in AspectClass] == ["landscape", "portrait", "other"]


pytestmark_posix = pytest.mark.skipif(sys.platform == "win32", reason="fake ffprobe is a shell script")


def _fake_ffprobe(tmp_path, body: str):
    """Write an executable stand-in for ffprobe that records its argv next to itself."""
    script = tmp_path / "fake-ffprobe"
    script.write_text('#!/bin/sh\nprintf "%s\\n" "$@" > "$0.argv"\n' + body)
    script.chmod(0o755)
    return script


def _json_output(payload) -> str:
    return "cat <<'JSON'\n" + json.dumps(payload) + "\nJSON\n"


@pytestmark_posix
def test_reads_first_stream_geometry(tmp_path):
    payload = {
        "streams": [
            {"index": 0, "codec_type": "video", "width": 1080, "height": 1920},
            {"index": 1, "codec_type": "audio"},
        ]
    }
    binary = _fake_ffprobe(tmp_path, _json_output(payload))

    geometry = FFprobeProber(str(binary)).probe(tmp_path / "clip.mp4")

    assert geometry == StreamGeometry(1080, 1920)
    assert geometry.aspect_class is AspectClass.PORTRAIT
    argv = (tmp_path / "fake-ffprobe.argv").read_text().splitlines()
    assert argv == ["-v", "error", "-print_format", "json", "-show_streams", str(tmp_path / "clip.mp4")]


@pytestmark_posix
def test_deadline_kills_slow_process(tmp_path):
    binary = _fake_ffprobe(tmp_path, "exec sleep 5\n")

    started = time.monotonic()
    with pytest.raises(ProbeError) as exc_info:
        FFprobeProber(str(binary), timeout_seconds=0.5).probe(tmp_path / "clip.mp4")

    assert exc_info.value.timeout is True
    assert time.monotonic() - started < 4
    assert "-timeout" not in (tmp_path / "fake-ffprobe.argv").read_text().splitlines()


@pytestmark_posix
def test_nonzero_exit_raises_with_stderr(tmp_path):
    binary = _fake_ffprobe(tmp_path, "echo 'clip.mp4: No such file or directory' >&2\nexit 1\n")

    with pytest.raises(ProbeError) as exc_info:
        FFprobeProber(str(binary)).probe(tmp_path / "clip.mp4")

    assert "No such file" in exc_info.value.message
    assert exc_info.value.stage == "probed"


@pytestmark_posix
def test_unparseable_output_raises(tmp_path):
    binary = _fake_ffprobe(tmp_path, "echo 'not json'\n")
    with pytest.raises(ProbeError, match="parse"):
        FFprobeProber(str(binary)).probe(tmp_path / "clip.mp4")


@pytestmark_posix
@pytest.mark.parametrize("payload", [{}, {"streams": []}])
def test_missing_streams_raise(tmp_path, payload):
    binary = _fake_ffprobe(tmp_path, _json_output(payload))
    with pytest.raises(ProbeError, match="no streams"):
        FFprobeProber(str(binary)).probe(tmp_path / "clip.mp4")


@pytestmark_posix
def test_audio_first_stream_classifies_as_other(tmp_path):
    payload = {
        "streams": [
            {"index": 0, "codec_type": "audio"},
            {"index": 1, "codec_type": "video", "width": 1920, "height": 1080},
        ]
    }
    binary = _fake_ffprobe(tmp_path, _json_output(payload))

    prober = FFprobeProber(str(binary))
    assert prober.probe(tmp_path / "clip.mp4") == StreamGeometry(0, 0)
    assert prober.aspect_class(tmp_path / "clip.mp4") is AspectClass.OTHER


def test_missing_binary_raises(tmp_path):
    with pytest.raises(ProbeError, match="Could not run"):
        FFprobeProber(str(tmp_path / "no-such-ffprobe")).probe(tmp_path / "clip.mp4")
