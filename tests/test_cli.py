"""Tests for CLI module (Layer 3)."""

import json
import os
from unittest.mock import patch

import pytest

from libretto_timing.cli import main

from conftest import write_json


def _run(*argv):
    with patch("sys.argv", ["libretto-timing", *argv]):
        main()


def _load(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


# --- Subcommand routing ---

def test_no_command_prints_help(capsys):
    _run()
    assert "usage" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        _run("--version")
    assert exc.value.code == 0
    assert "0.1.0" in capsys.readouterr().out


def test_cli_init(tmp_path, pipeline_files):
    base_path, _ = pipeline_files
    out = str(tmp_path / "scaffold.json")
    _run("init", "-b", base_path, "-o", out)
    data = _load(out)
    assert data["base_libretto_ref"] == base_path
    assert len(data["track_timings"]) == 4


def test_cli_resolve(tmp_path, pipeline_files, capsys):
    base_path, timing_path = pipeline_files
    out = str(tmp_path / "resolved.json")
    _run("resolve", "-b", base_path, "-t", timing_path, "-o", out)

    tracks = _load(out)["track_timings"]
    assert [t["start_segment_id"] for t in tracks] == ["sinfonia-001", "no-1-001", "rec-1-002"]
    assert tracks[0]["low_confidence"] is True
    assert "low_confidence" not in tracks[1]

    output = capsys.readouterr().out
    assert "[low ]" in output
    assert "1 low-confidence tracks" in output


def test_cli_resolve_leaves_input_untouched(tmp_path, pipeline_files):
    base_path, timing_path = pipeline_files
    before = open(timing_path, encoding="utf-8").read()
    _run("resolve", "-b", base_path, "-t", timing_path, "-o", str(tmp_path / "r.json"))
    assert open(timing_path, encoding="utf-8").read() == before


def test_cli_refuses_to_overwrite_input(pipeline_files, capsys):
    base_path, timing_path = pipeline_files
    with pytest.raises(SystemExit) as exc:
        _run("resolve", "-b", base_path, "-t", timing_path, "-o", timing_path)
    assert exc.value.code == 1
    assert "would overwrite input" in capsys.readouterr().err


def test_cli_resolve_number_not_found(tmp_path, pipeline_files, overlay_data, capsys):
    base_path, _ = pipeline_files
    overlay_data["track_timings"][2]["number_ids"] = ["no-99"]
    timing_path = write_json(tmp_path / "bad.timing.json", overlay_data)
    out = tmp_path / "resolved.json"

    with pytest.raises(SystemExit) as exc:
        _run("resolve", "-b", base_path, "-t", timing_path, "-o", str(out))
    assert exc.value.code == 1
    assert "no-99" in capsys.readouterr().err
    assert not out.exists()


def test_cli_estimate_unresolved_fails(tmp_path, pipeline_files, capsys):
    base_path, timing_path = pipeline_files
    out = tmp_path / "estimated.json"
    with pytest.raises(SystemExit) as exc:
        _run("estimate", "-b", base_path, "-t", timing_path, "-o", str(out))
    assert exc.value.code == 1
    assert "resolve" in capsys.readouterr().err
    assert not out.exists()


def test_cli_estimate_zero_duration(tmp_path, pipeline_files, overlay_data, capsys):
    base_path, _ = pipeline_files
    overlay_data["track_timings"][1]["duration_seconds"] = 0
    overlay_data["track_timings"][0]["start_segment_id"] = "sinfonia-001"
    overlay_data["track_timings"][1]["start_segment_id"] = "no-1-001"
    overlay_data["track_timings"][2]["start_segment_id"] = "rec-1-002"
    timing_path = write_json(tmp_path / "resolved.json", overlay_data)
    out = tmp_path / "estimated.json"

    with pytest.raises(SystemExit):
        _run("estimate", "-b", base_path, "-t", timing_path, "-o", str(out))
    assert "no usable duration" in capsys.readouterr().err
    assert not out.exists()


def test_cli_merge_unknown_segment_writes_nothing(tmp_path, pipeline_files, overlay_data, capsys):
    """A stale segment reference fails the merge and produces no output file."""
    base_path, _ = pipeline_files
    for track, start in zip(overlay_data["track_timings"], ["sinfonia-001", "no-1-001", "rec-1-002"]):
        track["start_segment_id"] = start
        track["segment_times"] = [{"segment_id": start, "start": 0.0}]
    overlay_data["track_timings"][1]["segment_times"].append({"segment_id": "no-1-404", "start": 12.0})
    timing_path = write_json(tmp_path / "estimated.json", overlay_data)
    out = tmp_path / "timed.libretto.json"

    with pytest.raises(SystemExit) as exc:
        _run("merge", "-b", base_path, "-t", timing_path, "-o", str(out))
    assert exc.value.code == 1
    assert "no-1-404" in capsys.readouterr().err
    assert not out.exists()


def test_cli_malformed_overlay(tmp_path, pipeline_files, capsys):
    base_path, _ = pipeline_files
    timing_path = write_json(tmp_path / "broken.json", {"track_timings": "oops"})
    with pytest.raises(SystemExit) as exc:
        _run("resolve", "-b", base_path, "-t", timing_path, "-o", str(tmp_path / "r.json"))
    assert exc.value.code == 1
    assert "track_timings" in capsys.readouterr().err


def test_cli_missing_input(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        _run("status", "-t", str(tmp_path / "missing.json"))
    assert exc.value.code == 1
    assert "not found" in capsys.readouterr().err


def test_cli_status(tmp_path, pipeline_files, capsys):
    base_path, timing_path = pipeline_files
    out = str(tmp_path / "resolved.json")
    _run("resolve", "-b", base_path, "-t", timing_path, "-o", out)
    capsys.readouterr()

    _run("status", "-t", out)
    output = capsys.readouterr().out
    assert "Stage:   resolved" in output
    assert "[done] resolved" in output
    assert "[----] estimated" in output
    assert "Sinfonia" in output


def test_cli_default_output_paths(tmp_path, pipeline_files, monkeypatch):
    base_path, timing_path = pipeline_files
    monkeypatch.chdir(tmp_path)
    _run("resolve", "-b", base_path, "-t", timing_path)
    assert os.path.exists(tmp_path / "resolved.timing.json")
    _run("estimate", "-b", base_path, "-t", "resolved.timing.json")
    assert os.path.exists(tmp_path / "estimated.timing.json")
    _run("merge", "-b", base_path, "-t", "estimated.timing.json")
    assert os.path.exists(tmp_path / "timed.libretto.json")


@patch("shutil.which", return_value=None)
def test_cli_durations_ffmpeg_missing(mock_which, tmp_path, pipeline_files, capsys):
    """Compressed audio without ffmpeg stops before any file is decoded."""
    _, timing_path = pipeline_files
    audio_dir = tmp_path / "audio"
    audio_dir.mkdir()
    for i in range(1, 4):
        (audio_dir / f"{i:02d}.mp3").write_bytes(b"")
    out = tmp_path / "durations.json"

    with pytest.raises(SystemExit) as exc:
        _run("durations", "-t", timing_path, "-a", str(audio_dir), "-o", str(out))
    assert exc.value.code == 1
    assert "ffmpeg" in capsys.readouterr().err
    assert not out.exists()
