"""JSON artifact loading, all-or-nothing writes, and overlay stage reporting."""

import json
import logging
import os
import tempfile

from libretto_timing.errors import ValidationError
from libretto_timing.models import BaseLibretto, TimingOverlay

logger = logging.getLogger(__name__)


def load_json(path: str) -> dict:
    """Read a JSON artifact. Missing or unparseable files are a ValidationError."""
    if not os.path.exists(path):
        raise ValidationError(f"file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"invalid JSON in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ValidationError(f"{path} is not UTF-8 text: {e.reason}") from e


def load_base_libretto(path: str) -> BaseLibretto:
    return BaseLibretto.from_dict(load_json(path))


def load_overlay(path: str) -> TimingOverlay:
    return TimingOverlay.from_dict(load_json(path))


def write_artifact(path: str, data: dict) -> str:
    """Write JSON to path atomically.

    The data goes to a temporary file in the target directory first and is
    moved into place with os.replace, so readers never see a partial file.
    Returns the written path.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    logger.debug("Wrote %s", path)
    return path


def overlay_stage(overlay: TimingOverlay) -> str:
    """Furthest pipeline stage every track of the overlay has completed.

    "scaffold" → "resolved" → "estimated".
    """
    tracks = overlay.track_timings
    if tracks and all(t.segment_times is not None for t in tracks):
        return "estimated"
    if tracks and all(t.start_segment_id for t in tracks):
        return "resolved"
    return "scaffold"


def get_overlay_status(overlay: TimingOverlay) -> dict:
    """Return dict describing the overlay's progress through the pipeline."""
    tracks = overlay.track_timings
    return {
        "stage": overlay_stage(overlay),
        "tracks": len(tracks),
        "with_duration": sum(1 for t in tracks if t.duration_seconds is not None),
        "resolved": sum(1 for t in tracks if t.start_segment_id),
        "estimated": sum(1 for t in tracks if t.segment_times is not None),
        "low_confidence": [t.track_title for t in tracks if t.low_confidence],
        "segments": sum(len(t.segment_times or []) for t in tracks),
    }
