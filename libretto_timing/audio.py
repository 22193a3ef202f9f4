"""Read track durations from a recording's audio files."""

import copy
import logging
import os
import re

from pydub import AudioSegment

from libretto_timing.constants import AUDIO_EXTENSIONS, TIME_PRECISION
from libretto_timing.errors import ValidationError
from libretto_timing.models import TimingOverlay

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"(\d+)")


def _natural_key(name: str) -> list:
    """Sort key that orders "track2" before "track10"."""
    return [int(part) if part.isdigit() else part.casefold() for part in _DIGITS_RE.split(name)]


def list_audio_files(audio_dir: str) -> list[str]:
    """Audio files in a directory in track order (numbers in names compare numerically)."""
    if not os.path.isdir(audio_dir):
        raise ValidationError(f"audio directory not found: {audio_dir}")
    names = sorted(
        (name for name in os.listdir(audio_dir)
         if os.path.splitext(name)[1].lower() in AUDIO_EXTENSIONS),
        key=_natural_key,
    )
    return [os.path.join(audio_dir, name) for name in names]


def needs_ffmpeg(paths: list[str]) -> bool:
    """pydub reads WAV itself; every other format is decoded through ffmpeg."""
    return any(os.path.splitext(p)[1].lower() != ".wav" for p in paths)


def audio_duration(path: str) -> float:
    """Duration in seconds, rounded to milliseconds."""
    audio = AudioSegment.from_file(path)
    return round(len(audio) / 1000, TIME_PRECISION)


def fill_durations(
    overlay: TimingOverlay,
    audio_paths: list[str],
    force: bool = False,
) -> TimingOverlay:
    """Return a copy of the overlay with duration_seconds read from audio files.

    Files pair with tracks in order. Durations already present are kept
    unless force is set.
    """
    if len(audio_paths) != len(overlay.track_timings):
        raise ValidationError(
            f"{len(audio_paths)} audio files for {len(overlay.track_timings)} tracks"
        )
    result = copy.deepcopy(overlay)
    for track, path in zip(result.track_timings, audio_paths):
        if track.duration_seconds is not None and not force:
            logger.debug("Keeping duration of '%s'", track.track_title)
            continue
        track.duration_seconds = audio_duration(path)
        logger.info("%s → %.3fs", os.path.basename(path), track.duration_seconds)
    return result
