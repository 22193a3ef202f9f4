"""Merge a base libretto and an estimated timing overlay into a timed libretto."""

import logging
from dataclasses import dataclass

from libretto_timing.constants import FORMAT_VERSION
from libretto_timing.errors import UnknownSegment, ValidationError
from libretto_timing.models import (
    BaseLibretto,
    TimedLibretto,
    TimedSegment,
    TimedTrack,
    TimingOverlay,
    TrackTiming,
)

logger = logging.getLogger(__name__)


@dataclass
class MergeStats:
    base_segments: int
    overlay_references: int
    merged_segments: int
    tracks: int


@dataclass
class MergeResult:
    libretto: TimedLibretto
    stats: MergeStats


def _track_id(track: TrackTiming, index: int) -> str:
    if track.disc_number is not None and track.track_number is not None:
        return f"d{track.disc_number}-t{track.track_number}"
    if track.track_number is not None:
        return f"t{track.track_number}"
    return f"track-{index + 1}"


def _artist(recording: dict) -> str | None:
    conductor = recording.get("conductor")
    orchestra = recording.get("orchestra")
    if conductor and orchestra:
        return f"{conductor} / {orchestra}"
    return conductor or orchestra or None


def _check_references(base: BaseLibretto, overlay: TimingOverlay) -> None:
    """Fail before building anything if the overlay is stale or unestimated."""
    for i, track in enumerate(overlay.track_timings):
        if track.duration_seconds is None:
            raise ValidationError("missing required field", f"track_timings[{i}].duration_seconds")
        if track.segment_times is None:
            raise ValidationError(
                "track is not estimated; run estimate first",
                f"track_timings[{i}].segment_times",
            )
        for st in track.segment_times:
            if base.find_segment(st.segment_id) is None:
                raise UnknownSegment(st.segment_id, track.track_title)


def _merge_track(base: BaseLibretto, track: TrackTiming, index: int, recording: dict) -> TimedTrack:
    times = track.segment_times
    segments = []
    for k, st in enumerate(times):
        seg = base.find_segment(st.segment_id)
        number = base.number_of(st.segment_id)
        end = times[k + 1].start if k + 1 < len(times) else track.duration_seconds
        segments.append(TimedSegment(
            start=st.start,
            end=end,
            type=number.effective_type(seg),
            character=seg.character,
            text=seg.text,
            translation=seg.translation,
            direction=seg.direction,
            act=number.act,
            scene=number.scene,
            group=seg.group,
        ))

    return TimedTrack(
        track_id=_track_id(track, index),
        title=track.track_title,
        duration_seconds=track.duration_seconds,
        segments=segments,
        album=recording.get("album_title"),
        artist=_artist(recording),
        disc_number=track.disc_number,
        track_number=track.track_number,
        act=segments[0].act if segments else None,
    )


def merge(base: BaseLibretto, overlay: TimingOverlay) -> MergeResult:
    """Produce a self-contained timed libretto.

    Every field is copied out of the inputs, so the result shares no mutable
    state with either. A segment id missing from the base libretto raises
    UnknownSegment before any output exists.
    """
    _check_references(base, overlay)

    tracks = [
        _merge_track(base, track, i, overlay.recording)
        for i, track in enumerate(overlay.track_timings)
    ]
    libretto = TimedLibretto(opera=base.opera.to_dict(), tracks=tracks, version=FORMAT_VERSION)

    merged = sum(len(t.segments) for t in tracks)
    referenced = {st.segment_id for t in overlay.track_timings for st in t.segment_times}
    unreferenced = len(base) - len(referenced)
    if unreferenced:
        logger.info("%d base segments are not referenced by any track", unreferenced)

    return MergeResult(
        libretto=libretto,
        stats=MergeStats(
            base_segments=len(base),
            overlay_references=sum(len(t.segment_times) for t in overlay.track_timings),
            merged_segments=merged,
            tracks=len(tracks),
        ),
    )
