"""Estimate segment start times from track durations and word counts."""

import copy
import logging
from dataclasses import dataclass, field

import numpy as np

from libretto_timing.constants import RECITATIVE_DISCOUNT, RECITATIVE_TYPE, TIME_PRECISION
from libretto_timing.errors import EmptySpan, NumberNotFound, ValidationError, ZeroDuration
from libretto_timing.models import BaseLibretto, SegmentTime, TimingOverlay

logger = logging.getLogger(__name__)


@dataclass
class TrackEstimateStats:
    track_title: str
    disc_number: int | None
    track_number: int | None
    duration: float
    segments_estimated: int
    total_weight: float


@dataclass
class EstimateResult:
    overlay: TimingOverlay
    stats: list[TrackEstimateStats] = field(default_factory=list)


def word_count(text: str | None) -> int:
    return len(text.split()) if text else 0


def segment_weight(base: BaseLibretto, segment_id: str) -> float:
    """Word count, halved for recitative. Directions and interludes weigh 0."""
    segment = base.find_segment(segment_id)
    discount = RECITATIVE_DISCOUNT if base.effective_type(segment_id) == RECITATIVE_TYPE else 1.0
    return word_count(segment.text) * discount


def allocate(weights: list[float], duration: float) -> list[float]:
    """Distribute duration across weights; each start is the share of weight before it.

    An all-zero span (purely instrumental) starts every segment at 0.0.
    Segments with weight keep at least one millisecond before the end of the
    track; only trailing zero-weight segments may start at the duration.
    """
    w = np.asarray(weights, dtype=float)
    total = w.sum()
    if total == 0:
        return [0.0] * len(w)
    before = np.concatenate(([0.0], np.cumsum(w)[:-1]))
    starts = np.round(duration * before / total, TIME_PRECISION)
    latest = max(round(duration - 10 ** -TIME_PRECISION, TIME_PRECISION), 0.0)
    weighted = np.arange(len(w)) <= np.flatnonzero(w)[-1]
    starts = np.where(weighted, np.minimum(starts, latest), starts)
    return [float(s) for s in starts]


def track_spans(base: BaseLibretto, overlay: TimingOverlay) -> list[range]:
    """Global position range of every track.

    Track i covers [start(i), start(i+1)); the final track runs to the end of
    its last number.
    """
    starts = []
    for i, track in enumerate(overlay.track_timings):
        if not track.start_segment_id:
            raise ValidationError(
                "track is not resolved; run resolve first",
                f"track_timings[{i}].start_segment_id",
            )
        pos = base.position_of(track.start_segment_id)
        if pos is None:
            raise ValidationError(
                f"unknown segment '{track.start_segment_id}'",
                f"track_timings[{i}].start_segment_id",
            )
        starts.append(pos)

    spans = []
    tracks = overlay.track_timings
    for i, track in enumerate(tracks):
        start = starts[i]
        if i + 1 < len(tracks):
            end = starts[i + 1]
            if end <= start:
                raise EmptySpan(track.track_title, track.start_segment_id, tracks[i + 1].start_segment_id)
        else:
            end = start
            # segment-less numbers (postludes, cuts) do not bound the span
            for nid in reversed(track.number_ids):
                number = base.find_number(nid)
                if number is None:
                    raise NumberNotFound(nid, track.track_title)
                if number.segments:
                    end = base.position_of(number.segments[-1].segment_id) + 1
                    break
            if end <= start:
                raise EmptySpan(track.track_title, track.start_segment_id)
        spans.append(range(start, end))
    return spans


def estimate_timings(base: BaseLibretto, overlay: TimingOverlay) -> EstimateResult:
    """Fill segment_times on every track of a copy of the overlay.

    Existing segment_times are recomputed, so estimating twice gives the
    same result.
    """
    spans = track_spans(base, overlay)
    result = EstimateResult(overlay=copy.deepcopy(overlay))

    for track, span in zip(result.overlay.track_timings, spans):
        duration = track.duration_seconds
        if duration is None or duration <= 0:
            raise ZeroDuration(track.track_title, duration)
        if track.low_confidence:
            logger.warning("Estimating track '%s' with an unreviewed low-confidence start", track.track_title)

        segment_ids = [base.segment_at_position(pos).segment_id for pos in span]
        weights = [segment_weight(base, sid) for sid in segment_ids]
        starts = allocate(weights, duration)
        track.segment_times = [SegmentTime(sid, start) for sid, start in zip(segment_ids, starts)]

        total = float(sum(weights))
        if total == 0:
            logger.info("Track '%s' has no sung text; all segments start at 0", track.track_title)
        result.stats.append(TrackEstimateStats(
            track_title=track.track_title,
            disc_number=track.disc_number,
            track_number=track.track_number,
            duration=duration,
            segments_estimated=len(segment_ids),
            total_weight=total,
        ))

    return result
