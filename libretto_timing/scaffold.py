"""Generate a starting timing overlay for the operator to edit."""

from libretto_timing.constants import FORMAT_VERSION
from libretto_timing.models import BaseLibretto, TimingOverlay, TrackTiming


def scaffold_overlay(base: BaseLibretto, base_ref: str) -> TimingOverlay:
    """One track per musical number, titled with the number's label.

    Real recordings rarely split tracks exactly at numbers, so the operator
    is expected to merge, split and retitle tracks (quoting each track's
    opening words) before running resolve.
    """
    tracks = [
        TrackTiming(track_title=number.label, number_ids=[number.number_id])
        for number in base.numbers
    ]
    return TimingOverlay(
        track_timings=tracks,
        base_libretto_ref=base_ref,
        recording={},
        version=FORMAT_VERSION,
    )
