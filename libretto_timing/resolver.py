"""Resolve track start segments by matching quoted title anchors to libretto text.

Track titles of opera recordings usually quote the opening words of the
track, e.g. ``Recitativo "Bravo, signor padrone"; No. 3 Cavatina "Se vuol
ballare"``. The first quoted string locates the segment the track starts on.
"""

import copy
import logging
import re
import unicodedata
from dataclasses import dataclass, field

from rapidfuzz import fuzz

from libretto_timing.errors import (
    LowConfidenceAnchor,
    NumberNotFound,
    TrackOrderError,
    ValidationError,
)
from libretto_timing.models import BaseLibretto, TimingOverlay, TrackTiming

logger = logging.getLogger(__name__)

# "straight", “typographic” and «guillemet» quotes
_ANCHOR_RE = re.compile(r'"([^"]+)"|“([^”"]+)[”"]|«([^»]+)»')

_MATCH_TRANSLATION = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "…": "...",
    ",": None,
    ";": None,
    ":": None,
    "!": None,
    "?": None,
})

# How a track's start segment was determined
METHOD_MANUAL = "manual"
METHOD_SUBSTRING = "substring"
METHOD_CROSSOVER = "crossover"
METHOD_FUZZY = "fuzzy"
METHOD_DEFAULT = "default"


@dataclass
class TrackResolution:
    track_title: str
    anchor: str | None
    segment_id: str
    method: str
    low_confidence: bool = False


@dataclass
class ResolveResult:
    overlay: TimingOverlay
    resolutions: list[TrackResolution] = field(default_factory=list)
    warnings: list[LowConfidenceAnchor] = field(default_factory=list)


def extract_anchors(title: str) -> list[str]:
    """All non-empty quoted fragments of a track title, in order."""
    anchors = []
    for match in _ANCHOR_RE.finditer(title):
        quoted = next(g for g in match.groups() if g is not None).strip()
        if quoted:
            anchors.append(quoted)
    return anchors


def extract_anchor(title: str) -> str | None:
    anchors = extract_anchors(title)
    return anchors[0] if anchors else None


def normalize_for_match(text: str) -> str:
    """Case-fold, strip diacritics and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    folded = stripped.casefold().translate(_MATCH_TRANSLATION)
    return " ".join(folded.split())


def _check_number_order(base: BaseLibretto, overlay: TimingOverlay) -> None:
    """Every number must exist and number order must never go backwards across tracks."""
    last_index = -1
    for i, track in enumerate(overlay.track_timings):
        for nid in track.number_ids:
            index = base.number_index(nid)
            if index is None:
                raise NumberNotFound(nid, track.track_title)
            if index < last_index:
                raise ValidationError(
                    f"number '{nid}' comes before a number of an earlier track",
                    f"track_timings[{i}].number_ids",
                )
            last_index = index


def _pool(base: BaseLibretto, number_ids: list[str], cursor: int) -> list[int]:
    """Global positions of the numbers' segments at or after the cursor."""
    positions = set()
    for nid in number_ids:
        for seg in base.find_number(nid).segments:
            pos = base.position_of(seg.segment_id)
            if pos >= cursor:
                positions.add(pos)
    return sorted(positions)


class _Matcher:
    """Normalized-text lookups over one libretto, cached per resolve run."""

    def __init__(self, base: BaseLibretto):
        self.base = base
        self._cache = {}

    def texts(self, position: int) -> list[str]:
        if position not in self._cache:
            seg = self.base.segment_at_position(position)
            self._cache[position] = [
                normalize_for_match(t) for t in (seg.text, seg.translation) if t
            ]
        return self._cache[position]

    def substring(self, anchor_norm: str, pool: list[int]) -> int | None:
        for pos in pool:
            if any(anchor_norm in text for text in self.texts(pos)):
                return pos
        return None

    def fuzzy(self, anchor_norm: str, pool: list[int], threshold: float) -> int | None:
        """Best-scoring position at or above threshold; earliest wins a tie.

        Texts shorter than the anchor are scored whole, so a short
        interjection cannot match as a fragment of a longer anchor.
        """
        best_pos, best_score = None, threshold
        for pos in pool:
            for text in self.texts(pos):
                if len(text) < len(anchor_norm):
                    score = fuzz.ratio(anchor_norm, text)
                else:
                    score = fuzz.partial_ratio(anchor_norm, text)
                if score > best_score or (score == best_score and best_pos is None):
                    best_pos, best_score = pos, score
        return best_pos


def _default_position(base: BaseLibretto, track: TrackTiming, pool: list[int], cursor: int) -> int:
    first_number = base.find_number(track.number_ids[0])
    if first_number.segments:
        pos = base.position_of(first_number.segments[0].segment_id)
        if pos >= cursor:
            return pos
    if not pool:
        raise TrackOrderError(
            f"track '{track.track_title}' has no segments left after the previous track's start"
        )
    return pool[0]


def resolve_anchors(
    base: BaseLibretto,
    overlay: TimingOverlay,
    fuzzy_threshold: float | None = None,
) -> ResolveResult:
    """Fill start_segment_id on every track of a copy of the overlay.

    Tracks are processed in order with a cursor that only moves forward, so
    resolved starts are strictly increasing in global segment order. A start
    already present in the scaffold is kept as an operator override. When no
    anchor matches, the track defaults to its first number's first segment
    and is flagged low_confidence for review.

    fuzzy_threshold (0-100) enables rapidfuzz partial-ratio matching as a last
    resort before the default; it is off unless given.
    """
    _check_number_order(base, overlay)

    result = ResolveResult(overlay=copy.deepcopy(overlay))
    matcher = _Matcher(base)
    cursor = 0

    for i, track in enumerate(result.overlay.track_timings):
        anchor = extract_anchor(track.track_title)

        if track.start_segment_id:
            pos = base.position_of(track.start_segment_id)
            if pos is None:
                raise ValidationError(
                    f"unknown segment '{track.start_segment_id}'",
                    f"track_timings[{i}].start_segment_id",
                )
            if pos < cursor:
                raise TrackOrderError(
                    f"track '{track.track_title}' starts at {track.start_segment_id}, "
                    "which is not after the previous track's start"
                )
            result.resolutions.append(TrackResolution(
                track.track_title, anchor, track.start_segment_id, METHOD_MANUAL,
                low_confidence=track.low_confidence,
            ))
            cursor = pos + 1
            continue

        pool = _pool(base, track.number_ids, cursor)
        anchor_norm = normalize_for_match(anchor) if anchor else ""
        pos = None
        method = None

        if anchor_norm:
            pos = matcher.substring(anchor_norm, pool)
            method = METHOD_SUBSTRING
            if pos is None and i > 0:
                previous = result.overlay.track_timings[i - 1]
                crossover_pool = [
                    p for p in _pool(base, previous.number_ids, cursor) if p not in pool
                ]
                pos = matcher.substring(anchor_norm, crossover_pool)
                method = METHOD_CROSSOVER
                if pos is not None:
                    logger.info(
                        "Track '%s' starts inside the previous track's number at %s",
                        track.track_title, base.segment_at_position(pos).segment_id,
                    )
            if pos is None and fuzzy_threshold is not None:
                pos = matcher.fuzzy(anchor_norm, pool, fuzzy_threshold)
                method = METHOD_FUZZY

        low_confidence = pos is None
        if low_confidence:
            pos = _default_position(base, track, pool, cursor)
            method = METHOD_DEFAULT

        segment_id = base.segment_at_position(pos).segment_id
        track.start_segment_id = segment_id
        track.low_confidence = low_confidence
        result.resolutions.append(TrackResolution(
            track.track_title, anchor, segment_id, method, low_confidence=low_confidence,
        ))
        if low_confidence:
            warning = LowConfidenceAnchor(track.track_title, anchor, segment_id)
            result.warnings.append(warning)
            logger.warning("%s", warning)
        else:
            logger.debug("Track '%s' → %s (%s)", track.track_title, segment_id, method)

        cursor = pos + 1

    return result
