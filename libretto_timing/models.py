"""Data models: base libretto, timing overlay, and timed libretto."""

from dataclasses import dataclass, field

from libretto_timing.constants import FORMAT_VERSION, NUMBER_TYPES, RECITATIVE_TYPE
from libretto_timing.errors import ValidationError


# --- Shape helpers ---

def _expect_dict(value, path: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"expected an object, got {type(value).__name__}", path)
    return value


def _expect_list(value, path: str) -> list:
    if not isinstance(value, list):
        raise ValidationError(f"expected a list, got {type(value).__name__}", path)
    return value


def _str(data: dict, key: str, path: str, required: bool = True) -> str | None:
    """Read a string field. Integers are accepted for act/scene style labels."""
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError("missing required field", f"{path}.{key}")
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"expected a string, got {type(value).__name__}", f"{path}.{key}")
    return str(value)


def _num(data: dict, key: str, path: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"expected a number, got {type(value).__name__}", f"{path}.{key}")
    return float(value)


def _int(data: dict, key: str, path: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"expected an integer, got {type(value).__name__}", f"{path}.{key}")
    return value


def _compact(data: dict) -> dict:
    """Drop unset optional fields."""
    return {k: v for k, v in data.items() if v is not None}


# --- Base libretto ---

@dataclass
class Opera:
    title: str
    composer: str
    language: str
    translation_language: str | None = None
    librettist: str | None = None
    year: int | None = None

    @classmethod
    def from_dict(cls, data, path: str = "opera") -> "Opera":
        data = _expect_dict(data, path)
        return cls(
            title=_str(data, "title", path),
            composer=_str(data, "composer", path),
            language=_str(data, "language", path),
            translation_language=_str(data, "translation_language", path, required=False),
            librettist=_str(data, "librettist", path, required=False),
            year=_int(data, "year", path),
        )

    def to_dict(self) -> dict:
        return _compact({
            "title": self.title,
            "composer": self.composer,
            "language": self.language,
            "translation_language": self.translation_language,
            "librettist": self.librettist,
            "year": self.year,
        })


@dataclass
class Segment:
    segment_id: str
    character: str | None = None
    text: str | None = None
    translation: str | None = None
    direction: str | None = None
    group: str | None = None
    type: str | None = None     # overrides the owning number's type when set

    @classmethod
    def from_dict(cls, data, path: str) -> "Segment":
        data = _expect_dict(data, path)
        return cls(
            segment_id=_str(data, "segment_id", path),
            character=_str(data, "character", path, required=False),
            text=_str(data, "text", path, required=False),
            translation=_str(data, "translation", path, required=False),
            direction=_str(data, "direction", path, required=False),
            group=_str(data, "group", path, required=False),
            type=_str(data, "type", path, required=False),
        )


@dataclass
class MusicalNumber:
    number_id: str
    label: str
    type: str
    act: str
    scene: str | None = None
    segments: list[Segment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data, path: str) -> "MusicalNumber":
        data = _expect_dict(data, path)
        number_type = _str(data, "type", path)
        if number_type not in NUMBER_TYPES:
            raise ValidationError(f"unknown number type '{number_type}'", f"{path}.type")
        segments = _expect_list(data.get("segments", []), f"{path}.segments")
        return cls(
            number_id=_str(data, "number_id", path),
            label=_str(data, "label", path),
            type=number_type,
            act=_str(data, "act", path),
            scene=_str(data, "scene", path, required=False),
            segments=[
                Segment.from_dict(s, f"{path}.segments[{i}]")
                for i, s in enumerate(segments)
            ],
        )

    def effective_type(self, segment: Segment) -> str:
        """Recitative numbers force their type onto every segment."""
        if self.type == RECITATIVE_TYPE:
            return RECITATIVE_TYPE
        return segment.type or self.type


@dataclass
class BaseLibretto:
    """Immutable, recording-independent opera text in global segment order."""

    opera: Opera
    numbers: list[MusicalNumber]
    version: str = FORMAT_VERSION
    _segments: list[Segment] = field(default_factory=list, init=False, repr=False, compare=False)
    _positions: dict = field(default_factory=dict, init=False, repr=False, compare=False)
    _owners: dict = field(default_factory=dict, init=False, repr=False, compare=False)
    _number_index: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        for i, number in enumerate(self.numbers):
            if number.number_id in self._number_index:
                raise ValidationError(f"duplicate number id '{number.number_id}'", f"numbers[{i}]")
            self._number_index[number.number_id] = i
            for j, seg in enumerate(number.segments):
                if seg.segment_id in self._positions:
                    raise ValidationError(
                        f"duplicate segment id '{seg.segment_id}'",
                        f"numbers[{i}].segments[{j}]",
                    )
                self._positions[seg.segment_id] = len(self._segments)
                self._segments.append(seg)
                self._owners[seg.segment_id] = number

    @classmethod
    def from_dict(cls, data) -> "BaseLibretto":
        data = _expect_dict(data, "$")
        numbers = _expect_list(data.get("numbers"), "numbers")
        return cls(
            opera=Opera.from_dict(data.get("opera")),
            numbers=[MusicalNumber.from_dict(n, f"numbers[{i}]") for i, n in enumerate(numbers)],
            version=_str(data, "version", "$", required=False) or FORMAT_VERSION,
        )

    def segments(self) -> list[Segment]:
        """All segments in global order."""
        return list(self._segments)

    def segment_at_position(self, position: int) -> Segment:
        return self._segments[position]

    def position_of(self, segment_id: str) -> int | None:
        return self._positions.get(segment_id)

    def find_segment(self, segment_id: str) -> Segment | None:
        pos = self._positions.get(segment_id)
        return None if pos is None else self._segments[pos]

    def find_number(self, number_id: str) -> MusicalNumber | None:
        idx = self._number_index.get(number_id)
        return None if idx is None else self.numbers[idx]

    def number_index(self, number_id: str) -> int | None:
        """Ordinal of a number in act/scene/appearance order."""
        return self._number_index.get(number_id)

    def number_of(self, segment_id: str) -> MusicalNumber | None:
        return self._owners.get(segment_id)

    def effective_type(self, segment_id: str) -> str | None:
        number = self._owners.get(segment_id)
        if number is None:
            return None
        return number.effective_type(self._segments[self._positions[segment_id]])

    def __len__(self) -> int:
        return len(self._segments)


# --- Timing overlay ---

@dataclass
class SegmentTime:
    segment_id: str
    start: float

    @classmethod
    def from_dict(cls, data, path: str) -> "SegmentTime":
        data = _expect_dict(data, path)
        start = _num(data, "start", path)
        if start is None:
            raise ValidationError("missing required field", f"{path}.start")
        return cls(segment_id=_str(data, "segment_id", path), start=start)

    def to_dict(self) -> dict:
        return {"segment_id": self.segment_id, "start": self.start}


@dataclass
class TrackTiming:
    track_title: str
    number_ids: list[str]
    disc_number: int | None = None
    track_number: int | None = None
    duration_seconds: float | None = None
    start_segment_id: str | None = None
    low_confidence: bool = False
    segment_times: list[SegmentTime] | None = None

    @classmethod
    def from_dict(cls, data, path: str) -> "TrackTiming":
        data = _expect_dict(data, path)
        number_ids = _expect_list(data.get("number_ids"), f"{path}.number_ids")
        if not number_ids:
            raise ValidationError("a track must span at least one number", f"{path}.number_ids")
        for i, nid in enumerate(number_ids):
            if not isinstance(nid, str):
                raise ValidationError("expected a string", f"{path}.number_ids[{i}]")

        segment_times = None
        if data.get("segment_times") is not None:
            raw = _expect_list(data["segment_times"], f"{path}.segment_times")
            segment_times = [
                SegmentTime.from_dict(st, f"{path}.segment_times[{i}]")
                for i, st in enumerate(raw)
            ]

        low_confidence = data.get("low_confidence", False)
        if not isinstance(low_confidence, bool):
            raise ValidationError("expected a boolean", f"{path}.low_confidence")

        return cls(
            track_title=_str(data, "track_title", path),
            number_ids=list(number_ids),
            disc_number=_int(data, "disc_number", path),
            track_number=_int(data, "track_number", path),
            duration_seconds=_num(data, "duration_seconds", path),
            start_segment_id=_str(data, "start_segment_id", path, required=False),
            low_confidence=low_confidence,
            segment_times=segment_times,
        )

    def to_dict(self) -> dict:
        data = _compact({
            "track_title": self.track_title,
            "disc_number": self.disc_number,
            "track_number": self.track_number,
            "duration_seconds": self.duration_seconds,
            "number_ids": list(self.number_ids),
            "start_segment_id": self.start_segment_id,
        })
        if self.low_confidence:
            data["low_confidence"] = True
        if self.segment_times is not None:
            data["segment_times"] = [st.to_dict() for st in self.segment_times]
        return data


@dataclass
class TimingOverlay:
    """Recording-specific timing data referencing a base libretto by segment id."""

    track_timings: list[TrackTiming]
    base_libretto_ref: str = ""
    recording: dict = field(default_factory=dict)
    omitted_numbers: list[dict] = field(default_factory=list)
    contributors: list[dict] = field(default_factory=list)
    version: str = FORMAT_VERSION

    @classmethod
    def from_dict(cls, data) -> "TimingOverlay":
        data = _expect_dict(data, "$")
        tracks = _expect_list(data.get("track_timings"), "track_timings")
        recording = _expect_dict(data.get("recording") or {}, "recording")
        omitted = _expect_list(data.get("omitted_numbers") or [], "omitted_numbers")
        for i, entry in enumerate(omitted):
            _str(_expect_dict(entry, f"omitted_numbers[{i}]"), "number_id", f"omitted_numbers[{i}]")
        contributors = _expect_list(data.get("contributors") or [], "contributors")
        for i, entry in enumerate(contributors):
            _expect_dict(entry, f"contributors[{i}]")
        return cls(
            track_timings=[
                TrackTiming.from_dict(t, f"track_timings[{i}]") for i, t in enumerate(tracks)
            ],
            base_libretto_ref=_str(data, "base_libretto_ref", "$", required=False) or "",
            recording=dict(recording),
            omitted_numbers=[dict(o) for o in omitted],
            contributors=[dict(c) for c in contributors],
            version=_str(data, "version", "$", required=False) or FORMAT_VERSION,
        )

    def to_dict(self) -> dict:
        data = {
            "version": self.version,
            "base_libretto_ref": self.base_libretto_ref,
            "recording": dict(self.recording),
        }
        if self.contributors:
            data["contributors"] = [dict(c) for c in self.contributors]
        data["track_timings"] = [t.to_dict() for t in self.track_timings]
        if self.omitted_numbers:
            data["omitted_numbers"] = [dict(o) for o in self.omitted_numbers]
        return data


# --- Timed libretto (output) ---

@dataclass
class TimedSegment:
    start: float
    end: float
    type: str
    character: str | None = None
    text: str | None = None
    translation: str | None = None
    direction: str | None = None
    act: str | None = None
    scene: str | None = None
    group: str | None = None

    def to_dict(self) -> dict:
        return _compact({
            "start": self.start,
            "end": self.end,
            "type": self.type,
            "character": self.character,
            "text": self.text,
            "translation": self.translation,
            "direction": self.direction,
            "act": self.act,
            "scene": self.scene,
            "group": self.group,
        })


@dataclass
class TimedTrack:
    track_id: str
    title: str
    duration_seconds: float
    segments: list[TimedSegment]
    album: str | None = None
    artist: str | None = None
    disc_number: int | None = None
    track_number: int | None = None
    act: str | None = None

    def segment_at(self, time: float) -> TimedSegment | None:
        """Segment active at playback time: the last one starting at or before it."""
        for seg in reversed(self.segments):
            if seg.start <= time:
                return seg
        return None

    def to_dict(self) -> dict:
        data = _compact({
            "track_id": self.track_id,
            "title": self.title,
            "album": self.album,
            "artist": self.artist,
            "disc_number": self.disc_number,
            "track_number": self.track_number,
            "duration_seconds": self.duration_seconds,
            "act": self.act,
        })
        data["segments"] = [s.to_dict() for s in self.segments]
        return data


@dataclass
class TimedLibretto:
    opera: dict
    tracks: list[TimedTrack]
    version: str = FORMAT_VERSION

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "opera": dict(self.opera),
            "tracks": [t.to_dict() for t in self.tracks],
        }
