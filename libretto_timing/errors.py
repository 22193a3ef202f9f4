"""Error taxonomy for the timing pipeline."""


class LibrettoError(Exception):
    """Base class for every error raised by the pipeline."""


class ValidationError(LibrettoError):
    """Malformed input shape, detected before any stage logic runs."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class ResolveError(LibrettoError):
    pass


class NumberNotFound(ResolveError):
    def __init__(self, number_id: str, track_title: str = ""):
        self.number_id = number_id
        self.track_title = track_title
        where = f" (track '{track_title}')" if track_title else ""
        super().__init__(f"number '{number_id}' not found in base libretto{where}")


class TrackOrderError(ResolveError):
    """A track cannot start after the track before it."""


class LowConfidenceAnchor(ResolveError):
    """Non-fatal: the track start fell back to its first number's first segment.

    Collected on ResolveResult.warnings, never raised.
    """

    def __init__(self, track_title: str, anchor: str | None, segment_id: str):
        self.track_title = track_title
        self.anchor = anchor
        self.segment_id = segment_id
        if anchor:
            reason = f'anchor "{anchor}" matched no segment'
        else:
            reason = "no quoted anchor in title"
        super().__init__(f"track '{track_title}': {reason}, defaulting to {segment_id}")


class EstimateError(LibrettoError):
    pass


class ZeroDuration(EstimateError):
    def __init__(self, track_title: str, duration: float | None):
        self.track_title = track_title
        self.duration = duration
        super().__init__(f"track '{track_title}' has no usable duration ({duration!r})")


class EmptySpan(EstimateError):
    def __init__(self, track_title: str, start_segment_id: str, end_segment_id: str | None = None):
        self.track_title = track_title
        self.start_segment_id = start_segment_id
        self.end_segment_id = end_segment_id
        if end_segment_id:
            detail = f"next track starts at {end_segment_id}, not after {start_segment_id}"
        else:
            detail = f"no segments from {start_segment_id} to the end of its last number"
        super().__init__(f"track '{track_title}' has an empty span: {detail}")


class MergeError(LibrettoError):
    pass


class UnknownSegment(MergeError):
    def __init__(self, segment_id: str, track_title: str = ""):
        self.segment_id = segment_id
        self.track_title = track_title
        super().__init__(
            f"track '{track_title}': segment '{segment_id}' not found in base libretto"
        )
