"""All magic numbers and configuration constants."""

RECITATIVE_TYPE = "recitative"
RECITATIVE_DISCOUNT = 0.5           # weight multiplier for recitative segments
TIME_PRECISION = 3                  # decimal places; estimated starts rounded to ms
NUMBER_TYPES = (
    "aria", "duet", "trio", "chorus", "recitative", "instrumental", "finale",
    "overture", "duettino", "terzetto", "quartet", "quintet", "sextet",
    "cavatina", "canzone", "other",
)
AUDIO_EXTENSIONS = (".mp3", ".flac", ".wav", ".m4a", ".ogg", ".aiff")
FORMAT_VERSION = "1.0"              # version written into overlays and timed librettos
DEFAULT_SCAFFOLD_OUTPUT = "timing.overlay.json"
DEFAULT_DURATIONS_OUTPUT = "durations.timing.json"
DEFAULT_RESOLVE_OUTPUT = "resolved.timing.json"
DEFAULT_ESTIMATE_OUTPUT = "estimated.timing.json"
DEFAULT_MERGE_OUTPUT = "timed.libretto.json"
VERSION = "0.1.0"
