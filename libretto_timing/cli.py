"""CLI interface with subcommand routing for the timing pipeline."""

import argparse
import logging
import os
import shutil
import sys

from libretto_timing.constants import (
    DEFAULT_DURATIONS_OUTPUT,
    DEFAULT_ESTIMATE_OUTPUT,
    DEFAULT_MERGE_OUTPUT,
    DEFAULT_RESOLVE_OUTPUT,
    DEFAULT_SCAFFOLD_OUTPUT,
    VERSION,
)
from libretto_timing.errors import LibrettoError
from libretto_timing.artifacts import (
    get_overlay_status,
    load_base_libretto,
    load_overlay,
    write_artifact,
)
from libretto_timing.audio import fill_durations, list_audio_files, needs_ffmpeg
from libretto_timing.estimator import estimate_timings
from libretto_timing.merger import merge
from libretto_timing.resolver import resolve_anchors
from libretto_timing.scaffold import scaffold_overlay


def _check_output(output: str, *inputs: str) -> None:
    """Refuse to write a stage's output over one of its inputs."""
    out = os.path.realpath(output)
    for path in inputs:
        if path and os.path.realpath(path) == out:
            print(f"Error: Output {output} would overwrite input {path}.", file=sys.stderr)
            print("Choose a different path with -o.", file=sys.stderr)
            raise SystemExit(1)


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required to read compressed audio but was not found.", file=sys.stderr)
        print("Install ffmpeg, or convert the tracks to WAV.", file=sys.stderr)
        raise SystemExit(1)


def cmd_init(args):
    """Generate a scaffold timing overlay from a base libretto."""
    _check_output(args.output, args.base)
    base = load_base_libretto(args.base)
    overlay = scaffold_overlay(base, args.base)
    write_artifact(args.output, overlay.to_dict())
    print(f"Scaffold: {len(overlay.track_timings)} tracks → {args.output}")
    print("Edit track titles, number_ids and durations to match the recording, then run 'resolve'.")


def cmd_durations(args):
    """Fill track durations from the recording's audio files."""
    _check_output(args.output, args.timing)
    overlay = load_overlay(args.timing)
    paths = list_audio_files(args.audio_dir)
    if needs_ffmpeg(paths):
        _check_ffmpeg()
    updated = fill_durations(overlay, paths, force=args.force)
    write_artifact(args.output, updated.to_dict())
    total = sum(t.duration_seconds or 0.0 for t in updated.track_timings)
    print(f"Durations: {len(paths)} files, {total:.1f}s total → {args.output}")


def cmd_resolve(args):
    """Locate the start segment of every track."""
    _check_output(args.output, args.base, args.timing)
    base = load_base_libretto(args.base)
    overlay = load_overlay(args.timing)
    result = resolve_anchors(base, overlay, fuzzy_threshold=args.fuzzy_threshold)
    write_artifact(args.output, result.overlay.to_dict())

    for res in result.resolutions:
        marker = "[low ]" if res.low_confidence else "[ ok ]"
        print(f"  {marker} {res.segment_id:<16} {res.method:<10} {res.track_title}")
    print(f"Resolved {len(result.resolutions)} tracks → {args.output}")
    if result.warnings:
        print(f"{len(result.warnings)} low-confidence tracks: review start_segment_id before 'estimate'.")


def cmd_estimate(args):
    """Estimate per-segment start times inside every track."""
    _check_output(args.output, args.base, args.timing)
    base = load_base_libretto(args.base)
    overlay = load_overlay(args.timing)
    result = estimate_timings(base, overlay)
    write_artifact(args.output, result.overlay.to_dict())

    if args.verbose:
        for stat in result.stats:
            print(
                f"  {stat.track_title}: {stat.segments_estimated} segments, "
                f"weight {stat.total_weight:.1f}, {stat.duration:.1f}s"
            )
    total = sum(s.segments_estimated for s in result.stats)
    print(f"Estimated {total} segments across {len(result.stats)} tracks → {args.output}")


def cmd_merge(args):
    """Merge base libretto and estimated overlay into the timed libretto."""
    _check_output(args.output, args.base, args.timing)
    base = load_base_libretto(args.base)
    overlay = load_overlay(args.timing)
    result = merge(base, overlay)
    write_artifact(args.output, result.libretto.to_dict())
    print(
        f"Merged {result.stats.merged_segments} segments in "
        f"{result.stats.tracks} tracks → {args.output}"
    )


def cmd_status(args):
    """Show which pipeline stage an overlay has reached."""
    overlay = load_overlay(args.timing)
    status = get_overlay_status(overlay)
    print(f"Overlay: {args.timing}")
    print(f"Stage:   {status['stage']}")
    print(f"Tracks:  {status['tracks']} ({status['with_duration']} with duration)")
    print("Steps:")
    for step in ("resolved", "estimated"):
        count = status[step]
        marker = "[done]" if count == status["tracks"] and count else "[part]" if count else "[----]"
        print(f"  {marker} {step:<10} ({count}/{status['tracks']})")
    if status["low_confidence"]:
        print("Low-confidence tracks:")
        for title in status["low_confidence"]:
            print(f"  {title}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="libretto-timing",
        description="Libretto Timing: turn a base libretto and a track scaffold into a timed libretto",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Verbose logging (-vv for debug)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Generate a scaffold timing overlay")
    init_parser.add_argument("-b", "--base", required=True, help="Path to the base libretto JSON")
    init_parser.add_argument("-o", "--output", default=DEFAULT_SCAFFOLD_OUTPUT, help="Output overlay path")
    init_parser.set_defaults(func=cmd_init)

    # durations
    dur_parser = subparsers.add_parser("durations", help="Read track durations from audio files")
    dur_parser.add_argument("-t", "--timing", required=True, help="Path to the timing overlay JSON")
    dur_parser.add_argument("-a", "--audio-dir", required=True, help="Directory of track audio files")
    dur_parser.add_argument("-o", "--output", default=DEFAULT_DURATIONS_OUTPUT, help="Output overlay path")
    dur_parser.add_argument("--force", action="store_true", help="Overwrite existing durations")
    dur_parser.set_defaults(func=cmd_durations)

    # resolve
    resolve_parser = subparsers.add_parser("resolve", help="Locate where each track starts in the text")
    resolve_parser.add_argument("-b", "--base", required=True, help="Path to the base libretto JSON")
    resolve_parser.add_argument("-t", "--timing", required=True, help="Path to the scaffold overlay JSON")
    resolve_parser.add_argument("-o", "--output", default=DEFAULT_RESOLVE_OUTPUT, help="Output overlay path")
    resolve_parser.add_argument(
        "--fuzzy-threshold", type=float, default=None,
        help="Enable fuzzy anchor matching at this partial-ratio score (0-100)",
    )
    resolve_parser.set_defaults(func=cmd_resolve)

    # estimate
    estimate_parser = subparsers.add_parser("estimate", help="Estimate segment start times")
    estimate_parser.add_argument("-b", "--base", required=True, help="Path to the base libretto JSON")
    estimate_parser.add_argument("-t", "--timing", required=True, help="Path to the resolved overlay JSON")
    estimate_parser.add_argument("-o", "--output", default=DEFAULT_ESTIMATE_OUTPUT, help="Output overlay path")
    estimate_parser.set_defaults(func=cmd_estimate)

    # merge
    merge_parser = subparsers.add_parser("merge", help="Produce the timed libretto")
    merge_parser.add_argument("-b", "--base", required=True, help="Path to the base libretto JSON")
    merge_parser.add_argument("-t", "--timing", required=True, help="Path to the estimated overlay JSON")
    merge_parser.add_argument("-o", "--output", default=DEFAULT_MERGE_OUTPUT, help="Output timed libretto path")
    merge_parser.set_defaults(func=cmd_merge)

    # status
    status_parser = subparsers.add_parser("status", help="Show an overlay's pipeline stage")
    status_parser.add_argument("-t", "--timing", required=True, help="Path to the timing overlay JSON")
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except LibrettoError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
