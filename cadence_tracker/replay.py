"""
Replay a recorded sensor session through the speed/cadence tracker.

Refeeds the recorded motion samples and position fixes in timestamp order,
with the recorded timestamps driving the filter, and prints a summary of the
fused speed and cadence. Useful for tuning noise constants against a ride
without going out again.

Session file (JSON, optionally .gz):
    {
      "settings": {...},             optional TrackerConfig keys
      "motion_samples": [{"timestamp", "accel_x", ..., "rot_z", "attitude"}],
      "position_fixes": [{"timestamp", "speed", "horizontal_accuracy"}]
    }
"""

import argparse
import gzip
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from statistics import mean
from typing import Dict, List, Optional, Sequence

from .config import TrackerConfig
from .models import MotionSample, PositionFix
from .tracker import CadenceSpeedTracker

logger = logging.getLogger(__name__)


@dataclass
class ReplayEvent:
    timestamp: float
    kind: str
    payload: object


def load_session(path: Path) -> Dict:
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rt", encoding="utf-8") as handle:
        return json.load(handle)


def build_events(data: Dict) -> List[ReplayEvent]:
    """Merge both streams into one timestamp-ordered event list."""
    events: List[ReplayEvent] = []

    for raw in data.get("motion_samples") or []:
        try:
            sample = MotionSample.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed motion sample: %r", raw)
            continue
        events.append(ReplayEvent(sample.timestamp, "motion", sample))

    for raw in data.get("position_fixes") or []:
        try:
            fix = PositionFix.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed position fix: %r", raw)
            continue
        events.append(ReplayEvent(fix.timestamp, "fix", fix))

    # Stable sort: a fix sharing a timestamp with a sample stays after it
    events.sort(key=lambda ev: ev.timestamp)
    return events


def replay_session(events: Sequence[ReplayEvent], tracker: CadenceSpeedTracker) -> Dict:
    """Feed events through the tracker and collect summary statistics."""
    speeds: List[float] = []
    cadences: List[float] = []
    forced_stops = 0

    for event in events:
        if event.kind == "motion":
            output = tracker.process_motion(event.payload)
            if output is None:
                continue
            speeds.append(output.speed)
            if output.cadence is not None:
                cadences.append(output.cadence)
            if output.forced_stop:
                forced_stops += 1
            logger.debug("t=%.2f speed=%.2f cadence=%s confidence=%.2f",
                         output.timestamp, output.speed, output.cadence, output.confidence)
        elif event.kind == "fix":
            tracker.process_fix(event.payload)

    state = tracker.get_state()
    return {
        "samples": state["samples_received"],
        "withheld": state["samples_withheld"],
        "outputs": len(speeds),
        "fixes_applied": state["fixes_applied"],
        "fixes_discarded": state["fixes_discarded"],
        "forced_stops": forced_stops,
        "max_speed": max(speeds) if speeds else 0.0,
        "mean_speed": mean(speeds) if speeds else 0.0,
        "mean_cadence": mean(cadences) if cadences else None,
        "final_speed": state["speed"],
    }


def format_summary(summary: Dict) -> str:
    cadence = summary["mean_cadence"]
    lines = [
        f"Motion samples:   {summary['samples']} ({summary['withheld']} used for calibration)",
        f"Outputs:          {summary['outputs']}",
        f"Fixes:            {summary['fixes_applied']} applied, {summary['fixes_discarded']} discarded",
        f"Forced stops:     {summary['forced_stops']}",
        f"Speed (m/s):      max {summary['max_speed']:.2f}, mean {summary['mean_speed']:.2f}, "
        f"final {summary['final_speed']:.2f}",
        "Cadence (RPM):    " + (f"mean {cadence:.1f}" if cadence is not None else "unavailable"),
    ]
    return "\n".join(lines)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "session",
        type=Path,
        help="Path to a session .json[.gz] file",
    )
    parser.add_argument(
        "--preset",
        default="adaptive",
        choices=["adaptive", "static", "slow-recalibration"],
        help="Filter variant to replay with (default: adaptive)",
    )
    parser.add_argument(
        "--gear",
        type=int,
        default=0,
        help="Gear held for the whole replay, 0 = freewheeling (default: 0)",
    )
    parser.add_argument(
        "--gear-ratios",
        help="Comma-separated gear ratios, e.g. '1.0,1.5,38/16'",
    )
    parser.add_argument(
        "--wheel-circumference",
        type=float,
        help="Wheel circumference in meters (default: 2.1)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every output sample",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        data = load_session(args.session)
    except (OSError, ValueError) as e:
        print(f"⚠ Could not read session {args.session}: {e}", file=sys.stderr)
        return 1

    settings = dict(data.get("settings") or {})
    if args.gear_ratios:
        settings["gear_ratios"] = [r.strip() for r in args.gear_ratios.split(",")]
    if args.wheel_circumference is not None:
        settings["wheel_circumference"] = args.wheel_circumference

    tracker = CadenceSpeedTracker(TrackerConfig.preset(args.preset, **settings))
    tracker.set_ride_context(gear=args.gear)

    events = build_events(data)
    if not events:
        print(f"⚠ Session {args.session} has no samples to replay", file=sys.stderr)
        return 1

    summary = replay_session(events, tracker)
    print(format_summary(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
