from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from cgm_timeline.engine import TimelineAnalyzer, TimelineReport
from cgm_timeline.models import HypoEpisode, TimelineBundle
from cgm_timeline.nightscout import (
    convert_carb_treatments,
    convert_device_status,
    convert_entries,
    convert_insulin_treatments,
)
from cgm_timeline.settings import AnalysisSettings


def read_documents(path: Path | None) -> list[Any]:
    if path is None:
        return []
    payload = json.loads(path.read_text())
    if isinstance(payload, dict):
        # Some exports wrap the documents, e.g. {"data": [...]}.
        payload = payload.get("data") or []
    if not isinstance(payload, list):
        raise ValueError(f"{path} does not contain a JSON array of documents")
    return payload


def load_bundle(
    entries: Path,
    *,
    treatments: Path | None = None,
    devicestatus: Path | None = None,
) -> TimelineBundle:
    treatment_documents = read_documents(treatments)
    return TimelineBundle(
        samples=convert_entries(read_documents(entries)),
        insulin_events=convert_insulin_treatments(treatment_documents),
        carb_events=convert_carb_treatments(treatment_documents),
        device_status=convert_device_status(read_documents(devicestatus)),
    )


def _episode_payload(episode: HypoEpisode) -> dict[str, Any]:
    return {
        "id": episode.id,
        "start_ms": episode.start_ms,
        "end_ms": episode.end_ms,
        "duration_minutes": episode.duration_minutes,
        "nadir_ms": episode.nadir_ms,
        "nadir_mg_dl": episode.nadir_value_mg_dl,
        "driver": episode.driver.value if episode.driver else None,
        "iob_bolus_u": episode.iob_bolus_u,
        "iob_basal_u": episode.iob_basal_u,
    }


def summarize(report: TimelineReport, settings: AnalysisSettings) -> dict[str, Any]:
    return {
        "samples": len(report.samples),
        "valid_samples": report.range_buckets.valid_count,
        "range_buckets": report.range_buckets.as_dict(),
        "target_fraction": report.target_fraction,
        "load_references": {
            "max_iob_u": report.load_references.max_iob_u,
            "max_cob_g": report.load_references.max_cob_g,
        },
        "low_threshold_mg_dl": settings.low_threshold_mg_dl,
        "hypo_episodes": [_episode_payload(episode) for episode in report.hypo_episodes],
    }


def run(
    entries: Path,
    *,
    treatments: Path | None = None,
    devicestatus: Path | None = None,
    settings: AnalysisSettings | None = None,
) -> dict[str, Any]:
    settings = settings or AnalysisSettings()
    bundle = load_bundle(entries, treatments=treatments, devicestatus=devicestatus)
    report = TimelineAnalyzer(settings=settings).refresh(bundle)
    return summarize(report, settings)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Summarize Nightscout exports: time in range and hypo episodes")
    parser.add_argument("--entries", type=Path, required=True, help="JSON export of Nightscout entries")
    parser.add_argument("--treatments", type=Path, help="JSON export of Nightscout treatments")
    parser.add_argument("--devicestatus", type=Path, help="JSON export of Nightscout devicestatus")
    parser.add_argument("--settings", type=Path, help="Optional JSON file with setting overrides")
    parser.add_argument("--low-threshold", type=float, help="Hypo threshold in mg/dL (default: 70)")
    parser.add_argument("--output", type=Path, help="Optional path to write JSON output")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        overrides: dict[str, Any] = json.loads(args.settings.read_text()) if args.settings else {}
        if not isinstance(overrides, dict):
            raise ValueError(f"{args.settings} must contain a JSON object")
        if args.low_threshold is not None:
            overrides["low_threshold_mg_dl"] = args.low_threshold
        settings = AnalysisSettings.from_mapping(overrides)
        results = run(
            args.entries,
            treatments=args.treatments,
            devicestatus=args.devicestatus,
            settings=settings,
        )
    except (OSError, ValueError) as e:
        logging.error(f"Failed to build report: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.output:
        args.output.write_text(json.dumps(results, indent=2))
    else:
        print(json.dumps(results, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
