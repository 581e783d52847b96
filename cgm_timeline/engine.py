"""Per-refresh orchestration of merge, segmentation and range statistics."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .cache import AnalysisCache
from .device_status import SnapshotInput, merge
from .hypo import segment
from .load_bars import LoadReferences, load_references
from .models import GlucoseSample, HypoEpisode, RangeBucketResult, TimelineBundle
from .range_buckets import bucketize, fraction_in_inclusive_range
from .series_index import TimeSeriesIndex
from .settings import DEFAULT_SETTINGS, AnalysisSettings


@dataclass(frozen=True)
class TimelineReport:
    """Everything derived from one data refresh."""

    samples: Sequence[GlucoseSample]
    index: TimeSeriesIndex = field(repr=False)
    hypo_episodes: Sequence[HypoEpisode]
    range_buckets: RangeBucketResult
    target_fraction: Optional[float]
    load_references: LoadReferences = field(default_factory=LoadReferences)


_GLOBAL_ANALYSIS_CACHE = AnalysisCache()


class TimelineAnalyzer:
    """Runs the refresh-time computations, memoized on input identity and settings."""

    def __init__(
        self,
        *,
        settings: AnalysisSettings | None = None,
        cache: AnalysisCache | None = None,
    ) -> None:
        self._settings = settings or DEFAULT_SETTINGS
        self._cache = cache if cache is not None else _GLOBAL_ANALYSIS_CACHE

    @property
    def settings(self) -> AnalysisSettings:
        return self._settings

    def enrich(
        self,
        samples: Sequence[GlucoseSample],
        device_status: Sequence[SnapshotInput],
    ) -> list[GlucoseSample]:
        return self._cache.get_or_compute(
            "enrich",
            (samples, device_status),
            self._settings.merge_max_distance_ms,
            lambda: merge(samples, device_status, max_distance_ms=self._settings.merge_max_distance_ms),
        )

    def index(self, samples: Sequence[GlucoseSample]) -> TimeSeriesIndex:
        return self._cache.get_or_compute("index", (samples,), None, lambda: TimeSeriesIndex(samples))

    def hypo_episodes(self, samples: Sequence[GlucoseSample]) -> list[HypoEpisode]:
        settings = self._settings
        return self._cache.get_or_compute(
            "hypo_episodes",
            (samples,),
            (settings.low_threshold_mg_dl, settings.hypo_max_gap_ms),
            lambda: segment(
                samples,
                settings.low_threshold_mg_dl,
                max_gap_ms=settings.hypo_max_gap_ms,
            ),
        )

    def range_buckets(self, samples: Sequence[GlucoseSample]) -> RangeBucketResult:
        thresholds = self._settings.range_thresholds
        return self._cache.get_or_compute(
            "range_buckets",
            (samples,),
            thresholds,
            lambda: bucketize(samples, thresholds),
        )

    def target_fraction(self, samples: Iterable[GlucoseSample]) -> Optional[float]:
        thresholds = self._settings.range_thresholds
        return fraction_in_inclusive_range(
            (sample.value_mg_dl for sample in samples),
            thresholds.target_min,
            thresholds.target_max,
        )

    def refresh(self, bundle: TimelineBundle) -> TimelineReport:
        """Process one data-loading window."""

        enriched = self.enrich(bundle.samples, bundle.device_status)
        index = self.index(enriched)
        episodes = self.hypo_episodes(enriched)
        buckets = self.range_buckets(enriched)
        target_fraction = self.target_fraction(enriched)
        references = load_references(enriched)

        # Only the current window stays memoized.
        self._cache.prune((bundle.samples, bundle.device_status, enriched))

        enriched_count = sum(1 for sample in enriched if sample.iob_total_u is not None or sample.cob_g is not None)
        logging.debug(
            f"Timeline refresh: {len(enriched)} samples ({enriched_count} enriched from "
            f"{len(bundle.device_status)} device-status records), {len(episodes)} hypo episodes"
        )

        return TimelineReport(
            samples=enriched,
            index=index,
            hypo_episodes=episodes,
            range_buckets=buckets,
            target_fraction=target_fraction,
            load_references=references,
        )

    def invalidate(self) -> None:
        """Forget memoized results once the caller observes new data."""

        self._cache.invalidate()
