"""
Age bucket constants for claim aging.

Two boundary sets exist for the same four buckets. The canonical scheme is used
everywhere (classifier, cohort analysis, day-over-day stats, workbook tabs); the
legacy scheme is kept so reports built with the older 28-29 / 30+ boundaries can
be reproduced on request.
"""

from dataclasses import dataclass
from typing import Optional

# Bucket names
BUCKET_CRITICAL = "Critical"
BUCKET_PRIORITY = "Priority"
BUCKET_BACKLOG = "Backlog"
BUCKET_QUEUE = "Queue"
BUCKET_UNKNOWN = "UNKNOWN"

# Display / sort order for the named buckets, unknown last
BUCKET_ORDER = [BUCKET_CRITICAL, BUCKET_PRIORITY, BUCKET_BACKLOG, BUCKET_QUEUE, BUCKET_UNKNOWN]


@dataclass(frozen=True)
class AgeBucketScheme:
    """Inclusive day ranges for the aging buckets. Anything below priority_min is Queue."""
    name: str
    critical_min: int
    critical_max: int
    priority_min: int
    priority_max: int
    backlog_min: int

    def bucket_for(self, clean_age: Optional[int]) -> str:
        if clean_age is None:
            return BUCKET_UNKNOWN
        if self.critical_min <= clean_age <= self.critical_max:
            return BUCKET_CRITICAL
        if clean_age >= self.backlog_min:
            return BUCKET_BACKLOG
        if self.priority_min <= clean_age <= self.priority_max:
            return BUCKET_PRIORITY
        return BUCKET_QUEUE

    def stat_label(self, bucket: str) -> str:
        """Day-range label used in stats tables, e.g. '28-30' or '31+'."""
        labels = {
            BUCKET_CRITICAL: f"{self.critical_min}-{self.critical_max}",
            BUCKET_PRIORITY: f"{self.priority_min}-{self.priority_max}",
            BUCKET_BACKLOG: f"{self.backlog_min}+",
            BUCKET_QUEUE: f"0-{self.priority_min - 1}",
        }
        return labels[bucket]

    def stat_labels(self) -> list:
        return [self.stat_label(b) for b in BUCKET_ORDER[:4]]


CANONICAL_SCHEME = AgeBucketScheme(
    name="canonical",
    critical_min=28,
    critical_max=30,
    priority_min=21,
    priority_max=27,
    backlog_min=31,
)

LEGACY_SCHEME = AgeBucketScheme(
    name="legacy",
    critical_min=28,
    critical_max=29,
    priority_min=21,
    priority_max=27,
    backlog_min=30,
)

# Clean age one day short of Critical
APPROACHING_CRITICAL_AGE = CANONICAL_SCHEME.critical_min - 1
