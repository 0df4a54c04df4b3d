from typing import Iterable

from biopeak.db.models.backfill_job import BackfillJob, COMPLETED, ERROR, IN_PROGRESS, PENDING
from biopeak.db.schemas.backfill import BackfillSummary, SummaryTypeCounts

_STATUS_FIELD = {
    COMPLETED: "completed",
    IN_PROGRESS: "in_progress",
    PENDING: "pending",
    ERROR: "errors",
}


def summarize(jobs: Iterable[BackfillJob]) -> BackfillSummary:
    """Aggregate job rows into dashboard counts. Pure; recomputed on every read."""
    summary = BackfillSummary()
    for job in jobs:
        summary.total += 1
        summary.total_activities_processed += job.activities_processed or 0

        per_type = summary.by_summary_type.setdefault(job.summary_type, SummaryTypeCounts())
        per_type.total += 1

        field = _STATUS_FIELD.get(job.status)
        if field is None:
            continue
        setattr(summary, field, getattr(summary, field) + 1)
        setattr(per_type, field, getattr(per_type, field) + 1)
    return summary
