from biopeak.backfill.status import summarize
from biopeak.db.models.backfill_job import BackfillJob, COMPLETED, ERROR, IN_PROGRESS, PENDING


def _job(summary_type, status, activities=0):
    return BackfillJob(summary_type=summary_type, status=status, activities_processed=activities)


def test_empty():
    summary = summarize([])
    assert summary.total == 0
    assert summary.by_summary_type == {}


def test_counts_by_status_and_type():
    jobs = [
        _job("dailies", COMPLETED, 12),
        _job("dailies", ERROR),
        _job("sleeps", IN_PROGRESS, 3),
        _job("sleeps", PENDING),
        _job("sleeps", COMPLETED, 5),
    ]
    summary = summarize(jobs)

    assert summary.total == 5
    assert summary.completed == 2
    assert summary.in_progress == 1
    assert summary.pending == 1
    assert summary.errors == 1
    assert summary.total_activities_processed == 20

    dailies = summary.by_summary_type["dailies"]
    assert (dailies.total, dailies.completed, dailies.errors) == (2, 1, 1)
    sleeps = summary.by_summary_type["sleeps"]
    assert (sleeps.total, sleeps.in_progress, sleeps.pending, sleeps.completed) == (3, 1, 1, 1)


def test_status_counts_add_up_to_total():
    jobs = [_job("dailies", s) for s in (COMPLETED, ERROR, IN_PROGRESS, PENDING, PENDING)]
    summary = summarize(jobs)
    assert summary.completed + summary.in_progress + summary.pending + summary.errors == summary.total


def test_serializes_with_camel_case_keys():
    dumped = summarize([_job("dailies", IN_PROGRESS, 4)]).model_dump(by_alias=True)
    assert dumped["inProgress"] == 1
    assert dumped["totalActivitiesProcessed"] == 4
    assert dumped["bySummaryType"]["dailies"]["inProgress"] == 1
