from datetime import datetime, timedelta, timezone

from jobboard.services.job_filters import (
    JobFilters,
    filter_active_jobs,
    matches_job_filters,
    page_offset,
    total_pages,
)


def _job(**overrides):
    job = {
        "id": "job-1",
        "title": "Frontend Developer",
        "description": "React and TypeScript",
        "location": "Doha",
        "company": "Doha Tech",
        "salary_min": 9000,
        "salary_max": 15000,
        "status": "ACTIVE",
        "created_at": datetime(2025, 6, 10, tzinfo=timezone.utc),
    }
    job.update(overrides)
    return job


def test_salary_bounds_compose_as_containment() -> None:
    job = _job()

    assert matches_job_filters(
        job, JobFilters.build(salary_min=8000, salary_max=16000), include_open_ended_salaries=False
    )
    assert not matches_job_filters(job, JobFilters.build(salary_min=10000), include_open_ended_salaries=False)
    assert not matches_job_filters(job, JobFilters.build(salary_max=14000), include_open_ended_salaries=False)


def test_open_ended_salaries_follow_policy() -> None:
    job = _job(salary_min=None, salary_max=None)
    filters = JobFilters.build(salary_min=5000, salary_max=20000)

    assert not matches_job_filters(job, filters, include_open_ended_salaries=False)
    assert matches_job_filters(job, filters, include_open_ended_salaries=True)


def test_text_filters_are_case_insensitive_substrings() -> None:
    job = _job()

    assert matches_job_filters(job, JobFilters.build(search="typescript"), include_open_ended_salaries=False)
    assert matches_job_filters(job, JobFilters.build(search="doha TECH"), include_open_ended_salaries=False)
    assert matches_job_filters(job, JobFilters.build(location="doh"), include_open_ended_salaries=False)
    assert not matches_job_filters(job, JobFilters.build(company="cloud"), include_open_ended_salaries=False)


def test_blank_filters_and_zero_bounds_are_ignored() -> None:
    filters = JobFilters.build(search="   ", location="", company=None, salary_min=0, salary_max=0)

    assert filters == JobFilters()
    assert matches_job_filters(_job(), filters, include_open_ended_salaries=False)


def test_filter_active_jobs_drops_closed_and_sorts_newest_first() -> None:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    jobs = [
        _job(id="old", created_at=base),
        _job(id="closed", created_at=base + timedelta(days=2), status="CLOSED"),
        _job(id="new", created_at=base + timedelta(days=1)),
        _job(id="draft", created_at=base + timedelta(days=3), status="DRAFT"),
    ]

    result = filter_active_jobs(jobs, JobFilters(), include_open_ended_salaries=False)

    assert [job["id"] for job in result] == ["new", "old"]


def test_pagination_math() -> None:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    jobs = [_job(id=f"job-{index:02d}", created_at=base + timedelta(hours=index)) for index in range(25)]
    matched = filter_active_jobs(jobs, JobFilters(), include_open_ended_salaries=False)

    offset = page_offset(2, 10)
    page = matched[offset : offset + 10]

    assert offset == 10
    assert [job["id"] for job in page] == [f"job-{index:02d}" for index in range(14, 4, -1)]
    assert total_pages(25, 10) == 3
    assert total_pages(0, 10) == 1
    assert total_pages(20, 10) == 2
