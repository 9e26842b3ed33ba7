import pytest

from sandbox_orchestrator.models import Job, JobStatus


def _job():
    return Job(job_id="job-1", branch="main", task_description="demo", repo_url="https://example/repo.git")


def test_new_job_is_pending_with_timestamps():
    job = _job()
    assert job.status == JobStatus.PENDING
    assert job.created_at <= job.updated_at
    assert job.logs == []
    assert job.patch == ""


def test_transition_updates_timestamps_and_error():
    job = _job()
    created = job.updated_at
    job.transition(JobStatus.RUNNING)
    assert job.started_at is not None
    assert job.updated_at >= created

    job.transition(JobStatus.FAILED, error="clone failed")
    assert job.status == JobStatus.FAILED
    assert job.error == "clone failed"
    assert job.finished_at is not None


def test_transition_is_monotonic():
    job = _job()
    job.transition(JobStatus.RUNNING)
    with pytest.raises(ValueError):
        job.transition(JobStatus.PENDING)
    job.transition(JobStatus.COMPLETED)
    assert job.error is None
    with pytest.raises(ValueError):
        job.transition(JobStatus.FAILED, error="late")
    assert job.status == JobStatus.COMPLETED


def test_to_dict_serializes_enum_and_datetimes():
    job = _job()
    job.log("Job accepted")
    data = job.to_dict()
    assert data["status"] == "PENDING"
    assert isinstance(data["created_at"], str)
    assert data["logs"] == ["Job accepted"]
    data["logs"].append("mutated")
    assert job.logs == ["Job accepted"]
