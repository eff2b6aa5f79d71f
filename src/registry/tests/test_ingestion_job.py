from datetime import datetime, timezone

import pytest

from src.registry.domain.entities.feature_set import FeatureSet
from src.registry.domain.entities.ingestion_job import IngestionJob
from src.registry.domain.entities.metrics import Metrics
from src.registry.domain.entities.source import Source
from src.registry.domain.entities.store import Store
from src.registry.domain.enums import JobStatus, SourceType, StoreType
from src.registry.domain.errors import NotFoundError, StateError, ValidationError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

S1 = Source(id="S1", source_type=SourceType.KAFKA, config={"topic": "events"})
K1 = Store(name="K1", store_type=StoreType.REDIS)
F1 = FeatureSet(id="F1:1", name="F1", version=1)
F2 = FeatureSet(id="F2:1", name="F2", version=1)


def _job(**kw) -> IngestionJob:
    params = dict(id="J1", runner="DirectRunner", source=S1, store=K1, feature_sets=[F1, F2])
    params.update(kw)
    return IngestionJob.create(**params)


def _metric(name: str, value: float) -> Metrics:
    return Metrics(job_id="other", name=name, value=value, timestamp=NOW)


def test_new_job_is_pending_without_external_id():
    job = _job()

    assert job.status is JobStatus.PENDING
    assert job.ext_id is None
    assert job.feature_set_ids == ["F1:1", "F2:1"]
    assert job.sink_name() == "K1"
    assert job.metrics == []


def test_feature_sets_may_be_empty_and_collapse_duplicates():
    assert _job(feature_sets=[]).feature_set_ids == []
    assert _job(feature_sets=[F1, F1, F2]).feature_set_ids == ["F1:1", "F2:1"]


@pytest.mark.parametrize(
    "override",
    [
        {"id": ""},
        {"runner": ""},
        {"source": None},
        {"store": None},
        {"status": JobStatus.RUNNING},
        {"status": JobStatus.COMPLETED},
    ],
)
def test_create_rejects_invalid_input(override):
    with pytest.raises(ValidationError):
        _job(**override)


def test_sink_name_requires_resolved_store():
    job = _job()
    job.store = None

    with pytest.raises(NotFoundError):
        job.sink_name()


def test_attach_external_id_is_idempotent_for_same_value():
    job = _job()

    assert job.attach_external_id("ext-123") is True
    job.transition_to(JobStatus.RUNNING, NOW)

    assert job.attach_external_id("ext-123") is False
    with pytest.raises(StateError):
        job.attach_external_id("ext-999")
    assert job.ext_id == "ext-123"


def test_attach_external_id_rejects_empty_value():
    with pytest.raises(ValidationError):
        _job().attach_external_id("")


def test_running_requires_external_id():
    job = _job()

    with pytest.raises(StateError):
        job.transition_to(JobStatus.RUNNING)
    assert job.status is JobStatus.PENDING


def test_abort_goes_through_aborting_until_runner_confirms():
    job = _job()
    job.attach_external_id("ext-123")
    job.transition_to(JobStatus.RUNNING, NOW)

    job.request_abort(NOW)
    assert job.status is JobStatus.ABORTING
    assert job.finished_at is None

    # повторный запрос – no-op
    assert job.request_abort(NOW) is False

    job.transition_to(JobStatus.ABORTED, NOW)
    assert job.status is JobStatus.ABORTED
    assert job.finished_at == NOW

    with pytest.raises(StateError):
        job.attach_external_id("ext-123")
    with pytest.raises(StateError):
        job.transition_to(JobStatus.COMPLETED)
    with pytest.raises(StateError):
        job.request_abort()


def test_abort_of_unsubmitted_job_is_immediate():
    job = _job()

    job.request_abort(NOW)

    assert job.status is JobStatus.ABORTED
    assert job.is_terminal


@pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.ABORTED, JobStatus.ERROR])
@pytest.mark.parametrize("target", list(JobStatus))
def test_no_transition_leaves_terminal_state(terminal, target):
    job = _job()
    job.attach_external_id("ext-1")
    job.transition_to(JobStatus.RUNNING, NOW)
    if terminal is JobStatus.ABORTED:
        job.transition_to(JobStatus.ABORTING, NOW)
    job.transition_to(terminal, NOW)

    with pytest.raises(StateError):
        job.transition_to(target)
    assert job.status is terminal


def test_unknown_detour_remembers_prior_status():
    job = _job()
    job.attach_external_id("ext-1")
    job.transition_to(JobStatus.RUNNING, NOW)

    job.transition_to(JobStatus.UNKNOWN, NOW)
    assert job.prior_status is JobStatus.RUNNING

    # назад в PENDING из UNKNOWN нельзя: prior был RUNNING
    with pytest.raises(StateError):
        job.transition_to(JobStatus.PENDING)

    job.transition_to(JobStatus.RUNNING, NOW)
    assert job.status is JobStatus.RUNNING
    assert job.prior_status is None


def test_poll_failures_escalate_to_error_at_threshold():
    job = _job()
    job.attach_external_id("ext-1")
    job.transition_to(JobStatus.RUNNING, NOW)

    assert job.register_poll_failure(3, NOW) is JobStatus.UNKNOWN
    assert job.register_poll_failure(3, NOW) is JobStatus.UNKNOWN
    assert job.register_poll_failure(3, NOW) is JobStatus.ERROR
    assert job.finished_at == NOW


def test_replace_metrics_is_total_and_reparents_records():
    job = _job()
    job.replace_metrics([_metric("rows_processed", 1000)])
    job.replace_metrics([_metric("rows_processed", 2500), _metric("errors", 0)])

    assert sorted((m.name, m.value) for m in job.metrics) == [("errors", 0.0), ("rows_processed", 2500.0)]
    assert {m.job_id for m in job.metrics} == {"J1"}


def test_replace_metrics_rejected_once_terminal():
    job = _job()
    job.replace_metrics([_metric("rows_processed", 10)])
    job.transition_to(JobStatus.ERROR, NOW)

    with pytest.raises(StateError):
        job.replace_metrics([_metric("rows_processed", 20)])
    assert [(m.name, m.value) for m in job.metrics] == [("rows_processed", 10)]
