import pytest

from src.registry.domain.enums import STATUS_LABELS, JobStatus, RunnerState
from src.registry.domain.errors import StateError, ValidationError
from src.registry.domain.services.job_ids import new_job_id
from src.registry.domain.services.status_machine import (
    RUNNER_STATE_STATUS,
    check_transition,
    plan_transitions,
)
from src.registry.infra.models import JobORM

P, R, AG, C, AD, E, U = (
    JobStatus.PENDING,
    JobStatus.RUNNING,
    JobStatus.ABORTING,
    JobStatus.COMPLETED,
    JobStatus.ABORTED,
    JobStatus.ERROR,
    JobStatus.UNKNOWN,
)


@pytest.mark.parametrize(
    "current, target",
    [(P, R), (P, AG), (P, AD), (P, E), (P, U), (R, C), (R, AG), (R, E), (R, U), (AG, AD), (AG, E), (AG, U)],
)
def test_allowed_transitions(current, target):
    check_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [(R, P), (AG, R), (AG, C), (P, C), (R, AD), (C, U), (E, E), (AD, R)],
)
def test_rejected_transitions(current, target):
    with pytest.raises(StateError):
        check_transition(current, target)


def test_unknown_exit_is_checked_against_prior_status():
    check_transition(U, R, prior=R)
    check_transition(U, C, prior=R)
    with pytest.raises(StateError):
        check_transition(U, P, prior=R)
    with pytest.raises(StateError):
        check_transition(U, AD, prior=R)


def test_every_runner_state_is_mapped():
    assert set(RUNNER_STATE_STATUS) == set(RunnerState)


@pytest.mark.parametrize(
    "current, prior, state, expected",
    [
        (P, None, RunnerState.STARTING, []),
        (P, None, RunnerState.RUNNING, [R]),
        (P, None, RunnerState.DONE, [R, C]),
        (R, None, RunnerState.STARTING, []),
        (R, None, RunnerState.DONE, [C]),
        (R, None, RunnerState.FAILED, [E]),
        (R, None, RunnerState.CANCELLING, [AG]),
        (R, None, RunnerState.CANCELLED, [AG, AD]),
        (AG, None, RunnerState.RUNNING, []),
        (AG, None, RunnerState.DONE, [AD]),
        (AG, None, RunnerState.CANCELLED, [AD]),
        (AG, None, RunnerState.FAILED, [E]),
        (R, None, RunnerState.UNKNOWN, [U]),
        (U, R, RunnerState.UNKNOWN, []),
        (U, R, RunnerState.RUNNING, [R]),
        (U, AG, RunnerState.CANCELLED, [AD]),
    ],
)
def test_plan_transitions(current, prior, state, expected):
    assert plan_transitions(current, prior, state) == expected


def test_runner_state_parse_falls_back_to_unknown():
    assert RunnerState.parse("done") is RunnerState.DONE
    assert RunnerState.parse("SUSPENDED") is RunnerState.UNKNOWN
    assert RunnerState.parse(None) is RunnerState.UNKNOWN


def test_status_labels_are_closed():
    assert JobStatus.from_label("ABORTING") is AG
    with pytest.raises(ValidationError):
        JobStatus.from_label("SUSPENDED")


def test_status_check_constraint_lists_every_label():
    ck = next(c for c in JobORM.__table__.constraints if c.name and "status_label" in str(c.name))
    sql = str(ck.sqltext)
    for label in STATUS_LABELS:
        assert f"'{label}'" in sql


def test_job_ids_are_readable_and_unique():
    a = new_job_id("S1", "Redis Store")
    b = new_job_id("S1", "Redis Store")

    assert a.startswith("s1-to-redis-store-")
    assert a != b
