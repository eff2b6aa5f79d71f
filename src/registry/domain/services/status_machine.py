from typing import Optional

from src.registry.domain.enums import JobStatus, RunnerState
from src.registry.domain.errors import StateError

TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({
        JobStatus.RUNNING,
        JobStatus.ABORTING,
        JobStatus.ABORTED,
        JobStatus.ERROR,
        JobStatus.UNKNOWN,
    }),
    JobStatus.RUNNING: frozenset({
        JobStatus.COMPLETED,
        JobStatus.ABORTING,
        JobStatus.ERROR,
        JobStatus.UNKNOWN,
    }),
    JobStatus.ABORTING: frozenset({
        JobStatus.ABORTED,
        JobStatus.ERROR,
        JobStatus.UNKNOWN,
    }),
    # выход из UNKNOWN проверяется относительно prior_status
    JobStatus.UNKNOWN: frozenset(),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ABORTED: frozenset(),
    JobStatus.ERROR: frozenset(),
}

RUNNER_STATE_STATUS: dict[RunnerState, JobStatus] = {
    RunnerState.STARTING: JobStatus.PENDING,
    RunnerState.RUNNING: JobStatus.RUNNING,
    RunnerState.DONE: JobStatus.COMPLETED,
    RunnerState.CANCELLING: JobStatus.ABORTING,
    RunnerState.CANCELLED: JobStatus.ABORTED,
    RunnerState.FAILED: JobStatus.ERROR,
    RunnerState.UNKNOWN: JobStatus.UNKNOWN,
}


def effective_status(status: JobStatus, prior: Optional[JobStatus]) -> JobStatus:
    """Последний конкретный статус: для UNKNOWN это prior_status."""
    if status is JobStatus.UNKNOWN:
        return prior or JobStatus.PENDING
    return status


def check_transition(
    current: JobStatus,
    target: JobStatus,
    prior: Optional[JobStatus] = None,
) -> None:
    if current.is_terminal:
        raise StateError(f"Job is in terminal state {current}, cannot move to {target}")

    if target is JobStatus.UNKNOWN:
        return

    origin = effective_status(current, prior)
    if current is JobStatus.UNKNOWN and target is origin:
        return

    if target not in TRANSITIONS[origin]:
        raise StateError(f"Invalid transition: {current} -> {target}")


def plan_transitions(
    current: JobStatus,
    prior: Optional[JobStatus],
    runner_state: RunnerState,
) -> list[JobStatus]:
    """
    Переводит состояние раннера в последовательность шагов для job'а.
    Пустой список – статус не меняется.
    """
    reported = RUNNER_STATE_STATUS[runner_state]
    if reported is JobStatus.UNKNOWN:
        return [] if current is JobStatus.UNKNOWN else [JobStatus.UNKNOWN]

    origin = effective_status(current, prior)

    if origin is JobStatus.ABORTING:
        if reported in (JobStatus.COMPLETED, JobStatus.ABORTED):
            target = JobStatus.ABORTED
        elif reported is JobStatus.ERROR:
            target = JobStatus.ERROR
        else:
            target = JobStatus.ABORTING
    elif origin is JobStatus.RUNNING and reported is JobStatus.PENDING:
        target = JobStatus.RUNNING
    else:
        target = reported

    steps = []
    if origin is JobStatus.PENDING and target is JobStatus.COMPLETED:
        steps.append(JobStatus.RUNNING)
    elif origin is JobStatus.RUNNING and target is JobStatus.ABORTED:
        # отмена мимо реестра: ABORTED только через ABORTING
        steps.append(JobStatus.ABORTING)
    steps.append(target)

    return [s for s in steps if s is not current]
