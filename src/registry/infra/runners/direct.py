import threading
import uuid
from dataclasses import dataclass, field

from src.registry.domain.enums import RunnerState
from src.registry.domain.errors import RunnerFatalError, RunnerUnavailableError
from src.registry.domain.value_objects import JobSpec, MetricSample


@dataclass
class _DirectJob:
    spec: JobSpec
    state: RunnerState = RunnerState.RUNNING
    counters: dict[str, float] = field(default_factory=dict)


class DirectRunner:
    """
    Раннер внутри процесса: для локального запуска и тестов.
    Состояние живёт в памяти, поэтому API и worker видят один и тот же
    DirectRunner только в одном процессе.
    """

    name = "DirectRunner"

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: dict[str, _DirectJob] = {}
        self._reachable = True

    # RunnerAdapter
    def submit(self, spec: JobSpec) -> str:
        with self._lock:
            self._check_reachable()
            ext_id = f"direct-{uuid.uuid4().hex[:12]}"
            self._jobs[ext_id] = _DirectJob(spec=spec)
            return ext_id

    def poll_status(self, ext_id: str) -> RunnerState:
        with self._lock:
            self._check_reachable()
            return self._job(ext_id).state

    def poll_metrics(self, ext_id: str) -> list[MetricSample]:
        with self._lock:
            self._check_reachable()
            counters = self._job(ext_id).counters
            return [MetricSample(name=k, value=float(v)) for k, v in counters.items()]

    def request_abort(self, ext_id: str) -> bool:
        with self._lock:
            self._check_reachable()
            job = self._job(ext_id)
            if job.state in (RunnerState.STARTING, RunnerState.RUNNING, RunnerState.CANCELLING):
                job.state = RunnerState.CANCELLED
            return True

    # управление из тестов / локального окружения
    def set_metrics(self, ext_id: str, counters: dict[str, float]) -> None:
        with self._lock:
            self._job(ext_id).counters = dict(counters)

    def set_state(self, ext_id: str, state: RunnerState) -> None:
        with self._lock:
            self._job(ext_id).state = state

    def complete(self, ext_id: str) -> None:
        self.set_state(ext_id, RunnerState.DONE)

    def fail(self, ext_id: str) -> None:
        self.set_state(ext_id, RunnerState.FAILED)

    def set_reachable(self, reachable: bool) -> None:
        with self._lock:
            self._reachable = reachable

    def spec_of(self, ext_id: str) -> JobSpec:
        with self._lock:
            return self._job(ext_id).spec

    def _job(self, ext_id: str) -> _DirectJob:
        job = self._jobs.get(ext_id)
        if job is None:
            raise RunnerFatalError(f"DirectRunner knows no job {ext_id!r}")
        return job

    def _check_reachable(self) -> None:
        if not self._reachable:
            raise RunnerUnavailableError("DirectRunner is unreachable")
