from typing import Protocol

from src.registry.domain.enums import RunnerState
from src.registry.domain.value_objects import JobSpec, MetricSample


class RunnerAdapter(Protocol):
    """
    Граница с раннером. Любой метод может бросить
    RunnerUnavailableError (временная ошибка) или RunnerFatalError.
    """

    def submit(self, spec: JobSpec) -> str: ...
    def poll_status(self, ext_id: str) -> RunnerState: ...
    def poll_metrics(self, ext_id: str) -> list[MetricSample]: ...
    def request_abort(self, ext_id: str) -> bool: ...
