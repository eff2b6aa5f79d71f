import logging
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from src.registry.domain.errors import RunnerUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_runner(
    fn: Callable[..., T],
    *args,
    attempts: int = 3,
    backoff: float = 1.0,
) -> T:
    """
    Вызов раннера с ретраями только на RunnerUnavailableError.
    RunnerFatalError и всё остальное пробрасывается сразу.
    """
    retrying = Retrying(
        retry=retry_if_exception_type(RunnerUnavailableError),
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential_jitter(initial=backoff, max=max(backoff, 1.0) * 30, jitter=backoff),
        before_sleep=lambda retry_state: logger.warning(
            "%s - Retry %d/%d: %s",
            getattr(fn, "__name__", "runner call"),
            retry_state.attempt_number,
            attempts,
            retry_state.outcome.exception(),
        ),
        reraise=True,
    )
    return retrying(fn, *args)
