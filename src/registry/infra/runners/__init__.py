from src.registry.core.settings import Settings
from src.registry.domain.contracts.runner import RunnerAdapter
from src.registry.infra.runners.direct import DirectRunner
from src.registry.infra.runners.http import HttpRunner


def build_runners(settings: Settings) -> dict[str, RunnerAdapter]:
    runners: dict[str, RunnerAdapter] = {DirectRunner.name: DirectRunner()}
    if settings.RUNNER_HTTP_URL:
        runners[HttpRunner.name] = HttpRunner(
            base_url=settings.RUNNER_HTTP_URL,
            timeout=settings.RUNNER_TIMEOUT_SECONDS,
        )
    return runners


__all__ = ["DirectRunner", "HttpRunner", "build_runners"]
