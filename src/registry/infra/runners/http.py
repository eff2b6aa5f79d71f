"""
REST-клиент раннера.

Контракт сервера:
    POST /jobs                -> {"id": "<ext id>"}
    GET  /jobs/{id}           -> {"state": "RUNNING"}
    GET  /jobs/{id}/metrics   -> {"metrics": [{"name": "...", "value": 1.0}]}
    POST /jobs/{id}/cancel    -> 2xx

Таймаут/сеть/5xx/429 -> RunnerUnavailableError, прочие 4xx -> RunnerFatalError.
"""
import logging
from typing import Any, Optional

import httpx

from src.registry.domain.enums import RunnerState
from src.registry.domain.errors import RunnerFatalError, RunnerUnavailableError
from src.registry.domain.value_objects import JobSpec, MetricSample

logger = logging.getLogger(__name__)


class HttpRunner:
    name = "HttpRunner"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def submit(self, spec: JobSpec) -> str:
        data = self._request("POST", "/jobs", json=spec.to_payload())
        ext_id = data.get("id")
        if not ext_id:
            raise RunnerFatalError(f"Runner accepted job {spec.job_id} without returning an id")
        return str(ext_id)

    def poll_status(self, ext_id: str) -> RunnerState:
        data = self._request("GET", f"/jobs/{ext_id}")
        state = RunnerState.parse(data.get("state"))
        if state is RunnerState.UNKNOWN:
            logger.warning("runner job %s reported unrecognised state %r", ext_id, data.get("state"))
        return state

    def poll_metrics(self, ext_id: str) -> list[MetricSample]:
        data = self._request("GET", f"/jobs/{ext_id}/metrics")
        try:
            return [
                MetricSample(name=str(m["name"]), value=float(m["value"]))
                for m in data.get("metrics", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise RunnerFatalError(f"Malformed metrics for runner job {ext_id}: {e}") from e

    def request_abort(self, ext_id: str) -> bool:
        self._request("POST", f"/jobs/{ext_id}/cancel")
        return True

    def _request(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise RunnerUnavailableError(f"{method} {url}: runner timed out") from e
        except httpx.TransportError as e:
            raise RunnerUnavailableError(f"{method} {url}: {e}") from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise RunnerUnavailableError(f"{method} {url}: runner answered {resp.status_code}")
        if resp.status_code >= 400:
            raise RunnerFatalError(f"{method} {url}: runner answered {resp.status_code}: {resp.text}")

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise RunnerFatalError(f"{method} {url}: runner returned non-JSON body") from e
        if not isinstance(data, dict):
            raise RunnerFatalError(f"{method} {url}: expected a JSON object")
        return data
