import pytest

from src.registry.api.deps import get_runners, get_submission_publisher
from src.registry.infra.runners import DirectRunner
from src.registry.services.poller import JobPoller


def _job_body(**kw) -> dict:
    body = {"source_id": "S1", "store_name": "K1", "feature_set_ids": ["F2:1", "F1:1"]}
    body.update(kw)
    return body


@pytest.mark.anyio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_create_job_enqueues_submission(client, catalog, published):
    r = await client.post("/api/jobs", json=_job_body(job_id="J1"))
    assert r.status_code == 201, r.text

    data = r.json()
    assert data["id"] == "J1"
    assert data["status"] == "PENDING"
    assert data["ext_id"] is None
    assert data["runner"] == "DirectRunner"
    assert data["source_id"] == "S1"
    assert data["sink_name"] == "K1"
    assert data["feature_set_ids"] == ["F1:1", "F2:1"]
    assert data["metrics"] == []
    assert published == ["J1"]


@pytest.mark.anyio
async def test_create_job_with_missing_sink_is_rejected(client, catalog, published):
    r = await client.post("/api/jobs", json=_job_body(store_name="nowhere"))
    assert r.status_code == 400, r.text
    assert "nowhere" in r.text

    r = await client.get("/api/jobs")
    assert r.json() == []
    assert published == []


@pytest.mark.anyio
async def test_create_job_with_unknown_runner_is_rejected(client, catalog):
    r = await client.post("/api/jobs", json=_job_body(runner="FlinkRunner"))
    assert r.status_code == 400, r.text


@pytest.mark.anyio
async def test_failed_enqueue_marks_job_error(client, app, catalog):
    async def broken_publish(job_id: str) -> None:
        raise ConnectionError("rabbit is down")

    app.dependency_overrides[get_submission_publisher] = lambda: broken_publish

    r = await client.post("/api/jobs", json=_job_body(job_id="J1"))
    assert r.status_code == 503, r.text

    r = await client.get("/api/jobs/J1")
    assert r.status_code == 200
    assert r.json()["status"] == "ERROR"
    assert r.json()["finished_at"] is not None


@pytest.mark.anyio
async def test_get_and_list_jobs(client, catalog):
    for job_id in ("a", "b"):
        r = await client.post("/api/jobs", json=_job_body(job_id=job_id))
        assert r.status_code == 201, r.text
    await client.post("/api/jobs/a/abort")

    r = await client.get("/api/jobs/b")
    assert r.status_code == 200
    assert r.json()["status"] == "PENDING"

    r = await client.get("/api/jobs", params={"status": "ABORTED"})
    assert [j["id"] for j in r.json()] == ["a"]

    r = await client.get("/api/jobs", params=[("status", "PENDING"), ("status", "ABORTED")])
    assert sorted(j["id"] for j in r.json()) == ["a", "b"]

    r = await client.get("/api/jobs", params={"limit": 1})
    assert len(r.json()) == 1


@pytest.mark.anyio
async def test_unknown_status_label_is_rejected(client):
    r = await client.get("/api/jobs", params={"status": "SUSPENDED"})
    assert r.status_code == 400, r.text


@pytest.mark.anyio
async def test_missing_job_is_404(client):
    assert (await client.get("/api/jobs/ghost")).status_code == 404
    assert (await client.get("/api/jobs/ghost/metrics")).status_code == 404
    assert (await client.post("/api/jobs/ghost/abort")).status_code == 404
    assert (await client.delete("/api/jobs/ghost")).status_code == 404


@pytest.mark.anyio
async def test_abort_running_job_waits_for_runner(client, running_job, direct_runner, session_factory, runners):
    r = await client.post("/api/jobs/J1/abort")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ABORTING"

    # API раннер не вызывает: abort доставит poller worker'а
    assert str(direct_runner.poll_status(running_job.ext_id)) == "RUNNING"

    poller = JobPoller(session_factory, runners, retry_attempts=1, retry_backoff=0)
    poller.poll_once()
    poller.poll_once()

    r = await client.get("/api/jobs/J1")
    assert r.json()["status"] == "ABORTED"


@pytest.mark.anyio
async def test_abort_does_not_depend_on_api_side_runner(client, app, running_job):
    # отдельный процесс API: свой DirectRunner, который job'а не видел
    app.dependency_overrides[get_runners] = lambda: {DirectRunner.name: DirectRunner()}

    r = await client.post("/api/jobs/J1/abort")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ABORTING"


@pytest.mark.anyio
async def test_abort_finished_job_conflicts(client, catalog):
    await client.post("/api/jobs", json=_job_body(job_id="J1"))

    r = await client.post("/api/jobs/J1/abort")
    assert r.status_code == 200
    assert r.json()["status"] == "ABORTED"

    r = await client.post("/api/jobs/J1/abort")
    assert r.status_code == 409, r.text


@pytest.mark.anyio
async def test_delete_only_finished_jobs(client, catalog):
    await client.post("/api/jobs", json=_job_body(job_id="J1"))

    r = await client.delete("/api/jobs/J1")
    assert r.status_code == 409, r.text

    await client.post("/api/jobs/J1/abort")
    r = await client.delete("/api/jobs/J1")
    assert r.status_code == 204, r.text

    assert (await client.get("/api/jobs/J1")).status_code == 404

    # id удалённого job'а не переиспользуется
    r = await client.post("/api/jobs", json=_job_body(job_id="J1"))
    assert r.status_code == 400, r.text


@pytest.mark.anyio
async def test_job_metrics(client, running_job, direct_runner, session_factory, runners):
    direct_runner.set_metrics(running_job.ext_id, {"rows_processed": 2500, "errors": 0})
    JobPoller(session_factory, runners, retry_attempts=1, retry_backoff=0).poll_once()

    r = await client.get("/api/jobs/J1/metrics")
    assert r.status_code == 200
    assert sorted((m["name"], m["value"]) for m in r.json()) == [("errors", 0.0), ("rows_processed", 2500.0)]


@pytest.mark.anyio
async def test_catalog_endpoints(client):
    r = await client.post(
        "/api/catalog/sources",
        json={"id": "orders", "source_type": "KAFKA", "config": {"topic": "orders"}},
    )
    assert r.status_code == 201, r.text
    assert r.json()["source_type"] == "KAFKA"

    r = await client.post("/api/catalog/sources", json={"id": "files", "source_type": "FILE"})
    assert r.status_code == 400, r.text

    r = await client.post("/api/catalog/stores", json={"name": "online", "store_type": "REDIS"})
    assert r.status_code == 201, r.text

    r = await client.post("/api/catalog/feature-sets", json={"name": "customer", "version": 2})
    assert r.status_code == 201, r.text
    assert r.json()["id"] == "customer:2"

    r = await client.post("/api/catalog/feature-sets", json={"name": "customer", "version": 0})
    assert r.status_code == 422, r.text

    assert [s["id"] for s in (await client.get("/api/catalog/sources")).json()] == ["orders"]
    assert [s["name"] for s in (await client.get("/api/catalog/stores")).json()] == ["online"]
    assert [f["id"] for f in (await client.get("/api/catalog/feature-sets")).json()] == ["customer:2"]

    r = await client.post(
        "/api/jobs",
        json={"source_id": "orders", "store_name": "online", "feature_set_ids": ["customer:2"]},
    )
    assert r.status_code == 201, r.text
    assert r.json()["id"].startswith("orders-to-online-")
