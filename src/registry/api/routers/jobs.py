import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.registry.api.schemas import (
    CreateJobRequest,
    JobResponse,
    MetricResponse,
    job_to_response,
)
from src.registry.api.deps import SubmissionPublisher, get_job_service, get_submission_publisher
from src.registry.core.settings import settings
from src.registry.domain.enums import JobStatus
from src.registry.domain.errors import NotFoundError, StateError, ValidationError
from src.registry.services.job_service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    req: CreateJobRequest,
    svc: JobService = Depends(get_job_service),
    publish: SubmissionPublisher = Depends(get_submission_publisher),
):
    try:
        job = svc.create_job(
            source_id=req.source_id,
            store_name=req.store_name,
            feature_set_ids=req.feature_set_ids,
            runner=req.runner,
            job_id=req.job_id,
            default_runner=settings.DEFAULT_RUNNER,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # Публикуем в очередь сабмита. Если publish упал проставляем ERROR.
    try:
        await publish(job.id)
    except Exception as e:
        logger.exception("job %s: failed to enqueue submission", job.id)
        try:
            svc.lifecycle.fail(job.id)
        except StateError as se:
            logger.warning("job %s: could not mark as failed: %s", job.id, se)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Job {job.id} created, but failed to enqueue: {e}",
        )

    return job_to_response(job)


@router.get("", response_model=list[JobResponse])
def list_jobs(
    svc: JobService = Depends(get_job_service),
    status_: Optional[list[str]] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
):
    try:
        statuses = [JobStatus.from_label(s) for s in status_] if status_ else None
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return [job_to_response(j) for j in svc.list_jobs(statuses, limit=limit)]


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    svc: JobService = Depends(get_job_service),
):
    try:
        return job_to_response(svc.get_job(job_id))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{job_id}/metrics", response_model=list[MetricResponse])
def get_metrics(
    job_id: str,
    svc: JobService = Depends(get_job_service),
):
    try:
        return [MetricResponse.model_validate(m) for m in svc.list_metrics(job_id)]
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{job_id}/abort", response_model=JobResponse)
def abort_job(
    job_id: str,
    svc: JobService = Depends(get_job_service),
):
    """
    Запрос на остановку: job уходит в ABORTING (или сразу ABORTED, если раннер его ещё не получил).
    """
    try:
        return job_to_response(svc.request_abort(job_id))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(
    job_id: str,
    svc: JobService = Depends(get_job_service),
):
    try:
        svc.retire_job(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
