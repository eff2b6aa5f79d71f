from fastapi import APIRouter, Depends, HTTPException, status

from src.registry.api.deps import get_catalog_service
from src.registry.api.schemas import (
    FeatureSetRequest, FeatureSetResponse,
    SourceRequest, SourceResponse,
    StoreRequest, StoreResponse,
)
from src.registry.domain.errors import ValidationError
from src.registry.services.catalog_service import CatalogService


router = APIRouter(prefix="/api/catalog", tags=["catalog"])


def _source_resp(s) -> SourceResponse:
    return SourceResponse(id=s.id, source_type=str(s.source_type), config=s.config, created_at=s.created_at)


def _store_resp(s) -> StoreResponse:
    return StoreResponse(name=s.name, store_type=str(s.store_type), config=s.config, created_at=s.created_at)


@router.post("/sources", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
def register_source(
    req: SourceRequest,
    svc: CatalogService = Depends(get_catalog_service),
):
    try:
        return _source_resp(svc.register_source(req.id, req.source_type, req.config))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/sources", response_model=list[SourceResponse])
def list_sources(svc: CatalogService = Depends(get_catalog_service)):
    return [_source_resp(s) for s in svc.list_sources()]


@router.post("/stores", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
def register_store(
    req: StoreRequest,
    svc: CatalogService = Depends(get_catalog_service),
):
    try:
        return _store_resp(svc.register_store(req.name, req.store_type, req.config))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/stores", response_model=list[StoreResponse])
def list_stores(svc: CatalogService = Depends(get_catalog_service)):
    return [_store_resp(s) for s in svc.list_stores()]


@router.post("/feature-sets", response_model=FeatureSetResponse, status_code=status.HTTP_201_CREATED)
def register_feature_set(
    req: FeatureSetRequest,
    svc: CatalogService = Depends(get_catalog_service),
):
    try:
        return FeatureSetResponse.model_validate(svc.register_feature_set(req.name, req.version))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/feature-sets", response_model=list[FeatureSetResponse])
def list_feature_sets(svc: CatalogService = Depends(get_catalog_service)):
    return [FeatureSetResponse.model_validate(f) for f in svc.list_feature_sets()]
