from typing import Any, Optional

from src.registry.domain.contracts.uow import UoW
from src.registry.domain.entities.feature_set import FeatureSet
from src.registry.domain.entities.source import Source
from src.registry.domain.entities.store import Store
from src.registry.domain.enums import SourceType, StoreType
from src.registry.domain.errors import ValidationError


class CatalogService:
    def __init__(self, uow: UoW):
        self.uow = uow

    def _write(self, fn, entity):
        try:
            result = fn(entity)
            self.uow.commit()
            return result
        except Exception:
            self.uow.rollback()
            raise

    def register_source(
        self,
        source_id: str,
        source_type: str,
        config: Optional[dict[str, Any]] = None,
    ) -> Source:
        if not source_id:
            raise ValidationError("Source id must not be empty")
        try:
            stype = SourceType(source_type)
        except ValueError:
            raise ValidationError(f"Unknown source type {source_type!r}") from None
        return self._write(self.uow.catalog.add_source, Source(id=source_id, source_type=stype, config=config or {}))

    def register_store(
        self,
        name: str,
        store_type: str,
        config: Optional[dict[str, Any]] = None,
    ) -> Store:
        if not name:
            raise ValidationError("Store name must not be empty")
        try:
            stype = StoreType(store_type)
        except ValueError:
            raise ValidationError(f"Unknown store type {store_type!r}") from None
        return self._write(self.uow.catalog.add_store, Store(name=name, store_type=stype, config=config or {}))

    def register_feature_set(self, name: str, version: int) -> FeatureSet:
        if not name or version < 1:
            raise ValidationError("Feature set needs a name and a positive version")
        fs = FeatureSet(id=FeatureSet.make_id(name, version), name=name, version=version)
        return self._write(self.uow.catalog.add_feature_set, fs)

    def list_sources(self):
        return self.uow.catalog.list_sources()

    def list_stores(self):
        return self.uow.catalog.list_stores()

    def list_feature_sets(self):
        return self.uow.catalog.list_feature_sets()
