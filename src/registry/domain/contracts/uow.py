from typing import Protocol
from src.registry.domain.contracts.repositories import CatalogRepo, JobRepo

class UoW(Protocol):
    catalog: CatalogRepo
    jobs: JobRepo

    def commit(self) -> None: ...
    def rollback(self) -> None: ...
