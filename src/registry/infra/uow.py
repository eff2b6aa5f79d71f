from sqlalchemy.orm import Session

from src.registry.infra.repositories import SqlCatalogRepo, SqlJobRepo

class SqlAlchemyUoW:
    def __init__(self, db: Session):
        self.db = db

        self.catalog = SqlCatalogRepo(db)
        self.jobs = SqlJobRepo(db)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
