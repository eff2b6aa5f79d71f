from sqlalchemy import create_engine, event, MetaData
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from src.registry.core.settings import settings

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

class Base(DeclarativeBase):
    # Задаем naming convention для стабильных diff'ов и корректного drop/alter
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

def _enable_sqlite_fk(dbapi_conn, _record):
    # без этого sqlite игнорирует ON DELETE CASCADE / RESTRICT
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()

def make_engine(dsn: str):
    if dsn.startswith("sqlite"):
        engine = create_engine(dsn, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_fk)
        return engine
    return create_engine(dsn, pool_pre_ping=True)

def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)
