from threading import Lock

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker

from dentalsync.core import config


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(config.LOCAL_DATABASE_URL, connect_args=_connect_args(config.LOCAL_DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_local_store_schema_checked = False


def ensure_local_store_schema() -> None:
    global _local_store_schema_checked

    if _local_store_schema_checked:
        return

    with _schema_lock:
        if _local_store_schema_checked:
            return

        from dentalsync.models.local_snapshot import LocalSnapshot

        if LocalSnapshot.__tablename__ not in inspect(engine).get_table_names():
            Base.metadata.create_all(bind=engine, tables=[LocalSnapshot.__table__])

        _local_store_schema_checked = True
