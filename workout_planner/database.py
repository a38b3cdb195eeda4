from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from workout_planner.config import get_settings


def build_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    new_engine = create_engine(database_url, connect_args=connect_args)

    # Enable WAL mode for better read performance
    if database_url.startswith("sqlite") and ":memory:" not in database_url:
        with new_engine.connect() as _conn:
            _conn.exec_driver_sql("PRAGMA journal_mode=WAL")
    return new_engine


engine = build_engine(get_settings().database_url)


def create_db_and_tables(target: Engine | None = None) -> None:
    import workout_planner.models as _models  # noqa: F401  (registers tables with SQLModel metadata)

    SQLModel.metadata.create_all(target or engine)


def get_session():
    with Session(engine) as session:
        yield session
