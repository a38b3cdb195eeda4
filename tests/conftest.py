import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from workout_planner.database import get_session
from workout_planner.main import app
from workout_planner.services.repository import ProgramRepository


@pytest.fixture(name="engine")
def engine_fixture():
    import workout_planner.models as _models  # noqa: F401

    # StaticPool ensures the in-memory DB is shared across all connections,
    # including those spawned by TestClient's anyio thread pool.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="repo")
def repo_fixture(session: Session) -> ProgramRepository:
    return ProgramRepository(session)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(name="program")
def program_fixture(repo: ProgramRepository) -> ProgramRepository:
    """A small two-day program: Push (bench + flyes) and Pull (rows), plus an empty Rest day."""
    chest = repo.create_workout_group("Chest", "Chest exercises")
    back = repo.create_workout_group("Back")
    bench = repo.create_exercise(chest.id, "Bench Press", "Flat barbell")
    flyes = repo.create_exercise(chest.id, "Cable Flyes")
    rows = repo.create_exercise(back.id, "Barbell Row")

    push = repo.add_day("Push")
    pull = repo.add_day("Pull")
    repo.add_day("Rest")
    repo.add_day_workout_group(push.id, chest.id)
    repo.add_day_workout_group(pull.id, back.id)

    repo.create_workout_set(push.id, bench.id, reps=8, weight=80.0, rir=2)
    repo.create_workout_set(push.id, bench.id, reps=8, weight=80.0, rir=1)
    repo.create_workout_set(push.id, flyes.id, reps=12, weight=15.0, rir=3, notes="slow negatives")
    repo.create_workout_set(pull.id, rows.id, reps=10, weight=60.0, rir=2)
    repo.persist()
    return repo
