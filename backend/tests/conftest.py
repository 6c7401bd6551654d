import os
from datetime import date, datetime, time, timedelta

# App engine must never touch a file-backed database during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from teelottery.database import get_session  # noqa: E402
from teelottery.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped and recreated per test so every test starts empty
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    import teelottery.models  # noqa: F401

    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Builders
# ============================================================================


@pytest.fixture
def make_member(session: Session):
    from teelottery.models.member import Member

    counter = {"n": 0}

    def _make(first_name=None, last_name="Player", member_class="REGULAR"):
        counter["n"] += 1
        member = Member(
            first_name=first_name or f"Member{counter['n']}",
            last_name=last_name,
            member_number=f"M{counter['n']:04d}",
            member_class=member_class,
        )
        session.add(member)
        session.commit()
        session.refresh(member)
        return member

    return _make


@pytest.fixture
def make_teesheet(session: Session):
    """
    Build a teesheet for a date with blocks at the given "HH:MM" start times.

    Returns (teesheet, config, [blocks]).
    """
    from teelottery.models.teesheet import ConfigType, Teesheet, TeesheetConfig, TimeBlock

    def _make(
        on_date: date,
        starts=("08:00",),
        max_members=4,
        start_time="08:00",
        end_time="16:00",
        config_type=ConfigType.REGULAR,
    ):
        config = TeesheetConfig(
            name=f"Config {on_date.isoformat()}",
            config_type=config_type,
            start_time=start_time,
            end_time=end_time,
        )
        session.add(config)
        session.commit()
        session.refresh(config)

        teesheet = Teesheet(date=on_date, config_id=config.id)
        session.add(teesheet)
        session.commit()
        session.refresh(teesheet)

        blocks = []
        for index, start in enumerate(starts):
            hours, minutes = (int(p) for p in start.split(":"))
            start_at = time(hours, minutes)
            block = TimeBlock(
                teesheet_id=teesheet.id,
                start_time=start_at,
                end_time=(datetime.combine(on_date, start_at) + timedelta(minutes=10)).time(),
                max_members=max_members,
                sort_order=index,
            )
            session.add(block)
            blocks.append(block)
        session.commit()
        for block in blocks:
            session.refresh(block)
        return teesheet, config, blocks

    return _make
