import pytest

from agenda.models.user import User

ROUTE_MODULES = (
    'agenda.routes.availability_routes',
    'agenda.routes.booking_routes',
    'agenda.routes.session_routes',
)


@pytest.fixture(autouse=True)
def route_environment(monkeypatch: pytest.MonkeyPatch, now) -> None:
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'{module}.ensure_database_ready', lambda: None)
        monkeypatch.setattr(f'{module}.utcnow', lambda: now)


@pytest.fixture
def therapist(db) -> User:
    user = User(email='therapist@practice.com', full_name='Ana Souza', role='therapist')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
