import random

import pytest

from race.logic.settings import RaceSettings
from race.messaging.router import MessageRouter
from race.server.app import create_app
from race.server.settings import RaceServerSettings
from race.session.manager import SessionManager
from race.session.room import RaceRoom
from race.tests.mocks import MockConnection

TEST_SEED = 1234


@pytest.fixture
def race_settings():
    return RaceSettings()


@pytest.fixture
def room(race_settings):
    return RaceRoom(room_id="room1", settings=race_settings, rng=random.Random(TEST_SEED))


@pytest.fixture
def session_manager(race_settings):
    return SessionManager(race_settings, rng_factory=lambda: random.Random(TEST_SEED))


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def server_settings():
    return RaceServerSettings(cors_origins=["http://localhost:8787"])


@pytest.fixture
def app(server_settings, session_manager, message_router):
    return create_app(
        settings=server_settings,
        session_manager=session_manager,
        message_router=message_router,
    )
