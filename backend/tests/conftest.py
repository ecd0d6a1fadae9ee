"""Shared test fixtures and configuration for backend tests."""
import pytest

from lostfound.chat.directory import ChatDirectory
from lostfound.chat.services import build_services, reset_services, set_services
from lostfound.chat.store import MessageStore
from lostfound.config import AppSettings
from lostfound.db import Database
from lostfound.storage.service import LocalObjectStorage
from lostfound.users.schemas import UserProfile
from lostfound.users.service import UserDirectory

ALICE = UserProfile(
    userId="u-alice",
    firstName="Alice",
    lastName="Lost",
    email="alice@example.com",
    profilePicture="https://cdn.example.com/alice.png",
)
BOB = UserProfile(
    userId="u-bob",
    firstName="Bob",
    lastName="Finder",
    email="bob@example.com",
    profilePicture="https://cdn.example.com/bob.png",
)
CAROL = UserProfile(userId="u-carol", firstName="Carol", lastName="Keys")


@pytest.fixture
def db():
    """A fresh in-memory database per test."""
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def store(db):
    return MessageStore(db)


@pytest.fixture
def directory(db):
    return ChatDirectory(db)


@pytest.fixture
def users(db):
    directory = UserDirectory(db)
    for profile in (ALICE, BOB, CAROL):
        directory.upsert_user(profile)
    return directory


@pytest.fixture
def local_storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "uploads"), "http://testserver/files")


@pytest.fixture
def services(db, users, local_storage):
    """Install chat services backed by the in-memory database.

    ``TestClient(app)`` used without a ``with`` block skips the lifespan,
    so the routes read whatever is installed here.
    """
    chat_services = build_services(AppSettings(), db=db, storage=local_storage)
    set_services(chat_services)
    yield chat_services
    reset_services()
