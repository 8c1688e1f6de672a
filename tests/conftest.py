"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- An in-memory MongoDB (mongomock) patched into every module
- A FastAPI TestClient
- Accounts with auth headers by role
"""
import os

os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")

import mongomock
import pytest
from fastapi.testclient import TestClient

import accounts
import admin
import auth
import bookings
import comments
import counselors
import create_schedules
import cycles
import database
import main
import moderation
import posts
import reminders
import schedules
import stats
from auth import create_token
from config import get_banned_words

DB_MODULES = (database, accounts, admin, auth, bookings, comments, counselors, create_schedules,
              cycles, main, moderation, posts, reminders, schedules, stats)

TEST_BANNED_WORDS = {"spam", "scam", "idiot"}


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Fresh in-memory database for every test."""
    test_db = mongomock.MongoClient()["health_community_test"]
    for module in DB_MODULES:
        monkeypatch.setattr(module, "db", test_db)
    return test_db


@pytest.fixture
def client():
    main.app.dependency_overrides[get_banned_words] = lambda: set(TEST_BANNED_WORDS)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


# ============================================================================
# Accounts
# ============================================================================

@pytest.fixture
def make_account(mongo):
    """Factory: create an account and return (account, auth headers)."""
    counter = {"n": 0}

    def factory(role="Customer", name=None, **extra):
        counter["n"] += 1
        email = f"{role.lower()}{counter['n']}@test.com"
        account = accounts.new_account(name or f"{role} {counter['n']}", email, "testpass123", role, **extra)
        return account, {"Authorization": f"Bearer {create_token(account)}"}

    return factory


@pytest.fixture
def customer(make_account):
    return make_account("Customer")


@pytest.fixture
def other_customer(make_account):
    return make_account("Customer")


@pytest.fixture
def counselor_account(make_account):
    return make_account("Counselor")


@pytest.fixture
def admin_user(make_account):
    return make_account("Admin")
