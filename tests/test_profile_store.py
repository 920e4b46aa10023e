import json
from datetime import datetime, timezone

import pytest

from swaptitude.models.profile import ProfileSnapshot
from swaptitude.services.profile_store import ProfileStore
from swaptitude.utils.exceptions import ProfileStoreError
from swaptitude.utils.files import atomic_write_json


@pytest.fixture
def store(tmp_path):
    return ProfileStore(tmp_path / "profiles.json")


def test_unknown_account_returns_none(store):
    assert store.get_profile("missing") is None


def test_save_and_load_profile(store):
    profile = ProfileSnapshot(
        account_id="u1",
        is_verified=False,
        created_at=datetime(2025, 4, 6, 9, 30, tzinfo=timezone.utc),
        full_name="Keerthi Reddy",
        username="keerthi",
    )
    store.save_profile(profile)

    loaded = store.get_profile("u1")
    assert loaded == profile

    doc = json.loads(store.path.read_text(encoding="utf-8"))["profiles"]["u1"]
    assert doc["accountId"] == "u1"
    assert doc["isVerified"] is False
    assert doc["fullName"] == "Keerthi Reddy"


def test_mark_verified_and_delete(store):
    store.save_profile(ProfileSnapshot(account_id="u1"))

    updated = store.mark_verified("u1")
    assert updated.is_verified is True
    assert store.get_profile("u1").is_verified is True
    assert store.mark_verified("nobody") is None

    assert store.delete_profile("u1") is True
    assert store.delete_profile("u1") is False
    assert store.get_profile("u1") is None


def test_corrupt_store_raises(store):
    store.path.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(ProfileStoreError):
        store.get_profile("u1")


def test_naive_created_at_is_utc():
    profile = ProfileSnapshot.model_validate({"accountId": "u1", "createdAt": "2025-04-06T09:30:00"})
    assert profile.created_at.tzinfo == timezone.utc


def test_rating_display():
    assert ProfileSnapshot(account_id="u1").rating_display == "Not rated yet"
    assert ProfileSnapshot(account_id="u1", rating=4.26, review_count=3).rating_display == "4.3"


def test_atomic_write_json_replaces_file_without_leftovers(tmp_path):
    target = tmp_path / "nested" / "doc.json"
    atomic_write_json(target, {"name": "Zoë"})
    atomic_write_json(target, {"name": "Ana"})

    assert json.loads(target.read_text(encoding="utf-8")) == {"name": "Ana"}
    assert [p.name for p in target.parent.iterdir()] == ["doc.json"]
