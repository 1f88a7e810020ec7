"""Tests for UsersRepository."""

from unittest.mock import Mock

import pytest
from google.api_core.exceptions import PermissionDenied

from adapters.db.firestore.base import FirestoreError, PermissionError, ValidationError
from adapters.db.firestore.models import User
from adapters.db.firestore.users_store import UsersRepository
from domains.session.exceptions import MembershipNotFoundError


class TestUsersRepositoryCrud:
    def test_collection_name(self, users_repo, firestore_client):
        assert users_repo.collection is firestore_client.collection("users")

    def test_create_uses_identity_id_as_document_id(self, users_repo, firestore_client, clock):
        result = users_repo.create(User(identity_id="user_1", email="a@example.com"))

        assert result.success is True
        assert result.data == "user_1"
        stored = firestore_client.raw("users", "user_1")
        assert stored["email"] == "a@example.com"
        assert stored["created_at"] == stored["updated_at"] == int(clock.time() * 1000)

    def test_create_requires_identity_id(self, users_repo):
        with pytest.raises(ValidationError):
            users_repo.create(User(email="a@example.com"))

    def test_get_missing_user_is_not_found(self, users_repo):
        result = users_repo.get_by_id("nobody")
        assert result.success is False
        assert result.not_found is True

    def test_get_by_identity_id(self, users_repo, seeded):
        result = users_repo.get_by_identity_id("u1")
        assert result.data.id == "u1"
        assert result.data.organizations[0].org_id == "A"

    def test_update_supports_field_paths(self, users_repo, seeded, clock):
        clock.advance(5)
        result = users_repo.update("u1", {"preferences.theme": "dark", "job_title": "Counsel"})

        assert result.data.preferences == {"theme": "dark"}
        assert result.data.job_title == "Counsel"
        assert result.data.updated_at == int(clock.time() * 1000)

    def test_update_requires_fields(self, users_repo):
        with pytest.raises(ValidationError):
            users_repo.update("u1", {})

    def test_update_of_missing_document_raises(self, users_repo):
        with pytest.raises(FirestoreError):
            users_repo.update("nobody", {"email": "x"})

    def test_upsert_merges_existing_document(self, users_repo, seeded):
        user = users_repo.get_by_id("u1").data
        user.first_name = "Updated"

        result = users_repo.upsert(user)

        assert result.data.first_name == "Updated"
        assert result.data.login_count == 3
        assert len(result.data.organizations) == 2

    def test_delete(self, users_repo, seeded):
        assert users_repo.delete("u1").data is True
        assert users_repo.get_by_id("u1").not_found is True

    def test_list_ids(self, users_repo, seeded):
        assert users_repo.list_ids().data == ["u1"]

    def test_permission_denied_is_translated(self, clock):
        client = Mock()
        client.collection.return_value.document.return_value.get.side_effect = PermissionDenied("nope")
        repo = UsersRepository(client, time_func=clock)

        with pytest.raises(PermissionError):
            repo.get_by_id("u1")


class TestUsersRepositoryMemberships:
    def test_upsert_membership_adds_entry(self, users_repo, seeded, clock):
        result = users_repo.upsert_membership("u1", "C", "org_analyst", ["read"])

        assert [m.org_id for m in result.data.organizations] == ["A", "B", "C"]
        stored = seeded.raw("users", "u1")["organizations"][2]
        assert stored == {
            "org_id": "C",
            "role": "org_analyst",
            "permissions": ["read"],
            "is_primary": False,
            "joined_at": int(clock.time() * 1000),
            "updated_at": int(clock.time() * 1000),
        }

    def test_membership_mutators_on_missing_user(self, users_repo):
        assert users_repo.upsert_membership("ghost", "A", "org_admin").not_found is True
        assert users_repo.remove_membership("ghost", "A").not_found is True

    def test_set_primary_membership(self, users_repo, seeded):
        result = users_repo.set_primary_membership("u1", "B")
        assert result.data.primary_membership.org_id == "B"
        stored = seeded.raw("users", "u1")["organizations"]
        assert [m["is_primary"] for m in stored] == [False, True]

    def test_set_primary_requires_membership(self, users_repo, seeded):
        with pytest.raises(MembershipNotFoundError):
            users_repo.set_primary_membership("u1", "Z")

    def test_record_login_increments_counter(self, users_repo, seeded, clock):
        users_repo.record_login("u1")
        users_repo.record_login("u1")

        stored = seeded.raw("users", "u1")
        assert stored["login_count"] == 5
        assert stored["last_login_at"] == int(clock.time() * 1000)
