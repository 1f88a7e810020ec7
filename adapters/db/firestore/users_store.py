"""Firestore repository for user records and their organization memberships."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from google.cloud import firestore

from domains.session import memberships as membership_rules

from .base import FirestoreClientBoundary, OperationResult, TimestampedRepository, ValidationError
from .models import User, create_user


class UsersRepository(TimestampedRepository):
    """Users repository keyed by identity-provider user id.

    Membership mutators are single read-modify-write cycles without a
    transaction, so concurrent edits to the same user are last-write-wins.
    """

    def __init__(self, client: FirestoreClientBoundary, *, time_func=None):
        super().__init__(client, "users", time_func=time_func)
        self._required_fields = ["identity_id"]

    # CRUD -----------------------------------------------------------------

    def create(self, entity: User) -> OperationResult[str]:
        """Create a user document, using the identity id as document id."""

        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)

            doc_id = entity.id or entity.identity_id
            payload = self._add_timestamps(data, include_created=True)
            self.collection.document(doc_id).set(payload)

            self.logger.info("Created user record", extra={"user_id": doc_id})
            return OperationResult[str](success=True, data=doc_id)
        except Exception as exc:  # noqa: BLE001 - delegated to handler
            self._handle_firestore_error("create user", exc)

    def get_by_id(self, user_id: str) -> OperationResult[User]:
        """Get a user by document id."""

        try:
            doc = self.collection.document(user_id).get()
            if not doc.exists:
                return self._not_found("User")

            return OperationResult[User](success=True, data=create_user(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get user by id", exc)

    def get_by_identity_id(self, identity_id: str) -> OperationResult[User]:
        """Get a user by the ``identity_id`` field."""

        try:
            query = self.collection.where("identity_id", "==", identity_id).limit(1)

            docs = list(query.stream())
            if not docs:
                return self._not_found("User")

            doc = docs[0]
            return OperationResult[User](success=True, data=create_user(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get user by identity id", exc)

    def update(self, user_id: str, updates: Dict[str, Any]) -> OperationResult[User]:
        """Apply a partial field-path update (``{"activity.last_active_at": ...}``)."""

        if not updates:
            raise ValidationError("No fields to update")

        try:
            payload = self._add_timestamps(dict(updates))
            self.collection.document(user_id).update(payload)

            return self.get_by_id(user_id)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update user", exc)

    def upsert(self, entity: User) -> OperationResult[User]:
        """Create or merge a user document."""

        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)

            doc_id = entity.id or entity.identity_id
            doc_ref = self.collection.document(doc_id)
            payload = self._add_timestamps(data, include_created=True)
            doc_ref.set(payload, merge=True)

            doc = doc_ref.get()
            return OperationResult[User](success=True, data=create_user(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("upsert user", exc)

    def delete(self, user_id: str) -> OperationResult[bool]:
        """Delete a user document."""

        try:
            self.collection.document(user_id).delete()

            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete user", exc)

    # Memberships ----------------------------------------------------------

    def upsert_membership(
        self,
        user_id: str,
        org_id: str,
        role: str,
        permissions: Optional[Iterable[str]] = None,
    ) -> OperationResult[User]:
        """Add or update one membership on the user's list."""

        return self._rewrite_memberships(
            user_id,
            "upsert membership",
            lambda current: membership_rules.upsert_membership(
                current, org_id, role, permissions, self._now_ms()
            ),
        )

    def remove_membership(self, user_id: str, org_id: str) -> OperationResult[User]:
        """Remove one membership, promoting a new primary if needed."""

        return self._rewrite_memberships(
            user_id,
            "remove membership",
            lambda current: membership_rules.remove_membership(current, org_id),
        )

    def set_primary_membership(self, user_id: str, org_id: str) -> OperationResult[User]:
        """Mark ``org_id`` as the user's only primary membership.

        Raises ``MembershipNotFoundError`` when the user is not a member.
        """

        return self._rewrite_memberships(
            user_id,
            "set primary membership",
            lambda current: membership_rules.set_primary(current, org_id),
        )

    def record_login(self, user_id: str) -> OperationResult[bool]:
        """Bump the login counter and stamp the last-login time."""

        try:
            stamp = self._now_ms()
            self.collection.document(user_id).update(
                {
                    "login_count": firestore.Increment(1),
                    "last_login_at": stamp,
                    "activity.last_active_at": stamp,
                    "updated_at": stamp,
                }
            )

            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("record login", exc)

    def _rewrite_memberships(self, user_id: str, operation: str, mutate) -> OperationResult[User]:
        current = self.get_by_id(user_id)
        if not current.success or current.data is None:
            return current

        updated = mutate(current.data.organizations)

        try:
            stamp = self._now_ms()
            self.collection.document(user_id).update(
                {
                    "organizations": [m.to_dict() for m in updated],
                    "updated_at": stamp,
                }
            )
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error(operation, exc)

        user = current.data
        user.organizations = updated
        user.updated_at = stamp
        return OperationResult[User](success=True, data=user)


__all__ = ["UsersRepository"]
