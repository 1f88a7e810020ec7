"""Firestore repository for organization records."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .base import FirestoreClientBoundary, OperationResult, TimestampedRepository, ValidationError
from .models import Organization, create_organization


class OrganizationRepository(TimestampedRepository):
    """Organization repository encapsulating Firestore access patterns."""

    def __init__(self, client: FirestoreClientBoundary, *, time_func=None):
        super().__init__(client, "organizations", time_func=time_func)
        self._required_fields = ["name"]

    # CRUD -----------------------------------------------------------------

    def get_by_id(self, org_id: str) -> OperationResult[Organization]:
        """Get an organization by ID."""

        try:
            doc = self.collection.document(org_id).get()
            if not doc.exists:
                return self._not_found("Organization")

            return OperationResult[Organization](success=True, data=create_organization(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get organization", exc)

    def get_many(self, org_ids: Iterable[str]) -> OperationResult[Dict[str, Organization]]:
        """Resolve several organizations in one batched round trip.

        Missing ids are absent from the returned mapping.
        """

        unique: List[str] = []
        for org_id in org_ids:
            if org_id and org_id not in unique:
                unique.append(org_id)

        if not unique:
            return OperationResult(success=True, data={})

        try:
            refs = [self.collection.document(org_id) for org_id in unique]
            found: Dict[str, Organization] = {}
            for doc in self.client.get_all(refs):
                if doc.exists:
                    found[doc.id] = create_organization(doc.to_dict(), doc.id)

            return OperationResult(success=True, data=found)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get organizations", exc)

    def upsert(self, entity: Organization) -> OperationResult[Organization]:
        """Create or merge an organization document."""

        if not entity.id:
            raise ValidationError("Organization id is required")

        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)

            doc_ref = self.collection.document(entity.id)
            doc_ref.set(self._add_timestamps(data, include_created=True), merge=True)

            doc = doc_ref.get()
            return OperationResult[Organization](success=True, data=create_organization(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("upsert organization", exc)

    def update(self, org_id: str, updates: Dict[str, Any]) -> OperationResult[Organization]:
        """Update an organization."""

        try:
            doc_ref = self.collection.document(org_id)
            doc = doc_ref.get()
            if not doc.exists:
                return self._not_found("Organization")

            doc_ref.update(self._add_timestamps(dict(updates)))

            doc = doc_ref.get()
            return OperationResult[Organization](success=True, data=create_organization(doc.to_dict(), doc.id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update organization", exc)

    def delete(self, org_id: str) -> OperationResult[bool]:
        """Delete an organization."""

        try:
            self.collection.document(org_id).delete()

            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete organization", exc)


__all__ = ["OrganizationRepository"]
