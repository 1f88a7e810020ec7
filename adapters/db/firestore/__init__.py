"""Firestore repositories and factories."""

# Adapters Firestore package exports
from .service_factory import FirestoreServiceFactory  # noqa: F401
from .users_store import UsersRepository  # noqa: F401
from .organization_store import OrganizationRepository  # noqa: F401
from .models import Organization, OrganizationMembership, User  # noqa: F401
from .base import FirestoreError, NotFoundError, OperationResult  # noqa: F401
