"""Service factory for creating and managing Firestore repositories."""

import logging
from typing import Optional, Dict, Any, Callable

from google.cloud import firestore

from .client import get_firestore_client
from .organization_store import OrganizationRepository
from .users_store import UsersRepository

logger = logging.getLogger(__name__)


class FirestoreServiceFactory:
    """Builds the users and organizations repositories over one Firestore client.

    Repositories are created on first use and memoized per factory instance.
    """

    def __init__(self, client: Optional[firestore.Client] = None, *, config: Optional[Any] = None, time_func: Optional[Callable[[], float]] = None):
        """
        Constructor injection only. Prefer passing a client directly for tests,
        otherwise provide a config to construct a client lazily.
        """

        if client is None and config is None:
            raise ValueError("FirestoreServiceFactory needs a client or a config")

        self._client: Optional[firestore.Client] = client
        self.config = config
        self._time_func = time_func
        self._repositories: Dict[str, Any] = {}

    @property
    def client(self) -> firestore.Client:
        """Get or create Firestore client."""

        if self._client is None:
            self._client = get_firestore_client(self.config)

        return self._client

    def _get_repository(self, key: str, factory: Callable[[firestore.Client], Any]) -> Any:
        """Memoize repository instances by key."""

        if key not in self._repositories:
            self._repositories[key] = factory(self.client)

        return self._repositories[key]

    def get_users_service(self) -> UsersRepository:
        """Get users repository instance."""
        return self._get_repository('users', lambda client: UsersRepository(client, time_func=self._time_func))

    def get_organization_service(self) -> OrganizationRepository:
        """Get organizations repository instance."""
        return self._get_repository('organizations', lambda client: OrganizationRepository(client, time_func=self._time_func))

    def health_check(self) -> Dict[str, Any]:
        """Perform health check on Firestore services."""

        try:
            # collections() is lazy; advancing it forces one lightweight API call
            collections_iter = self.client.collections()
            _ = next(iter(collections_iter), None)

            result = {
                'status': 'healthy',
                'repositories': sorted(self._repositories),
                'client_initialized': self._client is not None,
            }
        except Exception as e:
            logger.error(f"Firestore health check failed: {e}")
            result = {
                'status': 'unhealthy',
                'error': str(e),
                'repositories': [],
                'client_initialized': self._client is not None,
            }

        return result

