"""Base classes and interfaces for Firestore data access layer."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, TypeVar, Generic, Protocol, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from google.api_core.exceptions import NotFound, PermissionDenied


logger = logging.getLogger(__name__)

# Type variables for generic repository pattern
T = TypeVar('T')
K = TypeVar('K')


@dataclass
class OperationResult(Generic[T]):
    """Result of a database operation."""

    success: bool # Success
    data: Optional[T] = None # Data
    error: Optional[str] = None # Error
    error_code: Optional[str] = None # Error code

    @property
    def not_found(self) -> bool:
        """True when the operation reported a missing document."""

        return not self.success and self.error_code == "NOT_FOUND"


class FirestoreError(Exception):
    """Base exception for Firestore operations."""

    def __init__(self, message: str, error_code: str = "FIRESTORE_ERROR", original_error: Optional[Exception] = None):
        """Initialize the Firestore error."""

        super().__init__(message)
        self.error_code = error_code # Error code
        self.original_error = original_error # Original error


class PermissionError(FirestoreError):
    """Permission denied error."""

    def __init__(self, message: str = "Permission denied", original_error: Optional[Exception] = None):
        super().__init__(message, "PERMISSION_DENIED", original_error)


class NotFoundError(FirestoreError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", original_error: Optional[Exception] = None):
        super().__init__(message, "NOT_FOUND", original_error)


class ValidationError(FirestoreError):
    """Data validation error."""

    def __init__(self, message: str = "Validation failed", original_error: Optional[Exception] = None):
        super().__init__(message, "VALIDATION_ERROR", original_error)


class FirestoreClientBoundary(Protocol):
    """Boundary-first protocol for Firestore-like clients used by repositories."""

    def collection(self, name: str) -> Any: ...
    def get_all(self, references: Any) -> Any: ...


def now_ms(time_func: Optional[Callable[[], float]] = None) -> int:
    """Current UTC time as epoch milliseconds."""

    if time_func is not None:
        return int(time_func() * 1000)
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class BaseRepository(ABC, Generic[T, K]):
    """Base repository interface for Firestore operations.

    Every public call is a single remote round trip. SDK failures are converted
    by ``_handle_firestore_error`` and raised; a missing document is reported
    as ``OperationResult(success=False, error_code="NOT_FOUND")``.
    """

    def __init__(self, client: FirestoreClientBoundary, collection_name: str, *, time_func: Optional[Callable[[], float]] = None):
        """Initialize repository with Firestore client and collection name."""

        self._client = client # Firestore client
        self._collection_name = collection_name # Collection name
        self._collection = client.collection(collection_name) # Collection
        self._time_func = time_func # Clock override for tests
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}") # Logger

    @property
    def client(self) -> FirestoreClientBoundary:
        """Firestore client (read-only)."""

        return self._client

    @property
    def collection(self) -> Any:
        """Collection reference (read-only)."""

        return self._collection

    @abstractmethod
    def get_by_id(self, entity_id: K) -> OperationResult[T]:
        """Get entity by ID."""
        pass

    @abstractmethod
    def update(self, entity_id: K, updates: Dict[str, Any]) -> OperationResult[T]:
        """Update entity by ID."""
        pass

    @abstractmethod
    def delete(self, entity_id: K) -> OperationResult[bool]:
        """Delete entity by ID."""
        pass

    def list_ids(self) -> OperationResult[List[str]]:
        """List every document id of the collection."""

        try:
            ids = [doc.id for doc in self.collection.stream()]
            return OperationResult[List[str]](success=True, data=ids)
        except Exception as e:  # noqa: BLE001
            self._handle_firestore_error(f"list {self._collection_name} ids", e)

    def _not_found(self, what: str) -> OperationResult[Any]:
        return OperationResult(success=False, error=f"{what} not found", error_code="NOT_FOUND")

    def _handle_firestore_error(self, operation: str, error: Exception) -> None:
        """Handle Firestore errors and convert to custom exceptions."""

        if isinstance(error, FirestoreError):
            raise error
        if isinstance(error, PermissionDenied):
            self.logger.error(f"Permission denied during {operation}: {error}")
            raise PermissionError(f"Permission denied during {operation}", error)
        elif isinstance(error, NotFound):
            self.logger.error(f"Resource not found during {operation}: {error}")
            raise NotFoundError(f"Resource not found during {operation}", error)
        else:
            self.logger.error(f"Unexpected error during {operation}: {error}")
            raise FirestoreError(f"Error during {operation}: {str(error)}", original_error=error)

    def _validate_required_fields(self, data: Dict[str, Any], required_fields: List[str]) -> None:
        """Validate that required fields are present."""

        missing_fields = [field for field in required_fields if data.get(field) in (None, "")]
        if missing_fields:
            raise ValidationError(f"Missing required fields: {', '.join(missing_fields)}")


class TimestampedRepository(BaseRepository[T, K]):
    """Repository with automatic timestamp management."""

    def _now_ms(self) -> int:
        return now_ms(self._time_func)

    def _add_timestamps(self, data: Dict[str, Any], include_created: bool = False) -> Dict[str, Any]:
        """Stamp ``updated_at`` (and ``created_at`` when requested) in epoch ms."""

        stamp = self._now_ms()
        if include_created and not data.get('created_at'):
            data['created_at'] = stamp
        data['updated_at'] = stamp

        return data
