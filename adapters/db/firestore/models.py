"""Domain models for Firestore entities."""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from app_platform.contracts import OrgSize, OrgType, SubscriptionPlan, SubscriptionStatus, UserStatus
from domains.session.models import OrganizationMembership


@dataclass
class BaseEntity:
    """Base entity with common fields."""

    id: Optional[str] = field(default=None, kw_only=True)
    created_at: Optional[int] = field(default=None, kw_only=True)
    updated_at: Optional[int] = field(default=None, kw_only=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to dictionary."""

        result = {}
        for key, value in self.__dict__.items():
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create entity from dictionary."""

        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class User(BaseEntity):
    """User record; the document id is the identity-provider user id."""

    identity_id: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    is_active: bool = True
    deactivated_at: Optional[int] = None
    role: Optional[str] = None # Global role overriding membership roles
    user_type: str = "standard"
    organizations: List[OrganizationMembership] = field(default_factory=list)
    preferences: Dict[str, Any] = field(default_factory=dict)
    security: Dict[str, Any] = field(default_factory=dict)
    activity: Dict[str, Any] = field(default_factory=dict)
    login_count: int = 0
    last_login_at: Optional[int] = None

    def __post_init__(self):
        """Coerce stored membership maps into value objects."""

        self.organizations = [
            m if isinstance(m, OrganizationMembership) else OrganizationMembership.from_dict(m)
            for m in (self.organizations or [])
        ]
        if not self.identity_id and self.id:
            self.identity_id = self.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to a Firestore document."""

        result = super().to_dict()
        result.pop("id", None)
        result["organizations"] = [m.to_dict() for m in self.organizations]
        return result

    @property
    def status(self) -> str:
        """Account status derived from the activation flags."""

        return UserStatus.ACTIVE.value if self.is_active else UserStatus.INACTIVE.value

    @property
    def primary_membership(self) -> Optional[OrganizationMembership]:
        for membership in self.organizations:
            if membership.is_primary:
                return membership
        return None


@dataclass
class Organization(BaseEntity):
    """Organization record; the document id is the identity-provider organization id."""

    name: str = ""
    slug: Optional[str] = None
    org_type: str = OrgType.ENTERPRISE.value
    industry: Optional[str] = None
    size: str = OrgSize.MEDIUM.value
    website: Optional[str] = None
    logo_url: Optional[str] = None
    plan: str = SubscriptionPlan.STARTER.value
    subscription_status: str = SubscriptionStatus.ACTIVE.value
    seats: int = 0
    used_seats: int = 0
    features: List[str] = field(default_factory=list)
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.pop("id", None)
        return result


def create_user(data: Dict[str, Any], doc_id: Optional[str] = None) -> User:
    """Create User from dictionary data."""

    user = User.from_dict(data)
    if doc_id:
        user.id = doc_id
        if not user.identity_id:
            user.identity_id = doc_id
    return user


def create_organization(data: Dict[str, Any], doc_id: Optional[str] = None) -> Organization:
    """Create Organization from dictionary data."""

    org = Organization.from_dict(data)
    if doc_id:
        org.id = doc_id
    return org


__all__ = [
    "BaseEntity",
    "Organization",
    "OrganizationMembership",
    "User",
    "create_organization",
    "create_user",
]
