"""Session domain exceptions."""


class SessionError(Exception):
    pass


class UserNotFoundError(SessionError):
    """No user record exists (and none could be synchronized) for an identity."""

    def __init__(self, identity_id: str) -> None:
        super().__init__(f"User not found for identity {identity_id}")
        self.identity_id = identity_id


class MembershipNotFoundError(SessionError):
    """The user holds no membership in the requested organization."""

    def __init__(self, org_id: str) -> None:
        super().__init__(f"No membership for organization {org_id}")
        self.org_id = org_id


class SnapshotDecodeError(SessionError):
    """A cached snapshot payload could not be decoded."""
