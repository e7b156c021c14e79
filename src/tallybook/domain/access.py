"""Authentication and organization access checks."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from tallybook.database.base import OrganizationRepository
from tallybook.domain.entities import Membership, Role, User
from tallybook.domain.errors import (
    AuthenticationError,
    InsufficientRoleError,
    NotFoundError,
    PermissionDeniedError,
    not_a_member,
    role_not_allowed,
)

# Roles allowed to run each guarded operation
IMPORT_EXECUTE_ROLES = (Role.OWNER, Role.ADMIN, Role.MEMBER)
RULE_ADMIN_ROLES = (Role.OWNER, Role.ADMIN)
JOURNAL_WRITE_ROLES = (Role.OWNER, Role.ADMIN, Role.ACCOUNTANT, Role.MEMBER)
JOURNAL_APPROVE_ROLES = (Role.OWNER, Role.ADMIN, Role.ACCOUNTANT)
JOURNAL_DELETE_ROLES = (Role.OWNER, Role.ADMIN)
PERIOD_ADMIN_ROLES = (Role.OWNER, Role.ADMIN, Role.ACCOUNTANT)
ACCOUNT_ADMIN_ROLES = (Role.OWNER, Role.ADMIN, Role.ACCOUNTANT)


class SessionProvider(ABC):
    """Source of the currently authenticated user."""

    @abstractmethod
    def get_user(self) -> Optional[User]:
        """Return the authenticated user, or None."""
        pass


class StaticSession(SessionProvider):
    """Session bound to one user, e.g. the user a CLI invocation runs as."""

    def __init__(self, user: Optional[User]):
        self.user = user

    def get_user(self) -> Optional[User]:
        return self.user


class AccessService:
    """Service for authentication and membership checks."""

    def __init__(self, db: OrganizationRepository):
        """Initialize access service.

        Args:
            db: Database instance
        """
        self.db = db

    def require_user(self, session: SessionProvider) -> User:
        """Return the session user.

        Raises:
            AuthenticationError: If nobody is signed in or the user is inactive
        """
        user = session.get_user()
        if user is None or not user.is_active:
            raise AuthenticationError("Authentication required.")
        return user

    def require_membership(
        self, user_id: int, organization_id: int, roles: Optional[Sequence[Role]] = None
    ) -> Membership:
        """Return the user's membership, checking the role when roles are given.

        Raises:
            PermissionDeniedError: If the user is not a member of the organization
            InsufficientRoleError: If the member's role is not in roles
        """
        membership = self.db.get_membership(user_id, organization_id)
        if membership is None:
            raise PermissionDeniedError(not_a_member(organization_id))
        if roles is not None and membership.role not in roles:
            raise InsufficientRoleError(
                role_not_allowed(membership.role.value, tuple(r.value for r in roles))
            )
        return membership

    def default_organization_id(self, user_id: int) -> int:
        """Return the user's default organization.

        Raises:
            NotFoundError: If the user has no default organization
        """
        membership = self.db.get_default_membership(user_id)
        if membership is None:
            raise NotFoundError("Organization not found. Set a default organization first.")
        return membership.organization_id
