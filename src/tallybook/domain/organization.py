"""Organization and membership domain service."""

from typing import Optional

from tallybook.database.base import OrganizationRepository
from tallybook.domain.entities import Organization, Role, User
from tallybook.domain.errors import NotFoundError, ValidationError


class OrganizationService:
    """Service for creating organizations and adding members."""

    def __init__(self, db: OrganizationRepository):
        """Initialize organization service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_or_create_user(self, email: str, name: Optional[str] = None) -> User:
        """Return the user with this email, creating it when missing."""
        email = email.strip()
        if not email:
            raise ValidationError("Email is required")
        user = self.db.get_user_by_email(email)
        if user is None:
            self.db.create_user(email=email, name=name or email.split("@")[0])
            user = self.db.get_user_by_email(email)
        return user

    def create_organization(self, name: str, code: str, owner_email: str) -> Organization:
        """Create an organization owned by the given user.

        The organization becomes the owner's default.

        Raises:
            ValidationError: If name or code is empty
            ConflictError: If the code is already taken
        """
        if not name.strip() or not code.strip():
            raise ValidationError("Organization name and code are required")
        owner = self.get_or_create_user(owner_email)
        organization_id = self.db.create_organization(name=name.strip(), code=code.strip())
        self.db.add_membership(owner.id, organization_id, Role.OWNER, is_default=True)
        return self.db.get_organization(organization_id)

    def add_member(
        self, organization_id: int, email: str, role: Role, is_default: bool = False
    ) -> User:
        """Add a user (created on demand) to an organization."""
        if self.db.get_organization(organization_id) is None:
            raise NotFoundError(f"Organization {organization_id} not found")
        user = self.get_or_create_user(email)
        self.db.add_membership(user.id, organization_id, Role(role), is_default=is_default)
        return user
