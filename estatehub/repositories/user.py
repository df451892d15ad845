"""
User repository for authentication, role changes and agency links.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from estatehub.repositories.base import BaseRepository
from estatehub.models.user import User, UserRole, ApprovalStatus
from typing import Optional, List, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for user management with authentication and authorization support.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a new user with email validation and password hashing.

        Args:
            user_data: Dictionary containing user information
                      Must include: email, password, full_name
                      Optional: phone, role (defaults to USER)

        Returns:
            Created user instance

        Raises:
            ValueError: If validation fails or the email is taken
        """
        try:
            email = User.validate_email_format(user_data["email"])

            existing_user = await self.get_by_email(email)
            if existing_user:
                raise ValueError(f"User with email {email} already exists")

            data = dict(user_data)
            password = data.pop("password")
            role = data.get("role", UserRole.USER)

            create_data = {
                **data,
                "email": email,
                "hashed_password": User.hash_password(password),
                "role": role,
                # Individuals have nothing to wait for
                "approval_status": data.get(
                    "approval_status",
                    ApprovalStatus.PENDING if role != UserRole.USER else ApprovalStatus.APPROVED
                ),
                "is_active": data.get("is_active", True),
            }

            created_user = await self.create(create_data)
            logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
            return created_user
        except ValueError as e:
            logger.error(f"User validation failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to create user: {e}")
            raise

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address.

        Args:
            email: Email address to search for

        Returns:
            User instance if found, None otherwise
        """
        try:
            normalized_email = email.lower().strip()
            result = await self.db.execute(select(User).where(User.email == normalized_email))
            user = result.scalar_one_or_none()

            if user:
                logger.debug(f"Retrieved user by email: {email}")
            else:
                logger.debug(f"User with email {email} not found")

            return user
        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User instance if authentication successful, None otherwise
        """
        user = await self.get_by_email(email)

        if not user:
            logger.debug(f"Authentication failed: user {email} not found")
            return None

        if not user.is_active:
            logger.debug(f"Authentication failed: user {email} is inactive")
            return None

        if not user.verify_password(password):
            logger.debug(f"Authentication failed: invalid password for {email}")
            return None

        logger.info(f"User authenticated successfully: {email}")
        return user

    async def set_role(self, user_id: uuid.UUID, role: UserRole, approval_status: ApprovalStatus) -> Optional[User]:
        """Change a user's role inside the caller's transaction."""
        updated_user = await self.update(
            user_id,
            {"role": role, "approval_status": approval_status},
            commit=False
        )
        if updated_user:
            logger.info(f"User {updated_user.email} role set to {role.value} ({approval_status.value})")
        return updated_user

    async def set_approval_status(self, user_id: uuid.UUID, approval_status: ApprovalStatus) -> Optional[User]:
        """Record the outcome of a registration without changing the role."""
        return await self.update(user_id, {"approval_status": approval_status}, commit=False)

    async def link_to_agency(self, agent_id: uuid.UUID, agency_id: uuid.UUID) -> Optional[User]:
        """Point an agent at its agency, replacing any previous link."""
        updated_user = await self.update(agent_id, {"agency_id": agency_id}, commit=False)
        if updated_user:
            logger.info(f"Agent {agent_id} linked to agency {agency_id}")
        return updated_user

    async def get_agents_of(self, agency_id: uuid.UUID) -> List[User]:
        """Agents currently linked to an agency."""
        query = (
            select(User)
            .where(User.agency_id == agency_id, User.role == UserRole.AGENT)
            .order_by(desc(User.created_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
