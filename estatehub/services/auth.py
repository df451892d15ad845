"""
Authentication service for sign-up, login and token management.
Resolves bearer tokens to the calling User for every other operation.
"""

from typing import Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from estatehub.repositories.user import UserRepository
from estatehub.models.user import User, UserRole
from estatehub.schemas.user import UserCreate
from estatehub.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token,
)
from estatehub.utils.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    InactiveUserError,
    ValidationError,
    DuplicateResourceError,
)
from jose import JWTError
import uuid
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """
    Identity collaborator: who is calling, and with which role.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    async def register(self, user_data: UserCreate) -> User:
        """
        Sign up a new individual.

        Raises:
            DuplicateResourceError: If the email is already registered
        """
        if await self.user_repo.get_by_email(user_data.email):
            raise DuplicateResourceError("User", user_data.email)

        user = await self.user_repo.create_user({**user_data.model_dump(), "role": UserRole.USER})
        logger.info(f"User registered: {user.email} (ID: {user.id})")
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            ValidationError: If email or password is blank
            InvalidCredentialsError: If credentials are invalid
            InactiveUserError: If the account is inactive
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")
        if not password or not password.strip():
            raise ValidationError("Password is required")

        user = await self.user_repo.get_by_email(email)
        if user and not user.is_active:
            raise InactiveUserError()

        user = await self.user_repo.authenticate_user(email, password)
        if not user:
            logger.warning(f"Failed authentication attempt for email: {email}")
            raise InvalidCredentialsError()

        return user

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """Return (access_token, refresh_token) for the user."""
        access_token = create_access_token(user_id=user.id, email=user.email, role=user.role)
        refresh_token = create_refresh_token(user_id=user.id, email=user.email)
        return access_token, refresh_token

    async def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate and issue tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)
        """
        user = await self.authenticate_user(email, password)
        access_token, refresh_token = self.create_tokens(user)
        return user, access_token, refresh_token

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Issue a new access token from a refresh token.
        The role claim is read again from the database, so a role upgrade
        shows up on the next refresh.

        Raises:
            InvalidTokenError: If the refresh token is invalid
            TokenExpiredError: If the refresh token is expired
            InactiveUserError: If the account is inactive
        """
        user = await self._user_from_token(refresh_token, "refresh")
        return create_access_token(user_id=user.id, email=user.email, role=user.role)

    async def get_current_user(self, token: str) -> User:
        """
        Resolve an access token to its active user.

        Raises:
            InvalidTokenError: If the token is invalid or names no user
            TokenExpiredError: If the token is expired
            InactiveUserError: If the account is inactive
        """
        return await self._user_from_token(token, "access")

    async def _user_from_token(self, token: str, token_type: str) -> User:
        try:
            payload = verify_token(token, token_type=token_type)
            user_id = uuid.UUID(payload.user_id)
        except JWTError as e:
            if "expired" in str(e).lower():
                raise TokenExpiredError()
            raise InvalidTokenError(str(e))
        except ValueError:
            raise InvalidTokenError("Invalid subject claim")

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("User no longer exists")
        if not user.is_active:
            raise InactiveUserError()
        return user
