"""
Test configuration and fixtures for the listing governance API.
Provides a fresh SQLite database per test, data factories, a frozen clock
and service fixtures.
"""

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from httpx import AsyncClient, ASGITransport

from estatehub.main import app
from estatehub.config import settings
from estatehub.database import Database, get_db
from estatehub.models.user import User, UserRole, ApprovalStatus
from estatehub.models.listing import Listing, ListingStatus, ListingCategory, PropertyType
from estatehub.models.quota import QuotaAccount, ListingLimit
from estatehub.repositories.user import UserRepository
from estatehub.repositories.listing import ListingRepository
from estatehub.repositories.quota import QuotaRepository
from estatehub.schemas.listing import ListingCreate
from estatehub.services.approval import RegistrationWorkflow, LinkingWorkflow
from estatehub.services.auth import AuthService
from estatehub.services.listing import ListingService
from estatehub.services.moderation import AdminModerationGateway
from estatehub.services.notifications import NotificationService
from estatehub.services.quota import QuotaLedger, PublishGate
from estatehub.services.sweeper import ExpirationSweeper
from estatehub.utils.auth import create_access_token
from estatehub.utils.dependencies import get_session_factory


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None):
        self._now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now


@pytest.fixture
def test_settings():
    """Application settings with the background sweeper switched off."""
    return settings.model_copy(update={"sweeper_enabled": False})


@pytest.fixture
async def test_database(tmp_path) -> AsyncGenerator[Database, None]:
    """A file-backed SQLite database so that concurrent sessions really contend."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'estatehub_test.db'}").open()
    await database.create_tables()
    yield database
    await database.drop_tables()
    await database.close()


@pytest.fixture
async def db_session(test_database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_database.session() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def session_factory(test_database: Database):
    return test_database.session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def gate(clock: FrozenClock) -> PublishGate:
    return PublishGate(clock)


# Repository fixtures
@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def listing_repository(db_session: AsyncSession) -> ListingRepository:
    return ListingRepository(db_session)


@pytest.fixture
def quota_repository(db_session: AsyncSession) -> QuotaRepository:
    return QuotaRepository(db_session)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession) -> AuthService:
    return AuthService(db_session)


@pytest.fixture
def ledger(db_session: AsyncSession, gate: PublishGate, test_settings) -> QuotaLedger:
    return QuotaLedger(db_session, gate=gate, settings=test_settings)


@pytest.fixture
def listing_service(db_session: AsyncSession, clock, gate, test_settings) -> ListingService:
    return ListingService(db_session, clock=clock, gate=gate, settings=test_settings)


@pytest.fixture
def notification_service(db_session: AsyncSession) -> NotificationService:
    return NotificationService(db_session)


@pytest.fixture
def registration_workflow(db_session: AsyncSession, clock, ledger) -> RegistrationWorkflow:
    return RegistrationWorkflow(db_session, clock, ledger=ledger)


@pytest.fixture
def linking_workflow(db_session: AsyncSession, clock) -> LinkingWorkflow:
    return LinkingWorkflow(db_session, clock)


@pytest.fixture
def moderation_gateway(db_session: AsyncSession, clock, gate, test_settings, session_factory) -> AdminModerationGateway:
    return AdminModerationGateway(
        db_session,
        clock=clock,
        gate=gate,
        settings=test_settings,
        session_factory=session_factory
    )


@pytest.fixture
def sweeper(session_factory, clock, gate, test_settings) -> ExpirationSweeper:
    return ExpirationSweeper(session_factory, clock=clock, gate=gate, settings=test_settings)


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    session_factory,
    clock: FrozenClock,
    gate: PublishGate
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the test database, clock and publish gate."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.clock = clock
    app.state.publish_gate = gate

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.clock = None
    app.state.publish_gate = None


def auth_headers(user: User) -> dict:
    """Bearer header for a user."""
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


async def reload(session: AsyncSession, *objects) -> None:
    """
    Refresh objects after a refused operation.
    A rollback expires everything in the session, and expired attributes
    cannot be lazy-loaded under asyncio.
    """
    for obj in objects:
        await session.refresh(obj)


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = "testpassword123",
        full_name: str = "Test User",
        role: UserRole = UserRole.USER,
        is_active: bool = True,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "full_name": full_name,
            "role": role,
            "is_active": is_active,
            "approval_status": approval_status,
        }

    @staticmethod
    async def create_user(
        user_repo: UserRepository,
        role: UserRole = UserRole.USER,
        email: str = None,
        password: str = "testpassword123",
        full_name: str = "Test User",
        is_active: bool = True,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    ) -> User:
        """Create a test user in the database."""
        user_data = UserFactory.create_user_data(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            is_active=is_active,
            approval_status=approval_status
        )
        return await user_repo.create_user(user_data)


class QuotaFactory:
    """Factory for creating quota accounts."""

    @staticmethod
    async def create_account(
        quota_repo: QuotaRepository,
        user: User,
        listing_limit: ListingLimit = ListingLimit.finite(15),
        listings_used: int = 0,
        gold_cards: int = 0,
        featured_listings: int = 0
    ) -> QuotaAccount:
        return await quota_repo.create({
            "user_id": user.id,
            "listing_limit": listing_limit,
            "listings_used": listings_used,
            "gold_cards": gold_cards,
            "featured_listings": featured_listings,
        })


class ListingFactory:
    """Factory for creating test listings."""

    @staticmethod
    def create_listing_data(
        title: str = "Sea-view apartment",
        description: str = "Three bedroom apartment facing the lagoon.",
        category: ListingCategory = ListingCategory.FOR_SALE,
        property_type: PropertyType = PropertyType.APARTMENT,
        price: Decimal = Decimal("8500000.00"),
        city: str = "Grand Baie",
        area: int = 140,
        bedrooms: int = 3,
        bathrooms: int = 2,
        **flags
    ) -> dict:
        return {
            "title": title,
            "description": description,
            "category": category,
            "property_type": property_type,
            "price": price,
            "city": city,
            "area": area,
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            **flags,
        }

    @staticmethod
    def draft(**overrides) -> ListingCreate:
        return ListingCreate(**ListingFactory.create_listing_data(**overrides))

    @staticmethod
    async def create_listing(
        listing_repo: ListingRepository,
        owner: User,
        status: ListingStatus = ListingStatus.PENDING,
        expires_at: Optional[datetime] = None,
        **overrides
    ) -> Listing:
        """Insert a listing directly in the given status, bypassing the lifecycle."""
        data = ListingFactory.create_listing_data(**overrides)
        return await listing_repo.create({
            **data,
            "owner_id": owner.id,
            "status": status,
            "expires_at": expires_at,
        })


@pytest.fixture
def user_factory() -> UserFactory:
    return UserFactory()


@pytest.fixture
def listing_factory() -> ListingFactory:
    return ListingFactory()


@pytest.fixture
def quota_factory() -> QuotaFactory:
    return QuotaFactory()


@pytest.fixture
async def admin(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, role=UserRole.ADMIN, full_name="Site Admin")


@pytest.fixture
async def agent(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, role=UserRole.AGENT, full_name="Jean Agent")


@pytest.fixture
async def agency(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, role=UserRole.AGENCY, full_name="Coastal Realty")


@pytest.fixture
async def individual(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, role=UserRole.USER, full_name="Private Seller")


@pytest.fixture
async def agent_account(quota_repository: QuotaRepository, agent: User) -> QuotaAccount:
    return await QuotaFactory.create_account(quota_repository, agent)
