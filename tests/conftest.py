"""Pytest fixtures shared by the integration and end-to-end tests.

The escrow engine runs against a file-backed SQLite database through
aiosqlite. A file is used rather than ``:memory:`` so that concurrent
sessions see the same data. Row locks (``SELECT ... FOR UPDATE``) are not
available on SQLite, so concurrency here is covered by the in-process
project locks only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator, Awaitable, Callable
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from teamescrow.config import DatabaseConfig, EscrowConfig, RecruitmentConfig
from teamescrow.database.connection import get_engine, get_session_factory
from teamescrow.database.models import Base, TeamSelectionType, UserAccount, UserType
from teamescrow.database.models.base import utcnow
from teamescrow.database.models.user import Availability
from teamescrow.database.queries import users as user_queries
from teamescrow.engine import Actor, ActorRole, EngineContext, EscrowEngine, ProjectDraft, TeamRole
from teamescrow.integrations.directory import SqlUserDirectory
from teamescrow.integrations.notifications import Notification, NotificationEvent


class RecordingNotifier:
    """Notifier that keeps every delivered notification in memory."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)

    def events(self, user_id: UUID | None = None) -> list[NotificationEvent]:
        return [
            n.event_type for n in self.sent if user_id is None or n.user_id == user_id
        ]


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a SQLite async engine on a temporary file with all tables."""
    test_engine = get_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'escrow.db'}"))

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(engine)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def escrow_config() -> EscrowConfig:
    return EscrowConfig(
        release_delay_seconds=600,
        release_sweep_interval_seconds=60,
        refund_tax_rate=Decimal("0.02"),
        minimum_budget=Decimal("1000"),
    )


@pytest_asyncio.fixture
async def escrow(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: RecordingNotifier,
    escrow_config: EscrowConfig,
) -> AsyncGenerator[EscrowEngine, None]:
    """Escrow engine wired to the test database, background jobs not started."""
    ctx = EngineContext(
        session_factory=session_factory,
        directory=SqlUserDirectory(),
        notifier=notifier,
        escrow=escrow_config,
        recruitment=RecruitmentConfig(invitation_expiry_hours=24, max_invites_per_role=5),
    )
    engine = EscrowEngine(ctx)
    yield engine
    await engine.stop()


UserFactory = Callable[..., Awaitable[UserAccount]]


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]) -> UserFactory:
    """Return a coroutine that commits a new user account."""

    async def _make_user(
        name: str = "user",
        user_type: UserType = UserType.client,
        balance: str | Decimal = "0",
        **kwargs: Any,
    ) -> UserAccount:
        async with session_factory() as session:
            async with session.begin():
                return await user_queries.create_user(
                    session,
                    display_name=name,
                    user_type=user_type,
                    balance=Decimal(balance),
                    **kwargs,
                )

    return _make_user


@pytest.fixture
def balance_of(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[UUID], Awaitable[Decimal]]:
    """Return a coroutine reading a user's committed balance."""

    async def _balance_of(user_id: UUID) -> Decimal:
        async with session_factory() as session:
            return await user_queries.get_balance(session, user_id)

    return _balance_of


def actor_for(user: UserAccount) -> Actor:
    role = {
        UserType.client: ActorRole.CLIENT,
        UserType.freelancer: ActorRole.FREELANCER,
        UserType.admin: ActorRole.ADMIN,
    }[user.user_type]
    return Actor(user_id=user.id, role=role)


def make_draft(
    budget: str = "5000",
    roles: list[TeamRole] | None = None,
    selection: TeamSelectionType = TeamSelectionType.manual,
    **overrides: Any,
) -> ProjectDraft:
    roles = roles or [TeamRole(role="Backend Developer", quantity=2, skills=["Python"])]
    start = utcnow() + timedelta(days=1)
    values: dict[str, Any] = {
        "title": "Marketplace rebuild",
        "description": "Rebuild the storefront and API",
        "category": "Full Stack Development",
        "budget": Decimal(budget),
        "team_size": sum(r.quantity for r in roles),
        "team_roles": roles,
        "start_date": start,
        "end_date": start + timedelta(days=30),
        "team_selection_type": selection,
    }
    values.update(overrides)
    return ProjectDraft(**values)


@pytest.fixture
def as_actor() -> Callable[[UserAccount], Actor]:
    """Return a function turning a user account into an engine Actor."""
    return actor_for


@pytest.fixture
def draft() -> Callable[..., ProjectDraft]:
    """Return a function building a valid ProjectDraft with overrides."""
    return make_draft


@dataclass
class Team:
    """A funded manual project with accepted freelancers."""

    client: UserAccount
    freelancers: list[UserAccount]
    project_id: UUID
    admin: UserAccount | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def client_actor(self) -> Actor:
        return actor_for(self.client)

    def freelancer_actor(self, index: int = 0) -> Actor:
        return actor_for(self.freelancers[index])


@pytest_asyncio.fixture
async def team(escrow: EscrowEngine, make_user: UserFactory) -> Team:
    """Client with 10000, a 5000 manual project and two accepted developers."""
    client = await make_user("Cora Client", UserType.client, "10000")
    admin = await make_user("Ada Admin", UserType.admin, "0")
    freelancers = [
        await make_user(
            f"Dev {i}",
            UserType.freelancer,
            "0",
            skills=["Python"],
            availability=Availability.online,
        )
        for i in range(2)
    ]

    project = await escrow.projects.create_project(actor_for(client), make_draft())
    for dev in freelancers:
        await escrow.members.add_member(
            actor_for(client), project.id, dev.id, "Backend Developer"
        )
        await escrow.members.respond_to_invitation(actor_for(dev), project.id, accept=True)

    return Team(client=client, freelancers=freelancers, project_id=project.id, admin=admin)
