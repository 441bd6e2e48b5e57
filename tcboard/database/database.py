import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tcboard.config import Config
from tcboard.data_models.competition import Hardware, Team, User
from tcboard.data_models.stats import (
    BaselineStats, HistoricStatsPoint, OffsetAdjustment, RawStats, RetiredUserCompetitionStats
)
from tcboard.database.models import (
    Base, BaselineRecord, HardwareRecord, HourlyStatsRecord, OffsetRecord, RawStatsRecord,
    RetiredUserStatsRecord, TeamMemberRecord, TeamRecord, UserRecord
)
from tcboard.services.repository import CompetitionRepository
from tcboard.utils.logger import setup_logger


def _to_db_time(value: datetime) -> datetime:
    """SQLite drops tzinfo, so timestamps are stored as naive UTC"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class Database(CompetitionRepository):
    def __init__(self, database_url: Optional[str] = None):
        setup_logger()
        self.logger = logging.getLogger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None
        self._active_session: ContextVar[Optional[AsyncSession]] = ContextVar(
            f"tcboard_session_{id(self)}", default=None
        )

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a read-only database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        Everything done with the yielded session is committed together on
        success, or rolled back together on failure.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    @asynccontextmanager
    async def unit_of_work(self):
        """
        Run every repository call made inside the block on one transaction.

        The session is held in a context variable, so only the task that
        opened the block joins it; concurrent readers keep their own sessions.
        """
        if self._active_session.get() is not None:
            yield
            return
        async with self.transaction() as session:
            token = self._active_session.set(session)
            try:
                yield
            finally:
                self._active_session.reset(token)

    @asynccontextmanager
    async def _reading(self):
        session = self._active_session.get()
        if session is not None:
            yield session
            return
        async with self.get_session() as session:
            yield session

    @asynccontextmanager
    async def _writing(self):
        session = self._active_session.get()
        if session is not None:
            yield session
            await session.flush()
            return
        async with self.transaction() as session:
            yield session

    # Team operations
    async def get_teams(self) -> List[Team]:
        async with self._reading() as session:
            teams = (await session.execute(select(TeamRecord).order_by(TeamRecord.id))).scalars().all()
            members = (await session.execute(
                select(TeamMemberRecord).order_by(TeamMemberRecord.team_id, TeamMemberRecord.position)
            )).scalars().all()

        member_ids: Dict[int, List[int]] = {}
        for member in members:
            member_ids.setdefault(member.team_id, []).append(member.user_id)
        return [Team(team.id, team.name, tuple(member_ids.get(team.id, []))) for team in teams]

    async def save_team(self, team: Team) -> Team:
        """Create or update a team, replacing its membership list"""
        async with self._writing() as session:
            await session.merge(TeamRecord(id=team.id, name=team.name))
            await session.execute(delete(TeamMemberRecord).where(TeamMemberRecord.team_id == team.id))
            for position, user_id in enumerate(team.member_ids):
                session.add(TeamMemberRecord(team_id=team.id, user_id=user_id, position=position))
        return team

    # User operations
    async def get_users(self) -> Dict[int, User]:
        async with self._reading() as session:
            result = await session.execute(select(UserRecord))
            return {
                record.id: User(
                    id=record.id,
                    account_name=record.account_name,
                    passkey=record.passkey,
                    display_name=record.display_name,
                    category=record.category,
                    hardware_id=record.hardware_id,
                    team_id=record.team_id,
                    is_captain=bool(record.is_captain),
                )
                for record in result.scalars().all()
            }

    async def save_user(self, user: User) -> User:
        async with self._writing() as session:
            await session.merge(UserRecord(
                id=user.id,
                account_name=user.account_name,
                passkey=user.passkey,
                display_name=user.display_name,
                category=user.category,
                hardware_id=user.hardware_id,
                team_id=user.team_id,
                is_captain=user.is_captain,
            ))
        return user

    # Hardware operations
    async def get_hardware(self) -> Dict[int, Hardware]:
        async with self._reading() as session:
            result = await session.execute(select(HardwareRecord))
            return {
                record.id: Hardware(
                    id=record.id,
                    hardware_name=record.hardware_name,
                    display_name=record.display_name,
                    multiplier=record.multiplier,
                    average_ppd=record.average_ppd,
                )
                for record in result.scalars().all()
            }

    async def save_hardware(self, hardware: Hardware) -> Hardware:
        async with self._writing() as session:
            await session.merge(HardwareRecord(
                id=hardware.id,
                hardware_name=hardware.hardware_name,
                display_name=hardware.display_name,
                multiplier=hardware.multiplier,
                average_ppd=hardware.average_ppd,
            ))
        return hardware

    # Stats operations
    async def get_all_raw_stats(self) -> Dict[int, RawStats]:
        async with self._reading() as session:
            result = await session.execute(select(RawStatsRecord))
            return {record.user_id: RawStats(record.points, record.units) for record in result.scalars().all()}

    async def save_raw_stats(self, user_id: int, raw: RawStats):
        async with self._writing() as session:
            await session.merge(RawStatsRecord(user_id=user_id, points=raw.points, units=raw.units))

    async def get_all_baselines(self) -> Dict[int, BaselineStats]:
        async with self._reading() as session:
            result = await session.execute(select(BaselineRecord))
            return {
                record.user_id: BaselineStats(
                    record.user_id, record.points, record.units, _from_db_time(record.captured_at)
                )
                for record in result.scalars().all()
            }

    async def save_baseline(self, baseline: BaselineStats):
        async with self._writing() as session:
            await session.merge(BaselineRecord(
                user_id=baseline.user_id,
                points=baseline.points,
                units=baseline.units,
                captured_at=_to_db_time(baseline.captured_at),
            ))

    async def get_all_offsets(self) -> Dict[int, OffsetAdjustment]:
        async with self._reading() as session:
            result = await session.execute(select(OffsetRecord))
            return {
                record.user_id: OffsetAdjustment(record.points, record.units)
                for record in result.scalars().all()
            }

    async def save_offset(self, user_id: int, offset: OffsetAdjustment):
        async with self._writing() as session:
            await session.merge(OffsetRecord(user_id=user_id, points=offset.points, units=offset.units))

    async def clear_offsets(self):
        async with self._writing() as session:
            result = await session.execute(delete(OffsetRecord))
        self.logger.info(f"Cleared {result.rowcount} user offsets")

    # Retired user operations
    async def get_retired_stats(self) -> List[RetiredUserCompetitionStats]:
        async with self._reading() as session:
            result = await session.execute(
                select(RetiredUserStatsRecord).order_by(RetiredUserStatsRecord.retired_id)
            )
            return [
                RetiredUserCompetitionStats(
                    retired_id=record.retired_id,
                    team_id=record.team_id,
                    display_name=record.display_name,
                    user_id=record.user_id,
                    points=record.points,
                    multiplied_points=record.multiplied_points,
                    units=record.units,
                    retired_at=_from_db_time(record.retired_at),
                )
                for record in result.scalars().all()
            ]

    async def save_retired_stats(self, record: RetiredUserCompetitionStats):
        async with self._writing() as session:
            session.add(RetiredUserStatsRecord(
                retired_id=record.retired_id,
                team_id=record.team_id,
                user_id=record.user_id,
                display_name=record.display_name,
                points=record.points,
                multiplied_points=record.multiplied_points,
                units=record.units,
                retired_at=_to_db_time(record.retired_at),
            ))

    async def clear_retired_stats(self):
        async with self._writing() as session:
            result = await session.execute(delete(RetiredUserStatsRecord))
        self.logger.info(f"Cleared {result.rowcount} retired user records")

    # Historic operations
    async def save_historic_point(self, user_id: int, point: HistoricStatsPoint):
        timestamp = _to_db_time(point.timestamp)
        async with self._writing() as session:
            existing = (await session.execute(
                select(HourlyStatsRecord).where(
                    HourlyStatsRecord.user_id == user_id,
                    HourlyStatsRecord.utc_timestamp == timestamp,
                )
            )).scalar_one_or_none()
            if existing is None:
                existing = HourlyStatsRecord(user_id=user_id, utc_timestamp=timestamp)
                session.add(existing)
            existing.points = point.points
            existing.multiplied_points = point.multiplied_points
            existing.units = point.units

    async def get_historic_points(self, user_id: int) -> List[HistoricStatsPoint]:
        async with self._reading() as session:
            result = await session.execute(
                select(HourlyStatsRecord)
                .where(HourlyStatsRecord.user_id == user_id)
                .order_by(HourlyStatsRecord.utc_timestamp)
            )
            return [
                HistoricStatsPoint(
                    _from_db_time(record.utc_timestamp),
                    record.points,
                    record.multiplied_points,
                    record.units,
                )
                for record in result.scalars().all()
            ]
