from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Float, BigInteger,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from tcboard.constants import StatsConstants
from tcboard.data_models.competition import Category

Base = declarative_base()

class HardwareRecord(Base):
    __tablename__ = 'hardware'

    id = Column(Integer, primary_key=True)
    hardware_name = Column(String(200), nullable=False, unique=True)
    display_name = Column(String(200), nullable=False)
    multiplier = Column(Float, nullable=False, default=StatsConstants.NEUTRAL_MULTIPLIER)
    average_ppd = Column(BigInteger, nullable=False, default=0)

    __table_args__ = (CheckConstraint('multiplier >= 0', name='ck_hardware_multiplier'),)

    def __repr__(self):
        return f"<HardwareRecord(id={self.id}, name='{self.hardware_name}', multiplier={self.multiplier})>"

class TeamRecord(Base):
    __tablename__ = 'teams'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)

    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<TeamRecord(id={self.id}, name='{self.name}')>"

class TeamMemberRecord(Base):
    """Active membership, ordered by position within the team"""
    __tablename__ = 'team_members'

    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    position = Column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint('team_id', 'user_id'),)

class UserRecord(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    account_name = Column(String(100), nullable=False)
    passkey = Column(String(64), nullable=False)
    display_name = Column(String(100), nullable=False)
    category = Column(SQLEnum(Category), nullable=False)
    hardware_id = Column(Integer, ForeignKey('hardware.id'), nullable=False)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False)
    is_captain = Column(Boolean, default=False)

    registered_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<UserRecord(id={self.id}, display_name='{self.display_name}', team_id={self.team_id})>"

class RawStatsRecord(Base):
    __tablename__ = 'raw_stats'

    user_id = Column(Integer, ForeignKey('users.id'), primary_key=True)
    points = Column(BigInteger, nullable=False, default=0)
    units = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

class BaselineRecord(Base):
    __tablename__ = 'baseline_stats'

    user_id = Column(Integer, ForeignKey('users.id'), primary_key=True)
    points = Column(BigInteger, nullable=False, default=0)
    units = Column(BigInteger, nullable=False, default=0)
    captured_at = Column(DateTime, nullable=False)

class OffsetRecord(Base):
    __tablename__ = 'user_offsets'

    user_id = Column(Integer, ForeignKey('users.id'), primary_key=True)
    points = Column(BigInteger, nullable=False, default=0)
    units = Column(BigInteger, nullable=False, default=0)

class RetiredUserStatsRecord(Base):
    """Frozen contribution of a user removed from a team. Rows are never updated."""
    __tablename__ = 'retired_user_stats'

    retired_id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    display_name = Column(String(100), nullable=False)
    points = Column(BigInteger, nullable=False)
    multiplied_points = Column(BigInteger, nullable=False)
    units = Column(BigInteger, nullable=False)
    retired_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<RetiredUserStatsRecord(retired_id={self.retired_id}, team_id={self.team_id}, name='{self.display_name}')>"

class HourlyStatsRecord(Base):
    __tablename__ = 'hourly_tc_stats'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    utc_timestamp = Column(DateTime, nullable=False)
    points = Column(BigInteger, nullable=False, default=0)
    multiplied_points = Column(BigInteger, nullable=False, default=0)
    units = Column(BigInteger, nullable=False, default=0)

    __table_args__ = (UniqueConstraint('user_id', 'utc_timestamp'),)
