"""
Shared fixtures for the competition engine tests.
"""

import pytest

from tcboard.data_models.competition import Category, Hardware, Team, User
from tcboard.services.competition import CompetitionService
from tcboard.services.repository import InMemoryCompetitionRepository


@pytest.fixture
def make_user():
    def _make_user(user_id, team_id=1, category=Category.NVIDIA_GPU, hardware_id=1,
                   display_name=None, is_captain=False):
        return User(
            id=user_id,
            account_name=f"account{user_id}",
            passkey=f"passkey{user_id:08d}abcdef",
            display_name=display_name or f"User {user_id}",
            category=category,
            hardware_id=hardware_id,
            team_id=team_id,
            is_captain=is_captain,
        )
    return _make_user


@pytest.fixture
def gpu():
    return Hardware(id=1, hardware_name="GA102", display_name="RTX 3090", multiplier=1.0)


@pytest.fixture
def slow_gpu():
    return Hardware(id=2, hardware_name="Ellesmere", display_name="RX 580", multiplier=2.5)


@pytest.fixture
def repository():
    return InMemoryCompetitionRepository()


@pytest.fixture
async def service(repository, gpu, slow_gpu):
    """Started service with two empty teams and two hardware entries."""
    await repository.save_hardware(gpu)
    await repository.save_hardware(slow_gpu)
    await repository.save_team(Team(1, "Team Alpha"))
    await repository.save_team(Team(2, "Team Beta"))
    competition_service = CompetitionService(repository)
    await competition_service.start()
    return competition_service
