"""
Services package for the team competition engine.

Normalization, aggregation, ranking, retirement, historic series and the
state-gated summary cache, wired together by CompetitionService.
"""

from .competition import CompetitionService
from .repository import CompetitionRepository, InMemoryCompetitionRepository
from .state import StateGate, SystemState

__all__ = [
    'CompetitionService',
    'CompetitionRepository',
    'InMemoryCompetitionRepository',
    'StateGate',
    'SystemState',
]
