"""
Tests for team and category aggregation.
"""

from tcboard.data_models.competition import Category, Team
from tcboard.data_models.stats import RetiredUserCompetitionStats, UserCompetitionStats
from tcboard.services.aggregation import AggregationEngine
from tcboard.utils.exceptions import ConfigurationError


def fixed_stats(values):
    """Stats calculator returning preset (points, multiplied, units) per user id."""
    def stats_for(user):
        if user.id not in values:
            raise ConfigurationError(user.id, "no stats")
        points, multiplied_points, units = values[user.id]
        return UserCompetitionStats(user.id, points, multiplied_points, units)
    return stats_for


class TestAggregate:

    def test_totals_and_ranks_within_team(self, make_user, gpu):
        users = {
            1: make_user(1, category=Category.NVIDIA_GPU, is_captain=True),
            2: make_user(2, category=Category.AMD_GPU),
        }
        team = Team(1, "Team Alpha", (1, 2))
        summaries = AggregationEngine().aggregate(
            [team], users, {gpu.id: gpu}, fixed_stats({1: (10, 100, 1), 2: (20, 200, 2)})
        )

        summary = summaries[0]
        assert summary.captain_name == "User 1"
        assert (summary.team_points, summary.team_multiplied_points, summary.team_units) == (30, 300, 3)
        assert [(user.user_id, user.rank_in_team) for user in summary.active_users] == [(2, 1), (1, 2)]

    def test_misconfigured_user_skipped(self, make_user, gpu):
        users = {1: make_user(1), 2: make_user(2, category=Category.AMD_GPU)}
        summaries = AggregationEngine().aggregate(
            [Team(1, "Team Alpha", (1, 2))], users, {gpu.id: gpu}, fixed_stats({1: (10, 100, 1)})
        )
        assert [user.user_id for user in summaries[0].active_users] == [1]
        assert summaries[0].team_multiplied_points == 100

    def test_missing_captain_tolerated(self, make_user, gpu):
        summaries = AggregationEngine().aggregate(
            [Team(1, "Team Alpha", (1,))], {1: make_user(1)}, {gpu.id: gpu}, fixed_stats({1: (1, 1, 1)})
        )
        assert summaries[0].captain_name is None

    def test_retirement_preserves_totals(self, make_user, gpu):
        user = make_user(1)
        team = Team(1, "Team Alpha", (1,))
        before = AggregationEngine().aggregate([team], {1: user}, {gpu.id: gpu}, fixed_stats({1: (5, 500, 1)}))[0]

        retired = RetiredUserCompetitionStats(1, 1, "User 1", 1, 5, 500, 1)
        after = AggregationEngine().summarize_team(team.without_member(1), None, [], [retired])

        assert (before.team_points, before.team_multiplied_points, before.team_units) == (5, 500, 1)
        assert (after.team_points, after.team_multiplied_points, after.team_units) == (5, 500, 1)
        assert after.active_users == []

    def test_retired_users_rank_below_active(self, make_user, gpu):
        retired = [RetiredUserCompetitionStats(1, 1, "Old Timer", 9, 100, 10_000, 10)]
        summaries = AggregationEngine().aggregate(
            [Team(1, "Team Alpha", (1,))], {1: make_user(1)}, {gpu.id: gpu},
            fixed_stats({1: (1, 1, 1)}), {1: retired},
        )
        summary = summaries[0]
        assert summary.active_users[0].rank_in_team == 1
        assert summary.retired_users[0].rank_in_team == 2
        assert summary.team_multiplied_points == 10_001


class TestPartitionByCategory:

    def test_every_category_present(self):
        partition = AggregationEngine.partition_by_category([])
        assert list(partition) == Category.all_values()

    def test_groups_active_users(self, make_user, gpu):
        users = {1: make_user(1, category=Category.AMD_GPU), 2: make_user(2, category=Category.WILDCARD)}
        summaries = AggregationEngine().aggregate(
            [Team(1, "Team Alpha", (1, 2))], users, {gpu.id: gpu}, fixed_stats({1: (1, 1, 1), 2: (2, 2, 2)})
        )
        partition = AggregationEngine.partition_by_category(summaries)
        assert [m.summary.user_id for m in partition[Category.AMD_GPU]] == [1]
        assert [m.team_name for m in partition[Category.WILDCARD]] == ["Team Alpha"]
        assert partition[Category.NVIDIA_GPU] == []
