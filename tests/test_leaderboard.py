"""
Tests for leaderboard ranking.
"""

from tcboard.data_models.competition import Category, TeamSummary, UserSummary
from tcboard.services.leaderboard import CategoryMember, LeaderboardRanker


def team_summary(team_id, multiplied_points):
    return TeamSummary(
        team_id=team_id,
        team_name=f"Team {team_id}",
        captain_name=None,
        active_users=[],
        retired_users=[],
        team_points=multiplied_points // 10,
        team_multiplied_points=multiplied_points,
        team_units=1,
    )


def member(user_id, multiplied_points, category=Category.NVIDIA_GPU):
    summary = UserSummary(
        user_id=user_id,
        display_name=f"User {user_id}",
        hardware_name="RTX 3090",
        category=category,
        points=multiplied_points,
        multiplied_points=multiplied_points,
        units=1,
    )
    return CategoryMember(summary, "Team Alpha")


class TestRankTeams:

    def test_ranks_descending_with_differentials(self):
        leaderboard = LeaderboardRanker().rank_teams([team_summary(1, 1_500), team_summary(2, 4_500)])

        leader, second = leaderboard
        assert (leader.team_id, leader.rank, leader.diff_to_leader, leader.diff_to_next) == (2, 1, 0, 0)
        assert (second.team_id, second.rank, second.diff_to_leader, second.diff_to_next) == (1, 2, 3_000, 3_000)

    def test_diff_to_next_is_gap_to_entry_above(self):
        leaderboard = LeaderboardRanker().rank_teams(
            [team_summary(1, 100), team_summary(2, 1_000), team_summary(3, 400)]
        )
        assert [entry.team_id for entry in leaderboard] == [2, 3, 1]
        assert leaderboard[2].diff_to_leader == 900
        assert leaderboard[2].diff_to_next == 300

    def test_ties_keep_input_order_with_positional_ranks(self):
        leaderboard = LeaderboardRanker().rank_teams([team_summary(1, 500), team_summary(2, 500)])
        assert [entry.team_id for entry in leaderboard] == [1, 2]
        assert [entry.rank for entry in leaderboard] == [1, 2]
        assert leaderboard[1].diff_to_next == 0

    def test_no_teams(self):
        assert LeaderboardRanker().rank_teams([]) == []


class TestCategoryLeaderboards:

    def test_every_category_present_with_no_users(self):
        leaderboards = LeaderboardRanker().generate_category_leaderboards({})
        assert set(leaderboards) == set(Category.all_values())
        assert all(entries == [] for entries in leaderboards.values())
        assert Category.INVALID not in leaderboards

    def test_ranks_members_within_category(self):
        leaderboards = LeaderboardRanker().generate_category_leaderboards({
            Category.NVIDIA_GPU: [member(1, 10), member(2, 30)],
            Category.AMD_GPU: [member(3, 5, Category.AMD_GPU)],
        })
        nvidia = leaderboards[Category.NVIDIA_GPU]
        assert [entry.user_id for entry in nvidia] == [2, 1]
        assert nvidia[1].diff_to_leader == 20
        assert nvidia[0].team_name == "Team Alpha"
        assert leaderboards[Category.AMD_GPU][0].rank == 1
        assert leaderboards[Category.WILDCARD] == []
