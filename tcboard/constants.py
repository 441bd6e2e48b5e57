"""
Engine-wide constants for the team competition leaderboard.

Collects the magic numbers used by the normalizer, the ranking code and the
snapshot cache so they live in one place.
"""

class StatsConstants:
    """Constants related to competition stats."""
    
    # Zero values used for missing baselines/offsets and clamping
    DEFAULT_POINTS = 0
    DEFAULT_MULTIPLIED_POINTS = 0
    DEFAULT_UNITS = 0
    
    # Multiplier applied when a hardware entry is neutral
    NEUTRAL_MULTIPLIER = 1.0

class RankingConstants:
    """Constants for ranking and leaderboard output."""
    
    # Rank given to the first entry of any leaderboard
    LEADER_RANK = 1
    
    # Rank assigned to summaries before they are ranked within a team
    DEFAULT_RANK = 1

class PrivacyConstants:
    """Constants for masking sensitive user fields in logs."""
    
    # Visible characters of a passkey when logged
    PASSKEY_VISIBLE_CHARS = 8
    PASSKEY_MASK_CHAR = "*"
