"""
Team competition points and leaderboard engine.
"""

__version__ = "1.0.0"
