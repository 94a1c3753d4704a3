"""
Revenue leaderboard backend

Ranks apps by the revenue metrics their founders share through
read-only RevenueCat API keys.
"""

__version__ = "1.0.0"
