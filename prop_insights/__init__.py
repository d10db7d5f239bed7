"""Sports prop insight engine.

Turns raw NBA and NFL game logs into normalized insights for a player or
team prop: hit rates against a line, recent-versus-season trends, home/away
and rest-day splits, and league-relative matchup ranks.

Example:
    >>> from prop_insights.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.db_path)
"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Prop Insights Team"

# Public API exports
from prop_insights.config import Settings, get_settings

__all__ = [
    "Settings",
    "__author__",
    "__version__",
    "get_settings",
]
