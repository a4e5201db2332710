"""ltrfantasy: cached, rate-limited access to public NFL data for a fantasy dashboard."""

__version__ = "0.3.0"
