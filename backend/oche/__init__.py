"""oche: darts match scoring, elimination brackets and round-robin leagues."""

__version__ = "0.1.0"
