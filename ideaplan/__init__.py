"""IdeaPlan: plan versioning, sharing and live collaboration."""

__version__ = "0.1.0"
