"""scholia - review comments anchored to rendered Markdown."""

__version__ = "0.1.0"
