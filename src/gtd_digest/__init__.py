"""Daily GTD digest bot: task files in, one summary message per day out."""

__version__ = "0.1.0"
