"""kidsafe: content safety and moderation pipeline for a children's school app."""

__version__ = "0.1.0"
