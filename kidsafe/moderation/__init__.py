"""Content safety and moderation pipeline."""
