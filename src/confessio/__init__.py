"""Confess.io: anonymous confessions with AI-assisted moderation."""
