"""Business logic services for the Confess.io application."""
