"""Core configuration for the Confess.io service."""
