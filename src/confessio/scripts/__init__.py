"""Operational scripts for the Confess.io service."""
