"""HTTP API for the Confess.io service."""
