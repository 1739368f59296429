"""Standalone endpoints (health checks)."""
