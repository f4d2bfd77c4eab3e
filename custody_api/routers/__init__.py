"""Routers, one per workflow plus signed documents."""
