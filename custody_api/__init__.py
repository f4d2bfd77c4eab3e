"""
custody_api -- HTTP surface of the custody engine.

A FastAPI application exposing the assignment, transfer and return batch
operations.  Authentication happens upstream; the caller identity arrives
in request headers and is turned into an ``Actor`` by ``deps.get_actor``.
"""

from custody_api.app import create_app

__all__ = ["create_app"]
