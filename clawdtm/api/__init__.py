"""HTTP API for clawdtm."""

from clawdtm.api.app import create_app

__all__ = ["create_app"]
