"""REST API package: FastAPI app factory, routes and response schemas."""

from xportal.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
