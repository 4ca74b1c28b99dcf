"""prismaflow HTTP API."""

from prismaflow.api.routes import configure_store, create_app, get_store, router

__all__ = ["router", "create_app", "configure_store", "get_store"]
