"""Helper methods for the API."""

from fastapi import Request

from s3browser.connections import BrowserConnections


def get_connections(request: Request) -> BrowserConnections:
    """Dependency returning the connections created in the app lifespan"""
    return request.app.state.connections
