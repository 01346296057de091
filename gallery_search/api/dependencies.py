from __future__ import annotations

from fastapi import Request

from gallery_search.bootstrap import Services


def get_services(request: Request) -> Services:
    """Services built by the app lifespan; never constructed per request."""
    return request.app.state.services
