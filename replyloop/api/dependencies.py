"""FastAPI dependency exposing the wired services from app state."""

from fastapi import Request

from replyloop.core.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
