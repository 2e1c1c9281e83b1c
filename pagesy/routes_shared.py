from fastapi import Request

from .broker import ChapterPublisher
from .hub import EventHub


def get_hub(request: Request) -> EventHub:
    return request.app.state.hub


def get_publisher(request: Request) -> ChapterPublisher:
    return request.app.state.publisher


__all__ = ["get_hub", "get_publisher"]
