"""Shared API dependencies"""
from fastapi import Request

from snapmatch.services.realtime.event_bus import EventBus


def get_event_bus(request: Request) -> EventBus:
    """The process-wide event bus created in the application lifespan"""
    return request.app.state.event_bus
