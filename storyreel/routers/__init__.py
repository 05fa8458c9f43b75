"""Routers package initialization"""
from .renders import router as renders_router
from .websocket import router as websocket_router

__all__ = ["renders_router", "websocket_router"]
