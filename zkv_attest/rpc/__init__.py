from .ws import WsClient  # noqa: F401

__all__ = ["WsClient"]
