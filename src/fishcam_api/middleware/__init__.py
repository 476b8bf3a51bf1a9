"""
Request-gate middleware for ASGI and WSGI frameworks.

Re-exports middleware classes for convenient imports:
    from fishcam_api.middleware import FishcamGateASGIMiddleware
    from fishcam_api.middleware import FishcamGateWSGIMiddleware
"""

from .asgi import FishcamGateASGIMiddleware
from .wsgi import FishcamGateWSGIMiddleware

__all__ = ["FishcamGateASGIMiddleware", "FishcamGateWSGIMiddleware"]
