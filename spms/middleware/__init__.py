from .base import SpmsMiddleware
from .timing import TimingMiddleware

__all__ = ['SpmsMiddleware', 'TimingMiddleware']
