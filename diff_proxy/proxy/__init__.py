from .server import create_app
from .multi import build_app, run_multi_instance

__all__ = [
    "create_app",
    "build_app",
    "run_multi_instance",
]
