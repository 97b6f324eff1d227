from .request_log import RequestLogger

__all__ = ["RequestLogger"]
