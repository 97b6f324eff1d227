from .colors import ColorRotation
from .console import ConsoleReporter
from .formatters import format_diff

__all__ = ["ColorRotation", "ConsoleReporter", "format_diff"]
