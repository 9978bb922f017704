"""I/O exports."""

from .loader import ConfigLoader, format_path
from .schema import CONFIG_SCHEMA
from .trace import TRACE_FORMATS, export_trace, write_trace

__all__ = [
    "CONFIG_SCHEMA",
    "ConfigLoader",
    "TRACE_FORMATS",
    "export_trace",
    "format_path",
    "write_trace",
]
