"""
External Tool Bridge

Process lifecycle for ETABS (launch, poll, close) and E2K generation through
the ETABS sidecar CLI.
"""

__version__ = "0.1.0"

from .bridge import EtabsBridge, EDB_EXTENSIONS, E2K_EXTENSION
from .cli import EtabsCli, run_subprocess
from .models import (
    CliInfo,
    CliResult,
    CloseResult,
    EtabsStatus,
    ExportResult,
    GenerateE2KData,
    OpenResult,
    ValidationData,
)

__all__ = [
    "__version__",
    "EtabsBridge",
    "EtabsCli",
    "run_subprocess",
    "EDB_EXTENSIONS",
    "E2K_EXTENSION",
    "CliInfo",
    "CliResult",
    "CloseResult",
    "EtabsStatus",
    "ExportResult",
    "GenerateE2KData",
    "OpenResult",
    "ValidationData",
]
