"""
Workers - QThread workers for collaborator commands
"""

from .command_workers import (
    CommandWorker,
    ConnectionTestWorker,
    DatabaseListWorker,
    DiagramExportWorker,
    DiagramWorker,
    QueryWorker,
    SchemaDiagramWorker,
    ServerCommandWorker,
    ServerLogWorker,
    ServerProbeWorker,
    ServerStatusWorker,
)

__all__ = [
    "CommandWorker",
    "ConnectionTestWorker",
    "DatabaseListWorker",
    "DiagramExportWorker",
    "DiagramWorker",
    "QueryWorker",
    "SchemaDiagramWorker",
    "ServerCommandWorker",
    "ServerLogWorker",
    "ServerProbeWorker",
    "ServerStatusWorker",
]
