"""
Execution engine adapters.
"""

from testgate.infrastructure.execution.filesystem import FilesystemExecutionEngine
from testgate.infrastructure.execution.memory import InMemoryExecutionEngine

__all__ = [
    "InMemoryExecutionEngine",
    "FilesystemExecutionEngine",
]
