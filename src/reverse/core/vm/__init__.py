"""
Execution primitives shared by the contract models.

Contracts raise ``VMExecutionError`` subclasses to revert; ``atomic`` restores
every participating contract when an operation reverts.
"""

from .exceptions import VMExecutionError
from .execution import atomic

__all__ = ["VMExecutionError", "atomic"]
