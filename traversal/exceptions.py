"""
Traversal Exceptions Module
Error kinds raised by the traversal engine
"""

from typing import Optional


class TraversalError(Exception):
    """Base class for all traversal errors"""
    pass


class InvalidCursorError(TraversalError):
    """Raised when checkpoint text is malformed or cannot be parsed"""
    pass


class InvalidArgumentError(TraversalError, ValueError):
    """Raised when a caller passes an invalid argument (e.g. a negative batch hint)"""
    pass


class QueryExecutionError(TraversalError):
    """Raised when the relational backend fails to execute a query"""

    def __init__(self, message: str, statement: Optional[str] = None):
        super().__init__(message)
        self.statement = statement


class CandidateRegressionError(TraversalError):
    """Raised when candidates are older than the checkpoint (time warp)"""
    pass
