"""Exception hierarchy for the mind canvas engine."""


class MindCanvasError(Exception):
    """Base exception for all mind canvas errors."""
    pass


class GenerationError(MindCanvasError):
    """Raised when the generation service fails or returns an unusable payload."""
    pass


class PersistenceError(MindCanvasError):
    """Base exception for canvas storage errors."""
    pass


class CanvasNotFoundError(PersistenceError):
    """Raised when a canvas id does not exist in the store."""
    pass


class NodeNotFoundError(PersistenceError):
    """Raised when a node id does not exist inside a stored canvas."""
    pass


class SubResourceNotFoundError(PersistenceError):
    """Raised when an attachment, source or summary index is out of range."""
    pass
