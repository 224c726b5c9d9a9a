"""
Error kinds raised by the board info core.

I/O and data errors come from the two external collaborators (catalog and
persistence gateway). The rest are rejections of a layout edit: they are
raised before anything is changed, so the working copy is never left
half-mutated.
"""


class BoardInfoError(Exception):
    """Base class for all classified board info errors."""
    pass


class IOFailure(BoardInfoError):
    """Raised when the column catalog or the layout store cannot be reached."""
    pass


class MalformedData(BoardInfoError):
    """Raised when a relation settings payload or a stored layout fails to parse."""
    pass


class ValidationError(BoardInfoError):
    """Raised when user input is invalid (e.g. an empty section title)."""
    pass


class ProtectedEntityError(BoardInfoError):
    """Raised on an attempt to delete the default section or remove a default field."""
    pass


class DuplicateAssignmentError(BoardInfoError):
    """Raised when a column is already bound to a field in the layout."""
    pass


class NotFoundError(BoardInfoError):
    """Raised when a section, field or column id is unknown."""
    pass


class InvalidStateError(BoardInfoError):
    """Raised when an operation is not allowed in the engine's current state."""
    pass
