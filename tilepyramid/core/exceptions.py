"""
tilepyramid Exceptions

Exception hierarchy for error handling.
"""


class PyramidError(Exception):
    """Base exception for tilepyramid"""

    pass


class ValidationError(PyramidError):
    """A required field is missing or malformed"""

    pass


class StorageTypeError(PyramidError):
    """Storage backend cannot be identified, or differs between levels"""

    pass


class BindingError(PyramidError):
    """Level cannot be linked to a tile matrix"""

    pass


class StorageIOError(PyramidError):
    """Backend fetch, store or copy failed"""

    pass


class FormatError(PyramidError):
    """Descriptor or list content is malformed"""

    pass


class StateError(PyramidError):
    """Operation not allowed in the current pyramid or list state"""

    pass
