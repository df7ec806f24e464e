"""
Exceptions raised by mipmodel
"""


class ModelConsistencyError(RuntimeError):
    """
    Raised when the model would be silently corrupted by continuing.

    Examples are using a variable declared on another model, a solution
    buffer whose length does not match the variable registry, or a row
    bound override on a row that was not the one just added. These are
    programming errors and are not meant to be caught and recovered from.
    """
