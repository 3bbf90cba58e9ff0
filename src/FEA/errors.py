"""Exceptions raised by the FEA package.

Every error is raised synchronously by the call that detects it and is never
caught inside the library. Each class also derives from the closest builtin
exception so that callers catching ``ValueError`` or ``KeyError`` keep working.
"""


class FEAError(Exception):
    """Base exception for all FEA errors."""

    pass


class UnsupportedOrderError(FEAError, ValueError):
    """No tabulated quadrature rule exists for the requested order."""

    pass


class UnsupportedElementError(FEAError, NotImplementedError):
    """The element family / dimension combination is not supported."""

    pass


class DegenerateElementError(FEAError, ValueError):
    """Non-positive Jacobian determinant (inverted or collapsed element)."""

    def __init__(self, element_id, det):
        self.element_id = element_id
        self.det = det
        super().__init__(
            f"Element {element_id} has a non-positive Jacobian determinant ({det:.6e}); "
            "check the node ordering"
        )


class DimensionMismatchError(FEAError, ValueError):
    """A user supplied array does not have the expected length."""

    def __init__(self, what: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected a {what} of length {expected}, but received one of length {actual}"
        )


class ReservedNameError(FEAError, ValueError):
    """A constant was given one of the reserved weak-form symbol names."""

    pass


class UnknownConstantError(FEAError, NameError):
    """An expression references a name that has not been defined (yet)."""

    pass


class NotFoundError(FEAError, KeyError):
    """No matrix, vector or constant is registered under the name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidParameterError(FEAError, ValueError):
    """A configuration value is outside its admissible range."""

    pass


class NotInitializedError(FEAError, RuntimeError):
    """A solver was asked to solve before ``init`` was called."""

    pass


class MeshStateError(FEAError, RuntimeError):
    """The mesh was used in the wrong lifecycle state."""

    pass


class ExpressionSyntaxError(FEAError, ValueError):
    """A weak-form or constant expression could not be parsed."""

    pass
