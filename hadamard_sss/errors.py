"""
Error conditions raised by the Hadamard sharing scheme.

All of them are ValueError subclasses, so callers that already guard
with ``except ValueError`` keep working.
"""


class HadamardError(ValueError):
    """Base class for every scheme failure."""


class InvalidMatrix(HadamardError):
    """The candidate is not a Hadamard matrix (square, non-empty, ±1, H·Hᵗ = nI)."""


class BelowThreshold(HadamardError):
    """Fewer shares were supplied than the scheme needs to reconstruct."""

    def __init__(self, required: int, got: int):
        self.required = required
        self.got = got
        super().__init__(f"Need at least {required} shares, got {got}")


class InvalidShare(HadamardError):
    """A share's party index or payload does not fit the scheme."""
