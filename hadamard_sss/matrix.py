"""
Hadamard matrices and the block designs derived from them.

A Hadamard matrix of order n is a square ±1 matrix with H·Hᵗ = nI.
Normalizing it (first row and column all +1) and taking the interior
gives, after mapping -1 -> 0 and +1 -> 1, the incidence matrix of a
2-(4t-1, 2t-1, t-1) design for order n = 4t. That incidence matrix is
what the sharing engine uses as its bit-selection mask.
"""

import hashlib

import numpy as np

from .errors import InvalidMatrix
from .secure import wipe


def _as_int_array(candidate):
    """Coerce a candidate to a 2-D integer array, or None if it can't be one."""
    try:
        arr = np.array(candidate)
    except (ValueError, TypeError):
        # ragged nested lists
        return None
    if arr.ndim != 2 or arr.dtype.kind not in 'iu':
        return None
    # uint64 entries above int64 max would wrap to negatives
    if arr.dtype.kind == 'u' and arr.size and arr.max() > np.iinfo(np.int64).max:
        return None
    return arr.astype(np.int64)


def is_hadamard(candidate) -> bool:
    """
    Check whether a candidate matrix is a Hadamard matrix:
    - it is two-dimensional and square
    - it is non-empty
    - every entry is -1 or 1
    - H * H.T == n * I

    The candidate is never modified.
    """
    mtx = _as_int_array(candidate)
    if mtx is None:
        return False
    n, m = mtx.shape
    if n != m or n < 1:
        return False
    if not np.all((mtx == 1) | (mtx == -1)):
        return False
    return np.array_equal(mtx @ mtx.T, n * np.eye(n, dtype=np.int64))


def threshold(dimension: int) -> int:
    """
    Minimum number of shares that reconstructs a secret.

    For an incidence matrix of dimension 4t - 1 this is 2t + 1,
    written as (dimension + 3) // 2.
    """
    return (dimension + 3) // 2


class HadamardMatrix:
    """A validated Hadamard matrix, owned and mutated only by normalize()."""

    def __init__(self, candidate):
        if not is_hadamard(candidate):
            raise InvalidMatrix("Candidate is not a Hadamard matrix")
        self._mtx = _as_int_array(candidate).copy()

    @property
    def order(self) -> int:
        return self._mtx.shape[0]

    @property
    def matrix(self) -> np.ndarray:
        """Read-only copy of the current entries."""
        out = self._mtx.copy()
        out.flags.writeable = False
        return out

    def is_normalized(self) -> bool:
        return bool(np.all(self._mtx[0, :] == 1) and np.all(self._mtx[:, 0] == 1))

    def normalize(self) -> 'HadamardMatrix':
        """
        Flip signs so the first row and the first column are all +1.

            [[-1, -1],        [[1,  1],
             [-1,  1]]  --->   [1, -1]]

        Row i is checked against the current mtx[i, 0] before column i is
        checked against the current mtx[0, i]. Returns self for chaining.
        """
        mtx = self._mtx
        for i in range(self.order):
            if mtx[i, 0] == -1:
                mtx[i, :] *= -1
            if mtx[0, i] == -1:
                mtx[:, i] *= -1
        return self

    def get_incidence(self) -> np.ndarray:
        """
        Incidence matrix of the design: interior of the matrix mapped
        -1 -> 0, +1 -> 1. Only meaningful once the matrix is normalized.
        """
        incidence = (self._mtx[1:, 1:] + 1) // 2
        incidence.flags.writeable = False
        return incidence

    def fingerprint(self) -> str:
        """Short SHA-256 identifier of the current entries (16 hex chars)."""
        data = self._mtx.astype('>i1').tobytes()
        return hashlib.sha256(self.order.to_bytes(4, 'big') + data).hexdigest()[:16]

    def wipe(self) -> None:
        wipe(self._mtx)

    def __eq__(self, other):
        if not isinstance(other, HadamardMatrix):
            return NotImplemented
        return np.array_equal(self._mtx, other._mtx)

    def __repr__(self):
        return f"HadamardMatrix(order={self.order})"
