"""
Hadamard threshold secret sharing.

The incidence matrix of a Hadamard design decides, bit by bit, which
party carries the real secret bit and which gets random filler:

    incidence[i][j] == 1   party i's bit j_id is the secret's bit j_id
    incidence[i][j] == 0   party i's bit j_id is a fresh random bit

where j_id = j + block * n walks the secret in windows of n bits. Any
(n + 3) // 2 parties cover every column with at least one real bit, so
OR-ing their real bits gives back the secret. Fewer parties leave
columns covered only by noise.

Masking bits come from the ``secrets`` module (CSPRNG).
"""

import logging
import secrets
from typing import NamedTuple

import numpy as np

from .base import SharingScheme
from .errors import BelowThreshold, HadamardError, InvalidMatrix, InvalidShare
from .matrix import HadamardMatrix, _as_int_array, threshold
from .secure import wipe

logger = logging.getLogger(__name__)

# Width of a secret in bits unless the scheme is told otherwise.
DEFAULT_WIDTH = 32


class Share(NamedTuple):
    """One party's output: incidence row index and a bit-packed payload."""

    index: int
    data: int


class HSS(SharingScheme):
    """Sharing engine over a fixed 0/1 incidence matrix."""

    def __init__(self, incidence, width: int = DEFAULT_WIDTH):
        mtx = _as_int_array(incidence)
        if mtx is None:
            raise InvalidMatrix("Incidence matrix must be a 2-D array of integers")
        if mtx.shape[0] != mtx.shape[1]:
            raise InvalidMatrix("Incidence matrix must be square")
        if not np.all((mtx == 0) | (mtx == 1)):
            raise InvalidMatrix("Incidence matrix entries must be 0 or 1")
        if width < 1:
            raise ValueError(f"Secret width must be >= 1 bit, got {width}")
        mtx.flags.writeable = False
        self._mtx = mtx
        self.width = width
        self._wiped = False

    @property
    def dimension(self) -> int:
        """Order of the incidence matrix: the number of shares split() produces."""
        return self._mtx.shape[0]

    @property
    def blocks(self) -> int:
        """Number of n-bit windows needed to cover the secret."""
        n = self.dimension
        if n == 0:
            return 0
        return (self.width + n - 1) // n

    @property
    def incidence(self) -> np.ndarray:
        return self._mtx

    @property
    def wiped(self) -> bool:
        return self._wiped

    def _check_live(self):
        if self._wiped:
            raise HadamardError("Scheme has been wiped and can no longer be used")

    def _cells(self, row: int):
        """Yield (j_id, carries_real_bit) for every secret bit row touches."""
        n = self.dimension
        for block in range(self.blocks):
            for j in range(n):
                j_id = j + block * n
                if j_id < self.width:
                    yield j_id, self._mtx[row, j] == 1

    def _check_shares(self, shares) -> list:
        self._check_live()
        checked = []
        limit = 1 << self.width
        for share in shares:
            try:
                index, data = share
            except (TypeError, ValueError):
                raise InvalidShare(f"Share must be an (index, data) pair, got {share!r}")
            if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
                raise InvalidShare(f"Share index must be an integer, got {index!r}")
            if not 0 <= index < self.dimension:
                raise InvalidShare(
                    f"Share index {index} out of range [0, {self.dimension})"
                )
            if not isinstance(data, (int, np.integer)) or isinstance(data, bool):
                raise InvalidShare(f"Share {index}: payload must be an integer")
            if not 0 <= data < limit:
                raise InvalidShare(
                    f"Share {index}: payload does not fit in {self.width} bits"
                )
            checked.append(Share(int(index), int(data)))
        return checked

    def split(self, secret: int) -> list:
        """
        Split a secret into one share per incidence row.

        Raises:
            ValueError: If the secret is not a non-negative int below 2**width
        """
        if not isinstance(secret, int) or isinstance(secret, bool):
            raise ValueError(f"Secret must be an int, got {type(secret).__name__}")
        if not 0 <= secret < 1 << self.width:
            raise ValueError(f"Secret must fit in {self.width} bits")
        self._check_live()

        shares = []
        for i in range(self.dimension):
            data = 0
            for j_id, real in self._cells(i):
                if real:
                    data |= secret & (1 << j_id)
                else:
                    data |= secrets.randbits(1) << j_id
            shares.append(Share(i, data))
        return shares

    def reconstruct(self, shares) -> int:
        """
        OR together every real bit carried by the given shares.

        No consistency checking happens here: a corrupted share can
        silently change the result. Use validate() to look for that.
        """
        result = 0
        for share in self._check_shares(shares):
            for j_id, real in self._cells(share.index):
                if real:
                    result |= share.data & (1 << j_id)
        return result

    def validate(self, shares) -> list:
        """
        Find shares whose real bits disagree with the majority.

        For every secret bit, the parties that carry it are split into
        those claiming 0 and those claiming 1. When both camps exist the
        smaller one is flagged. On a tie the zero camp is flagged.

        Returns:
            Sorted list of suspicious party indices (empty if consistent)
        """
        voters = [([], []) for _ in range(self.width)]
        for share in self._check_shares(shares):
            for j_id, real in self._cells(share.index):
                if real:
                    bit = (share.data >> j_id) & 1
                    voters[j_id][bit].append(share.index)

        suspicious = set()
        for position, (zeros, ones) in enumerate(voters):
            if zeros and ones:
                minority = voters[position][int(len(zeros) > len(ones))]
                logger.debug(
                    "bit %d: zero voters %s, one voters %s, flagging %s",
                    position, zeros, ones, minority,
                )
                suspicious.update(minority)
        return sorted(suspicious)

    def wipe(self) -> None:
        wipe(self._mtx)
        self._wiped = True


class HadamardSSS(SharingScheme):
    """
    Threshold scheme built from a Hadamard matrix.

        scheme = HadamardSSS([[1, 1, 1, 1], [1, -1, 1, -1],
                              [1, 1, -1, -1], [1, -1, -1, 1]])
        shares = scheme.split(42)
        scheme.reconstruct(shares[:scheme.threshold])  # -> 42

    Raises InvalidMatrix if the candidate is not a Hadamard matrix.
    """

    def __init__(self, matrix, width: int = DEFAULT_WIDTH):
        if isinstance(matrix, HadamardMatrix):
            matrix = matrix.matrix
        had = HadamardMatrix(matrix)
        incidence = had.normalize().get_incidence()
        self.fingerprint = had.fingerprint()
        self._hss = HSS(incidence, width=width)
        self._threshold = threshold(self._hss.dimension)
        had.wipe()
        logger.debug(
            "scheme %s: %d parties, threshold %d, %d-bit secrets",
            self.fingerprint, self.parties, self._threshold, width,
        )

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def parties(self) -> int:
        return self._hss.dimension

    @property
    def width(self) -> int:
        return self._hss.width

    @property
    def incidence(self) -> np.ndarray:
        return self._hss.incidence

    @property
    def wiped(self) -> bool:
        return self._hss.wiped

    def split(self, secret: int) -> list:
        return self._hss.split(secret)

    def reconstruct(self, shares) -> int:
        """
        Recover the secret from at least `threshold` shares.

        Raises:
            BelowThreshold: If fewer than `threshold` shares are given
            InvalidShare: If a share does not belong to this scheme
            HadamardError: If the scheme has been wiped
        """
        self._hss._check_live()
        shares = list(shares)
        if len(shares) < self._threshold:
            logger.warning(
                "%d shares is less than threshold %d", len(shares), self._threshold
            )
            raise BelowThreshold(self._threshold, len(shares))
        return self._hss.reconstruct(shares)

    def validate(self, shares) -> list:
        return self._hss.validate(list(shares))

    def wipe(self) -> None:
        self._hss.wipe()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.wipe()
        return False

    def __repr__(self):
        return (f"HadamardSSS(parties={self.parties}, threshold={self._threshold}, "
                f"width={self.width})")
