"""Interface every sharing scheme in this package implements."""

from abc import ABC, abstractmethod


class SharingScheme(ABC):
    """
    A threshold secret-sharing scheme.

    Implementations pick their own secret and share types; callers only
    rely on split / reconstruct / validate.
    """

    @abstractmethod
    def split(self, secret) -> list:
        """Split a secret into shares."""

    @abstractmethod
    def reconstruct(self, shares: list):
        """Recover the secret from a collection of shares."""

    @abstractmethod
    def validate(self, shares: list) -> list:
        """Return the party indices of shares suspected of being tampered with."""

    def is_valid(self, shares: list) -> bool:
        """True when validate() finds no suspicious shares."""
        return not self.validate(shares)
