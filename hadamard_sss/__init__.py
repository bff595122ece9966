"""Hadamard SSS — threshold secret sharing from Hadamard matrix designs."""

from .errors import HadamardError, InvalidMatrix, BelowThreshold, InvalidShare
from .matrix import HadamardMatrix, is_hadamard, threshold
from .base import SharingScheme
from .scheme import HSS, HadamardSSS, Share, DEFAULT_WIDTH
from .secure import SecretBuffer, wipe
from .encoding import format_share, parse_share
from .vault import Vault, seal, unseal, verify_shares, KEY_BITS

__all__ = [
    'HadamardError', 'InvalidMatrix', 'BelowThreshold', 'InvalidShare',
    'HadamardMatrix', 'is_hadamard', 'threshold',
    'SharingScheme', 'HSS', 'HadamardSSS', 'Share', 'DEFAULT_WIDTH',
    'SecretBuffer', 'wipe',
    'format_share', 'parse_share',
    'Vault', 'seal', 'unseal', 'verify_shares', 'KEY_BITS',
]
