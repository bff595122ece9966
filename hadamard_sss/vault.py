"""
Vaults: payloads sealed under a Hadamard-shared key.

A vault is:
1. A payload encrypted with AES-256-GCM under a random 256-bit key,
   authenticated against the matrix fingerprint
2. That key split with a 256-bit HadamardSSS into one share per party
3. Shares formatted with the vault ID and a checksum

Any `threshold` parties together recover the key and decrypt. Before
reconstructing, the shares are cross-checked with validate() so a
tampered share is named instead of producing a garbage key.
"""

import hashlib
import json
import time

from . import crypto
from .encoding import format_share, parse_share
from .errors import InvalidShare
from .scheme import HadamardSSS
from .secure import SecretBuffer

# The vault key is an AES-256 key, so the scheme shares 256-bit secrets.
KEY_BITS = crypto.KEY_SIZE * 8


class Vault:
    """A sealed payload plus the public parameters needed to open it."""

    def __init__(self, vault_id: str, ciphertext: bytes, parties: int, threshold: int,
                 matrix_fingerprint: str, created_at: float = None, metadata: dict = None):
        self.vault_id = vault_id
        self.ciphertext = ciphertext
        self.parties = parties
        self.threshold = threshold
        self.matrix_fingerprint = matrix_fingerprint
        self.created_at = created_at or time.time()
        self.metadata = metadata or {}

    def to_dict(self) -> dict:
        return {
            'version': 'hsss_vault_v1',
            'vault_id': self.vault_id,
            'parties': self.parties,
            'threshold': self.threshold,
            'matrix_fingerprint': self.matrix_fingerprint,
            'ciphertext_hex': self.ciphertext.hex(),
            'ciphertext_size': len(self.ciphertext),
            'created_at': self.created_at,
            'metadata': self.metadata,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _key_scheme(matrix) -> HadamardSSS:
    return HadamardSSS(matrix, width=KEY_BITS)


def seal(payload: bytes, matrix, label: str = None) -> tuple:
    """
    Seal a payload.

    Args:
        payload: The secret data to protect
        matrix: Hadamard matrix that defines the parties and threshold
        label: Optional human-readable label (stored in metadata, NOT encrypted)

    Returns:
        (Vault, shares_list) where shares_list holds one formatted share
        string per party
    """
    scheme = _key_scheme(matrix)

    with SecretBuffer(crypto.generate_key()) as key:
        ciphertext = crypto.encrypt(payload, key, scheme.fingerprint)
        raw_shares = scheme.split(int.from_bytes(key, 'big'))

    vid = crypto.vault_id(ciphertext)
    formatted = [format_share(vid, share, KEY_BITS) for share in raw_shares]

    metadata = {
        'payload_size': len(payload),
        'compressed_encrypted_size': len(ciphertext),
        'crypto_backend': crypto.get_backend(),
        'payload_hash': hashlib.sha256(payload).hexdigest(),
    }
    if label:
        metadata['label'] = label

    vault = Vault(
        vault_id=vid,
        ciphertext=ciphertext,
        parties=scheme.parties,
        threshold=scheme.threshold,
        matrix_fingerprint=scheme.fingerprint,
        metadata=metadata,
    )
    return vault, formatted


def _parse_all(shares: list) -> tuple:
    """Parse share strings and make sure they all carry the same vault ID."""
    parsed = []
    expected = None
    for share_str in shares:
        vid, share = parse_share(share_str)
        if expected is None:
            expected = vid
        elif vid != expected:
            raise ValueError(
                f"Share {share.index} belongs to vault {vid}, expected {expected}. "
                "Cannot mix shares from different vaults."
            )
        parsed.append(share)
    return expected, parsed


def unseal(shares: list, ciphertext: bytes, matrix) -> bytes:
    """
    Recover the payload from share strings and the ciphertext.

    Raises:
        BelowThreshold: If fewer shares than the matrix threshold are given
        InvalidShare: If shares disagree with each other
        ValueError: If shares are malformed, mixed, or decryption fails
    """
    vid, parsed = _parse_all(shares)

    actual = crypto.vault_id(ciphertext)
    if actual != vid:
        raise ValueError(
            f"Ciphertext vault ID {actual} doesn't match shares vault ID {vid}. "
            "Wrong ciphertext or tampered data."
        )

    with _key_scheme(matrix) as scheme:
        suspicious = scheme.validate(parsed)
        if suspicious:
            raise InvalidShare(f"Inconsistent shares from parties {suspicious}")
        key_int = scheme.reconstruct(parsed)

    with SecretBuffer(key_int.to_bytes(crypto.KEY_SIZE, 'big')) as key:
        return crypto.decrypt(ciphertext, key, scheme.fingerprint)


def verify_shares(shares: list, matrix) -> dict:
    """
    Check a set of share strings without decrypting.

    Returns dict with:
        - valid: bool (all shares parse, agree on the vault and each other)
        - vault_id: the common vault ID
        - share_count: how many shares parsed
        - indices: party indices of the parsed shares
        - suspicious: party indices flagged by the scheme's validate()
        - errors: error messages for rejected shares
    """
    result = {
        'valid': True,
        'vault_id': None,
        'share_count': 0,
        'indices': [],
        'suspicious': [],
        'errors': [],
    }

    parsed = []
    for i, share_str in enumerate(shares):
        try:
            vid, share = parse_share(share_str)
        except ValueError as e:
            result['errors'].append(f"Share {i+1}: {e}")
            result['valid'] = False
            continue

        if result['vault_id'] is None:
            result['vault_id'] = vid
        elif vid != result['vault_id']:
            result['errors'].append(
                f"Share {i+1}: vault ID mismatch ({vid} vs {result['vault_id']})"
            )
            result['valid'] = False
            continue

        parsed.append(share)
        result['indices'].append(share.index)
        result['share_count'] += 1

    with _key_scheme(matrix) as scheme:
        try:
            result['suspicious'] = scheme.validate(parsed)
        except InvalidShare as e:
            result['errors'].append(str(e))
            result['valid'] = False
            return result

    if result['suspicious']:
        result['errors'].append(
            f"Inconsistent shares from parties {result['suspicious']}"
        )
        result['valid'] = False

    return result
