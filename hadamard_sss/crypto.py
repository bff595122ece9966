"""
AES-256-GCM sealing bound to a Hadamard scheme.

Blob layout:

    flags(1) | nonce(12) | ciphertext | tag(16)

The GCM associated data is ``HSSS1 | flags | matrix fingerprint``. A
blob therefore only opens under the same normalized matrix it was
sealed for, and the flags byte is covered by the tag.

The cipher comes from the cryptography package, or from PyCryptodome
when only that is installed (``pip install hadamard-sss[alt]``).
"""

import hashlib
import os
import zlib

try:
    from cryptography.exceptions import InvalidTag
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM
    _BACKEND = 'cryptography'
    _AUTH_ERRORS = (InvalidTag,)
except ImportError:
    try:
        from Crypto.Cipher import AES
        _BACKEND = 'pycryptodome'
        _AUTH_ERRORS = (ValueError,)
    except ImportError:
        _BACKEND = None
        _AUTH_ERRORS = ()

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16

MAGIC = b'HSSS1'
FLAG_COMPRESSED = 0x01
_KNOWN_FLAGS = FLAG_COMPRESSED


def generate_key() -> bytearray:
    """Fresh 256-bit key in a wipeable buffer."""
    return bytearray(os.urandom(KEY_SIZE))


def associated_data(fingerprint: str, flags: int) -> bytes:
    """GCM associated data tying a blob to a matrix fingerprint."""
    return MAGIC + bytes([flags]) + fingerprint.encode('ascii')


def _gcm_seal(key: bytes, nonce: bytes, data: bytes, aad: bytes) -> bytes:
    if _BACKEND == 'cryptography':
        return AESGCM(key).encrypt(nonce, data, aad)
    if _BACKEND == 'pycryptodome':
        cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
        cipher.update(aad)
        ciphertext, tag = cipher.encrypt_and_digest(data)
        return ciphertext + tag
    raise RuntimeError(
        "No AES backend available. Install 'cryptography' or 'pycryptodome':\n"
        "  pip install cryptography"
    )


def _gcm_open(key: bytes, nonce: bytes, sealed: bytes, aad: bytes) -> bytes:
    if _BACKEND == 'cryptography':
        return AESGCM(key).decrypt(nonce, sealed, aad)
    if _BACKEND == 'pycryptodome':
        cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
        cipher.update(aad)
        return cipher.decrypt_and_verify(sealed[:-TAG_SIZE], sealed[-TAG_SIZE:])
    raise RuntimeError("No AES backend available")


def _key_bytes(key) -> bytes:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    return bytes(key)


def encrypt(plaintext: bytes, key, fingerprint: str, compress: bool = True) -> bytes:
    """
    Seal plaintext under key for the scheme with the given fingerprint.

    Args:
        plaintext: Data to encrypt
        key: 32-byte key (bytes or bytearray)
        fingerprint: HadamardSSS.fingerprint of the scheme sharing the key
        compress: zlib-compress before encrypting (default True)
    """
    key = _key_bytes(key)
    flags = FLAG_COMPRESSED if compress else 0
    data = zlib.compress(plaintext, level=9) if compress else plaintext
    nonce = os.urandom(NONCE_SIZE)
    sealed = _gcm_seal(key, nonce, data, associated_data(fingerprint, flags))
    return bytes([flags]) + nonce + sealed


def decrypt(blob: bytes, key, fingerprint: str) -> bytes:
    """
    Open a blob produced by encrypt().

    Raises:
        ValueError: Wrong key, wrong matrix fingerprint, or tampered data
    """
    key = _key_bytes(key)
    if len(blob) < 1 + NONCE_SIZE + TAG_SIZE:
        raise ValueError("Blob too short to be valid")

    flags = blob[0]
    if flags & ~_KNOWN_FLAGS:
        raise ValueError(f"Unknown flags 0x{flags:02x}")
    nonce = blob[1:1 + NONCE_SIZE]

    try:
        data = _gcm_open(key, nonce, blob[1 + NONCE_SIZE:],
                         associated_data(fingerprint, flags))
    except _AUTH_ERRORS:
        raise ValueError("Decryption failed (wrong key, wrong matrix or tampered data)")

    if flags & FLAG_COMPRESSED:
        data = zlib.decompress(data)
    return data


def vault_id(ciphertext: bytes) -> str:
    """First 16 hex chars of sha256(ciphertext)."""
    return hashlib.sha256(ciphertext).hexdigest()[:16]


def get_backend() -> str:
    """Name of the active AES backend."""
    return _BACKEND or 'none'
