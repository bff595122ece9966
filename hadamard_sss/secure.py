"""
Zeroing of sensitive buffers.

Python ints are immutable and cannot be scrubbed, so anything that should
be wiped (AES keys, matrix storage) lives in a bytearray or numpy array
and goes through wipe() when it is no longer needed.
"""

import numpy as np


def wipe(buf) -> None:
    """Overwrite a bytearray or numpy array with zeros in place."""
    if isinstance(buf, np.ndarray):
        if not buf.flags.writeable:
            buf.flags.writeable = True
        buf.fill(0)
    elif isinstance(buf, bytearray):
        buf[:] = bytes(len(buf))
    else:
        raise TypeError(f"Cannot wipe object of type {type(buf).__name__}")


class SecretBuffer:
    """
    Scoped holder for sensitive bytes, zeroed on every exit path.

        with SecretBuffer(crypto.generate_key()) as key:
            ciphertext = crypto.encrypt(payload, key, scheme.fingerprint)
        # key is all zeros here, even if encrypt() raised
    """

    def __init__(self, data):
        if isinstance(data, bytes):
            data = bytearray(data)
        if not isinstance(data, (bytearray, np.ndarray)):
            raise TypeError("SecretBuffer holds a bytearray or a numpy array")
        self._buf = data

    @property
    def value(self):
        return self._buf

    def wipe(self) -> None:
        wipe(self._buf)

    def __enter__(self):
        return self._buf

    def __exit__(self, exc_type, exc, tb):
        self.wipe()
        return False
