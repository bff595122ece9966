"""
Hadamard SSS — Vault Test Suite

Tests share encoding, AES-256-GCM encryption, the seal/unseal
pipeline and the command-line front end.
"""

import io
import itertools
import json
import os
import sys
import tempfile
from contextlib import redirect_stdout, redirect_stderr

# Add parent to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hadamard_sss import crypto, vault
from hadamard_sss import (
    HadamardSSS, Share, BelowThreshold, InvalidShare,
    format_share, parse_share, KEY_BITS,
)
import cli


H8 = [[1, 1, 1, 1, 1, 1, 1, 1],
      [1, -1, 1, -1, 1, -1, 1, -1],
      [1, 1, -1, -1, 1, 1, -1, -1],
      [1, -1, -1, 1, 1, -1, -1, 1],
      [1, 1, 1, 1, -1, -1, -1, -1],
      [1, -1, 1, -1, -1, 1, -1, 1],
      [1, 1, -1, -1, -1, -1, 1, 1],
      [1, -1, -1, 1, -1, 1, 1, -1]]


def _tamper(share_str, scheme):
    """Flip one real bit of a formatted share, keeping its checksum valid."""
    tag, share = parse_share(share_str)
    column = next(j for j in range(scheme.parties) if scheme.incidence[share.index, j] == 1)
    return format_share(tag, Share(share.index, share.data ^ (1 << column)), scheme.width)


# ==========================================================================
# Share Encoding Tests
# ==========================================================================

def test_encoding_round_trip():
    scheme = HadamardSSS(H8)
    for share in scheme.split(0xDEADBEEF):
        text = format_share(scheme.fingerprint, share, scheme.width)
        tag, parsed = parse_share(text)
        assert tag == scheme.fingerprint
        assert parsed == share


def test_encoding_layout():
    text = format_share("abcd1234abcd1234", Share(3, 0xBEEF), 32)
    parts = text.split(':')
    assert parts[0] == 'HSSS_SHARE_v1'
    assert parts[2] == '003'
    assert parts[3] == '0000beef'
    assert len(parts[4]) == 8


def test_encoding_wide_payload_padded():
    text = format_share("t", Share(0, 1), 256)
    assert len(text.split(':')[3]) == 64


def test_encoding_tampered_checksum():
    text = format_share("abcd1234abcd1234", Share(1, 0x1234), 32)
    parts = text.split(':')
    parts[3] = 'ff' + parts[3][2:]
    try:
        parse_share(':'.join(parts))
        assert False, "Should have raised ValueError for tampered share"
    except ValueError as e:
        assert "checksum" in str(e).lower()


def test_encoding_bad_format():
    for bad in ("nonsense", "HSSS_SHARE_v0:t:001:ff:00000000",
                "HSSS_SHARE_v1:t:0x1:zz:00000000"):
        try:
            parse_share(bad)
            assert False, f"Should have raised ValueError for {bad!r}"
        except ValueError:
            pass


def test_encoding_tag_without_colon():
    try:
        format_share("a:b", Share(0, 0), 32)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


# ==========================================================================
# Crypto Tests
# ==========================================================================

FP = HadamardSSS(H8).fingerprint


def test_crypto_encrypt_decrypt():
    key = crypto.generate_key()
    plaintext = b"The documents are in the safe."
    blob = crypto.encrypt(plaintext, key, FP)
    assert crypto.decrypt(blob, key, FP) == plaintext


def test_crypto_key_is_wipeable():
    key = crypto.generate_key()
    assert isinstance(key, bytearray)
    assert len(key) == 32


def test_crypto_wrong_key():
    blob = crypto.encrypt(b"Secret message", crypto.generate_key(), FP)
    try:
        crypto.decrypt(blob, crypto.generate_key(), FP)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_crypto_wrong_fingerprint():
    """A blob sealed for one matrix doesn't open under another's fingerprint."""
    key = crypto.generate_key()
    blob = crypto.encrypt(b"Secret message", key, FP)
    other = HadamardSSS([[1, 1], [1, -1]]).fingerprint
    assert other != FP
    try:
        crypto.decrypt(blob, key, other)
        assert False, "Should have raised ValueError"
    except ValueError as e:
        assert "wrong matrix" in str(e)


def test_crypto_associated_data_layout():
    aad = crypto.associated_data(FP, crypto.FLAG_COMPRESSED)
    assert aad == b"HSSS1\x01" + FP.encode('ascii')


def test_crypto_bad_key_length():
    try:
        crypto.encrypt(b"x", b"short", FP)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_crypto_no_compression():
    key = crypto.generate_key()
    blob = crypto.encrypt(b"Short message", key, FP, compress=False)
    assert blob[0] == 0
    assert crypto.decrypt(blob, key, FP) == b"Short message"


def test_crypto_flags_authenticated():
    """Clearing the compression flag breaks the tag instead of skipping zlib."""
    key = crypto.generate_key()
    tampered = bytearray(crypto.encrypt(b"Secret", key, FP))
    assert tampered[0] == crypto.FLAG_COMPRESSED
    tampered[0] ^= crypto.FLAG_COMPRESSED
    try:
        crypto.decrypt(bytes(tampered), key, FP)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_crypto_unknown_flags():
    key = crypto.generate_key()
    tampered = bytearray(crypto.encrypt(b"Secret", key, FP))
    tampered[0] = 0x80
    try:
        crypto.decrypt(bytes(tampered), key, FP)
        assert False, "Should have raised ValueError"
    except ValueError as e:
        assert "Unknown flags 0x80" in str(e)


def test_crypto_tampered_ciphertext():
    key = crypto.generate_key()
    tampered = bytearray(crypto.encrypt(b"Secret", key, FP))
    tampered[20] ^= 0xFF
    try:
        crypto.decrypt(bytes(tampered), key, FP)
        assert False, "Should have raised ValueError for tampered data"
    except ValueError:
        pass


def test_crypto_short_blob():
    try:
        crypto.decrypt(b"\x00" * 10, crypto.generate_key(), FP)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_crypto_vault_id():
    assert crypto.vault_id(b"ct") == crypto.vault_id(b"ct")
    assert len(crypto.vault_id(b"ct")) == 16
    assert crypto.vault_id(b"ciphertext A") != crypto.vault_id(b"ciphertext B")
    assert crypto.get_backend() in ('cryptography', 'pycryptodome')


# ==========================================================================
# Vault Pipeline Tests
# ==========================================================================

def test_vault_basic():
    message = b"The truth is in building 7, third floor, locked cabinet."
    v, shares = vault.seal(message, H8)

    assert v.parties == 7
    assert v.threshold == 5
    assert len(shares) == 7
    assert v.metadata['payload_size'] == len(message)
    assert v.matrix_fingerprint == HadamardSSS(H8).fingerprint

    assert vault.unseal(shares[:5], v.ciphertext, H8) == message


def test_vault_any_5_of_7():
    message = b"Evidence of corruption: account 7731-B, transfers March 2025"
    v, shares = vault.seal(message, H8)
    for combo in itertools.combinations(range(7), 5):
        subset = [shares[i] for i in combo]
        assert vault.unseal(subset, v.ciphertext, H8) == message, \
            f"Failed with combination {combo}"


def test_vault_shares_are_256_bit():
    v, shares = vault.seal(b"key width", H8)
    for s in shares:
        tag, share = parse_share(s)
        assert tag == v.vault_id
        assert share.data < 1 << KEY_BITS


def test_vault_binary_payload():
    payload = os.urandom(50000)
    v, shares = vault.seal(payload, H8, label="leaked-document.pdf")
    assert v.metadata['label'] == "leaked-document.pdf"
    assert vault.unseal(shares[2:], v.ciphertext, H8) == payload


def test_vault_below_threshold():
    v, shares = vault.seal(b"This should stay secret", H8)
    try:
        vault.unseal(shares[:4], v.ciphertext, H8)
        assert False, "Should have raised BelowThreshold"
    except BelowThreshold as e:
        assert e.required == 5


def test_vault_wrong_ciphertext():
    v1, shares1 = vault.seal(b"Message A", H8)
    v2, _ = vault.seal(b"Message B", H8)
    try:
        vault.unseal(shares1[:5], v2.ciphertext, H8)
        assert False, "Should have raised ValueError (vault ID mismatch)"
    except ValueError as e:
        assert "doesn't match" in str(e)


def test_vault_opens_with_sign_variant():
    """Negating rows or columns keeps the fingerprint, so the vault still opens."""
    variant = [row[:] for row in H8]
    variant[3] = [-x for x in variant[3]]
    for row in variant:
        row[5] = -row[5]
    assert HadamardSSS(variant).fingerprint == HadamardSSS(H8).fingerprint

    v, shares = vault.seal(b"same design", H8)
    assert vault.unseal(shares[2:7], v.ciphertext, variant) == b"same design"


def test_vault_ciphertext_bound_to_matrix():
    """The sealed payload only opens under the fingerprint it was sealed for."""
    v, shares = vault.seal(b"bound", H8)
    key_scheme = HadamardSSS(H8, width=KEY_BITS)
    key_int = key_scheme.reconstruct(parse_share(s)[1] for s in shares[:5])
    key = key_int.to_bytes(crypto.KEY_SIZE, 'big')
    assert crypto.decrypt(v.ciphertext, key, v.matrix_fingerprint) == b"bound"
    try:
        crypto.decrypt(v.ciphertext, key, HadamardSSS([[1]]).fingerprint)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_vault_mixed_shares():
    v1, shares1 = vault.seal(b"Vault A", H8)
    v2, shares2 = vault.seal(b"Vault B", H8)
    try:
        vault.unseal(shares1[:4] + [shares2[4]], v1.ciphertext, H8)
        assert False, "Should have raised ValueError (mixed shares)"
    except ValueError as e:
        assert "mix" in str(e).lower()


def test_vault_tampered_share_named():
    """A share with a valid checksum but a flipped real bit is pinpointed."""
    scheme = HadamardSSS(H8, width=KEY_BITS)
    v, shares = vault.seal(b"Tamper target", H8)
    shares[2] = _tamper(shares[2], scheme)
    try:
        vault.unseal(shares, v.ciphertext, H8)
        assert False, "Should have raised InvalidShare"
    except InvalidShare as e:
        assert "[2]" in str(e)


def test_vault_verify_shares():
    v, shares = vault.seal(b"Verify me", H8)
    result = vault.verify_shares(shares, H8)
    assert result['valid'] is True
    assert result['share_count'] == 7
    assert result['vault_id'] == v.vault_id
    assert sorted(result['indices']) == list(range(7))
    assert result['suspicious'] == []
    assert result['errors'] == []


def test_vault_verify_flags_tampered():
    scheme = HadamardSSS(H8, width=KEY_BITS)
    v, shares = vault.seal(b"Verify me", H8)
    shares[6] = _tamper(shares[6], scheme)
    result = vault.verify_shares(shares, H8)
    assert result['valid'] is False
    assert result['suspicious'] == [6]


def test_vault_verify_bad_strings():
    v, shares = vault.seal(b"Verify me", H8)
    result = vault.verify_shares(shares[:3] + ["garbage"], H8)
    assert result['valid'] is False
    assert result['share_count'] == 3
    assert len(result['errors']) == 1


def test_vault_json_serialization():
    v, _ = vault.seal(b"JSON test", H8, label="test-label")
    data = json.loads(v.to_json())
    assert data['version'] == 'hsss_vault_v1'
    assert data['vault_id'] == v.vault_id
    assert data['parties'] == 7
    assert data['threshold'] == 5
    assert data['metadata']['label'] == 'test-label'


# ==========================================================================
# CLI Tests
# ==========================================================================

def _run(argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = cli.main(argv)
    return code, out.getvalue(), err.getvalue()


def _write_matrix(tmpdir, matrix):
    path = os.path.join(tmpdir, 'matrix.json')
    with open(path, 'w') as f:
        json.dump(matrix, f)
    return path


def test_cli_check():
    with tempfile.TemporaryDirectory() as tmpdir:
        code, out, _ = _run(['check', '--matrix', _write_matrix(tmpdir, H8)])
        assert code == 0
        assert "Threshold:   5" in out

        code, out, _ = _run(['check', '--matrix', _write_matrix(tmpdir, [[1, 1], [1, 1]])])
        assert code == 1
        assert "Not a Hadamard matrix" in out


def test_cli_split_reconstruct():
    with tempfile.TemporaryDirectory() as tmpdir:
        mpath = _write_matrix(tmpdir, H8)
        code, out, _ = _run(['split', '--matrix', mpath, '--secret', '1234'])
        assert code == 0
        shares = out.split()
        assert len(shares) == 7

        share_file = os.path.join(tmpdir, 'shares.txt')
        with open(share_file, 'w') as f:
            f.write('\n'.join(shares[1:6]) + '\n')

        code, out, _ = _run(['reconstruct', '--matrix', mpath, '--shares', share_file])
        assert code == 0
        assert out.strip().splitlines()[-1] == '1234'

        code, out, _ = _run(['validate', '--matrix', mpath, '--shares'] + shares)
        assert code == 0
        assert "Suspicious:  []" in out

        code, _, err = _run(['reconstruct', '--matrix', mpath, '--shares'] + shares[:3])
        assert code == 1
        assert "Need at least 5 shares" in err


def test_cli_seal_unseal():
    with tempfile.TemporaryDirectory() as tmpdir:
        mpath = _write_matrix(tmpdir, H8)
        ct_path = os.path.join(tmpdir, 'vault.bin')
        code, out, _ = _run(['seal', '--matrix', mpath, '--message', 'hello vault',
                             '--output', ct_path])
        assert code == 0
        shares = [line for line in out.splitlines() if line.startswith('HSSS_SHARE_v1')]
        assert len(shares) == 7

        code, out, _ = _run(['verify', '--matrix', mpath, '--shares'] + shares)
        assert code == 0

        code, out, _ = _run(['unseal', '--matrix', mpath, '--ciphertext', ct_path,
                             '--shares'] + shares[:5])
        assert code == 0
        assert "hello vault" in out


def test_cli_unseal_binary_payload():
    with tempfile.TemporaryDirectory() as tmpdir:
        mpath = _write_matrix(tmpdir, H8)
        payload_path = os.path.join(tmpdir, 'blob.bin')
        with open(payload_path, 'wb') as f:
            f.write(b"\xff\xfe\x00binary")
        ct_path = os.path.join(tmpdir, 'vault.bin')
        code, out, _ = _run(['seal', '--matrix', mpath, '--file', payload_path,
                             '--output', ct_path])
        assert code == 0
        assert "\nShares:\n" in out
        shares = [line for line in out.splitlines() if line.startswith('HSSS_SHARE_v1')]

        code, out, _ = _run(['unseal', '--matrix', mpath, '--ciphertext', ct_path,
                             '--shares'] + shares[1:6])
        assert code == 0
        assert "(Binary payload, use --output to save to file)" in out
        assert "fffe0062696e617279" in out


def test_cli_verify_lists_errors():
    with tempfile.TemporaryDirectory() as tmpdir:
        mpath = _write_matrix(tmpdir, H8)
        code, out, _ = _run(['verify', '--matrix', mpath, '--shares', 'nonsense'])
        assert code == 1
        assert "\nErrors:\n" in out


def test_cli_no_command():
    code, _, _ = _run([])
    assert code == 1


# ==========================================================================
# Runner
# ==========================================================================

def run_all():
    tests = [obj for name, obj in sorted(globals().items())
             if name.startswith('test_') and callable(obj)]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            print(f"[PASS] {t.__name__}")
            passed += 1
        except Exception as e:
            print(f"[FAIL] {t.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n--- Vault tests: {passed} passed, {failed} failed ---")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all() else 1)
