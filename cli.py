#!/usr/bin/env python3
"""
Hadamard SSS CLI — threshold secret sharing from Hadamard matrices.

Usage:
    cli.py check --matrix h8.json
    cli.py split --matrix h8.json --secret 1234 [--width 32]
    cli.py reconstruct --matrix h8.json --shares s1 s2 s3 s4 s5
    cli.py validate --matrix h8.json --shares shares.txt
    cli.py seal --matrix h8.json --message "secret" [--output vault.bin]
    cli.py unseal --matrix h8.json --shares shares.txt --ciphertext vault.bin
    cli.py verify --matrix h8.json --shares shares.txt

The matrix file holds a JSON list of rows, e.g. [[1, 1], [1, -1]].
Each --shares value is a share string or a file with one share per line.
"""

import argparse
import json
import logging
import os
import sys

from hadamard_sss import vault, crypto
from hadamard_sss import HadamardMatrix, HadamardSSS, DEFAULT_WIDTH
from hadamard_sss import format_share, parse_share, is_hadamard


def load_matrix(path):
    """Load a candidate matrix from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_shares(values):
    """Expand --shares values: files contribute one share per non-empty line."""
    shares = []
    for value in values:
        if os.path.isfile(value):
            with open(value) as f:
                shares.extend(line.strip() for line in f if line.strip())
        else:
            shares.append(value)
    return shares


def _parse_for_scheme(scheme, values):
    """Parse share strings and check they were made with this matrix."""
    parsed = []
    for text in load_shares(values):
        tag, share = parse_share(text)
        if tag != scheme.fingerprint:
            raise ValueError(
                f"Share {share.index} was made with matrix {tag}, "
                f"not {scheme.fingerprint}"
            )
        parsed.append(share)
    return parsed


def cmd_check(args):
    """Check whether a matrix is Hadamard and show the scheme it defines."""
    candidate = load_matrix(args.matrix)
    if not is_hadamard(candidate):
        print("Not a Hadamard matrix")
        return 1

    had = HadamardMatrix(candidate)
    print(f"Order:       {had.order}")
    print(f"Normalized:  {had.is_normalized()}")

    scheme = HadamardSSS(candidate, width=args.width)
    print(f"Fingerprint: {scheme.fingerprint}")
    print(f"Parties:     {scheme.parties}")
    print(f"Threshold:   {scheme.threshold}")
    print("\nIncidence:")
    for row in scheme.incidence:
        print("  " + " ".join(str(v) for v in row))
    return 0


def cmd_split(args):
    """Split an integer secret."""
    scheme = HadamardSSS(load_matrix(args.matrix), width=args.width)
    shares = scheme.split(args.secret)

    print(f"# {scheme.threshold}-of-{scheme.parties} shares, {scheme.width}-bit secret",
          file=sys.stderr)
    for share in shares:
        print(format_share(scheme.fingerprint, share, scheme.width))
    return 0


def cmd_reconstruct(args):
    """Reconstruct an integer secret."""
    scheme = HadamardSSS(load_matrix(args.matrix), width=args.width)
    shares = _parse_for_scheme(scheme, args.shares)

    print(f"Reconstructing with {len(shares)} shares (threshold: {scheme.threshold})")
    suspicious = scheme.validate(shares)
    if suspicious:
        print(f"Warning: inconsistent shares from parties {suspicious}", file=sys.stderr)
    print(scheme.reconstruct(shares))
    return 0


def cmd_validate(args):
    """Look for shares that disagree with the rest."""
    scheme = HadamardSSS(load_matrix(args.matrix), width=args.width)
    shares = _parse_for_scheme(scheme, args.shares)
    suspicious = scheme.validate(shares)

    print(f"Shares:      {len(shares)}")
    print(f"Indices:     {sorted(s.index for s in shares)}")
    print(f"Suspicious:  {suspicious}")
    return 1 if suspicious else 0


def cmd_seal(args):
    """Seal a payload into a vault."""
    if args.message:
        payload = args.message.encode('utf-8')
        label = args.label or '(text message)'
    elif args.file:
        if not os.path.exists(args.file):
            print(f"Error: file not found: {args.file}", file=sys.stderr)
            return 1
        with open(args.file, 'rb') as f:
            payload = f.read()
        label = args.label or os.path.basename(args.file)
    else:
        payload = sys.stdin.buffer.read()
        label = args.label or '(stdin)'

    if not payload:
        print("Error: empty payload", file=sys.stderr)
        return 1

    v, shares = vault.seal(payload, load_matrix(args.matrix), label=label)

    print(f"Vault ID:    {v.vault_id}")
    print(f"Threshold:   {v.threshold}-of-{v.parties}")
    print(f"Ciphertext:  {len(v.ciphertext)} bytes ({crypto.get_backend()})")

    if args.output:
        with open(args.output, 'wb') as f:
            f.write(v.ciphertext)
        print(f"Saved to:    {args.output}")
    else:
        print(f"Ciphertext hex: {v.ciphertext.hex()}")

    print("\nShares:")
    for s in shares:
        print(s)
    return 0


def cmd_unseal(args):
    """Open a vault from shares + ciphertext."""
    if not os.path.exists(args.ciphertext):
        print(f"Error: ciphertext not found: {args.ciphertext}", file=sys.stderr)
        return 1
    with open(args.ciphertext, 'rb') as f:
        ciphertext = f.read()

    shares = load_shares(args.shares)
    plaintext = vault.unseal(shares, ciphertext, load_matrix(args.matrix))

    print(f"Unsealed {len(plaintext)} bytes")
    if args.output:
        with open(args.output, 'wb') as f:
            f.write(plaintext)
        print(f"Saved to: {args.output}")
    else:
        try:
            print(f"\n--- Payload ---\n{plaintext.decode('utf-8')}\n--- End ---")
        except UnicodeDecodeError:
            print("\n(Binary payload, use --output to save to file)")
            print(f"First 64 bytes hex: {plaintext[:64].hex()}")
    return 0


def cmd_verify(args):
    """Verify vault shares without decrypting."""
    result = vault.verify_shares(load_shares(args.shares), load_matrix(args.matrix))

    print(f"Valid:       {result['valid']}")
    print(f"Vault ID:    {result['vault_id']}")
    print(f"Shares:      {result['share_count']}")
    print(f"Indices:     {result['indices']}")
    print(f"Suspicious:  {result['suspicious']}")

    if result['errors']:
        print("\nErrors:")
        for e in result['errors']:
            print(f"  {e}")
    return 0 if result['valid'] else 1


def build_parser():
    parser = argparse.ArgumentParser(
        description='Hadamard SSS — threshold secret sharing from Hadamard matrices.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Inspect the scheme an order-8 matrix defines
  %(prog)s check --matrix h8.json

  # Split and reconstruct a 32-bit integer
  %(prog)s split --matrix h8.json --secret 1234 > shares.txt
  %(prog)s reconstruct --matrix h8.json --shares shares.txt

  # Seal a message under a Hadamard-shared AES key
  %(prog)s seal --matrix h8.json --message "The truth is here" --output vault.bin
  %(prog)s unseal --matrix h8.json --shares shares.txt --ciphertext vault.bin
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', help='Command')

    def with_matrix(p, width=True):
        p.add_argument('--matrix', '-M', required=True, help='JSON file with the Hadamard matrix')
        if width:
            p.add_argument('--width', '-w', type=int, default=DEFAULT_WIDTH,
                           help=f'Secret width in bits (default: {DEFAULT_WIDTH})')
        return p

    with_matrix(sub.add_parser('check', help='Check a Hadamard matrix'))

    p_split = with_matrix(sub.add_parser('split', help='Split an integer secret'))
    p_split.add_argument('--secret', '-s', type=int, required=True, help='Secret value')

    for name, text in (('reconstruct', 'Reconstruct an integer secret'),
                       ('validate', 'Flag inconsistent shares')):
        p = with_matrix(sub.add_parser(name, help=text))
        p.add_argument('--shares', '-S', nargs='+', required=True,
                       help='Share strings or files')

    p_seal = with_matrix(sub.add_parser('seal', help='Seal a payload'), width=False)
    p_seal.add_argument('--message', '-m', help='Text message to protect')
    p_seal.add_argument('--file', '-f', help='File to protect')
    p_seal.add_argument('--label', '-l', help='Human-readable label')
    p_seal.add_argument('--output', '-o', help='Write ciphertext to this file')

    p_unseal = with_matrix(sub.add_parser('unseal', help='Open a vault'), width=False)
    p_unseal.add_argument('--shares', '-S', nargs='+', required=True, help='Share strings or files')
    p_unseal.add_argument('--ciphertext', '-c', required=True, help='Ciphertext file')
    p_unseal.add_argument('--output', '-o', help='Output file (default: print to stdout)')

    p_verify = with_matrix(sub.add_parser('verify', help='Verify vault shares'), width=False)
    p_verify.add_argument('--shares', '-S', nargs='+', required=True, help='Share strings or files')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(levelname)s %(name)s: %(message)s')

    if not args.command:
        parser.print_help()
        return 1

    handlers = {
        'check': cmd_check,
        'split': cmd_split,
        'reconstruct': cmd_reconstruct,
        'validate': cmd_validate,
        'seal': cmd_seal,
        'unseal': cmd_unseal,
        'verify': cmd_verify,
    }

    try:
        return handlers[args.command](args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
