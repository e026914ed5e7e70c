# gmcrypto/cli.py
import argparse
import sys
import time

from . import __version__
from .backend import SMEncryption, hash_message, probe_capabilities
from .config import BACKEND_CHOICES, KDF_CHOICES
from .utils.console import print_error, print_info, print_success, print_warn


def _build_parser():
    parser = argparse.ArgumentParser(prog="gmcrypto", description="SM4 encryption and SM3 hashing")
    parser.add_argument('--version', action='store_true', help='Show version')
    parser.add_argument('--timing', action='store_true', help='Print elapsed time')
    sub = parser.add_subparsers(dest='command')

    for name, help_text in (('encrypt', 'Encrypt text, print base64'), ('decrypt', 'Decrypt base64, print text')):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument('data')
        cmd.add_argument('--key', required=True, help='Key passphrase')
        cmd.add_argument('--iv', help='IV passphrase (cbc mode)')
        cmd.add_argument('--mode', default='cbc', choices=['cbc', 'ecb'])
        cmd.add_argument('--backend', choices=BACKEND_CHOICES, help='Force a backend')
        cmd.add_argument('--kdf', choices=KDF_CHOICES, help='Passphrase derivation')

    cmd = sub.add_parser('hash', help='SM3 hex digest of text')
    cmd.add_argument('data')

    sub.add_parser('backends', help='Show which native algorithms the host provides')
    return parser


def _run(args):
    capabilities = probe_capabilities()
    if args.command == 'backends':
        print_info(f"sm4-cbc/sm4-ecb native: {capabilities.sm4_native}")
        print_info(f"sm3 native: {capabilities.sm3_native}")
        if not capabilities.sm4_native:
            print_warn("WARNING: host OpenSSL has no SM4, encryption uses the pure backend")
        return
    if args.command == 'hash':
        print(hash_message(args.data.encode('utf-8'), capabilities).hex())
        return

    config = {'key': args.key, 'iv': args.iv, 'mode': args.mode, 'kdf': args.kdf}
    sm4 = SMEncryption(config, capabilities=capabilities, prefer=args.backend)
    if args.command == 'encrypt':
        print(sm4.encrypt_text(args.data))
    else:
        print(sm4.decrypt_text(args.data))
    if args.timing:
        print_info(f"Backend: {sm4.backend_name}")


def main(argv=None):
    """Command line interface for gmcrypto"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"gmcrypto v{__version__}")
        return 0
    if not args.command:
        parser.print_help()
        return 0

    start = time.perf_counter()
    try:
        _run(args)
    except ValueError as e:
        print_error(f"ERROR: {e}")
        return 1
    if args.timing:
        print_success(f"Time elapsed: {time.perf_counter() - start:.8f} s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
