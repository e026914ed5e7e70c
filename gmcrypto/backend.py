"""
Backend selection: delegate SM4/SM3 to the host OpenSSL when it provides
them, otherwise use the pure-Python core.

Host capability is probed by ``probe_capabilities()`` and handed to
``select_backend``/``SMEncryption`` explicitly.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from gmssl import func as gmssl_func
from gmssl import sm3 as gmssl_sm3
from gmssl.sm4 import SM4_DECRYPT, SM4_ENCRYPT, CryptSM4

from gmcrypto.config import BACKEND_CHOICES, get_backend_preference, get_strict_padding
from gmcrypto.core.primitives import BLOCK_SIZE, pkcs7_unpad, xor_bytes
from gmcrypto.core.sm3 import sm3_digest
from gmcrypto.core.sm4 import SM4Cipher, normalize_mode
from gmcrypto.errors import (
    BackendUnavailable,
    InvalidCiphertextLength,
    InvalidIvLength,
    InvalidKeyLength,
    InvalidPadding,
)
from gmcrypto.utils.console import debug_log
from gmcrypto.utils.hash import derive_key


def algorithm_name(mode: str) -> str:
    return f"sm4-{normalize_mode(mode)}"


@dataclass(frozen=True)
class Capabilities:
    sm4_native: bool = False
    sm3_native: bool = False


def _openssl_has_sm4() -> bool:
    try:
        Cipher(algorithms.SM4(bytes(16)), modes.ECB()).encryptor()
    except UnsupportedAlgorithm:
        return False
    return True


def _openssl_has_sm3() -> bool:
    try:
        hashes.Hash(hashes.SM3())
    except UnsupportedAlgorithm:
        return False
    return True


def probe_capabilities() -> Capabilities:
    caps = Capabilities(sm4_native=_openssl_has_sm4(), sm3_native=_openssl_has_sm3())
    debug_log("BACKEND", f"OpenSSL sm4={caps.sm4_native} sm3={caps.sm3_native}")
    return caps


def hash_message(message: bytes, capabilities: Capabilities) -> bytes:
    """SM3 digest, from OpenSSL when the host provides it."""
    if capabilities.sm3_native:
        digest = hashes.Hash(hashes.SM3())
        digest.update(bytes(message))
        return digest.finalize()
    return sm3_digest(message)


def _check_ciphertext(ciphertext: bytes) -> bytes:
    data = bytes(ciphertext)
    if not data or len(data) % BLOCK_SIZE != 0:
        raise InvalidCiphertextLength(
            f"Ciphertext length {len(data)} is not a positive multiple of {BLOCK_SIZE}"
        )
    return data


class CryptoBackend:
    """Common surface of every backend: encrypt, decrypt and hash."""

    name = "base"

    def __init__(self, key: bytes, mode: str = "cbc", iv: Optional[bytes] = None):
        self.mode = normalize_mode(mode)
        self.key = key
        self.iv = iv if self.mode == "cbc" else None

    @property
    def algorithm(self) -> str:
        return algorithm_name(self.mode)

    def encrypt(self, plaintext: bytes) -> bytes:
        raise NotImplementedError

    def decrypt(self, ciphertext: bytes) -> bytes:
        raise NotImplementedError

    def hash(self, message: bytes) -> bytes:
        raise NotImplementedError

    def _check_material(self) -> None:
        if self.key is None or len(self.key) != 16:
            raise InvalidKeyLength(f"{self.name} SM4 requires a 16-byte key")
        if self.mode == "cbc" and (self.iv is None or len(self.iv) != BLOCK_SIZE):
            raise InvalidIvLength(f"{self.name} {self.algorithm} requires a 16-byte IV")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.algorithm})"


class PureBackend(CryptoBackend):
    name = "pure"

    def __init__(self, key: bytes, mode: str = "cbc", iv: Optional[bytes] = None):
        super().__init__(key, mode, iv)
        self._cipher = SM4Cipher(key, self.mode, self.iv)

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._cipher.encrypt(plaintext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        return self._cipher.decrypt(ciphertext)

    def hash(self, message: bytes) -> bytes:
        return sm3_digest(message)


class OpenSSLBackend(CryptoBackend):
    """SM4/SM3 from the OpenSSL build behind ``cryptography``."""

    name = "openssl"

    def __init__(self, key: bytes, mode: str = "cbc", iv: Optional[bytes] = None, sm3_native: bool = True):
        super().__init__(key, mode, iv)
        self._check_material()
        self.sm3_native = sm3_native

    def _cipher(self) -> Cipher:
        mode = modes.CBC(self.iv) if self.mode == "cbc" else modes.ECB()
        return Cipher(algorithms.SM4(self.key), mode)

    def encrypt(self, plaintext: bytes) -> bytes:
        padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
        padded = padder.update(bytes(plaintext)) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        data = _check_ciphertext(ciphertext)
        decryptor = self._cipher().decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise InvalidPadding(str(e)) from e

    def hash(self, message: bytes) -> bytes:
        return hash_message(message, Capabilities(sm4_native=True, sm3_native=self.sm3_native))


class GmsslBackend(CryptoBackend):
    """SM4/SM3 from the ``gmssl`` package.

    ``CryptSM4`` keeps its key schedule on the instance, so a fresh one is
    made per call.
    """

    name = "gmssl"

    def __init__(self, key: bytes, mode: str = "cbc", iv: Optional[bytes] = None, strict_padding: Optional[bool] = None):
        super().__init__(key, mode, iv)
        self._check_material()
        self.strict_padding = get_strict_padding() if strict_padding is None else bool(strict_padding)

    def _crypt_sm4(self, key_mode: int) -> CryptSM4:
        crypt = CryptSM4()
        crypt.set_key(self.key, key_mode)
        return crypt

    def encrypt(self, plaintext: bytes) -> bytes:
        crypt = self._crypt_sm4(SM4_ENCRYPT)
        if self.mode == "cbc":
            return bytes(crypt.crypt_cbc(self.iv, bytes(plaintext)))
        return bytes(crypt.crypt_ecb(bytes(plaintext)))

    def decrypt(self, ciphertext: bytes) -> bytes:
        # Block transforms come from gmssl; chaining and the padding check
        # stay here so malformed padding raises InvalidPadding.
        data = _check_ciphertext(ciphertext)
        crypt = self._crypt_sm4(SM4_DECRYPT)
        out = bytearray()
        previous = self.iv
        for i in range(0, len(data), BLOCK_SIZE):
            block = data[i:i+BLOCK_SIZE]
            plain = bytes(crypt.one_round(crypt.sk, gmssl_func.bytes_to_list(block)))
            if self.mode == "cbc":
                plain = xor_bytes(plain, previous)
                previous = block
            out.extend(plain)
        return pkcs7_unpad(bytes(out), BLOCK_SIZE, strict=self.strict_padding)

    def hash(self, message: bytes) -> bytes:
        return bytes.fromhex(gmssl_sm3.sm3_hash(gmssl_func.bytes_to_list(bytes(message))))


def select_backend(
    key: bytes,
    mode: str,
    iv: Optional[bytes],
    capabilities: Capabilities,
    prefer: Optional[str] = None,
) -> CryptoBackend:
    """Pick a backend for already-derived 16-byte key/IV material."""
    choice = (prefer or "auto").lower()
    if choice not in BACKEND_CHOICES:
        raise ValueError(f"Unknown backend: {prefer}")
    if choice == "openssl" and not capabilities.sm4_native:
        raise BackendUnavailable("OpenSSL on this host does not provide SM4")
    if choice == "auto":
        choice = "openssl" if capabilities.sm4_native else "pure"

    if choice == "openssl":
        backend: CryptoBackend = OpenSSLBackend(key, mode, iv, sm3_native=capabilities.sm3_native)
    elif choice == "gmssl":
        backend = GmsslBackend(key, mode, iv)
    else:
        backend = PureBackend(key, mode, iv)
    debug_log("BACKEND", f"Using {backend.name} for {backend.algorithm}")
    return backend


class SMEncryption:
    """Passphrase-keyed SM4/SM3 front end over the selected backend.

    Config keys: ``key`` and ``iv`` passphrases, ``mode`` (``cbc``/``ecb``)
    and an optional ``kdf`` (``md5``/``sm3``). Passphrases are reduced to
    16 bytes with ``derive_key`` before reaching any backend.

    Unlike the PHP wrapper this replaces, a missing key or CBC iv and an
    unknown mode raise instead of defaulting to ``'evit'`` and ``cbc``.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        capabilities: Optional[Capabilities] = None,
        prefer: Optional[str] = None,
    ):
        if config is not None and not isinstance(config, Mapping):
            raise TypeError("SMEncryption config must be a mapping with 'key', 'mode' and 'iv'")
        config = dict(config or {})
        self.mode = normalize_mode(config.get("mode"))
        kdf = config.get("kdf")

        passphrase = config.get("key")
        if passphrase is None:
            raise InvalidKeyLength("A key passphrase is required")
        self.key = derive_key(passphrase, 16, kdf)

        self.iv = None
        if self.mode == "cbc":
            iv = config.get("iv")
            if iv is None:
                raise InvalidIvLength("CBC mode requires an iv passphrase")
            self.iv = derive_key(iv, BLOCK_SIZE, kdf)

        self.capabilities = capabilities if capabilities is not None else probe_capabilities()
        self.backend = select_backend(
            self.key, self.mode, self.iv, self.capabilities, prefer or get_backend_preference()
        )

    @property
    def backend_name(self) -> str:
        return self.backend.name

    @property
    def is_native(self) -> bool:
        return self.backend.name == "openssl"

    def encrypt(self, plaintext: bytes) -> bytes:
        return self.backend.encrypt(plaintext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        return self.backend.decrypt(ciphertext)

    def hash(self, message: bytes) -> bytes:
        return self.backend.hash(message)

    def encrypt_text(self, text: str) -> str:
        """Encrypt UTF-8 text and return base64."""
        return base64.b64encode(self.encrypt(text.encode("utf-8"))).decode("ascii")

    def decrypt_text(self, encoded: str) -> str:
        return self.decrypt(base64.b64decode(encoded, validate=True)).decode("utf-8")
