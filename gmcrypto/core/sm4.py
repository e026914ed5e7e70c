"""
SM4 block cipher (GB/T 32907-2016) with CBC/ECB chaining and PKCS7 padding.

Independent block transforms (ECB in both directions, CBC decryption) are
computed in one NumPy pass once a buffer holds enough blocks.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from gmcrypto.config import get_min_batch_blocks, get_strict_padding
from gmcrypto.core.primitives import (
    BLOCK_SIZE,
    MASK32,
    bytes_to_words,
    linear_l,
    linear_l_prime,
    pkcs7_pad,
    pkcs7_unpad,
    words_to_bytes,
    xor_bytes,
)
from gmcrypto.errors import (
    InvalidCiphertextLength,
    InvalidIvLength,
    InvalidKeyLength,
    UnsupportedMode,
)

KEY_SIZE = 16
ROUNDS = 32
MODES = ("cbc", "ecb")

BytesLike = Union[bytes, bytearray, memoryview]

SBOX = [
    0xd6, 0x90, 0xe9, 0xfe, 0xcc, 0xe1, 0x3d, 0xb7, 0x16, 0xb6, 0x14, 0xc2, 0x28, 0xfb, 0x2c, 0x05,
    0x2b, 0x67, 0x9a, 0x76, 0x2a, 0xbe, 0x04, 0xc3, 0xaa, 0x44, 0x13, 0x26, 0x49, 0x86, 0x06, 0x99,
    0x9c, 0x42, 0x50, 0xf4, 0x91, 0xef, 0x98, 0x7a, 0x33, 0x54, 0x0b, 0x43, 0xed, 0xcf, 0xac, 0x62,
    0xe4, 0xb3, 0x1c, 0xa9, 0xc9, 0x08, 0xe8, 0x95, 0x80, 0xdf, 0x94, 0xfa, 0x75, 0x8f, 0x3f, 0xa6,
    0x47, 0x07, 0xa7, 0xfc, 0xf3, 0x73, 0x17, 0xba, 0x83, 0x59, 0x3c, 0x19, 0xe6, 0x85, 0x4f, 0xa8,
    0x68, 0x6b, 0x81, 0xb2, 0x71, 0x64, 0xda, 0x8b, 0xf8, 0xeb, 0x0f, 0x4b, 0x70, 0x56, 0x9d, 0x35,
    0x1e, 0x24, 0x0e, 0x5e, 0x63, 0x58, 0xd1, 0xa2, 0x25, 0x22, 0x7c, 0x3b, 0x01, 0x21, 0x78, 0x87,
    0xd4, 0x00, 0x46, 0x57, 0x9f, 0xd3, 0x27, 0x52, 0x4c, 0x36, 0x02, 0xe7, 0xa0, 0xc4, 0xc8, 0x9e,
    0xea, 0xbf, 0x8a, 0xd2, 0x40, 0xc7, 0x38, 0xb5, 0xa3, 0xf7, 0xf2, 0xce, 0xf9, 0x61, 0x15, 0xa1,
    0xe0, 0xae, 0x5d, 0xa4, 0x9b, 0x34, 0x1a, 0x55, 0xad, 0x93, 0x32, 0x30, 0xf5, 0x8c, 0xb1, 0xe3,
    0x1d, 0xf6, 0xe2, 0x2e, 0x82, 0x66, 0xca, 0x60, 0xc0, 0x29, 0x23, 0xab, 0x0d, 0x53, 0x4e, 0x6f,
    0xd5, 0xdb, 0x37, 0x45, 0xde, 0xfd, 0x8e, 0x2f, 0x03, 0xff, 0x6a, 0x72, 0x6d, 0x6c, 0x5b, 0x51,
    0x8d, 0x1b, 0xaf, 0x92, 0xbb, 0xdd, 0xbc, 0x7f, 0x11, 0xd9, 0x5c, 0x41, 0x1f, 0x10, 0x5a, 0xd8,
    0x0a, 0xc1, 0x31, 0x88, 0xa5, 0xcd, 0x7b, 0xbd, 0x2d, 0x74, 0xd0, 0x12, 0xb8, 0xe5, 0xb4, 0xb0,
    0x89, 0x69, 0x97, 0x4a, 0x0c, 0x96, 0x77, 0x7e, 0x65, 0xb9, 0xf1, 0x09, 0xc5, 0x6e, 0xc6, 0x84,
    0x18, 0xf0, 0x7d, 0xec, 0x3a, 0xdc, 0x4d, 0x20, 0x79, 0xee, 0x5f, 0x3e, 0xd7, 0xcb, 0x39, 0x48,
]

FK = [0xA3B1BAC6, 0x56AA3350, 0x677D9197, 0xB27022DC]

CK = [
    0x00070E15, 0x1C232A31, 0x383F464D, 0x545B6269,
    0x70777E85, 0x8C939AA1, 0xA8AFB6BD, 0xC4CBD2D9,
    0xE0E7EEF5, 0xFC030A11, 0x181F262D, 0x343B4249,
    0x50575E65, 0x6C737A81, 0x888F969D, 0xA4ABB2B9,
    0xC0C7CED5, 0xDCE3EAF1, 0xF8FF060D, 0x141B2229,
    0x30373E45, 0x4C535A61, 0x686F767D, 0x848B9299,
    0xA0A7AEB5, 0xBCC3CAD1, 0xD8DFE6ED, 0xF4FB0209,
    0x10171E25, 0x2C333A41, 0x484F565D, 0x646B7279,
]

_NP_SBOX = np.asarray(SBOX, dtype=np.uint32)
_NP_MASK = np.uint32(MASK32)


def _tau(x: int) -> int:
    return (
        (SBOX[(x >> 24) & 0xFF] << 24)
        | (SBOX[(x >> 16) & 0xFF] << 16)
        | (SBOX[(x >> 8) & 0xFF] << 8)
        | SBOX[x & 0xFF]
    )


def _t(x: int) -> int:
    return linear_l(_tau(x))


def _t_key(x: int) -> int:
    return linear_l_prime(_tau(x))


def _to_bytes(value: Any, field: str) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"SM4 {field} must be bytes or str, got {type(value).__name__}")


def normalize_key(key: Any, strict: bool = False) -> bytes:
    """Zero-pad a short key and truncate a long one to 16 bytes."""
    try:
        raw = _to_bytes(key, "key")
    except TypeError as e:
        raise InvalidKeyLength(str(e)) from e
    if raw is None:
        raw = b""
    if strict and len(raw) != KEY_SIZE:
        raise InvalidKeyLength(f"SM4 key must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw[:KEY_SIZE].ljust(KEY_SIZE, b"\x00")


def normalize_iv(iv: Any) -> bytes:
    try:
        raw = _to_bytes(iv, "iv")
    except TypeError as e:
        raise InvalidIvLength(str(e)) from e
    if raw is None or len(raw) != BLOCK_SIZE:
        size = "missing" if raw is None else f"{len(raw)} bytes"
        raise InvalidIvLength(f"CBC mode requires a {BLOCK_SIZE}-byte IV ({size})")
    return raw


def normalize_mode(mode: Optional[str]) -> str:
    value = str(mode or "cbc").strip().lower()
    if value not in MODES:
        raise UnsupportedMode(f"Unsupported SM4 mode: {mode!r}")
    return value


def expand_key(key: bytes) -> Tuple[int, ...]:
    if len(key) != KEY_SIZE:
        raise InvalidKeyLength("SM4 key must be 16 bytes")
    mk = bytes_to_words(key)
    k = [mk[i] ^ FK[i] for i in range(4)]
    for i in range(ROUNDS):
        k.append(k[i] ^ _t_key(k[i+1] ^ k[i+2] ^ k[i+3] ^ CK[i]))
    return tuple(k[4:])


def _crypt_block(block: bytes, rk: Sequence[int]) -> bytes:
    if len(block) != BLOCK_SIZE:
        raise ValueError("SM4 block must be 16 bytes")
    x0, x1, x2, x3 = bytes_to_words(block)
    for r in rk:
        x0, x1, x2, x3 = x1, x2, x3, x0 ^ _t(x1 ^ x2 ^ x3 ^ r)
    return words_to_bytes((x3, x2, x1, x0))


def _np_rotl32(x, n):
    return ((x << n) | (x >> (32 - n))) & _NP_MASK


def _np_t(x):
    b = (
        (_NP_SBOX[(x >> 24) & 0xFF] << 24)
        | (_NP_SBOX[(x >> 16) & 0xFF] << 16)
        | (_NP_SBOX[(x >> 8) & 0xFF] << 8)
        | _NP_SBOX[x & 0xFF]
    )
    return b ^ _np_rotl32(b, 2) ^ _np_rotl32(b, 10) ^ _np_rotl32(b, 18) ^ _np_rotl32(b, 24)


def _crypt_blocks_vectorized(blocks: bytes, rk: Sequence[int]) -> bytes:
    x = np.frombuffer(blocks, dtype=">u4").astype(np.uint32).reshape(-1, 4)
    x0, x1, x2, x3 = x[:, 0], x[:, 1], x[:, 2], x[:, 3]
    for r in rk:
        x0, x1, x2, x3 = x1, x2, x3, x0 ^ _np_t(x1 ^ x2 ^ x3 ^ np.uint32(r))
    out = np.stack([x3, x2, x1, x0], axis=1)
    return out.astype(">u4").tobytes()


def _crypt_blocks(blocks: bytes, rk: Sequence[int], min_batch_blocks: int) -> bytes:
    if len(blocks) % BLOCK_SIZE != 0:
        raise ValueError("Data length must be multiple of 16 bytes")
    count = len(blocks) // BLOCK_SIZE
    if min_batch_blocks and count >= min_batch_blocks:
        return _crypt_blocks_vectorized(blocks, rk)
    return b"".join(
        _crypt_block(blocks[i:i+BLOCK_SIZE], rk) for i in range(0, len(blocks), BLOCK_SIZE)
    )


class SM4Cipher:
    """SM4 instance bound to one (key, mode, iv) triple.

    The round-key schedule is computed once in the constructor and never
    mutated afterwards, so one instance may serve concurrent calls.
    """

    def __init__(
        self,
        key: Any,
        mode: Optional[str] = "cbc",
        iv: Any = None,
        *,
        strict_key: bool = False,
        strict_padding: Optional[bool] = None,
        min_batch_blocks: Optional[int] = None,
    ):
        self.mode = normalize_mode(mode)
        self.key = normalize_key(key, strict=strict_key)
        self.iv = normalize_iv(iv) if self.mode == "cbc" else None
        self.strict_padding = get_strict_padding() if strict_padding is None else bool(strict_padding)
        self.min_batch_blocks = get_min_batch_blocks() if min_batch_blocks is None else max(int(min_batch_blocks), 0)
        self.round_keys = expand_key(self.key)
        self._decrypt_keys = self.round_keys[::-1]

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> "SM4Cipher":
        """Build from a ``{"key", "mode", "iv"}`` mapping."""
        if not isinstance(config, Mapping):
            raise TypeError("SM4 config must be a mapping with 'key', 'mode' and 'iv'")
        return cls(config.get("key", b""), config.get("mode"), config.get("iv"), **kwargs)

    def __repr__(self) -> str:
        return f"SM4Cipher(mode={self.mode!r})"

    def encrypt_block(self, block: BytesLike) -> bytes:
        return _crypt_block(bytes(block), self.round_keys)

    def decrypt_block(self, block: BytesLike) -> bytes:
        return _crypt_block(bytes(block), self._decrypt_keys)

    def encrypt(self, plaintext: BytesLike) -> bytes:
        padded = pkcs7_pad(bytes(plaintext))
        if self.mode == "ecb":
            return _crypt_blocks(padded, self.round_keys, self.min_batch_blocks)
        return self._encrypt_cbc(padded)

    def decrypt(self, ciphertext: BytesLike) -> bytes:
        data = bytes(ciphertext)
        if not data or len(data) % BLOCK_SIZE != 0:
            raise InvalidCiphertextLength(
                f"Ciphertext length {len(data)} is not a positive multiple of {BLOCK_SIZE}"
            )
        if self.mode == "ecb":
            plain = _crypt_blocks(data, self._decrypt_keys, self.min_batch_blocks)
        else:
            plain = self._decrypt_cbc(data)
        return pkcs7_unpad(plain, BLOCK_SIZE, strict=self.strict_padding)

    def _encrypt_cbc(self, padded: bytes) -> bytes:
        out = bytearray()
        chain = self.iv
        for i in range(0, len(padded), BLOCK_SIZE):
            chain = _crypt_block(xor_bytes(padded[i:i+BLOCK_SIZE], chain), self.round_keys)
            out.extend(chain)
        return bytes(out)

    def _decrypt_cbc(self, data: bytes) -> bytes:
        # D(C[i]) does not depend on earlier plaintext, so all blocks go in one pass.
        decrypted = _crypt_blocks(data, self._decrypt_keys, self.min_batch_blocks)
        previous = self.iv + data[:-BLOCK_SIZE]
        return xor_bytes(decrypted, previous)


def sm4_encrypt_block(block: bytes, key: bytes) -> bytes:
    return SM4Cipher(key, "ecb").encrypt_block(block)


def sm4_decrypt_block(block: bytes, key: bytes) -> bytes:
    return SM4Cipher(key, "ecb").decrypt_block(block)


def sm4_encrypt_ecb(data: bytes, key: bytes) -> bytes:
    return SM4Cipher(key, "ecb").encrypt(data)


def sm4_decrypt_ecb(data: bytes, key: bytes) -> bytes:
    return SM4Cipher(key, "ecb").decrypt(data)


def sm4_encrypt_cbc(data: bytes, key: bytes, iv: bytes) -> bytes:
    return SM4Cipher(key, "cbc", iv).encrypt(data)


def sm4_decrypt_cbc(data: bytes, key: bytes, iv: bytes) -> bytes:
    return SM4Cipher(key, "cbc", iv).decrypt(data)
