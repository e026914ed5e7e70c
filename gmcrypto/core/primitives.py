"""
32-bit word helpers and PKCS7 padding shared by SM3 and SM4.
"""

from __future__ import annotations

from typing import Iterable, List

from gmcrypto.errors import InvalidPadding

MASK32 = 0xFFFFFFFF
BLOCK_SIZE = 16


def rotl32(x: int, n: int) -> int:
    n %= 32
    x &= MASK32
    if n == 0:
        return x
    return ((x << n) | (x >> (32 - n))) & MASK32


def add32(*values: int) -> int:
    return sum(values) & MASK32


def linear_l(x: int) -> int:
    """L transform of the SM4 data path."""
    return x ^ rotl32(x, 2) ^ rotl32(x, 10) ^ rotl32(x, 18) ^ rotl32(x, 24)


def linear_l_prime(x: int) -> int:
    """L' transform of the SM4 key expansion."""
    return x ^ rotl32(x, 13) ^ rotl32(x, 23)


def bytes_to_words(data: bytes) -> List[int]:
    if len(data) % 4 != 0:
        raise ValueError("Data length must be multiple of 4 bytes")
    return [int.from_bytes(data[i:i+4], "big") for i in range(0, len(data), 4)]


def words_to_bytes(words: Iterable[int]) -> bytes:
    return b"".join((w & MASK32).to_bytes(4, "big") for w in words)


def xor_bytes(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError("XOR operands must have equal length")
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(len(a), "big")


def pkcs7_pad(data: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    # An aligned input still gets a full block of padding.
    pad_len = block_size - (len(data) % block_size)
    return bytes(data) + bytes([pad_len]) * pad_len


def pkcs7_unpad(data: bytes, block_size: int = BLOCK_SIZE, strict: bool = True) -> bytes:
    if not data:
        raise InvalidPadding("Invalid padding: empty input")
    pad_len = data[-1]
    if pad_len < 1 or pad_len > block_size or pad_len > len(data):
        raise InvalidPadding(f"Invalid padding length {pad_len}")
    if strict and data[-pad_len:] != bytes([pad_len]) * pad_len:
        raise InvalidPadding("Invalid padding bytes")
    return bytes(data[:-pad_len])
