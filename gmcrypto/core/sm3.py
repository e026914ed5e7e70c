"""
SM3 cryptographic hash (GB/T 32905-2016).
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from gmcrypto.config import get_sm3_workers
from gmcrypto.core.primitives import MASK32, add32, bytes_to_words, rotl32, words_to_bytes

MessageLike = Union[bytes, bytearray, memoryview, str]

IV = (
    0x7380166F, 0x4914B2B9, 0x172442D7, 0xDA8A0600,
    0xA96F30BC, 0x163138AA, 0xE38DEE4D, 0xB0FB0E4E,
)

T_LOW = 0x79CC4519
T_HIGH = 0x7A879D8A

GROUP_SIZE = 64
DIGEST_SIZE = 32
ROUNDS = 64

# Tj <<< (j mod 32) for every round.
_T_ROTATED = tuple(rotl32(T_LOW if j < 16 else T_HIGH, j) for j in range(ROUNDS))


def _p0(x: int) -> int:
    return x ^ rotl32(x, 9) ^ rotl32(x, 17)


def _p1(x: int) -> int:
    return x ^ rotl32(x, 15) ^ rotl32(x, 23)


def _ff(j: int, x: int, y: int, z: int) -> int:
    if j < 16:
        return x ^ y ^ z
    return (x & y) | (x & z) | (y & z)


def _gg(j: int, x: int, y: int, z: int) -> int:
    if j < 16:
        return x ^ y ^ z
    return (x & y) | (~x & MASK32 & z)


def _as_bytes(message: MessageLike) -> bytes:
    if isinstance(message, str):
        return message.encode("utf-8")
    return bytes(message)


def pad_message(message: bytes) -> bytes:
    """Append 0x80, zeros up to 56 mod 64, then the 64-bit big-endian bit length."""
    bit_length = (len(message) * 8) & 0xFFFFFFFFFFFFFFFF
    zeros = (55 - len(message)) % GROUP_SIZE
    return bytes(message) + b"\x80" + b"\x00" * zeros + bit_length.to_bytes(8, "big")


def iter_groups(padded: bytes) -> Iterable[bytes]:
    if len(padded) % GROUP_SIZE != 0:
        raise ValueError("Padded message length must be a multiple of 64 bytes")
    for i in range(0, len(padded), GROUP_SIZE):
        yield padded[i:i+GROUP_SIZE]


def expand_group(group: bytes) -> Tuple[List[int], List[int]]:
    """Message expansion of one 64-byte group into W (68 words) and W' (64 words)."""
    w = bytes_to_words(group)
    if len(w) != 16:
        raise ValueError("SM3 group must be 64 bytes")
    for j in range(16, 68):
        w.append(
            _p1(w[j-16] ^ w[j-9] ^ rotl32(w[j-3], 15)) ^ rotl32(w[j-13], 7) ^ w[j-6]
        )
    w_prime = [w[j] ^ w[j+4] for j in range(ROUNDS)]
    return w, w_prime


def compress(v: Sequence[int], group: bytes) -> Tuple[int, ...]:
    w, w_prime = expand_group(group)
    a, b, c, d, e, f, g, h = v
    for j in range(ROUNDS):
        a12 = rotl32(a, 12)
        ss1 = rotl32(add32(a12, e, _T_ROTATED[j]), 7)
        ss2 = ss1 ^ a12
        tt1 = add32(_ff(j, a, b, c), d, ss2, w_prime[j])
        tt2 = add32(_gg(j, e, f, g), h, ss1, w[j])
        d = c
        c = rotl32(b, 9)
        b = a
        a = tt1
        h = g
        g = rotl32(f, 19)
        f = e
        e = _p0(tt2)
    return tuple(x ^ y for x, y in zip((a, b, c, d, e, f, g, h), v))


def sm3_digest(message: MessageLike) -> bytes:
    v: Tuple[int, ...] = IV
    for group in iter_groups(pad_message(_as_bytes(message))):
        v = compress(v, group)
    return words_to_bytes(v)


def sm3_hex(message: MessageLike) -> str:
    return sm3_digest(message).hex()


class SM3Hash:
    DIGEST_SIZE = DIGEST_SIZE
    BLOCK_SIZE = GROUP_SIZE

    @staticmethod
    def hash(message: MessageLike) -> bytes:
        return sm3_digest(message)

    @staticmethod
    def hexdigest(message: MessageLike) -> str:
        return sm3_hex(message)


def sm3_batch(data_items: Iterable[MessageLike], max_workers: Optional[int] = None) -> List[bytes]:
    """Batch SM3 hashing with optional threading."""
    items = list(data_items)
    if not items:
        return []
    if max_workers is None:
        max_workers = get_sm3_workers()
    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(sm3_digest, items))
    return [sm3_digest(item) for item in items]
