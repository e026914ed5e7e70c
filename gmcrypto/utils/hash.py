from __future__ import annotations

import hashlib
from typing import Optional, Union

from gmcrypto.config import KDF_CHOICES, get_kdf
from gmcrypto.core.sm3 import sm3_digest


def derive_key(passphrase: Union[str, bytes], length: int = 16, algorithm: Optional[str] = None) -> bytes:
    """Reduce a passphrase to ``length`` bytes by truncating a digest.

    ``md5`` keeps the first ``length`` hex characters of the MD5 digest, the
    same value a JavaScript front end gets from ``md5(key).substr(0, 16)``.
    ``sm3`` keeps the first ``length`` raw bytes of the SM3 digest.
    """
    algorithm = (algorithm or get_kdf()).lower()
    if algorithm not in KDF_CHOICES:
        raise ValueError(f"Unknown key derivation: {algorithm}")
    data = passphrase.encode("utf-8") if isinstance(passphrase, str) else bytes(passphrase)
    if algorithm == "sm3":
        digest = sm3_digest(data)
    else:
        digest = hashlib.md5(data).hexdigest().encode("ascii")
    if length < 1 or length > len(digest):
        raise ValueError(f"Derived key length must be between 1 and {len(digest)}")
    return digest[:length]
