"""
gmcrypto - SM4 block cipher and SM3 hash in pure Python, with optional
delegation to the host OpenSSL.
"""
from .config import apply_profile

apply_profile()

from .errors import (
    GMCryptoError,
    InvalidKeyLength,
    InvalidIvLength,
    InvalidCiphertextLength,
    InvalidPadding,
    UnsupportedMode,
    BackendUnavailable,
)
from .core.sm4 import SM4Cipher
from .core.sm3 import SM3Hash, sm3_digest, sm3_hex
from .backend import Capabilities, SMEncryption, probe_capabilities, select_backend

__version__ = "1.0.0"
__all__ = [
    'SM4Cipher',
    'SM3Hash',
    'sm3_digest',
    'sm3_hex',
    'SMEncryption',
    'Capabilities',
    'probe_capabilities',
    'select_backend',
    'GMCryptoError',
    'InvalidKeyLength',
    'InvalidIvLength',
    'InvalidCiphertextLength',
    'InvalidPadding',
    'UnsupportedMode',
    'BackendUnavailable',
]
