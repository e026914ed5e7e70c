from .sm4 import (
    SM4Cipher,
    sm4_encrypt_block,
    sm4_decrypt_block,
    sm4_encrypt_ecb,
    sm4_decrypt_ecb,
    sm4_encrypt_cbc,
    sm4_decrypt_cbc,
)
from .sm3 import SM3Hash, sm3_digest, sm3_hex, sm3_batch

__all__ = [
    'SM4Cipher',
    'sm4_encrypt_block',
    'sm4_decrypt_block',
    'sm4_encrypt_ecb',
    'sm4_decrypt_ecb',
    'sm4_encrypt_cbc',
    'sm4_decrypt_cbc',
    'SM3Hash',
    'sm3_digest',
    'sm3_hex',
    'sm3_batch',
]
