"""Runtime configuration profiles for gmcrypto."""
from __future__ import annotations

import os
from typing import Dict

PROFILE = os.getenv("GMCRYPTO_PROFILE", "")

BACKEND_CHOICES = ("auto", "openssl", "gmssl", "pure")
KDF_CHOICES = ("md5", "sm3")

DEFAULTS: Dict[str, str] = {
    "GMCRYPTO_BACKEND": "auto",
    "GMCRYPTO_SM4_MIN_BLOCKS": "8",
    "GMCRYPTO_SM3_WORKERS": "0",
    "GMCRYPTO_STRICT_PADDING": "1",
    "GMCRYPTO_KDF": "md5",
    "GMCRYPTO_DEBUG": "0",
}

PROFILES: Dict[str, Dict[str, str]] = {
    "fast": {
        "GMCRYPTO_BACKEND": "auto",
        "GMCRYPTO_SM4_MIN_BLOCKS": "4",
        "GMCRYPTO_SM3_WORKERS": "4",
    },
    "portable": {
        "GMCRYPTO_BACKEND": "pure",
        "GMCRYPTO_SM4_MIN_BLOCKS": "0",
        "GMCRYPTO_SM3_WORKERS": "0",
    },
}


def apply_profile() -> None:
    profile = os.getenv("GMCRYPTO_PROFILE", PROFILE)
    if not profile:
        return
    settings = PROFILES.get(profile)
    if not settings:
        return
    for key, value in settings.items():
        os.environ.setdefault(key, value)


def _env(name: str) -> str:
    return os.getenv(name, DEFAULTS[name]).strip()


def _env_int(name: str) -> int:
    try:
        value = int(_env(name))
    except ValueError:
        value = int(DEFAULTS[name])
    return max(value, 0)


def _env_flag(name: str) -> bool:
    return _env(name).lower() in ("1", "true", "yes", "on")


def get_backend_preference() -> str:
    value = _env("GMCRYPTO_BACKEND").lower()
    return value if value in BACKEND_CHOICES else DEFAULTS["GMCRYPTO_BACKEND"]


def get_min_batch_blocks() -> int:
    """Block count at which SM4 switches to the vectorized path (0 = never)."""
    return _env_int("GMCRYPTO_SM4_MIN_BLOCKS")


def get_sm3_workers() -> int:
    return _env_int("GMCRYPTO_SM3_WORKERS")


def get_strict_padding() -> bool:
    return _env_flag("GMCRYPTO_STRICT_PADDING")


def get_kdf() -> str:
    value = _env("GMCRYPTO_KDF").lower()
    return value if value in KDF_CHOICES else DEFAULTS["GMCRYPTO_KDF"]


def is_debug() -> bool:
    return _env_flag("GMCRYPTO_DEBUG")
