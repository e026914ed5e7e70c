"""Exception types raised by gmcrypto."""


class GMCryptoError(ValueError):
    """Base class for all gmcrypto errors."""


class InvalidKeyLength(GMCryptoError):
    pass


class InvalidIvLength(GMCryptoError):
    pass


class InvalidCiphertextLength(GMCryptoError):
    pass


class InvalidPadding(GMCryptoError):
    pass


class UnsupportedMode(GMCryptoError):
    pass


class BackendUnavailable(GMCryptoError):
    """Requested backend is not provided by the host."""


__all__ = [
    "GMCryptoError",
    "InvalidKeyLength",
    "InvalidIvLength",
    "InvalidCiphertextLength",
    "InvalidPadding",
    "UnsupportedMode",
    "BackendUnavailable",
]
