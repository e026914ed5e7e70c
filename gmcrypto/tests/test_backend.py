import base64
import hashlib

import pytest

from gmcrypto.backend import (
    Capabilities,
    GmsslBackend,
    OpenSSLBackend,
    PureBackend,
    SMEncryption,
    algorithm_name,
    hash_message,
    select_backend,
)
from gmcrypto.core.sm3 import sm3_digest
from gmcrypto.core.sm4 import SM4Cipher
from gmcrypto.errors import (
    BackendUnavailable,
    InvalidCiphertextLength,
    InvalidIvLength,
    InvalidKeyLength,
    InvalidPadding,
    UnsupportedMode,
)
from gmcrypto.utils.hash import derive_key

NO_NATIVE = Capabilities(sm4_native=False, sm3_native=False)
PLAINTEXTS = [b"", b"a", b"sixteen byte msg", b"gmcrypto-sm4-cbc-test-data" * 5]


def test_algorithm_names():
    assert algorithm_name("CBC") == "sm4-cbc"
    assert algorithm_name("ecb") == "sm4-ecb"


def test_auto_falls_back_to_pure(key, iv):
    backend = select_backend(key, "cbc", iv, NO_NATIVE)
    assert isinstance(backend, PureBackend)
    assert backend.algorithm == "sm4-cbc"


def test_auto_prefers_openssl_when_probed(key, iv):
    backend = select_backend(key, "cbc", iv, Capabilities(sm4_native=True, sm3_native=False))
    assert isinstance(backend, OpenSSLBackend)


def test_forced_openssl_without_capability(key, iv):
    with pytest.raises(BackendUnavailable):
        select_backend(key, "cbc", iv, NO_NATIVE, prefer="openssl")


def test_unknown_backend_name(key, iv):
    with pytest.raises(ValueError):
        select_backend(key, "cbc", iv, NO_NATIVE, prefer="libsodium")


def test_hash_message_without_native():
    assert hash_message(b"abc", NO_NATIVE) == sm3_digest(b"abc")


@pytest.mark.parametrize("mode", ["cbc", "ecb"])
def test_gmssl_matches_pure(key, iv, mode):
    pure = PureBackend(key, mode, iv)
    gm = GmsslBackend(key, mode, iv)
    for plaintext in PLAINTEXTS:
        ciphertext = pure.encrypt(plaintext)
        assert gm.encrypt(plaintext) == ciphertext
        assert gm.decrypt(ciphertext) == plaintext
    assert gm.hash(b"abc") == pure.hash(b"abc")


def test_gmssl_decrypt_errors(key, iv):
    gm = GmsslBackend(key, "cbc", iv)
    with pytest.raises(InvalidCiphertextLength):
        gm.decrypt(b"\x00" * 20)
    forged = SM4Cipher(key, "ecb").encrypt_block(bytes(a ^ b for a, b in zip(b"A" * 15 + b"\x00", iv)))
    with pytest.raises(InvalidPadding):
        gm.decrypt(forged)


@pytest.mark.parametrize("mode", ["cbc", "ecb"])
def test_openssl_matches_pure(key, iv, mode, host_capabilities):
    if not host_capabilities.sm4_native:
        pytest.skip("OpenSSL without SM4")
    pure = PureBackend(key, mode, iv)
    native = OpenSSLBackend(key, mode, iv, sm3_native=host_capabilities.sm3_native)
    for plaintext in PLAINTEXTS:
        ciphertext = native.encrypt(plaintext)
        assert ciphertext == pure.encrypt(plaintext)
        assert native.decrypt(ciphertext) == plaintext
    assert native.hash(b"abc") == sm3_digest(b"abc")
    with pytest.raises(InvalidCiphertextLength):
        native.decrypt(b"\x00" * 17)


def test_openssl_bad_padding(key, host_capabilities):
    if not host_capabilities.sm4_native:
        pytest.skip("OpenSSL without SM4")
    native = OpenSSLBackend(key, "ecb")
    forged = SM4Cipher(key, "ecb").encrypt_block(b"A" * 15 + b"\x00")
    with pytest.raises(InvalidPadding):
        native.decrypt(forged)


def test_openssl_native_sm3(host_capabilities):
    if not host_capabilities.sm3_native:
        pytest.skip("OpenSSL without SM3")
    assert hash_message(b"abc", host_capabilities) == sm3_digest(b"abc")


def test_derive_key_md5_prefix():
    expected = hashlib.md5(b"secret").hexdigest()[:16].encode()
    assert derive_key("secret", algorithm="md5") == expected
    assert derive_key(b"secret", algorithm="md5") == expected


def test_derive_key_sm3_prefix():
    assert derive_key("secret", algorithm="sm3") == sm3_digest(b"secret")[:16]
    with pytest.raises(ValueError):
        derive_key("secret", algorithm="sha1")
    with pytest.raises(ValueError):
        derive_key("secret", length=0, algorithm="sm3")


def test_smencryption_derives_key_and_iv(clean_env):
    sm4 = SMEncryption({"key": "k", "iv": "v", "mode": "cbc"}, capabilities=NO_NATIVE)
    assert sm4.key == hashlib.md5(b"k").hexdigest()[:16].encode()
    assert sm4.iv == hashlib.md5(b"v").hexdigest()[:16].encode()
    assert sm4.backend_name == "pure"
    assert not sm4.is_native
    reference = SM4Cipher(sm4.key, "cbc", sm4.iv)
    assert sm4.encrypt(b"hello") == reference.encrypt(b"hello")


def test_smencryption_text_roundtrip(clean_env):
    sm4 = SMEncryption({"key": "passphrase", "iv": "iv-passphrase"}, capabilities=NO_NATIVE)
    token = sm4.encrypt_text("国密 SM4 text")
    base64.b64decode(token, validate=True)
    assert sm4.decrypt_text(token) == "国密 SM4 text"


def test_smencryption_ecb_needs_no_iv(clean_env):
    sm4 = SMEncryption({"key": "k", "mode": "ecb"}, capabilities=NO_NATIVE)
    assert sm4.iv is None
    assert sm4.decrypt(sm4.encrypt(b"x" * 40)) == b"x" * 40


def test_smencryption_requires_material(clean_env):
    with pytest.raises(InvalidIvLength):
        SMEncryption({"key": "k", "mode": "cbc"}, capabilities=NO_NATIVE)
    with pytest.raises(InvalidKeyLength):
        SMEncryption({"iv": "v"}, capabilities=NO_NATIVE)
    with pytest.raises(TypeError):
        SMEncryption(["k", "cbc", "v"], capabilities=NO_NATIVE)
    with pytest.raises(UnsupportedMode):
        SMEncryption({"key": "k", "iv": "v", "mode": "ctr"}, capabilities=NO_NATIVE)


def test_smencryption_backend_from_environment(clean_env):
    clean_env["GMCRYPTO_BACKEND"] = "gmssl"
    sm4 = SMEncryption({"key": "k", "iv": "v"}, capabilities=NO_NATIVE)
    assert sm4.backend_name == "gmssl"
    assert sm4.hash(b"abc") == sm3_digest(b"abc")


def test_smencryption_sm3_kdf(clean_env):
    sm4 = SMEncryption({"key": "k", "iv": "v", "kdf": "sm3"}, capabilities=NO_NATIVE)
    assert sm4.key == sm3_digest(b"k")[:16]


@pytest.mark.parametrize("bad_iv", [None, b"short", b"x" * 17])
def test_gmssl_cbc_rejects_bad_iv_at_construction(key, bad_iv):
    with pytest.raises(InvalidIvLength):
        select_backend(key, "cbc", bad_iv, NO_NATIVE, prefer="gmssl")


def test_gmssl_rejects_bad_key_at_construction(iv):
    with pytest.raises(InvalidKeyLength):
        GmsslBackend(b"short", "cbc", iv)
    with pytest.raises(InvalidKeyLength):
        GmsslBackend(b"k" * 17, "ecb")


def test_gmssl_ecb_needs_no_iv(key):
    assert GmsslBackend(key, "ecb").iv is None


def test_openssl_rejects_bad_iv_at_construction(key):
    with pytest.raises(InvalidIvLength):
        OpenSSLBackend(key, "cbc", None)


def test_gmssl_honours_padding_setting(key, clean_env):
    forged = SM4Cipher(key, "ecb").encrypt_block(b"A" * 14 + b"\x01\x02")
    with pytest.raises(InvalidPadding):
        GmsslBackend(key, "ecb").decrypt(forged)
    clean_env["GMCRYPTO_STRICT_PADDING"] = "0"
    assert GmsslBackend(key, "ecb").decrypt(forged) == b"A" * 14
    assert PureBackend(key, "ecb").decrypt(forged) == b"A" * 14


def test_debug_log_reports_selection(key, iv, clean_env, capsys):
    select_backend(key, "cbc", iv, NO_NATIVE)
    assert capsys.readouterr().out == ""
    clean_env["GMCRYPTO_DEBUG"] = "1"
    select_backend(key, "cbc", iv, NO_NATIVE)
    assert "Using pure for sm4-cbc" in capsys.readouterr().out
