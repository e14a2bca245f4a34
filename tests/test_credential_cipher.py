from __future__ import annotations

import base64
import json
import logging

import pytest
import rsa
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric import rsa as crypto_rsa

from steam_archive.credential_cipher import CredentialCipher
from steam_archive.errors import CryptoError

ACCOUNTS = {"alice": ["hunter2"], "bob": ["correct horse"]}


@pytest.fixture(scope="module")
def oaep_key() -> crypto_rsa.RSAPrivateKey:
    return crypto_rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _pem(private_key: crypto_rsa.RSAPrivateKey) -> str:
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")


def _oaep_envelope(private_key: crypto_rsa.RSAPrivateKey, document: dict) -> bytes:
    ciphertext = private_key.public_key().encrypt(
        json.dumps(document).encode("utf-8"),
        padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None),
    )
    return json.dumps({"payload": base64.b64encode(ciphertext).decode("ascii"), "scheme": "oaep"}).encode("utf-8")


def test_field_roundtrip(cipher: CredentialCipher) -> None:
    sealed = cipher.encrypt_field("refresh-token-value")

    assert "refresh-token-value" not in sealed
    assert cipher.decrypt_field(sealed) == "refresh-token-value"


def test_same_plaintext_encrypts_differently(cipher: CredentialCipher) -> None:
    assert cipher.encrypt_field("secret") != cipher.encrypt_field("secret")


def test_truncated_ciphertext_is_rejected(cipher: CredentialCipher) -> None:
    sealed = base64.b64decode(cipher.encrypt_field("secret"))

    with pytest.raises(CryptoError):
        cipher.decrypt_field(base64.b64encode(sealed[:20]).decode("ascii"))


def test_tampered_ciphertext_is_rejected(cipher: CredentialCipher) -> None:
    sealed = bytearray(base64.b64decode(cipher.encrypt_field("secret")))
    sealed[-1] ^= 0x01

    with pytest.raises(CryptoError):
        cipher.decrypt_field(base64.b64encode(bytes(sealed)).decode("ascii"))


def test_wrong_key_is_rejected(cipher: CredentialCipher) -> None:
    other = CredentialCipher(CredentialCipher.generate_key())

    with pytest.raises(CryptoError):
        other.decrypt_field(cipher.encrypt_field("secret"))


def test_non_base64_ciphertext_is_rejected(cipher: CredentialCipher) -> None:
    with pytest.raises(CryptoError):
        cipher.decrypt_field("not base64 at all!")


URLSAFE_KEY_BYTES = b"\xfb\xff\xfb" * 10 + b"\xfb\xff"


@pytest.mark.parametrize("secret", ["", "dGVzdA==", "%%%%"])
def test_malformed_key_is_rejected(secret: str) -> None:
    with pytest.raises(CryptoError):
        CredentialCipher(secret)


def test_urlsafe_key_is_the_same_key() -> None:
    urlsafe = base64.urlsafe_b64encode(URLSAFE_KEY_BYTES).decode("ascii")
    standard = base64.b64encode(URLSAFE_KEY_BYTES).decode("ascii")
    assert "-" in urlsafe and "_" in urlsafe

    sealed = CredentialCipher(urlsafe).encrypt_field("secret")

    assert CredentialCipher(standard).decrypt_field(sealed) == "secret"


def test_stray_characters_in_urlsafe_key_are_rejected() -> None:
    urlsafe = base64.urlsafe_b64encode(URLSAFE_KEY_BYTES).decode("ascii")

    with pytest.raises(CryptoError):
        CredentialCipher(urlsafe[:8] + "*" + urlsafe[8:])


def test_unwrap_passes_plain_documents_through(cipher: CredentialCipher) -> None:
    raw = json.dumps(ACCOUNTS).encode("utf-8")

    assert cipher.unwrap_envelope(raw) == raw
    assert cipher.unwrap_envelope(b"not json") == b"not json"


def test_unwrap_decrypts_oaep_envelope(oaep_key: crypto_rsa.RSAPrivateKey) -> None:
    cipher = CredentialCipher(CredentialCipher.generate_key(), _pem(oaep_key))

    unwrapped = cipher.unwrap_envelope(_oaep_envelope(oaep_key, ACCOUNTS))

    assert json.loads(unwrapped) == ACCOUNTS


def test_unwrap_decrypts_pkcs1v15_envelope() -> None:
    public_key, private_key = rsa.newkeys(1024)
    ciphertext = rsa.encrypt(json.dumps(ACCOUNTS).encode("utf-8"), public_key)
    envelope = json.dumps({"payload": base64.b64encode(ciphertext).decode("ascii"), "scheme": "pkcs1v15"})
    cipher = CredentialCipher(CredentialCipher.generate_key(), private_key.save_pkcs1().decode("ascii"))

    assert json.loads(cipher.unwrap_envelope(envelope)) == ACCOUNTS


def test_unwrap_without_private_key_falls_back_loudly(oaep_key: crypto_rsa.RSAPrivateKey, caplog: pytest.LogCaptureFixture) -> None:
    cipher = CredentialCipher(CredentialCipher.generate_key())
    envelope = _oaep_envelope(oaep_key, ACCOUNTS)

    with caplog.at_level(logging.WARNING):
        unwrapped = cipher.unwrap_envelope(envelope)

    assert unwrapped == envelope
    assert "ENVELOPE DECRYPTION FAILED" in caplog.text


def test_unwrap_with_wrong_private_key_falls_back(oaep_key: crypto_rsa.RSAPrivateKey) -> None:
    stranger = crypto_rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cipher = CredentialCipher(CredentialCipher.generate_key(), _pem(stranger))
    envelope = _oaep_envelope(oaep_key, ACCOUNTS)

    assert cipher.unwrap_envelope(envelope) == envelope
