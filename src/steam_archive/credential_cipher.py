""" credential_cipher.py

Field-level encryption for account secrets at rest, and decryption of the optionally enveloped account file handed to us by the operator.

Field ciphertexts are base64(nonce || AES-GCM ciphertext+tag). The nonce is random per call, so the same refresh token encrypted twice never looks the same in the repository.
The AES key is supplied by the operator as base64 (16, 24 or 32 bytes). The RSA key for envelopes is a PEM private key read from RSA_PRIVATE_KEY.
"""
import base64
import binascii
import json
import logging
import os
from typing import Optional, Union

import rsa
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CryptoError

logger = logging.getLogger(__name__)

RSA_PRIVATE_KEY_ENV = "RSA_PRIVATE_KEY"
ENVELOPE_PAYLOAD_FIELD = "payload"
ENVELOPE_SCHEME_FIELD = "scheme"

_NONCE_SIZE = 12
_TAG_SIZE = 16
_VALID_KEY_SIZES = (16, 24, 32)
_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def _decode_key(secret: str) -> bytes:
    secret = secret.strip()
    if "-" in secret or "_" in secret:
        secret = secret.translate(_URLSAFE_TO_STANDARD)
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("AES key is not valid base64") from e
    if len(key) not in _VALID_KEY_SIZES:
        raise CryptoError(f"AES key must decode to 16, 24 or 32 bytes, got {len(key)}")
    return key


class CredentialCipher:
    """Symmetric field encryption plus best-effort envelope unwrapping.

    Key material is loaded once and never changes for the lifetime of the process, so one instance can be shared by every task.
    """

    def __init__(self, secret: str, rsa_private_key_pem: Optional[str] = None):
        if not secret:
            raise CryptoError("No AES key provided")
        self._aes = AESGCM(_decode_key(secret))
        self._rsa_private_key_pem = rsa_private_key_pem

    @staticmethod
    def generate_key() -> str:
        return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")

    def encrypt_field(self, plaintext: str) -> str:
        nonce = os.urandom(_NONCE_SIZE)
        sealed = self._aes.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt_field(self, ciphertext: str) -> str:
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError("Ciphertext is not valid base64") from e
        if len(raw) < _NONCE_SIZE + _TAG_SIZE:
            raise CryptoError("Ciphertext is truncated")
        try:
            plaintext = self._aes.decrypt(raw[:_NONCE_SIZE], raw[_NONCE_SIZE:], None)
        except InvalidTag as e:
            raise CryptoError("Ciphertext failed authentication (wrong key or corrupted data)") from e
        return plaintext.decode("utf-8")

    def unwrap_envelope(self, raw: Union[str, bytes]) -> bytes:
        """Return the decrypted payload if `raw` is an envelope, otherwise `raw` unchanged.

        This never raises. A document without a payload field is taken to be plaintext. A document that has one but cannot be decrypted is also taken to be plaintext,
        which is logged loudly since it usually means RSA_PRIVATE_KEY is missing or wrong.
        """
        data = raw.encode("utf-8") if isinstance(raw, str) else raw
        try:
            document = json.loads(data)
        except ValueError:
            logger.info("Account file is not JSON, skipping envelope detection")
            return data

        if not isinstance(document, dict) or not isinstance(document.get(ENVELOPE_PAYLOAD_FIELD), str):
            logger.debug("No envelope payload field, treating account file as plaintext")
            return data

        try:
            plaintext = self._decrypt_envelope_payload(document[ENVELOPE_PAYLOAD_FIELD], document.get(ENVELOPE_SCHEME_FIELD, "oaep"))
        except (CryptoError, ValueError, TypeError, UnsupportedAlgorithm, rsa.pkcs1.CryptoError) as e:
            logger.warning("ENVELOPE DECRYPTION FAILED, falling back to plaintext ingestion. Check %s. Reason: %s", RSA_PRIVATE_KEY_ENV, e)
            return data

        logger.info("Decrypted enveloped account file")
        return plaintext

    def _decrypt_envelope_payload(self, payload: str, scheme: str) -> bytes:
        if not self._rsa_private_key_pem:
            raise CryptoError(f"{RSA_PRIVATE_KEY_ENV} is not set")
        try:
            ciphertext = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise CryptoError("Envelope payload is not valid base64") from e

        if scheme == "pkcs1v15":
            # legacy envelopes produced with python-rsa on the sending side.
            private_key = rsa.PrivateKey.load_pkcs1(self._rsa_private_key_pem.encode("ascii"))
            return rsa.decrypt(ciphertext, private_key)
        elif scheme == "oaep":
            private_key = serialization.load_pem_private_key(self._rsa_private_key_pem.encode("ascii"), password=None)
            return private_key.decrypt(
                ciphertext,
                padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None),
            )
        else:
            raise CryptoError(f"Unknown envelope scheme {scheme!r}")
