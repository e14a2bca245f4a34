""" account_source.py

Reads the operator's account file for a targeted pass.

The file is JSON mapping account names to a list whose first element is the password: {"name": ["password"], ...}. It may arrive wrapped in an RSA envelope,
see CredentialCipher.unwrap_envelope. Large lists are split across cooperating processes by taking every `number`-th entry starting at `index`.
"""
import json
import logging
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Sequence

from ..credential_cipher import CredentialCipher
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class AccountEntry(NamedTuple):
    account_name: str
    password: Optional[str]

    def __repr__(self) -> str:
        return f"AccountEntry(account_name={self.account_name!r})"


def _password(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value:
        return value[0]
    return None


def parse_account_document(raw: bytes) -> List[AccountEntry]:
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"Account file is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ConfigurationError("Account file must be a JSON object of account name -> [password]")
    return [AccountEntry(name, _password(value)) for name, value in document.items()]


def load_account_file(path: str, cipher: CredentialCipher) -> List[AccountEntry]:
    account_file = Path(path)
    if not account_file.is_file():
        raise ConfigurationError(f"Account file '{path}' does not exist")
    raw = account_file.read_bytes()
    logger.info("Read account file, %d bytes", len(raw))
    if not raw.strip():
        raise ConfigurationError("Account file is empty")
    entries = parse_account_document(cipher.unwrap_envelope(raw))
    logger.info("Parsed account file, %d account(s)", len(entries))
    return entries


def shard(entries: Sequence[AccountEntry], index: int, number: int) -> List[AccountEntry]:
    return list(entries[index::number])
