"""
Notifer Credential Store — Encrypted topic tokens keyed by credentials id,
using Fernet symmetric encryption.

Provides:
    - CredentialStore: set/get/remove/list topic tokens in a YAML file
    - Key derivation from NOTIFER_SECRET_KEY (or an explicit key)
    - get_token() doubles as the token_lookup callable for BuildNotifier

Security model:
    - Tokens encrypted at rest using Fernet (AES-128-CBC + HMAC-SHA256)
    - Encryption key derived from NOTIFER_SECRET_KEY env var when set
    - Decrypted only at lookup time, never logged
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from cryptography.fernet import Fernet, InvalidToken

from notifer.engine.errors import NotiferCredentialsError

logger = logging.getLogger("notifer.engine.credentials")

# Default secret key source (override via NOTIFER_SECRET_KEY env var)
_DEFAULT_SECRET_KEY = "notifer-dev-key-change-in-production"


class CredentialStore:
    """
    Encrypts and stores topic tokens in a YAML file:

        tokens:
          ci-token: gAAAAAB...   # Fernet token, base64 text

    Usage:
        store = CredentialStore(".notifer/credentials.yaml")
        store.set_token("ci-token", "tk_live_...")
        store.get_token("ci-token")
        # → "tk_live_..."
    """

    def __init__(self, path: str, secret_key: Optional[str] = None):
        self._path = Path(path)
        self._fernet = self._build_fernet(secret_key)
        self._lock = threading.Lock()

    @staticmethod
    def _build_fernet(secret_key: Optional[str] = None) -> Fernet:
        """
        Build a Fernet instance from a secret key.

        Uses NOTIFER_SECRET_KEY env var if available, otherwise falls back to
        the provided secret_key or the default dev key.
        """
        key_source = (
            os.environ.get("NOTIFER_SECRET_KEY")
            or secret_key
            or _DEFAULT_SECRET_KEY
        )

        # Fernet wants a URL-safe base64 encoded 32-byte key
        derived = hashlib.sha256(key_source.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(derived))

    @property
    def path(self) -> Path:
        return self._path

    # -----------------------------------------------------------------------
    # Encrypt / Decrypt
    # -----------------------------------------------------------------------

    def encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def decrypt(self, encrypted: str) -> str:
        """
        Raises:
            NotiferCredentialsError: wrong key or corrupted data.
        """
        try:
            return self._fernet.decrypt(encrypted.encode("ascii")).decode("utf-8")
        except InvalidToken:
            raise NotiferCredentialsError(
                "Failed to decrypt token — encryption key may have changed",
                store=str(self._path),
            )
        except (UnicodeDecodeError, UnicodeEncodeError) as e:
            raise NotiferCredentialsError(f"Corrupted credential data: {e}", store=str(self._path))

    # -----------------------------------------------------------------------
    # File operations
    # -----------------------------------------------------------------------

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise NotiferCredentialsError(f"Cannot read credential store: {e}", store=str(self._path))
        tokens = raw.get("tokens", {}) if isinstance(raw, dict) else None
        if not isinstance(tokens, dict):
            raise NotiferCredentialsError("Credential store is malformed", store=str(self._path))
        return {str(k): str(v) for k, v in tokens.items()}

    def _write(self, tokens: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"tokens": tokens}, f, sort_keys=True)
        try:
            os.chmod(self._path, 0o600)
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {self._path}: {e}")

    def set_token(self, credentials_id: str, token: str) -> None:
        """Encrypt and store the token for a credentials id (replacing any existing one)."""
        if not credentials_id:
            raise NotiferCredentialsError("Credentials id is required")
        if not token:
            raise NotiferCredentialsError("Token is required", credentials_id=credentials_id)
        with self._lock:
            tokens = self._read()
            tokens[credentials_id] = self.encrypt(token)
            self._write(tokens)
        logger.info(f"Stored token for credentials id '{credentials_id}'")

    def get_token(self, credentials_id: str) -> Optional[str]:
        """Return the decrypted token, or None if the id is unknown."""
        if not credentials_id:
            return None
        with self._lock:
            encrypted = self._read().get(credentials_id)
        if encrypted is None:
            logger.debug(f"No token stored for credentials id '{credentials_id}'")
            return None
        return self.decrypt(encrypted)

    def remove_token(self, credentials_id: str) -> bool:
        """Remove a stored token. Returns False if it was not present."""
        with self._lock:
            tokens = self._read()
            if credentials_id not in tokens:
                return False
            del tokens[credentials_id]
            self._write(tokens)
        logger.info(f"Removed token for credentials id '{credentials_id}'")
        return True

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._read())
