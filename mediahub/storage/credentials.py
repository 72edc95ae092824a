"""
Encrypted on-disk storage for instance secrets (API keys, usernames, passwords).

Secrets are addressed by ``(instance id, kind)``. Global secrets, such as the TMDB
API key, live under a fixed sentinel address that can never collide with an
instance id. Every value is encrypted with Fernet before it touches the disk.
"""

import asyncio
import base64
import hashlib
import json
import logging
import os
from enum import Enum
from pathlib import Path
from uuid import UUID

import aiofiles
from cryptography.fernet import Fernet, InvalidToken

from mediahub.exceptions import CredentialStoreError

log = logging.getLogger(__name__)

CREDENTIALS_FILE_NAME = "credentials.json"
KEY_FILE_NAME = "secret.key"
TMDB_ACCOUNT = "tmdb-global-apikey"


class CredentialKind(str, Enum):
    API_KEY = "apiKey"
    USERNAME = "username"
    PASSWORD = "password"


def account_name(instance_id: UUID | str, kind: CredentialKind) -> str:
    return f"{instance_id}-{kind.value}"


class CredentialStore:
    """
    Persists secrets as Fernet tokens in a JSON file inside the config directory.

    ``save`` is a single upsert: the file is rewritten atomically under a lock, so a
    concurrent delete cannot interleave with it. ``get`` treats every storage
    failure as absence. ``save`` and ``delete`` failures are raised as
    ``CredentialStoreError`` because losing a credential silently is a bug.
    """

    def __init__(self, config_dir: Path, secret_key: str = ""):
        self.path = config_dir / CREDENTIALS_FILE_NAME
        self._key_path = config_dir / KEY_FILE_NAME
        self._secret_key = secret_key.strip()
        self._fernet: Fernet | None = None
        self._lock = asyncio.Lock()

    def _get_fernet(self) -> Fernet:
        if self._fernet:
            return self._fernet
        if self._secret_key:
            digest = hashlib.sha256(self._secret_key.encode("utf-8")).digest()
            fernet_key = base64.urlsafe_b64encode(digest)
        else:
            fernet_key = self._load_or_create_key_file()
        self._fernet = Fernet(fernet_key)
        return self._fernet

    def _load_or_create_key_file(self) -> bytes:
        if self._key_path.is_file():
            return self._key_path.read_bytes().strip()
        key = Fernet.generate_key()
        self._key_path.parent.mkdir(parents=True, exist_ok=True)
        self._key_path.write_bytes(key)
        os.chmod(self._key_path, 0o600)
        log.debug(f"Generated credential encryption key at '{self._key_path}'.")
        return key

    async def _read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        async with aiofiles.open(self.path, encoding="utf-8") as f:
            content = await f.read()
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Credential file does not contain a JSON object.")
        return data

    async def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, sort_keys=True))
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)

    async def save(
        self, kind: CredentialKind, value: str, instance_id: UUID | str
    ) -> None:
        """Stores ``value``, overwriting any previous value at the same address."""
        await self._save_account(account_name(instance_id, kind), value)

    async def get(self, kind: CredentialKind, instance_id: UUID | str) -> str | None:
        """Returns the stored value, or None when absent or unreadable."""
        return await self._get_account(account_name(instance_id, kind))

    async def delete(self, kind: CredentialKind, instance_id: UUID | str) -> None:
        await self._delete_accounts([account_name(instance_id, kind)])

    async def delete_all(self, instance_id: UUID | str) -> None:
        """Removes every kind of secret for an instance. Absent kinds are ignored."""
        await self._delete_accounts(
            [account_name(instance_id, kind) for kind in CredentialKind]
        )

    async def _save_account(self, account: str, value: str) -> None:
        async with self._lock:
            try:
                token = self._get_fernet().encrypt(value.encode("utf-8")).decode("utf-8")
                data = await self._read_all()
                data[account] = token
                await self._write_all(data)
            except (OSError, ValueError) as e:
                raise CredentialStoreError(f"Could not save credential: {e}") from e

    async def _get_account(self, account: str) -> str | None:
        async with self._lock:
            try:
                data = await self._read_all()
                token = data.get(account)
                if token is None:
                    return None
                return self._get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
            except (OSError, ValueError, InvalidToken) as e:
                log.warning(f"Could not read credential '{account}': {e!r}")
                return None

    async def _delete_accounts(self, accounts: list[str]) -> None:
        async with self._lock:
            try:
                data = await self._read_all()
                removed = [a for a in accounts if data.pop(a, None) is not None]
                if removed:
                    await self._write_all(data)
            except (OSError, ValueError) as e:
                raise CredentialStoreError(f"Could not delete credential: {e}") from e

    # Convenience helpers

    async def save_api_key(self, api_key: str, instance_id: UUID | str) -> None:
        await self.save(CredentialKind.API_KEY, api_key, instance_id)

    async def get_api_key(self, instance_id: UUID | str) -> str | None:
        return await self.get(CredentialKind.API_KEY, instance_id)

    async def save_credentials(
        self, username: str, password: str, instance_id: UUID | str
    ) -> None:
        await self.save(CredentialKind.USERNAME, username, instance_id)
        await self.save(CredentialKind.PASSWORD, password, instance_id)

    async def get_credentials(
        self, instance_id: UUID | str
    ) -> tuple[str, str] | None:
        """Returns ``(username, password)`` only when both are stored."""
        username = await self.get(CredentialKind.USERNAME, instance_id)
        password = await self.get(CredentialKind.PASSWORD, instance_id)
        if username is None or password is None:
            return None
        return username, password

    async def save_tmdb_api_key(self, api_key: str) -> None:
        """Stores the global TMDB key. An empty key removes it."""
        api_key = api_key.strip()
        if not api_key:
            await self.delete_tmdb_api_key()
            return
        await self._save_account(TMDB_ACCOUNT, api_key)

    async def get_tmdb_api_key(self) -> str | None:
        return await self._get_account(TMDB_ACCOUNT)

    async def delete_tmdb_api_key(self) -> None:
        await self._delete_accounts([TMDB_ACCOUNT])
