"""Credential and Token Persistence.

The OAuth credential record and the file-backed store that mirrors it.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
import json
import logging
import os

from src.brokerage.exceptions import CredentialStoreError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    """OAuth access/refresh token pair plus its absolute expiry.

    ``expires_at`` is derived from the issue time and ``expires_in``; build
    new credentials with :meth:`issue` rather than editing an existing one.
    """
    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    scope: str = ""
    expires_in: int = 0
    expires_at: datetime = datetime.min.replace(tzinfo=timezone.utc)

    @classmethod
    def issue(
        cls,
        access_token: str,
        expires_in: int,
        issued_at: datetime,
        refresh_token: str = "",
        token_type: str = "Bearer",
        scope: str = "",
    ) -> "Credential":
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=token_type,
            scope=scope,
            expires_in=expires_in,
            expires_at=issued_at + timedelta(seconds=expires_in),
        )

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def is_valid_at(self, now: datetime) -> bool:
        return now < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["expires_at"] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        expires_at = datetime.fromisoformat(data["expires_at"])
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data.get("refresh_token") or ""),
            token_type=str(data.get("token_type") or "Bearer"),
            scope=str(data.get("scope") or ""),
            expires_in=int(data.get("expires_in") or 0),
            expires_at=expires_at,
        )

    def __repr__(self) -> str:
        return (
            f"Credential(token_type={self.token_type!r}, scope={self.scope!r}, "
            f"expires_at={self.expires_at.isoformat()}, "
            f"has_refresh_token={self.has_refresh_token})"
        )


class CredentialStore:
    """File-backed JSON store for a single credential.

    Writes are atomic (write to .tmp, then replace) so a reader never sees
    a partially written file.

    Example:
        store = CredentialStore(".schwab_token.json")
        store.save(credential)
        assert store.load() == credential
    """

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Credential]:
        """Load the persisted credential.

        Returns:
            The credential, or None when nothing usable is stored.

        Raises:
            CredentialStoreError: If the file exists but cannot be read.
        """
        try:
            raw = self._path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CredentialStoreError(
                f"failed to read credential file {self._path}: {e}"
            ) from e

        try:
            return Credential.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring malformed credential file %s: %s", self._path, e)
            return None

    def save(self, credential: Credential) -> None:
        """Persist ``credential``, replacing any previous one.

        Raises:
            CredentialStoreError: If the file cannot be written.
        """
        tmp_file = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                json.dump(credential.to_dict(), f, indent=2)
            os.replace(tmp_file, self._path)
        except OSError as e:
            if tmp_file.exists():
                tmp_file.unlink()
            raise CredentialStoreError(
                f"failed to write credential file {self._path}: {e}"
            ) from e
        logger.debug("Saved credential to %s", self._path)

    def clear(self) -> bool:
        """Delete the persisted credential.

        Returns:
            True if a file was removed.
        """
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CredentialStoreError(
                f"failed to delete credential file {self._path}: {e}"
            ) from e
        logger.info("Deleted credential file %s", self._path)
        return True
