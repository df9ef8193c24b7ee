"""Key/value storage split into *secure* and *insecure* partitions.

This module introduces a *narrow* persistence interface (:class:`Storage`)
with two implementations and the :class:`StorageUtility` façade used by
the login core:

* :class:`InMemoryStorage` – process-local; the default for the *secure*
  partition so that tokens and client secrets never outlive the process.
* :class:`DiskStorage` – a single JSON document on disk for the *insecure*
  partition (issuer metadata, PKCE flow records, client ids).  Writes use
  *temp-file + os.replace* under an advisory lock file; blocking I/O runs
  in a worker thread.

Per-user values are grouped in one JSON object stored under
``"<USER_SESSION_PREFIX>:<user_id>"``.  All values are strings.

Environment variables
---------------------
WEBEXT_AUTHN_STORAGE_DIR
    Base directory for :class:`DiskStorage` (see :mod:`webext_authn.config`).
"""

from __future__ import annotations

import json
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Final, Mapping, Protocol, runtime_checkable

import anyio.to_thread

from webext_authn.core.errors import MissingStorageValueError

USER_SESSION_PREFIX: Final[str] = "webextAuthnUser"

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _user_key(user_id: str) -> str:
    return f"{USER_SESSION_PREFIX}:{user_id}"


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


@contextmanager
def _file_lock(lock_path: Path, retries: int = 25, delay: float = 0.05):  # noqa: D401
    """Advisory file lock using ``os.O_EXCL`` temp-file creation."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    for attempt in range(retries + 1):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
            os.close(fd)
            break  # acquired!
        except FileExistsError:
            if attempt == retries:
                raise TimeoutError(f"Could not acquire lock {lock_path}") from None
            time.sleep(delay)
    try:
        yield
    finally:
        lock_path.unlink(missing_ok=True)


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class Storage(Protocol):
    """Minimal asynchronous key/value contract."""

    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...


class InMemoryStorage:
    """Dictionary-backed :class:`Storage`; contents die with the process."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class DiskStorage:
    """JSON-file implementation of :class:`Storage`.

    The directory is created lazily on the first write.
    """

    def __init__(self, base_dir: str | os.PathLike, *, name: str = "storage") -> None:
        self.base_dir = Path(base_dir).expanduser()
        self.path = self.base_dir / f"{name}.json"
        self._lock = self.path.with_suffix(".lock")

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open(encoding="utf-8") as fh:
            return json.load(fh)

    def _update(self, key: str, value: str | None) -> None:
        with _file_lock(self._lock):
            data = self._read()
            if value is None:
                if key not in data:
                    return
                data.pop(key)
            else:
                data[key] = value
            _atomic_write(self.path, data)

    async def get(self, key: str) -> str | None:
        data = await anyio.to_thread.run_sync(self._read)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        await anyio.to_thread.run_sync(self._update, key, value)

    async def delete(self, key: str) -> None:
        await anyio.to_thread.run_sync(self._update, key, None)


class StorageUtility:
    """Façade over the secure and insecure partitions.

    ``secure=False`` is the default everywhere, matching what the login
    flow persists most often.
    """

    def __init__(self, secure_storage: Storage, insecure_storage: Storage) -> None:
        self.secure_storage = secure_storage
        self.insecure_storage = insecure_storage

    def _partition(self, secure: bool) -> Storage:
        return self.secure_storage if secure else self.insecure_storage

    # ---------------- global keys ---------------------------------------- #
    async def get(
        self, key: str, *, secure: bool = False, error_if_null: bool = False
    ) -> str | None:
        value = await self._partition(secure).get(key)
        if value is None and error_if_null:
            raise MissingStorageValueError(f"[{key}] is not stored")
        return value

    async def set(self, key: str, value: str, *, secure: bool = False) -> None:
        await self._partition(secure).set(key, value)

    async def delete(self, key: str, *, secure: bool = False) -> None:
        await self._partition(secure).delete(key)

    # ---------------- per-user records ----------------------------------- #
    async def _get_user_data(self, user_id: str, secure: bool) -> dict[str, str]:
        raw = await self._partition(secure).get(_user_key(user_id))
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            # A corrupt record is treated as absent and overwritten on next set.
            return {}
        return data if isinstance(data, dict) else {}

    async def get_for_user(
        self,
        user_id: str,
        key: str,
        *,
        secure: bool = False,
        error_if_null: bool = False,
    ) -> str | None:
        value = (await self._get_user_data(user_id, secure)).get(key)
        if value is None and error_if_null:
            raise MissingStorageValueError(
                f"Field [{key}] for user [{user_id}] is not stored",
                session_id=user_id,
            )
        return value

    async def set_for_user(
        self, user_id: str, values: Mapping[str, str], *, secure: bool = False
    ) -> None:
        data = await self._get_user_data(user_id, secure)
        data.update(values)
        await self._partition(secure).set(_user_key(user_id), json.dumps(data))

    async def delete_for_user(self, user_id: str, key: str, *, secure: bool = False) -> None:
        data = await self._get_user_data(user_id, secure)
        if key not in data:
            return
        data.pop(key)
        await self._partition(secure).set(_user_key(user_id), json.dumps(data))

    async def delete_all_user_data(self, user_id: str, *, secure: bool = False) -> None:
        await self._partition(secure).delete(_user_key(user_id))
