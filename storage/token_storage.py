# storage/token_storage.py

"""
Token storage for the Envoy access token.
Holds at most one opaque token string; each save replaces the previous one.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol


class TokenStorageError(Exception):
    """Exception for token files that exist but cannot be read or written"""

    pass


class TokenStorage(Protocol):
    def save(self, token: str) -> None: ...

    def load(self) -> Optional[str]: ...

    def clear(self) -> None: ...


class MemoryTokenStorage:
    """Process-local storage, used when no token path is configured."""

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self._lock = threading.Lock()

    def save(self, token: str) -> None:
        with self._lock:
            self._token = token

    def load(self) -> Optional[str]:
        with self._lock:
            return self._token or None

    def clear(self) -> None:
        with self._lock:
            self._token = None


class FileTokenStorage:
    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def save(self, token: str) -> None:
        """Write the token through a temp file so readers never see a partial value."""
        file = self.path.absolute()

        with self._lock:
            temp_path = None
            try:
                file.parent.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    mode="w",
                    encoding="utf-8",
                    dir=str(file.parent),
                    prefix="token_",
                    suffix=".tmp",
                    delete=False,
                ) as f:
                    temp_path = Path(f.name)
                    f.write(token)
                    f.flush()
                    os.fsync(f.fileno())

                os.chmod(temp_path, 0o600)
                os.replace(temp_path, file)
                temp_path = None
            except OSError as e:
                raise TokenStorageError(f"Error writing token file {file}: {e}") from e
            finally:
                if temp_path is not None and temp_path.exists():
                    temp_path.unlink()

    def load(self) -> Optional[str]:
        """Return the stored token, or None when nothing has been saved yet."""
        with self._lock:
            try:
                token = self.path.read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                return None
            except OSError as e:
                raise TokenStorageError(
                    f"Error reading token file {self.path}: {e}"
                ) from e

        return token or None

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise TokenStorageError(
                    f"Error removing token file {self.path}: {e}"
                ) from e
