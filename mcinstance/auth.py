import json
import logging
import pathlib
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional

from .errors import FilesystemFailure

log = logging.getLogger(__name__)


@dataclass
class AuthToken:
    """An opaque access token for one player profile."""
    access_token: str
    uuid: str
    name: str
    expires_at: int
    client_token: str = ''

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TokenStore:
    """
    Access tokens keyed by player uuid, persisted as a JSON file.

    Every mutation is written back immediately. An unreadable file starts an
    empty store.
    """

    def __init__(self, path: pathlib.Path, clock: Callable[[], float] = time.time):
        self.path = pathlib.Path(path)
        self._clock = clock
        self._tokens: Dict[str, AuthToken] = self._load()

    def _load(self) -> Dict[str, AuthToken]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            tokens = {uuid: AuthToken(**data) for uuid, data in raw.items()}
        except (OSError, json.JSONDecodeError, TypeError, AttributeError) as e:
            log.warning(f"Could not read token store {self.path}: {e}. Starting empty.")
            return {}
        log.info(f"Loaded {len(tokens)} tokens from storage")
        return tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, uuid: str) -> bool:
        return uuid in self._tokens

    def insert(self, token: AuthToken):
        self._tokens[token.uuid] = token
        self.flush()

    def remove(self, uuid: str) -> Optional[AuthToken]:
        token = self._tokens.pop(uuid, None)
        if token is not None:
            self.flush()
        return token

    def lookup(self, uuid: str) -> Optional[AuthToken]:
        """The stored token for ``uuid``. Expired tokens are dropped and None returned."""
        token = self._tokens.get(uuid)
        if token is None:
            return None
        if token.is_expired(self._clock()):
            log.info(f"Stored token for {uuid} has expired, removing it.")
            self.remove(uuid)
            return None
        return token

    def flush(self):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({uuid: asdict(token) for uuid, token in self._tokens.items()}, f, indent=2)
        except OSError as e:
            raise FilesystemFailure(f"Failed to write token store {self.path}: {e}") from e
