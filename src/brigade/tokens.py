import base64
import binascii
import contextlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger("brigade")

# Clock skew allowance when deciding whether a token is already expired
DEFAULT_EXPIRY_SKEW = 10.0
# Tokens with less than this many seconds left are refreshed proactively
DEFAULT_REFRESH_THRESHOLD = 300.0
JWT_PARTS = 3


# ---------- JWT helpers (decode only; signatures are not verified) ----------


def decode_token(token: str) -> Union[dict[str, Any], None]:
    parts = token.split(".")
    if len(parts) != JWT_PARTS:
        return None
    payload = parts[1]
    # base64url without padding
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Failed to decode token payload: {e}")
        return None
    return decoded if isinstance(decoded, dict) else None


def token_expiration(token: str) -> Union[float, None]:
    """Return the `exp` claim as epoch seconds, or None if absent/undecodable."""
    payload = decode_token(token)
    if not payload or not payload.get("exp"):
        return None
    try:
        return float(payload["exp"])
    except (TypeError, ValueError):
        return None


def seconds_until_expiration(token: str, now: Union[float, None] = None) -> Union[float, None]:
    exp = token_expiration(token)
    if exp is None:
        return None
    now = time.time() if now is None else now
    return max(0.0, exp - now)


def is_token_expired(
    token: str, skew: float = DEFAULT_EXPIRY_SKEW, now: Union[float, None] = None
) -> bool:
    """Tokens without a readable `exp` claim count as expired."""
    exp = token_expiration(token)
    if exp is None:
        return True
    now = time.time() if now is None else now
    return exp < now + skew


def user_from_token(token: str) -> Union[dict[str, Any], None]:
    payload = decode_token(token)
    if payload is None:
        return None
    return {
        "id": payload.get("sub"),
        "email": payload.get("email"),
        "role": payload.get("role"),
    }


# ---------- stores ----------


class TokenStore:
    """Holds the access/refresh token pair and answers expiry questions.

    Subclasses implement the four storage methods; expiry checks are shared.
    """

    def __init__(
        self,
        refresh_threshold: float = DEFAULT_REFRESH_THRESHOLD,
        expiry_skew: float = DEFAULT_EXPIRY_SKEW,
    ):
        self.refresh_threshold = refresh_threshold
        self.expiry_skew = expiry_skew

    def get_access_token(self) -> Union[str, None]:
        raise NotImplementedError

    def get_refresh_token(self) -> Union[str, None]:
        raise NotImplementedError

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def is_expired(self, token: str) -> bool:
        return is_token_expired(token, skew=self.expiry_skew)

    def should_refresh(self, token: str) -> bool:
        """True when the token is readable but has less than refresh_threshold left."""
        remaining = seconds_until_expiration(token)
        if remaining is None:
            return False
        return remaining < self.refresh_threshold

    def has_valid_token(self) -> bool:
        token = self.get_access_token()
        return bool(token) and not self.is_expired(token)

    def has_valid_refresh_token(self) -> bool:
        token = self.get_refresh_token()
        return bool(token) and not self.is_expired(token)


class MemoryTokenStore(TokenStore):
    def __init__(
        self,
        access_token: Union[str, None] = None,
        refresh_token: Union[str, None] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._access_token = access_token
        self._refresh_token = refresh_token

    def get_access_token(self):
        return self._access_token

    def get_refresh_token(self):
        return self._refresh_token

    def set_tokens(self, access_token, refresh_token):
        self._access_token = access_token
        self._refresh_token = refresh_token

    def clear(self):
        self._access_token = None
        self._refresh_token = None


class FileTokenStore(TokenStore):
    """Persist tokens as a small JSON document.

    A missing or unreadable file means "no tokens". The file is rewritten on
    every update and removed on clear().
    """

    def __init__(self, path: Union[str, os.PathLike], **kwargs):
        super().__init__(**kwargs)
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_access_token(self):
        return self._read().get("token")

    def get_refresh_token(self):
        return self._read().get("refreshToken")

    def set_tokens(self, access_token, refresh_token):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps({"token": access_token, "refreshToken": refresh_token}))
            os.replace(tmp, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise

    def clear(self):
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
