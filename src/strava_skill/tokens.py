"""Persistence of the athlete's OAuth tokens."""
from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
import stat
import time
from pathlib import Path
from typing import Dict, Optional, Union

from .config import EXPIRY_MARGIN_S
from .errors import TokenFileError

logger = logging.getLogger(__name__)

TOKEN_FILE_MODE = 0o600
REQUIRED_FIELDS = ("access_token", "refresh_token", "expires_at")
NUMERIC_ID = re.compile(r"^[0-9]+$")


@dataclasses.dataclass
class TokenSet:
    access_token: str
    refresh_token: str
    expires_at: int
    athlete_id: Optional[Union[int, str]] = None

    def is_expired(self, now: Optional[float] = None, margin: int = EXPIRY_MARGIN_S) -> bool:
        """Return ``True`` once ``now`` is within ``margin`` seconds of expiry."""
        if now is None:
            now = time.time()
        return now >= self.expires_at - margin

    def expires_in(self, now: Optional[float] = None) -> int:
        if now is None:
            now = time.time()
        return int(self.expires_at - now)

    def numeric_athlete_id(self) -> int:
        if self.athlete_id is None or self.athlete_id == "null" or self.athlete_id == "":
            raise TokenFileError(
                "athlete_id not found in token file. Re-run strava-auth setup."
            )
        value = str(self.athlete_id)
        if not NUMERIC_ID.match(value):
            raise TokenFileError(
                "athlete_id in token file is not a valid numeric ID. Re-run strava-auth setup."
            )
        return int(value)

    def to_dict(self) -> Dict[str, object]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "TokenSet":
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=int(data["expires_at"]),
            athlete_id=data.get("athlete_id"),
        )


class TokenStore:
    """JSON token file readable only by its owner.

    Writes go to a sibling temporary file which is renamed over the target, so
    a crash mid-write never leaves a truncated token file behind.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, tokens: TokenSet) -> None:
        if not tokens.access_token:
            raise TokenFileError("API response missing access_token")
        if not tokens.refresh_token:
            raise TokenFileError("API response missing refresh_token")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, TOKEN_FILE_MODE)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(tokens.to_dict(), fh)
                fh.write("\n")
            os.chmod(tmp, TOKEN_FILE_MODE)
            os.replace(tmp, self.path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Saved tokens to %s", self.path)

    def load(self) -> TokenSet:
        if not self.path.is_file():
            raise TokenFileError(
                f"Token file not found at {self.path}\n"
                "Run 'strava-auth setup' to authorize with Strava first."
            )

        self._fix_permissions()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise TokenFileError(
                "Token file is corrupted or incomplete. Re-run 'strava-auth setup'."
            ) from exc

        if not isinstance(data, dict) or not all(data.get(key) for key in REQUIRED_FIELDS):
            raise TokenFileError(
                "Token file is corrupted or incomplete. Re-run 'strava-auth setup'."
            )

        try:
            return TokenSet.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise TokenFileError(
                "Token file is corrupted or incomplete. Re-run 'strava-auth setup'."
            ) from exc

    def _fix_permissions(self) -> None:
        mode = stat.S_IMODE(self.path.stat().st_mode)
        if mode != TOKEN_FILE_MODE:
            logger.warning(
                "Warning: Token file has insecure permissions (%o), fixing to 600.", mode
            )
            os.chmod(self.path, TOKEN_FILE_MODE)
