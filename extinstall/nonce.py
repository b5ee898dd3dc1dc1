"""
Nonce Service - Request Authentication

Issues and verifies short, time-bounded tokens tied to a user and an action
name. A token is an HMAC of the current tick, the action and the user; a tick
is half the lifetime, so a token stays valid for between half and the full
lifetime after it was issued.
"""

import hashlib
import hmac
import math
import time
from typing import Callable, Optional

DEFAULT_LIFETIME = 86400


class NonceService:
    def __init__(
        self,
        secret: str,
        lifetime: int = DEFAULT_LIFETIME,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("Nonce secret must not be empty")
        if lifetime < 2:
            raise ValueError("Nonce lifetime must be at least 2 seconds")
        self._secret = secret.encode("utf-8")
        self.lifetime = lifetime
        self._clock = clock

    def tick(self) -> int:
        return int(math.ceil(self._clock() / (self.lifetime / 2)))

    def create(self, action: str, user: str = "") -> str:
        return self._digest(self.tick(), action, user)

    def verify(self, token: Optional[str], action: str, user: str = "") -> int:
        """
        Check a token.

        Returns:
            1 if issued in the current tick, 2 if issued in the previous one,
            0 if missing, forged or expired.
        """
        if not token:
            return 0
        tick = self.tick()
        if hmac.compare_digest(self._digest(tick, action, user), token):
            return 1
        if hmac.compare_digest(self._digest(tick - 1, action, user), token):
            return 2
        return 0

    def _digest(self, tick: int, action: str, user: str) -> str:
        message = f"{tick}|{action}|{user}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()[-12:-2]
