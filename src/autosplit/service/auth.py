"""Bearer token resolution to caller wallets.

Every ledger call needs a caller address. Over HTTP that address is derived
from the bearer token: each configured token maps to exactly one wallet and
carries ``read`` and/or ``write`` scope. Tokens are kept as SHA-256 digests;
only a short digest prefix (``token_id``) ever reaches the logs.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import AutosplitConfig, WalletToken
from .logging import bind_context


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class CallerInfo:
    """Wallet resolved from a bearer token."""

    wallet: str
    token_id: str
    scopes: Sequence[str]
    expires_at: datetime | None

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes or "*" in self.scopes

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class WalletTokenManager:
    """Registry of bearer tokens and the wallets they act for.

    A wallet may hold several tokens (for example a read-only dashboard token
    next to a signing token); ``revoke_wallet`` drops all of them at once.
    """

    def __init__(self, config: AutosplitConfig):
        self._callers: dict[str, CallerInfo] = {}
        for token in config.tokens:
            self.register(token)

    def register(self, token: WalletToken) -> CallerInfo:
        digest = token_digest(token.token)
        info = CallerInfo(
            wallet=token.wallet,
            token_id=digest[:12],
            scopes=tuple(token.scopes),
            expires_at=token.expires_at,
        )
        self._callers[digest] = info
        return info

    def revoke(self, token: str) -> bool:
        """Revoke one token. Returns True if it was registered."""
        return self._callers.pop(token_digest(token), None) is not None

    def revoke_wallet(self, wallet: str) -> int:
        """Revoke every token acting for ``wallet``. Returns how many were dropped."""
        digests = [d for d, info in self._callers.items() if info.wallet == wallet]
        for digest in digests:
            del self._callers[digest]
        return len(digests)

    def wallets(self) -> list[str]:
        return sorted({info.wallet for info in self._callers.values()})

    def validate(
        self,
        token: str,
        required_scope: str,
        now: datetime | None = None,
    ) -> CallerInfo:
        """Resolve ``token`` to its caller.

        Raises:
            HTTPException: 401 for an unknown or expired token, 403 when the
                token lacks ``required_scope``.
        """
        info = self._callers.get(token_digest(token))
        if info is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

        if info.is_expired(now or datetime.now(timezone.utc)):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")

        if not info.has_scope(required_scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Wallet {info.wallet} token lacks '{required_scope}' scope",
            )

        return info


# Module-level slot, replaced by each app factory call
_TOKEN_MANAGER_SLOT: dict[str, WalletTokenManager | None] = {"tm": None}

bearer_scheme = HTTPBearer(auto_error=False)


def set_token_manager(manager: WalletTokenManager) -> None:
    _TOKEN_MANAGER_SLOT["tm"] = manager


def get_token_manager_dependency() -> WalletTokenManager:
    tm = _TOKEN_MANAGER_SLOT.get("tm")
    if tm is None:
        raise RuntimeError("Token manager dependency not configured")
    return tm


def make_caller_dependency(required_scope: str):
    """Build a dependency returning the calling wallet with ``required_scope``.

    The token is read from ``Authorization: Bearer`` or, for EventSource
    clients that cannot set headers, from ``?token=``.
    """

    async def dependency(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        token_manager: WalletTokenManager = Depends(get_token_manager_dependency),
        query_token: str | None = Query(default=None, alias="token"),
    ) -> CallerInfo:
        raw_token = credentials.credentials if credentials is not None else None
        raw_token = raw_token or query_token
        if not raw_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
            )

        caller = token_manager.validate(raw_token, required_scope)
        bind_context(wallet=caller.wallet, token_id=caller.token_id)
        return caller

    return dependency
