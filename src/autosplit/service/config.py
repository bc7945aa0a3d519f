"""Configuration primitives for the AutoSplit service."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from ..ledger.core import DEFAULT_VOTING_WINDOW
from ..ledger.models import DEFAULT_CURRENCY
from ..ledger.queries import DEFAULT_PAYMENT_LIMIT


@dataclass(slots=True)
class WalletToken:
    """Bearer token resolving to a caller wallet."""

    token: str
    wallet: str
    scopes: Sequence[str] = ("read", "write")
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


@dataclass(slots=True)
class AutosplitConfig:
    """Runtime configuration for the AutoSplit service.

    Configuration Sources (priority order):
    1. Direct constructor arguments
    2. Environment variables (AUTOSPLIT_*)
    3. Default values

    Attributes:
        deployer: Wallet recorded as contract owner on first start (REQUIRED)
        port: Service port (default: 4950)
        db_path: SQLite database path; None keeps state in memory
        native_symbol: Currency used when a team leaves it empty (default: MASSA)
        voting_window_ms: Proposal voting window (default: 3 days)
        payment_page_size: Default number of payments returned (default: 25)
        event_log_path: Optional JSONL file receiving emitted events
        event_memory_limit: Events kept in memory for the stream (default: 1000)
    """

    deployer: str
    port: int = 4950
    db_path: str | None = "data/autosplit.db"
    native_symbol: str = DEFAULT_CURRENCY
    voting_window_ms: int = DEFAULT_VOTING_WINDOW
    payment_page_size: int = DEFAULT_PAYMENT_LIMIT
    event_log_path: str | None = None
    event_memory_limit: int = 1000
    tokens: list[WalletToken] = field(default_factory=list)
    cors_origins: list[str] = field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    @classmethod
    def from_env(cls) -> AutosplitConfig:
        """Create configuration from environment variables.

        Required:
            AUTOSPLIT_DEPLOYER: Wallet recorded as contract owner

        Optional:
            AUTOSPLIT_PORT: Service port (default: 4950)
            AUTOSPLIT_DB_PATH: SQLite path, or ":memory:" for ephemeral state
            AUTOSPLIT_NATIVE_SYMBOL: Default team currency
            AUTOSPLIT_VOTING_WINDOW_MS: Proposal voting window in milliseconds
            AUTOSPLIT_PAYMENT_PAGE_SIZE: Default payment page size
            AUTOSPLIT_EVENT_LOG: JSONL file for emitted events
            AUTOSPLIT_TOKENS: Comma-separated token:wallet pairs
            AUTOSPLIT_CORS_ORIGINS: Comma-separated allowed origins
        """
        deployer = os.environ.get("AUTOSPLIT_DEPLOYER")
        if not deployer:
            raise ValueError("AUTOSPLIT_DEPLOYER environment variable is required")

        db_path: str | None = os.environ.get("AUTOSPLIT_DB_PATH", "data/autosplit.db")
        if db_path == ":memory:":
            db_path = None

        config = cls(
            deployer=deployer,
            port=int(os.environ.get("AUTOSPLIT_PORT", "4950")),
            db_path=db_path,
            native_symbol=os.environ.get("AUTOSPLIT_NATIVE_SYMBOL", DEFAULT_CURRENCY),
            voting_window_ms=int(
                os.environ.get("AUTOSPLIT_VOTING_WINDOW_MS", str(DEFAULT_VOTING_WINDOW))
            ),
            payment_page_size=int(
                os.environ.get("AUTOSPLIT_PAYMENT_PAGE_SIZE", str(DEFAULT_PAYMENT_LIMIT))
            ),
            event_log_path=os.environ.get("AUTOSPLIT_EVENT_LOG") or None,
        )

        tokens_str = os.environ.get("AUTOSPLIT_TOKENS", "")
        config.tokens.extend(parse_tokens(tokens_str))

        origins = os.environ.get("AUTOSPLIT_CORS_ORIGINS", "")
        if origins:
            config.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        return config

    def with_tokens(self, tokens: Iterable[WalletToken]) -> AutosplitConfig:
        """Replace the configured tokens."""
        self.tokens = list(tokens)
        return self

    def issue_ephemeral_token(
        self,
        token: str,
        wallet: str,
        lifetime: timedelta | None = None,
    ) -> None:
        """Issue a token for ``wallet`` with optional expiration."""
        expires_at = None
        if lifetime is not None:
            expires_at = datetime.now(timezone.utc) + lifetime
        self.tokens.append(WalletToken(token=token, wallet=wallet, expires_at=expires_at))


def parse_tokens(value: str) -> list[WalletToken]:
    """Parse ``token:wallet`` pairs separated by commas."""
    tokens = []
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, wallet = pair.partition(":")
        if not sep or not token or not wallet:
            raise ValueError(f"Invalid token entry (expected token:wallet): {pair!r}")
        tokens.append(WalletToken(token=token.strip(), wallet=wallet.strip()))
    return tokens
