"""AutoSplit service layer - FastAPI application and HTTP interfaces."""

from .app import create_autosplit_app
from .config import AutosplitConfig, WalletToken

__all__ = ["create_autosplit_app", "AutosplitConfig", "WalletToken"]
