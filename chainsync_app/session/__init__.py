"""
Signing session: wallet boundary, session data model and session manager.
"""

from .manager import SessionManager
from .models import ConnectionState, Session, SessionStatus
from .wallet import WalletProvider, WalletRequestError, Web3WalletProvider, parse_chain_id

__all__ = [
    "SessionManager",
    "ConnectionState",
    "Session",
    "SessionStatus",
    "WalletProvider",
    "WalletRequestError",
    "Web3WalletProvider",
    "parse_chain_id",
]
