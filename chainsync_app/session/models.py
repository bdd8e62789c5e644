"""Signing session data structures."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ConnectionState(str, Enum):
    """Session status as shown to the user."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Session:
    """An authenticated signer on a known chain."""
    signer: str = ""
    chain_id: int = 0
    connected: bool = False

    @classmethod
    def disconnected(cls) -> "Session":
        return cls()


@dataclass(frozen=True)
class SessionStatus:
    """Presentation view of the session: Disconnected or Connected(address, chainId)."""
    state: ConnectionState
    address: Optional[str] = None
    chain_id: Optional[int] = None

    @classmethod
    def from_session(cls, session: Optional[Session]) -> "SessionStatus":
        if session is None or not session.connected:
            return cls(state=ConnectionState.DISCONNECTED)
        return cls(state=ConnectionState.CONNECTED, address=session.signer,
                   chain_id=session.chain_id)

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state.value, "address": self.address, "chain_id": self.chain_id}
