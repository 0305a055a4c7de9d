"""Authentication session state carried by the client."""

from dataclasses import dataclass, replace
from typing import Optional

TOKEN_HEADER = "Grpc-Metadata-Token"


@dataclass(frozen=True)
class Session:
    """Immutable holder for the bearer token.

    Usage:
        session = Session().with_token("abc")
        session.headers()    # -> {"Grpc-Metadata-Token": "abc"}
        session.cleared()    # -> Session(token=None)
    """
    token: Optional[str] = None

    def with_token(self, token: Optional[str]) -> "Session":
        return replace(self, token=token or None)

    def cleared(self) -> "Session":
        return replace(self, token=None)

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.token:
            headers[TOKEN_HEADER] = self.token
        return headers
