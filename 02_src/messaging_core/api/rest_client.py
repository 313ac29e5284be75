"""REST client for the messaging backend."""

from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from ..errors import LoadError, SendError
from ..logging_config import get_logger
from ..models import Message, Peer, RosterEntry
from .schemas import WireMessage, WireUser

logger = get_logger(__name__)


class IRestClient(Protocol):
    """Request/response access to the directory and history endpoints."""

    async def get_current_user(self) -> Peer:
        """Identity behind the bearer token."""
        ...

    async def get_coach(self) -> Peer | None:
        """Coach assigned to the current parent."""
        ...

    async def get_parents(self) -> list[RosterEntry]:
        """Coach's roster with last message summaries."""
        ...

    async def get_history(self, peer_id: str) -> list[Message]:
        """Full history with one peer."""
        ...

    async def post_message(self, receiver_id: str, content: str) -> Message:
        """Send a text message over REST."""
        ...

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        ...


class RestClient:
    """httpx-based REST client with bearer-token auth on every request."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying client, shared with AttachmentTransfer."""
        return self._client

    async def _get_json(self, path: str, peer_id: str | None = None) -> Any:
        try:
            response = await self._client.get(path)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("GET %s failed with status %s", path, e.response.status_code)
            raise LoadError(
                f"GET {path} failed with status {e.response.status_code}", peer_id=peer_id
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("GET %s failed: %s", path, e)
            raise LoadError(f"GET {path} failed: {e}", peer_id=peer_id) from e

    async def get_current_user(self) -> Peer:
        """Identity behind the bearer token."""
        data = await self._get_json("/auth/me")
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        try:
            return WireUser.model_validate(data).to_peer()
        except ValidationError as e:
            raise LoadError(f"Malformed user payload: {e}") from e

    async def get_coach(self) -> Peer | None:
        """Coach assigned to the current parent, None if unassigned."""
        data = await self._get_json("/messages/coach")
        coach = data.get("coach") if isinstance(data, dict) else None
        if not coach:
            return None
        try:
            return WireUser.model_validate(coach).to_peer()
        except ValidationError as e:
            raise LoadError(f"Malformed coach payload: {e}") from e

    async def get_parents(self) -> list[RosterEntry]:
        """Coach's roster with last message summaries, in server order."""
        data = await self._get_json("/messages/parents")
        try:
            return [WireUser.model_validate(item).to_roster_entry() for item in data]
        except (TypeError, ValidationError) as e:
            raise LoadError(f"Malformed roster payload: {e}") from e

    async def get_history(self, peer_id: str) -> list[Message]:
        """Full history with one peer."""
        data = await self._get_json(f"/messages/{peer_id}", peer_id=peer_id)
        try:
            return [WireMessage.model_validate(item).to_message() for item in data]
        except (TypeError, ValidationError) as e:
            raise LoadError(f"Malformed history payload: {e}", peer_id=peer_id) from e

    async def post_message(self, receiver_id: str, content: str) -> Message:
        """Send a text message over REST; the response is the stored record."""
        try:
            response = await self._client.post(
                "/messages", json={"receiver": receiver_id, "content": content}
            )
            response.raise_for_status()
            return WireMessage.model_validate(response.json()).to_message()
        except httpx.HTTPStatusError as e:
            raise SendError(f"POST /messages failed with status {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            # ValidationError is a ValueError
            raise SendError(f"POST /messages failed: {e}") from e

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        await self._client.aclose()
