"""Supabase Realtime broadcast adapter."""

from dataclasses import dataclass

import httpx

from photo_live.domain.events import AuditRecord, PhotoEvent
from photo_live.services.notifications import EventPublisher


@dataclass
class HttpxRealtimePublisher(EventPublisher):
    """Publishes events through the Realtime broadcast REST endpoint.

    Only published photos and deletions reach the viewer channel, and never
    with the original's path. Every other status goes to the owner's review
    channel.
    """

    supabase_url: str
    api_key: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, supabase_url: str, api_key: str) -> "HttpxRealtimePublisher":
        """Create a publisher with a managed httpx session."""
        return cls(
            supabase_url=supabase_url.rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
        )

    async def publish_photo_event(self, event: PhotoEvent) -> None:
        """Broadcast a photo change to the viewer or review channel."""
        topic = f"session:{event.session_id}"
        if event.viewer_visible:
            event = event.for_viewers()
        else:
            topic = f"{topic}:review"
        await self._broadcast(topic, event.event_type, event.as_payload())

    async def publish_audit(self, record: AuditRecord) -> None:
        """Broadcast a denied access attempt to the session's audit channel."""
        topic = f"session:{record.attempt.session_id}:audit"
        await self._broadcast(topic, "access_denied", record.as_payload())

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _broadcast(
        self, topic: str, event: str, payload: dict[str, object]
    ) -> None:
        url = f"{self.supabase_url}/realtime/v1/api/broadcast"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        body = {"messages": [{"topic": topic, "event": event, "payload": payload}]}
        response = await self.http_client.post(
            url, json=body, headers=headers, timeout=10
        )
        response.raise_for_status()
