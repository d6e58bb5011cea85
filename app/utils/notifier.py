"""
Redis pub/sub notifier for attempt state changes
"""
import redis
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from app.config import settings

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """
    Fire-and-forget broadcaster so dashboards can refresh

    No acknowledgment and no ordering guarantee. Publishing never raises;
    when Redis is unavailable notifications are simply dropped.
    """

    def __init__(self, redis_url: Optional[str] = None, channel: Optional[str] = None, enabled: bool = True):
        self.channel = channel or settings.EXAM_EVENTS_CHANNEL
        self.redis_client = None

        if not enabled:
            logger.info("Change notifications disabled")
            return

        try:
            self.redis_client = redis.from_url(
                redis_url or settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connection established for change notifications")
        except Exception as e:
            logger.warning(f"Redis connection failed: {str(e)}. Change notifications disabled.")
            self.redis_client = None

    def publish(self, event: str, payload: Dict[str, Any]) -> bool:
        """
        Broadcast an event on the exam events channel

        Args:
            event: Event name (attempt_started, attempt_finalized, ...)
            payload: JSON-serializable event data

        Returns:
            Whether the message was handed to Redis
        """
        if not self.redis_client:
            return False

        message = {
            "event": event,
            "at": datetime.now(timezone.utc).isoformat(),
            **payload
        }

        try:
            self.redis_client.publish(self.channel, json.dumps(message, default=str))
            logger.debug(f"Published {event} on {self.channel}")
            return True
        except Exception as e:
            logger.warning(f"Change notification failed ({event}): {str(e)}")
            return False


# Global instance
change_notifier = ChangeNotifier(enabled=settings.CHANGE_NOTIFICATIONS_ENABLED)
