"""Photo update publishing for live gallery viewers"""
import json
import logging

from redis.exceptions import RedisError

from snapmatch.core.config import settings
from snapmatch.db.redis import get_redis_client
from snapmatch.services.realtime.event_bus import (
    EventBus, PhotoUpdate, PhotoUpdateType, topic_for_event
)

logger = logging.getLogger("realtime")


def publish_photo_update(bus: EventBus, event_id: str, photo_id: str, update_type: PhotoUpdateType) -> int:
    """Broadcast a photo change to viewers of ``event_id``

    With ``REALTIME_BROKER=redis`` the update goes through Redis and every
    process's relay delivers it locally; returns the Redis receiver count.
    Otherwise returns the number of local listeners reached.
    """
    update = PhotoUpdate(type=PhotoUpdateType(update_type), event_id=event_id, photo_id=photo_id)
    topic = topic_for_event(event_id)
    message = update.to_dict()

    if settings.REALTIME_BROKER == "redis":
        try:
            receivers = get_redis_client().publish(topic, json.dumps(message))
        except RedisError as e:
            logger.error(f"Failed to publish {message['type']} for photo {photo_id} to Redis {topic}: {e}")
            return 0
        logger.info(f"Published {message['type']} for photo {photo_id} to Redis {topic}: {receivers} relay(s)")
        return int(receivers)

    delivered = bus.publish(topic, message)
    logger.info(f"Published {message['type']} for photo {photo_id} to {topic}: {delivered} viewer(s)")
    return delivered
