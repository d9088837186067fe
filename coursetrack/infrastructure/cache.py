import json
import redis
import structlog
from typing import Optional, Any
from ..config import settings

logger = structlog.get_logger(__name__)

_redis_client: Optional[redis.Redis] = None

COURSES_LIST_KEY = "courses:list"


def course_key(course_id: str) -> str:
    return f"courses:detail:{course_id}"


def revoked_key(jti: str) -> str:
    return f"revoked:{jti}"


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
    return _redis_client


# Redis is optional: every helper degrades to "nothing cached" when it is down.

def get_cache(key: str) -> Optional[Any]:
    try:
        client = get_redis()
        value = client.get(key)
        if value is not None:
            return json.loads(value)
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="get", key=key, error=str(e))
    return None


def set_cache(key: str, value: Any, ttl: int = None) -> bool:
    try:
        client = get_redis()
        ttl = ttl or settings.CACHE_TTL
        client.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        return True
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="set", key=key, error=str(e))
        return False


def delete_cache(key: str) -> bool:
    try:
        client = get_redis()
        client.delete(key)
        return True
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="delete", key=key, error=str(e))
        return False


def delete_cache_pattern(pattern: str) -> int:
    """Удалить все ключи по паттерну"""
    try:
        client = get_redis()
        keys = client.keys(pattern)
        if keys:
            return client.delete(*keys)
        return 0
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="delete_pattern", pattern=pattern, error=str(e))
        return 0
