import logging
from functools import lru_cache

import redis

from .config import REDIS_URL


def logger():
    return logging.getLogger('gunicorn.error')


@lru_cache(maxsize=None)
def get_redis_client() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL)
