# agrimart/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from agrimart.domain.errors import ConcurrencyConflict, UpstreamUnavailable
from agrimart.utils.retry import redis_retry
from agrimart.utils.settings import REDIS_URL, ORDER_LOCK_TTL_SECONDS, ORDER_LOCK_WAIT_SECONDS
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)

#compare-and-delete: only the holder's token may release the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis runs the script atomically, nothing can run between GET and DEL


class LockService:
    """
    -per-order lock (SET NX EX), one writer per order at a time
    -release by token through lua
    -bounded wait, never blocks indefinitely
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        ttl: int = ORDER_LOCK_TTL_SECONDS,
        wait_seconds: float = ORDER_LOCK_WAIT_SECONDS,
    ):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl
        self.wait_seconds = wait_seconds

    @staticmethod
    def _key(order_id: int) -> str:
        return f"order:{order_id}:lock"

    @redis_retry()
    def acquire_order_lock(self, order_id: int, token: str, ttl: int) -> bool:
        key = self._key(order_id)
        logger.debug(f"Acquire lock {key}")
        #SET order:1:lock "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True,
                ex=ttl,  #expires on its own if the holder dies
            )
        )

    @redis_retry()
    def release_order_lock(self, order_id: int, token: str) -> bool:
        key = self._key(order_id)
        logger.debug(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    def _wait_for(self, order_id: int, token: str) -> bool:
        waiter = retry(
            stop=stop_after_delay(self.wait_seconds),
            wait=wait_fixed(0.05),
            retry=retry_if_result(lambda acquired: not acquired),
        )
        return waiter(self.acquire_order_lock)(order_id, token, self.ttl)

    @contextmanager
    def order_lock(self, order_id: int):
        token = uuid.uuid4().hex
        try:
            self._wait_for(order_id, token)
        except RetryError:
            logger.warning(f"Timed out waiting for lock on order {order_id}")
            raise ConcurrencyConflict("order", order_id)
        except redis.RedisError as e:
            logger.error(f"Redis failed while locking order {order_id}: {e}")
            raise UpstreamUnavailable("redis", str(e)) from e

        try:
            yield
        finally:
            try:
                self.release_order_lock(order_id, token)
            except redis.RedisError as e:
                #the key still expires after ttl
                logger.error(f"Could not release lock on order {order_id}, left to expire: {e}")
