import redis
from redis.exceptions import RedisError
from storefront.utils.errors import ExternalServiceError
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje lua atomowo, nikt nie wcisnie sie miedzy GET a DEL


def _key(cart_id: int) -> str:
    return f"cart:{cart_id}:checkout"


class LockService:
    """
    Blokada koszyka na czas platnosci karta:
    -od utworzenia sesji checkout do jej wygasniecia
    -koszyk nie moze byc zmieniany ani oplacony gotowka
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    def acquire_checkout_lock(self, cart_id: int, token: str, ttl: int) -> bool:
        key = _key(cart_id)
        logger.info(f"Acquire lock {key}")
        try:
            #SET cart:1:checkout "<token>" NX EX 3660
            return bool(self._set_nx(key, token, ttl))
        except RedisError as e:
            raise ExternalServiceError(f"Redis niedostepny: {e}")

    def release_checkout_lock(self, cart_id: int, token: str) -> bool:
        key = _key(cart_id)
        logger.info(f"Release lock {key}")
        try:
            return bool(self._compare_and_delete(key, token))
        except RedisError as e:
            raise ExternalServiceError(f"Redis niedostepny: {e}")

    def is_checkout_pending(self, cart_id: int) -> bool:
        try:
            return bool(self._exists(_key(cart_id)))
        except RedisError as e:
            raise ExternalServiceError(f"Redis niedostepny: {e}")

    @redis_retry()
    def _set_nx(self, key: str, value: str, ttl: int):
        #nx - tylko jesli klucz nie istnieje, ex - sam wygasa, nie trzeba recznie czyscic
        return self.redis.set(name=key, value=value, nx=True, ex=ttl)

    @redis_retry()
    def _compare_and_delete(self, key: str, value: str):
        return self.redis.eval(_RELEASE_LUA, 1, key, value)

    @redis_retry()
    def _exists(self, key: str):
        return self.redis.exists(key)


def get_lock_service() -> LockService:
    return LockService()
