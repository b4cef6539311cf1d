# storefront/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import redis


def transient_retry(*exc_types, attempts: int = 3, min_wait: float = 0.2, max_wait: float = 2):
    """Ponawia tylko bledy polaczenia, bledy logiki leca od razu."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exc_types),
    )


def redis_retry():
    # lock checkoutu - krotko, uzytkownik czeka na odpowiedz
    return transient_retry(redis.ConnectionError, redis.TimeoutError)
