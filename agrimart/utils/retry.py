# agrimart/utils/retry.py
import requests
import redis
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential


def is_transient_http_error(exc: BaseException) -> bool:
    """Connection problems, timeouts and 5xx answers; a 4xx will not change on retry."""
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        return response is None or response.status_code >= 500
    return isinstance(exc, requests.RequestException)


def http_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(is_transient_http_error),
    )


def redis_retry(attempts: int = 3):
    #connection trouble only, a held lock comes back as False
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception(lambda e: isinstance(e, (redis.ConnectionError, redis.TimeoutError))),
    )
