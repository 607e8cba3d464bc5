import functools
import time

from .errors import StoreError


def retry(
    max_retries=None,  # Maximum number of retries, None for unlimited
    base_delay=1.0,
    max_delay=30.0,
    logger=None,
    retry_on=(StoreError,),
    sleep=time.sleep,
):
    """Retries the wrapped call with a linearly growing delay between attempts."""

    def decorator(func):
        name = getattr(func, "__name__", repr(func))

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            retry_count = 0

            while True:
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    if max_retries is not None and retry_count >= max_retries:
                        if logger:
                            logger.error(f"{name} failed after {retry_count} retries. Giving up.")
                        raise

                    retry_count += 1
                    wait_sec = min(base_delay * retry_count, max_delay)
                    if logger:
                        logger.warning(f"[Retry #{retry_count}] {name} failed: {e}. Retrying in {wait_sec}s")

                    sleep(wait_sec)

        return wrapper

    return decorator
