"""
Повтор операций с БД при обрыве соединения.

Postgres за пулером иногда закрывает idle-соединения, и первый запрос после
паузы падает с OperationalError. Такие операции можно безопасно повторить.
"""
import logging
import time
from functools import wraps

from django.db import InterfaceError, OperationalError, close_old_connections

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_DELAY = 0.5


def with_db_retry(func, *args, retries=DEFAULT_RETRIES, delay=DEFAULT_DELAY, **kwargs):
    """
    Вызывает ``func(*args, **kwargs)``, повторяя при ошибках соединения.

    Между попытками закрывает протухшие соединения и ждёт ``delay * attempt`` секунд.
    После последней неудачной попытки исключение пробрасывается дальше.
    """
    attempt = 1
    while True:
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            if attempt >= retries:
                logger.error(f'[DB] {getattr(func, "__name__", func)} failed after {attempt} attempts: {exc}')
                raise
            logger.warning(f'[DB] connection error on attempt {attempt}/{retries}: {exc}')
            close_old_connections()
            time.sleep(delay * attempt)
            attempt += 1


def db_retry(retries=DEFAULT_RETRIES, delay=DEFAULT_DELAY):
    """Декоратор-обёртка над :func:`with_db_retry`."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return with_db_retry(func, *args, retries=retries, delay=delay, **kwargs)
        return wrapper
    return decorator
