import logging
import os
import threading

logger = logging.getLogger(__name__)


class MemoryCookieStore():
    """Process-local cookie store, seeded from the static ``COOKIE`` setting."""

    def __init__(self, initial:str='') -> None:
        self._cookie : str = initial or ''

    def load(self) -> str:
        return self._cookie

    def save(self, cookie:str) -> None:
        self._cookie = cookie or ''


class FileCookieStore():
    """Single cookie string persisted to ``path`` across process restarts."""

    def __init__(self, path:str, fallback:str='') -> None:
        self.path : str = path
        self.fallback : str = fallback or ''
        self.lock = threading.Lock()

    def load(self) -> str:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                cookie = f.read().strip()
        except FileNotFoundError:
            return self.fallback
        return cookie or self.fallback

    def save(self, cookie:str) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f'{self.path}.tmp'
        with self.lock:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write(cookie or '')
            os.replace(tmp_path, self.path)
        logger.info(f"Saved session cookie to {self.path}")


def build_cookie_store(config):
    if config.COOKIE_FILE:
        return FileCookieStore(config.COOKIE_FILE, fallback=config.COOKIE)
    return MemoryCookieStore(config.COOKIE)
