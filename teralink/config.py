import os


class Config(object):

    #--> Upstream identity
    USER_AGENT = os.environ.get(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    )
    SHARE_REFERER = os.environ.get("SHARE_REFERER", "https://1024terabox.com/")
    API_BASE = os.environ.get("API_BASE", "https://www.terabox.com")
    APP_BASE = os.environ.get("APP_BASE", "https://www.terabox.app")

    #--> Session cookie (static seed, optionally persisted to a file)
    COOKIE = os.environ.get("COOKIE", "")
    COOKIE_FILE = os.environ.get("COOKIE_FILE", "")

    #--> Network limits
    FETCH_TIMEOUT = float(os.environ.get("FETCH_TIMEOUT", 10))
    MAX_REDIRECTS = int(os.environ.get("MAX_REDIRECTS", 10))
    CHUNK_SIZE = int(os.environ.get("CHUNK_SIZE", 1024 * 1024))

    #--> Result cache
    CACHE_TTL = float(os.environ.get("CACHE_TTL", 600))
    CACHE_MAXSIZE = int(os.environ.get("CACHE_MAXSIZE", 1024))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    PORT = int(os.environ.get("PORT", 8080))
