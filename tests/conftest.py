import pytest

from teralink.cache import ResultCache
from teralink.cookie_store import MemoryCookieStore
from teralink.fetch_utils import RedirectingFetchClient
from teralink.terabox_utils import ShareResolver

SHARE_LINK = 'https://example.com/s/1ABC?surl=1ABC'
LIST_API = 'https://www.terabox.com/share/list'
DLINK = 'https://d.terabox.com/file/abc?fid=42'
DIRECT_LINK = 'https://cdn.example.com/file?sig=xyz'
TOKEN = 'A1B2C3D4E5F60718293A4B5C6D7E8F90'
SHARE_HTML = f'<html><script>window.jsToken = fn%28%22{TOKEN}%22%29;</script></html>'
FILE_ENTRY = {
    'server_filename': 'movie.mp4',
    'dlink': DLINK,
    'size': '1572864',
    'thumbs': {'url3': 'https://thumb.example.com/3.jpg'},
}


class FakeClock():

    def __init__(self, now:float=1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds:float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(ttl=600, clock=clock)


@pytest.fixture
def cookie_store():
    return MemoryCookieStore('ndus=abc')


@pytest.fixture
def fetch_client():
    return RedirectingFetchClient(timeout=5, max_hops=10)


@pytest.fixture
def resolver(fetch_client, cache, cookie_store):
    return ShareResolver(fetch_client, cache, cookie_store)
