import logging
from dataclasses import dataclass, field
from http import cookiejar
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests

from .cookie_utils import CookieJar
from .errors import Timeout, TooManyRedirects, UpstreamError

logger = logging.getLogger(__name__)

MAX_HOPS = 10
FETCH_TIMEOUT = 10


class BlockAllCookies(cookiejar.DefaultCookiePolicy):
    # the explicit CookieJar is the only cookie state a request carries
    def set_ok(self, cookie, request):
        return False

    def return_ok(self, cookie, request):
        return False


@dataclass
class FetchHop:
    url: str
    method: str
    status: int
    headers: dict
    set_cookie: list = field(default_factory=list)


@dataclass
class FinalResponse:
    response: requests.Response
    url: str
    jar: CookieJar
    hops: list = field(default_factory=list)
    body: Optional[str] = None

    @property
    def status(self) -> int:
        return self.response.status_code

    @property
    def cookie(self) -> str:
        return self.jar.serialize()


def get_set_cookie(response:requests.Response) -> list:
    """Every Set-Cookie header of ``response``, unjoined when the transport allows it."""
    raw_headers = getattr(response.raw, 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'getlist'):
        return list(raw_headers.getlist('Set-Cookie'))
    value = response.headers.get('Set-Cookie')
    return [value] if value else []


def is_redirect(status:int) -> bool:
    return 300 <= status < 400


class RedirectingFetchClient():
    """HTTP client that follows redirects by hand, replaying cookies like a browser."""

    def __init__(self, session:Optional[requests.Session]=None, timeout:float=FETCH_TIMEOUT, max_hops:int=MAX_HOPS) -> None:
        self.session : requests.Session = session or requests.Session()
        self.session.cookies.set_policy(BlockAllCookies())
        self.timeout : float = timeout
        self.max_hops : int = max_hops

    def resolve(self, url:str, headers:Optional[dict]=None, method:str='GET', max_hops:Optional[int]=None, jar:Optional[CookieJar]=None) -> FinalResponse:
        base_headers : dict[str,str] = dict(headers or {})
        jar = jar.copy() if jar is not None else CookieJar()
        for name in [name for name in base_headers if name.lower() == 'cookie']:
            jar.merge(base_headers.pop(name) or '')

        hops : list[FetchHop] = []
        current : str = url
        for _ in range(self.max_hops if max_hops is None else max_hops):
            hop_headers = dict(base_headers)
            if jar:
                hop_headers['Cookie'] = jar.serialize()

            response = self._request(method, current, hop_headers)
            set_cookie = get_set_cookie(response)
            if set_cookie:
                jar.merge(set_cookie)
            hops.append(FetchHop(current, method, response.status_code, dict(response.headers), set_cookie))
            logger.debug(f"{method} {current} -> {response.status_code}")

            if not is_redirect(response.status_code):
                return FinalResponse(response, current, jar, hops)

            location = response.headers.get('Location')
            if not location:
                return FinalResponse(response, current, jar, hops)

            target = urljoin(current, location)
            if urlparse(target).scheme not in ('http', 'https'):
                logger.warning(f"Not following redirect to non-HTTP location: {target}")
                return FinalResponse(response, current, jar, hops)

            logger.info(f"Following redirect {response.status_code}: {current} -> {target}")
            response.close()
            current = target

        raise TooManyRedirects('Too many redirects')

    def _request(self, method:str, url:str, headers:dict) -> requests.Response:
        try:
            return self.session.request(
                method, url,
                headers=headers,
                allow_redirects=False,
                timeout=self.timeout,
                stream=True,
            )
        except requests.Timeout as e:
            logger.error(f"Timed out fetching {url}: {e}")
            raise Timeout('Timeout') from e
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise UpstreamError(f'Upstream request failed: {e}') from e

    def close(self) -> None:
        self.session.close()
