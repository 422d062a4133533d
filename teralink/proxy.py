import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import requests

from .errors import Timeout, UpstreamError
from .fetch_utils import BlockAllCookies
from .terabox_utils import USER_AGENT

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
FETCH_TIMEOUT = 10
APP_BASE = 'https://www.terabox.app'

CORS_HEADERS : dict[str,str] = {
    'Access-Control-Allow-Origin'   : '*',
    'Access-Control-Expose-Headers' : '*',
}


@dataclass
class ProxiedResponse:
    status: int
    headers: dict
    body: Iterable


def is_forwardable(name:str) -> bool:
    name = name.lower()
    return name.startswith('content-') or name == 'accept-ranges'


def iter_body(response:requests.Response, chunk_size:int) -> Iterator[bytes]:
    """Relay the upstream body chunk by chunk, releasing the connection at the end.

    Content-Encoding is forwarded as is, so the raw (still encoded) bytes are
    relayed.
    """
    try:
        for chunk in response.raw.stream(chunk_size, decode_content=False):
            if chunk:
                yield chunk
    finally:
        response.close()


class StreamingProxy():
    """Relays the CDN file to the caller with Range support and a safe header subset."""

    def __init__(self, session:Optional[requests.Session]=None, timeout:float=FETCH_TIMEOUT, chunk_size:int=CHUNK_SIZE,
                 user_agent:str=USER_AGENT, app_base:str=APP_BASE) -> None:
        self.session : requests.Session = session or requests.Session()
        self.session.cookies.set_policy(BlockAllCookies())
        self.timeout : float = timeout
        self.chunk_size : int = chunk_size
        self.user_agent : str = user_agent
        self.app_base : str = app_base.rstrip('/')

    def stream(self, direct_link:str, range_header:Optional[str]=None) -> ProxiedResponse:
        # the CDN needs no session cookie; only Range is forwarded
        headers : dict[str,str] = {}
        if range_header:
            headers['Range'] = range_header

        logger.info(f"Proxying {direct_link} (range={range_header})")
        upstream = self._get(direct_link, headers)
        if not upstream.ok and upstream.status_code != 206:
            upstream.close()
            raise UpstreamError(f'Upstream error: {upstream.status_code}', status=upstream.status_code)

        out_headers = {name: value for name, value in upstream.headers.items() if is_forwardable(name)}
        out_headers.update(CORS_HEADERS)
        return ProxiedResponse(upstream.status_code, out_headers, iter_body(upstream, self.chunk_size))

    #--> HLS playlist relay for in-browser playback
    def relay_playlist(self, query:str, cookie:str='') -> ProxiedResponse:
        url = f'{self.app_base}/api/streaming?{query}'
        headers = {
            'User-Agent' : self.user_agent,
            'Accept'     : '*/*',
            'Referer'    : f'{self.app_base}/',
        }
        if cookie:
            headers['Cookie'] = cookie

        logger.info(f"Relaying playlist {url}")
        upstream = self._get(url, headers)
        try:
            body = upstream.content
        finally:
            upstream.close()
        return ProxiedResponse(
            upstream.status_code,
            {'Content-Type': 'application/vnd.apple.mpegurl', 'Access-Control-Allow-Origin': '*'},
            [body],
        )

    def _get(self, url:str, headers:dict) -> requests.Response:
        try:
            return self.session.get(url, headers=headers, timeout=self.timeout, stream=True)
        except requests.Timeout as e:
            logger.error(f"Timed out fetching {url}: {e}")
            raise Timeout('Timeout') from e
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise UpstreamError(f'Upstream request failed: {e}') from e
