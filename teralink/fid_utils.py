import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from .cache import ResultCache
from .cookie_utils import CookieJar, normalize_cookie
from .errors import DirectLinkResolutionFailed, MissingInput, MissingToken, UpstreamError
from .fetch_utils import RedirectingFetchClient
from .signing import make_signature
from .terabox_utils import LIST_PARAMS, USER_AGENT, Resolution
from .token_utils import get_template_data, unwrap_token

logger = logging.getLogger(__name__)

APP_BASE = 'https://www.terabox.app'


@dataclass(frozen=True)
class ResolvedFile:
    fs_id: str
    dlink: str
    direct_link: str
    filename: str
    size: int

    def to_dict(self) -> dict:
        return {
            'fs_id'       : self.fs_id,
            'dlink'       : self.dlink,
            'direct_link' : self.direct_link,
            'filename'    : self.filename,
            'size'        : self.size,
        }


class FidResolver():
    """Direct link for a file id in the logged-in account behind the session cookie."""

    def __init__(self, client:Optional[RedirectingFetchClient]=None, cache:Optional[ResultCache]=None, cookie_store=None,
                 user_agent:str=USER_AGENT, app_base:str=APP_BASE) -> None:
        self.client : RedirectingFetchClient = client or RedirectingFetchClient()
        self.cache : Optional[ResultCache] = cache
        self.cookie_store = cookie_store
        self.user_agent : str = user_agent
        self.app_base : str = app_base.rstrip('/')
        self.headers : dict[str,str] = {
            'Accept-Language' : 'en-US,en;q=0.9',
            'Accept'          : 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Referer'         : f'{self.app_base}/main',
            'User-Agent'      : self.user_agent,
        }

    def resolve(self, fid:str) -> Resolution:
        fid = (fid or '').strip()
        if not fid:
            raise MissingInput('Missing fid')

        loaded_cookie : str = self.cookie_store.load() if self.cookie_store else ''
        key = f'fid:{fid}'
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Cache hit for fid {fid}")
                return Resolution(cached, normalize_cookie(loaded_cookie), cached=True)

        jar = CookieJar(loaded_cookie)

        #--> jsToken & bdstoken from the main page state object
        page = self.client.resolve(f'{self.app_base}/main', self.headers, jar=jar)
        try:
            template_data = get_template_data(page.response.text) or {}
        finally:
            page.response.close()
        js_token = unwrap_token(template_data.get('jsToken') or '')
        if not js_token:
            raise MissingToken('jsToken not found')
        bdstoken = template_data.get('bdstoken')
        if not bdstoken:
            raise MissingToken('bdstoken not found')
        jar = page.jar

        #--> Signing material
        info, jar = self._get_json(f'{self.app_base}/api/home/info?{urlencode({**LIST_PARAMS, "jsToken": js_token})}', jar)
        sign_data = info.get('data') or {}
        if not sign_data.get('sign1') or not sign_data.get('sign3'):
            raise UpstreamError('Missing sign data')
        signature = make_signature(sign_data['sign3'], sign_data['sign1'])

        #--> Download API
        params = {
            **LIST_PARAMS,
            'jsToken'    : js_token,
            'fidlist'    : f'[{fid}]',
            'type'       : 'dlink',
            'vip'        : '2',
            'sign'       : signature,
            'timestamp'  : str(sign_data.get('timestamp', '')),
            'need_speed' : '0',
            'bdstoken'   : bdstoken,
        }
        download, jar = self._get_json(f'{self.app_base}/api/download?{urlencode(params)}', jar)
        links = download.get('dlink') or []
        first = links[0] if isinstance(links, list) and links else {}
        dlink = first.get('dlink') if isinstance(first, dict) else None
        if not dlink:
            raise DirectLinkResolutionFailed('File not found', status=404)

        #--> Direct link (one byte ranged GET, body never read)
        final = self.client.resolve(dlink, {**self.headers, 'Range': 'bytes=0-0'}, jar=jar)
        final.response.close()
        if final.status >= 400:
            raise DirectLinkResolutionFailed(f'Direct link resolution failed: {final.status}')

        file_info = download.get('file_info') or {}
        try:
            size = int(file_info.get('size') or 0)
        except (TypeError, ValueError):
            size = 0
        result = ResolvedFile(
            fs_id=str(first.get('fs_id', fid)),
            dlink=dlink,
            direct_link=final.url,
            filename=file_info.get('filename') or '',
            size=size,
        )
        if self.cache is not None:
            self.cache.put(key, result)
        logger.info(f"Resolved fid {fid} -> {final.url}")

        cookie = final.jar.serialize()
        return Resolution(result, cookie, cookie_changed=(cookie != normalize_cookie(loaded_cookie)))

    def _get_json(self, url:str, jar:CookieJar) -> tuple:
        final = self.client.resolve(url, self.headers, jar=jar)
        try:
            data = final.response.json()
        except ValueError as e:
            raise UpstreamError(f'Invalid JSON from {url.split("?")[0]} ({final.status})') from e
        finally:
            final.response.close()
        if not isinstance(data, dict):
            raise UpstreamError(f'Unexpected response from {url.split("?")[0]}')
        return data, final.jar
