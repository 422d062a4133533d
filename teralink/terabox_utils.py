import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, unquote, urlencode, urlparse

from .cache import ResultCache
from .cookie_utils import CookieJar, normalize_cookie
from .errors import (
    DirectLinkResolutionFailed,
    EmptyFileList,
    MissingInput,
    MissingShareIdentifier,
    MissingToken,
    TooManyRedirects,
    UpstreamError,
)
from .fetch_utils import FinalResponse, RedirectingFetchClient
from .token_utils import extract_token

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36'
SHARE_REFERER = 'https://1024terabox.com/'
API_BASE = 'https://www.terabox.com'
APP_ID = '250528'

#--> Static params of the share list API (doesn't change every request)
LIST_PARAMS : dict[str,str] = {
    'app_id'     : APP_ID,
    'web'        : '1',
    'channel'    : 'dubox',
    'clienttype' : '0',
}


class ResolveState(str, Enum):
    FETCH_SHARE_PAGE = 'FETCH_SHARE_PAGE'
    EXTRACT_IDENTIFIERS = 'EXTRACT_IDENTIFIERS'
    QUERY_FILE_LIST = 'QUERY_FILE_LIST'
    RESOLVE_DIRECT_LINK = 'RESOLVE_DIRECT_LINK'
    DONE = 'DONE'


def get_formatted_size(size_bytes:int) -> str:
    if size_bytes >= 1024 * 1024:
        return f'{size_bytes / 1024 / 1024:.2f} MB'
    if size_bytes >= 1024:
        return f'{size_bytes / 1024:.2f} KB'
    return f'{size_bytes} bytes'


def normalize_link(link:Optional[str]) -> str:
    return unquote(link or '').strip()


def get_share_id(url:str) -> Optional[str]:
    """Share identifier from the ``surl`` query parameter or a ``/s/<id>`` path."""
    parsed = urlparse(url)
    surl = parse_qs(parsed.query).get('surl')
    if surl and surl[0]:
        return surl[0]
    parts = [part for part in parsed.path.split('/') if part]
    if len(parts) >= 2 and parts[0] == 's':
        return parts[1]
    return None


@dataclass(frozen=True)
class ResolvedShare:
    file_name: str
    canonical_link: str
    direct_link: str
    thumbnail_url: str
    size_bytes: int
    formatted_size: str

    @classmethod
    def from_entry(cls, entry:dict, direct_link:str='') -> 'ResolvedShare':
        try:
            size = int(entry.get('size') or 0)
        except (TypeError, ValueError):
            size = 0
        thumbs = entry.get('thumbs') or {}
        return cls(
            file_name=entry.get('server_filename') or '',
            canonical_link=entry.get('dlink') or '',
            direct_link=direct_link,
            thumbnail_url=thumbs.get('url3') or '',
            size_bytes=size,
            formatted_size=get_formatted_size(size),
        )

    def to_dict(self) -> dict:
        return {
            'file_name'   : self.file_name,
            'link'        : self.canonical_link,
            'direct_link' : self.direct_link,
            'thumb'       : self.thumbnail_url,
            'size'        : self.formatted_size,
            'sizebytes'   : self.size_bytes,
        }


@dataclass(frozen=True)
class Resolution:
    share: ResolvedShare
    cookie: str
    cookie_changed: bool = False
    cached: bool = False


class ShareResolver():
    """Turns a public share link into a ResolvedShare.

    One cold resolution is three sequential negotiations with the upstream:
    the share page (for the share id and jsToken), the share list API (for
    the first file's ``dlink``) and the ``dlink`` itself (for the signed CDN
    URL it redirects to). A single CookieJar is threaded through all of them.
    """

    #--> Initialization (client, cache, cookie store and headers)
    def __init__(self, client:Optional[RedirectingFetchClient]=None, cache:Optional[ResultCache]=None, cookie_store=None,
                 user_agent:str=USER_AGENT, referer:str=SHARE_REFERER, api_base:str=API_BASE) -> None:
        self.client : RedirectingFetchClient = client or RedirectingFetchClient()
        self.cache : Optional[ResultCache] = cache
        self.cookie_store = cookie_store
        self.user_agent : str = user_agent
        self.referer : str = referer
        self.api_base : str = api_base.rstrip('/')

    #--> Main control (cache lookup, then the negotiation chain)
    def resolve(self, link:str, resolve_direct_link:bool=True) -> Resolution:
        key = normalize_link(link)
        if not key:
            raise MissingInput('Missing data')

        loaded_cookie : str = self.cookie_store.load() if self.cookie_store else ''

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None and (cached.direct_link or not resolve_direct_link):
                logger.info(f"Cache hit for {key}")
                return Resolution(cached, normalize_cookie(loaded_cookie), cached=True)

        logger.info(f"Starting resolution for URL: {key}")
        jar = CookieJar(loaded_cookie)

        page = self.fetchSharePage(link.strip(), jar)
        surl, js_token = self.extractIdentifiers(page)
        entry, jar = self.queryFileList(surl, js_token, page)

        direct_link : str = ''
        if resolve_direct_link:
            direct_link, jar = self.resolveDirectLink(entry['dlink'], jar)

        share = ResolvedShare.from_entry(entry, direct_link)
        if self.cache is not None:
            self.cache.put(key, share)
        logger.info(f"[{ResolveState.DONE.value}] Resolved {share.file_name} ({share.formatted_size})")

        cookie = jar.serialize()
        return Resolution(share, cookie, cookie_changed=(cookie != normalize_cookie(loaded_cookie)))

    #--> Step 1: share page, following redirects to the canonical share URL
    def fetchSharePage(self, link:str, jar:CookieJar) -> FinalResponse:
        logger.info(f"[{ResolveState.FETCH_SHARE_PAGE.value}] {link}")
        headers = {
            'User-Agent'      : self.user_agent,
            'Referer'         : self.referer,
            'Accept'          : 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language' : 'en-US,en;q=0.9',
        }
        page = self.client.resolve(link, headers, jar=jar)
        try:
            page.body = page.response.text
        finally:
            page.response.close()
        return page

    #--> Step 2: share id from the final URL, jsToken from the page body
    def extractIdentifiers(self, page:FinalResponse) -> tuple:
        surl = get_share_id(page.url)
        if not surl:
            raise MissingShareIdentifier('Missing surl')
        js_token = extract_token(page.body)
        if not js_token:
            raise MissingToken('Missing jsToken')
        logger.info(f"[{ResolveState.EXTRACT_IDENTIFIERS.value}] surl={surl} jsToken={js_token}")
        return surl, js_token

    #--> Step 3: share list API, first entry is the target
    def queryFileList(self, surl:str, js_token:str, page:FinalResponse) -> tuple:
        params = {
            **LIST_PARAMS,
            'jsToken'      : js_token,
            'page'         : '1',
            'num'          : '20',
            'by'           : 'name',
            'order'        : 'asc',
            'site_referer' : '',
            'shorturl'     : surl,
            'root'         : '1',
        }
        url = f'{self.api_base}/share/list?{urlencode(params)}'
        logger.info(f"[{ResolveState.QUERY_FILE_LIST.value}] {url}")
        headers = {
            'User-Agent'       : self.user_agent,
            'Referer'          : page.url,
            'Accept'           : 'application/json, text/plain, */*',
            'X-Requested-With' : 'XMLHttpRequest',
        }
        listing = self.client.resolve(url, headers, jar=page.jar)
        try:
            data = listing.response.json()
        except ValueError as e:
            raise UpstreamError(f'Invalid file list response ({listing.status})') from e
        finally:
            listing.response.close()

        files = data.get('list') if isinstance(data, dict) else None
        if not files:
            logger.warning(f"Empty file list (errno={data.get('errno') if isinstance(data, dict) else None})")
            raise EmptyFileList('Empty list')
        if len(files) > 1:
            logger.info(f"Share holds {len(files)} entries, using the first")

        entry = files[0]
        if not entry.get('dlink'):
            raise DirectLinkResolutionFailed('File not found', status=404)
        return entry, listing.jar

    #--> Step 4: follow the dlink to the signed CDN URL (HEAD first, ranged GET as fallback)
    def resolveDirectLink(self, dlink:str, jar:CookieJar) -> tuple:
        logger.info(f"[{ResolveState.RESOLVE_DIRECT_LINK.value}] {dlink}")
        headers = {
            'User-Agent' : self.user_agent,
            'Referer'    : f'{self.api_base}/',
        }

        try:
            final = self.client.resolve(dlink, headers, method='HEAD', jar=jar)
            final.response.close()
            if final.status < 400:
                return final.url, final.jar
            logger.warning(f"HEAD on dlink returned {final.status}, retrying with GET")
        except (TooManyRedirects, UpstreamError) as e:
            logger.warning(f"HEAD on dlink failed ({e}), retrying with GET")

        try:
            final = self.client.resolve(dlink, {**headers, 'Range': 'bytes=0-0'}, jar=jar)
        except (TooManyRedirects, UpstreamError) as e:
            raise DirectLinkResolutionFailed(f'Direct link resolution failed: {e}') from e
        final.response.close()
        if final.status >= 400:
            raise DirectLinkResolutionFailed(f'Direct link resolution failed: {final.status}')
        return final.url, final.jar
