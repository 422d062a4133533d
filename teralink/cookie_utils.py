import logging
from typing import Iterable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

#--> Set-Cookie attribute names; never stored as cookies
ATTR_NAMES : frozenset = frozenset({
    'expires', 'path', 'domain', 'max-age', 'samesite',
    'secure', 'httponly', 'priority', 'partitioned',
})

CookieSource = Union[None, str, Iterable[str], Mapping[str, str], 'CookieJar']


class CookieJar():
    """Session cookies threaded across every hop of one resolution.

    Merging follows what a browser keeps from ``Set-Cookie`` fragments: only
    ``name=value`` pairs survive, attributes are dropped, and for a repeated
    name the latest non-empty value wins (an empty value never masks a value
    seen earlier).
    """

    def __init__(self, source:CookieSource=None) -> None:
        self._cookies : dict[str,str] = {}
        if source is not None:
            self.merge(source)

    @classmethod
    def from_header(cls, value:Optional[str]) -> 'CookieJar':
        return cls(value or '')

    #--> Merge a cookie header, repeated Set-Cookie values, a mapping or another jar
    def merge(self, source:CookieSource) -> 'CookieJar':
        if isinstance(source, CookieJar):
            for key, value in source.items():
                self._set(key, value)
        elif isinstance(source, Mapping):
            for key, value in source.items():
                self._set(str(key), str(value))
        elif isinstance(source, str):
            self._merge_fragment(source)
        else:
            for fragment in source:
                self._merge_fragment(fragment)
        return self

    def _merge_fragment(self, fragment:str) -> None:
        for part in fragment.split(';'):
            part = part.strip()
            if not part:
                continue
            if '=' not in part:
                # bare flag (Secure, HttpOnly) or junk
                continue
            key, _, value = part.partition('=')
            key, value = key.strip(), value.strip()
            if not key or key.lower() in ATTR_NAMES:
                continue
            self._set(key, value)

    def _set(self, key:str, value:str) -> None:
        if value == '':
            self._cookies.setdefault(key, value)
        else:
            self._cookies[key] = value

    def get(self, key:str, default:Optional[str]=None) -> Optional[str]:
        return self._cookies.get(key, default)

    def items(self):
        return sorted(self._cookies.items())

    def copy(self) -> 'CookieJar':
        return CookieJar(self)

    def serialize(self) -> str:
        return '; '.join(f'{key}={value}' for key, value in self.items())

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, key:str) -> bool:
        return key in self._cookies

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __eq__(self, other) -> bool:
        if isinstance(other, CookieJar):
            return self.serialize() == other.serialize()
        if isinstance(other, str):
            return self.serialize() == normalize_cookie(other)
        return NotImplemented

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return f'CookieJar({self.serialize()!r})'


def normalize_cookie(cookie:CookieSource) -> str:
    """Reduce any cookie source to a sorted ``name=value; ...`` string."""
    if cookie is None:
        return ''
    return CookieJar(cookie).serialize()


def merge_cookies(current:CookieSource, set_cookie:CookieSource) -> str:
    return CookieJar(current or '').merge(set_cookie or '').serialize()
