import json
import logging
import re
from typing import Callable, Optional, Sequence
from urllib.parse import unquote

logger = logging.getLogger(__name__)

TEMPLATE_DATA_RE = re.compile(r'var\s+templateData\s*=\s*(\{[\s\S]*?\});')
TEMPLATE_LITERAL_RE = re.compile(r'decodeURIComponent\(\s*`([^`]+)`\s*\)')
HEX_TOKEN_RE = re.compile(r'["\']([A-F0-9]{32,})["\']')
WRAPPED_TOKEN_RE = re.compile(r'%22([\s\S]*?)%22')


def find_between(text:str, start:str, end:str) -> Optional[str]:
    s = text.find(start)
    if s == -1:
        return None
    e = text.find(end, s + len(start))
    if e == -1:
        return None
    return text[s + len(start):e]


def get_template_data(html:str) -> Optional[dict]:
    """Parse the inline ``var templateData = {...};`` state object, if any."""
    match = TEMPLATE_DATA_RE.search(html)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def unwrap_token(value:str) -> Optional[str]:
    """templateData carries the token as ``fn%28%22<token>%22%29``; plain values pass through."""
    if not value:
        return None
    match = WRAPPED_TOKEN_RE.search(value)
    if match:
        return unquote(match.group(1)) or None
    return value


#--> Strategies, one per known obfuscation format

def from_literal_call(html:str) -> Optional[str]:
    return find_between(html, 'fn("', '")')


def from_encoded_call(html:str) -> Optional[str]:
    return find_between(html.replace('\\', ''), 'fn%28%22', '%22%29')


def from_template_literal(html:str) -> Optional[str]:
    match = TEMPLATE_LITERAL_RE.search(html)
    if not match:
        return None
    token = HEX_TOKEN_RE.search(unquote(match.group(1)))
    return token.group(1) if token else None


def from_template_data(html:str) -> Optional[str]:
    data = get_template_data(html)
    if not data or not isinstance(data.get('jsToken'), str):
        return None
    return unwrap_token(data['jsToken'])


def from_json_field(html:str) -> Optional[str]:
    return find_between(html, 'jsToken":"', '"')


DEFAULT_STRATEGIES : tuple = (
    from_literal_call,
    from_encoded_call,
    from_template_literal,
    from_template_data,
    from_json_field,
)


def extract_token(html:str, strategies:Sequence[Callable[[str], Optional[str]]]=DEFAULT_STRATEGIES) -> Optional[str]:
    """Return the first token any strategy finds in ``html``, else None."""
    if not html:
        return None
    for strategy in strategies:
        token = strategy(html)
        if token:
            logger.info(f"Found jsToken via {strategy.__name__}")
            return token
    logger.warning("No jsToken pattern matched the page")
    return None
