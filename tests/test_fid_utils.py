from urllib.parse import parse_qs, urlparse

import pytest
import responses

from conftest import DIRECT_LINK, DLINK, TOKEN
from teralink.cookie_store import MemoryCookieStore
from teralink.errors import DirectLinkResolutionFailed, MissingInput, MissingToken
from teralink.fid_utils import FidResolver
from teralink.signing import make_signature

MAIN_HTML = f'<script>var templateData = {{"jsToken":"fn%28%22{TOKEN}%22%29","bdstoken":"bd123"}};</script>'
INFO = {'errno': 0, 'data': {'sign1': 'abcdef', 'sign3': 'key123', 'timestamp': 1700000000}}


def add_fid_flow(download=None, main_html=MAIN_HTML):
    responses.add(responses.GET, 'https://www.terabox.app/main', status=200, body=main_html)
    responses.add(responses.GET, 'https://www.terabox.app/api/home/info', status=200, json=INFO)
    responses.add(responses.GET, 'https://www.terabox.app/api/download', status=200, json=download or {
        'errno': 0,
        'dlink': [{'fs_id': 42, 'dlink': DLINK}],
        'file_info': {'filename': 'movie.mp4', 'size': 2048},
    })
    responses.add(responses.GET, DLINK, status=302, headers={'Location': DIRECT_LINK})
    responses.add(responses.GET, DIRECT_LINK, status=206)


@pytest.fixture
def fid_resolver(fetch_client, cache):
    return FidResolver(fetch_client, cache, MemoryCookieStore('ndus=abc'))


@responses.activate
def test_resolve_fid(fid_resolver):
    add_fid_flow()

    resolution = fid_resolver.resolve('42')

    assert resolution.share.to_dict() == {
        'fs_id': '42',
        'dlink': DLINK,
        'direct_link': DIRECT_LINK,
        'filename': 'movie.mp4',
        'size': 2048,
    }
    download_query = parse_qs(urlparse(responses.calls[2].request.url).query)
    assert download_query['fidlist'] == ['[42]']
    assert download_query['jsToken'] == [TOKEN]
    assert download_query['bdstoken'] == ['bd123']
    assert download_query['sign'] == [make_signature('key123', 'abcdef')]
    assert download_query['timestamp'] == ['1700000000']
    assert responses.calls[3].request.headers['Range'] == 'bytes=0-0'
    assert responses.calls[0].request.headers['Cookie'] == 'ndus=abc'


@responses.activate
def test_resolve_fid_is_cached(fid_resolver):
    add_fid_flow()
    fid_resolver.resolve('42')
    second = fid_resolver.resolve('42')
    assert second.cached is True
    assert len(responses.calls) == 5


@responses.activate
def test_missing_bdstoken(fid_resolver):
    add_fid_flow(main_html=f'<script>var templateData = {{"jsToken":"{TOKEN}"}};</script>')
    with pytest.raises(MissingToken) as exc:
        fid_resolver.resolve('42')
    assert exc.value.message == 'bdstoken not found'


@responses.activate
def test_missing_dlink(fid_resolver, cache):
    add_fid_flow(download={'errno': 2, 'dlink': []})
    with pytest.raises(DirectLinkResolutionFailed) as exc:
        fid_resolver.resolve('42')
    assert exc.value.status == 404
    assert len(cache) == 0


def test_missing_fid(fid_resolver):
    with pytest.raises(MissingInput):
        fid_resolver.resolve('')
