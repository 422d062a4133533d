import pytest
import requests
import responses

from conftest import DIRECT_LINK
from teralink.errors import Timeout, UpstreamError
from teralink.proxy import StreamingProxy, is_forwardable


def test_forwardable_headers():
    assert is_forwardable('Content-Type')
    assert is_forwardable('content-range')
    assert is_forwardable('Accept-Ranges')
    assert not is_forwardable('Set-Cookie')
    assert not is_forwardable('Server')
    assert not is_forwardable('Contentious')


@responses.activate
def test_stream_range_request():
    responses.add(responses.GET, DIRECT_LINK, status=206, body=b'x' * 100, headers={
        'Content-Range': 'bytes 100-199/1000',
        'Accept-Ranges': 'bytes',
        'Content-Type': 'video/mp4',
        'Set-Cookie': 'cdn=1',
        'Server': 'nginx',
    })

    proxied = StreamingProxy(chunk_size=32).stream(DIRECT_LINK, 'bytes=100-199')

    request = responses.calls[0].request
    assert request.headers['Range'] == 'bytes=100-199'
    assert 'Cookie' not in request.headers
    assert proxied.status == 206
    assert proxied.headers['Content-Range'] == 'bytes 100-199/1000'
    assert proxied.headers['Accept-Ranges'] == 'bytes'
    assert proxied.headers['Access-Control-Allow-Origin'] == '*'
    assert 'Set-Cookie' not in proxied.headers
    assert 'Server' not in proxied.headers

    chunks = list(proxied.body)
    assert b''.join(chunks) == b'x' * 100
    assert len(chunks) > 1


@responses.activate
def test_stream_without_range():
    responses.add(responses.GET, DIRECT_LINK, status=200, body=b'data')
    proxied = StreamingProxy().stream(DIRECT_LINK)
    assert 'Range' not in responses.calls[0].request.headers
    assert proxied.status == 200
    assert b''.join(proxied.body) == b'data'


@responses.activate
def test_stream_upstream_error_keeps_status():
    responses.add(responses.GET, DIRECT_LINK, status=403)
    with pytest.raises(UpstreamError) as exc:
        StreamingProxy().stream(DIRECT_LINK)
    assert exc.value.status == 403
    assert exc.value.message == 'Upstream error: 403'


@responses.activate
def test_stream_timeout():
    responses.add(responses.GET, DIRECT_LINK, body=requests.exceptions.ConnectTimeout('slow'))
    with pytest.raises(Timeout):
        StreamingProxy().stream(DIRECT_LINK)


@responses.activate
def test_relay_playlist():
    responses.add(responses.GET, 'https://www.terabox.app/api/streaming', status=200, body='#EXTM3U\n')

    proxied = StreamingProxy().relay_playlist('path=%2Fmovie.mp4&type=M3U8_AUTO_480', cookie='ndus=abc')

    request = responses.calls[0].request
    assert request.url == 'https://www.terabox.app/api/streaming?path=%2Fmovie.mp4&type=M3U8_AUTO_480'
    assert request.headers['Cookie'] == 'ndus=abc'
    assert proxied.headers['Content-Type'] == 'application/vnd.apple.mpegurl'
    assert b''.join(proxied.body) == b'#EXTM3U\n'


@responses.activate
def test_cdn_cookies_are_not_replayed_across_streams():
    responses.add(responses.GET, DIRECT_LINK, status=200, body=b'a', headers={'Set-Cookie': 'cdn=secret; Path=/'})
    responses.add(responses.GET, 'https://www.terabox.app/api/streaming', status=200, body='#EXTM3U\n',
                  headers={'Set-Cookie': 'playlist=1; Path=/'})
    proxy = StreamingProxy()

    b''.join(proxy.stream(DIRECT_LINK).body)
    proxy.relay_playlist('type=M3U8_AUTO_480')
    b''.join(proxy.stream(DIRECT_LINK, 'bytes=0-0').body)

    assert 'Cookie' not in responses.calls[1].request.headers
    assert 'Cookie' not in responses.calls[2].request.headers
    assert len(proxy.session.cookies) == 0
