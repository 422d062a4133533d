import logging

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from teralink.cache import ResultCache
from teralink.config import Config
from teralink.cookie_store import build_cookie_store
from teralink.errors import MissingInput, TeraboxError
from teralink.fetch_utils import RedirectingFetchClient
from teralink.fid_utils import FidResolver
from teralink.proxy import StreamingProxy
from teralink.terabox_utils import ShareResolver

# Set up logging
logging.basicConfig(level=Config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)
logging.getLogger("urllib3").setLevel(logging.WARNING)

JSON_HEADERS = {
    'Access-Control-Allow-Origin' : '*',
    'Cache-Control'               : 'no-store',
}


def create_app(config=Config, resolver=None, fid_resolver=None, proxy=None, cookie_store=None):
    app = Flask(__name__)

    cookie_store = cookie_store or build_cookie_store(config)
    if resolver is None or fid_resolver is None:
        client = RedirectingFetchClient(timeout=config.FETCH_TIMEOUT, max_hops=config.MAX_REDIRECTS)
        cache = ResultCache(ttl=config.CACHE_TTL, maxsize=config.CACHE_MAXSIZE)
    if resolver is None:
        resolver = ShareResolver(client, cache, cookie_store, user_agent=config.USER_AGENT,
                                 referer=config.SHARE_REFERER, api_base=config.API_BASE)
    if fid_resolver is None:
        fid_resolver = FidResolver(client, cache, cookie_store, user_agent=config.USER_AGENT, app_base=config.APP_BASE)
    if proxy is None:
        proxy = StreamingProxy(timeout=config.FETCH_TIMEOUT, chunk_size=config.CHUNK_SIZE,
                               user_agent=config.USER_AGENT, app_base=config.APP_BASE)

    app.extensions['teralink'] = {
        'resolver': resolver,
        'fid_resolver': fid_resolver,
        'proxy': proxy,
        'cookie_store': cookie_store,
    }

    def persist_cookie(resolution):
        if resolution.cookie_changed:
            logger.info("Session cookie changed, writing it back")
            cookie_store.save(resolution.cookie)

    def redirect_to(location):
        return Response('', status=302, headers={'Location': location, 'Access-Control-Allow-Origin': '*'})

    def relay(proxied):
        return Response(proxied.body, status=proxied.status, headers=proxied.headers)

    @app.route('/')
    def hello():
        return 'Hello, World!'

    @app.route('/health')
    def health_check():
        return 'OK', 200

    @app.route('/api')
    def share():
        link = request.args.get('data')
        if not link:
            raise MissingInput('Missing data')

        resolve_direct_link = 'nodirectlink' not in request.args or 'proxy' in request.args
        resolution = resolver.resolve(link, resolve_direct_link=resolve_direct_link)
        persist_cookie(resolution)
        result = resolution.share

        if 'proxy' in request.args:
            return relay(proxy.stream(result.direct_link or result.canonical_link, request.headers.get('Range')))

        if 'download' in request.args and result.direct_link:
            return redirect_to(result.direct_link)

        return jsonify(result.to_dict()), 200, JSON_HEADERS

    @app.route('/api/fid')
    def fid():
        file_id = request.args.get('fid')
        if not file_id:
            raise MissingInput('Missing fid')

        resolution = fid_resolver.resolve(file_id)
        persist_cookie(resolution)
        result = resolution.share

        if 'download' in request.args:
            return redirect_to(result.direct_link)
        return jsonify(result.to_dict()), 200, JSON_HEADERS

    @app.route('/api/streaming')
    def streaming():
        return relay(proxy.relay_playlist(request.query_string.decode('utf-8'), cookie_store.load()))

    @app.errorhandler(TeraboxError)
    def handle_terabox_error(e):
        logger.warning(f"{type(e).__name__}: {e.message}")
        return jsonify({'error': e.message}), e.status, {'Access-Control-Allow-Origin': '*'}

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({'error': str(e) or 'Unknown Error'}), 500, {'Access-Control-Allow-Origin': '*'}

    return app


app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=Config.PORT, threaded=True)
