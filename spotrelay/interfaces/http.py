import uuid
from typing import Optional

from flask import Flask, Response, g, request, jsonify, redirect
from werkzeug.exceptions import HTTPException

from spotrelay.application.relay import RelayService
from spotrelay.application.token_cache import TokenCache
from spotrelay.crosscutting.config import ConfigError, Settings
from spotrelay.crosscutting.logging import RequestContext, get_logger, log_with_fields, setup_logging
from spotrelay.domain.errors import RelayError
from spotrelay.infrastructure.providers.spotify import SpotifyPlayerProvider
from spotrelay.infrastructure.providers.spotify_accounts import SpotifyAccountsClient
from spotrelay.infrastructure.token_store import InMemoryTokenStore


def build_relay(settings: Settings) -> RelayService:
    """Wire the default in-memory relay for the given settings."""
    accounts = SpotifyAccountsClient(settings)
    token_cache = TokenCache(InMemoryTokenStore(), accounts)
    provider = SpotifyPlayerProvider(requests_timeout=settings.request_timeout)
    return RelayService(token_cache, accounts, provider, verify_state=settings.verify_state)


class HTTPServer:
    """HTTP relay in front of the Spotify Web API."""

    def __init__(self, settings: Optional[Settings] = None,
                 relay: Optional[RelayService] = None, debug: bool = False):
        """Initialize HTTP server."""
        self.settings = settings or Settings.from_env()
        self.host = self.settings.host
        self.port = self.settings.port
        self.debug = debug
        self.relay = relay or build_relay(self.settings)
        self.app = Flask(__name__)
        self.logger = get_logger(__name__)

        self._setup_logging()
        self._setup_request_context()
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_logging(self) -> None:
        """Setup logging for HTTP server."""
        setup_logging(level=self.settings.log_level)

    def _setup_request_context(self) -> None:
        """Stamp a request id and route on log records for the duration of a request."""

        @self.app.before_request
        def enter_request_context():
            request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12]
            g.log_context = RequestContext(request_id=request_id, route=request.path)
            g.log_context.__enter__()

        @self.app.teardown_request
        def exit_request_context(exc):
            context = g.pop('log_context', None)
            if context is not None:
                context.__exit__(None, None, None)

    def _setup_error_handlers(self) -> None:
        """Map errors onto the JSON error envelope."""

        @self.app.errorhandler(RelayError)
        def relay_error(e: RelayError):
            self.logger.warning(f"{request.method} {request.path} -> {e.status_code}: {e.summary}")
            return jsonify(e.to_dict()), e.status_code

        @self.app.errorhandler(ConfigError)
        def config_error(e: ConfigError):
            self.logger.error(f"Configuration error: {e}")
            return jsonify({
                'error': str(e),
                'details': None
            }), 500

        @self.app.errorhandler(HTTPException)
        def http_error(e: HTTPException):
            return jsonify({
                'error': e.name,
                'details': e.description
            }), e.code

        @self.app.errorhandler(Exception)
        def unexpected_error(e: Exception):
            self.logger.exception(f"Unhandled error on {request.method} {request.path}")
            return jsonify({
                'error': 'Internal server error',
                'details': str(e)
            }), 500

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/', methods=['GET'])
        def root():
            return jsonify({'status': 'API is running'}), 200

        @self.app.route('/ping', methods=['GET'])
        def ping():
            return jsonify({'pong': True}), 200

        @self.app.route('/auth', methods=['GET'])
        def spotify_auth():
            """Redirect the user agent to Spotify's consent page."""
            return redirect(self.relay.authorize_url(), code=302)

        @self.app.route('/callback', methods=['GET'])
        def oauth_callback():
            """OAuth callback endpoint for Spotify."""
            message = self.relay.exchange_code(
                code=request.args.get('code'),
                state=request.args.get('state'),
                error=request.args.get('error'),
            )
            self.logger.info("OAuth tokens stored")
            return Response(message, status=200, mimetype='text/plain')

        @self.app.route('/spotify', methods=['GET'])
        def spotify_snapshot():
            return jsonify(self.relay.snapshot()), 200

        @self.app.route('/spotify/pause', methods=['POST'])
        def spotify_pause():
            return jsonify(self.relay.pause(device_id=self._body().get('device_id'))), 200

        @self.app.route('/spotify/resume', methods=['POST'])
        def spotify_resume():
            return jsonify(self.relay.resume(device_id=self._body().get('device_id'))), 200

        @self.app.route('/spotify/play', methods=['POST'])
        def spotify_play():
            body = self._body()
            return jsonify(self.relay.play(body.get('uri'), device_id=body.get('device_id'))), 200

        @self.app.route('/spotify/devices', methods=['GET'])
        def spotify_devices():
            return jsonify(self.relay.devices()), 200

        @self.app.route('/logout', methods=['POST'])
        def logout():
            return jsonify(self.relay.logout()), 200

    @staticmethod
    def _body() -> dict:
        """JSON request body, or an empty dict when absent or not an object."""
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    def run(self) -> None:
        """Run the HTTP server."""
        log_with_fields(self.logger, 'INFO', f"Starting SpotRelay HTTP server on {self.host}:{self.port}",
                        self.settings.summary())
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug,
            threaded=True
        )


def create_app(settings: Optional[Settings] = None,
               relay: Optional[RelayService] = None) -> Flask:
    """Create Flask app (used by WSGI servers and tests)."""
    server = HTTPServer(settings=settings, relay=relay)
    return server.app
