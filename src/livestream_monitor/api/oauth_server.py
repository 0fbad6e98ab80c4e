"""Local OAuth callback server for Twitch login."""

import asyncio
import logging
import secrets
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

# Served on /redirect; the implicit flow puts the token in the URL fragment,
# which only the browser can see, so a script posts it back to /token.
CALLBACK_HTML = """<!DOCTYPE html>
<html>
<head>
    <title>Twitch Authorization</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
            display: flex; justify-content: center; align-items: center;
            height: 100vh; margin: 0; background: #0e0e10; color: #efeff1;
        }
        .container { text-align: center; padding: 2rem; }
        h1 { color: #9147ff; }
        .success { color: #00ff7f; }
        .error { color: #ff4444; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Livestream Monitor</h1>
        <p id="status">Processing authorization...</p>
    </div>
    <script>
        (function() {
            const params = new URLSearchParams(window.location.hash.substring(1));
            const token = params.get('access_token');
            const state = params.get('state');
            const error = params.get('error');
            const statusEl = document.getElementById('status');

            if (error) {
                statusEl.className = 'error';
                statusEl.textContent = 'Auth failed: ' +
                    (params.get('error_description') || error);
                return;
            }
            if (!token) {
                statusEl.className = 'error';
                statusEl.textContent = 'No access token received. Please try again.';
                return;
            }

            let url = '/token?access_token=' + encodeURIComponent(token);
            if (state) {
                url += '&state=' + encodeURIComponent(state);
            }
            fetch(url)
                .then(response => {
                    if (!response.ok) {
                        throw new Error(response.status === 400
                            ? 'Invalid state parameter' : 'Server error');
                    }
                    statusEl.className = 'success';
                    statusEl.textContent = 'Success! You can close this window.';
                })
                .catch(err => {
                    statusEl.className = 'error';
                    statusEl.textContent = err.message || 'Failed to save token.';
                });
        })();
    </script>
</body>
</html>
"""


class ReuseAddrHTTPServer(HTTPServer):
    """HTTP server that allows address reuse."""

    allow_reuse_address = True


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for OAuth callbacks."""

    def log_message(self, format, *args):
        """Suppress default logging."""
        pass

    def _reply(self, status: int, body: bytes = b"", content_type: str = "text/plain") -> None:
        self.send_response(status)
        if body:
            self.send_header("Content-Type", content_type)
        self.end_headers()
        if body:
            self.wfile.write(body)

    def do_GET(self):
        """Handle GET requests."""
        parsed = urlparse(self.path)
        params = parse_qs(parsed.query)

        if parsed.path == "/redirect":
            self._reply(200, CALLBACK_HTML.encode(), "text/html")

        elif parsed.path == "/token":
            token = params.get("access_token", [None])[0]
            state = params.get("state", [None])[0]

            # Reject tokens that don't carry the state we handed out
            if self.server.expected_state and state != self.server.expected_state:
                logger.warning("OAuth state mismatch - possible CSRF attack")
                self._reply(400, b"Invalid state parameter")
                return

            if token and self.server.token_callback:
                self.server.token_callback(token)
                self._reply(200, b"OK")
            else:
                self._reply(400)

        else:
            self._reply(404)


class OAuthServer:
    """Local HTTP server for OAuth callback handling."""

    def __init__(self, port: int = 0):
        """
        Initialize the OAuth server.

        Args:
            port: Port to listen on. Use 0 to auto-select an available port.
        """
        self._port = port
        self._server: HTTPServer | None = None
        self._thread: Thread | None = None
        self._token: str | None = None
        self._token_event = threading.Event()
        self._stopped = False
        self._expected_state: str | None = None

    @property
    def port(self) -> int:
        """Get the actual port the server is listening on."""
        if self._server:
            return self._server.server_address[1]
        return self._port

    @property
    def redirect_uri(self) -> str:
        """Get the redirect URI for OAuth."""
        return f"http://localhost:{self.port}/redirect"

    def generate_state(self) -> str:
        """Generate and store a random state parameter for the OAuth request."""
        self._expected_state = secrets.token_urlsafe(32)
        if self._server:
            self._server.expected_state = self._expected_state
        return self._expected_state

    @property
    def expected_state(self) -> str | None:
        return self._expected_state

    def _on_token(self, token: str) -> None:
        self._token = token
        self._token_event.set()

    def start(self) -> None:
        """Start the OAuth server."""
        if self._port == 0:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(("localhost", 0))
                self._port = s.getsockname()[1]

        self._server = ReuseAddrHTTPServer(("localhost", self._port), OAuthCallbackHandler)
        self._server.token_callback = self._on_token
        self._server.expected_state = self._expected_state

        self._thread = Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        logger.info(f"OAuth server started on port {self.port}")

    def stop(self) -> None:
        """Stop the OAuth server. Safe to call multiple times."""
        if self._stopped:
            return
        self._stopped = True

        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

        logger.info("OAuth server stopped")

    async def wait_for_token(self, timeout: float = 300) -> str | None:
        """
        Wait for the OAuth token to be received.

        Args:
            timeout: Maximum seconds to wait.

        Returns:
            The access token, or None if timed out.
        """
        try:
            loop = asyncio.get_running_loop()
            got_token = await loop.run_in_executor(
                None, lambda: self._token_event.wait(timeout=timeout)
            )
            return self._token if got_token else None
        finally:
            self.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
