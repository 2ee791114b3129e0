"""OAuth2 authorization-code flow and token refresh for the Strava API."""
from __future__ import annotations

import logging
import re
import secrets
import sys
import time
from typing import Callable, Dict, Optional, Sequence, TextIO, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

import requests
from flask import Flask, request
from werkzeug.serving import make_server

from .config import AUTH_URL, DEFAULT_SCOPES, TOKEN_URL, StravaSettings
from .errors import AuthorizationError, StravaAPIError, truncate_message
from .tokens import TokenSet, TokenStore

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
CALLBACK_TIMEOUT_S = 300
DEFAULT_PORTS = {"http": 80, "https": 443}


def build_authorisation_url(
    *,
    client_id: str,
    redirect_uri: str,
    scopes: Sequence[str] = DEFAULT_SCOPES,
    approval_prompt: str = "auto",
    state: Optional[str] = None,
) -> str:
    """Return the fully-qualified Strava authorisation URL."""
    params: Dict[str, str] = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "approval_prompt": approval_prompt,
        "scope": ",".join(scopes),
    }

    if state:
        params["state"] = state

    return f"{AUTH_URL}?{urlencode(params, safe=',:/')}"


def new_state() -> str:
    return secrets.token_hex(16)


def parse_redirect_url(url: str, expected_state: str) -> str:
    """Validate the URL Strava redirected to and return the authorization code."""
    query = parse_qs(urlsplit(url.strip()).query)

    returned_state = query.get("state", [""])[0]
    if returned_state != expected_state:
        raise AuthorizationError(
            "State parameter mismatch. This could indicate a CSRF attack or a stale URL. Try again."
        )

    error = query.get("error", [""])[0]
    if error:
        raise AuthorizationError(f"Strava did not authorize the application: {error}")

    code = query.get("code", [""])[0]
    if not code:
        raise AuthorizationError(
            "Could not extract authorization code from URL.\n"
            "Make sure you pasted the full URL including the ?code= parameter."
        )
    if not CODE_PATTERN.match(code):
        raise AuthorizationError("Authorization code contains unexpected characters.")
    return code


def _post_token_request(settings: StravaSettings, data: Dict[str, str], context: str) -> Dict:
    payload = {
        "client_id": settings.client_id,
        "client_secret": settings.client_secret,
        **data,
    }
    try:
        resp = requests.post(TOKEN_URL, data=payload, timeout=settings.request_timeout)
    except requests.RequestException as exc:
        raise StravaAPIError(
            f"Invalid response from Strava API during {context}: {exc}", context=context
        ) from exc

    try:
        body = resp.json()
    except ValueError:
        body = None

    message = body.get("message") if isinstance(body, dict) else None
    if resp.status_code >= 400:
        suffix = f": {truncate_message(message)}" if message else ""
        raise StravaAPIError(
            f"HTTP {resp.status_code} from Strava during {context}{suffix}",
            context=context,
            status_code=resp.status_code,
        )
    if not isinstance(body, dict):
        raise StravaAPIError(
            f"Invalid response from Strava API during {context}",
            context=context,
            status_code=resp.status_code,
        )
    if message:
        raise StravaAPIError(
            f"Strava API error during {context}: {truncate_message(message)}",
            context=context,
            status_code=resp.status_code,
        )
    return body


def _token_set(body: Dict, athlete_id) -> TokenSet:
    return TokenSet(
        access_token=body.get("access_token") or "",
        refresh_token=body.get("refresh_token") or "",
        expires_at=int(body.get("expires_at") or 0),
        athlete_id=athlete_id,
    )


def exchange_code(settings: StravaSettings, code: str) -> TokenSet:
    """Swap an authorization code for the athlete's first token pair."""
    body = _post_token_request(
        settings,
        {"code": code, "grant_type": "authorization_code"},
        "token exchange",
    )
    athlete = body.get("athlete") or {}
    return _token_set(body, athlete.get("id"))


def refresh_tokens(settings: StravaSettings, tokens: TokenSet) -> TokenSet:
    """Refresh ``tokens``; Strava may rotate the refresh token on every call."""
    body = _post_token_request(
        settings,
        {"refresh_token": tokens.refresh_token, "grant_type": "refresh_token"},
        "token refresh",
    )
    # The refresh response carries no athlete, keep the one we already know.
    return _token_set(body, tokens.athlete_id)


def create_callback_app(sink: Dict[str, str], path: str = "/callback") -> Flask:
    """Flask app recording the first redirect Strava sends to ``path``."""
    app = Flask(__name__)

    @app.route(path or "/")
    def callback():
        sink["url"] = request.url
        if "code" not in request.args:
            return "No 'code' param.", 400
        return (
            "<h3>Authorization received</h3>"
            "<p>You can close this window and return to the terminal.</p>"
        )

    return app


def callback_address(redirect_uri: str) -> Tuple[str, int, str]:
    """Host, port and path a local server must bind to receive ``redirect_uri``."""
    parts = urlsplit(redirect_uri)
    port = parts.port or DEFAULT_PORTS.get(parts.scheme, 80)
    return parts.hostname or "localhost", port, parts.path


def wait_for_callback(redirect_uri: str, timeout: float = CALLBACK_TIMEOUT_S) -> str:
    """Serve the redirect URI locally until Strava calls it, return the full URL."""
    host, port, path = callback_address(redirect_uri)

    sink: Dict[str, str] = {}
    # werkzeug reports a busy port by printing it and calling sys.exit(1).
    try:
        server = make_server(host, port, create_callback_app(sink, path))
    except (OSError, SystemExit) as exc:
        raise AuthorizationError(
            f"Cannot listen on {redirect_uri}. Is port {port} already in use?"
        ) from exc
    server.timeout = min(1.0, timeout)
    logger.info("Waiting for the Strava redirect on %s ...", redirect_uri)
    deadline = time.monotonic() + timeout
    try:
        while "url" not in sink:
            if time.monotonic() > deadline:
                raise AuthorizationError(
                    f"No redirect received on {redirect_uri} within {timeout}s."
                )
            server.handle_request()
    finally:
        server.server_close()
    return sink["url"]


class TokenManager:
    """Acquires, refreshes and hands out the athlete's access token."""

    def __init__(
        self,
        settings: StravaSettings,
        store: Optional[TokenStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.store = store or TokenStore(settings.token_file)
        self.clock = clock

    # ------------------------------------------------------------------
    def setup(
        self,
        read_redirect: Callable[[str], str] = input,
        *,
        listen: bool = False,
        out: TextIO = sys.stderr,
    ) -> TokenSet:
        """Run the one-time interactive authorization."""
        state = new_state()
        url = build_authorisation_url(
            client_id=self.settings.client_id,
            redirect_uri=self.settings.redirect_uri,
            state=state,
        )

        def say(line: str = "") -> None:
            print(line, file=out)

        say("Strava OAuth2 Setup")
        say("===================")
        say()
        say("1. Open the following URL in your browser:")
        say()
        say(f"   {url}")
        say()
        say("2. Log in and authorize the application.")
        if listen:
            say(f"3. Strava will redirect to {self.settings.redirect_uri}, where this")
            say("   command is listening.")
            say()
            redirect_url = wait_for_callback(self.settings.redirect_uri)
        else:
            say("3. You'll be redirected to a URL like:")
            say(f"   {self.settings.redirect_uri}?state=...&code=XXXXX&scope=...")
            say()
            say("   (The page won't load, that's expected. Copy the URL from your browser's address bar.)")
            say()
            redirect_url = read_redirect("Paste the full redirect URL here: ")

        code = parse_redirect_url(redirect_url, state)

        say()
        say("Exchanging authorization code for tokens...")
        tokens = exchange_code(self.settings, code)
        self.store.save(tokens)

        say(f"Success! Tokens saved to {self.store.path}")
        say(f"  Athlete ID: {tokens.athlete_id}")
        say(f"  Expires in: {self._expiry_summary(tokens)}")
        return tokens

    def refresh(self, tokens: Optional[TokenSet] = None) -> TokenSet:
        if tokens is None:
            tokens = self.store.load()
        fresh = refresh_tokens(self.settings, tokens)
        self.store.save(fresh)
        logger.info("Token refreshed successfully.")
        logger.info("  Expires in: %s", self._expiry_summary(fresh))
        return fresh

    def access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token, refreshing it first when needed."""
        tokens = self.store.load()
        if force_refresh or tokens.is_expired(now=self.clock()):
            if not force_refresh:
                logger.info("Access token expired, refreshing...")
            tokens = self.refresh(tokens)
        return tokens.access_token

    def _expiry_summary(self, tokens: TokenSet) -> str:
        expires_in = tokens.expires_in(now=self.clock())
        return f"{expires_in}s (~{expires_in // 3600}h)"
