#!/usr/bin/env python3
"""One-time Strava OAuth2 setup: authorize the club reader account and save tokens.

Prerequisites:
  1. Create a Strava API app at https://www.strava.com/settings/api
  2. Set redirect URI to: http://localhost:8090/callback
  3. Set env vars: STRAVA_CLIENT_ID and STRAVA_CLIENT_SECRET
  4. The authorizing athlete must be a member of the club being scored

Usage:
  python scripts/setup_strava_auth.py
"""

import sys
import webbrowser
from http.server import HTTPServer, BaseHTTPRequestHandler
from pathlib import Path
from urllib.parse import urlparse, parse_qs

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stravalib import Client

from burbs.config import load_config
from burbs.ingest.strava_client import CredentialError, StravaCredentials

REDIRECT_PORT = 8090
REDIRECT_PATH = "/callback"
SCOPES = ["read", "activity:read"]


class CallbackHandler(BaseHTTPRequestHandler):
    """Captures the OAuth callback and extracts the authorization code."""

    auth_code = None
    error = None

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path != REDIRECT_PATH:
            self.send_response(404)
            self.end_headers()
            return

        params = parse_qs(parsed.query)
        if "code" in params:
            CallbackHandler.auth_code = params["code"][0]
            body = b"<html><body><h2>Authorized. You can close this tab.</h2></body></html>"
            self.send_response(200)
        else:
            CallbackHandler.error = params.get("error", ["unknown"])[0]
            body = f"<html><body><h2>Error: {CallbackHandler.error}</h2></body></html>".encode()
            self.send_response(400)
        self.send_header("Content-Type", "text/html")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


def main():
    config = load_config()
    try:
        credentials = StravaCredentials.from_config(config)
    except CredentialError as e:
        print(f"Error: {e}")
        print("Set STRAVA_CLIENT_ID and STRAVA_CLIENT_SECRET, or fill in strava: in config/config.yaml")
        sys.exit(1)

    if credentials.token_file is None:
        print("Error: strava.token_file must be set so the tokens can be saved.")
        sys.exit(1)

    redirect_uri = f"http://localhost:{REDIRECT_PORT}{REDIRECT_PATH}"
    client = Client()
    auth_url = client.authorization_url(
        client_id=int(credentials.client_id),
        redirect_uri=redirect_uri,
        scope=SCOPES,
    )

    server = HTTPServer(("localhost", REDIRECT_PORT), CallbackHandler)
    print("Opening browser for Strava authorization...")
    print(f"If the browser doesn't open, visit:\n  {auth_url}\n")
    webbrowser.open(auth_url)

    print("Waiting for callback...")
    server.handle_request()
    server.server_close()

    if not CallbackHandler.auth_code:
        print(f"Error: no authorization code received ({CallbackHandler.error or 'no callback'}).")
        sys.exit(1)

    token_response = client.exchange_code_for_token(
        client_id=int(credentials.client_id),
        client_secret=credentials.client_secret,
        code=CallbackHandler.auth_code,
    )
    if not credentials.update_tokens(token_response):
        print(f"Error: could not write tokens to {credentials.token_file}")
        sys.exit(1)

    print(f"\nTokens saved to {credentials.token_file}")
    print("You can now run: burbs sync")


if __name__ == "__main__":
    main()
