"""Strava club feed access: credentials, rate limiting, paged fetch.

The club activities endpoint returns summary records with no activity id
and (usually) no start date. Everything is fetched and converted to
``RawActivity`` before the caller sees any of it.
"""

import json
import logging
import time as time_mod
from datetime import date, datetime, timezone
from pathlib import Path

import requests
from stravalib import Client, exc

from burbs.config import strava_settings
from burbs.models import RawActivity

logger = logging.getLogger(__name__)


class CredentialError(RuntimeError):
    """The access token could not be refreshed."""


class StravaFetchError(RuntimeError):
    """Listing club activities failed. Safe to retry later."""

    retryable = True


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

class StravaRateLimiter:
    """Track Strava API usage from response headers and pause when near limits.

    Passed to ``stravalib.Client`` as its ``rate_limiter``; the protocol
    layer calls it with the headers of every API response.

    Strava limits:
      - 100 requests per 15 minutes (short-term)
      - 1000 requests per day (daily)
    """

    SHORT_LIMIT = 100
    DAILY_LIMIT = 1000
    SHORT_THRESHOLD = 0.95   # pause at 95 of 100
    DAILY_THRESHOLD = 0.95   # abort at 950 of 1000

    def __init__(self, sleep=time_mod.sleep):
        self.short_usage = 0
        self.daily_usage = 0
        self.pause_count = 0
        self.aborted = False
        self._sleep = sleep

    def __call__(self, headers, method="GET"):
        self.update_from_headers(headers)
        if not self.check():
            raise exc.RateLimitExceeded("Strava daily rate limit nearly reached",
                                        limit=self.DAILY_LIMIT)

    def update_from_headers(self, headers):
        """Extract rate limit usage from Strava response headers."""
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        usage = headers.get("x-readratelimit-usage") or headers.get("x-ratelimit-usage", "")
        if usage:
            parts = usage.split(",")
            if len(parts) >= 2:
                self.short_usage = int(parts[0].strip())
                self.daily_usage = int(parts[1].strip())

    def check(self) -> bool:
        """Sleep through the short window if needed. Returns False once the daily limit is near."""
        if self.daily_usage >= int(self.DAILY_LIMIT * self.DAILY_THRESHOLD):
            self.aborted = True
            logger.warning("Strava daily usage %d/%d; re-run after midnight UTC",
                           self.daily_usage, self.DAILY_LIMIT)
            return False

        if self.short_usage >= int(self.SHORT_LIMIT * self.SHORT_THRESHOLD):
            # Sleep until next 15-minute boundary
            now = datetime.now(timezone.utc)
            next_boundary = ((now.minute // 15) + 1) * 15
            wait_minutes = next_boundary - now.minute
            wait_seconds = wait_minutes * 60 - now.second + 5  # 5s buffer
            if wait_seconds > 0:
                self.pause_count += 1
                logger.info("Strava usage %d/%d (15-min); sleeping %ds",
                            self.short_usage, self.SHORT_LIMIT, wait_seconds)
                self._sleep(wait_seconds)
                self.short_usage = 0

        return True


# ---------------------------------------------------------------------------
# Token management
# ---------------------------------------------------------------------------

class StravaCredentials:
    """Holds the refresh token and a cached bearer token with its expiry.

    ``get_access_token`` refreshes only when the cached token has less than
    ``REFRESH_MARGIN_S`` left. A failed refresh leaves the cache untouched.
    """

    REFRESH_MARGIN_S = 300

    def __init__(self, client_id, client_secret, refresh_token, token_file=None,
                 client_factory=Client, clock=time_mod.time):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_file = Path(token_file).expanduser() if token_file else None
        self.access_token = None
        self.expires_at = 0
        self._client_factory = client_factory
        self._clock = clock
        self._load_tokens()

    @classmethod
    def from_config(cls, config: dict, **kwargs) -> "StravaCredentials":
        strava = strava_settings(config)
        missing = [k for k in ("client_id", "client_secret") if not strava.get(k)]
        if missing:
            raise CredentialError(f"Missing Strava settings: {', '.join(missing)}")
        return cls(
            client_id=strava["client_id"],
            client_secret=strava["client_secret"],
            refresh_token=strava.get("refresh_token"),
            token_file=strava.get("token_file"),
            **kwargs,
        )

    def _load_tokens(self):
        """Prefer the token file: Strava rotates refresh tokens."""
        if not self.token_file or not self.token_file.exists():
            return
        with open(self.token_file) as f:
            tokens = json.load(f)
        self.access_token = tokens.get("access_token")
        self.expires_at = tokens.get("expires_at", 0)
        self.refresh_token = tokens.get("refresh_token") or self.refresh_token

    def _save_tokens(self) -> bool:
        """Write the current tokens. An unwritable file is logged; the in-memory token stays usable."""
        if not self.token_file:
            return False
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "w") as f:
                json.dump({
                    "access_token": self.access_token,
                    "refresh_token": self.refresh_token,
                    "expires_at": self.expires_at,
                }, f, indent=2)
        except OSError as e:
            logger.error("Could not save Strava tokens to %s: %s", self.token_file, e)
            return False
        return True

    def update_tokens(self, response) -> bool:
        """Adopt a token response (refresh or code exchange). Returns True if it was persisted."""
        self.access_token = response["access_token"]
        self.expires_at = response["expires_at"]
        self.refresh_token = response.get("refresh_token") or self.refresh_token
        return self._save_tokens()

    def is_fresh(self) -> bool:
        return bool(self.access_token) and self.expires_at > self._clock() + self.REFRESH_MARGIN_S

    def get_access_token(self) -> str:
        if self.is_fresh():
            return self.access_token
        if not self.refresh_token:
            raise CredentialError("No Strava refresh token. Run scripts/setup_strava_auth.py")

        try:
            response = self._client_factory().refresh_access_token(
                client_id=int(self.client_id),
                client_secret=self.client_secret,
                refresh_token=self.refresh_token,
            )
        except (exc.Fault, requests.exceptions.RequestException, ValueError) as e:
            raise CredentialError(f"Failed to refresh Strava token: {e}") from e
        if not response or "access_token" not in response or "expires_at" not in response:
            raise CredentialError("Strava token response missing access_token/expires_at")

        self.update_tokens(response)
        logger.debug("Refreshed Strava token, expires at %s", self.expires_at)
        return self.access_token

    def client(self, **kwargs) -> Client:
        """A stravalib client on a fresh token. ``kwargs`` go to the client factory."""
        return self._client_factory(access_token=self.get_access_token(), **kwargs)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def _enum_str(value):
    """stravalib wraps types in a RootModel; plain strings pass through."""
    if value is None:
        return None
    return value.root if hasattr(value, "root") else str(value)


def _local_date(value):
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return str(value).split("T")[0] or None


def to_raw_activity(act) -> RawActivity:
    """Convert a stravalib club activity (or anything shaped like one)."""
    athlete = getattr(act, "athlete", None)
    return RawActivity(
        athlete_firstname=getattr(athlete, "firstname", None) or "",
        athlete_lastname=getattr(athlete, "lastname", None) or "",
        name=act.name or "",
        type=_enum_str(act.type) or "",
        sport_type=_enum_str(getattr(act, "sport_type", None)),
        distance=float(act.distance) if act.distance else 0.0,
        total_elevation_gain=float(act.total_elevation_gain) if act.total_elevation_gain else 0.0,
        local_date=_local_date(getattr(act, "start_date_local", None)),
    )


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def fetch_club_activities(credentials: StravaCredentials, club_id, per_page: int = 200,
                          max_pages: int = 5, rate_limiter: StravaRateLimiter = None) -> list:
    """Fetch up to ``max_pages`` pages of the club feed, newest first.

    Raises StravaFetchError if any page fails; no partial list is returned.
    """
    if not str(club_id or "").isdigit():
        raise StravaFetchError(f"Missing or invalid Strava club_id: {club_id!r}")
    rate_limiter = rate_limiter or StravaRateLimiter()
    client = credentials.client(rate_limiter=rate_limiter)
    limit = per_page * max_pages

    activities = []
    try:
        for act in client.get_club_activities(int(club_id), limit=limit):
            activities.append(to_raw_activity(act))
    except (exc.Fault, exc.RateLimitExceeded, requests.exceptions.RequestException) as e:
        raise StravaFetchError(f"Failed to fetch club activities: {e}") from e

    logger.info("Fetched %d club activities from Strava", len(activities))
    return activities


def fetch_from_config(config: dict, credentials: StravaCredentials, **kwargs) -> list:
    strava = strava_settings(config)
    return fetch_club_activities(
        credentials,
        strava.get("club_id"),
        per_page=int(kwargs.pop("per_page", strava["per_page"])),
        max_pages=int(kwargs.pop("max_pages", strava["max_pages"])),
        **kwargs,
    )
