"""Utilities for reading activities and athlete statistics from the Strava API."""
from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

import requests

from .config import STRAVA_API_BASE
from .errors import StravaAPIError, truncate_message

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 200
RETRY_STATUSES = {429, 500, 502, 503, 504}


def check_api_response(resp: requests.Response, context: str):
    """Decode ``resp`` and raise on anything that is not a successful payload."""
    try:
        body = resp.json()
    except ValueError as exc:
        raise StravaAPIError(
            f"Invalid response from Strava API during {context} (network error?)",
            context=context,
            status_code=resp.status_code,
        ) from exc

    message = body.get("message") if isinstance(body, dict) else None
    if message:
        raise StravaAPIError(
            f"Strava API error during {context}: {truncate_message(message)}",
            context=context,
            status_code=resp.status_code,
        )
    if resp.status_code >= 400:
        raise StravaAPIError(
            f"HTTP {resp.status_code} from Strava during {context}",
            context=context,
            status_code=resp.status_code,
        )
    return body


@dataclasses.dataclass
class StravaClient:
    """Thin wrapper around the Strava REST API.

    Parameters
    ----------
    access_token:
        OAuth access token with the ``activity:read_all`` and
        ``profile:read_all`` scopes.
    token_provider:
        Optional callable returning a fresh access token. When set, a request
        rejected with HTTP 401 is retried once with the token it returns.
    request_timeout:
        Timeout applied to the underlying ``requests`` calls.
    max_retries:
        Number of attempts made when the API returns a temporary error such
        as HTTP 429 (rate limit) or 5xx responses.
    backoff_factor:
        Base factor for the exponential backoff between retries.
    """

    access_token: str
    token_provider: Optional[Callable[[], str]] = None
    request_timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 2.0

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    # ------------------------------------------------------------------
    def _send(self, method: str, url: str, context: str, **kwargs) -> requests.Response:
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = requests.request(
                    method,
                    url,
                    headers=self._headers(),
                    timeout=self.request_timeout,
                    **kwargs,
                )
            except requests.RequestException as exc:
                raise StravaAPIError(
                    f"Invalid response from Strava API during {context} (network error?): {exc}",
                    context=context,
                ) from exc

            if resp.status_code in RETRY_STATUSES and attempt < self.max_retries:
                wait = self.backoff_factor ** attempt
                logger.warning(
                    "Strava API returned %s. Retrying in %.1fs (attempt %s/%s)",
                    resp.status_code,
                    wait,
                    attempt,
                    self.max_retries,
                )
                time.sleep(wait)
                continue
            return resp
        return resp

    def _request(self, method: str, path: str, context: str, **kwargs):
        url = f"{STRAVA_API_BASE}/{path.lstrip('/')}"
        resp = self._send(method, url, context, **kwargs)

        if resp.status_code == 401 and self.token_provider is not None:
            logger.info("Access token rejected during %s, refreshing and retrying once", context)
            self.access_token = self.token_provider()
            resp = self._send(method, url, context, **kwargs)

        return check_api_response(resp, context)

    # ------------------------------------------------------------------
    def get_athlete(self) -> Dict:
        """Return metadata about the authenticated athlete."""
        return self._request("GET", "athlete", "athlete profile")

    def get_athlete_stats(self, athlete_id: int) -> Dict:
        """Return recent, year-to-date and all-time totals for ``athlete_id``."""
        return self._request("GET", f"athletes/{int(athlete_id)}/stats", "athlete stats")

    def get_activity(self, activity_id: int) -> Dict:
        """Return the detailed representation of one activity, splits and laps included."""
        return self._request("GET", f"activities/{int(activity_id)}", "activity detail")

    # ------------------------------------------------------------------
    def iter_activities(
        self,
        *,
        after: Optional[dt.datetime] = None,
        before: Optional[dt.datetime] = None,
        per_page: int = MAX_PER_PAGE,
        max_pages: Optional[int] = None,
    ) -> Iterable[Dict]:
        """Yield activities for the authenticated athlete.

        Parameters
        ----------
        after, before:
            Optional datetimes used to filter the activities.
        per_page:
            Number of activities requested per API call (max 200). A page
            shorter than this is taken as the last one.
        max_pages:
            Optional safety limit on the number of pages fetched.
        """

        params: Dict[str, object] = {"per_page": per_page}
        if after is not None:
            params["after"] = int(after.timestamp())
        if before is not None:
            params["before"] = int(before.timestamp())

        page = 1
        while max_pages is None or page <= max_pages:
            params["page"] = page
            activities = self._request(
                "GET", "athlete/activities", "activity list", params=dict(params)
            )
            if not isinstance(activities, list):
                raise StravaAPIError(
                    "Invalid response from Strava API during activity list",
                    context="activity list",
                )
            if not activities:
                break
            logger.debug("Fetched page %s with %s activities", page, len(activities))
            yield from activities
            if len(activities) < per_page:
                break
            page += 1

    def list_activities(self, days: int, now: Optional[dt.datetime] = None) -> List[Dict]:
        """Return every activity started in the last ``days`` days."""
        if now is None:
            now = dt.datetime.now(dt.timezone.utc)
        return list(self.iter_activities(after=now - dt.timedelta(days=days)))
