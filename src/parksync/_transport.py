"""HTTP transport for the snapshot read."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from parksync._constants import USER_AGENT
from parksync._redact import redact_for_log
from parksync.config import ParkSyncConfig
from parksync.exceptions import ParkSyncTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the snapshot loader.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestTransport`) concrete.
    """

    async def fetch_rows(self) -> list[dict[str, Any]]:
        ...


class RestTransport:
    """Reads every row of the parking table through the REST endpoint."""

    def __init__(
        self,
        config: ParkSyncConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session

    def _headers(self) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "apikey": self._config.api_key,
            "authorization": f"Bearer {self._config.api_key}",
            "user-agent": USER_AGENT,
        }
        if self._config.schema_name != "public":
            headers["accept-profile"] = self._config.schema_name
        return headers

    async def fetch_rows(self) -> list[dict[str, Any]]:
        """GET all rows and return them as a list of dicts.

        Raises
        ------
        ParkSyncTransportError
            On network failure, non-200 status, an undecodable or invalid
            JSON body, or a body that is not a JSON array.
        """
        url = self._config.rest_url
        endpoint = f"/{self._config.table}"
        headers = self._headers()
        _logger.debug("GET %s headers=%s", url, redact_for_log(headers))

        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)
        try:
            async with self._http.get(url, headers=headers, timeout=timeout) as resp:
                raw = await resp.read()
                text = raw.decode(resp.charset or "utf-8")
                if resp.status != 200:
                    raise ParkSyncTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except ParkSyncTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise ParkSyncTransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc
        except (UnicodeDecodeError, LookupError) as exc:
            raise ParkSyncTransportError(
                f"Undecodable body from {endpoint}: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParkSyncTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, list):
            raise ParkSyncTransportError(
                f"Expected a JSON array from {endpoint}, got {type(body).__name__}",
                endpoint=endpoint,
            )

        _logger.debug("Fetched %d row(s) from %s", len(body), endpoint)
        return body
