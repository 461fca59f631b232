"""
Mars Rover Photos API client.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import asyncio
import json
import logging
import ssl
from typing import Any, Dict, List, Optional

import aiohttp
import certifi

from uc_intg_marsrover.config import Config
from uc_intg_marsrover.errors import MalformedResponse, TransportFailure
from uc_intg_marsrover.models import Photo, Selection

_LOG = logging.getLogger(__name__)


class MarsRoverClient:
    """Photos API client with a lazily created aiohttp session."""

    def __init__(self, config: Config):
        """Initialize Mars Rover client."""
        self._config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session exists with SSL verification and pooling."""
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            ssl_context.check_hostname = True
            ssl_context.verify_mode = ssl.CERT_REQUIRED

            connector = aiohttp.TCPConnector(
                ssl=ssl_context,
                limit=10,
                limit_per_host=5,
                ttl_dns_cache=300,
                use_dns_cache=True,
                keepalive_timeout=30,
            )

            timeout = aiohttp.ClientTimeout(
                total=15,
                connect=5,
                sock_read=10
            )

            headers = {
                'User-Agent': 'Mozilla/5.0 (Unfolded Circle Mars Rover Explorer)',
                'Accept': 'application/json, text/plain, */*',
                'Accept-Encoding': 'gzip, deflate',
            }

            self._session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers=headers
            )

            _LOG.info("🌐 Mars Rover HTTP session created with SSL verification")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _get_api_key(self) -> str:
        """Get API key from configuration."""
        api_key = self._config.api_key
        return api_key if api_key and api_key != "" else "DEMO_KEY"

    def photos_url(self, rover: str) -> str:
        """Photos endpoint for one rover."""
        return f"{self._config.base_url}/{rover}/photos"

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        """
        GET ``url`` and decode the JSON body.

        :raises TransportFailure: connection error, timeout or non-2xx status
        :raises MalformedResponse: body is not JSON
        """
        await self._ensure_session()

        try:
            async with self._session.get(url, params=params) as response:
                _LOG.debug("Response: HTTP %s from %s", response.status, url)

                if response.status == 429:
                    _LOG.warning("Rate limited by %s", url)
                elif response.status in (401, 403):
                    _LOG.warning("Authentication error %s for %s", response.status, url)

                if not 200 <= response.status < 300:
                    raise TransportFailure(f"HTTP {response.status} for {url}", status=response.status)

                # Some NASA endpoints send JSON without a JSON content-type
                body = await response.read()
                charset = response.charset or "utf-8"
        except asyncio.TimeoutError as ex:
            raise TransportFailure(f"Timeout for {url}") from ex
        except aiohttp.ClientError as ex:
            raise TransportFailure(f"Client error for {url}: {ex}") from ex

        try:
            return json.loads(body.decode(charset))
        except (ValueError, LookupError, RecursionError) as ex:
            # ValueError covers both undecodable bytes and invalid JSON
            raise MalformedResponse(f"Invalid JSON from {url}: {body[:100]!r}") from ex

    async def fetch_photos(self, selection: Selection) -> List[Photo]:
        """
        Fetch the photos matching a selection.

        :raises TransportFailure: request failed or returned a non-2xx status
        :raises MalformedResponse: response does not carry a ``photos`` list
        """
        url = self.photos_url(selection.rover)
        _LOG.debug("Fetching %s sol=%d camera=%s", url, selection.sol, selection.camera)

        data = await self._get_json(url, selection.params(self._get_api_key()))

        if not isinstance(data, dict) or not isinstance(data.get("photos"), list):
            raise MalformedResponse(f"No photos list in response from {url}")

        photos = [Photo.from_api(entry) for entry in data["photos"]]
        _LOG.debug("%s sol %d %s: %d photos", selection.rover, selection.sol, selection.camera, len(photos))
        return photos

    async def check_image(self, url: str) -> bool:
        """Probe an image URL, False when it is broken or unreachable."""
        if not url or not url.startswith("http"):
            return False

        await self._ensure_session()

        try:
            async with self._session.head(url, allow_redirects=True) as response:
                if 200 <= response.status < 300:
                    return True
                _LOG.debug("Image probe HTTP %s for %s", response.status, url)
                return False
        except asyncio.TimeoutError:
            _LOG.debug("Image probe timeout for %s", url)
            return False
        except aiohttp.ClientError as ex:
            _LOG.debug("Image probe error for %s: %s", url, ex)
            return False
