"""
Setup flow for Mars Rover Explorer integration with API validation.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import ucapi

from uc_intg_marsrover.client import MarsRoverClient
from uc_intg_marsrover.config import Config
from uc_intg_marsrover.errors import MalformedResponse, TransportFailure
from uc_intg_marsrover.models import Selection

_LOG = logging.getLogger(__name__)

# Known to return photos, used only to validate the key
TEST_SELECTION = Selection(rover="curiosity", camera="FHAZ", sol=1000)


class MarsRoverSetup:
    """Mars Rover integration setup handler with API validation."""

    def __init__(self, config: Config, client: MarsRoverClient, setup_complete_callback: Optional[Callable]):
        """Initialize setup handler."""
        self._config = config
        self._client = client
        self._setup_complete_callback = setup_complete_callback

    async def setup_handler(self, driver_setup_request: ucapi.SetupDriver) -> ucapi.SetupAction:
        """
        Handle driver setup requests.

        :param driver_setup_request: setup request from the Remote
        :return: setup action response
        """
        _LOG.debug("Setup handler called: %s", type(driver_setup_request).__name__)

        if isinstance(driver_setup_request, ucapi.DriverSetupRequest):
            return await self._handle_settings(driver_setup_request.setup_data, initial=True)
        elif isinstance(driver_setup_request, ucapi.UserDataResponse):
            return await self._handle_settings(driver_setup_request.input_values, initial=False)
        elif isinstance(driver_setup_request, ucapi.AbortDriverSetup):
            _LOG.debug("Setup aborted: %s", driver_setup_request.error)
            return ucapi.SetupError(driver_setup_request.error)
        else:
            _LOG.error("Unknown setup request type: %s", type(driver_setup_request))
            return ucapi.SetupError(ucapi.IntegrationSetupError.OTHER)

    def _settings_form(self, api_key: str, max_attempts: int, error: Optional[str] = None) -> ucapi.RequestUserInput:
        key_label = "NASA API Key (leave empty to use DEMO_KEY with 30 req/hour limit)"
        if error:
            key_label = f"⚠️ {error}\n\nTry different API key or force setup:"

        settings = [
            {
                "id": "api_key",
                "label": {"en": key_label},
                "field": {"text": {"value": api_key if api_key != "DEMO_KEY" else "", "placeholder": "Get free key at api.nasa.gov"}},
            },
            {
                "id": "max_attempts",
                "label": {"en": "Queries per search before giving up (0 = never)"},
                "field": {"number": {"value": max_attempts, "min": 0, "max": 500, "steps": 10}},
            },
        ]
        if error:
            settings.append({
                "id": "force_setup",
                "label": {"en": "Force setup completion (ignore API errors)"},
                "field": {"checkbox": {"value": False}},
            })

        return ucapi.RequestUserInput(
            title="Mars Rover Explorer Configuration" if not error else "NASA API Connection Issue",
            settings=settings,
        )

    async def _handle_settings(self, values: Optional[Dict[str, Any]], initial: bool) -> ucapi.SetupAction:
        """Save submitted settings, validate the key and finish or ask again."""
        if initial and (not values or "api_key" not in values):
            return self._settings_form(self._config.api_key, self._config.max_attempts or 0)

        values = values or {}

        try:
            api_key = str(values.get("api_key", "")).strip() or "DEMO_KEY"
            max_attempts = int(values.get("max_attempts", 50))
            force_setup = str(values.get("force_setup", False)).lower() == "true"
        except (TypeError, ValueError) as ex:
            _LOG.error("Invalid setup data: %s", ex)
            return ucapi.SetupError(ucapi.IntegrationSetupError.OTHER)

        if max_attempts < 0:
            return ucapi.SetupError(ucapi.IntegrationSetupError.OTHER)

        self._config.update({
            "api_key": api_key,
            "max_attempts": max_attempts
        })

        if force_setup:
            _LOG.info("🔧 Setup forced by user - bypassing API validation")
            return await self._complete()

        test_result = await self._test_api_connection()
        if test_result["success"]:
            _LOG.info("✅ Setup validation passed")
            return await self._complete()

        _LOG.warning("⚠️ API validation failed, offering options")
        return self._settings_form(api_key, max_attempts, error=test_result["error"])

    async def _complete(self) -> ucapi.SetupAction:
        if self._setup_complete_callback:
            await self._setup_complete_callback()
        return ucapi.SetupComplete()

    async def _test_api_connection(self) -> Dict[str, Any]:
        """Query the photos endpoint once, with one retry."""
        _LOG.info("Testing Mars Rover Photos API connection...")

        error = "Unknown error"
        for attempt in range(2):
            try:
                photos = await asyncio.wait_for(self._client.fetch_photos(TEST_SELECTION), timeout=10)
                _LOG.info("✅ Photos API test passed: %d photos", len(photos))
                return {"success": True, "error": None}
            except TransportFailure as ex:
                _LOG.debug("Photos API error (attempt %d): %s", attempt + 1, ex)
                if ex.status in (401, 403):
                    error = "NASA API key is invalid"
                    break
                elif ex.status == 429:
                    error = "NASA API key is rate limited"
                else:
                    error = "Network connectivity issue - check internet connection"
            except asyncio.TimeoutError:
                _LOG.debug("Photos API timeout (attempt %d)", attempt + 1)
                error = "Network connectivity issue - check internet connection"
            except MalformedResponse as ex:
                _LOG.debug("Photos API malformed response: %s", ex)
                error = "Unexpected response from NASA API"

            if attempt == 0:
                await asyncio.sleep(0.5)

        _LOG.warning("❌ Photos API test failed: %s", error)
        return {"success": False, "error": error}
