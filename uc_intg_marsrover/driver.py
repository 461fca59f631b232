#!/usr/bin/env python3
"""
Mars Rover Explorer integration driver.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""
import asyncio
import logging
import os
import signal
from typing import Optional

import ucapi

from uc_intg_marsrover.client import MarsRoverClient
from uc_intg_marsrover.config import Config
from uc_intg_marsrover.explorer import PhotoExplorer
from uc_intg_marsrover.media_player import MarsRoverMediaPlayer
from uc_intg_marsrover.setup import MarsRoverSetup

_LOG = logging.getLogger(__name__)

loop: Optional[asyncio.AbstractEventLoop] = None
api: Optional[ucapi.IntegrationAPI] = None
rover_client: Optional[MarsRoverClient] = None
rover_config: Optional[Config] = None
media_player: Optional[MarsRoverMediaPlayer] = None


def setup_logging() -> None:
    """Configure root logging for the driver process."""
    level = os.getenv("UC_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)8s | %(name)s | %(message)s"
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


async def on_setup_complete():
    """Callback executed when driver setup is complete."""
    global media_player
    _LOG.info("Setup complete. Creating entities...")

    if not api or not rover_client or not rover_config:
        _LOG.error("Cannot create entities: API or client not initialized.")
        return

    try:
        if media_player is not None:
            _LOG.info("Media player already exists, keeping current ban list")
            await api.set_device_state(ucapi.DeviceStates.CONNECTED)
            return

        explorer = PhotoExplorer.from_config(rover_config, rover_client)
        media_player = MarsRoverMediaPlayer(rover_config, explorer, rover_client)
        media_player.attach(api)
        api.available_entities.add(media_player)
        _LOG.info("Added media player entity: %s", media_player.id)

        await api.set_device_state(ucapi.DeviceStates.CONNECTED)

    except Exception as e:
        _LOG.error(f"Error creating entities: {e}", exc_info=True)
        await api.set_device_state(ucapi.DeviceStates.ERROR)


async def on_r2_connect():
    """Handle Remote connection."""
    _LOG.info("Remote connected.")

    if api and rover_config and rover_config.is_configured:
        await api.set_device_state(ucapi.DeviceStates.CONNECTED)
    else:
        _LOG.info("Integration not configured yet.")


async def on_disconnect():
    """Handle Remote disconnection."""
    _LOG.info("Remote disconnected.")

    if media_player:
        await media_player.shutdown()


async def on_subscribe_entities(entity_ids: list[str]):
    """Handle entity subscription."""
    _LOG.info(f"Entities subscribed: {entity_ids}")

    for entity_id in entity_ids:
        if media_player and entity_id == media_player.id:
            try:
                await media_player.push_initial_state()
            except Exception as ex:
                _LOG.error(f"Error initializing media player: {ex}", exc_info=True)


async def on_unsubscribe_entities(entity_ids: list[str]):
    """Handle entity unsubscription from Remote."""
    _LOG.info(f"Remote unsubscribed from entities: {entity_ids}")

    for entity_id in entity_ids:
        if media_player and entity_id == media_player.id:
            await media_player.shutdown()


def find_driver_json() -> str:
    """Locate driver.json next to the package or in the working directory."""
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    for candidate in (os.path.join(project_root, "driver.json"), "driver.json"):
        if os.path.exists(candidate):
            return candidate
    raise FileNotFoundError("driver.json not found")


async def init_integration():
    """Initialize the integration objects and API."""
    global api, rover_client, rover_config

    driver_json_path = find_driver_json()
    _LOG.info(f"Using driver.json from: {driver_json_path}")

    api = ucapi.IntegrationAPI(loop)

    config_path = os.path.join(api.config_dir_path, "config.json")
    _LOG.info(f"Using config file: {config_path}")
    rover_config = Config(config_path)

    rover_client = MarsRoverClient(rover_config)

    setup_handler = MarsRoverSetup(rover_config, rover_client, on_setup_complete)

    await api.init(driver_json_path, setup_handler.setup_handler)

    api.add_listener(ucapi.Events.CONNECT, on_r2_connect)
    api.add_listener(ucapi.Events.DISCONNECT, on_disconnect)
    api.add_listener(ucapi.Events.SUBSCRIBE_ENTITIES, on_subscribe_entities)
    api.add_listener(ucapi.Events.UNSUBSCRIBE_ENTITIES, on_unsubscribe_entities)

    _LOG.info("Integration API initialized successfully")


async def main():
    """Main entry point."""
    _LOG.info("Starting Mars Rover Explorer Integration Driver")

    try:
        await init_integration()

        if rover_config and rover_config.is_configured:
            _LOG.info("Integration is already configured")
            await on_setup_complete()
        else:
            _LOG.warning("Integration is not configured. Waiting for setup...")

    except Exception as e:
        _LOG.error(f"Failed to start integration: {e}", exc_info=True)
        if api:
            await api.set_device_state(ucapi.DeviceStates.ERROR)
        raise


def shutdown_handler(signum, frame):
    """Handle termination signals for graceful shutdown."""
    _LOG.warning(f"Received signal {signum}. Shutting down...")

    async def cleanup():
        try:
            if media_player:
                _LOG.info("Shutting down media player...")
                await media_player.shutdown()

            if rover_client:
                _LOG.info("Closing Mars Rover client...")
                await rover_client.close()

            tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        except Exception as e:
            _LOG.error(f"Error during cleanup: {e}")
        finally:
            _LOG.info("Stopping event loop...")
            loop.stop()

    loop.create_task(cleanup())


def run():
    """Run the driver until stopped."""
    global loop
    setup_logging()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        loop.run_until_complete(main())
        _LOG.info("Integration is running. Press Ctrl+C to stop.")
        loop.run_forever()
    except (KeyboardInterrupt, asyncio.CancelledError):
        _LOG.info("Driver stopped.")
    finally:
        if not loop.is_closed():
            _LOG.info("Closing event loop...")
            loop.close()


if __name__ == "__main__":
    run()
