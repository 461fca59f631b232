"""
Mars Rover Explorer media player entity.

The displayed photo is the media image, ban and unban actions are offered
through the source list and NEXT fetches another photo.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import ucapi
from ucapi import StatusCodes

from uc_intg_marsrover.client import MarsRoverClient
from uc_intg_marsrover.config import Config
from uc_intg_marsrover.explorer import ExplorerState, ExplorerStatus, PhotoExplorer
from uc_intg_marsrover.models import BanAttribute, Photo

_LOG = logging.getLogger(__name__)

CommandHandler = Callable[[ucapi.Entity, str, dict[str, Any] | None], Awaitable[StatusCodes]]

SUPPRESS_MEDIA_COMMANDS = [
    ucapi.media_player.Commands.PLAY_PAUSE,
    ucapi.media_player.Commands.SHUFFLE,
    ucapi.media_player.Commands.REPEAT,
    ucapi.media_player.Commands.STOP,
    ucapi.media_player.Commands.FAST_FORWARD,
    ucapi.media_player.Commands.REWIND,
    ucapi.media_player.Commands.SEEK,
    ucapi.media_player.Commands.MUTE_TOGGLE,
    ucapi.media_player.Commands.VOLUME_UP,
    ucapi.media_player.Commands.VOLUME_DOWN
]

BAN_LABELS = {
    BanAttribute.ROVER.value: "Rover",
    BanAttribute.CAMERA.value: "Camera",
    BanAttribute.EARTH_DATE.value: "Date",
}

CLEAR_BANS = "Clear all bans"

Action = Tuple[Any, ...]


def build_actions(state: ExplorerState) -> Dict[str, Action]:
    """Source list entries mapped to ban list actions, in display order."""
    actions: Dict[str, Action] = {}

    photo = state.photo
    if photo is not None and state.status == ExplorerStatus.SUCCESS:
        for attribute, label in BAN_LABELS.items():
            value = photo.value_of(attribute)
            actions[f"Ban {label.lower()}: {value}"] = ("ban", attribute, value)

    for index, rule in enumerate(state.bans):
        actions[f"Unban {index + 1}: {rule}"] = ("unban", index)

    if len(state.bans) > 1:
        actions[CLEAR_BANS] = ("clear",)

    return actions


def _photo_attributes(photo: Photo) -> Dict[str, Any]:
    album = f"Sol {photo.sol}" if photo.sol is not None else photo.camera_full_name or ""
    return {
        ucapi.media_player.Attributes.STATE: ucapi.media_player.States.PLAYING,
        ucapi.media_player.Attributes.MEDIA_IMAGE_URL: photo.img_src,
        ucapi.media_player.Attributes.MEDIA_TITLE: f"{photo.rover_name} - {photo.camera_name}",
        ucapi.media_player.Attributes.MEDIA_ARTIST: f"Date: {photo.earth_date}",
        ucapi.media_player.Attributes.MEDIA_ALBUM: album,
    }


def render_attributes(state: ExplorerState) -> Dict[str, Any]:
    """Entity attributes for the current explorer state."""
    if state.status == ExplorerStatus.FAILED:
        attributes = {
            ucapi.media_player.Attributes.STATE: ucapi.media_player.States.ON,
            ucapi.media_player.Attributes.MEDIA_IMAGE_URL: "",
            ucapi.media_player.Attributes.MEDIA_TITLE: f"Error: {state.error}",
            ucapi.media_player.Attributes.MEDIA_ARTIST: "Unban something or press next",
            ucapi.media_player.Attributes.MEDIA_ALBUM: "",
        }
    elif state.status == ExplorerStatus.SUCCESS and state.photo is not None:
        attributes = _photo_attributes(state.photo)
    elif state.loading:
        attributes = {
            ucapi.media_player.Attributes.STATE: ucapi.media_player.States.BUFFERING,
            ucapi.media_player.Attributes.MEDIA_TITLE: "Loading...",
            ucapi.media_player.Attributes.MEDIA_ARTIST: f"Searching Mars • attempt {max(state.attempts, 1)}",
        }
        if state.photo is None:
            attributes[ucapi.media_player.Attributes.MEDIA_IMAGE_URL] = ""
    else:
        attributes = {
            ucapi.media_player.Attributes.STATE: ucapi.media_player.States.ON,
            ucapi.media_player.Attributes.MEDIA_TITLE: "Mars Rover Explorer",
            ucapi.media_player.Attributes.MEDIA_ARTIST: "Press next for a random rover photo",
        }

    if len(state.bans):
        attributes[ucapi.media_player.Attributes.MEDIA_ALBUM] = f"{len(state.bans)} banned"
    attributes[ucapi.media_player.Attributes.SOURCE_LIST] = list(build_actions(state).keys())
    return attributes


class MarsRoverMediaPlayer(ucapi.MediaPlayer):
    """Media player showing random Mars rover photos."""

    def __init__(
        self,
        config: Config,
        explorer: PhotoExplorer,
        client: MarsRoverClient,
        cmd_handler: CommandHandler | None = None,
    ):
        """Initialize the Mars Rover media player entity."""
        self._config = config
        self._explorer = explorer
        self._client = client
        self._api: Optional[ucapi.IntegrationAPI] = None
        self._actions: Dict[str, Action] = {}
        self._probe_task: Optional[asyncio.Task] = None

        features = [
            ucapi.media_player.Features.SELECT_SOURCE,
            ucapi.media_player.Features.MEDIA_IMAGE_URL,
            ucapi.media_player.Features.MEDIA_TITLE,
            ucapi.media_player.Features.MEDIA_ARTIST,
            ucapi.media_player.Features.MEDIA_ALBUM,
            ucapi.media_player.Features.ON_OFF,
            ucapi.media_player.Features.NEXT,
        ]

        attributes = {
            ucapi.media_player.Attributes.STATE: ucapi.media_player.States.BUFFERING,
            ucapi.media_player.Attributes.SOURCE_LIST: [],
            ucapi.media_player.Attributes.SOURCE: "",
            ucapi.media_player.Attributes.MEDIA_IMAGE_URL: "",
            ucapi.media_player.Attributes.MEDIA_TITLE: "Mars Rover Explorer",
            ucapi.media_player.Attributes.MEDIA_ARTIST: "Waiting for rover photos...",
            ucapi.media_player.Attributes.MEDIA_ALBUM: "",
        }

        super().__init__(
            identifier=config.device_id,
            name=config.device_name,
            features=features,
            attributes=attributes,
            device_class=ucapi.media_player.DeviceClasses.STREAMING_BOX,
            cmd_handler=cmd_handler or self._handle_command,
        )

        explorer.add_listener(self._on_state_changed)
        _LOG.info("Mars Rover media player initialized")

    def attach(self, api: ucapi.IntegrationAPI) -> None:
        """Attach the integration API used to push attribute updates."""
        self._api = api

    async def _handle_command(self, entity: ucapi.Entity, cmd_id: str, params: dict[str, Any] | None = None) -> StatusCodes:
        """Handle media player commands."""
        _LOG.debug("COMMAND: %s", cmd_id)

        try:
            if cmd_id == ucapi.media_player.Commands.ON:
                return await self._cmd_on()
            elif cmd_id == ucapi.media_player.Commands.OFF:
                return await self._cmd_off()
            elif cmd_id == ucapi.media_player.Commands.NEXT:
                self._explorer.refresh()
                return StatusCodes.OK
            elif cmd_id == ucapi.media_player.Commands.SELECT_SOURCE:
                return await self._cmd_select_source(params)
            elif cmd_id in SUPPRESS_MEDIA_COMMANDS:
                _LOG.debug("Ignoring command '%s'", cmd_id)
                return StatusCodes.OK
            else:
                _LOG.warning("Unexpected command: %s", cmd_id)
                return StatusCodes.NOT_IMPLEMENTED

        except Exception as ex:
            _LOG.error("Error handling command %s: %s", cmd_id, ex)
            return StatusCodes.SERVER_ERROR

    async def _cmd_on(self) -> StatusCodes:
        """Turn on and fetch a photo if none is shown."""
        if self._explorer.state.photo is None and not self._explorer.state.loading:
            self._explorer.refresh()
        self._render(self._explorer.state)
        await self._push_update()
        return StatusCodes.OK

    async def _cmd_off(self) -> StatusCodes:
        """Turn off and stop searching."""
        await self.shutdown()
        self.attributes[ucapi.media_player.Attributes.STATE] = ucapi.media_player.States.OFF
        await self._push_update()
        return StatusCodes.OK

    async def _cmd_select_source(self, params: dict[str, Any] | None = None) -> StatusCodes:
        """Run the ban list action behind a source list entry."""
        if not params or "source" not in params:
            return StatusCodes.BAD_REQUEST

        action = self._actions.get(params["source"])
        if action is None:
            _LOG.warning("Unknown source entry: %s", params["source"])
            return StatusCodes.NOT_FOUND

        _LOG.info("ACTION: %s", params["source"])
        kind = action[0]
        try:
            if kind == "ban":
                self._explorer.ban(action[1], action[2])
            elif kind == "unban":
                self._explorer.unban(action[1])
            elif kind == "clear":
                self._explorer.bans.clear()
        except IndexError:
            # Source list was stale, the rule is already gone
            return StatusCodes.NOT_FOUND

        return StatusCodes.OK

    def _render(self, state: ExplorerState) -> None:
        self._actions = build_actions(state)
        self.attributes.update(render_attributes(state))

    def _on_state_changed(self, state: ExplorerState) -> None:
        self._render(state)
        asyncio.create_task(self._push_update())

        if state.status == ExplorerStatus.SUCCESS and state.photo is not None:
            if self._probe_task and not self._probe_task.done():
                self._probe_task.cancel()
            self._probe_task = asyncio.create_task(self._verify_image(state.photo))

    async def _verify_image(self, photo: Photo) -> None:
        """Report a broken image so the explorer fetches a replacement."""
        if await self._client.check_image(photo.img_src):
            return
        if self._explorer.state.photo is photo:
            self._explorer.image_failed()

    async def _push_update(self) -> None:
        """Push state update to the remote."""
        try:
            if self._api and self._api.configured_entities.contains(self.id):
                _LOG.debug("UPDATE: %s", self.attributes[ucapi.media_player.Attributes.MEDIA_TITLE])
                self._api.configured_entities.update_attributes(self.id, self.attributes)
        except Exception as ex:
            _LOG.error("Error pushing update: %s", ex)

    async def push_initial_state(self) -> None:
        """Push initial state and start the first search."""
        _LOG.debug("Pushing initial state to remote")
        self._render(self._explorer.state)
        await self._push_update()
        if self._explorer.state.photo is None and not self._explorer.state.loading:
            self._explorer.refresh()

    async def shutdown(self) -> None:
        """Stop searching and probing."""
        _LOG.debug("Shutting down Mars Rover media player")
        if self._probe_task and not self._probe_task.done():
            self._probe_task.cancel()
        await self._explorer.cancel()

    @property
    def actions(self) -> Dict[str, Action]:
        """Currently offered source list actions."""
        return dict(self._actions)
