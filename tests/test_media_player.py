"""Tests for the media player presentation of the explorer state."""

import asyncio

import pytest
import ucapi
from ucapi import StatusCodes

from uc_intg_marsrover.explorer import ExplorerState, ExplorerStatus, PhotoExplorer
from uc_intg_marsrover.media_player import CLEAR_BANS, MarsRoverMediaPlayer, build_actions, render_attributes
from tests.conftest import ScriptedClient, make_photo

Attributes = ucapi.media_player.Attributes
Commands = ucapi.media_player.Commands


def success_state(**photo_kwargs) -> ExplorerState:
    state = ExplorerState()
    state.photo = make_photo(**photo_kwargs)
    state.status = ExplorerStatus.SUCCESS
    return state


class TestRendering:

    def test_success(self):
        attributes = render_attributes(success_state())

        assert attributes[Attributes.STATE] == ucapi.media_player.States.PLAYING
        assert attributes[Attributes.MEDIA_TITLE] == "Curiosity - FHAZ"
        assert attributes[Attributes.MEDIA_ARTIST] == "Date: 2015-05-30"
        assert attributes[Attributes.MEDIA_ALBUM] == "Sol 1000"
        assert attributes[Attributes.MEDIA_IMAGE_URL].endswith("1000.JPG")
        assert attributes[Attributes.SOURCE_LIST] == [
            "Ban rover: Curiosity",
            "Ban camera: FHAZ",
            "Ban date: 2015-05-30",
        ]

    def test_failed_hides_photo(self):
        state = success_state()
        state.status = ExplorerStatus.FAILED
        state.error = "all candidates banned"

        attributes = render_attributes(state)

        assert attributes[Attributes.MEDIA_TITLE] == "Error: all candidates banned"
        assert attributes[Attributes.MEDIA_IMAGE_URL] == ""
        assert not any(entry.startswith("Ban ") for entry in attributes[Attributes.SOURCE_LIST])

    def test_loading(self):
        state = ExplorerState(status=ExplorerStatus.RETRYING, attempts=3)

        attributes = render_attributes(state)

        assert attributes[Attributes.STATE] == ucapi.media_player.States.BUFFERING
        assert attributes[Attributes.MEDIA_IMAGE_URL] == ""
        assert "attempt 3" in attributes[Attributes.MEDIA_ARTIST]

    def test_unban_entries(self):
        state = ExplorerState()
        state.bans.add("rover", "Curiosity")
        state.bans.add("rover", "Curiosity")

        actions = build_actions(state)

        assert actions == {
            "Unban 1: rover=Curiosity": ("unban", 0),
            "Unban 2: rover=Curiosity": ("unban", 1),
            CLEAR_BANS: ("clear",),
        }
        assert render_attributes(state)[Attributes.MEDIA_ALBUM] == "2 banned"


@pytest.fixture
def client():
    return ScriptedClient()


@pytest.fixture
def explorer(client, rng):
    return PhotoExplorer(client, rng=rng, max_attempts=5)


@pytest.fixture
def player(config, explorer, client):
    return MarsRoverMediaPlayer(config, explorer, client)


class TestCommands:

    @pytest.mark.asyncio
    async def test_next_fetches_photo(self, player, explorer, client):
        client.responses.append([make_photo()])

        status = await player._handle_command(player, Commands.NEXT, None)
        await explorer.join()

        assert status == StatusCodes.OK
        assert player.attributes[Attributes.MEDIA_TITLE] == "Curiosity - FHAZ"
        assert "Ban camera: FHAZ" in player.attributes[Attributes.SOURCE_LIST]

    @pytest.mark.asyncio
    async def test_ban_from_source_list(self, player, explorer, client):
        client.responses.extend([[make_photo()], [make_photo(rover="Spirit", camera="MAST")]])
        await explorer.fetch_photo()

        status = await player._handle_command(player, Commands.SELECT_SOURCE, {"source": "Ban rover: Curiosity"})
        await explorer.join()

        assert status == StatusCodes.OK
        assert [str(rule) for rule in explorer.bans] == ["rover=Curiosity"]
        assert player.attributes[Attributes.MEDIA_TITLE] == "Spirit - MAST"
        assert "Unban 1: rover=Curiosity" in player.attributes[Attributes.SOURCE_LIST]

    @pytest.mark.asyncio
    async def test_unban_from_source_list(self, player, explorer, client):
        explorer.bans.add("camera", "MAST")
        explorer.bans.add("camera", "FHAZ")
        player._render(explorer.state)

        status = await player._handle_command(player, Commands.SELECT_SOURCE, {"source": "Unban 1: camera=MAST"})
        await explorer.cancel()

        assert status == StatusCodes.OK
        assert [str(rule) for rule in explorer.bans] == ["camera=FHAZ"]

    @pytest.mark.asyncio
    async def test_unknown_source(self, player):
        status = await player._handle_command(player, Commands.SELECT_SOURCE, {"source": "Ban rover: Zhurong"})

        assert status == StatusCodes.NOT_FOUND

    @pytest.mark.asyncio
    async def test_select_source_without_params(self, player):
        assert await player._handle_command(player, Commands.SELECT_SOURCE, None) == StatusCodes.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_ignored_and_unknown_commands(self, player):
        assert await player._handle_command(player, Commands.VOLUME_UP, None) == StatusCodes.OK
        assert await player._handle_command(player, "launch_rocket", None) == StatusCodes.NOT_IMPLEMENTED

    @pytest.mark.asyncio
    async def test_off_cancels_search(self, player, explorer, client):
        client.responses.append((asyncio.Event(), [make_photo()]))
        explorer.refresh()
        await asyncio.sleep(0)

        status = await player._handle_command(player, Commands.OFF, None)

        assert status == StatusCodes.OK
        assert explorer.pending == 0
        assert player.attributes[Attributes.STATE] == ucapi.media_player.States.OFF

    @pytest.mark.asyncio
    async def test_broken_image_triggers_refetch(self, player, explorer, client):
        broken = make_photo(img_src="https://mars.nasa.gov/broken.jpg")
        good = make_photo(img_src="https://mars.nasa.gov/good.jpg", photo_id=2)
        client.broken_images.add(broken.img_src)
        client.responses.extend([[broken], [good]])

        await explorer.fetch_photo()
        await player._probe_task
        await explorer.join()
        await player._probe_task

        assert explorer.state.photo == good
        assert client.probed == [broken.img_src, good.img_src]

    @pytest.mark.asyncio
    async def test_push_update_uses_configured_entities(self, player, explorer, client):
        pushed = []

        class Entities:
            def contains(self, entity_id):
                return True

            def update_attributes(self, entity_id, attributes):
                pushed.append((entity_id, dict(attributes)))

        class Api:
            configured_entities = Entities()

        player.attach(Api())
        client.responses.append([make_photo()])

        await player.push_initial_state()
        await explorer.join()
        await asyncio.sleep(0)

        assert pushed[0][0] == "mars_rover_explorer"
        assert pushed[-1][1][Attributes.MEDIA_TITLE] == "Curiosity - FHAZ"
