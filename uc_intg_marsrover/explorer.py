"""
Fetch-and-filter loop and the explorer state it drives.

The loop keeps drawing random (rover, camera, sol) selections, queries the
photos API and drops every photo the ban list excludes until one survives.
Every invocation gets a generation id; only the newest generation may
publish a result, older loops stop at their next iteration.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Set, Tuple

from uc_intg_marsrover.bans import BanList
from uc_intg_marsrover.config import Config
from uc_intg_marsrover.errors import (
    EmptyFilterResult,
    ExhaustedCandidates,
    MalformedResponse,
    NoResultFound,
    TransportFailure,
)
from uc_intg_marsrover.models import BanRule, Photo, Selection
from uc_intg_marsrover.selector import CAMERAS, ROVERS, SOL_RANGE, filter_photos, select_candidate

_LOG = logging.getLogger(__name__)

NO_RESULT_FOUND = "no unbanned photo found"


class PhotoSource(Protocol):
    """Anything that can turn a selection into photos."""

    async def fetch_photos(self, selection: Selection) -> List[Photo]:
        ...


class ExplorerStatus(str, Enum):
    """Loop states."""

    IDLE = "idle"
    FETCHING = "fetching"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ExplorerState:
    """Shared view of bans, displayed photo and loop status."""

    bans: BanList = field(default_factory=BanList)
    photo: Optional[Photo] = None
    status: ExplorerStatus = ExplorerStatus.IDLE
    error: Optional[str] = None
    generation: int = 0
    attempts: int = 0

    @property
    def loading(self) -> bool:
        return self.status in (ExplorerStatus.FETCHING, ExplorerStatus.RETRYING)


StateListener = Callable[[ExplorerState], None]


class PhotoExplorer:
    """Runs the fetch-and-filter loop against an explicit state container."""

    def __init__(
        self,
        client: PhotoSource,
        state: Optional[ExplorerState] = None,
        rovers: Sequence[str] = ROVERS,
        cameras: Sequence[str] = CAMERAS,
        sol_range: Tuple[int, int] = SOL_RANGE,
        max_attempts: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the explorer.

        :param client: photo source, normally a MarsRoverClient
        :param state: state container, a fresh one when omitted
        :param max_attempts: fetch attempts per invocation, None for unlimited
        :param rng: random source handed to the selector
        """
        self._client = client
        self._state = state or ExplorerState()
        self._rovers = tuple(rovers)
        self._cameras = tuple(cameras)
        self._sol_range = sol_range
        self._max_attempts = max_attempts
        self._rng = rng
        self._listeners: List[StateListener] = []
        self._tasks: Set[asyncio.Task] = set()

        self._state.bans.add_listener(self._on_bans_changed)

    @classmethod
    def from_config(cls, config: Config, client: PhotoSource, state: Optional[ExplorerState] = None) -> "PhotoExplorer":
        """Build an explorer with candidate sets and limits from configuration."""
        return cls(
            client,
            state=state,
            rovers=config.rovers,
            cameras=config.cameras,
            sol_range=config.sol_range,
            max_attempts=config.max_attempts,
        )

    @property
    def state(self) -> ExplorerState:
        return self._state

    @property
    def bans(self) -> BanList:
        return self._state.bans

    @property
    def pending(self) -> int:
        """Number of fetch tasks still running."""
        return len(self._tasks)

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback run after every state transition."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as ex:
                _LOG.error("State listener failed: %s", ex, exc_info=True)

    def _is_current(self, generation: int) -> bool:
        return generation == self._state.generation

    def _fail(self, generation: int, reason: str) -> None:
        if not self._is_current(generation):
            return
        self._state.status = ExplorerStatus.FAILED
        self._state.error = reason
        _LOG.warning("Fetch failed: %s", reason)
        self._notify()

    def _retrying(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._state.status = ExplorerStatus.RETRYING
        self._notify()

    async def fetch_photo(self) -> Optional[Photo]:
        """
        Run one invocation of the loop.

        Returns the published photo, or None when the loop failed or was
        superseded by a newer invocation.
        """
        self._state.generation += 1
        generation = self._state.generation
        self._state.status = ExplorerStatus.FETCHING
        self._state.error = None
        self._state.attempts = 0
        self._notify()

        try:
            return await self._run(generation)
        except (ExhaustedCandidates, NoResultFound) as ex:
            self._fail(generation, str(ex))
            return None
        except Exception as ex:
            _LOG.error("Fetch generation %d crashed: %s", generation, ex, exc_info=True)
            self._fail(generation, f"unexpected error: {ex}")
            return None

    async def _run(self, generation: int) -> Optional[Photo]:
        attempt = 0
        while self._is_current(generation):
            if self._max_attempts and attempt >= self._max_attempts:
                raise NoResultFound(NO_RESULT_FOUND)

            attempt += 1
            self._state.attempts = attempt

            selection = select_candidate(
                self._state.bans.snapshot(),
                rovers=self._rovers,
                cameras=self._cameras,
                sol_range=self._sol_range,
                rng=self._rng,
            )
            _LOG.debug("Attempt %d: %s sol %d camera %s", attempt, selection.rover, selection.sol, selection.camera)

            try:
                photo = await self._attempt(selection)
            except (TransportFailure, MalformedResponse, EmptyFilterResult) as ex:
                _LOG.warning("Retrying fetch due to error: %s", ex)
                self._retrying(generation)
                continue
            except Exception as ex:
                _LOG.error("Unexpected error during fetch, retrying: %s", ex, exc_info=True)
                self._retrying(generation)
                continue

            if not self._is_current(generation):
                _LOG.debug("Discarding stale result of generation %d", generation)
                return None

            self._state.photo = photo
            self._state.status = ExplorerStatus.SUCCESS
            _LOG.info("Photo found after %d attempt(s): %s %s %s",
                      attempt, photo.rover_name, photo.camera_name, photo.earth_date)
            self._notify()
            return photo

        _LOG.debug("Fetch generation %d superseded, stopping", generation)
        return None

    async def _attempt(self, selection: Selection) -> Photo:
        photos = await self._client.fetch_photos(selection)
        # Bans may have changed while the request was in flight
        valid_photos = filter_photos(photos, self._state.bans.snapshot())
        if not valid_photos:
            raise EmptyFilterResult(
                f"no valid photos among {len(photos)} for {selection.rover} sol {selection.sol} {selection.camera}"
            )
        return valid_photos[0]

    def refresh(self) -> asyncio.Task:
        """Start a new invocation in the background and return its task."""
        task = asyncio.create_task(self.fetch_photo())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        ex = task.exception()
        if ex is not None:
            _LOG.error("Fetch task failed: %s", ex, exc_info=ex)

    def _on_bans_changed(self, bans: BanList) -> None:
        photo = self._state.photo
        if photo is not None and any(rule.matches(photo) for rule in bans):
            self._state.photo = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            _LOG.debug("No running event loop, ban change not refetched")
            return
        self.refresh()

    def ban(self, attribute: str, value: str) -> BanRule:
        """Ban a value, the loop re-runs with the stricter filter."""
        return self._state.bans.add(attribute, value)

    def unban(self, index: int) -> BanRule:
        """Remove the rule at ``index``, the loop re-runs."""
        return self._state.bans.remove(index)

    def image_failed(self) -> asyncio.Task:
        """Displayed image did not load, fetch another one."""
        _LOG.warning("Broken image detected. Fetching a new one...")
        self._state.photo = None
        return self.refresh()

    async def join(self) -> None:
        """Wait until every background fetch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel background fetches and return to idle."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # Bumping the generation stops a loop awaited directly by a caller too
        self._state.generation += 1
        if self._state.loading:
            self._state.status = ExplorerStatus.IDLE
            self._notify()
