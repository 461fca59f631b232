"""Shared fixtures for the Mars Rover Explorer tests."""

import asyncio
import random
from typing import Any, Dict, List, Optional

import pytest

from uc_intg_marsrover.config import Config
from uc_intg_marsrover.models import Photo, Selection


def photo_payload(
    rover: str = "Curiosity",
    camera: str = "FHAZ",
    earth_date: str = "2015-05-30",
    img_src: str = "https://mars.nasa.gov/msl-raw-images/1000.JPG",
    photo_id: int = 102693,
    sol: int = 1000,
) -> Dict[str, Any]:
    """One entry of the photos API ``photos`` array."""
    return {
        "id": photo_id,
        "sol": sol,
        "camera": {"id": 20, "name": camera, "rover_id": 5, "full_name": "Front Hazard Avoidance Camera"},
        "img_src": img_src,
        "earth_date": earth_date,
        "rover": {"id": 5, "name": rover, "status": "active"},
    }


def make_photo(**kwargs) -> Photo:
    return Photo.from_api(photo_payload(**kwargs))


class ScriptedClient:
    """Photo source returning scripted results in order.

    An entry is a list of photos, an exception to raise, or an
    ``asyncio.Event`` paired with photos as ``(event, photos)`` to block on.
    Once the script runs out every call returns an empty list.
    """

    def __init__(self, responses: Optional[List[Any]] = None, broken_images=()):
        self.responses = list(responses or [])
        self.selections: List[Selection] = []
        self.broken_images = set(broken_images)
        self.probed: List[str] = []

    async def fetch_photos(self, selection: Selection) -> List[Photo]:
        self.selections.append(selection)
        result = self.responses.pop(0) if self.responses else []
        if isinstance(result, tuple):
            event, result = result
            await event.wait()
        else:
            await asyncio.sleep(0)
        if isinstance(result, BaseException):
            raise result
        return list(result)

    async def check_image(self, url: str) -> bool:
        self.probed.append(url)
        return url not in self.broken_images


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("NASA_API_KEY", raising=False)
    return Config(str(tmp_path / "config.json"))
