"""
Value types shared by the selector, ban list and explorer loop.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from uc_intg_marsrover.errors import MalformedResponse


class BanAttribute(str, Enum):
    """Photo attributes a ban rule can target."""

    ROVER = "rover"
    CAMERA = "camera"
    EARTH_DATE = "earth_date"


# Rover and camera names come back capitalised differently than they are queried
CASE_INSENSITIVE = {BanAttribute.ROVER.value, BanAttribute.CAMERA.value}


def _normalize(attribute: str, value: str) -> str:
    if attribute in CASE_INSENSITIVE:
        return value.casefold()
    return value


@dataclass(frozen=True)
class Photo:
    """A single photo entry from the photos API."""

    rover_name: str
    camera_name: str
    earth_date: str
    img_src: str
    photo_id: Optional[int] = None
    sol: Optional[int] = None
    camera_full_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Photo":
        """Build a photo from one element of the ``photos`` array."""
        if not isinstance(data, dict):
            raise MalformedResponse(f"photo entry is not an object: {data!r}")

        try:
            rover = data["rover"]["name"]
            camera = data["camera"]["name"]
            earth_date = data["earth_date"]
            img_src = data["img_src"]
        except (KeyError, TypeError) as ex:
            raise MalformedResponse(f"photo entry missing field: {ex}") from ex

        for field_name, value in (("rover.name", rover), ("camera.name", camera),
                                  ("earth_date", earth_date), ("img_src", img_src)):
            if not isinstance(value, str):
                raise MalformedResponse(f"photo field {field_name} is not a string")

        return cls(
            rover_name=rover,
            camera_name=camera,
            earth_date=earth_date,
            img_src=img_src,
            photo_id=data.get("id"),
            sol=data.get("sol"),
            camera_full_name=data["camera"].get("full_name"),
        )

    def value_of(self, attribute: str) -> Optional[str]:
        """Return the photo field a ban attribute refers to, or None."""
        if attribute == BanAttribute.ROVER.value:
            return self.rover_name
        if attribute == BanAttribute.CAMERA.value:
            return self.camera_name
        if attribute == BanAttribute.EARTH_DATE.value:
            return self.earth_date
        return None


@dataclass(frozen=True)
class BanRule:
    """Exclusion of one attribute value. Attribute and value are not validated."""

    attribute: str
    value: str

    def __post_init__(self):
        # Accept BanAttribute members but store the plain string
        if isinstance(self.attribute, BanAttribute):
            object.__setattr__(self, "attribute", self.attribute.value)

    def matches(self, photo: Photo) -> bool:
        """
        Check whether this rule excludes the given photo.

        Rover and camera names compare case-insensitively: photos report
        ``Curiosity`` while queries and bans use ``curiosity``. Earth dates
        compare exactly.
        """
        actual = photo.value_of(self.attribute)
        if actual is None:
            return False
        return _normalize(self.attribute, actual) == _normalize(self.attribute, self.value)

    def matches_value(self, attribute: str, candidate: str) -> bool:
        """Check whether this rule excludes a candidate query value."""
        if self.attribute != attribute:
            return False
        return _normalize(attribute, candidate) == _normalize(attribute, self.value)

    def __str__(self) -> str:
        return f"{self.attribute}={self.value}"


@dataclass(frozen=True)
class Selection:
    """Random (rover, camera, sol) query for one fetch attempt."""

    rover: str
    camera: str
    sol: int

    def params(self, api_key: str) -> Dict[str, Any]:
        """Query string parameters for the photos endpoint."""
        return {"sol": self.sol, "camera": self.camera, "api_key": api_key}
