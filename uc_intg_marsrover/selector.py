"""
Random query selection that respects the ban list.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from uc_intg_marsrover.errors import ExhaustedCandidates
from uc_intg_marsrover.models import BanAttribute, BanRule, Photo, Selection

ROVERS = ("curiosity", "opportunity", "spirit")
CAMERAS = ("FHAZ", "RHAZ", "MAST", "CHEMCAM", "MAHLI")
SOL_RANGE = (1000, 2000)


def allowed_values(candidates: Sequence[str], rules: Iterable[BanRule], attribute: str) -> List[str]:
    """Candidates not banned under ``attribute``, in candidate order."""
    rules = [rule for rule in rules if rule.attribute == attribute]
    return [
        candidate for candidate in candidates
        if not any(rule.matches_value(attribute, candidate) for rule in rules)
    ]


def select_candidate(
    rules: Iterable[BanRule],
    rovers: Sequence[str] = ROVERS,
    cameras: Sequence[str] = CAMERAS,
    sol_range: Tuple[int, int] = SOL_RANGE,
    rng: Optional[random.Random] = None,
) -> Selection:
    """
    Pick a random rover, camera and sol that no rule excludes.

    :param rules: current ban rules
    :param rng: random source, the ``random`` module when omitted
    :raises ExhaustedCandidates: every rover or every camera is banned
    """
    rng = rng or random
    rules = list(rules)

    available_rovers = allowed_values(rovers, rules, BanAttribute.ROVER.value)
    available_cameras = allowed_values(cameras, rules, BanAttribute.CAMERA.value)

    if not available_rovers or not available_cameras:
        raise ExhaustedCandidates("all candidates banned")

    low, high = sol_range
    return Selection(
        rover=rng.choice(available_rovers),
        camera=rng.choice(available_cameras),
        sol=rng.randint(low, high),
    )


def filter_photos(photos: Iterable[Photo], rules: Iterable[BanRule]) -> List[Photo]:
    """Drop every photo matched by at least one rule."""
    rules = list(rules)
    return [photo for photo in photos if not any(rule.matches(photo) for rule in rules)]
