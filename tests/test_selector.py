"""Tests for random selection and photo filtering."""

import pytest

from uc_intg_marsrover.errors import ExhaustedCandidates
from uc_intg_marsrover.models import BanRule
from uc_intg_marsrover.selector import CAMERAS, ROVERS, allowed_values, filter_photos, select_candidate
from tests.conftest import make_photo


class TestSelectCandidate:

    def test_no_bans(self, rng):
        for _ in range(200):
            selection = select_candidate([], rng=rng)
            assert selection.rover in ROVERS
            assert selection.camera in CAMERAS
            assert 1000 <= selection.sol <= 2000

    def test_only_allowed_values(self, rng):
        rules = [BanRule("rover", "curiosity"), BanRule("camera", "MAST"), BanRule("camera", "FHAZ")]

        for _ in range(200):
            selection = select_candidate(rules, rng=rng)
            assert selection.rover in ("opportunity", "spirit")
            assert selection.camera in ("RHAZ", "CHEMCAM", "MAHLI")

    def test_two_rovers_banned_leaves_spirit(self, rng):
        rules = [BanRule("rover", "curiosity"), BanRule("rover", "opportunity")]

        rovers = {select_candidate(rules, rng=rng).rover for _ in range(100)}

        assert rovers == {"spirit"}

    def test_rover_ban_from_displayed_name(self, rng):
        # Photos report "Curiosity", queries use "curiosity"
        rules = [BanRule("rover", "Curiosity"), BanRule("rover", "Opportunity")]

        assert select_candidate(rules, rng=rng).rover == "spirit"

    def test_all_rovers_banned(self, rng):
        rules = [BanRule("rover", rover) for rover in ROVERS]

        with pytest.raises(ExhaustedCandidates, match="all candidates banned"):
            select_candidate(rules, rng=rng)

    def test_all_cameras_banned(self, rng):
        rules = [BanRule("camera", camera) for camera in CAMERAS]

        with pytest.raises(ExhaustedCandidates):
            select_candidate(rules, rng=rng)

    def test_date_bans_do_not_restrict_selection(self, rng):
        rules = [BanRule("earth_date", "2015-05-30")]

        assert select_candidate(rules, rng=rng).rover in ROVERS

    def test_sol_range_is_inclusive(self, rng):
        sols = {select_candidate([], sol_range=(7, 8), rng=rng).sol for _ in range(100)}

        assert sols == {7, 8}

    def test_custom_candidates(self, rng):
        selection = select_candidate([], rovers=["perseverance"], cameras=["NAVCAM"], rng=rng)

        assert selection.rover == "perseverance"
        assert selection.camera == "NAVCAM"


def test_allowed_values_keeps_order():
    rules = [BanRule("camera", "RHAZ"), BanRule("rover", "FHAZ")]

    assert allowed_values(CAMERAS, rules, "camera") == ["FHAZ", "MAST", "CHEMCAM", "MAHLI"]


class TestFilterPhotos:

    def test_drops_matching_photos(self):
        keep = make_photo(rover="Spirit", camera="PANCAM", earth_date="2006-01-01")
        photos = [
            make_photo(rover="Curiosity"),
            make_photo(rover="Spirit", camera="MAST", earth_date="2006-01-01"),
            make_photo(rover="Spirit", camera="PANCAM", earth_date="2015-05-30"),
            keep,
        ]
        rules = [BanRule("rover", "Curiosity"), BanRule("camera", "MAST"), BanRule("earth_date", "2015-05-30")]

        assert filter_photos(photos, rules) == [keep]

    def test_no_rules(self):
        photos = [make_photo(), make_photo(photo_id=2)]

        assert filter_photos(photos, []) == photos

    def test_remove_then_readd_restores_filter(self):
        rules = [BanRule("camera", "FHAZ"), BanRule("rover", "Spirit")]
        photos = [make_photo(camera="FHAZ"), make_photo(camera="MAST"), make_photo(rover="Spirit", camera="MAST")]
        before = filter_photos(photos, rules)

        removed = rules.pop(0)
        assert filter_photos(photos, rules) != before
        rules.append(BanRule(removed.attribute, removed.value))

        assert filter_photos(photos, rules) == before
