"""Shared fixtures for collection matcher tests."""

from typing import Tuple

import pytest

from collection_matcher.matching.models import Record
from tests.helpers import make_record


@pytest.fixture
def nes_left() -> Tuple[Record, ...]:
    """A small left collection of NES games."""
    return (
        make_record("nes-001", "Super Mario Bros.", 1985),
        make_record("nes-002", "The Legend of Zelda", 1986),
        make_record("nes-003", "Metroid", 1986),
        make_record("nes-004", "Mega Man 2", 1988),
        make_record("nes-005", "Duck Hunt", 1984),
    )


@pytest.fixture
def nes_right() -> Tuple[Record, ...]:
    """The same games as sourced from a second catalogue, with their own ids and spelling."""
    return (
        make_record("cat-10", "super mario bros.", 1985),
        make_record("cat-11", "Legend of Zelda", 1986),
        make_record("cat-12", "Metroid", 1987),
        make_record("cat-13", "Megaman 2", 1988),
        make_record("cat-14", "Kirby's Adventure", 1993),
    )
