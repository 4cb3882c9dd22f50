import pytest


class ScriptedRandom:
    """Stand-in random source: always picks the first empty cell and rolls a fixed value."""

    def __init__(self, roll=0.5):
        self.roll = roll

    def choice(self, seq):
        return seq[0]

    def random(self):
        return self.roll


@pytest.fixture
def twos_rng():
    return ScriptedRandom(roll=0.5)


@pytest.fixture
def fours_rng():
    return ScriptedRandom(roll=0.05)
