"""Shared test fixtures."""

import pytest

from chartfeed.models.market import Candle, TokenPair
from fakes import BONK, SOL


@pytest.fixture
def pair() -> TokenPair:
    return TokenPair(base=BONK, quote=SOL)


@pytest.fixture
def history() -> list[Candle]:
    return [
        Candle(time=1699999800, open=2.0, high=2.5, low=1.9, close=2.2, volume=100.0),
        Candle(time=1699999860, open=2.2, high=2.4, low=2.0, close=2.1, volume=50.0),
        Candle(time=1699999920, open=2.1, high=2.3, low=2.0, close=2.3, volume=25.0),
    ]
