"""Shared fixtures for the option chain feed tests."""

import json

import pytest

from option_chain_feed.models import OptionRow


@pytest.fixture
def make_row():
    """Factory building an OptionRow with zeroed additive fields by default."""
    def _make(strike=100.0, expiry="E1", instant=1000, timestamp=None, underlying=None, **fields):
        return OptionRow(
            strike_price=strike,
            expiry_date=expiry,
            timestamp=instant if timestamp is None else timestamp,
            instant=instant,
            underlying_value=underlying,
            **fields,
        )
    return _make


@pytest.fixture
def flat_frame():
    """Two strikes of one expiry at one timestamp, in the flat wire shape."""
    return [
        {
            "strikePrice": 25000,
            "expiryDate": "2024-09-05",
            "timestamp": "2024-09-01T10:30:00Z",
            "underlyingValue": 25050.25,
            "ceOpenInterest": 150000,
            "ceChangeInOpenInterest": 5000,
            "ceChangeInOpenInterestPercentage": 3.45,
            "ceTotalTradedVolume": 25000,
            "ceImpliedVolatility": 18.5,
            "ceLastPrice": 125.5,
            "peOpenInterest": 180000,
            "peChangeInOpenInterest": -3000,
            "peChangeInOpenInterestPercentage": -1.64,
            "peTotalTradedVolume": 30000,
            "peImpliedVolatility": 19.2,
            "peLastPrice": 95.75,
            "intraDayPCR": 1.2,
            "pcr": 1.15,
        },
        {
            "strikePrice": 25100,
            "expiryDate": "2024-09-05",
            "timestamp": "2024-09-01T10:30:00Z",
            "underlyingValue": 25050.25,
            "ceOpenInterest": 100000,
            "ceChangeInOpenInterest": 2000,
            "ceTotalTradedVolume": 12000,
            "peOpenInterest": 50000,
            "peChangeInOpenInterest": 1000,
            "peTotalTradedVolume": 8000,
        },
    ]


@pytest.fixture
def nested_frame():
    """One snapshot with a full strike and a strike split into CE-only and PE-only entries."""
    return [
        {
            "timestamp": "2024-09-01T10:30:00Z",
            "underlyingValue": 25050.25,
            "data": [
                {
                    "strikePrice": 25000,
                    "expiryDate": "05-Sep-2024",
                    "CE": {
                        "openInterest": 1500,
                        "changeinOpenInterest": 50,
                        "pchangeinOpenInterest": 3.45,
                        "totalTradedVolume": 250,
                        "impliedVolatility": 18.5,
                        "lastPrice": 125.5,
                    },
                    "PE": {
                        "openInterest": 1800,
                        "changeinOpenInterest": -30,
                        "pchangeinOpenInterest": -1.64,
                        "totalTradedVolume": 300,
                        "impliedVolatility": 19.2,
                        "lastPrice": 95.75,
                    },
                },
                {
                    "strikePrice": 25100,
                    "expiryDate": "05-Sep-2024",
                    "CE": {"openInterest": 900, "changeinOpenInterest": 10, "totalTradedVolume": 90},
                },
                {
                    "strikePrice": 25100,
                    "expiryDate": "05-Sep-2024",
                    "PE": {"openInterest": 400, "changeinOpenInterest": 20, "totalTradedVolume": 40},
                },
            ],
        }
    ]


@pytest.fixture
def flat_payload(flat_frame):
    return json.dumps(flat_frame)
