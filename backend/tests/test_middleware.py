"""
Tests for request ID handling and booking log context.
"""

import pytest
from httpx import AsyncClient

from flightbook.api.middleware import path_context


@pytest.mark.asyncio
async def test_incoming_request_id_is_kept(client: AsyncClient):
    """A gateway-supplied request ID is echoed back instead of a fresh one."""
    response = await client.get("/health", headers={"X-Request-ID": "gw-cb-8812"})
    assert response.headers["X-Request-ID"] == "gw-cb-8812"


@pytest.mark.asyncio
async def test_request_id_minted_when_missing_or_malformed(client: AsyncClient):
    minted = await client.get("/health")
    assert len(minted.headers["X-Request-ID"]) == 8

    malformed = await client.get("/health", headers={"X-Request-ID": "bad id;" + "x" * 80})
    assert malformed.headers["X-Request-ID"] != "bad id;" + "x" * 80
    assert len(malformed.headers["X-Request-ID"]) == 8


def test_path_context():
    assert path_context("/api/v1/bookings/FMS-20261019-7KQ2ZD") == {
        "confirmation_code": "FMS-20261019-7KQ2ZD"
    }
    assert path_context("/api/v1/tickets/42/pay") == {"ticket_id": "42"}
    assert path_context("/api/v1/flights/3/inventory") == {"flight_id": "3"}
    assert path_context("/health") == {}
