"""
Tests for per-address nonce reservation.
"""

import asyncio

import pytest

from basketswap.core.execution.nonce_manager import NonceManager


ADDRESS = "0xAbCdEf0000000000000000000000000000000001"


@pytest.mark.asyncio
async def test_first_nonce_comes_from_the_node(gateway):
    manager = NonceManager(gateway)

    assert await manager.get_next_nonce(ADDRESS) == 7


@pytest.mark.asyncio
async def test_concurrent_reservations_are_distinct(gateway):
    manager = NonceManager(gateway)

    nonces = await asyncio.gather(*(manager.get_next_nonce(ADDRESS) for _ in range(5)))

    assert sorted(nonces) == [7, 8, 9, 10, 11]


@pytest.mark.asyncio
async def test_address_case_does_not_matter(gateway):
    manager = NonceManager(gateway)

    first = await manager.get_next_nonce(ADDRESS)
    second = await manager.get_next_nonce(ADDRESS.lower())

    assert (first, second) == (7, 8)
    assert manager.get_state(ADDRESS.upper().replace("0X", "0x")).pending_nonce == 9


@pytest.mark.asyncio
async def test_release_of_latest_nonce_allows_reuse(gateway):
    manager = NonceManager(gateway)

    nonce = await manager.get_next_nonce(ADDRESS)
    await manager.release_nonce(ADDRESS, nonce)

    assert await manager.get_next_nonce(ADDRESS) == nonce


@pytest.mark.asyncio
async def test_node_advance_is_picked_up(gateway):
    manager = NonceManager(gateway)

    await manager.get_next_nonce(ADDRESS)
    gateway.tx_count = 20

    assert await manager.get_next_nonce(ADDRESS) == 20


@pytest.mark.asyncio
async def test_confirm_nonce_updates_state(gateway):
    manager = NonceManager(gateway)

    nonce = await manager.get_next_nonce(ADDRESS)
    await manager.confirm_nonce(ADDRESS, nonce)

    state = manager.get_state(ADDRESS)
    assert state.confirmed_nonce == nonce + 1
    assert nonce not in state.reserved_nonces
