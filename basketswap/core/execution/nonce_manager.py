"""
Nonce management for concurrent transactions.

Approvals are signed concurrently from one account, so nonce assignment is
serialized per address: each reservation re-reads the node and never hands
out a nonce that is already reserved.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from .gateway import ChainGateway


logger = logging.getLogger(__name__)


@dataclass
class NonceState:
    """Tracks nonce state for an address."""
    address: str
    confirmed_nonce: int                        # Next nonce according to the node
    pending_nonce: int                          # Next available for use
    reserved_nonces: Set[int] = field(default_factory=set)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NonceManager:
    """
    Hands out nonces for one connected chain.

    Features:
    - Syncs with the node's "latest" count on every reservation
    - Tracks reserved nonces so concurrent callers never collide
    - Releases nonces of transactions that were never broadcast
    """

    def __init__(self, gateway: ChainGateway, block: str = "latest"):
        self._gateway = gateway
        self._block = block
        self._states: Dict[str, NonceState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def get_next_nonce(self, address: str) -> int:
        """
        Reserve the next available nonce for an address.

        Args:
            address: The signer address

        Returns:
            The reserved nonce
        """
        key = address.lower()

        async with self._get_lock(key):
            on_chain_nonce = await self._gateway.get_transaction_count(address, self._block)

            state = self._states.get(key)
            if state is None:
                state = NonceState(
                    address=key,
                    confirmed_nonce=on_chain_nonce,
                    pending_nonce=on_chain_nonce,
                )
                self._states[key] = state
            else:
                # Update confirmed nonce, but don't decrease pending
                state.confirmed_nonce = on_chain_nonce
                state.reserved_nonces = {n for n in state.reserved_nonces if n >= on_chain_nonce}
                if on_chain_nonce > state.pending_nonce:
                    state.pending_nonce = on_chain_nonce
                state.last_updated = datetime.now(timezone.utc)

            nonce = state.pending_nonce
            while nonce in state.reserved_nonces:
                nonce += 1

            state.reserved_nonces.add(nonce)
            state.pending_nonce = nonce + 1
            logger.debug(f"Reserved nonce {nonce} for {key}")
            return nonce

    async def release_nonce(self, address: str, nonce: int) -> None:
        """
        Release a reserved nonce (e.g., transaction failed before broadcast).

        Args:
            address: The signer address
            nonce: The nonce to release
        """
        key = address.lower()

        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None:
                return
            state.reserved_nonces.discard(nonce)

            # If we released the highest nonce, we can reduce pending
            if nonce == state.pending_nonce - 1:
                while state.pending_nonce > state.confirmed_nonce:
                    if state.pending_nonce - 1 not in state.reserved_nonces:
                        state.pending_nonce -= 1
                    else:
                        break

    async def confirm_nonce(self, address: str, nonce: int) -> None:
        """Mark a nonce as confirmed (transaction included in a block)."""
        key = address.lower()

        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None:
                return
            state.reserved_nonces.discard(nonce)
            if nonce >= state.confirmed_nonce:
                state.confirmed_nonce = nonce + 1
            if state.pending_nonce < state.confirmed_nonce:
                state.pending_nonce = state.confirmed_nonce

    def get_state(self, address: str) -> Optional[NonceState]:
        """Get the current nonce state for an address."""
        return self._states.get(address.lower())
