from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

from ..addresses import human_friendly_address, is_valid_address, normalize_address
from ..specs import MultisigOwnersSpec, MultisigSpec, RbacSpec, SourceSpec, StateSpec, Transaction


@runtime_checkable
class NetworkAdapter(Protocol):
    network: str
    network_type: str

    def is_valid_address(self, address: str) -> bool: ...

    def normalize_address(self, address: str) -> str: ...

    def human_friendly_address(self, address: str) -> str: ...

    async def is_contract(self, address: str) -> bool: ...

    async def fetch_source_spec(self, address: str) -> SourceSpec | None: ...

    async def fetch_state_spec(self, address: str, source: SourceSpec | None) -> StateSpec | None: ...

    async def fetch_first_transaction(self, address: str) -> Transaction | None: ...

    async def fetch_last_transaction(self, address: str) -> Transaction | None: ...

    async def fetch_creation_transaction(self, address: str) -> Transaction | None: ...


class PolicyAdapter(Protocol):
    async def fetch_multisig_owners(self, address: str, state: StateSpec | None) -> MultisigOwnersSpec | None: ...

    async def fetch_multisig_spec(self, address: str, state: StateSpec | None) -> MultisigSpec | None: ...


class RoleGroupAdapter(Protocol):
    async def fetch_rbac_spec(self, address: str, state: StateSpec) -> RbacSpec | None: ...


class AddressGrammar:
    """Address helpers shared by the concrete network adapters."""

    network: str
    network_type: str
    request_delay_seconds: float = 1.0

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f'chainradar.adapters.{self.network}')

    def is_valid_address(self, address: str) -> bool:
        return is_valid_address(self.network, address)

    def normalize_address(self, address: str) -> str:
        return normalize_address(self.network, address)

    def human_friendly_address(self, address: str) -> str:
        return human_friendly_address(self.network, address)

    async def delay_request(self, seconds: float | None = None) -> None:
        await asyncio.sleep(self.request_delay_seconds if seconds is None else seconds)
