from __future__ import annotations

import logging
from dataclasses import replace

from .adapters.registry import AdapterRegistry
from .catalog import CatalogStore
from .models import (
    AccessKeyNode,
    AddressNode,
    BlockchainNode,
    ContractNode,
    MultisigNode,
    canonical_refs,
    identity,
    node_ref,
    parse_ref
)

LOGGER = logging.getLogger('chainradar.resolution')

INHERITED_TAGS = ('allow-unknown',)


async def find_canonical(store: CatalogStore, node: BlockchainNode) -> BlockchainNode | None:
    """Look the node's identity up in the default namespace of the store.

    Both entity kinds are tried: an address declared as a contract is met
    again as a plain owner or member address, and the other way round.
    """
    for ref in canonical_refs(node):
        found = await store.get_by_ref(ref)
        if isinstance(found, (AddressNode, AccessKeyNode)) and identity(found) == identity(node):
            return found
    return None


def make_stub(node: BlockchainNode) -> BlockchainNode:
    return replace(node, stub=True)


async def stub_or_find(store: CatalogStore, node: BlockchainNode) -> BlockchainNode:
    found = await find_canonical(store, node)
    if found is not None:
        return found
    stub = make_stub(node)
    LOGGER.debug('no canonical node, using stub ref=%s', node_ref(stub))
    return stub


def inherited_tags(parent_tags: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    return tuple(tag for tag in INHERITED_TAGS if tag in parent_tags)


class AddressResolver:
    """Decides what kind of node an address is by asking its network adapter.

    Contract detection runs on every call: the same address can be a plain
    account under one role and a contract under another.
    """

    def __init__(self, adapters: AdapterRegistry, store: CatalogStore) -> None:
        self.adapters = adapters
        self.store = store

    async def resolve(
        self,
        role: str,
        network: str,
        network_type: str,
        address: str,
        *,
        parent_tags: tuple[str, ...] = (),
        **fields
    ) -> AddressNode:
        adapter = self.adapters.network(network, network_type)
        normalized = adapter.normalize_address(address)
        tags = inherited_tags(parent_tags)
        if await adapter.is_contract(normalized):
            if role == 'multisig':
                return MultisigNode(network, network_type, normalized, tags=tags, **fields)
            return ContractNode(network, network_type, normalized, tags=tags, **fields)
        return AddressNode(network, network_type, normalized, role=role, tags=tags, **fields)

    async def resolve_ref(self, ref: str, *, parent_tags: tuple[str, ...] = (), **fields) -> AddressNode:
        parsed = parse_ref(ref)
        return await self.resolve(
            parsed.role,
            parsed.network,
            parsed.network_type,
            parsed.address,
            parent_tags=parent_tags,
            **fields
        )

    async def stub_or_find(self, node: BlockchainNode) -> BlockchainNode:
        return await stub_or_find(self.store, node)
