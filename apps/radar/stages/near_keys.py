from __future__ import annotations

from dataclasses import replace

from ..exclusive import CacheHandle
from ..models import AccessKeyNode, AddressNode, ContractNode, Node, RoleGroupNode, has_tag, with_tags
from ..relations import API_CONSUMED_BY
from ..specs import NearKeysSpec, is_full_access_key
from .base import Emit, Stage, owner_ref

NEAR_KEYS_RUN_ID = 'near-keys-fetch'


class NearKeysStage(Stage):
    """Emits the access keys of NEAR contracts and signers.

    Full-access keys of a declared signer belong to whoever owns the
    signer, so they are re-parented onto that owner.
    """

    name = 'near-keys'

    def _accepts(self, node: Node) -> bool:
        if not isinstance(node, AddressNode) or isinstance(node, RoleGroupNode):
            return False
        if node.network != 'near':
            return False
        return self.adapters.network(node.network, node.network_type).is_valid_address(node.address)

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if not self._accepts(node):
            return node
        if isinstance(node, ContractNode):
            return await self.process_contract(node, emit, cache)
        if node.role == 'signer':
            return await self.process_signer(node, emit, cache)
        return node

    async def fetch_keys(self, node: AddressNode, cache: CacheHandle) -> NearKeysSpec | None:
        adapter = self.adapters.network(node.network, node.network_type)

        async def fetch() -> NearKeysSpec:
            keys = await adapter.keys(node.address)
            self.logger.debug('fetched %s keys addr=%s', len(keys), node.address)
            return NearKeysSpec(keys=keys)

        return await self.refresh(cache, NEAR_KEYS_RUN_ID, NearKeysSpec, node.address, fetch)

    def _with_keys(self, node: AddressNode, keys: NearKeysSpec) -> AddressNode:
        updated = replace(node, keys=keys)
        if not keys.keys:
            updated = with_tags(updated, 'locked')
        return updated

    async def process_contract(self, contract: ContractNode, emit: Emit, cache: CacheHandle) -> ContractNode:
        keys = await self.fetch_keys(contract, cache)
        if keys is None:
            return contract
        contract = self._with_keys(contract, keys)
        for public_key in keys.keys:
            found = await self.resolver.stub_or_find(
                AccessKeyNode(public_key, network_type=contract.network_type, owner=owner_ref(contract))
            )
            self.emit_relation(emit, API_CONSUMED_BY, contract, found)
            if found.stub:
                self.emit_node(emit, found)
        return contract

    async def process_signer(self, signer: AddressNode, emit: Emit, cache: CacheHandle) -> AddressNode:
        keys = await self.fetch_keys(signer, cache)
        if keys is None:
            return signer
        signer = self._with_keys(signer, keys)

        for public_key, permission in keys.keys.items():
            if not is_full_access_key(permission):
                continue
            if not signer.stub:
                owner = await self.store.get_by_ref(signer.owner) if signer.owner else None
                key = AccessKeyNode(
                    public_key,
                    network_type=signer.network_type,
                    owner=owner_ref(owner) if owner is not None else signer.owner
                )
                if has_tag(signer, 'deprecated'):
                    key = with_tags(key, 'deprecated')
                self.emit_node(emit, key)
                self.emit_relation(emit, API_CONSUMED_BY, signer, key)
            else:
                found = await self.resolver.stub_or_find(
                    AccessKeyNode(public_key, network_type=signer.network_type, owner=owner_ref(signer))
                )
                self.emit_relation(emit, API_CONSUMED_BY, signer, found)
                if found.stub:
                    self.emit_node(emit, found)
        return signer
