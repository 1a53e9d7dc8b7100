from __future__ import annotations

from dataclasses import replace

from ..exclusive import CacheHandle
from ..models import AddressNode, Declaration, MultisigNode, Node, has_tag, node_name, parse_ref, with_tags
from ..relations import OWNED_BY, PROVIDES_API
from ..resolution import inherited_tags
from ..specs import MultisigOwnersSpec, MultisigSpec
from .base import Emit, Stage, owner_ref
from .contract import is_component, merge_interactions

MULTISIG_OWNERS_RUN_ID = 'multisig-owners-fetch'
MULTISIG_INFO_RUN_ID = 'multisig-info-fetch'


class MultisigStage(Stage):
    name = 'multisig'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if is_component(node, 'multisig'):
            self.process_component(node, emit)
            return node
        if isinstance(node, MultisigNode):
            return await self.process_multisig(node, emit, cache)
        return node

    def process_component(self, component: Declaration, emit: Emit) -> None:
        for ref in component.deployed_at:
            parsed = parse_ref(ref)
            multisig = MultisigNode(
                parsed.network,
                parsed.network_type,
                parsed.address,
                owner=owner_ref(component),
                system=component.system,
                tags=inherited_tags(component.tags)
            )
            self.emit_node(emit, multisig)
            self.emit_relation(emit, PROVIDES_API, component, multisig)

    async def process_multisig(self, multisig: MultisigNode, emit: Emit, cache: CacheHandle) -> MultisigNode:
        policy = self.adapters.policy(multisig.network, multisig.network_type)
        address = multisig.address

        async def fetch_owners() -> MultisigOwnersSpec | None:
            self.logger.debug('%s fetching multisig owners', node_name(multisig))
            return await policy.fetch_multisig_owners(address, multisig.state)

        owners_spec = await self.refresh(cache, MULTISIG_OWNERS_RUN_ID, MultisigOwnersSpec, address, fetch_owners)
        if owners_spec is not None:
            multisig = await self._process_owners(multisig, owners_spec, emit)

        async def fetch_spec() -> MultisigSpec | None:
            return await policy.fetch_multisig_spec(address, multisig.state)

        multisig_spec = await self.refresh(cache, MULTISIG_INFO_RUN_ID, MultisigSpec, address, fetch_spec)
        if multisig_spec is not None:
            multisig = replace(multisig, multisig=multisig_spec)
        return multisig

    async def _process_owners(self, multisig: MultisigNode, owners_spec: MultisigOwnersSpec, emit: Emit) -> MultisigNode:
        multisig_name = node_name(multisig)
        self.logger.debug('%s owners: %s', multisig_name, len(owners_spec.owners))
        multisig = with_tags(multisig, 'multisig' if owners_spec.owners else 'non-multisig')

        has_unknown = False
        owners: list[str] = []
        for owner_address in owners_spec.owners:
            target = AddressNode(
                multisig.network,
                multisig.network_type,
                owner_address,
                role='signer',
                tags=inherited_tags(multisig.tags)
            )
            owners.append(target.address)
            found = await self.resolver.stub_or_find(target)
            self.emit_relation(emit, OWNED_BY, multisig, found)
            if found.stub:
                has_unknown = True
                found = replace(
                    found,
                    interactions=merge_interactions(found, multisig_name, 'signer'),
                    owner=owner_ref(multisig)
                )
                self.emit_node(emit, found)

        if has_unknown and not has_tag(multisig, 'allow-unknown'):
            multisig = with_tags(multisig, 'has-unknown')
        return replace(multisig, owners=tuple(owners))
