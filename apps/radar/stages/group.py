from __future__ import annotations

from dataclasses import replace
from typing import Any

from ..exclusive import CacheHandle
from ..models import AddressNode, Declaration, Node, to_ref
from ..networks import EVM_NETWORKS
from ..relations import OWNED_BY
from .base import Emit, Stage


def _interaction(entry: Any) -> tuple[str, str]:
    if isinstance(entry, dict):
        return str(entry.get('name', '')), str(entry.get('description', ''))
    return str(entry), ''


def _described(address: AddressNode, description: str) -> AddressNode:
    base = address.description or f'{address.address} ({address.role} address)'
    if not description:
        return replace(address, description=base)
    return replace(address, description=f'{base} - {description}')


class GroupStage(Stage):
    name = 'group'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if isinstance(node, Declaration) and node.kind == 'Group':
            await self.process_group(node, emit)
        return node

    async def process_group(self, group: Declaration, emit: Emit) -> None:
        if not group.interacts_with:
            return
        self.logger.debug('%s fetching group addresses', group.name)
        fields = {'owner': group.ref, 'parent_kind': group.kind, 'parent_name': group.name}
        for entry in group.interacts_with:
            ref, description = _interaction(entry)
            address = await self.resolver.resolve_ref(ref, parent_tags=group.tags, **fields)
            if address.network == 'near':
                emitted = [address]
            elif address.role == 'signer':
                emitted = [
                    await self.resolver.resolve_ref(
                        to_ref(address.role, network, address.network_type, address.address),
                        parent_tags=group.tags,
                        **fields
                    )
                    for network in EVM_NETWORKS
                ]
            else:
                self.logger.debug('skipping non-signer group address ref=%s', ref)
                continue
            for signer in emitted:
                signer = _described(signer, description)
                self.emit_node(emit, signer)
                self.emit_relation(emit, OWNED_BY, signer, group)
