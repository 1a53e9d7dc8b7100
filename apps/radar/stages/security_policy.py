from __future__ import annotations

from ..exclusive import CacheHandle
from ..models import (
    STUB_NAMESPACE,
    AccessKeyNode,
    AddressNode,
    ContractNode,
    Node,
    has_tag,
    node_namespace,
    node_ref,
    with_tags
)
from ..relations import API_CONSUMED_BY
from .base import Emit, Stage

ALLOW_UNKNOWN = 'allow-unknown'


def _is_signer_like(node: Node) -> bool:
    if isinstance(node, AccessKeyNode):
        return True
    return type(node) is AddressNode and node.role in ('signer', 'council')


class SecurityPolicyStage(Stage):
    """Tags nodes whose trust chain includes something nobody declared."""

    name = 'security-policy'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if isinstance(node, ContractNode) and node.network == 'near':
            return await self.process_near_contract(node)
        if _is_signer_like(node):
            return await self.process_signer_or_key(node)
        return node

    async def process_near_contract(self, contract: ContractNode) -> ContractNode:
        ref = node_ref(contract)
        stored = await self.store.get_by_ref(ref)
        if stored is None:
            return contract
        if has_tag(stored, ALLOW_UNKNOWN) or has_tag(contract, ALLOW_UNKNOWN):
            return contract

        access_keys: list[AccessKeyNode] = []
        for relation in await self.store.relations_from(ref, API_CONSUMED_BY):
            consumer = await self.store.get_by_ref(relation.target)
            if isinstance(consumer, AccessKeyNode):
                access_keys.append(consumer)
        self.logger.debug('%s access keys: %s', ref, len(access_keys))
        if not access_keys:
            return contract

        has_unknown = any(node_namespace(key) == STUB_NAMESPACE for key in access_keys)
        self.logger.info('%s policy check => %s', ref, not has_unknown)
        if has_unknown:
            return with_tags(contract, 'has-unknown')
        return contract

    async def process_signer_or_key(self, node: AddressNode | AccessKeyNode) -> AddressNode | AccessKeyNode:
        stored = await self.store.get_by_ref(node_ref(node))
        if stored is None:
            return node
        if node.stub and not has_tag(stored, ALLOW_UNKNOWN) and not has_tag(node, ALLOW_UNKNOWN):
            return with_tags(node, 'unknown')
        return node
