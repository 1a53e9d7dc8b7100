from __future__ import annotations

from dataclasses import replace

from ..adapters.policy import COUNCIL_ROLE, POLICY_METHOD, council_members, find_council_role, parse_policy
from ..exclusive import CacheHandle
from ..models import AddressNode, ContractNode, MultisigNode, Node, with_tags
from ..relations import HAS_MEMBER
from .base import Emit, Stage, owner_ref

SPUTNIK_ROLE_RUN_ID = 'sputnik-role-fetch'
SPUTNIK_SUFFIX = '.sputnik-dao.near'


def is_sputnik_deployment(node: Node) -> bool:
    return (
        isinstance(node, ContractNode)
        and not isinstance(node, MultisigNode)
        and node.network == 'near'
        and node.address.endswith(SPUTNIK_SUFFIX)
    )


class SputnikStage(Stage):
    """Emits the council members of a sputnik DAO deployment.

    Malformed policy JSON raises PolicyError, which the pipeline reports
    against the DAO without touching it.
    """

    name = 'sputnik'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if is_sputnik_deployment(node) and node.state is not None:
            raw_policy = node.state.methods.get(POLICY_METHOD)
            if raw_policy:
                await self.process_dao(node, raw_policy, emit)
        return node

    async def process_dao(self, dao: ContractNode, raw_policy: str, emit: Emit) -> None:
        council = find_council_role(parse_policy(raw_policy))
        adapter = self.adapters.network(dao.network, dao.network_type)
        for member in council_members(council):
            address = adapter.normalize_address(member)

            async def detect(address: str = address) -> bool:
                return await adapter.is_contract(address)

            is_contract = await self.run_exclusive(SPUTNIK_ROLE_RUN_ID, address, detect)
            if is_contract:
                target = ContractNode(dao.network, dao.network_type, address)
            else:
                target = AddressNode(dao.network, dao.network_type, address, role=COUNCIL_ROLE)
            found = await self.resolver.stub_or_find(target)
            found = with_tags(replace(found, owner=owner_ref(dao)), 'sputnik-member')
            self.emit_relation(emit, HAS_MEMBER, dao, found)
            if found.stub:
                self.emit_node(emit, found)
