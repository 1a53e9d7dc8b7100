from __future__ import annotations

from dataclasses import replace

from ..exclusive import CacheHandle
from ..models import (
    AddressNode,
    ContractNode,
    Declaration,
    Node,
    RoleGroupNode,
    dashed,
    node_name,
    parse_ref,
    same_network,
    with_tags
)
from ..relations import CONSUMES_API, DEPENDS_ON, PROVIDES_API
from ..resolution import inherited_tags
from ..specs import RbacSpec, SourceSpec, StateSpec
from .base import Emit, Stage, owner_ref

DEPLOYMENT_SOURCE_RUN_ID = 'deployment-source-fetch'
DEPLOYMENT_STATE_RUN_ID = 'deployment-state-fetch'
DEPLOYMENT_RBAC_RUN_ID = 'deployment-rbac-fetch'


def is_component(node: Node, component_type: str) -> bool:
    return isinstance(node, Declaration) and node.kind == 'Component' and node.component_type == component_type


def merge_interactions(node: AddressNode, name: str, role: str) -> tuple[tuple[str, str], ...]:
    interactions = dict(node.interactions)
    interactions[name] = role
    return tuple(interactions.items())


class ContractStage(Stage):
    """Turns declared contract components into deployments and fills them in.

    A deployment gets its source and state specs, an RBAC spec when the
    network has a role-group adapter for it, and stub nodes for every address
    its state points at.
    """

    name = 'contract'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if is_component(node, 'contract'):
            await self.process_component(node, emit)
            return node
        if isinstance(node, ContractNode):
            return await self.process_deployment(node, emit, cache)
        return node

    async def process_component(self, component: Declaration, emit: Emit) -> None:
        owner = owner_ref(component)
        for ref in component.deployed_at:
            parsed = parse_ref(ref)
            contract = ContractNode(
                parsed.network,
                parsed.network_type,
                parsed.address,
                owner=owner,
                system=component.system,
                tags=inherited_tags(component.tags)
            )
            self.emit_node(emit, contract)
            self.emit_relation(emit, PROVIDES_API, component, contract)

            for interacts_ref in component.interacts_with:
                target_ref = parse_ref(str(interacts_ref))
                if (target_ref.network, target_ref.network_type) != (contract.network, contract.network_type):
                    continue
                target = await self.resolver.resolve(
                    target_ref.role,
                    target_ref.network,
                    target_ref.network_type,
                    target_ref.address,
                    owner=owner,
                    system=component.system
                )
                found = await self.resolver.stub_or_find(target)
                self.emit_relation(emit, CONSUMES_API, contract, found)
                if found.stub:
                    self.emit_node(emit, found)

    async def process_deployment(self, contract: ContractNode, emit: Emit, cache: CacheHandle) -> ContractNode:
        adapter = self.adapters.network(contract.network, contract.network_type)
        address = contract.address

        async def fetch_source() -> SourceSpec | None:
            return await adapter.fetch_source_spec(address)

        source = await self.refresh(cache, DEPLOYMENT_SOURCE_RUN_ID, SourceSpec, address, fetch_source)
        if source is not None:
            self.logger.debug('source spec found for %s', node_name(contract))

        async def fetch_state() -> StateSpec | None:
            return await adapter.fetch_state_spec(address, source)

        state = await self.refresh(cache, DEPLOYMENT_STATE_RUN_ID, StateSpec, address, fetch_state)

        rbac = None
        if state is not None:
            role_groups = self.adapters.rbac(contract.network, contract.network_type)

            async def fetch_rbac() -> RbacSpec | None:
                return await role_groups.fetch_rbac_spec(address, state)

            rbac = await self.refresh(cache, DEPLOYMENT_RBAC_RUN_ID, RbacSpec, address, fetch_rbac)

        updated = replace(contract, source=source, state=state, rbac=rbac)
        if source is not None and source.abi:
            updated = replace(updated, definition=source.abi)
        if rbac is not None:
            updated = with_tags(updated, 'rbac')

        if state is not None:
            await self._emit_interactions(updated, state, emit)
        if rbac is not None:
            self._emit_role_groups(updated, rbac, emit)
        return updated

    async def _emit_interactions(self, contract: ContractNode, state: StateSpec, emit: Emit) -> None:
        contract_name = node_name(contract)
        for method, target_address in state.interacts_with.items():
            role = dashed(method)
            try:
                target = await self.resolver.resolve(
                    role,
                    contract.network,
                    contract.network_type,
                    target_address,
                    parent_tags=contract.tags,
                    owner=owner_ref(contract),
                    system=contract.system
                )
            except ValueError as exc:
                self.logger.debug('skipping state address method=%s addr=%s error=%s', method, target_address, exc)
                continue
            if same_network(target, contract) and target.address == contract.address:
                continue
            found = await self.resolver.stub_or_find(target)
            self.emit_relation(emit, CONSUMES_API, contract, found)
            if found.stub:
                found = replace(found, interactions=merge_interactions(found, contract_name, role))
                self.emit_node(emit, with_tags(found, 'contract-state'))

    def _emit_role_groups(self, contract: ContractNode, rbac: RbacSpec, emit: Emit) -> None:
        for role in rbac.roles:
            role_group = RoleGroupNode(
                contract.network,
                contract.network_type,
                contract.address,
                stub=contract.stub,
                tags=inherited_tags(contract.tags),
                owner=owner_ref(contract),
                system=contract.system,
                role_id=role.role_id,
                role_name=role.role_name or role.role_id,
                admin=role.admin,
                admin_of=tuple(role.admin_of),
                members=tuple(role.members)
            )
            self.logger.debug('role group %s: %s', node_name(contract), role_group.role_name)
            self.emit_relation(emit, DEPENDS_ON, contract, role_group)
            self.emit_node(emit, role_group)
