from __future__ import annotations

from dataclasses import replace

from ..exclusive import CacheHandle
from ..models import Node, RoleGroupNode
from ..relations import DEPENDS_ON, HAS_MEMBER
from .base import Emit, Stage, owner_ref


class RoleGroupStage(Stage):
    """Links a role group to its admin role and to each of its members."""

    name = 'role-group'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if isinstance(node, RoleGroupNode):
            await self.process_role_group(node, emit)
        return node

    async def process_role_group(self, role_group: RoleGroupNode, emit: Emit) -> None:
        if role_group.admin and role_group.admin != role_group.role_id:
            admin_group = RoleGroupNode(
                role_group.network,
                role_group.network_type,
                role_group.address,
                stub=role_group.stub,
                owner=owner_ref(role_group),
                system=role_group.system,
                role_id=role_group.admin
            )
            self.logger.debug('role group admin (%s): %s', role_group.role_name, role_group.admin)
            self.emit_relation(emit, DEPENDS_ON, role_group, admin_group)

        for member in role_group.members:
            target = await self.resolver.resolve(
                'member',
                role_group.network,
                role_group.network_type,
                member,
                parent_tags=role_group.tags
            )
            found = await self.resolver.stub_or_find(target)
            self.emit_relation(emit, HAS_MEMBER, role_group, found)
            if found.stub:
                self.logger.debug('role group member (%s): %s', role_group.role_name, member)
                self.emit_node(emit, replace(found, owner=owner_ref(role_group), system=role_group.system))
