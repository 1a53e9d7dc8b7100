from __future__ import annotations

import json
import logging

from ..clients.governance import OpenZeppelinClient
from ..errors import PolicyError
from ..specs import RbacMembership, RbacRole, RbacSpec, StateSpec

LOGGER = logging.getLogger('chainradar.adapters.rbac')

SUPER_ADMIN = 'super_admins'
ACL_METHOD = 'acl_get_permissioned_accounts'


class OpenZeppelinAdapter:
    """Roles and membership from an AccessControl subgraph.

    Role names come from the ROLE getters already captured in the state spec:
    a getter whose value equals a role id names that role.
    """

    def __init__(self, network: str, network_type: str, client: OpenZeppelinClient | None) -> None:
        self.network = network
        self.network_type = network_type
        self.client = client

    async def fetch_rbac_spec(self, address: str, state: StateSpec) -> RbacSpec | None:
        if self.client is None or not state.methods:
            return None
        parsed_roles = await self.client.contract_access_control(address)
        if not parsed_roles:
            return None

        names_by_id = {value: name for name, value in state.methods.items()}
        roles = [
            RbacRole(
                role_id=entry['role_id'],
                role_name=names_by_id.get(entry['role_id'], ''),
                admin=entry['admin'],
                admin_of=entry['admin_of'],
                members=entry['members']
            )
            for entry in parsed_roles
        ]
        membership = await self.client.account_roles(address) or []
        return RbacSpec(
            roles=roles,
            membership=[RbacMembership(role=item['role'], contract=item['contract']) for item in membership]
        )


class NearPluginsAdapter:
    """Roles declared through the near-plugins ACL view method."""

    def __init__(self, network_type: str) -> None:
        self.network = 'near'
        self.network_type = network_type

    async def fetch_rbac_spec(self, address: str, state: StateSpec) -> RbacSpec | None:
        raw = state.methods.get(ACL_METHOD)
        if not raw:
            return None
        try:
            config = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PolicyError(f'unable to parse acl config: {exc}') from exc
        if not isinstance(config, dict) or not isinstance(config.get('roles', {}), dict):
            raise PolicyError('acl config has no roles')

        acl_roles = config.get('roles', {})
        roles = [
            RbacRole(
                role_id=SUPER_ADMIN,
                role_name=SUPER_ADMIN,
                admin=SUPER_ADMIN,
                admin_of=list(acl_roles),
                members=list(config.get('super_admins') or [])
            )
        ]
        for name, role_config in acl_roles.items():
            roles.append(
                RbacRole(
                    role_id=name,
                    role_name=name,
                    admin=SUPER_ADMIN,
                    admin_of=[],
                    members=list((role_config or {}).get('grantees') or [])
                )
            )
        return RbacSpec(
            roles=roles,
            membership=[RbacMembership(role=name, contract=address) for name in acl_roles]
        )
