from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import UpstreamError
from .base import RateLimitedClient

LOGGER = logging.getLogger('chainradar.clients.governance')


class SafeClient(RateLimitedClient):
    """Safe transaction service: owners, threshold and version of a safe."""

    def __init__(self, base_url: str, *, delay_seconds: float = 1.0, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(base_url.rstrip('/') + '/', delay_seconds=delay_seconds, client=client)

    async def safe_info(self, address: str) -> dict[str, Any]:
        payload = await self.get_json(f'{self.base_url}v1/safes/{address}/')
        if not isinstance(payload, dict):
            raise UpstreamError(f'unexpected safe payload for {address}')
        return payload

    async def safe_owners(self, address: str) -> list[str]:
        info = await self.safe_info(address)
        owners = info.get('owners', [])
        return [str(owner) for owner in owners] if isinstance(owners, list) else []


class AstroDaoClient(RateLimitedClient):
    def __init__(self, base_url: str, *, delay_seconds: float = 1.0, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(base_url.rstrip('/') + '/', delay_seconds=delay_seconds, client=client)

    async def dao_info(self, address: str) -> dict[str, Any]:
        payload = await self.get_json(f'{self.base_url}v1/daos/{address}')
        if not isinstance(payload, dict):
            raise UpstreamError(f'unexpected astrodao payload for {address}')
        return payload

    async def dao_version(self, address: str) -> str | None:
        info = await self.dao_info(address)
        version = (info.get('daoVersion') or {}).get('version')
        if not isinstance(version, list) or not version:
            return None
        return '.'.join(str(part) for part in version)


CONTRACT_ACCESS_CONTROL_QUERY = '''
query GetContractAccessControl($address: String!) {
  accessControl(id: $address) {
    roles {
      role { id }
      admin { role { id } }
      adminOf { role { id } }
      members { account { id } }
    }
  }
}
'''

ACCOUNT_ROLES_QUERY = '''
query GetAccountAccessControl($address: String!) {
  account(id: $address) {
    membership {
      accesscontrolrole {
        contract { id }
        role { id }
      }
    }
  }
}
'''


class OpenZeppelinClient(RateLimitedClient):
    """GraphQL client for an OpenZeppelin access-control subgraph."""

    def __init__(self, endpoint: str, *, delay_seconds: float = 1.0, client: httpx.AsyncClient | None = None) -> None:
        self.endpoint = endpoint
        super().__init__(endpoint, delay_seconds=delay_seconds, client=client)

    async def _query(self, query: str, address: str) -> dict[str, Any]:
        payload = await self.post_json(self.endpoint, {'query': query, 'variables': {'address': address.lower()}})
        if not isinstance(payload, dict):
            raise UpstreamError('unexpected subgraph payload')
        if payload.get('errors'):
            raise UpstreamError(f"subgraph error: {payload['errors']}")
        data = payload.get('data')
        return data if isinstance(data, dict) else {}

    async def contract_access_control(self, address: str) -> list[dict[str, Any]] | None:
        if not self.endpoint:
            LOGGER.warning('no configured rbac endpoint')
            return None
        data = await self._query(CONTRACT_ACCESS_CONTROL_QUERY, address)
        access_control = data.get('accessControl')
        if not access_control:
            LOGGER.warning('unable to fetch contract rbac addr=%s', address)
            return None
        roles: list[dict[str, Any]] = []
        for entry in access_control.get('roles', []):
            roles.append(
                {
                    'role_id': entry['role']['id'],
                    'admin': entry['admin']['role']['id'],
                    'admin_of': [item['role']['id'] for item in entry.get('adminOf', [])],
                    'members': [item['account']['id'] for item in entry.get('members', [])]
                }
            )
        return roles

    async def account_roles(self, address: str) -> list[dict[str, str]] | None:
        if not self.endpoint:
            LOGGER.warning('no configured rbac endpoint')
            return None
        data = await self._query(ACCOUNT_ROLES_QUERY, address)
        account = data.get('account')
        if not account:
            LOGGER.warning('unable to fetch account roles addr=%s', address)
            return None
        return [
            {
                'role': item['accesscontrolrole']['role']['id'],
                'contract': item['accesscontrolrole']['contract']['id']
            }
            for item in account.get('membership', [])
        ]
