from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from ..errors import UpstreamError
from .base import RateLimitedClient

LOGGER = logging.getLogger('chainradar.clients.near')


class NearRpcClient(RateLimitedClient):
    """Minimal NEAR JSON-RPC client for the ``query`` method."""

    def __init__(self, rpc_url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)
        super().__init__(rpc_url, delay_seconds=0.0, client=client)

    async def query(self, request_type: str, finality: str = 'final', **params: Any) -> dict[str, Any]:
        payload = {
            'jsonrpc': '2.0',
            'id': next(self._ids),
            'method': 'query',
            'params': {'request_type': request_type, 'finality': finality, **params}
        }
        response = await self.post_json(self.rpc_url, payload)
        if not isinstance(response, dict):
            raise UpstreamError(f'unexpected rpc payload for {request_type}')
        if response.get('error'):
            raise UpstreamError(f"rpc error request_type={request_type} error={response['error']}")
        result = response.get('result')
        if not isinstance(result, dict):
            raise UpstreamError(f'missing rpc result for {request_type}')
        # function call failures come back inside a successful result
        if result.get('error'):
            raise UpstreamError(str(result['error']))
        return result

    async def view_account(self, account_id: str) -> dict[str, Any]:
        return await self.query('view_account', account_id=account_id)

    async def view_code(self, account_id: str) -> str:
        result = await self.query('view_code', account_id=account_id)
        return str(result.get('code_base64', ''))

    async def view_access_key_list(self, account_id: str) -> list[dict[str, Any]]:
        result = await self.query('view_access_key_list', account_id=account_id)
        keys = result.get('keys', [])
        return [key for key in keys if isinstance(key, dict)] if isinstance(keys, list) else []

    async def call_function(self, account_id: str, method_name: str, args_base64: str = '') -> bytes:
        result = await self.query(
            'call_function',
            finality='optimistic',
            account_id=account_id,
            method_name=method_name,
            args_base64=args_base64
        )
        return bytes(result.get('result', []))


class NearBlocksClient(RateLimitedClient):
    def __init__(
        self,
        base_url: str,
        api_key: str = '',
        *,
        delay_seconds: float = 1.0,
        client: httpx.AsyncClient | None = None
    ) -> None:
        headers = {'Authorization': f'Bearer {api_key}'} if api_key else {}
        super().__init__(base_url.rstrip('/') + '/', delay_seconds=delay_seconds, headers=headers, client=client)

    async def account_transactions(
        self,
        address: str,
        *,
        order: str = 'desc',
        per_page: int = 10,
        page: int = 1
    ) -> list[dict[str, Any]]:
        payload = await self.get_json(
            f'{self.base_url}account/{address}/txns',
            params={'order': order, 'per_page': per_page, 'page': page}
        )
        txns = payload.get('txns', []) if isinstance(payload, dict) else []
        return [tx for tx in txns if isinstance(tx, dict)]

    async def first_transaction(self, address: str) -> dict[str, Any] | None:
        txns = await self.account_transactions(address, order='asc', per_page=1)
        return txns[0] if txns else None

    async def last_transaction(self, address: str) -> dict[str, Any] | None:
        txns = await self.account_transactions(address, order='desc', per_page=1)
        return txns[0] if txns else None
