from __future__ import annotations

import base64
import binascii
import json
from typing import Any

import httpx

from ..clients.near import NearBlocksClient, NearRpcClient
from ..errors import UpstreamError
from ..specs import SourceSpec, StateSpec, Transaction
from .base import AddressGrammar
from .wasm import exported_functions

EMPTY_CODE_HASH = '11111111111111111111111111111111'


def nearblocks_transaction(raw: dict[str, Any]) -> Transaction:
    block = raw.get('block') if isinstance(raw.get('block'), dict) else {}
    try:
        block_height = int(block.get('block_height'))
    except (TypeError, ValueError):
        block_height = None
    try:
        # nearblocks reports nanoseconds
        timestamp = int(raw.get('block_timestamp')) // 1_000_000_000
    except (TypeError, ValueError):
        timestamp = None
    return Transaction(
        hash=str(raw.get('transaction_hash', '')),
        block_number=block_height,
        timestamp=timestamp,
        signer=str(raw.get('predecessor_account_id') or raw.get('signer_account_id') or ''),
        receiver=str(raw.get('receiver_account_id', ''))
    )


class NearAdapter(AddressGrammar):
    network = 'near'

    def __init__(
        self,
        network_type: str,
        *,
        rpc: NearRpcClient,
        nearblocks: NearBlocksClient | None = None,
        request_delay_seconds: float = 1.0
    ) -> None:
        self.network_type = network_type
        self.rpc = rpc
        self.nearblocks = nearblocks
        self.request_delay_seconds = request_delay_seconds

    async def is_contract(self, address: str) -> bool:
        try:
            account = await self.rpc.view_account(address)
        except Exception as exc:
            self.logger.warning('contract detection failed addr=%s error=%s', address, exc)
            return False
        return str(account.get('code_hash', EMPTY_CODE_HASH)) != EMPTY_CODE_HASH

    async def keys(self, address: str) -> dict[str, str]:
        """public key -> JSON serialized permission"""
        raw_keys = await self.rpc.view_access_key_list(address)
        keys: dict[str, str] = {}
        for entry in raw_keys:
            permission = (entry.get('access_key') or {}).get('permission')
            keys[str(entry.get('public_key'))] = json.dumps(permission, separators=(',', ':'))
        return keys

    async def fetch_source_spec(self, address: str) -> SourceSpec | None:
        code_base64 = await self.rpc.view_code(address)
        try:
            methods = exported_functions(base64.b64decode(code_base64))
        except (binascii.Error, ValueError) as exc:
            self.logger.warning('unable to parse contract code addr=%s error=%s', address, exc)
            return None
        first_tx = await self.fetch_first_transaction(address)
        return SourceSpec(
            abi=json.dumps({method: [] for method in methods}, indent=2),
            source_code_verified=False,
            contract_name=address,
            source_files=[],
            start_block=first_tx.block_number if first_tx else None
        )

    async def fetch_state_spec(self, address: str, source: SourceSpec | None) -> StateSpec | None:
        if source is None:
            return None
        try:
            by_method = json.loads(source.abi)
        except json.JSONDecodeError:
            self.logger.debug('abi is not valid json addr=%s', address)
            return None

        methods: dict[str, str] = {}
        interacts_with: dict[str, str] = {}
        for method in by_method:
            await self.delay_request()
            try:
                raw = await self.rpc.call_function(address, method)
            except UpstreamError:
                self.logger.debug('error calling %s addr=%s', method, address)
                continue
            try:
                value = json.loads(raw.decode('utf-8'))
            except (UnicodeDecodeError, json.JSONDecodeError):
                self.logger.debug('non-json output for %s: %r', method, raw[:64])
                continue
            if isinstance(value, str) and self.is_valid_address(value):
                interacts_with[method] = self.normalize_address(value)
            else:
                methods[method] = json.dumps(value, separators=(',', ':'))
        return StateSpec(methods=methods, interacts_with=interacts_with)

    async def _nearblocks(self, address: str, order: str) -> Transaction | None:
        if self.nearblocks is None:
            return None
        try:
            if order == 'asc':
                raw = await self.nearblocks.first_transaction(address)
            else:
                raw = await self.nearblocks.last_transaction(address)
        except (httpx.HTTPError, UpstreamError) as exc:
            self.logger.warning('unable to fetch transactions addr=%s error=%s', address, exc)
            return None
        return nearblocks_transaction(raw) if raw else None

    async def fetch_first_transaction(self, address: str) -> Transaction | None:
        return await self._nearblocks(address, 'asc')

    async def fetch_last_transaction(self, address: str) -> Transaction | None:
        return await self._nearblocks(address, 'desc')

    async def fetch_creation_transaction(self, address: str) -> Transaction | None:
        # the first transaction of a NEAR account is the one that created it
        return await self.fetch_first_transaction(address)
