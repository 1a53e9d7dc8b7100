from __future__ import annotations

import json
from typing import Any

import httpx
from web3 import AsyncWeb3, Web3
from web3.exceptions import Web3Exception

from ..clients.etherscan import EtherscanClient
from ..errors import UpstreamError
from ..specs import SourceSpec, StateSpec, Transaction
from .base import AddressGrammar

READ_ONLY_MUTABILITY = ('view', 'pure')


def _is_zero_arg_reader(entry: dict[str, Any]) -> bool:
    if entry.get('type', 'function') != 'function' or entry.get('inputs'):
        return False
    return entry.get('stateMutability') in READ_ONLY_MUTABILITY or bool(entry.get('constant'))


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    raise TypeError(f'{type(value).__name__} is not JSON serializable')


def _state_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return value


def etherscan_transaction(raw: dict[str, Any]) -> Transaction:
    def _int(name: str) -> int | None:
        try:
            return int(raw.get(name))
        except (TypeError, ValueError):
            return None

    return Transaction(
        hash=str(raw.get('hash', '')),
        block_number=_int('blockNumber'),
        timestamp=_int('timeStamp') or _int('timestamp'),
        signer=str(raw.get('from', '')),
        receiver=str(raw.get('to', ''))
    )


class EvmAdapter(AddressGrammar):
    def __init__(
        self,
        network: str,
        network_type: str,
        *,
        rpc_url: str = '',
        explorer: EtherscanClient | None = None,
        web3: AsyncWeb3 | None = None,
        request_delay_seconds: float = 1.0,
        timeout_seconds: float = 10.0
    ) -> None:
        self.network = network
        self.network_type = network_type
        self.explorer = explorer
        self.request_delay_seconds = request_delay_seconds
        if web3 is None and rpc_url:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={'timeout': timeout_seconds}))
        self.web3 = web3

    async def is_contract(self, address: str) -> bool:
        if self.web3 is None:
            self.logger.warning('rpc not configured network=%s type=%s', self.network, self.network_type)
            return False
        try:
            code = await self.web3.eth.get_code(Web3.to_checksum_address(address))
        except Exception as exc:
            self.logger.warning('contract detection failed addr=%s error=%s', address, exc)
            return False
        return len(code) > 0

    async def fetch_source_spec(self, address: str) -> SourceSpec | None:
        if self.explorer is None:
            return None
        info = await self.explorer.fetch_sources(address)
        if info is None:
            self.logger.warning('unable to fetch abi addr=%s', address)
            return None
        try:
            abi = json.dumps(json.loads(info.abi), indent=2)
        except json.JSONDecodeError:
            self.logger.warning('explorer returned a malformed abi addr=%s', address)
            return None
        return SourceSpec(
            abi=abi,
            source_code_verified=True,
            contract_name=info.contract_name,
            source_files=list(info.sources)
        )

    async def _call_view(self, address: str, entry: dict[str, Any]) -> list[Any]:
        assert self.web3 is not None
        contract = self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=[entry])
        result = await contract.functions[entry['name']]().call()
        if len(entry.get('outputs') or []) == 1:
            return [result]
        return list(result)

    async def fetch_state_spec(self, address: str, source: SourceSpec | None) -> StateSpec | None:
        if source is None or not source.abi or self.web3 is None:
            self.logger.debug('no abi is available, unable to fetch state addr=%s', address)
            return None
        try:
            abi = json.loads(source.abi)
        except json.JSONDecodeError:
            self.logger.debug('abi is not valid json addr=%s', address)
            return None
        readers = [entry for entry in abi if isinstance(entry, dict) and _is_zero_arg_reader(entry)]

        methods: dict[str, str] = {}
        interacts_with: dict[str, str] = {}

        # role id getters first, their values are matched against rbac data later
        for entry in readers:
            name = entry['name']
            if 'ROLE' not in name or len(entry.get('outputs') or []) != 1:
                continue
            try:
                values = await self._call_view(address, entry)
            except (Web3Exception, ValueError) as exc:
                self.logger.debug('error calling %s addr=%s error=%s', name, address, exc)
                continue
            methods[name] = str(_state_value(values[0]))

        for entry in readers:
            name = entry['name']
            if 'ROLE' in name:
                continue
            outputs = entry.get('outputs') or []
            try:
                values = await self._call_view(address, entry)
            except (Web3Exception, ValueError) as exc:
                self.logger.debug('error calling %s addr=%s error=%s', name, address, exc)
                await self.delay_request()
                continue
            if len(outputs) == 1 and outputs[0].get('type') == 'address':
                interacts_with[name] = str(values[0])
                self.logger.debug('interacts with method=%s target=%s', name, values[0])
            else:
                value = values[0] if len(values) == 1 else values
                methods[name] = json.dumps(value, separators=(',', ':'), default=_json_default)
            await self.delay_request()

        return StateSpec(methods=methods, interacts_with=interacts_with)

    async def _transaction(self, address: str, sort: str) -> Transaction | None:
        if self.explorer is None:
            return None
        try:
            txs = await self.explorer.fetch_transactions(address, sort=sort, offset=1)
        except (httpx.HTTPError, UpstreamError) as exc:
            self.logger.warning('unable to fetch transactions addr=%s error=%s', address, exc)
            return None
        return etherscan_transaction(txs[0]) if txs else None

    async def fetch_first_transaction(self, address: str) -> Transaction | None:
        return await self._transaction(address, 'asc')

    async def fetch_last_transaction(self, address: str) -> Transaction | None:
        return await self._transaction(address, 'desc')

    async def fetch_creation_transaction(self, address: str) -> Transaction | None:
        if self.explorer is None:
            return None
        try:
            raw = await self.explorer.fetch_creation_transaction(address)
        except (httpx.HTTPError, UpstreamError) as exc:
            self.logger.warning('unable to fetch creation transaction addr=%s error=%s', address, exc)
            return None
        return etherscan_transaction(raw) if raw else None
