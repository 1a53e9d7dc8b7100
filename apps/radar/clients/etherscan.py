from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..errors import UpstreamError
from ..networks import KEYLESS_EXPLORERS, explorer_api_url
from .base import RateLimitedClient

LOGGER = logging.getLogger('chainradar.clients.etherscan')

ETHERSCAN_HEADER = '/**\n *Submitted for verification at Etherscan.io on 20XX-XX-XX\n*/\n'
UNVERIFIED_ABI = 'Contract source code not verified'


@dataclass
class SourceInfo:
    contract_name: str
    abi: str
    compiler_version: str
    language: str
    sources: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


def make_filename(name: str, extension: str = '.sol') -> str:
    if not name:
        return f'Contract{extension}'
    if name.endswith(extension):
        return name
    return name + extension


def _sources_from_json(sources: dict[str, Any]) -> dict[str, str]:
    files: dict[str, str] = {}
    for path, entry in sources.items():
        content = entry.get('content', '') if isinstance(entry, dict) else ''
        files[make_filename(path)] = content
    return files


def process_result(result: dict[str, Any]) -> SourceInfo | None:
    """Classify one getsourcecode result.

    Handles unverified addresses, Vyper, single-file Solidity, multi-file
    Solidity and standard-JSON input (wrapped in an extra pair of braces).
    """
    source_code = str(result.get('SourceCode', ''))
    abi = str(result.get('ABI', ''))
    name = str(result.get('ContractName', ''))
    version = str(result.get('CompilerVersion', ''))

    if source_code == '' and abi == UNVERIFIED_ABI:
        return None

    if version.startswith('vyper:'):
        return SourceInfo(
            contract_name=name,
            abi=abi,
            compiler_version=version.removeprefix('vyper:'),
            language='Vyper',
            sources={make_filename(name, '.vy'): source_code},
            raw=result
        )

    try:
        multi_file = json.loads(source_code)
    except json.JSONDecodeError:
        multi_file = None

    if isinstance(multi_file, dict):
        LOGGER.debug('multi-file input contract=%s', name)
        return SourceInfo(name, abi, version, 'Solidity', _sources_from_json(multi_file), result)

    if source_code.startswith('{') and source_code.endswith('}'):
        try:
            full_json = json.loads(source_code[1:-1])
        except json.JSONDecodeError:
            full_json = None
        if isinstance(full_json, dict):
            LOGGER.debug('json input contract=%s', name)
            return SourceInfo(
                contract_name=name,
                abi=abi,
                compiler_version=version,
                language=str(full_json.get('language', 'Solidity')),
                sources=_sources_from_json(full_json.get('sources', {}) or {}),
                raw=result
            )

    LOGGER.debug('single-file input contract=%s', name)
    return SourceInfo(
        contract_name=name,
        abi=abi,
        compiler_version=version,
        language='Solidity',
        sources={make_filename(name): ETHERSCAN_HEADER + source_code},
        raw=result
    )


class EtherscanClient(RateLimitedClient):
    def __init__(self, explorer_name: str, api_key: str = '', *, client: httpx.AsyncClient | None = None) -> None:
        self.explorer_name = explorer_name
        self.api_key = api_key
        self.api_url = explorer_api_url(explorer_name)
        # etherscan allows 5 requests/sec with a key and one every 3 seconds without
        super().__init__(delay_seconds=0.2 if api_key else 3.0, client=client)

    def _params(self, **params: Any) -> dict[str, Any]:
        cleaned = {key: value for key, value in params.items() if value is not None}
        if self.explorer_name not in KEYLESS_EXPLORERS:
            cleaned['apikey'] = self.api_key
        return cleaned

    async def _call(self, **params: Any) -> dict[str, Any]:
        payload = await self.get_json(self.api_url, params=self._params(**params))
        if not isinstance(payload, dict):
            raise UpstreamError(f'unexpected explorer payload for {self.explorer_name}')
        if str(payload.get('status', '1')) == '0':
            message = payload.get('result') if isinstance(payload.get('result'), str) else payload.get('message')
            raise UpstreamError(str(message or 'explorer returned status 0'))
        return payload

    async def _source_result(self, address: str) -> dict[str, Any]:
        payload = await self._call(module='contract', action='getsourcecode', address=address)
        results = payload.get('result')
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise UpstreamError(f'empty getsourcecode result for {address}')
        return results[0]

    async def fetch_sources(self, address: str) -> SourceInfo | None:
        result = await self._source_result(address)
        is_proxy = str(result.get('Proxy', '0')) == '1' or bool(result.get('IsProxy'))
        implementation = result.get('Implementation') or result.get('ImplementationAddress')
        if is_proxy and implementation:
            LOGGER.debug('proxy contract addr=%s implementation=%s', address, implementation)
            proxy_info = process_result(result)
            impl_info = process_result(await self._source_result(str(implementation)))
            if impl_info is None:
                return proxy_info
            merged = dict(proxy_info.sources) if proxy_info else {}
            merged.update(impl_info.sources)
            impl_info.sources = merged
            return impl_info
        return process_result(result)

    async def fetch_transactions(
        self,
        address: str,
        *,
        sort: str = 'desc',
        page: int = 1,
        offset: int = 10
    ) -> list[dict[str, Any]]:
        try:
            payload = await self._call(
                module='account',
                action='txlist',
                address=address,
                page=page,
                offset=offset,
                sort=sort
            )
        except UpstreamError as exc:
            if 'no transactions found' in str(exc).lower():
                return []
            raise
        result = payload.get('result')
        return [tx for tx in result if isinstance(tx, dict)] if isinstance(result, list) else []

    async def fetch_creation_transaction(self, address: str) -> dict[str, Any] | None:
        details = await self.get_json(f'{self.api_url}/v2/addresses/{address}')
        tx_hash = details.get('creation_tx_hash') if isinstance(details, dict) else None
        if not tx_hash:
            return None
        payload = await self._call(module='transaction', action='gettxinfo', txhash=tx_hash)
        result = payload.get('result')
        if not isinstance(result, dict):
            return None
        return {'hash': tx_hash, **result}
