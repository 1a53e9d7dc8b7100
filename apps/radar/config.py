from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_RPC_URLS: dict[str, str] = {
    'ethereum-mainnet': 'https://ethereum-rpc.publicnode.com',
    'ethereum-goerli': 'https://ethereum-goerli-rpc.publicnode.com',
    'ethereum-sepolia': 'https://ethereum-sepolia-rpc.publicnode.com',
    'aurora-mainnet': 'https://mainnet.aurora.dev',
    'aurora-testnet': 'https://testnet.aurora.dev',
    'near-mainnet': 'https://rpc.mainnet.near.org',
    'near-testnet': 'https://rpc.testnet.near.org'
}

DEFAULT_SAFE_API_URLS: dict[str, str] = {
    'ethereum': 'https://safe-transaction-mainnet.safe.global/api/',
    'aurora': 'https://safe-transaction-aurora.safe.global/api/'
}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def network_key(network: str, network_type: str) -> str:
    return f'{network}-{network_type}'


def _env_map(prefix: str, defaults: dict[str, str]) -> dict[str, str]:
    """Overlay PREFIX_<NETWORK>_<TYPE> variables on top of defaults."""
    values = dict(defaults)
    marker = f'{prefix}_'
    for name, raw in os.environ.items():
        if not name.startswith(marker):
            continue
        cleaned = raw.strip()
        if not cleaned:
            continue
        suffix = name[len(marker):].lower()
        if '_' not in suffix:
            values[suffix] = cleaned
            continue
        network, network_type = suffix.split('_', 1)
        values[network_key(network, network_type.replace('_', '-'))] = cleaned
    return values


@dataclass(frozen=True)
class Settings:
    app_name: str
    cache_ttl_minutes: int
    request_delay_seconds: float
    exclusive_retries: int
    http_timeout_seconds: float
    rpc_urls: dict[str, str] = field(default_factory=dict)
    explorer_api_keys: dict[str, str] = field(default_factory=dict)
    rbac_subgraphs: dict[str, str] = field(default_factory=dict)
    safe_api_urls: dict[str, str] = field(default_factory=dict)
    nearblocks_api_url: str = 'https://api.nearblocks.io/v1/'
    nearblocks_api_key: str = ''
    astrodao_api_url: str = 'https://api.app.astrodao.com/api/'

    def rpc_url(self, network: str, network_type: str) -> str:
        return self.rpc_urls.get(network_key(network, network_type), '')

    def explorer_api_key(self, network: str, network_type: str) -> str:
        return self.explorer_api_keys.get(network_key(network, network_type), '')

    def rbac_subgraph(self, network: str, network_type: str) -> str:
        return self.rbac_subgraphs.get(network_key(network, network_type), '')

    def safe_api_url(self, network: str) -> str:
        return self.safe_api_urls.get(network, DEFAULT_SAFE_API_URLS['ethereum'])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv('APP_NAME', 'chainradar'),
        cache_ttl_minutes=_env_int('CACHE_TTL_MINUTES', 120),
        request_delay_seconds=_env_float('REQUEST_DELAY_SECONDS', 1.0),
        exclusive_retries=_env_int('EXCLUSIVE_RETRIES', 3),
        http_timeout_seconds=_env_float('HTTP_TIMEOUT_SECONDS', 10.0),
        rpc_urls=_env_map('RPC_URL', DEFAULT_RPC_URLS),
        explorer_api_keys=_env_map('EXPLORER_API_KEY', {}),
        rbac_subgraphs=_env_map('RBAC_SUBGRAPH', {}),
        safe_api_urls=_env_map('SAFE_API_URL', DEFAULT_SAFE_API_URLS),
        nearblocks_api_url=os.getenv('NEARBLOCKS_API_URL', 'https://api.nearblocks.io/v1/'),
        nearblocks_api_key=os.getenv('NEARBLOCKS_API_KEY', ''),
        astrodao_api_url=os.getenv('ASTRODAO_API_URL', 'https://api.app.astrodao.com/api/')
    )
