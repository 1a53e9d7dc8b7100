from __future__ import annotations

import logging

from ..clients.base import RateLimitedClient
from ..clients.etherscan import EtherscanClient
from ..clients.governance import AstroDaoClient, OpenZeppelinClient, SafeClient
from ..clients.near import NearBlocksClient, NearRpcClient
from ..config import Settings, get_settings, network_key
from ..networks import NETWORKS, explorer_network
from .base import NetworkAdapter, PolicyAdapter, RoleGroupAdapter
from .evm import EvmAdapter
from .near import NearAdapter
from .policy import AstroDaoAdapter, SafeAdapter
from .rbac import NearPluginsAdapter, OpenZeppelinAdapter

LOGGER = logging.getLogger('chainradar.adapters')


def _check_network(network: str) -> None:
    if network not in NETWORKS:
        raise ValueError(f'unknown network {network}')


class AdapterRegistry:
    """Builds one adapter per network and governance scheme and caches it.

    Tests register fakes up front with the ``register_*`` methods.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._networks: dict[str, NetworkAdapter] = {}
        self._policies: dict[str, PolicyAdapter] = {}
        self._rbac: dict[str, RoleGroupAdapter] = {}

    def register_network(self, network: str, network_type: str, adapter: NetworkAdapter) -> None:
        self._networks[network_key(network, network_type)] = adapter

    def register_policy(self, network: str, network_type: str, adapter: PolicyAdapter) -> None:
        self._policies[network_key(network, network_type)] = adapter

    def register_rbac(self, network: str, network_type: str, adapter: RoleGroupAdapter) -> None:
        self._rbac[network_key(network, network_type)] = adapter

    def network(self, network: str, network_type: str) -> NetworkAdapter:
        key = network_key(network, network_type)
        adapter = self._networks.get(key)
        if adapter is None:
            adapter = self._build_network(network, network_type)
            self._networks[key] = adapter
            LOGGER.info('network adapter ready network=%s type=%s adapter=%s', network, network_type, type(adapter).__name__)
        return adapter

    def policy(self, network: str, network_type: str) -> PolicyAdapter:
        key = network_key(network, network_type)
        adapter = self._policies.get(key)
        if adapter is None:
            adapter = self._build_policy(network, network_type)
            self._policies[key] = adapter
        return adapter

    def rbac(self, network: str, network_type: str) -> RoleGroupAdapter:
        key = network_key(network, network_type)
        adapter = self._rbac.get(key)
        if adapter is None:
            adapter = self._build_rbac(network, network_type)
            self._rbac[key] = adapter
        return adapter

    def _build_network(self, network: str, network_type: str) -> NetworkAdapter:
        _check_network(network)
        settings = self.settings
        delay = settings.request_delay_seconds
        if network == 'near':
            return NearAdapter(
                network_type,
                rpc=NearRpcClient(settings.rpc_url(network, network_type)),
                nearblocks=NearBlocksClient(settings.nearblocks_api_url, settings.nearblocks_api_key, delay_seconds=delay),
                request_delay_seconds=delay
            )
        explorer_name = explorer_network(network, network_type)
        explorer = None
        if explorer_name:
            explorer = EtherscanClient(explorer_name, settings.explorer_api_key(network, network_type))
        else:
            LOGGER.warning('no explorer configured network=%s type=%s', network, network_type)
        return EvmAdapter(
            network,
            network_type,
            rpc_url=settings.rpc_url(network, network_type),
            explorer=explorer,
            request_delay_seconds=delay,
            timeout_seconds=settings.http_timeout_seconds
        )

    def _build_policy(self, network: str, network_type: str) -> PolicyAdapter:
        _check_network(network)
        delay = self.settings.request_delay_seconds
        if network == 'near':
            return AstroDaoAdapter(network_type, AstroDaoClient(self.settings.astrodao_api_url, delay_seconds=delay))
        return SafeAdapter(network, network_type, SafeClient(self.settings.safe_api_url(network), delay_seconds=delay))

    def _build_rbac(self, network: str, network_type: str) -> RoleGroupAdapter:
        _check_network(network)
        if network == 'near':
            return NearPluginsAdapter(network_type)
        endpoint = self.settings.rbac_subgraph(network, network_type)
        client = OpenZeppelinClient(endpoint, delay_seconds=self.settings.request_delay_seconds) if endpoint else None
        return OpenZeppelinAdapter(network, network_type, client)

    async def aclose(self) -> None:
        adapters = [*self._networks.values(), *self._policies.values(), *self._rbac.values()]
        for adapter in adapters:
            for attribute in ('rpc', 'nearblocks', 'explorer', 'client'):
                client = getattr(adapter, attribute, None)
                if isinstance(client, RateLimitedClient):
                    await client.aclose()
