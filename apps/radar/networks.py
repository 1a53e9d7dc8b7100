from __future__ import annotations

NETWORKS = ('ethereum', 'aurora', 'near')
EVM_NETWORKS = ('ethereum', 'aurora')
TESTNET_TYPES = ('testnet', 'goerli', 'sepolia')

SILO_NAMES_BY_CHAIN_ID: dict[str, str] = {
    '1313161560': 'powergold'
}

# etherscan-compatible network name per '<network>-<networkType>'
EXPLORER_NETWORKS: dict[str, str] = {
    'ethereum-mainnet': 'mainnet',
    'ethereum-goerli': 'goerli',
    'ethereum-sepolia': 'sepolia',
    'aurora-mainnet': 'aurora',
    'aurora-testnet': 'testnet-aurora'
}

EXPLORER_API_DOMAINS: dict[str, str] = {
    'mainnet': 'api.etherscan.io',
    'goerli': 'api-goerli.etherscan.io',
    'sepolia': 'api-sepolia.etherscan.io',
    'arbitrum': 'api.arbiscan.io',
    'polygon': 'api.polygonscan.com',
    'binance': 'api.bscscan.com',
    'aurora': 'explorer.mainnet.aurora.dev',
    'testnet-aurora': 'explorer.testnet.aurora.dev'
}

# explorers that reject an apikey query parameter
KEYLESS_EXPLORERS = frozenset({'aurora', 'testnet-aurora'})


def is_silo_chain_id(value: str) -> bool:
    return value in SILO_NAMES_BY_CHAIN_ID


def display_network_type(network_type: str) -> str:
    if is_silo_chain_id(network_type):
        return SILO_NAMES_BY_CHAIN_ID[network_type]
    if 'aurora-silo.near' in network_type:
        return network_type.split('.')[0]
    return network_type


def lifecycle(network_type: str) -> str:
    return 'testing' if network_type in TESTNET_TYPES else 'production'


def explorer_network(network: str, network_type: str) -> str:
    return EXPLORER_NETWORKS.get(f'{network}-{network_type}', '')


def explorer_api_url(explorer_name: str) -> str:
    domain = EXPLORER_API_DOMAINS.get(explorer_name)
    if domain is None:
        raise ValueError(f'unsupported explorer network {explorer_name}')
    return f'https://{domain}/api'


def explorer_link_prefix(network: str, network_type: str) -> str:
    if network == 'ethereum':
        subdomain = 'goerli.' if network_type == 'goerli' else ''
        return f'https://{subdomain}etherscan.io/address/'
    if network == 'near':
        subdomain = 'testnet.' if network_type == 'testnet' else ''
        return f'https://explorer.{subdomain}near.org/accounts/'
    if is_silo_chain_id(network_type):
        return f'https://explorer.{SILO_NAMES_BY_CHAIN_ID[network_type]}.aurora.dev/address/'
    if network == 'aurora':
        subdomain = 'testnet.' if network_type == 'testnet' else ''
        return f'https://explorer.{subdomain}aurora.dev/address/'
    raise ValueError(f'unknown network {network}')


def multisig_link(network: str, network_type: str, address: str) -> dict[str, str]:
    if network == 'near':
        subdomain = 'testnet.' if network_type == 'testnet' else ''
        return {
            'title': 'Safe (AstroDao)',
            'url': f'https://{subdomain}app.astrodao.com/dao/{address}'
        }
    prefix = 'eth' if network == 'ethereum' else network
    return {
        'title': 'Safe (Gnosis)',
        'url': f'https://app.safe.global/{prefix}:{address}'
    }
