from __future__ import annotations

import hashlib
import re

import base58
from web3 import Web3

from .errors import InvalidAddressError
from .networks import EVM_NETWORKS

NEAR_SUFFIXES = ('.near', '.aurora', '.testnet')
NEAR_IMPLICIT_RE = re.compile(r'[0-9a-fA-F]{64}')
MAX_NAME_LENGTH = 63


def base58_sha256(value: str) -> str:
    digest = hashlib.sha256(value.encode('utf-8')).digest()
    return base58.b58encode(digest).decode('ascii')


def is_near_address(address: str) -> bool:
    lowered = address.lower()
    if lowered == 'aurora':
        return True
    if lowered.endswith(NEAR_SUFFIXES):
        return True
    return bool(NEAR_IMPLICIT_RE.fullmatch(address))


def is_evm_address(address: str) -> bool:
    return bool(Web3.is_address(address))


def is_valid_address(network: str, address: str) -> bool:
    if not isinstance(address, str) or not address:
        return False
    if network == 'near':
        return is_near_address(address)
    if network in EVM_NETWORKS:
        return is_evm_address(address)
    return False


def normalize_address(network: str, address: str) -> str:
    """Checksum EVM addresses and lower-case NEAR accounts.

    Raises InvalidAddressError for anything the network grammar rejects, so a
    bad reference fails before any network call is attempted.
    """
    candidate = str(address).strip()
    if not is_valid_address(network, candidate):
        raise InvalidAddressError(candidate, network)
    if network == 'near':
        return candidate.lower()
    return Web3.to_checksum_address(candidate)


def human_friendly_address(network: str, address: str) -> str:
    if network == 'near':
        if len(address) == 64:
            return f'{address[:4]}...{address[-4:]}'
        return address
    if len(address) <= 16:
        return address
    return f'{address[:6]}...{address[-4:]}'
