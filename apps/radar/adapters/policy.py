from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ..clients.governance import AstroDaoClient, SafeClient
from ..errors import PolicyError, UnsupportedWeightKindError, UpstreamError
from ..specs import MultisigOwnersSpec, MultisigPolicy, MultisigSpec, StateSpec

LOGGER = logging.getLogger('chainradar.adapters.policy')

COUNCIL_ROLE = 'council'
POLICY_METHOD = 'get_policy'


def calculate_threshold(seats: int, ratio: list[int] | tuple[int, int], weight_kind: str = 'RoleWeight') -> int:
    """Approvals needed out of `seats` for a ratio vote policy.

    Mirrors sputnik-dao: min(num * seats / denom + 1, seats) with integer
    division. Only role-weighted votes are supported.
    """
    if weight_kind != 'RoleWeight':
        raise UnsupportedWeightKindError(weight_kind)
    if not isinstance(ratio, (list, tuple)) or len(ratio) != 2:
        raise PolicyError(f'unsupported vote threshold {ratio!r}')
    numerator, denominator = (int(part) for part in ratio)
    if denominator <= 0:
        raise PolicyError(f'invalid vote threshold {ratio!r}')
    return min(numerator * seats // denominator + 1, seats)


def parse_policy(raw: str) -> dict[str, Any]:
    try:
        policy = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise PolicyError(f'unable to parse dao policy: {exc}') from exc
    if not isinstance(policy, dict) or not isinstance(policy.get('roles'), list):
        raise PolicyError('dao policy has no roles')
    return policy


def find_council_role(policy: dict[str, Any]) -> dict[str, Any]:
    for role in policy.get('roles', []):
        if isinstance(role, dict) and role.get('name') == COUNCIL_ROLE:
            return role
    raise PolicyError('no council role found')


def council_members(role: dict[str, Any]) -> list[str]:
    kind = role.get('kind')
    if isinstance(kind, dict) and isinstance(kind.get('Group'), list):
        return [str(member) for member in kind['Group']]
    return []


def council_vote_policy(role: dict[str, Any], policy: dict[str, Any]) -> dict[str, Any]:
    vote_policy = role.get('vote_policy') or {}
    distinct = {json.dumps(value, sort_keys=True) for value in vote_policy.values()}
    if len(distinct) > 1:
        raise PolicyError('council role has different vote policies')
    config = vote_policy.get('config')
    if config is None:
        config = policy.get('default_vote_policy')
    if not isinstance(config, dict):
        raise PolicyError('council role has no vote policy')
    return config


class SafeAdapter:
    def __init__(self, network: str, network_type: str, client: SafeClient) -> None:
        self.network = network
        self.network_type = network_type
        self.client = client

    async def fetch_multisig_owners(self, address: str, state: StateSpec | None = None) -> MultisigOwnersSpec | None:
        owners = await self.client.safe_owners(address)
        return MultisigOwnersSpec(owners=owners)

    async def fetch_multisig_spec(self, address: str, state: StateSpec | None = None) -> MultisigSpec | None:
        info = await self.client.safe_info(address)
        owners = info.get('owners') or []
        return MultisigSpec(
            policy=MultisigPolicy(owners=len(owners), threshold=int(info.get('threshold', 0))),
            version=info.get('version')
        )


class AstroDaoAdapter:
    """Reads a sputnik DAO council straight from its cached get_policy state."""

    def __init__(self, network_type: str, client: AstroDaoClient | None = None) -> None:
        self.network = 'near'
        self.network_type = network_type
        self.client = client

    def _policy(self, state: StateSpec | None) -> dict[str, Any] | None:
        if state is None or POLICY_METHOD not in state.methods:
            return None
        return parse_policy(state.methods[POLICY_METHOD])

    async def fetch_multisig_owners(self, address: str, state: StateSpec | None = None) -> MultisigOwnersSpec | None:
        policy = self._policy(state)
        if policy is None:
            return None
        council = find_council_role(policy)
        return MultisigOwnersSpec(owners=council_members(council))

    async def _version(self, address: str) -> str | None:
        if self.client is None:
            return None
        try:
            return await self.client.dao_version(address)
        except (httpx.HTTPError, UpstreamError) as exc:
            LOGGER.warning('unable to fetch dao version addr=%s error=%s', address, exc)
            return None

    async def fetch_multisig_spec(self, address: str, state: StateSpec | None = None) -> MultisigSpec | None:
        policy = self._policy(state)
        if policy is None:
            return None
        council = find_council_role(policy)
        vote_policy = council_vote_policy(council, policy)
        seats = len(council_members(council))
        if not seats:
            return None
        threshold = calculate_threshold(
            seats,
            vote_policy.get('threshold'),
            str(vote_policy.get('weight_kind', 'RoleWeight'))
        )
        return MultisigSpec(
            policy=MultisigPolicy(owners=seats, threshold=threshold),
            version=await self._version(address)
        )
