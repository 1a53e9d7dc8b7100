from __future__ import annotations


class RadarError(Exception):
    pass


class InvalidAddressError(RadarError, ValueError):
    def __init__(self, address: str, network: str = '') -> None:
        self.address = address
        self.network = network
        suffix = f' on {network}' if network else ''
        super().__init__(f'invalid address {address}{suffix}')


class InvalidRoleError(RadarError, ValueError):
    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f'invalid role {role}')


class InvalidReferenceError(RadarError, ValueError):
    pass


class PolicyError(RadarError):
    """Governance data on chain is malformed or cannot be interpreted."""


class UnsupportedWeightKindError(PolicyError, NotImplementedError):
    def __init__(self, weight_kind: str) -> None:
        self.weight_kind = weight_kind
        super().__init__(f'weight kind {weight_kind} is not implemented')


class UpstreamError(RadarError):
    """An explorer or RPC endpoint answered with an error payload."""


class UnknownRelationError(RadarError, KeyError):
    def __init__(self, relation: str) -> None:
        self.relation = relation
        super().__init__(relation)

    def __str__(self) -> str:
        return f'unknown relation type {self.relation}'


# data and input problems: retrying cannot fix them, the stage reports them instead
NON_RETRYABLE_ERRORS = (PolicyError, InvalidAddressError, InvalidRoleError, InvalidReferenceError)
