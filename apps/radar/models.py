from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, NamedTuple, TypeVar, Union

from .addresses import MAX_NAME_LENGTH, base58_sha256, human_friendly_address, normalize_address
from .errors import InvalidReferenceError, InvalidRoleError
from .networks import display_network_type
from .specs import MultisigSpec, NearKeysSpec, RbacSpec, SignerSpec, SourceSpec, StateSpec

ROLE_RE = re.compile(r'[\w-]+')
API_ROLES = ('contract', 'multisig', 'role-group')
SIGNER_KINDS = ('User', 'Group')
ENTITY_KINDS = ('API', 'Resource')
DEFAULT_NAMESPACE = 'default'
STUB_NAMESPACE = 'stub'


def validate_role(role: str) -> str:
    if not isinstance(role, str) or not ROLE_RE.fullmatch(role):
        raise InvalidRoleError(str(role))
    return role


def normalize_tag(tag: str) -> str:
    return re.sub(r'-+', '-', tag.replace('_', '-'))


def dashed(value: str) -> str:
    """Turn getOwner or OWNER_ROLE into get-owner or owner-role."""
    return re.sub(r'([a-z])([A-Z])', r'\1_\2', value).lower().replace('_', '-')


def make_name(network: str, network_type: str, address: str) -> str:
    if 'aurora-silo.near' in network_type:
        network_type = network_type.split('.')[0]
    name = f'{network}-{network_type}-{address}'
    if len(name) > MAX_NAME_LENGTH:
        return f'{network}-{network_type}-{base58_sha256(address)}'
    return name


def make_role_group_name(network: str, network_type: str, address: str, role_id: str) -> str:
    name = f'{network}-{network_type}-{address}-{role_id}'
    if len(name) > MAX_NAME_LENGTH:
        return base58_sha256(name)
    return name


def make_access_key_name(public_key: str) -> str:
    if len(public_key) > MAX_NAME_LENGTH:
        scheme = public_key.split(':', 1)[0]
        return f'{scheme}-{base58_sha256(public_key)}'
    return public_key.replace(':', '-', 1)


def is_valid_public_key(public_key: str) -> bool:
    return 'ed25519' in public_key or 'secp256k1' in public_key


class Reference(NamedTuple):
    role: str
    network: str
    network_type: str
    address: str


def parse_ref(ref: str) -> Reference:
    """Parse ``role:network/networkType/address``."""
    role, sep, composite = str(ref).strip().partition(':')
    parts = composite.split('/')
    if not sep or len(parts) != 3 or not all(parts):
        raise InvalidReferenceError(f'invalid reference {ref}')
    network, network_type, address = parts
    validate_role(role)
    return Reference(role, network, network_type, normalize_address(network, address))


def to_ref(role: str, network: str, network_type: str, address: str) -> str:
    return f'{role}:{network}/{network_type}/{address}'


@dataclass(frozen=True)
class AddressNode:
    network: str
    network_type: str
    address: str
    role: str = 'signer'
    stub: bool = False
    tags: tuple[str, ...] = ()
    owner: str = ''
    system: str = ''
    description: str = ''
    interactions: tuple[tuple[str, str], ...] = ()
    parent_kind: str = ''
    parent_name: str = ''
    keys: NearKeysSpec | None = None
    signer: SignerSpec | None = None

    def __post_init__(self) -> None:
        validate_role(self.role)
        object.__setattr__(self, 'address', normalize_address(self.network, self.address))


@dataclass(frozen=True)
class ContractNode(AddressNode):
    role: str = 'contract'
    definition: str = '{}'
    source: SourceSpec | None = None
    state: StateSpec | None = None
    rbac: RbacSpec | None = None


@dataclass(frozen=True)
class MultisigNode(ContractNode):
    role: str = 'multisig'
    owners: tuple[str, ...] = ()
    multisig: MultisigSpec | None = None


@dataclass(frozen=True)
class RoleGroupNode(AddressNode):
    role: str = 'role-group'
    role_id: str = ''
    role_name: str = ''
    admin: str = ''
    admin_of: tuple[str, ...] = ()
    members: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.role_id:
            raise InvalidRoleError('role group without role id')


@dataclass(frozen=True)
class AccessKeyNode:
    public_key: str
    network: str = 'near'
    network_type: str = 'mainnet'
    stub: bool = False
    tags: tuple[str, ...] = ()
    owner: str = ''
    system: str = ''
    role: str = 'access-key'

    def __post_init__(self) -> None:
        if not is_valid_public_key(self.public_key):
            raise InvalidReferenceError(f'invalid public key {self.public_key}')


@dataclass(frozen=True)
class Declaration:
    """Entity written by a human: a user, a group or a component."""

    kind: str
    name: str
    namespace: str = DEFAULT_NAMESPACE
    title: str = ''
    description: str = ''
    owner: str = ''
    system: str = ''
    component_type: str = ''
    lifecycle: str = 'production'
    tags: tuple[str, ...] = ()
    interacts_with: tuple[Any, ...] = ()
    deployed_at: tuple[str, ...] = ()
    deprecated: tuple[str, ...] = ()
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f'{self.kind.lower()}:{self.namespace}/{self.name}'


BlockchainNode = Union[MultisigNode, ContractNode, RoleGroupNode, AccessKeyNode, AddressNode]
Node = Union[Declaration, BlockchainNode]
N = TypeVar('N', AddressNode, ContractNode, MultisigNode, RoleGroupNode, AccessKeyNode, Declaration)


def node_name(node: Node) -> str:
    match node:
        case Declaration():
            return node.name
        case AccessKeyNode():
            return make_access_key_name(node.public_key)
        case RoleGroupNode():
            return make_role_group_name(node.network, node.network_type, node.address, node.role_id)
        case AddressNode():
            return make_name(node.network, node.network_type, node.address)
    raise TypeError(f'unsupported node {type(node).__name__}')


def node_kind(node: Node) -> str:
    match node:
        case Declaration():
            return node.kind
        case AccessKeyNode():
            return 'Resource'
        case AddressNode() if node.role in API_ROLES:
            return 'API'
    return 'Resource'


def node_namespace(node: Node) -> str:
    if isinstance(node, Declaration):
        return node.namespace
    return STUB_NAMESPACE if node.stub else DEFAULT_NAMESPACE


def entity_ref(kind: str, namespace: str, name: str) -> str:
    return f'{kind.lower()}:{namespace}/{name}'


def node_ref(node: Node) -> str:
    return entity_ref(node_kind(node), node_namespace(node), node_name(node))


def canonical_ref(node: Node) -> str:
    return entity_ref(node_kind(node), DEFAULT_NAMESPACE, node_name(node))


def canonical_refs(node: Node) -> list[str]:
    """Default-namespace refs under which node may be declared, own kind first."""
    kind = node_kind(node)
    others = [entity_ref(other, DEFAULT_NAMESPACE, node_name(node)) for other in ENTITY_KINDS if other != kind]
    return [canonical_ref(node), *others]


def identity(node: BlockchainNode) -> tuple[str, ...]:
    """What the node stands for on chain, whatever its role, kind or stub flag."""
    match node:
        case AccessKeyNode():
            return (node.network, node.public_key)
        case RoleGroupNode():
            return (node.network, node.network_type, node.address, node.role_id)
    return (node.network, node.network_type, node.address)


def node_type(node: BlockchainNode) -> str:
    match node:
        case AccessKeyNode():
            return 'access-key'
        case RoleGroupNode():
            return 'role-group'
        case MultisigNode():
            return 'multisig-deployment'
        case ContractNode():
            return 'contract-deployment'
    return f'{node.role}-address'


def node_title(node: Node) -> str:
    if isinstance(node, Declaration):
        return node.title or node.name
    parts = ['*'] if node.stub else []
    match node:
        case AccessKeyNode():
            scheme, _, key = node.public_key.partition(':')
            parts.append(f'{scheme}:{key[:5]}')
            return ' '.join(parts)
        case RoleGroupNode():
            parts.append(f'{node.network}:{human_friendly_address(node.network, node.address)}')
            parts.append('role-group')
            parts.append(node.role_name or node.role_id)
        case MultisigNode():
            parts.append(f'{node.network}:{human_friendly_address(node.network, node.address)}')
            parts.append('multisig')
            parts.append(display_network_type(node.network_type))
        case _:
            parts.append(f'{node.network}:{human_friendly_address(node.network, node.address)}')
            parts.append(node.role)
            if node.role == 'signer':
                parts.append(node.parent_name if node.parent_kind in SIGNER_KINDS else 'unknown')
    return ' '.join(parts)


def node_tags(node: Node) -> list[str]:
    if isinstance(node, Declaration):
        base: list[str] = []
    elif isinstance(node, AccessKeyNode):
        base = ['near']
    else:
        base = [node_type(node), node.network]
    if not isinstance(node, Declaration) and node.stub:
        base.append('stub')
    tags: list[str] = []
    for tag in [*base, *node.tags]:
        cleaned = normalize_tag(tag)
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


def has_tag(node: Node, tag: str) -> bool:
    return tag in node.tags


def with_tags(node: N, *tags: str) -> N:
    merged = list(node.tags)
    for tag in tags:
        cleaned = normalize_tag(tag)
        if cleaned not in merged:
            merged.append(cleaned)
    return replace(node, tags=tuple(merged))


def same_network(left: AddressNode, right: AddressNode) -> bool:
    return left.network == right.network and left.network_type == right.network_type
