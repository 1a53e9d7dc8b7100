from __future__ import annotations

import json
from typing import Any

from .models import (
    AccessKeyNode,
    AddressNode,
    ContractNode,
    Declaration,
    MultisigNode,
    Node,
    RoleGroupNode,
    node_kind,
    node_name,
    node_namespace,
    node_tags,
    node_title,
    node_type
)
from .networks import display_network_type, explorer_link_prefix, lifecycle, multisig_link
from .relations import Relation

API_VERSION = 'backstage.io/v1alpha1'

ROLE_GROUP_DEFINITION = json.dumps(
    {
        'id': 'string',
        'name': 'string',
        'admin': 'string',
        'adminOf': 'string[]',
        'members': 'string[]'
    }
)


def explorer_link(node: AddressNode) -> dict[str, str]:
    return {
        'url': explorer_link_prefix(node.network, node.network_type) + node.address,
        'title': ' '.join(['Explorer:', node.network, display_network_type(node.network_type), node.role])
    }


def _links(node: Node) -> list[dict[str, str]]:
    match node:
        case MultisigNode():
            return [explorer_link(node), multisig_link(node.network, node.network_type, node.address)]
        case AddressNode():
            return [explorer_link(node)]
    return []


def _description(node: Node) -> str:
    match node:
        case Declaration():
            return node.description
        case AccessKeyNode():
            return node.public_key
        case AddressNode() if node.description:
            return node.description
        case AddressNode():
            return f'{node.address} ({node.role} address)'
    return ''


def _address_spec(node: AddressNode) -> dict[str, Any]:
    spec: dict[str, Any] = {
        'type': node_type(node),
        'address': node.address,
        'role': node.role,
        'network': node.network,
        'networkType': node.network_type,
        'lifecycle': lifecycle(node.network_type)
    }
    if node.owner:
        spec['owner'] = node.owner
    if node.system:
        spec['system'] = node.system
    if node.interactions:
        spec['interactions'] = dict(node.interactions)
    if node.keys is not None:
        spec['keys'] = node.keys.to_payload()
    if node.signer is not None:
        spec['signer'] = node.signer.to_payload()
    return spec


def _spec(node: Node) -> dict[str, Any]:
    match node:
        case Declaration():
            spec: dict[str, Any] = {'lifecycle': node.lifecycle}
            if node.component_type:
                spec['type'] = node.component_type
            for key, value in (('owner', node.owner), ('system', node.system)):
                if value:
                    spec[key] = value
            if node.deployed_at:
                spec['deployedAt'] = list(node.deployed_at)
            if node.interacts_with:
                spec['interactsWith'] = list(node.interacts_with)
            if node.deprecated:
                spec['deprecated'] = list(node.deprecated)
            return spec
        case AccessKeyNode():
            spec = {'type': 'access-key', 'publicKey': node.public_key, 'network': node.network}
            if node.owner:
                spec['owner'] = node.owner
            return spec
        case RoleGroupNode():
            spec = _address_spec(node)
            spec.update(
                {
                    'definition': ROLE_GROUP_DEFINITION,
                    'roleId': node.role_id,
                    'roleName': node.role_name or node.role_id,
                    'admin': node.admin,
                    'adminOf': list(node.admin_of),
                    'members': list(node.members)
                }
            )
            return spec
        case ContractNode():
            spec = _address_spec(node)
            deployment: dict[str, Any] = {}
            for key, value in (('source', node.source), ('state', node.state), ('rbac', node.rbac)):
                if value is not None:
                    deployment[key] = value.to_payload()
            spec['definition'] = node.definition
            spec['deployment'] = deployment
            if isinstance(node, MultisigNode):
                spec['multisig'] = node.multisig.to_payload() if node.multisig is not None else {}
                if node.owners:
                    spec['owners'] = list(node.owners)
            return spec
        case AddressNode():
            return _address_spec(node)
    raise TypeError(f'unsupported node {type(node).__name__}')


def to_record(node: Node) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        'name': node_name(node),
        'namespace': node_namespace(node),
        'title': node_title(node),
        'tags': node_tags(node),
        'description': _description(node)
    }
    links = _links(node)
    if links:
        metadata['links'] = links
    if isinstance(node, Declaration) and node.annotations:
        metadata['annotations'] = dict(node.annotations)
    return {
        'apiVersion': API_VERSION,
        'kind': node_kind(node),
        'metadata': metadata,
        'spec': _spec(node)
    }


def relation_record(relation: Relation) -> dict[str, str]:
    return {'source': relation.source, 'type': relation.type, 'target': relation.target}
