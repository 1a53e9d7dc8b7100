from __future__ import annotations

from dataclasses import dataclass

from .errors import UnknownRelationError

OWNER_OF = 'ownerOf'
OWNED_BY = 'ownedBy'
PROVIDES_API = 'providesApi'
API_PROVIDED_BY = 'apiProvidedBy'
DEPENDS_ON = 'dependsOn'
DEPENDENCY_OF = 'dependencyOf'
CONSUMES_API = 'consumesApi'
API_CONSUMED_BY = 'apiConsumedBy'
HAS_MEMBER = 'hasMember'
MEMBER_OF = 'memberOf'

_PAIRS = (
    (OWNER_OF, OWNED_BY),
    (PROVIDES_API, API_PROVIDED_BY),
    (DEPENDS_ON, DEPENDENCY_OF),
    (CONSUMES_API, API_CONSUMED_BY),
    (HAS_MEMBER, MEMBER_OF)
)

INVERSE_RELATIONS: dict[str, str] = {}
for _forward, _backward in _PAIRS:
    INVERSE_RELATIONS[_forward] = _backward
    INVERSE_RELATIONS[_backward] = _forward


@dataclass(frozen=True)
class Relation:
    source: str
    type: str
    target: str


def inverse_of(relation_type: str) -> str:
    try:
        return INVERSE_RELATIONS[relation_type]
    except KeyError:
        raise UnknownRelationError(relation_type) from None


def relation_pair(relation_type: str, source_ref: str, target_ref: str) -> tuple[Relation, Relation]:
    """Both directed edges for one relationship, forward edge first."""
    inverse = inverse_of(relation_type)
    return (
        Relation(source=source_ref, type=relation_type, target=target_ref),
        Relation(source=target_ref, type=inverse, target=source_ref)
    )
