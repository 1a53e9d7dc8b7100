from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Protocol

from .models import DEFAULT_NAMESPACE, Declaration, Node, identity, node_namespace, node_ref
from .relations import Relation

LOGGER = logging.getLogger('chainradar.catalog')


class CatalogStore(Protocol):
    async def get_by_ref(self, ref: str) -> Node | None: ...

    async def relations_from(self, ref: str, relation_type: str | None = None) -> list[Relation]: ...


class InMemoryCatalog:
    """Node store keyed by ``kind:namespace/name``.

    Blockchain nodes are also indexed by on-chain identity. A canonical node
    supersedes every stub with the same identity, whatever its kind, and a
    stub is never stored next to a canonical node for its identity.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._identities: dict[tuple[str, ...], set[str]] = {}
        self._superseded: dict[str, str] = {}
        self._relations: set[Relation] = set()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, ref: str) -> bool:
        return ref in self._nodes

    def upsert(self, node: Node) -> bool:
        ref = node_ref(node)
        if isinstance(node, Declaration):
            self._nodes[ref] = node
            return True

        refs = self._identities.setdefault(identity(node), set())
        if node.stub:
            canonical = next((other for other in sorted(refs) if not self._nodes[other].stub), None)
            if canonical is not None:
                LOGGER.debug('stub skipped, canonical exists ref=%s canonical=%s', ref, canonical)
                self._superseded[ref] = canonical
                return False
        else:
            for other in sorted(refs):
                if other != ref and self._nodes[other].stub:
                    LOGGER.info('stub superseded by canonical ref=%s stub=%s', ref, other)
                    del self._nodes[other]
                    refs.discard(other)
                    self._superseded[other] = ref
        self._nodes[ref] = node
        refs.add(ref)
        return True

    def superseded(self, ref: str) -> str:
        """Ref of the canonical node that took over ref, or ref itself."""
        return self._superseded.get(ref, ref)

    def add_relation(self, relation: Relation) -> None:
        self._relations.add(
            Relation(self.superseded(relation.source), relation.type, self.superseded(relation.target))
        )

    def replace(self, nodes: Iterable[Node], relations: Iterable[Relation]) -> None:
        """Swap the whole content for the outcome of one discovery pass."""
        self._nodes.clear()
        self._identities.clear()
        self._superseded.clear()
        self._relations.clear()
        for node in nodes:
            self.upsert(node)
        for relation in relations:
            self.add_relation(relation)

    def get(self, ref: str) -> Node | None:
        return self._nodes.get(ref)

    async def get_by_ref(self, ref: str) -> Node | None:
        return self._nodes.get(ref)

    async def relations_from(self, ref: str, relation_type: str | None = None) -> list[Relation]:
        return sorted(
            (
                relation
                for relation in self._relations
                if relation.source == ref and (relation_type is None or relation.type == relation_type)
            ),
            key=lambda relation: (relation.type, relation.target)
        )

    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def canonical_nodes(self) -> list[Node]:
        return [node for node in self._nodes.values() if node_namespace(node) == DEFAULT_NAMESPACE]

    def relations(self) -> list[Relation]:
        return sorted(self._relations, key=lambda relation: (relation.source, relation.type, relation.target))


class MemoryCache:
    """Per-node key/value cache handed to stages."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._values.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return list(self._values)
