from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .adapters.registry import AdapterRegistry
from .catalog import InMemoryCatalog, MemoryCache
from .config import Settings, get_settings
from .exclusive import MutexRegistry
from .models import Node, node_ref
from .relations import Relation
from .stages.base import Stage, StageContext
from .stages.contract import ContractStage
from .stages.group import GroupStage
from .stages.multisig import MultisigStage
from .stages.near_keys import NearKeysStage
from .stages.role_group import RoleGroupStage
from .stages.security_policy import SecurityPolicyStage
from .stages.signer import SignerStage
from .stages.sputnik import SputnikStage
from .stages.user import UserStage

LOGGER = logging.getLogger('chainradar.pipeline')

STAGE_ORDER: tuple[type[Stage], ...] = (
    UserStage,
    GroupStage,
    SignerStage,
    ContractStage,
    MultisigStage,
    RoleGroupStage,
    SputnikStage,
    NearKeysStage,
    SecurityPolicyStage
)


@dataclass
class PassResult:
    processed: list[Node] = field(default_factory=list)
    emitted: list[Node] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass
class _NodeOutcome:
    node: Node
    emitted: list[Node] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    def emit(self, kind: str, payload: Any) -> None:
        if kind == 'node':
            self.emitted.append(payload)
        elif kind == 'relation':
            self.relations.append(payload)
        elif kind == 'error':
            self.errors.append(payload)
        else:
            raise ValueError(f'unknown emit kind {kind}')


class DiscoveryPipeline:
    """Drives declared and discovered nodes through the stages, one pass at a time.

    Nodes are processed concurrently; within a node the stages run in
    STAGE_ORDER. Every pass starts from the declared nodes plus the nodes
    emitted by the previous pass, never from processed snapshots, so tags and
    edges derived in one pass do not outlive the facts behind them. The
    catalog is then replaced with this pass's nodes, the processed version
    winning over the emitted one, and with this pass's relations only.
    """

    def __init__(
        self,
        catalog: InMemoryCatalog | None = None,
        *,
        settings: Settings | None = None,
        adapters: AdapterRegistry | None = None,
        mutexes: MutexRegistry | None = None,
        stages: Iterable[type[Stage]] = STAGE_ORDER
    ) -> None:
        self.catalog = catalog or InMemoryCatalog()
        settings = settings or get_settings()
        self.context = StageContext(
            store=self.catalog,
            settings=settings,
            mutexes=mutexes or MutexRegistry(),
            adapters=adapters or AdapterRegistry(settings)
        )
        self.stages = [stage(self.context) for stage in stages]
        self._caches: dict[str, MemoryCache] = {}
        self._declared: dict[str, Node] = {}
        self._emitted: list[Node] = []

    def declare(self, nodes: Iterable[Node]) -> None:
        for node in nodes:
            self._declared[node_ref(node)] = node
            self.catalog.upsert(node)

    def _base_nodes(self, emitted: Iterable[Node]) -> list[Node]:
        """Declared nodes plus emitted ones, stubs dropped where a canonical exists."""
        staging = InMemoryCatalog()
        for node in emitted:
            staging.upsert(node)
        for node in self._declared.values():
            staging.upsert(node)
        return staging.nodes()

    def cache_for(self, node: Node) -> MemoryCache:
        ref = node_ref(node)
        cache = self._caches.get(ref)
        if cache is None:
            cache = MemoryCache()
            self._caches[ref] = cache
        return cache

    async def process(self, node: Node) -> _NodeOutcome:
        outcome = _NodeOutcome(node)
        cache = self.cache_for(node)
        for stage in self.stages:
            try:
                outcome.node = await stage.post_process(outcome.node, outcome.emit, cache)
            except Exception as exc:
                ref = node_ref(outcome.node)
                LOGGER.exception('stage failed stage=%s ref=%s', stage.name, ref)
                outcome.emit('error', {'ref': ref, 'stage': stage.name, 'message': str(exc)})
        return outcome

    async def run_pass(self) -> PassResult:
        inputs = self._base_nodes(self._emitted)
        LOGGER.info('discovery pass started nodes=%s', len(inputs))
        outcomes = await asyncio.gather(*(self.process(node) for node in inputs))

        result = PassResult()
        processed: dict[str, Node] = {}
        for node, outcome in zip(inputs, outcomes):
            processed[node_ref(node)] = outcome.node
            result.processed.append(outcome.node)
            result.emitted.extend(outcome.emitted)
            result.relations.extend(outcome.relations)
            result.errors.extend(outcome.errors)

        self._emitted = result.emitted
        discovered = [*result.emitted, *self._declared.values()]
        published = [processed.get(node_ref(node), node) for node in discovered]
        self.catalog.replace(published, result.relations)

        LOGGER.info(
            'discovery pass finished processed=%s emitted=%s relations=%s errors=%s',
            len(result.processed),
            len(result.emitted),
            len(result.relations),
            len(result.errors)
        )
        return result

    async def run(self, passes: int = 1) -> list[PassResult]:
        return [await self.run_pass() for _ in range(passes)]
