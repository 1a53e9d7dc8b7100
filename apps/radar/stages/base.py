from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from ..adapters.registry import AdapterRegistry
from ..catalog import CatalogStore
from ..config import Settings, get_settings
from ..exclusive import CacheHandle, MutexRegistry, is_fresh, load_spec, run_exclusive, store_spec
from ..metrics import NODES_EMITTED_TOTAL
from ..models import Declaration, Node, node_ref
from ..relations import relation_pair
from ..resolution import AddressResolver
from ..specs import CacheableSpec

S = TypeVar('S', bound=CacheableSpec)
T = TypeVar('T')

Emit = Callable[[str, Any], None]


@dataclass
class StageContext:
    """Shared collaborators handed to every stage of one pipeline."""

    store: CatalogStore
    settings: Settings = field(default_factory=get_settings)
    mutexes: MutexRegistry = field(default_factory=MutexRegistry)
    adapters: AdapterRegistry | None = None

    def __post_init__(self) -> None:
        if self.adapters is None:
            self.adapters = AdapterRegistry(self.settings)
        self.resolver = AddressResolver(self.adapters, self.store)


def owner_ref(node: Node) -> str:
    """Owner reference a child of node should carry."""
    if isinstance(node, Declaration):
        if node.kind in ('User', 'Group'):
            return node.ref
        return node.owner
    return node.owner


class Stage:
    name = 'stage'

    def __init__(self, context: StageContext) -> None:
        self.context = context
        self.logger = logging.getLogger(f'chainradar.stages.{self.name}')

    @property
    def settings(self) -> Settings:
        return self.context.settings

    @property
    def store(self) -> CatalogStore:
        return self.context.store

    @property
    def adapters(self) -> AdapterRegistry:
        return self.context.adapters

    @property
    def resolver(self) -> AddressResolver:
        return self.context.resolver

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        return node

    async def run_exclusive(self, action: str, address: str, callback: Callable[[], Awaitable[T]]) -> T | None:
        return await run_exclusive(
            self.context.mutexes,
            self.name,
            action,
            address,
            callback,
            retries=self.settings.exclusive_retries,
            delay_seconds=self.settings.request_delay_seconds
        )

    async def refresh(
        self,
        cache: CacheHandle,
        action: str,
        model: type[S],
        address: str,
        fetch: Callable[[], Awaitable[S | None]]
    ) -> S | None:
        """Cached spec while fresh, otherwise a guarded refetch.

        A failed or empty fetch leaves the cached spec as it was.
        """
        cached = await load_spec(cache, action, model)
        if is_fresh(cached, self.settings.cache_ttl_minutes):
            return cached
        fetched = await self.run_exclusive(action, address, fetch)
        if fetched is None:
            return cached
        await store_spec(cache, action, fetched)
        return fetched

    def emit_node(self, emit: Emit, node: Node) -> None:
        NODES_EMITTED_TOTAL.labels(stage=self.name, kind='node').inc()
        emit('node', node)

    def emit_relation(self, emit: Emit, relation_type: str, source: Node, target: Node) -> None:
        forward, inverse = relation_pair(relation_type, node_ref(source), node_ref(target))
        self.logger.debug('%s %s %s', forward.source, forward.type, forward.target)
        NODES_EMITTED_TOTAL.labels(stage=self.name, kind='relation').inc()
        emit('relation', forward)
        emit('relation', inverse)