from __future__ import annotations

from dataclasses import replace

from ..exclusive import CacheHandle
from ..models import AddressNode, Node
from ..specs import SignerSpec
from .base import Emit, Stage

SIGNER_INFO_RUN_ID = 'signer-info-fetch'


class SignerStage(Stage):
    """Records when an EVM signer last signed a transaction."""

    name = 'signer'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if type(node) is AddressNode and node.role == 'signer' and node.network != 'near':
            return await self.process_signer(node, cache)
        return node

    async def process_signer(self, signer: AddressNode, cache: CacheHandle) -> AddressNode:
        adapter = self.adapters.network(signer.network, signer.network_type)

        async def fetch() -> SignerSpec | None:
            last_tx = await adapter.fetch_last_transaction(signer.address)
            if last_tx is None:
                return None
            return SignerSpec(last_signed=(last_tx.timestamp or 0) * 1000)

        spec = await self.refresh(cache, SIGNER_INFO_RUN_ID, SignerSpec, signer.address, fetch)
        if spec is None:
            return signer
        return replace(signer, signer=spec)
