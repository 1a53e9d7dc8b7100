from __future__ import annotations

from ..exclusive import CacheHandle
from ..models import AddressNode, Declaration, Node, has_tag, to_ref, with_tags
from ..networks import EVM_NETWORKS
from ..relations import OWNED_BY
from .base import Emit, Stage


class UserStage(Stage):
    """Emits the wallets a user declares and links them back to the user.

    A user declares an EVM signer once; the same address on the other EVM
    networks is derived automatically.
    """

    name = 'user'

    async def post_process(self, node: Node, emit: Emit, cache: CacheHandle) -> Node:
        if isinstance(node, Declaration) and node.kind == 'User':
            await self.process_user(node, emit)
        return node

    async def _resolve(self, user: Declaration, ref: str) -> AddressNode:
        return await self.resolver.resolve_ref(
            ref,
            parent_tags=user.tags,
            owner=user.ref,
            parent_kind=user.kind,
            parent_name=user.name
        )

    async def process_user(self, user: Declaration, emit: Emit) -> None:
        if not user.interacts_with:
            return
        self.logger.debug('%s fetching user addresses', user.name)
        interacts_with = [await self._resolve(user, str(ref)) for ref in user.interacts_with]

        for address in list(interacts_with):
            if address.role != 'signer' or address.network == 'near':
                continue
            for network in EVM_NETWORKS:
                if any(other.network == network and other.address == address.address for other in interacts_with):
                    continue
                self.logger.debug('no %s signer for %s found, appending', network, address.address)
                twin = to_ref(address.role, network, address.network_type, address.address)
                interacts_with.append(await self._resolve(user, twin))

        self.logger.debug('%s fetching deprecated addresses', user.name)
        resolved = [await self._resolve(user, str(ref)) for ref in user.deprecated]
        deprecated_signers = [address for address in resolved if address.role == 'signer']
        deprecated_addresses = {address.address for address in deprecated_signers}
        retired = has_tag(user, 'retired')

        for address in interacts_with:
            if address.address in deprecated_addresses:
                continue
            if retired:
                address = with_tags(address, 'deprecated')
            self.emit_node(emit, address)
            self.emit_relation(emit, OWNED_BY, address, user)

        for address in deprecated_signers:
            address = with_tags(address, 'deprecated')
            self.emit_node(emit, address)
            self.emit_relation(emit, OWNED_BY, address, user)
