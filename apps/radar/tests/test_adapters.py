import base64
import json
import unittest
from unittest.mock import AsyncMock, MagicMock

from web3.exceptions import ContractLogicError

from apps.radar.adapters.evm import EvmAdapter, etherscan_transaction
from apps.radar.adapters.near import EMPTY_CODE_HASH, NearAdapter, nearblocks_transaction
from apps.radar.errors import UpstreamError
from apps.radar.specs import SourceSpec

OWNER = '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
CONTRACT = '0x' + '2' * 40


def wasm_module(*exports: tuple[str, int]) -> bytes:
    body = bytes([len(exports)])
    for name, kind in exports:
        encoded = name.encode('utf-8')
        body += bytes([len(encoded)]) + encoded + bytes([kind, 0])
    return b'\x00asm\x01\x00\x00\x00' + bytes([7, len(body)]) + body


def _reader(name: str, *output_types: str) -> dict:
    return {
        'type': 'function',
        'name': name,
        'inputs': [],
        'outputs': [{'name': '', 'type': output_type} for output_type in output_types],
        'stateMutability': 'view'
    }


class FakeNearRpc:
    """Answers the NEAR RPC calls the adapter makes from in-memory tables."""

    def __init__(self, code: bytes = b'', results: dict | None = None, keys: list | None = None) -> None:
        self.code = code
        self.results = results or {}
        self.keys = keys or []
        self.calls: list[str] = []

    async def view_account(self, account_id: str) -> dict:
        if account_id == 'missing.near':
            raise UpstreamError('UNKNOWN_ACCOUNT')
        code_hash = 'Fk3G3e1iSP9DqbX8y9rp8ax6xA3nEJ7Q2CaY4GUXDzqm' if self.code else EMPTY_CODE_HASH
        return {'amount': '1', 'code_hash': code_hash}

    async def view_code(self, account_id: str) -> str:
        return base64.b64encode(self.code).decode('ascii')

    async def view_access_key_list(self, account_id: str) -> list:
        return self.keys

    async def call_function(self, account_id: str, method_name: str, args_base64: str = '') -> bytes:
        self.calls.append(method_name)
        result = self.results.get(method_name)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise UpstreamError(f'MethodNotFound {method_name}')
        return result


class EvmAdapterTests(unittest.IsolatedAsyncioTestCase):
    async def test_state_classification(self) -> None:
        abi = [
            _reader('owner', 'address'),
            _reader('paused', 'bool'),
            _reader('DEFAULT_ADMIN_ROLE', 'bytes32'),
            _reader('limits', 'uint256', 'uint256'),
            _reader('broken', 'uint256'),
            {'type': 'function', 'name': 'balanceOf', 'inputs': [{'type': 'address'}], 'outputs': [], 'stateMutability': 'view'},
            {'type': 'function', 'name': 'pause', 'inputs': [], 'outputs': [], 'stateMutability': 'nonpayable'},
            {'type': 'event', 'name': 'Paused', 'inputs': []}
        ]
        values = {
            'owner': [OWNER],
            'paused': [False],
            'DEFAULT_ADMIN_ROLE': [b'\x00' * 32],
            'limits': [10, 2**80]
        }

        async def call_view(address: str, entry: dict) -> list:
            if entry['name'] == 'broken':
                raise ContractLogicError('execution reverted')
            return values[entry['name']]

        adapter = EvmAdapter('ethereum', 'mainnet', web3=MagicMock(), request_delay_seconds=0)
        adapter._call_view = AsyncMock(side_effect=call_view)

        state = await adapter.fetch_state_spec(CONTRACT, SourceSpec(abi=json.dumps(abi)))

        self.assertEqual(state.interacts_with, {'owner': OWNER})
        self.assertEqual(
            state.methods,
            {
                'DEFAULT_ADMIN_ROLE': '0x' + '00' * 32,
                'paused': 'false',
                'limits': f'[10,{2**80}]'
            }
        )
        called = [call.args[1]['name'] for call in adapter._call_view.await_args_list]
        self.assertEqual(called[0], 'DEFAULT_ADMIN_ROLE')
        self.assertNotIn('balanceOf', called)
        self.assertNotIn('pause', called)

    async def test_no_state_without_abi(self) -> None:
        adapter = EvmAdapter('ethereum', 'mainnet', web3=MagicMock(), request_delay_seconds=0)
        self.assertIsNone(await adapter.fetch_state_spec(CONTRACT, None))
        self.assertIsNone(await adapter.fetch_state_spec(CONTRACT, SourceSpec(abi='not json')))

    async def test_is_contract(self) -> None:
        web3 = MagicMock()
        web3.eth.get_code = AsyncMock(return_value=b'\x60\x80')
        adapter = EvmAdapter('aurora', 'mainnet', web3=web3, request_delay_seconds=0)
        self.assertTrue(await adapter.is_contract(CONTRACT))

        web3.eth.get_code = AsyncMock(return_value=b'')
        self.assertFalse(await adapter.is_contract(CONTRACT))

        web3.eth.get_code = AsyncMock(side_effect=ConnectionError('rpc down'))
        self.assertFalse(await adapter.is_contract(CONTRACT))

    async def test_transactions_from_explorer(self) -> None:
        explorer = MagicMock()
        explorer.fetch_transactions = AsyncMock(return_value=[{'hash': '0x1', 'blockNumber': '5', 'timeStamp': '1700000000'}])
        adapter = EvmAdapter('ethereum', 'mainnet', explorer=explorer, request_delay_seconds=0)

        tx = await adapter.fetch_last_transaction(OWNER)

        self.assertEqual(tx.timestamp, 1700000000)
        self.assertEqual(tx.block_number, 5)
        explorer.fetch_transactions.assert_awaited_once_with(OWNER, sort='desc', offset=1)

        explorer.fetch_transactions = AsyncMock(side_effect=UpstreamError('rate limited'))
        self.assertIsNone(await adapter.fetch_first_transaction(OWNER))

    def test_etherscan_transaction(self) -> None:
        tx = etherscan_transaction({'hash': '0x1', 'blockNumber': 'pending', 'timeStamp': '17', 'from': OWNER})
        self.assertIsNone(tx.block_number)
        self.assertEqual(tx.timestamp, 17)
        self.assertEqual(tx.signer, OWNER)


class NearAdapterTests(unittest.IsolatedAsyncioTestCase):
    async def test_source_and_state(self) -> None:
        rpc = FakeNearRpc(
            code=wasm_module(('new', 0), ('get_owner', 0), ('state_version', 0), ('get_config', 0), ('binary', 0)),
            results={
                'get_owner': b'"Owner.NEAR"',
                'state_version': b'"1.2.3"',
                'get_config': b'{"fee":3,"paused":false}',
                'binary': b'\xff\xfe',
                'new': UpstreamError('contract already initialized')
            }
        )
        adapter = NearAdapter('mainnet', rpc=rpc, request_delay_seconds=0)

        source = await adapter.fetch_source_spec('bridge.near')
        state = await adapter.fetch_state_spec('bridge.near', source)

        self.assertFalse(source.source_code_verified)
        self.assertEqual(json.loads(source.abi), {'new': [], 'get_owner': [], 'state_version': [], 'get_config': [], 'binary': []})
        self.assertIsNone(source.start_block)
        self.assertEqual(state.interacts_with, {'get_owner': 'owner.near'})
        self.assertEqual(state.methods, {'state_version': '"1.2.3"', 'get_config': '{"fee":3,"paused":false}'})

    async def test_unparseable_code(self) -> None:
        adapter = NearAdapter('mainnet', rpc=FakeNearRpc(code=b'not wasm'), request_delay_seconds=0)
        self.assertIsNone(await adapter.fetch_source_spec('bridge.near'))

    async def test_is_contract(self) -> None:
        self.assertTrue(await NearAdapter('mainnet', rpc=FakeNearRpc(code=wasm_module())).is_contract('bridge.near'))
        self.assertFalse(await NearAdapter('mainnet', rpc=FakeNearRpc()).is_contract('alice.near'))
        self.assertFalse(await NearAdapter('mainnet', rpc=FakeNearRpc()).is_contract('missing.near'))

    async def test_keys(self) -> None:
        rpc = FakeNearRpc(
            keys=[
                {'public_key': 'ed25519:full', 'access_key': {'nonce': 1, 'permission': 'FullAccess'}},
                {
                    'public_key': 'ed25519:call',
                    'access_key': {
                        'nonce': 2,
                        'permission': {'FunctionCall': {'allowance': None, 'receiver_id': 'app.near', 'method_names': []}}
                    }
                }
            ]
        )

        keys = await NearAdapter('mainnet', rpc=rpc).keys('alice.near')

        self.assertEqual(keys['ed25519:full'], '"FullAccess"')
        self.assertEqual(
            keys['ed25519:call'],
            '{"FunctionCall":{"allowance":null,"receiver_id":"app.near","method_names":[]}}'
        )

    def test_nearblocks_transaction(self) -> None:
        tx = nearblocks_transaction(
            {
                'transaction_hash': 'abc',
                'block': {'block_height': 100},
                'block_timestamp': '1700000000123456789',
                'predecessor_account_id': 'alice.near',
                'receiver_account_id': 'app.near'
            }
        )
        self.assertEqual(tx.block_number, 100)
        self.assertEqual(tx.timestamp, 1700000000)
        self.assertEqual(tx.signer, 'alice.near')


if __name__ == '__main__':
    unittest.main()
