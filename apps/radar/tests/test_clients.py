import json
import unittest

import httpx

from apps.radar.adapters.wasm import exported_functions
from apps.radar.clients.etherscan import ETHERSCAN_HEADER, EtherscanClient, process_result
from apps.radar.clients.near import NearBlocksClient, NearRpcClient
from apps.radar.errors import UpstreamError

ADDRESS = '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'


def wasm_module(*exports: tuple[str, int]) -> bytes:
    body = bytes([len(exports)])
    for name, kind in exports:
        encoded = name.encode('utf-8')
        body += bytes([len(encoded)]) + encoded + bytes([kind, 0])
    # a type section ahead of the exports must be skipped
    return b'\x00asm\x01\x00\x00\x00' + bytes([1, 1, 0]) + bytes([7, len(body)]) + body


class ProcessResultTests(unittest.TestCase):
    def test_unverified(self) -> None:
        self.assertIsNone(process_result({'SourceCode': '', 'ABI': 'Contract source code not verified'}))

    def test_vyper(self) -> None:
        info = process_result(
            {'SourceCode': '# @version 0.3.7', 'ABI': '[]', 'ContractName': 'Vault', 'CompilerVersion': 'vyper:0.3.7'}
        )
        self.assertEqual(info.language, 'Vyper')
        self.assertEqual(info.compiler_version, '0.3.7')
        self.assertEqual(list(info.sources), ['Vault.vy'])

    def test_multi_file(self) -> None:
        source = json.dumps({'contracts/Token.sol': {'content': 'contract Token {}'}, 'lib/Math': {'content': 'library Math {}'}})
        info = process_result({'SourceCode': source, 'ABI': '[]', 'ContractName': 'Token', 'CompilerVersion': 'v0.8.19'})
        self.assertEqual(info.sources, {'contracts/Token.sol': 'contract Token {}', 'lib/Math.sol': 'library Math {}'})

    def test_standard_json_input(self) -> None:
        inner = json.dumps({'language': 'Solidity', 'sources': {'Bridge.sol': {'content': 'contract Bridge {}'}}})
        info = process_result({'SourceCode': '{' + inner + '}', 'ABI': '[]', 'ContractName': 'Bridge', 'CompilerVersion': 'v0.8.4'})
        self.assertEqual(info.language, 'Solidity')
        self.assertEqual(info.sources, {'Bridge.sol': 'contract Bridge {}'})

    def test_single_file(self) -> None:
        info = process_result(
            {'SourceCode': 'contract Lock {}', 'ABI': '[]', 'ContractName': 'Lock', 'CompilerVersion': 'v0.8.0'}
        )
        self.assertEqual(info.sources, {'Lock.sol': ETHERSCAN_HEADER + 'contract Lock {}'})


class EtherscanClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(200, json=self.responses.pop(0))

        self.http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.client = EtherscanClient('mainnet', 'key', client=self.http)
        self.client.delay_seconds = 0

    async def asyncTearDown(self) -> None:
        await self.http.aclose()

    async def test_transactions_use_api_key(self) -> None:
        self.responses.append({'status': '1', 'message': 'OK', 'result': [{'hash': '0xabc', 'timeStamp': '1700000000'}]})

        txs = await self.client.fetch_transactions(ADDRESS, offset=1)

        self.assertEqual(txs, [{'hash': '0xabc', 'timeStamp': '1700000000'}])
        params = self.requests[0].url.params
        self.assertEqual(params['apikey'], 'key')
        self.assertEqual(params['action'], 'txlist')
        self.assertEqual(params['offset'], '1')
        self.assertEqual(self.requests[0].url.host, 'api.etherscan.io')

    async def test_no_transactions_is_empty(self) -> None:
        self.responses.append({'status': '0', 'message': 'No transactions found', 'result': []})

        self.assertEqual(await self.client.fetch_transactions(ADDRESS), [])

    async def test_error_status_raises(self) -> None:
        self.responses.append({'status': '0', 'message': 'NOTOK', 'result': 'Max rate limit reached'})

        with self.assertRaises(UpstreamError) as ctx:
            await self.client.fetch_transactions(ADDRESS)
        self.assertIn('Max rate limit reached', str(ctx.exception))

    async def test_proxy_sources_are_merged(self) -> None:
        implementation = '0x' + '1' * 40
        self.responses.append(
            {
                'status': '1',
                'result': [
                    {
                        'SourceCode': 'contract Proxy {}',
                        'ABI': '[]',
                        'ContractName': 'Proxy',
                        'CompilerVersion': 'v0.8.0',
                        'Proxy': '1',
                        'Implementation': implementation
                    }
                ]
            }
        )
        self.responses.append(
            {
                'status': '1',
                'result': [{'SourceCode': 'contract Impl {}', 'ABI': '[]', 'ContractName': 'Impl', 'CompilerVersion': 'v0.8.0'}]
            }
        )

        info = await self.client.fetch_sources(ADDRESS)

        self.assertEqual(info.contract_name, 'Impl')
        self.assertEqual(sorted(info.sources), ['Impl.sol', 'Proxy.sol'])
        self.assertEqual(self.requests[1].url.params['address'], implementation)

    async def test_creation_transaction_is_looked_up_by_hash(self) -> None:
        self.responses.append({'creation_tx_hash': '0xfeed'})
        self.responses.append({'status': '1', 'result': {'blockNumber': '12', 'timeStamp': '1700000000', 'from': '0x2'}})

        tx = await self.client.fetch_creation_transaction(ADDRESS)

        self.assertEqual(tx['hash'], '0xfeed')
        self.assertEqual(tx['blockNumber'], '12')
        self.assertEqual(self.requests[1].url.params['txhash'], '0xfeed')

    async def test_keyless_explorer_omits_api_key(self) -> None:
        client = EtherscanClient('aurora', 'ignored', client=self.http)
        client.delay_seconds = 0
        self.responses.append({'status': '1', 'result': []})

        await client.fetch_transactions(ADDRESS)

        self.assertNotIn('apikey', self.requests[0].url.params)
        self.assertEqual(self.requests[0].url.host, 'explorer.mainnet.aurora.dev')


class NearClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_rpc_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'error': {'name': 'HANDLER_ERROR'}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            rpc = NearRpcClient('https://rpc.example.org', client=http)
            with self.assertRaises(UpstreamError):
                await rpc.view_account('alice.near')

    async def test_function_call_failure_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'result': {'error': 'MethodNotFound'}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            rpc = NearRpcClient('https://rpc.example.org', client=http)
            with self.assertRaises(UpstreamError):
                await rpc.call_function('aurora', 'missing')

    async def test_call_function_returns_bytes(self) -> None:
        sent: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'result': {'result': list(b'"owner.near"')}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            rpc = NearRpcClient('https://rpc.example.org', client=http)
            raw = await rpc.call_function('aurora', 'get_owner')

        self.assertEqual(raw, b'"owner.near"')
        self.assertEqual(sent[0]['params']['request_type'], 'call_function')
        self.assertEqual(sent[0]['params']['method_name'], 'get_owner')
        self.assertEqual(sent[0]['params']['finality'], 'optimistic')

    async def test_nearblocks_transactions(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, '/v1/account/alice.near/txns')
            self.assertEqual(request.url.params['order'], 'asc')
            return httpx.Response(200, json={'txns': [{'transaction_hash': 'abc'}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = NearBlocksClient('https://api.example.org/v1', 'token', delay_seconds=0, client=http)
            tx = await client.first_transaction('alice.near')

        self.assertEqual(tx, {'transaction_hash': 'abc'})


class WasmTests(unittest.TestCase):
    def test_function_exports(self) -> None:
        code = wasm_module(('new', 0), ('memory', 2), ('get_owner', 0), ('state_version', 0))
        self.assertEqual(exported_functions(code), ['new', 'get_owner', 'state_version'])

    def test_no_export_section(self) -> None:
        self.assertEqual(exported_functions(b'\x00asm\x01\x00\x00\x00'), [])

    def test_bad_magic(self) -> None:
        with self.assertRaises(ValueError):
            exported_functions(b'\x7fELF\x01\x00\x00\x00')

    def test_truncated_section(self) -> None:
        with self.assertRaises(ValueError):
            exported_functions(b'\x00asm\x01\x00\x00\x00' + bytes([7, 20, 1]))


if __name__ == '__main__':
    unittest.main()
