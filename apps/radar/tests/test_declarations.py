import json
import tempfile
import unittest
from pathlib import Path

from apps.radar.declarations import load_declarations, parse_declaration


class DeclarationParsingTests(unittest.TestCase):
    def test_component(self) -> None:
        declaration = parse_declaration(
            {
                'kind': 'Component',
                'metadata': {
                    'name': 'aurora-engine',
                    'title': 'Aurora Engine',
                    'tags': ['allow-unknown', ' '],
                    'annotations': {'github.com/project-slug': 'aurora-is-near/aurora-engine'}
                },
                'spec': {
                    'owner': 'group:default/engine',
                    'system': 'aurora',
                    'type': 'contract',
                    'deployedAt': ['contract:near/mainnet/aurora'],
                    'interactsWith': ['signer:near/mainnet/ops.near']
                }
            }
        )

        self.assertEqual(declaration.ref, 'component:default/aurora-engine')
        self.assertEqual(declaration.component_type, 'contract')
        self.assertEqual(declaration.lifecycle, 'production')
        self.assertEqual(declaration.tags, ('allow-unknown',))
        self.assertEqual(declaration.deployed_at, ('contract:near/mainnet/aurora',))
        self.assertEqual(declaration.interacts_with, ('signer:near/mainnet/ops.near',))
        self.assertEqual(declaration.annotations, {'github.com/project-slug': 'aurora-is-near/aurora-engine'})

    def test_group_interactions_keep_descriptions(self) -> None:
        declaration = parse_declaration(
            {
                'kind': 'Group',
                'metadata': {'name': 'ops'},
                'spec': {
                    'interactsWith': [
                        {'name': 'signer:near/mainnet/ops.near', 'description': 'deployer'},
                        {'description': 'no name'},
                        'signer:ethereum/mainnet/0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359'
                    ]
                }
            }
        )

        self.assertEqual(
            declaration.interacts_with,
            (
                {'name': 'signer:near/mainnet/ops.near', 'description': 'deployer'},
                'signer:ethereum/mainnet/0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359'
            )
        )

    def test_rejects_unsupported_entries(self) -> None:
        self.assertIsNone(parse_declaration({'kind': 'System', 'metadata': {'name': 'aurora'}}))
        self.assertIsNone(parse_declaration({'kind': 'User', 'metadata': {}}))
        self.assertIsNone(parse_declaration(['User']))


class DeclarationFileTests(unittest.TestCase):
    def _write(self, payload) -> Path:
        handle = tempfile.NamedTemporaryFile('w', suffix='.json', delete=False, encoding='utf-8')
        with handle:
            handle.write(payload if isinstance(payload, str) else json.dumps(payload))
        self.addCleanup(Path(handle.name).unlink)
        return Path(handle.name)

    def test_loads_entities(self) -> None:
        path = self._write(
            {
                'entities': [
                    {'kind': 'User', 'metadata': {'name': 'alice', 'tags': ['retired']}, 'spec': {'deprecated': ['x']}},
                    {'kind': 'Location', 'metadata': {'name': 'elsewhere'}},
                    {'kind': 'Group', 'metadata': {'name': 'ops', 'namespace': 'infra'}}
                ]
            }
        )

        declarations = load_declarations(path)

        self.assertEqual([declaration.ref for declaration in declarations], ['user:default/alice', 'group:infra/ops'])
        self.assertEqual(declarations[0].deprecated, ('x',))

    def test_missing_or_broken_file(self) -> None:
        with self.assertLogs('chainradar.declarations', level='WARNING'):
            self.assertEqual(load_declarations('/nonexistent/declarations.json'), [])
        with self.assertLogs('chainradar.declarations', level='WARNING'):
            self.assertEqual(load_declarations(self._write('{"entities": [')), [])
        self.assertEqual(load_declarations(self._write({'entities': {'kind': 'User'}})), [])

    def test_sample_declarations_parse(self) -> None:
        path = Path(__file__).resolve().parents[3] / 'data' / 'declarations.json'

        declarations = load_declarations(path)

        self.assertTrue(declarations)
        self.assertEqual({declaration.kind for declaration in declarations}, {'User', 'Group', 'Component'})


if __name__ == '__main__':
    unittest.main()
