import os
import os.path
import tempfile

from unittest.mock import patch

from hpiref.lib.exceptions import HPIBadMagic, HPIDirectoryCycle
from hpiref.units.formats import PathPattern

from ... import TestUnitBase
from .... import make_archive


class TestHPIExtractor(TestUnitBase):

    def setUp(self):
        super().setUp()
        self.tree = {
            'gamedata': {
                'sidedata.tdf': B'[ARM]\n{\n\tname=Arm;\n}\n',
                'weapons': {'laser.tdf': B'[LASER]\n{\n\trange=300;\n}\n'},
            },
            'scripts': {'armcom.cob': bytes(range(256)) * 3},
            'readme.txt': B'Total Annihilation resource archive',
        }
        self.data = make_archive(self.tree, seed=0x7D, method=1, encrypt=True)

    def test_extract_everything(self):
        result = self.data | self.load() | {'path': bytes}
        self.assertEqual(result, {
            'gamedata/sidedata.tdf': B'[ARM]\n{\n\tname=Arm;\n}\n',
            'gamedata/weapons/laser.tdf': B'[LASER]\n{\n\trange=300;\n}\n',
            'scripts/armcom.cob': bytes(range(256)) * 3,
            'readme.txt': B'Total Annihilation resource archive',
        })

    def test_all_methods(self):
        for method in (0, 1, 2):
            data = make_archive(self.tree, seed=0x11, method=method)
            self.assertEqual(data | self.load('readme.txt') | bytes, B'Total Annihilation resource archive')

    def test_list(self):
        self.assertEqual(self.data | self.load(list=True) | [str], [
            'gamedata/sidedata.tdf',
            'gamedata/weapons/laser.tdf',
            'scripts/armcom.cob',
            'readme.txt',
        ])

    def test_list_is_separated_by_line_breaks(self):
        listing = self.data | self.load('*.tdf', list=True) | str
        self.assertEqual(listing, 'gamedata/sidedata.tdf\ngamedata/weapons/laser.tdf')

    def test_wildcards(self):
        paths = [chunk.meta['path'] for chunk in self.data | self.load('*.tdf') | [...]]
        self.assertEqual(paths, ['gamedata/sidedata.tdf', 'gamedata/weapons/laser.tdf'])

    def test_substring_fallback(self):
        self.assertEqual(self.data | self.load('weapons', list=True) | [str], ['gamedata/weapons/laser.tdf'])
        self.assertEqual(self.data | self.load('weapons', list=True, exact=True) | [str], [])

    def test_regular_expressions(self):
        result = self.data | self.load(R'.*\.(txt|cob)', regex=True, list=True) | [str]
        self.assertEqual(result, ['scripts/armcom.cob', 'readme.txt'])

    def test_custom_path_variable(self):
        chunk, = self.data | self.load('readme.txt', path='name') | [...]
        self.assertEqual(chunk.meta['name'], 'readme.txt')
        self.assertNotIn('path', chunk.meta)

    def test_output_directory(self):
        with tempfile.TemporaryDirectory() as root:
            written = self.data | self.load(output=root) | [str]
            self.assertEqual(len(written), 4)
            path = os.path.join(root, 'gamedata', 'weapons', 'laser.tdf')
            self.assertIn(path, written)
            with open(path, 'rb') as stream:
                self.assertEqual(stream.read(), B'[LASER]\n{\n\trange=300;\n}\n')

    def test_output_directory_with_pattern(self):
        with tempfile.TemporaryDirectory() as root:
            written = self.data | self.load('scripts/*', output=root) | [str]
            self.assertEqual(written, [os.path.join(root, 'scripts', 'armcom.cob')])
            self.assertEqual(os.listdir(root), ['scripts'])

    def test_output_directory_substring_fallback(self):
        with tempfile.TemporaryDirectory() as root:
            written = self.data | self.load('weapons', output=root) | [str]
            self.assertEqual(written, [os.path.join(root, 'gamedata', 'weapons', 'laser.tdf')])
        with tempfile.TemporaryDirectory() as root:
            written = self.data | self.load('weapons', output=root, exact=True) | [str]
            self.assertEqual(written, [])
            self.assertEqual(os.listdir(root), [])

    def test_patterns_are_compiled_once(self):
        with patch('hpiref.units.formats.PathPattern', wraps=PathPattern) as pattern:
            with tempfile.TemporaryDirectory() as root:
                self.data | self.load('*.tdf', 'readme.txt', output=root) | []
            self.assertEqual(pattern.call_count, 2)
            pattern.reset_mock()
            self.data | self.load('*.tdf', 'readme.txt') | []
            self.assertEqual(pattern.call_count, 2)

    def test_depth_limit(self):
        with self.assertRaises(HPIDirectoryCycle):
            self.data | self.load(depth=1) | []
        self.assertEqual(len(self.data | self.load(depth=2) | []), 4)

    def test_invalid_archive(self):
        with self.assertRaises(HPIBadMagic):
            B'BANK' + self.data[4:] | self.load() | []

    def test_errors_are_logged_when_attached(self):
        unit = self.load()
        unit.log_level = 0
        self.assertEqual(B'BANK' + self.data[4:] | unit | [], [])

    def test_command_line(self):
        unit = self.load_cmdline('-l', '-e', '*.tdf', 'readme.txt')
        self.assertEqual(unit.args.paths, ('*.tdf', 'readme.txt'))
        self.assertTrue(unit.args.list)
        self.assertTrue(unit.args.exact)
        self.assertIsNone(unit.args.output)
        self.assertEqual(self.data | unit | [str], [
            'gamedata/sidedata.tdf',
            'gamedata/weapons/laser.tdf',
            'readme.txt',
        ])

    def test_command_line_output_and_depth(self):
        with tempfile.TemporaryDirectory() as root:
            unit = self.load_cmdline('-o', root, '-m', '0x10')
            self.assertEqual(unit.args.output, root)
            self.assertEqual(unit.args.depth, 16)

    def test_handles(self):
        unit = self.unit()
        self.assertTrue(unit.handles(self.data))
        self.assertFalse(unit.handles(B'PK\x03\x04'))

    def test_saved_game(self):
        data = make_archive(self.tree, saved=True)
        self.assertEqual(len(data | self.load() | []), 4)
