"""Tests for per-file conversion and the console entry point."""

import json
import sys

import pytest
from PIL import Image

from tilesmith import __main__ as cli
from tilesmith.build_worker import BuildOptions, convert_tiled_file, output_path_for

TOWN = """<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" tiledversion="1.10.2" orientation="orthogonal" renderorder="right-down"
     width="2" height="1" tilewidth="16" tileheight="16" infinite="0" nextlayerid="2" nextobjectid="1">
 <tileset firstgid="1" source="../tilesets/town.tsx"/>
 <layer id="1" name="Ground" width="2" height="1"><data encoding="csv">1,2</data></layer>
</map>
"""

TILESET = """<?xml version="1.0" encoding="UTF-8"?>
<tileset version="1.10" tiledversion="1.10.2" name="town" tilewidth="16" tileheight="16" tilecount="2" columns="2">
 <image source="town.png" width="32" height="16"/>
</tileset>
"""


@pytest.fixture
def project(tmp_path):
    input_dir = tmp_path / 'in'
    (input_dir / 'maps').mkdir(parents=True)
    (input_dir / 'tilesets').mkdir()
    (input_dir / 'maps' / 'town.tmx').write_text(TOWN, encoding='utf-8')
    (input_dir / 'tilesets' / 'town.tsx').write_text(TILESET, encoding='utf-8')
    return input_dir, tmp_path / 'out'


def test_output_path_mirrors_input_layout(project):
    input_dir, output_dir = project
    options = BuildOptions(str(input_dir), str(output_dir))
    assert output_path_for(input_dir / 'maps' / 'town.tmx', options) == output_dir / 'maps' / 'town.json'


def test_convert_map(project):
    input_dir, output_dir = project
    options = BuildOptions(str(input_dir), str(output_dir))

    status, source, error, output = convert_tiled_file((str(input_dir / 'maps' / 'town.tmx'), options))

    assert (status, error) == ('success', None)
    document = json.loads((output_dir / 'maps' / 'town.json').read_text(encoding='utf-8'))
    assert document['layers'][0]['data'] == [1, 2]
    assert document['tilesets'] == [{'firstgid': 1, 'source': '../tilesets/town.tsx'}]
    assert output == str(output_dir / 'maps' / 'town.json')


def test_convert_tileset(project):
    input_dir, output_dir = project
    options = BuildOptions(str(input_dir), str(output_dir))

    status, _, _, output = convert_tiled_file((str(input_dir / 'tilesets' / 'town.tsx'), options))

    assert status == 'success'
    document = json.loads((output_dir / 'tilesets' / 'town.json').read_text(encoding='utf-8'))
    assert document['type'] == 'tileset'
    assert document['tilecount'] == 2


def test_bad_file_reports_error_instead_of_raising(project):
    input_dir, output_dir = project
    broken = input_dir / 'maps' / 'broken.tmx'
    broken.write_text('<map><layer></map>', encoding='utf-8')

    status, source, error, output = convert_tiled_file((str(broken), BuildOptions(str(input_dir), str(output_dir))))

    assert status == 'error'
    assert source == str(broken)
    assert error.startswith('XmlSyntaxError')
    assert output is None


def test_schema_failure_reported_and_lenient_mode_converts(project):
    input_dir, output_dir = project
    odd = input_dir / 'maps' / 'odd.tmx'
    odd.write_text(TOWN.replace('orientation="orthogonal" ', ''), encoding='utf-8')

    strict = convert_tiled_file((str(odd), BuildOptions(str(input_dir), str(output_dir))))
    lenient = convert_tiled_file((str(odd), BuildOptions(str(input_dir), str(output_dir), strict=False)))

    assert strict[0] == 'error'
    assert strict[2].startswith('SchemaValidationError')
    assert lenient[0] == 'success'


def test_missing_file_reports_error(project):
    input_dir, output_dir = project
    status, _, error, _ = convert_tiled_file(
        (str(input_dir / 'maps' / 'gone.tmx'), BuildOptions(str(input_dir), str(output_dir)))
    )
    assert status == 'error'
    assert 'FileNotFoundError' in error


def test_unsupported_extension_skipped(project):
    input_dir, output_dir = project
    notes = input_dir / 'notes.txt'
    notes.write_text('hello', encoding='utf-8')
    status, _, _, _ = convert_tiled_file((str(notes), BuildOptions(str(input_dir), str(output_dir))))
    assert status == 'skipped'


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, 'argv', ['tilesmith', *args])
    cli.main()


def test_cli_packs_sprites_and_writes_manifest(tmp_path, monkeypatch):
    input_dir = tmp_path / 'maps'
    input_dir.mkdir()
    sprites_dir = tmp_path / 'sprites'
    sprites_dir.mkdir()
    Image.new('RGBA', (10, 10), (255, 0, 0, 255)).save(sprites_dir / 'a.png')
    Image.new('RGBA', (10, 10), (0, 0, 255, 255)).save(sprites_dir / 'b.png')
    output_dir = tmp_path / 'build'

    run_cli(monkeypatch, '--input', str(input_dir), '--output', str(output_dir),
            '--sprites', str(sprites_dir), '--atlas-name', 'ui')

    manifest = json.loads((output_dir / 'manifest.json').read_text(encoding='utf-8'))
    assert manifest['atlas'] == {'image': 'ui.png', 'metadata': 'ui.json'}
    assert manifest['tiled'] == []
    assert manifest['failures'] == []
    assert (output_dir / 'ui.png').exists()
    metadata = json.loads((output_dir / 'ui.json').read_text(encoding='utf-8'))
    assert set(metadata['frames']) == {'a#0', 'b#0'}


def test_cli_exits_nonzero_when_packing_fails(tmp_path, monkeypatch):
    input_dir = tmp_path / 'maps'
    input_dir.mkdir()
    sprites_dir = tmp_path / 'sprites'
    sprites_dir.mkdir()
    Image.new('RGBA', (4, 4), (0, 0, 0, 0)).save(sprites_dir / 'ghost.png')
    output_dir = tmp_path / 'build'

    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, '--input', str(input_dir), '--output', str(output_dir), '--sprites', str(sprites_dir))

    assert excinfo.value.code == 1
    manifest = json.loads((output_dir / 'manifest.json').read_text(encoding='utf-8'))
    assert manifest['atlas'] is None
    assert 'EmptyInputError' in manifest['failures'][0]['error']


def test_cli_rejects_missing_input(tmp_path, monkeypatch):
    with pytest.raises(SystemExit) as excinfo:
        run_cli(monkeypatch, '--input', str(tmp_path / 'nope'), '--output', str(tmp_path / 'out'))
    assert excinfo.value.code == 1
