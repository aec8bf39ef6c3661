"""Tests for the Tiled XML parser."""

import json
import math
import xml.etree.ElementTree as ET

import pytest

from tilesmith.errors import SchemaValidationError, StructuralError, XmlSyntaxError
from tilesmith.tmx_parser import coerce_boolean, coerce_number, parse_points

MAP_ATTRIBUTES = (
    'version="1.10" tiledversion="1.10.2" orientation="orthogonal" renderorder="right-down" '
    'tilewidth="16" tileheight="16" nextlayerid="10" nextobjectid="10"'
)

SCENARIO_A = f"""<?xml version="1.0" encoding="UTF-8"?>
<map {MAP_ATTRIBUTES} width="2" height="2" infinite="0">
 <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16" tilecount="2" columns="2">
  <image source="terrain.png" width="32" height="16"/>
 </tileset>
 <layer id="1" name="Ground" width="2" height="2">
  <data encoding="csv">
1,0,
2,0
</data>
 </layer>
</map>
"""


def wrap_map(body, width=4, height=4, infinite=0):
    return f'<map {MAP_ATTRIBUTES} width="{width}" height="{height}" infinite="{infinite}">{body}</map>'


def test_scenario_csv_layer_and_embedded_tileset(parser):
    tiled_map = parser.parse_map(SCENARIO_A)

    assert tiled_map['type'] == 'map'
    assert tiled_map['layers'][0]['data'] == [1, 0, 2, 0]
    assert tiled_map['layers'][0]['encoding'] == 'csv'
    assert tiled_map['tilesets'][0]['firstgid'] == 1
    assert tiled_map['tilesets'][0]['tilecount'] == 2
    assert tiled_map['tilesets'][0]['image'] == 'terrain.png'
    assert tiled_map['tilesets'][0]['imagewidth'] == 32


def test_map_defaults_and_coerced_attributes(parser):
    tiled_map = parser.parse_map(SCENARIO_A)

    assert tiled_map['infinite'] is False
    assert tiled_map['compressionlevel'] == -1
    assert tiled_map['width'] == 2
    assert isinstance(tiled_map['width'], int)
    assert tiled_map['version'] == '1.10'

    layer = tiled_map['layers'][0]
    assert layer['visible'] is True
    assert layer['opacity'] == 1
    assert layer['x'] == 0


def test_parsing_twice_gives_identical_json(parser):
    first = json.dumps(parser.parse_map(SCENARIO_A))
    second = json.dumps(parser.parse_map(SCENARIO_A))
    assert first == second


@pytest.mark.parametrize('value,expected', [
    ('0', False),
    ('false', False),
    ('true', True),
    ('1', True),
    ('no', True),
    ('off', True),
    ('', False),
])
def test_coerce_boolean(value, expected):
    assert coerce_boolean(value) is expected


def test_bool_properties_only_zero_and_false_are_false(parser):
    xml = wrap_map("""
        <properties>
         <property name="zero" type="bool" value="0"/>
         <property name="false" type="bool" value="false"/>
         <property name="no" type="bool" value="no"/>
         <property name="yes" type="bool" value="true"/>
        </properties>
    """)
    values = {p['name']: p['value'] for p in parser.parse_map(xml)['properties']}
    assert values == {'zero': False, 'false': False, 'no': True, 'yes': True}


def test_typed_and_multiline_properties(parser):
    xml = wrap_map("""
        <properties>
         <property name="count" type="int" value="5"/>
         <property name="speed" type="float" value="1.5"/>
         <property name="target" type="object" value="12"/>
         <property name="tint" type="color" value="#ff00ff00"/>
         <property name="script" type="file" value="scripts/door.lua"/>
         <property name="desc">first line
second line</property>
        </properties>
    """)
    properties = {p['name']: p for p in parser.parse_map(xml)['properties']}

    assert properties['count']['value'] == 5
    assert properties['speed']['value'] == 1.5
    assert properties['target']['value'] == 12
    assert properties['tint']['value'] == '#ff00ff00'
    assert properties['script']['type'] == 'file'
    assert properties['desc'] == {'name': 'desc', 'type': 'string', 'value': 'first line\nsecond line'}


def test_coerce_number():
    assert coerce_number('12') == 12
    assert coerce_number(' 3 ') == 3
    assert coerce_number('2.0') == 2
    assert isinstance(coerce_number('2.0'), int)
    assert coerce_number('0.25') == 0.25
    assert coerce_number('') == 0
    assert math.isnan(coerce_number('abc'))
    assert math.isnan(coerce_number(None))


@pytest.mark.parametrize('text, expected', [
    ('0x10', 16),
    ('0XfF', 255),
    ('0o17', 15),
    ('0b101', 5),
    ('-2.5e1', -25),
    ('+7', 7),
    ('.5', 0.5),
    ('5.', 5),
    ('007', 7),
    ('Infinity', math.inf),
    ('-Infinity', -math.inf),
])
def test_coerce_number_accepts_javascript_literals(text, expected):
    assert coerce_number(text) == expected


@pytest.mark.parametrize('text', ['1_000', 'nan', 'NaN', 'inf', 'infinity', '-0x10', '0x', '1e', '.', '12px', '١٢'])
def test_coerce_number_rejects_other_spellings(text):
    assert math.isnan(coerce_number(text))


def test_infinite_layer_bounds_are_union_of_chunks(parser):
    xml = wrap_map("""
        <layer id="1" name="Ground" width="30" height="30">
         <data encoding="csv">
          <chunk x="-4" y="0" width="2" height="2">1,1,1,1</chunk>
          <chunk x="6" y="10" width="2" height="2">0,1,0,1</chunk>
         </data>
        </layer>
    """, infinite=1)
    layer = parser.parse_map(xml)['layers'][0]

    assert layer['startx'] == -4
    assert layer['starty'] == 0
    assert layer['width'] == 12
    assert layer['height'] == 12
    assert [chunk['data'] for chunk in layer['chunks']] == [[1, 1, 1, 1], [0, 1, 0, 1]]
    assert 'data' not in layer


def test_infinite_layer_without_chunks_has_empty_bounds(parser):
    xml = wrap_map('<layer id="1" name="Empty"><data encoding="csv"></data></layer>', infinite=1)
    layer = parser.parse_map(xml)['layers'][0]

    assert layer['chunks'] == []
    assert (layer['startx'], layer['starty'], layer['width'], layer['height']) == (0, 0, 0, 0)


def test_base64_data_is_kept_opaque(parser):
    xml = wrap_map("""
        <layer id="1" name="Ground" width="2" height="1">
         <data encoding="base64" compression="zlib">
           eJxjZGBgYAQAAA4AAw==
         </data>
        </layer>
    """, width=2, height=1)
    layer = parser.parse_map(xml)['layers'][0]

    assert layer['data'] == 'eJxjZGBgYAQAAA4AAw=='
    assert layer['encoding'] == 'base64'
    assert layer['compression'] == 'zlib'


def test_xml_tile_elements_read_as_gids(parser):
    xml = wrap_map("""
        <layer id="1" name="Ground" width="2" height="2">
         <data><tile gid="3"/><tile/><tile gid="1"/><tile/></data>
        </layer>
    """, width=2, height=2)
    layer = parser.parse_map(xml)['layers'][0]
    assert layer['data'] == [3, 0, 1, 0]
    assert layer['encoding'] == 'csv'


def test_object_shapes(parser):
    xml = wrap_map("""
        <objectgroup id="2" name="Objects" color="#a0a0a4">
         <object id="1" name="spawn" type="player" x="8" y="16"><point/></object>
         <object id="2" x="0" y="0" width="32" height="16"><ellipse/></object>
         <object id="3" x="4" y="4"><polygon points="0,0 16,0 16,8.5"/></object>
         <object id="4" x="0" y="0"><polyline points="0,0 4,4"/></object>
         <object id="5" x="0" y="0" width="64" height="16">
          <text wrap="1" bold="0" pixelsize="12" halign="center" color="#ffffff">Hello</text>
         </object>
         <object id="6" gid="3" x="32" y="32" width="16" height="16" rotation="90"/>
        </objectgroup>
    """)
    group = parser.parse_map(xml)['layers'][0]
    objects = {obj['id']: obj for obj in group['objects']}

    assert group['type'] == 'objectgroup'
    assert group['draworder'] == 'topdown'
    assert group['color'] == '#a0a0a4'

    assert objects[1]['point'] is True
    assert objects[1]['name'] == 'spawn'
    assert objects[1]['type'] == 'player'
    assert objects[2]['ellipse'] is True
    assert objects[3]['polygon'] == [{'x': 0, 'y': 0}, {'x': 16, 'y': 0}, {'x': 16, 'y': 8.5}]
    assert objects[4]['polyline'] == [{'x': 0, 'y': 0}, {'x': 4, 'y': 4}]
    assert objects[5]['text'] == {
        'text': 'Hello',
        'color': '#ffffff',
        'pixelsize': 12,
        'wrap': True,
        'bold': False,
        'halign': 'center',
    }
    assert objects[6]['gid'] == 3
    assert objects[6]['rotation'] == 90


def test_object_defaults_skipped_for_template_instances(parser):
    plain = parser.parse_object(ET.fromstring('<object id="1" x="0" y="0"/>'))
    instance = parser.parse_object(ET.fromstring('<object id="2" template="chest.tx" x="5" y="5"/>'))

    assert plain['visible'] is True
    assert plain['name'] == ''
    assert plain['width'] == 0
    assert 'visible' not in instance
    assert 'name' not in instance
    assert instance['template'] == 'chest.tx'


def test_parse_points():
    assert parse_points('') == []
    assert parse_points('1,2 -3,4.5') == [{'x': 1, 'y': 2}, {'x': -3, 'y': 4.5}]


def test_image_layer(parser):
    xml = wrap_map("""
        <imagelayer id="3" name="Sky" repeatx="1" offsetx="4">
         <image source="sky.png" width="64" height="32" trans="ff00ff"/>
        </imagelayer>
        <imagelayer id="4" name="Blank"/>
    """)
    sky, blank = parser.parse_map(xml)['layers']

    assert sky['type'] == 'imagelayer'
    assert sky['image'] == 'sky.png'
    assert sky['imagewidth'] == 64
    assert sky['imageheight'] == 32
    assert sky['transparentcolor'] == '#ff00ff'
    assert sky['repeatx'] is True
    assert sky['offsetx'] == 4
    assert 'image' not in blank
    assert 'imagewidth' not in blank


def test_group_layers_are_flattened(parser):
    xml = wrap_map("""
        <properties><property name="music" value="town"/></properties>
        <layer id="1" name="Ground" width="1" height="1"><data encoding="csv">0</data></layer>
        <group id="2" name="Decor">
         <properties><property name="music" value="group"/></properties>
         <layer id="3" name="Trees" width="1" height="1"><data encoding="csv">0</data></layer>
         <group id="4" name="Nested">
          <objectgroup id="5" name="Signs"/>
         </group>
        </group>
        <imagelayer id="6" name="Sky"/>
    """)
    tiled_map = parser.parse_map(xml)

    assert [layer['name'] for layer in tiled_map['layers']] == ['Ground', 'Trees', 'Signs', 'Sky']
    assert tiled_map['properties'] == [{'name': 'music', 'type': 'string', 'value': 'town'}]


def test_external_tileset_reference(parser):
    xml = wrap_map('<tileset firstgid="5" source="../tilesets/indoor.tsx"/>')
    tileset = parser.parse_map(xml)['tilesets'][0]
    assert tileset == {'firstgid': 5, 'source': '../tilesets/indoor.tsx'}


def test_external_tileset_file(parser):
    tsx = """<?xml version="1.0" encoding="UTF-8"?>
<tileset version="1.10" tiledversion="1.10.2" name="indoor" tilewidth="16" tileheight="16"
         spacing="1" margin="2" tilecount="4" columns="2" objectalignment="bottom">
 <tileoffset x="0" y="4"/>
 <grid orientation="orthogonal" width="16" height="16"/>
 <properties><property name="solid" type="bool" value="true"/></properties>
 <image source="indoor.png" width="35" height="35"/>
 <tile id="1" probability="0.5">
  <properties><property name="door" type="bool" value="1"/></properties>
  <objectgroup>
   <object id="1" x="0" y="8" width="16" height="8"/>
  </objectgroup>
  <animation>
   <frame tileid="1" duration="100"/>
   <frame tileid="2" duration="150"/>
  </animation>
 </tile>
</tileset>
"""
    tileset = parser.parse_external_tileset(tsx)

    assert tileset['type'] == 'tileset'
    assert tileset['version'] == '1.10'
    assert tileset['tiledversion'] == '1.10.2'
    assert tileset['spacing'] == 1
    assert tileset['margin'] == 2
    assert tileset['objectalignment'] == 'bottom'
    assert tileset['tileoffset'] == {'x': 0, 'y': 4}
    assert tileset['grid'] == {'orientation': 'orthogonal', 'width': 16, 'height': 16}
    assert tileset['properties'] == [{'name': 'solid', 'type': 'bool', 'value': True}]

    tile = tileset['tiles'][0]
    assert tile['id'] == 1
    assert tile['probability'] == 0.5
    assert tile['animation'] == [{'duration': 100, 'tileid': 1}, {'duration': 150, 'tileid': 2}]
    assert tile['objectgroup']['draworder'] == 'index'
    assert tile['objectgroup']['objects'][0]['height'] == 8


def test_external_tileset_cannot_reference_another(parser):
    with pytest.raises(StructuralError):
        parser.parse_external_tileset('<tileset firstgid="1" source="other.tsx"/>')


def test_external_template(parser):
    tx = """<?xml version="1.0" encoding="UTF-8"?>
<template>
 <tileset firstgid="1" source="chests.tsx"/>
 <object name="chest" type="loot" gid="2" width="16" height="16">
  <properties><property name="gold" type="int" value="50"/></properties>
 </object>
</template>
"""
    template = parser.parse_external_template(tx)

    assert template['type'] == 'template'
    assert template['tileset'] == {'firstgid': 1, 'source': 'chests.tsx'}
    assert template['object']['gid'] == 2
    assert template['object']['properties'] == [{'name': 'gold', 'type': 'int', 'value': 50}]


def test_malformed_xml_raises(parser):
    with pytest.raises(XmlSyntaxError):
        parser.parse_map('<map><layer></map>')


def test_wrong_root_raises(parser):
    with pytest.raises(StructuralError):
        parser.parse_map('<tileset name="x"/>')
    with pytest.raises(StructuralError):
        parser.parse_external_template('<map/>')


def test_layer_without_data_raises(parser):
    with pytest.raises(StructuralError):
        parser.parse_map(wrap_map('<layer id="1" name="Broken" width="1" height="1"/>'))


def test_invalid_number_fails_validation(parser):
    xml = SCENARIO_A.replace('width="2" height="2" infinite', 'width="wide" height="2" infinite')

    with pytest.raises(SchemaValidationError) as excinfo:
        parser.parse_map(xml)

    error = excinfo.value
    assert error.element == 'map'
    assert error.raw['width'] != error.raw['width']  # NaN
    assert error.errors


def test_lenient_mode_skips_validation(parser):
    xml = SCENARIO_A.replace('width="2" height="2" infinite', 'width="wide" height="2" infinite')
    tiled_map = parser.parse_map(xml, strict=False)

    assert math.isnan(tiled_map['width'])
    assert tiled_map['layers'][0]['data'] == [1, 0, 2, 0]


def test_missing_required_map_attribute_fails_validation(parser):
    xml = SCENARIO_A.replace('orientation="orthogonal" ', '')
    with pytest.raises(SchemaValidationError):
        parser.parse_map(xml)


def test_unknown_attributes_are_dropped_in_strict_mode(parser):
    xml = SCENARIO_A.replace('<layer id="1"', '<layer id="1" editorhint="x"')
    layer = parser.parse_map(xml)['layers'][0]
    assert 'editorhint' not in layer
    assert 'editorhint' in parser.parse_map(xml, strict=False)['layers'][0]
