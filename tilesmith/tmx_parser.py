"""
Tiled XML parser - converts TMX maps, TSX tilesets and TX templates into the
Tiled JSON document shape (TMJ/TSJ/TJ).

Each element is read into a plain dict (attributes coerced by name, custom
properties coerced by their declared type) and, in strict mode, validated
against the schemas in tiled_schema before it is attached to its parent.
"""

import math
import re
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional

from .constants import (
    BOOLEAN_ATTRIBUTES,
    DEFAULT_COMPRESSION_LEVEL,
    NUMBER_ATTRIBUTES,
    NUMERIC_PROPERTY_TYPES,
    TEXT_BOOLEAN_ATTRIBUTES,
)
from .errors import StructuralError, XmlSyntaxError
from .logging_config import get_logger
from .tiled_schema import validate_document

logger = get_logger('tmx_parser')


def text_content(element: Optional[ET.Element]) -> str:
    """Text directly inside an element (before its first child)."""
    if element is None or element.text is None:
        return ''
    return element.text


# Number literals accepted by JavaScript's unary plus on a trimmed string
DECIMAL_LITERAL = re.compile(r'[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)')
NON_DECIMAL_LITERAL = re.compile(r'0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+')


def coerce_number(value: Any) -> Any:
    """
    Coerce an attribute value to a number the way JavaScript's unary plus
    would.

    Surrounding whitespace is ignored and an empty string is 0. Decimal
    literals may carry a sign, a fraction and an exponent, '0x', '0o' and
    '0b' prefixes are accepted unsigned, and 'Infinity' is the only
    spelling of infinity. Anything else (including '1_000' and 'nan')
    becomes NaN, which strict validation rejects. Integral values come back
    as ints so they serialize without a trailing '.0'.
    """
    if value is None:
        return math.nan
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if not text:
        return 0
    if NON_DECIMAL_LITERAL.fullmatch(text):
        return int(text, 0)
    if not DECIMAL_LITERAL.fullmatch(text):
        return math.nan
    number = float(text)
    if number.is_integer():
        return int(number)
    return number


def coerce_boolean(value: Any) -> bool:
    """
    Coerce an attribute or property value to a boolean.

    Only '0' and 'false' are false; any other non-empty string, including
    'no', is true.
    """
    if value in ('0', 'false'):
        return False
    if value == 'true':
        return True
    return bool(value)


def coerce_property_value(property_type: str, value: str) -> Any:
    """Coerce a custom property value to its declared Tiled type."""
    if property_type == 'bool':
        return coerce_boolean(value)
    if property_type in NUMERIC_PROPERTY_TYPES:
        return coerce_number(value)
    return value


def parse_points(points: Optional[str]) -> List[Dict[str, Any]]:
    """Parse a polygon/polyline 'x,y x,y ...' attribute into point dicts."""
    if not points:
        return []
    result = []
    for pair in points.split():
        x, _, y = pair.partition(',')
        result.append({'x': coerce_number(x), 'y': coerce_number(y)})
    return result


def parse_csv(text: str) -> List[Any]:
    """Parse CSV tile data into a list of GIDs."""
    return [coerce_number(gid) for gid in text.split(',')]


class BoundingBox:
    """Axis-aligned rectangle used to combine infinite-map chunks."""

    def __init__(self, x: Any, y: Any, width: Any, height: Any):
        self.x = x
        self.y = y
        self.width = width
        self.height = height

    def combine(self, other: 'BoundingBox') -> 'BoundingBox':
        """Return the smallest box containing both boxes."""
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        right = max(self.x + self.width, other.x + other.width)
        bottom = max(self.y + self.height, other.y + other.height)
        return BoundingBox(left, top, right - left, bottom - top)


class TiledParser:
    """
    Parses Tiled XML into Tiled JSON dicts.

    The parser keeps no state between calls, so one instance can parse any
    number of files. Every public method takes a ``strict`` flag: when True
    (the default) each element is validated and a mismatch raises
    SchemaValidationError; when False the raw dicts are returned unchecked.
    """

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _parse_xml(self, xml_text: str) -> ET.Element:
        try:
            return ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise XmlSyntaxError(f"Malformed XML: {e}") from e

    def _root(self, xml_text: str, name: str) -> ET.Element:
        root = self._parse_xml(xml_text)
        if root.tag != name:
            raise StructuralError(f"Expected <{name}> root element, found <{root.tag}>")
        return root

    def _validate(self, element: str, raw: Dict[str, Any], strict: bool) -> Dict[str, Any]:
        if strict:
            return validate_document(element, raw)
        return raw

    def _parse_attributes(self, node: ET.Element, target: Dict[str, Any]) -> None:
        """Copy a node's attributes into target, coercing them by name."""
        for name, value in node.attrib.items():
            if name in NUMBER_ATTRIBUTES:
                target[name] = coerce_number(value)
            elif name in BOOLEAN_ATTRIBUTES:
                target[name] = coerce_boolean(value)
            else:
                target[name] = value

    def _parse_properties(self, properties_node: ET.Element, target: Dict[str, Any]) -> None:
        properties = []
        for prop in properties_node.findall('property'):
            property_type = prop.get('type', 'string')
            value = prop.get('value')
            if not value:
                # Multi-line string properties keep their value as text
                value = text_content(prop)
            properties.append({
                'name': prop.get('name', ''),
                'type': property_type,
                'value': coerce_property_value(property_type, value),
            })
        target['properties'] = properties

    def _parse_image(self, image_node: ET.Element, target: Dict[str, Any]) -> None:
        source = image_node.get('source')
        if source is not None:
            target['image'] = source
        width = image_node.get('width')
        if width is not None:
            target['imagewidth'] = coerce_number(width)
        height = image_node.get('height')
        if height is not None:
            target['imageheight'] = coerce_number(height)

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def _parse_text(self, text_node: ET.Element) -> Dict[str, Any]:
        text: Dict[str, Any] = {'text': text_content(text_node)}

        for name in ('fontfamily', 'color'):
            value = text_node.get(name)
            if value:
                text[name] = value

        pixelsize = text_node.get('pixelsize')
        if pixelsize:
            text['pixelsize'] = coerce_number(pixelsize)

        for name in TEXT_BOOLEAN_ATTRIBUTES:
            value = text_node.get(name)
            if value:
                text[name] = coerce_boolean(value)

        for name in ('halign', 'valign'):
            value = text_node.get(name)
            if value:
                text[name] = value
        return text

    def parse_object(self, object_node: ET.Element, strict: bool = True) -> Dict[str, Any]:
        """
        Parse an <object> element.

        The object's shape is picked by its children: <point/>, <ellipse/>,
        <polygon>, <polyline>, <text>; a gid attribute makes it a tile
        object and no shape child leaves it a rectangle.
        """
        obj: Dict[str, Any] = {'type': '', 'x': 0, 'y': 0}

        # Template instances inherit these from the template instead
        if object_node.get('template') is None:
            obj['visible'] = True
            obj['name'] = ''
            obj['rotation'] = 0
            obj['height'] = 0
            obj['width'] = 0

        self._parse_attributes(object_node, obj)

        properties = object_node.find('properties')
        if properties is not None:
            self._parse_properties(properties, obj)

        text = object_node.find('text')
        if text is not None:
            obj['text'] = self._parse_text(text)

        if object_node.find('point') is not None:
            obj['point'] = True

        if object_node.find('ellipse') is not None:
            obj['ellipse'] = True

        for shape in ('polygon', 'polyline'):
            shape_node = object_node.find(shape)
            if shape_node is not None:
                obj[shape] = parse_points(shape_node.get('points'))

        return self._validate('object', obj, strict)

    # ------------------------------------------------------------------
    # Tilesets
    # ------------------------------------------------------------------

    def _parse_tile_object_group(self, group_node: ET.Element, strict: bool) -> Dict[str, Any]:
        group: Dict[str, Any] = {
            'type': 'objectgroup',
            'draworder': 'index',
            'name': '',
            'visible': True,
            'x': 0,
            'y': 0,
            'opacity': 1,
            'objects': [],
        }
        self._parse_attributes(group_node, group)
        for object_node in group_node.findall('object'):
            group['objects'].append(self.parse_object(object_node, strict))
        return group

    def _parse_tile(self, tile_node: ET.Element, strict: bool) -> Dict[str, Any]:
        tile: Dict[str, Any] = {}
        self._parse_attributes(tile_node, tile)

        for tile_child in tile_node:
            if tile_child.tag == 'image':
                self._parse_image(tile_child, tile)
            elif tile_child.tag == 'objectgroup':
                tile['objectgroup'] = self._parse_tile_object_group(tile_child, strict)
            elif tile_child.tag == 'animation':
                tile['animation'] = [
                    {
                        'duration': coerce_number(frame.get('duration')),
                        'tileid': coerce_number(frame.get('tileid')),
                    }
                    for frame in tile_child.findall('frame')
                ]
            elif tile_child.tag == 'properties':
                self._parse_properties(tile_child, tile)

        return self._validate('tile', tile, strict)

    def parse_tileset(self, tileset_node: ET.Element, strict: bool = True) -> Dict[str, Any]:
        """
        Parse a <tileset> element, embedded in a map or at the root of a TSX.

        A tileset with a source attribute is a reference to an external TSX
        file and comes back as {firstgid, source} without reading children.
        """
        tileset: Dict[str, Any] = {'spacing': 0, 'margin': 0}
        self._parse_attributes(tileset_node, tileset)

        if 'source' in tileset:
            external = {key: tileset[key] for key in ('firstgid', 'source') if key in tileset}
            return self._validate('tileset', external, strict)

        for tileset_child in tileset_node:
            tag = tileset_child.tag
            if tag == 'properties':
                self._parse_properties(tileset_child, tileset)
            elif tag == 'tileoffset':
                tileoffset: Dict[str, Any] = {}
                self._parse_attributes(tileset_child, tileoffset)
                tileset['tileoffset'] = tileoffset
            elif tag == 'grid':
                grid: Dict[str, Any] = {}
                self._parse_attributes(tileset_child, grid)
                tileset['grid'] = grid
            elif tag == 'image':
                self._parse_image(tileset_child, tileset)
            elif tag == 'tile':
                tileset.setdefault('tiles', []).append(self._parse_tile(tileset_child, strict))

        return self._validate('tileset', tileset, strict)

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def _read_data(self, encoding: Optional[str], node: ET.Element) -> Any:
        """Read a <data> or <chunk> payload in the given encoding."""
        if encoding == 'base64':
            return text_content(node).strip()
        if encoding == 'csv':
            return parse_csv(text_content(node))
        # Plain XML: one <tile gid="..."/> per cell, empty cells omit gid
        return [coerce_number(tile.get('gid', 0)) for tile in node.findall('tile')]

    def parse_tile_layer(self, layer_node: ET.Element, infinite: bool, strict: bool = True) -> Dict[str, Any]:
        """
        Parse a <layer> element.

        Finite maps store one <data> payload. Infinite maps store <chunk>
        children inside <data>; the layer's startx/starty/width/height is the
        union of the chunk rectangles.
        """
        layer: Dict[str, Any] = {'type': 'tilelayer', 'x': 0, 'y': 0, 'opacity': 1, 'visible': True}
        self._parse_attributes(layer_node, layer)

        for layer_child in layer_node:
            if layer_child.tag == 'properties':
                self._parse_properties(layer_child, layer)
            elif layer_child.tag == 'data':
                self._parse_layer_data(layer_child, layer, infinite)

        has_data = 'data' in layer
        has_chunks = 'chunks' in layer
        if has_data == has_chunks:
            state = 'both data and chunks' if has_data else 'neither data nor chunks'
            raise StructuralError(f"Tile layer '{layer.get('name', '')}' has {state}")

        return self._validate('layer', layer, strict)

    def _parse_layer_data(self, data_node: ET.Element, layer: Dict[str, Any], infinite: bool) -> None:
        encoding = data_node.get('encoding')
        if encoding:
            layer['encoding'] = encoding
        compression = data_node.get('compression')
        if compression:
            layer['compression'] = compression

        if not infinite:
            layer['data'] = self._read_data(encoding, data_node)
            if encoding is None:
                layer['encoding'] = 'csv'
            return

        chunks = []
        bounds: Optional[BoundingBox] = None
        for chunk_node in data_node.findall('chunk'):
            chunk: Dict[str, Any] = {}
            self._parse_attributes(chunk_node, chunk)
            chunk['data'] = self._read_data(encoding, chunk_node)
            chunk_bounds = BoundingBox(
                chunk.get('x', 0), chunk.get('y', 0), chunk.get('width', 0), chunk.get('height', 0)
            )
            bounds = chunk_bounds if bounds is None else bounds.combine(chunk_bounds)
            chunks.append(chunk)

        if bounds is None:
            bounds = BoundingBox(0, 0, 0, 0)

        layer['chunks'] = chunks
        layer['width'] = bounds.width
        layer['height'] = bounds.height
        layer['startx'] = bounds.x
        layer['starty'] = bounds.y

    def parse_object_group(self, group_node: ET.Element, strict: bool = True) -> Dict[str, Any]:
        """Parse an <objectgroup> layer."""
        group: Dict[str, Any] = {
            'type': 'objectgroup',
            'draworder': 'topdown',
            'visible': True,
            'x': 0,
            'y': 0,
            'opacity': 1,
            'objects': [],
        }
        self._parse_attributes(group_node, group)

        for group_child in group_node:
            if group_child.tag == 'properties':
                self._parse_properties(group_child, group)
            elif group_child.tag == 'object':
                group['objects'].append(self.parse_object(group_child, strict))

        return self._validate('layer', group, strict)

    def parse_image_layer(self, image_layer_node: ET.Element, strict: bool = True) -> Dict[str, Any]:
        """Parse an <imagelayer>."""
        image_layer: Dict[str, Any] = {'type': 'imagelayer', 'visible': True, 'x': 0, 'y': 0, 'opacity': 1}

        image = image_layer_node.find('image')
        if image is not None:
            self._parse_image(image, image_layer)
            transparent_color = image.get('trans')
            if transparent_color:
                image_layer['transparentcolor'] = '#' + transparent_color

        properties = image_layer_node.find('properties')
        if properties is not None:
            self._parse_properties(properties, image_layer)

        self._parse_attributes(image_layer_node, image_layer)

        return self._validate('layer', image_layer, strict)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def parse_map(self, xml_text: str, strict: bool = True) -> Dict[str, Any]:
        """
        Parse TMX text into a TMJ map dict.

        Group layers are flattened: the layers inside a <group> are spliced
        into the map's layer list where the group appears, and the group's
        own name, offset, opacity and properties are dropped.

        Args:
            xml_text: TMX document text
            strict: Validate every element against its schema

        Returns:
            Map dict in Tiled JSON layout

        Raises:
            XmlSyntaxError: If the text is not well-formed XML
            StructuralError: If the root is not <map> or a tile layer is inconsistent
            SchemaValidationError: In strict mode, if an element fails validation
        """
        map_node = self._root(xml_text, 'map')

        tiled_map: Dict[str, Any] = {
            'type': 'map',
            'compressionlevel': DEFAULT_COMPRESSION_LEVEL,
            'layers': [],
            'tilesets': [],
        }
        self._parse_attributes(map_node, tiled_map)
        infinite = bool(tiled_map.get('infinite', False))

        layer_parsers: Dict[str, Callable[[ET.Element], Dict[str, Any]]] = {
            'layer': lambda node: self.parse_tile_layer(node, infinite, strict),
            'objectgroup': lambda node: self.parse_object_group(node, strict),
            'imagelayer': lambda node: self.parse_image_layer(node, strict),
        }

        def parse_layers(parent: ET.Element) -> None:
            for node in parent:
                if node.tag == 'group':
                    parse_layers(node)
                elif node.tag in layer_parsers:
                    tiled_map['layers'].append(layer_parsers[node.tag](node))

        for map_child in map_node:
            if map_child.tag == 'properties':
                self._parse_properties(map_child, tiled_map)
            elif map_child.tag == 'tileset':
                tiled_map['tilesets'].append(self.parse_tileset(map_child, strict))

        parse_layers(map_node)

        logger.debug(
            f"Parsed map {tiled_map.get('width')}x{tiled_map.get('height')} with "
            f"{len(tiled_map['layers'])} layers and {len(tiled_map['tilesets'])} tilesets"
        )
        return self._validate('map', tiled_map, strict)

    def parse_external_tileset(self, xml_text: str, strict: bool = True) -> Dict[str, Any]:
        """
        Parse TSX text into a TSJ tileset dict.

        Raises:
            XmlSyntaxError: If the text is not well-formed XML
            StructuralError: If the root is not <tileset>
            SchemaValidationError: In strict mode, if the tileset fails validation
        """
        tileset_node = self._root(xml_text, 'tileset')
        if tileset_node.get('source') is not None:
            raise StructuralError("A tileset file cannot itself reference an external source")

        tileset = dict(self.parse_tileset(tileset_node, strict=strict))
        tileset['type'] = 'tileset'
        # Restore version attributes the embedded-tileset schema dropped
        self._parse_attributes(tileset_node, tileset)

        return self._validate('tileset file', tileset, strict)

    def parse_external_template(self, xml_text: str, strict: bool = True) -> Dict[str, Any]:
        """
        Parse TX text into a template dict: the template object plus the
        external tileset its tile object refers to, if any.

        Raises:
            XmlSyntaxError: If the text is not well-formed XML
            StructuralError: If the root is not <template>
            SchemaValidationError: In strict mode, if the template fails validation
        """
        template_node = self._root(xml_text, 'template')
        template: Dict[str, Any] = {'type': 'template'}

        object_node = template_node.find('object')
        if object_node is not None:
            template['object'] = self.parse_object(object_node, strict)

        tileset_node = template_node.find('tileset')
        if tileset_node is not None:
            template['tileset'] = self.parse_tileset(tileset_node, strict)

        return self._validate('template', template, strict)
