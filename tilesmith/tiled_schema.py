"""
Schemas for the Tiled JSON (TMJ/TSJ/TJ) document shapes.

The parser builds plain dicts while walking the XML, then validates each
element against the matching model here. Validation is strict: values must
already have the declared type (coercion happens in the parser), NaN and
infinity are rejected, and keys the schema does not know are dropped.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    Tag,
    TypeAdapter,
    ValidationError,
)

from .errors import SchemaValidationError
from .logging_config import get_logger

logger = get_logger('tiled_schema')

# Tiled writes both integers and floats for numeric attributes; keeping the
# union preserves ints instead of widening them to floats on output.
Number = Union[StrictInt, StrictFloat]


class TiledModel(BaseModel):
    """Base model: immutable, unknown keys ignored."""

    model_config = ConfigDict(
        allow_inf_nan=False,
        extra='ignore',
        frozen=True,
        populate_by_name=True,
    )


# =============================================================================
# Properties
# =============================================================================

class IntProperty(TiledModel):
    name: StrictStr
    type: Literal['int']
    value: StrictInt


class BoolProperty(TiledModel):
    name: StrictStr
    type: Literal['bool']
    value: StrictBool


class FloatProperty(TiledModel):
    name: StrictStr
    type: Literal['float']
    value: Number


class StringProperty(TiledModel):
    name: StrictStr
    type: Literal['string']
    value: StrictStr


class FileProperty(TiledModel):
    name: StrictStr
    type: Literal['file']
    value: StrictStr


class ColorProperty(TiledModel):
    name: StrictStr
    type: Literal['color']
    value: StrictStr


class ObjectProperty(TiledModel):
    name: StrictStr
    type: Literal['object']
    value: Number


Property = Annotated[
    Union[IntProperty, BoolProperty, FloatProperty, StringProperty, FileProperty, ColorProperty, ObjectProperty],
    Field(discriminator='type'),
]


# =============================================================================
# Objects
# =============================================================================

class Point(TiledModel):
    x: Number
    y: Number


class Text(TiledModel):
    text: StrictStr
    color: Optional[StrictStr] = None
    fontfamily: Optional[StrictStr] = None
    pixelsize: Optional[Number] = None
    wrap: Optional[StrictBool] = None
    bold: Optional[StrictBool] = None
    italic: Optional[StrictBool] = None
    underline: Optional[StrictBool] = None
    strikeout: Optional[StrictBool] = None
    kerning: Optional[StrictBool] = None
    halign: Optional[Literal['left', 'center', 'right', 'justify']] = None
    valign: Optional[Literal['top', 'center', 'bottom']] = None


class TiledObject(TiledModel):
    # Objects loaded from templates may lack id, x and y
    id: Optional[Number] = None
    name: Optional[StrictStr] = None
    type: Optional[StrictStr] = None
    x: Optional[Number] = None
    y: Optional[Number] = None
    rotation: Optional[Number] = None
    height: Optional[Number] = None
    width: Optional[Number] = None
    visible: Optional[StrictBool] = None
    gid: Optional[StrictInt] = None
    text: Optional[Text] = None
    point: Optional[StrictBool] = None
    ellipse: Optional[StrictBool] = None
    polyline: Optional[List[Point]] = None
    polygon: Optional[List[Point]] = None
    template: Optional[StrictStr] = None
    properties: Optional[List[Property]] = None


class ObjectGroup(TiledModel):
    """Object group attached to a tile (collision shapes)."""

    draworder: StrictStr
    id: Optional[Number] = None
    name: StrictStr
    x: Number
    y: Number
    opacity: Number
    tintcolor: Optional[StrictStr] = None
    type: Literal['objectgroup']
    visible: StrictBool
    objects: List[TiledObject]
    properties: Optional[List[Property]] = None


# =============================================================================
# Layers
# =============================================================================

class LayerBase(TiledModel):
    name: StrictStr
    klass: Optional[StrictStr] = Field(default=None, alias='class')
    id: Number
    x: Number
    y: Number
    opacity: Number
    visible: StrictBool
    properties: Optional[List[Property]] = None
    tintcolor: Optional[StrictStr] = None
    parallaxx: Optional[Number] = None
    parallaxy: Optional[Number] = None
    offsetx: Optional[Number] = None
    offsety: Optional[Number] = None


class TileLayerBase(LayerBase):
    type: Literal['tilelayer']
    height: Number
    width: Number


class TileLayerArray(TileLayerBase):
    """Tile layer whose data is a flat list of GIDs."""

    data: List[StrictInt]
    encoding: Literal['csv', 'base64']
    compression: Optional[StrictStr] = None


class TileLayerBase64(TileLayerBase):
    """Tile layer whose data is an opaque base64 payload."""

    data: StrictStr
    encoding: Literal['base64']
    compression: Optional[StrictStr] = None


class Chunk(TiledModel):
    x: Number
    y: Number
    width: Number
    height: Number
    data: Union[StrictStr, List[StrictInt]]


class TileLayerInfinite(TileLayerBase):
    startx: Number
    starty: Number
    chunks: List[Chunk]
    encoding: Optional[StrictStr] = None
    compression: Optional[StrictStr] = None


class ObjectLayer(LayerBase):
    type: Literal['objectgroup']
    draworder: StrictStr
    color: Optional[StrictStr] = None
    objects: List[TiledObject]


class ImageLayer(LayerBase):
    type: Literal['imagelayer']
    image: Optional[StrictStr] = None
    imagewidth: Optional[Number] = None
    imageheight: Optional[Number] = None
    repeatx: Optional[StrictBool] = None
    repeaty: Optional[StrictBool] = None
    transparentcolor: Optional[StrictStr] = None


def _field(value: Any, name: str) -> Any:
    if isinstance(value, dict):
        return value.get(name)
    return getattr(value, name, None)


def _layer_tag(value: Any) -> Optional[str]:
    """Pick the layer variant from its type and data shape."""
    kind = _field(value, 'type')
    if kind != 'tilelayer':
        return kind
    if _field(value, 'chunks') is not None:
        return 'tilelayer-infinite'
    if isinstance(_field(value, 'data'), str):
        return 'tilelayer-base64'
    return 'tilelayer-array'


Layer = Annotated[
    Union[
        Annotated[TileLayerArray, Tag('tilelayer-array')],
        Annotated[TileLayerBase64, Tag('tilelayer-base64')],
        Annotated[TileLayerInfinite, Tag('tilelayer-infinite')],
        Annotated[ObjectLayer, Tag('objectgroup')],
        Annotated[ImageLayer, Tag('imagelayer')],
    ],
    Discriminator(_layer_tag),
]


# =============================================================================
# Tilesets
# =============================================================================

class Frame(TiledModel):
    duration: Number
    tileid: Number


class Tile(TiledModel):
    id: Number
    type: Optional[StrictStr] = None
    klass: Optional[StrictStr] = Field(default=None, alias='class')
    animation: Optional[List[Frame]] = None
    objectgroup: Optional[ObjectGroup] = None
    probability: Optional[Number] = None
    properties: Optional[List[Property]] = None
    # Collection-of-images tilesets carry one image per tile
    image: Optional[StrictStr] = None
    imageheight: Optional[Number] = None
    imagewidth: Optional[Number] = None


class Grid(TiledModel):
    height: Number
    width: Number
    orientation: Literal['isometric', 'orthogonal']


class EmbeddedTileset(TiledModel):
    name: StrictStr
    firstgid: Optional[Number] = None
    klass: Optional[StrictStr] = Field(default=None, alias='class')
    objectalignment: Optional[Literal[
        'unspecified',
        'topleft',
        'top',
        'topright',
        'left',
        'center',
        'right',
        'bottomleft',
        'bottom',
        'bottomright',
    ]] = None
    # Absent for collection-of-images tilesets
    image: Optional[StrictStr] = None
    imagewidth: Optional[Number] = None
    imageheight: Optional[Number] = None
    columns: Number
    tileheight: Number
    tilewidth: Number
    tilecount: Number
    grid: Optional[Grid] = None
    tileoffset: Optional[Point] = None
    spacing: Number
    margin: Number
    tiles: Optional[List[Tile]] = None
    properties: Optional[List[Property]] = None


class TilesetFile(EmbeddedTileset):
    tiledversion: Optional[StrictStr] = None
    type: Literal['tileset']
    version: Optional[StrictStr] = None


class ExternalTileset(TiledModel):
    firstgid: Number
    source: StrictStr


def _tileset_tag(value: Any) -> str:
    return 'external' if _field(value, 'source') is not None else 'embedded'


Tileset = Annotated[
    Union[
        Annotated[EmbeddedTileset, Tag('embedded')],
        Annotated[ExternalTileset, Tag('external')],
    ],
    Discriminator(_tileset_tag),
]


# =============================================================================
# Documents
# =============================================================================

class Template(TiledModel):
    object: TiledObject
    tileset: Optional[ExternalTileset] = None
    type: Literal['template']


class TiledMap(TiledModel):
    type: StrictStr
    klass: Optional[StrictStr] = Field(default=None, alias='class')
    tiledversion: StrictStr
    version: StrictStr
    width: Number
    height: Number
    tilewidth: Number
    tileheight: Number
    compressionlevel: Optional[Number] = None
    infinite: StrictBool
    nextlayerid: Number
    nextobjectid: Number
    parallaxoriginx: Optional[Number] = None
    parallaxoriginy: Optional[Number] = None
    hexsidelength: Optional[Number] = None
    staggeraxis: Optional[Literal['x', 'y']] = None
    staggerindex: Optional[Literal['odd', 'even']] = None
    orientation: Literal['isometric', 'orthogonal', 'staggered', 'hexagonal']
    renderorder: Literal['right-down', 'right-up', 'left-down', 'left-up']
    backgroundcolor: Optional[StrictStr] = None
    layers: List[Layer]
    tilesets: List[Tileset]
    properties: Optional[List[Property]] = None


SCHEMAS: Dict[str, TypeAdapter] = {
    'object': TypeAdapter(TiledObject),
    'tile': TypeAdapter(Tile),
    'tileset': TypeAdapter(Tileset),
    'tileset file': TypeAdapter(TilesetFile),
    'layer': TypeAdapter(Layer),
    'template': TypeAdapter(Template),
    'map': TypeAdapter(TiledMap),
}


def validate_document(element: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a raw element dict against its schema.

    Args:
        element: Schema name (a key of SCHEMAS)
        raw: Dict built by the parser

    Returns:
        The validated document as a JSON-ready dict holding only the keys
        the schema knows and the parser set

    Raises:
        SchemaValidationError: If the dict does not match the schema
    """
    schema = SCHEMAS[element]
    try:
        model = schema.validate_python(raw)
    except ValidationError as e:
        logger.error(f"Could not parse {element}: {raw!r}")
        raise SchemaValidationError(
            f"Invalid {element}: {e.error_count()} schema error(s)\n{e}",
            raw=raw,
            element=element,
            errors=e.errors(include_url=False)
        ) from e
    return schema.dump_python(model, mode='json', by_alias=True, exclude_unset=True)
