"""Capture layer identities and the configurable layer matrix."""

from dataclasses import dataclass
from enum import Enum


class Direction(str, Enum):
    """Fixed viewpoints around the artwork, in enumeration order."""

    MAIN_VIEW = "MainView"
    DETAIL_VIEW = "DetailView"
    PROFILE_LEFT = "ProfileLeft"
    PROFILE_RIGHT = "ProfileRight"
    TOP_VIEW = "TopView"
    BOTTOM_VIEW = "BottomView"

    @property
    def tag(self) -> str:
        """Short tag used inside embed messages."""
        return _DIRECTION_TAGS[self]


class MapType(str, Enum):
    """Structural rendering channels; IMAGE is the plain artwork render."""

    DEPTH = "Depth"
    NORMAL = "Normal"
    SSAO = "SSAO"
    ALBEDO = "Albedo"
    SPECULAR = "Specular"
    IMAGE = "Artwork"

    @property
    def tag(self) -> str:
        """Short tag used inside embed messages."""
        return _MAP_TAGS[self]

    @property
    def robustness(self) -> float:
        """Expected survivability of a watermark on this channel."""
        return _MAP_ROBUSTNESS.get(self, 0.8)


_DIRECTION_TAGS = {
    Direction.MAIN_VIEW: "MAIN_VIEW",
    Direction.DETAIL_VIEW: "DETAIL",
    Direction.PROFILE_LEFT: "LEFT",
    Direction.PROFILE_RIGHT: "RIGHT",
    Direction.TOP_VIEW: "TOP",
    Direction.BOTTOM_VIEW: "BOTTOM",
}

_MAP_TAGS = {
    MapType.DEPTH: "3D_STRUCTURE",
    MapType.NORMAL: "SURFACE_DETAIL",
    MapType.SSAO: "COMPLEXITY",
    MapType.ALBEDO: "ALBEDO",
    MapType.SPECULAR: "SPECULAR",
    MapType.IMAGE: "IMAGE",
}

_MAP_ROBUSTNESS = {
    MapType.DEPTH: 1.0,
    MapType.NORMAL: 0.95,
    MapType.SSAO: 0.85,
}


def layer_id(direction: Direction, map_type: MapType) -> str:
    """Return the wire identifier of a layer, e.g. ``MainView_Depth``."""
    return f"{direction.value}_{map_type.value}"


def layer_message(direction: Direction, map_type: MapType, session_id: str) -> str:
    """Build the deterministic per-layer embed payload."""
    return f"{direction.tag}_{map_type.tag}_{session_id}"


@dataclass(frozen=True)
class LayerMatrix:
    """Descriptor of which layers one protection cycle captures.

    The matrix is always direction-major: every map type of the first
    direction, then the plain image of that direction (when included), then
    the next direction.
    """

    directions: tuple[Direction, ...]
    map_types: tuple[MapType, ...]
    include_plain_image: bool = False

    def __post_init__(self) -> None:
        if not self.directions:
            raise ValueError("Layer matrix needs at least one direction")
        if not self.map_types:
            raise ValueError("Layer matrix needs at least one map type")
        if MapType.IMAGE in self.map_types:
            raise ValueError("Use include_plain_image instead of MapType.IMAGE")
        if len(set(self.directions)) != len(self.directions):
            raise ValueError("Duplicate direction in layer matrix")
        if len(set(self.map_types)) != len(self.map_types):
            raise ValueError("Duplicate map type in layer matrix")

    @property
    def layers_per_direction(self) -> int:
        return len(self.map_types) + (1 if self.include_plain_image else 0)

    @property
    def total_layers(self) -> int:
        return len(self.directions) * self.layers_per_direction

    def cells(self) -> list[tuple[Direction, MapType]]:
        """Return every (direction, map type) cell in capture order."""
        cells: list[tuple[Direction, MapType]] = []
        for direction in self.directions:
            for map_type in self.map_types:
                cells.append((direction, map_type))
            if self.include_plain_image:
                cells.append((direction, MapType.IMAGE))
        return cells

    def layer_ids(self) -> list[str]:
        return [layer_id(direction, map_type) for direction, map_type in self.cells()]


ALL_DIRECTIONS = tuple(Direction)
CORE_MAPS = (MapType.DEPTH, MapType.NORMAL, MapType.SSAO)
EXTENDED_MAPS = (*CORE_MAPS, MapType.ALBEDO, MapType.SPECULAR)

LAYER_MATRIX_PRESETS: dict[str, LayerMatrix] = {
    "core": LayerMatrix(ALL_DIRECTIONS, CORE_MAPS),
    "core_with_image": LayerMatrix(ALL_DIRECTIONS, CORE_MAPS, include_plain_image=True),
    "extended": LayerMatrix(ALL_DIRECTIONS, EXTENDED_MAPS),
}
