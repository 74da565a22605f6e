"""
glyphwall.py
============

Procedural "icon wallpaper" generator. Renders a staggered grid of icon glyphs,
each sitting inside an outlined shape, onto a raster image and exports it to
PNG.

How an image comes together
---------------------------
- A handful of *clusters* are scattered over the canvas, each with a color
  from the palette.
- A brick-offset lattice is walked row by row. Near a cluster a cell may be
  drawn *colored* (cluster-tinted shape, full opacity); otherwise it is drawn
  *pale* with an opacity that fades with the distance to the nearest
  cluster, or dropped entirely according to the symbol density.
- Each cell gets a random glyph, avoiding (with a tunable penalty) the glyph
  of its left and top neighbors.
- With seamless rendering the lattice overscans the canvas edges so that the
  exported image tiles without a visible seam.

Quick start
-----------
>>> from glyphwall import generate
>>> generate(out_dir="out", font_path="fa-solid-900.ttf", seed=7)
PosixPath('out/glyphwall_1920x1080.png')

Command line
------------
$ glyphwall --font fa-solid-900.ttf --size 2560x1440 --clusters 20 \
    --density 0.7 --scale 2 --aa 2 --seed 7 --out-dir /tmp

Notes
-----
- Symbols are icon code points (e.g. Font Awesome's ``f0ca``); point
  ``--font`` at the matching icon font or the glyphs render as boxes in
  Pillow's built-in font.
- ``--scale`` renders at a device pixel ratio (2 gives a 2x-resolution PNG
  of the same logical layout); ``--aa`` supersamples for smoother edges.

License: MIT
"""

import argparse
import copy
import json
import logging
import math
import random
import re
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

try:
    from PIL import Image, ImageDraw, ImageColor, ImageFont
except Exception as e:  # pragma: no cover
    raise SystemExit("This module requires Pillow. Try: pip install pillow") from e

try:
    import numpy as np
except Exception as e:  # pragma: no cover
    raise SystemExit("This module requires NumPy. Try: pip install numpy") from e


logger = logging.getLogger(__name__)

APP_NAME = "glyphwall"
MAX_SYMBOL_ATTEMPTS = 10


class GlyphwallError(Exception):
    """Base class for generator errors."""


class ResourceMissingError(GlyphwallError, FileNotFoundError):
    """A resource required at startup (e.g. the icon font) does not exist."""


class NotReadyError(GlyphwallError, RuntimeError):
    """Generation or rendering was requested before resources were loaded."""


# ---------------------------- Utilities ------------------------------------

def rng_from_seed(seed: Optional[int]) -> random.Random:
    """Return a Random instance from seed (or system)."""
    r = random.Random()
    if seed is not None:
        r.seed(int(seed))
    else:
        r.seed()
    return r


@lru_cache(maxsize=256)
def color_to_rgb(spec: str) -> Tuple[int, int, int]:
    """Parse any Pillow color spec ('#RGB', '#RRGGBB', 'rgb(...)', names)."""
    try:
        rgb = ImageColor.getrgb(spec.strip())
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid color: {spec!r}") from e
    return rgb[0], rgb[1], rgb[2]


def decode_symbol(ident: str) -> str:
    """Turn a glyph identifier into the character to draw.

    Hexadecimal code points ('f0ca', 'U+F0CA', '0xf0ca') are decoded; a single
    character is taken literally.
    """
    ident = str(ident).strip()
    if len(ident) == 1:
        return ident
    h = ident
    if h[:2].lower() in ("u+", "0x"):
        h = h[2:]
    try:
        return chr(int(h, 16))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid symbol identifier: {ident!r}") from e


def decode_symbols(idents: Sequence[str]) -> List[str]:
    symbols = [decode_symbol(s) for s in idents]
    if not symbols:
        raise ValueError("Symbol list must not be empty")
    return symbols


def polygon_points(cx: float, cy: float, radius: float, sides: int) -> List[Tuple[float, float]]:
    """Vertices of a regular polygon, the first one pointing straight up."""
    angles = -math.pi / 2 + np.arange(sides) * (2 * math.pi / sides)
    xs = cx + radius * np.cos(angles)
    ys = cy + radius * np.sin(angles)
    return [(float(x), float(y)) for x, y in zip(xs, ys)]


# ---------------------------- Configuration ---------------------------------

DEFAULT_SYMBOLS = [
    'f0ca', 'e15b', 'f002', 'f233', 'f505', 'f1de', 'e448', 'e32a', 'f67e',
    'f7a1', 'f0b0', 'f7b6', 'f5f8', 'f672', 'f530', 'f8bb', 'f534', 'f81b',
    'e3fa', 'f4e3', 'f6d8', 'f0ad', 'f818', 'f61f', 'f577', 'f121', 'e202',
    'f8f4', 'e012', 'f749', 'f6b8', 'e3dc', 'f5dc', 'f03d', 'f542', 'e33b',
    'f590', 'f522', 'f75a', 'f188', 'f8ab', 'e48a', 'f1c9', 'f544', 'f8f6',
    'f19d', 'e2df', 'f030', 'f130', 'f001', 'f7f1', 'e0e3', 'f661', 'f7b9',
    'f0c3', 'f8a7', 'f336', 'f7a1', 'f2ce', 'f1e0', 'f1c0', 'f2db', 'f6be',
    'e132', 'f30d', 'f1b3', 'e13e', 'e41c', 'e443', 'f8df', 'e2ea', 'f312',
    'e0b3', 'f729', 'f564', 'f3a0', 'e409', 'f013', 'f8d5', 'f0c7', 'f328',
    'f6a1', 'f8be', 'e3dd', 'f4c8', 'f700', 'f042', 'f044', 'f048', 'f051',
    'f01e', 'f01c',
]

DEFAULT_PALETTE = [
    "#F92672",  # pink
    "#A6E22E",  # green
    "#66D9EF",  # blue
    "#FD971F",  # orange
    "#E6DB74",  # yellow
    "#AE81FF",  # purple
]


@dataclass
class CanvasSize:
    width: int = 1920
    height: int = 1080


@dataclass
class GridSettings:
    spacing_x: int = 50
    spacing_y: int = 50
    seamless_rendering: bool = True


@dataclass
class SymbolSettings:
    list: List[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    font_size: int = 16
    adjacent_penalty: float = 0.8
    default_icon_opacity: float = 0.1
    density: float = 1.0            # share of pale symbols that are drawn


@dataclass
class ClusterSettings:
    count: int = 15
    max_radius: int = 350
    colored_opacity: float = 1.0
    dimming_factor: float = 2.5
    min_dim_opacity: float = 0.05


@dataclass
class ColorSettings:
    background: str = "#272822"
    default_icon_color: str = "#000000"
    colored_icon_color: str = "#272822"
    default_shape_fill_color: str = "#49483E"
    default_shape_stroke_color: str = "#49483E"
    palette: List[str] = field(default_factory=lambda: list(DEFAULT_PALETTE))


@dataclass
class ShapeSettings:
    corners: int = 2                # 0/1 no shape, 2 circle, >=3 polygon
    radius: int = 20
    fill_opacity: float = 0.2
    stroke_width: int = 1
    stroke_opacity: float = 0.3


_SECTIONS = {
    "canvas_size": CanvasSize,
    "grid": GridSettings,
    "symbols": SymbolSettings,
    "clustering": ClusterSettings,
    "colors": ColorSettings,
    "shape": ShapeSettings,
}


def _snake(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


def _coerce(current: Any, value: Any, key: str) -> Any:
    """Convert a raw settings value to the type of the field it replaces."""
    try:
        if isinstance(current, bool):
            if isinstance(value, str):
                if value.strip().lower() in ("1", "true", "yes", "on"):
                    return True
                if value.strip().lower() in ("0", "false", "no", "off"):
                    return False
                raise ValueError(value)
            return bool(value)
        if isinstance(current, int):
            return int(float(value))
        if isinstance(current, float):
            return float(value)
        if isinstance(current, list):
            if isinstance(value, str):
                value = [v for v in (s.strip() for s in value.split(",")) if v]
            return [str(v) for v in value]
        return str(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key!r}: {value!r}") from e


@dataclass
class Config:
    canvas_size: CanvasSize = field(default_factory=CanvasSize)
    grid: GridSettings = field(default_factory=GridSettings)
    symbols: SymbolSettings = field(default_factory=SymbolSettings)
    clustering: ClusterSettings = field(default_factory=ClusterSettings)
    colors: ColorSettings = field(default_factory=ColorSettings)
    shape: ShapeSettings = field(default_factory=ShapeSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        cfg = cls()
        cfg.update(data)
        return cfg

    def update(self, data: Mapping[str, Any]) -> "Config":
        """Merge a (partial) nested mapping into this config.

        Keys may be camelCase, as in the JSON files, or snake_case. Values are
        coerced to the field's type (numeric strings are accepted). Colors
        are checked as they are set. Nothing changes if any entry is invalid.
        """
        staged = self.copy()
        for section_key, values in data.items():
            section_name = _snake(section_key)
            if section_name not in _SECTIONS:
                raise ValueError(f"Unknown config section: {section_key!r}")
            if not isinstance(values, Mapping):
                raise ValueError(f"Config section {section_key!r} must be an object")
            section = getattr(staged, section_name)
            names = {f.name for f in fields(section)}
            for key, value in values.items():
                name = _snake(key)
                if name not in names:
                    raise ValueError(f"Unknown config key: {section_key}.{key}")
                value = _coerce(getattr(section, name), value, f"{section_key}.{key}")
                if section_name == "colors":
                    for spec in (value if isinstance(value, list) else [value]):
                        color_to_rgb(spec)
                setattr(section, name, value)
        for name in _SECTIONS:
            setattr(self, name, getattr(staged, name))
        return self

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        out = {}
        for name in _SECTIONS:
            section = getattr(self, name)
            out[_camel(name)] = {
                _camel(f.name): copy.copy(getattr(section, f.name)) for f in fields(section)
            }
        return out

    def copy(self) -> "Config":
        return copy.deepcopy(self)


def load_config(path: Union[str, Path]) -> Config:
    with open(path, "r", encoding="utf-8") as jf:
        data = json.load(jf)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {str(path)!r} must contain a JSON object")
    return Config.from_dict(data)


# ---------------------------- Clusters --------------------------------------

@dataclass(frozen=True)
class ClusterCenter:
    x: float
    y: float
    color: str


class ClusterSet:
    """The cluster centers of one generation, with a vectorised nearest lookup."""

    def __init__(self, centers: Sequence[ClusterCenter] = ()):
        self.centers = list(centers)
        self._xs = np.array([c.x for c in self.centers], dtype=float)
        self._ys = np.array([c.y for c in self.centers], dtype=float)

    def __len__(self) -> int:
        return len(self.centers)

    def __iter__(self) -> Iterator[ClusterCenter]:
        return iter(self.centers)

    def nearest(self, x: float, y: float) -> Tuple[Optional[ClusterCenter], float]:
        """Nearest center and its Euclidean distance; (None, inf) if empty."""
        if not self.centers:
            return None, math.inf
        dists = np.hypot(self._xs - x, self._ys - y)
        i = int(np.argmin(dists))
        return self.centers[i], float(dists[i])


def create_clusters(config: Config, rng: random.Random) -> ClusterSet:
    """Scatter ``clustering.count`` centers uniformly over the canvas."""
    count = config.clustering.count
    width, height = config.canvas_size.width, config.canvas_size.height
    palette = config.colors.palette
    if count > 0 and not palette:
        raise ValueError("colors.palette must not be empty when clustering.count > 0")
    centers = []
    for _ in range(max(0, count)):
        centers.append(ClusterCenter(
            x=rng.random() * width,
            y=rng.random() * height,
            color=rng.choice(palette),
        ))
    return ClusterSet(centers)


# ---------------------------- Symbol selection ------------------------------

def pick_symbol(
    left: Optional[str],
    top: Optional[str],
    alphabet: Sequence[str],
    adjacent_penalty: float,
    rng: random.Random,
) -> str:
    """Random glyph that tends not to repeat its left/top neighbor.

    A candidate matching a neighbor is rejected with probability
    ``adjacent_penalty``. After MAX_SYMBOL_ATTEMPTS rejections one last
    unconditional draw is returned, so even a penalty of 1.0 can repeat.
    """
    for _ in range(MAX_SYMBOL_ATTEMPTS):
        candidate = rng.choice(alphabet)
        if candidate != left and candidate != top:
            return candidate
        if rng.random() >= adjacent_penalty:
            return candidate
    return rng.choice(alphabet)


# ---------------------------- Color / opacity -------------------------------

@dataclass(frozen=True)
class CellStyle:
    icon_color: str
    shape_color: str
    shape_stroke_color: str
    icon_opacity: float
    shape_fill_opacity: float
    shape_stroke_opacity: float
    colored: bool = False


@dataclass(frozen=True)
class Absent:
    """An empty grid slot (dropped by the density cull)."""

    def __bool__(self) -> bool:
        return False


ABSENT = Absent()


def pale_opacities(distance: float, config: Config) -> Tuple[float, float]:
    """Fill and stroke opacity of a pale cell at ``distance`` from the nearest cluster."""
    cl = config.clustering
    fill_opacity = config.shape.fill_opacity
    reach = cl.max_radius * cl.dimming_factor
    dim_factor = min(1.0, distance / reach) if reach > 0 else 1.0
    dim_fill = (1 - dim_factor) * (fill_opacity - cl.min_dim_opacity) + cl.min_dim_opacity
    stroke_ratio = config.shape.stroke_opacity / fill_opacity if fill_opacity > 0 else 0.0
    return dim_fill, dim_fill * stroke_ratio


def resolve_style(
    x: float,
    y: float,
    clusters: ClusterSet,
    config: Config,
    rng: random.Random,
) -> Union[CellStyle, Absent]:
    """Colored, pale or absent attributes for the lattice point (x, y)."""
    colors = config.colors
    icon_opacity = config.symbols.default_icon_opacity
    nearest, dist = clusters.nearest(x, y)
    max_radius = config.clustering.max_radius

    if nearest is not None and dist < max_radius:
        probability = 1 - dist / max_radius
        if rng.random() < probability:
            # colored cells are exempt from the density cull
            opacity = config.clustering.colored_opacity
            return CellStyle(
                icon_color=colors.colored_icon_color,
                shape_color=nearest.color,
                shape_stroke_color=nearest.color,
                icon_opacity=icon_opacity,
                shape_fill_opacity=opacity,
                shape_stroke_opacity=opacity,
                colored=True,
            )

    if rng.random() >= config.symbols.density:
        return ABSENT

    fill, stroke = pale_opacities(dist, config)
    return CellStyle(
        icon_color=colors.default_icon_color,
        shape_color=colors.default_shape_fill_color,
        shape_stroke_color=colors.default_shape_stroke_color,
        icon_opacity=icon_opacity,
        shape_fill_opacity=fill,
        shape_stroke_opacity=stroke,
    )


# ---------------------------- Grid ------------------------------------------

@dataclass(frozen=True)
class SymbolCell:
    char: str
    x: float
    y: float
    icon_color: str
    shape_color: str
    shape_stroke_color: str
    icon_opacity: float
    shape_fill_opacity: float
    shape_stroke_opacity: float
    colored: bool = False

    @classmethod
    def from_style(cls, char: str, x: float, y: float, style: CellStyle) -> "SymbolCell":
        return cls(
            char=char, x=x, y=y,
            icon_color=style.icon_color,
            shape_color=style.shape_color,
            shape_stroke_color=style.shape_stroke_color,
            icon_opacity=style.icon_opacity,
            shape_fill_opacity=style.shape_fill_opacity,
            shape_stroke_opacity=style.shape_stroke_opacity,
            colored=style.colored,
        )


Cell = Union[SymbolCell, Absent]


class Grid:
    """Dense rows of cells; every slot holds a SymbolCell or ABSENT."""

    def __init__(self, rows: List[List[Cell]]):
        self.rows = rows

    @classmethod
    def empty(cls) -> "Grid":
        return cls([])

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def dimensions(self) -> Tuple[int, int]:
        return self.row_count, self.column_count

    def cell(self, row: int, col: int) -> Cell:
        return self.rows[row][col]

    def char_at(self, row: int, col: int) -> Optional[str]:
        if row < 0 or col < 0 or row >= len(self.rows) or col >= len(self.rows[row]):
            return None
        c = self.cell(row, col)
        return c.char if isinstance(c, SymbolCell) else None

    def symbols(self) -> Iterator[SymbolCell]:
        for row in self.rows:
            for c in row:
                if isinstance(c, SymbolCell):
                    yield c

    def counts(self) -> Dict[str, int]:
        out = {"colored": 0, "pale": 0, "absent": 0}
        for row in self.rows:
            for c in row:
                if isinstance(c, SymbolCell):
                    out["colored" if c.colored else "pale"] += 1
                else:
                    out["absent"] += 1
        return out


def overscan(config: Config) -> Tuple[float, float]:
    """Border added on each side when rendering for seamless tiling."""
    g = config.grid
    if not g.seamless_rendering:
        return 0.0, 0.0
    r = config.shape.radius
    return g.spacing_x + r, g.spacing_y + r


def grid_dimensions(config: Config) -> Tuple[int, int]:
    """(rows, columns) of the lattice; (0, 0) for non-positive spacing."""
    g = config.grid
    if g.spacing_x <= 0 or g.spacing_y <= 0:
        return 0, 0
    ex, ey = overscan(config)
    rows = max(0, math.ceil((config.canvas_size.height + 2 * ey) / g.spacing_y))
    cols = max(0, math.ceil((config.canvas_size.width + 2 * ex) / g.spacing_x))
    return rows, cols


def lattice_point(row: int, col: int, config: Config) -> Tuple[float, float]:
    """Logical position of a lattice slot; odd rows shift right by half a step."""
    g = config.grid
    ex, ey = overscan(config)
    stagger = g.spacing_x / 2 if row % 2 == 1 else 0.0
    x = g.spacing_x / 2 + stagger - ex + col * g.spacing_x
    y = g.spacing_y / 2 - ey + row * g.spacing_y
    return x, y


def populate_grid(
    config: Config,
    clusters: ClusterSet,
    alphabet: Sequence[str],
    rng: random.Random,
) -> Grid:
    g = config.grid
    if g.spacing_x <= 0 or g.spacing_y <= 0:
        logger.warning("Grid spacing must be positive (got %sx%s); nothing to draw.",
                       g.spacing_x, g.spacing_y)
        return Grid.empty()

    n_rows, n_cols = grid_dimensions(config)
    penalty = config.symbols.adjacent_penalty
    grid = Grid([])
    for row in range(n_rows):
        cells: List[Cell] = []
        grid.rows.append(cells)
        for col in range(n_cols):
            x, y = lattice_point(row, col, config)
            style = resolve_style(x, y, clusters, config, rng)
            if isinstance(style, Absent):
                cells.append(ABSENT)
                continue
            char = pick_symbol(grid.char_at(row, col - 1), grid.char_at(row - 1, col),
                               alphabet, penalty, rng)
            cells.append(SymbolCell.from_style(char, x, y, style))
    return grid


# ---------------------------- Drawing primitives ----------------------------

def load_font(path: Optional[Union[str, Path]], size: float) -> ImageFont.FreeTypeFont:
    """Icon font at ``size`` pixels, or Pillow's built-in font if no path is set."""
    px = max(1, int(round(size)))
    if path is None:
        logger.warning("No icon font configured; using Pillow's default font.")
        return ImageFont.load_default(size=px)
    return ImageFont.truetype(str(path), px)


@dataclass
class Surface:
    """RGBA drawing target. Logical coordinates are multiplied by scale*aa."""
    image: Image.Image
    width: int
    height: int
    scale: float = 1.0
    aa: int = 1

    @classmethod
    def create(cls, width: int, height: int, scale: float = 1.0, aa: int = 1) -> "Surface":
        if aa < 1:
            raise ValueError("aa must be >= 1")
        if scale <= 0:
            raise ValueError("scale must be positive")
        k = scale * aa
        size = (max(1, int(round(width * k))), max(1, int(round(height * k))))
        return cls(Image.new("RGBA", size, (0, 0, 0, 0)), width, height, scale, aa)

    @property
    def factor(self) -> float:
        return self.scale * self.aa

    def to_image(self) -> Image.Image:
        if self.aa == 1:
            return self.image.copy()
        size = (max(1, int(round(self.width * self.scale))), max(1, int(round(self.height * self.scale))))
        return self.image.resize(size, resample=Image.Resampling.LANCZOS)


def _alpha(opacity: float) -> int:
    return max(0, min(255, int(round(opacity * 255))))


def paste_mask(canvas: Image.Image, mask: Image.Image, left: int, top: int, rgb: Tuple[int, int, int]) -> None:
    """Source-over composite of a solid color through ``mask`` at (left, top), clipped."""
    W, H = canvas.size
    if left >= W or top >= H or left + mask.width <= 0 or top + mask.height <= 0:
        return
    tile = Image.new("RGBA", mask.size, rgb + (0,))
    tile.putalpha(mask)
    sx, sy = max(0, -left), max(0, -top)
    canvas.alpha_composite(tile, dest=(left + sx, top + sy), source=(sx, sy))


def draw_shape(
    canvas: Image.Image,
    cx: float,
    cy: float,
    radius: float,
    corners: int,
    color: Tuple[int, int, int],
    opacity: float,
    stroke_width: float = 0,
) -> None:
    """Fill (stroke_width == 0) or stroke a circle/regular polygon centred at (cx, cy).

    Strokes straddle the outline, half inside and half outside.
    """
    if corners < 2 or radius <= 0:
        return
    a = _alpha(opacity)
    if a == 0:
        return
    width = max(1, int(round(stroke_width))) if stroke_width > 0 else 0
    outer = radius
    if width:
        half = width / 2
        outer = radius + (half if corners == 2 else half / math.cos(math.pi / corners))
    left = int(math.floor(cx - outer)) - 1
    top = int(math.floor(cy - outer)) - 1
    side = int(math.ceil(2 * outer)) + 3
    mask = Image.new("L", (side, side), 0)
    d = ImageDraw.Draw(mask)
    lx, ly = cx - left, cy - top
    if corners == 2:
        box = [lx - outer, ly - outer, lx + outer, ly + outer]
        if width:
            d.ellipse(box, outline=a, width=width)
        else:
            d.ellipse(box, fill=a)
    else:
        pts = polygon_points(lx, ly, outer, corners)
        if width:
            d.polygon(pts, outline=a, width=width)
        else:
            d.polygon(pts, fill=a)
    paste_mask(canvas, mask, left, top, color)


def draw_glyph(
    canvas: Image.Image,
    cx: float,
    cy: float,
    char: str,
    font: ImageFont.FreeTypeFont,
    color: Tuple[int, int, int],
    opacity: float,
) -> None:
    a = _alpha(opacity)
    if a == 0:
        return
    l, t, r, b = font.getbbox(char, anchor="mm")
    left = int(math.floor(cx + l)) - 1
    top = int(math.floor(cy + t)) - 1
    w = int(math.ceil(r - l)) + 3
    h = int(math.ceil(b - t)) + 3
    mask = Image.new("L", (max(1, w), max(1, h)), 0)
    ImageDraw.Draw(mask).text((cx - left, cy - top), char, fill=a, font=font, anchor="mm")
    paste_mask(canvas, mask, left, top, color)


# ---------------------------- Renderer --------------------------------------

def render_grid(
    grid: Grid,
    config: Config,
    surface: Surface,
    font: ImageFont.FreeTypeFont,
) -> Surface:
    """Paint background, then shape fill, stroke and glyph per cell (row-major).

    ``font`` must already be sized for the surface (font_size * surface.factor).
    """
    k = surface.factor
    canvas = surface.image
    shape = config.shape
    ImageDraw.Draw(canvas).rectangle(
        [0, 0, canvas.width, canvas.height],
        fill=color_to_rgb(config.colors.background) + (255,),
    )
    for cell in grid.symbols():
        px, py = cell.x * k, cell.y * k
        if shape.corners >= 2:
            draw_shape(canvas, px, py, shape.radius * k, shape.corners,
                       color_to_rgb(cell.shape_color), cell.shape_fill_opacity)
            if shape.stroke_width > 0:
                draw_shape(canvas, px, py, shape.radius * k, shape.corners,
                           color_to_rgb(cell.shape_stroke_color), cell.shape_stroke_opacity,
                           stroke_width=shape.stroke_width * k)
        draw_glyph(canvas, px, py, cell.char, font, color_to_rgb(cell.icon_color), cell.icon_opacity)
    return surface


# ---------------------------- High-level API --------------------------------

class BackgroundGenerator:
    """Owns the configuration, the current clusters/grid and the primary surface.

    Call ``load_resources()`` once before the first ``regenerate()``.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        font_path: Optional[Union[str, Path]] = None,
        seed: Optional[int] = None,
        device_pixel_ratio: float = 1.0,
        aa: int = 1,
    ):
        if font_path is not None and not Path(font_path).is_file():
            raise ResourceMissingError(f"Font file {str(font_path)!r} not found.")
        if device_pixel_ratio <= 0:
            raise ValueError("device_pixel_ratio must be positive")
        self.config = config if config is not None else Config()
        self.font_path = Path(font_path) if font_path is not None else None
        self.device_pixel_ratio = device_pixel_ratio
        self.aa = aa
        self.rng = rng_from_seed(seed)
        self.symbols = decode_symbols(self.config.symbols.list)
        self.clusters = ClusterSet()
        self.grid = Grid.empty()
        self._snapshot = self.config.copy()
        self._fonts: Dict[int, ImageFont.FreeTypeFont] = {}
        self._ready = False
        self.surface = Surface.create(1, 1)
        self.set_canvas_resolution(self.config.canvas_size.width, self.config.canvas_size.height)

    @property
    def ready(self) -> bool:
        return self._ready

    def load_resources(self) -> "BackgroundGenerator":
        """Load the icon font; required once before generating."""
        if not self._ready:
            self._font(self.config.symbols.font_size)
            logger.info("Loaded font %s", self.font_path or "<default>")
            self._ready = True
        return self

    def _font(self, size: float) -> ImageFont.FreeTypeFont:
        px = max(1, int(round(size)))
        font = self._fonts.get(px)
        if font is None:
            font = self._fonts[px] = load_font(self.font_path, px)
        return font

    def _require_ready(self) -> None:
        if not self._ready:
            raise NotReadyError("Call load_resources() before generating or rendering.")

    def set_canvas_resolution(self, width: int, height: int) -> None:
        """Resize the primary surface (device pixel ratio aware) and record the size."""
        if width <= 0 or height <= 0:
            raise ValueError("Canvas width and height must be positive")
        self.config.canvas_size.width = width
        self.config.canvas_size.height = height
        self.surface = Surface.create(width, height, self.device_pixel_ratio, self.aa)

    resize = set_canvas_resolution

    def regenerate(self) -> Grid:
        """New clusters and grid from the current config, then redraw.

        The new grid is drawn onto a fresh surface sized from the config; the
        previous grid, snapshot and surface stay in place if anything fails.
        """
        self._require_ready()
        snapshot = self.config.copy()
        symbols = decode_symbols(snapshot.symbols.list)
        clusters = create_clusters(snapshot, self.rng)
        grid = populate_grid(snapshot, clusters, symbols, self.rng)
        size = snapshot.canvas_size
        surface = Surface.create(size.width, size.height, self.device_pixel_ratio, self.aa)
        self._render(grid, snapshot, surface)
        self._snapshot, self.symbols, self.clusters, self.grid = snapshot, symbols, clusters, grid
        self.surface = surface
        rows, cols = grid.dimensions
        logger.debug("Generated %dx%d grid with %d clusters: %s", rows, cols, len(clusters), grid.counts())
        return grid

    def apply_settings(self, changes: Optional[Mapping[str, Any]] = None, **sections: Any) -> Grid:
        """Merge edited settings, reset the surface resolution and regenerate."""
        merged = dict(changes or {})
        merged.update(sections)
        self.config.update(merged)
        self.set_canvas_resolution(self.config.canvas_size.width, self.config.canvas_size.height)
        return self.regenerate()

    def render(self, surface: Surface) -> Surface:
        """Draw the current grid into any surface."""
        return self._render(self.grid, self._snapshot, surface)

    def _render(self, grid: Grid, config: Config, surface: Surface) -> Surface:
        self._require_ready()
        font = self._font(config.symbols.font_size * surface.factor)
        return render_grid(grid, config, surface, font)

    @property
    def image(self) -> Image.Image:
        return self.surface.to_image()

    def render_to_surface(self, width: int, height: int, scale: Optional[float] = None) -> Image.Image:
        """Render the current grid into a fresh off-screen surface of logical size width x height."""
        surface = Surface.create(width, height,
                                 self.device_pixel_ratio if scale is None else scale, self.aa)
        return self.render(surface).to_image()

    def export_png(
        self,
        out_dir: Union[str, Path] = ".",
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Path:
        width = width or self._snapshot.canvas_size.width
        height = height or self._snapshot.canvas_size.height
        img = self.render_to_surface(width, height)
        out_path = Path(out_dir) / f"{APP_NAME}_{width}x{height}.png"
        out_path.parent.mkdir(parents=True, exist_ok=True)
        img.save(out_path, format="PNG", optimize=True)
        logger.info("Wrote %s (%dx%d px)", out_path, img.width, img.height)
        return out_path


def generate(
    out_dir: Union[str, Path] = ".",
    config: Optional[Config] = None,
    font_path: Optional[Union[str, Path]] = None,
    seed: Optional[int] = None,
    scale: float = 1.0,
    aa: int = 1,
) -> Path:
    """High-level convenience. Returns the path of the written PNG."""
    gen = BackgroundGenerator(config, font_path=font_path, seed=seed, device_pixel_ratio=scale, aa=aa)
    gen.load_resources()
    gen.regenerate()
    return gen.export_png(out_dir)


# ---------------------------- CLI -------------------------------------------

def parse_size(s: str) -> Tuple[int, int]:
    if "x" not in s.lower():
        raise argparse.ArgumentTypeError("Size must be like 1920x1080")
    a, b = s.lower().split("x", 1)
    try:
        w, h = int(a), int(b)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid size: {s!r}")
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError("Size must be positive")
    return w, h


def parse_spacing(s: str) -> Tuple[int, int]:
    """'50' or '50x40'."""
    parts = s.lower().split("x")
    try:
        vals = [int(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid spacing: {s!r}")
    if len(vals) == 1:
        return vals[0], vals[0]
    if len(vals) == 2:
        return vals[0], vals[1]
    raise argparse.ArgumentTypeError("Spacing must be like 50 or 50x40")


def unit_float(s: str) -> float:
    v = float(s)
    if not (0.0 <= v <= 1.0):
        raise argparse.ArgumentTypeError(f"{s} is not between 0 and 1")
    return v


# (option dest, config section, config key)
_OVERRIDES = [
    ("font_size", "symbols", "fontSize"),
    ("icon_opacity", "symbols", "defaultIconOpacity"),
    ("density", "symbols", "density"),
    ("adjacent_penalty", "symbols", "adjacentPenalty"),
    ("clusters", "clustering", "count"),
    ("cluster_radius", "clustering", "maxRadius"),
    ("colored_opacity", "clustering", "coloredOpacity"),
    ("corners", "shape", "corners"),
    ("shape_radius", "shape", "radius"),
    ("fill_opacity", "shape", "fillOpacity"),
    ("stroke_width", "shape", "strokeWidth"),
    ("stroke_opacity", "shape", "strokeOpacity"),
    ("seamless", "grid", "seamlessRendering"),
]


def build_config(args: argparse.Namespace) -> Config:
    cfg = load_config(args.config) if args.config else Config()
    changes: Dict[str, Dict[str, Any]] = {}
    for dest, section, key in _OVERRIDES:
        value = getattr(args, dest)
        if value is not None:
            changes.setdefault(section, {})[key] = value
    if args.size:
        changes["canvasSize"] = {"width": args.size[0], "height": args.size[1]}
    if args.spacing:
        changes.setdefault("grid", {}).update(spacingX=args.spacing[0], spacingY=args.spacing[1])
    return cfg.update(changes)


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Render an icon-grid wallpaper PNG")
    ap.add_argument("--config", default=None, help="JSON config file (camelCase keys)")
    ap.add_argument("--size", type=parse_size, default=None, help="WIDTHxHEIGHT (e.g., 2560x1440)")
    ap.add_argument("--spacing", type=parse_spacing, default=None, help="Grid spacing, X or XxY")
    ap.add_argument("--font", default=None, help="Path to the icon font (TTF/OTF)")
    ap.add_argument("--font-size", type=int, default=None)
    ap.add_argument("--icon-opacity", type=unit_float, default=None)
    ap.add_argument("--density", type=unit_float, default=None, help="0..1 share of pale symbols drawn")
    ap.add_argument("--adjacent-penalty", type=unit_float, default=None)
    ap.add_argument("--clusters", type=int, default=None, help="Number of colored clusters")
    ap.add_argument("--cluster-radius", type=int, default=None)
    ap.add_argument("--colored-opacity", type=unit_float, default=None)
    ap.add_argument("--corners", type=int, default=None, help="0/1 none, 2 circle, >=3 polygon")
    ap.add_argument("--shape-radius", type=int, default=None)
    ap.add_argument("--fill-opacity", type=unit_float, default=None)
    ap.add_argument("--stroke-width", type=int, default=None)
    ap.add_argument("--stroke-opacity", type=unit_float, default=None)
    ap.add_argument("--seamless", dest="seamless", action="store_true", default=None,
                    help="Overscan the grid so the image tiles seamlessly")
    ap.add_argument("--no-seamless", dest="seamless", action="store_false", default=None)
    ap.add_argument("--scale", type=float, default=1.0, help="Device pixel ratio of the output")
    ap.add_argument("--aa", type=int, default=1, help="Supersampling factor for antialiasing")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--out-dir", default=".", help="Output directory")
    ap.add_argument("--print-config", action="store_true", help="Print the effective config as JSON and exit")
    ap.add_argument("--log-level", default="warning", choices=["debug", "info", "warning", "error"])
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.aa < 1:
        raise SystemExit("aa must be >= 1")
    if args.scale <= 0:
        raise SystemExit("scale must be positive")

    try:
        cfg = build_config(args)
        if args.print_config:
            print(json.dumps(cfg.to_dict(), indent=2))
            return 0
        out = generate(out_dir=args.out_dir, config=cfg, font_path=args.font,
                       seed=args.seed, scale=args.scale, aa=args.aa)
    except (GlyphwallError, ValueError, OSError) as e:
        raise SystemExit(f"error: {e}") from e
    print(out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
