from __future__ import annotations

import hashlib
from itertools import cycle, islice

import numpy as np
import svgwrite  # type: ignore[reportMissingTypeStubs]

from .bezier import beziers_to_svg_path_d, closed_polyline_to_cubic_beziers
from .geometry import bounding_box
from .regions import decompose_regions, label_point
from .state import DiagramState, StyleConfig

# per-n fill palettes, up to 9 sets; larger diagrams cycle the 9-set palette
FILL_COLORS: dict[int, list[str]] = {
    1: ["#7FFF7F"],
    2: ["#7dc9ff", "#ffba7d"],
    3: ["#7dc9ff", "#ffba7d", "#80ff80"],
    4: ["#BCFF78", "#78FFFF", "#BC7AFF", "#FF7D7D"],
    5: ["#98FF7F", "#7BFFFF", "#9B82FF", "#FF82CD", "#FFCB7D"],
    6: ["#82C1FF", "#7DFFBE", "#BFFF7E", "#FFC082", "#FF7FBF", "#BD7BFF"],
    7: ["#C2FF7D", "#84FFAB", "#7CE9FF", "#8682FF", "#F081FF", "#FF7FA1", "#FFCB7D"],
    8: ["#D2FF7F", "#81FF8E", "#86FFED", "#80B3FF", "#AF84FF", "#FF83F3", "#FF8396", "#FFCC80"],
    9: ["#88FF80", "#84FFCE", "#86DFFF", "#848CFF", "#CF87FF", "#FF80DD", "#FF858D", "#FFCE85", "#DDFF7F"],
}


def set_colors(n_sets: int, colors: tuple[str, ...] | None) -> list[str]:
    """One colour per set: the caller's list (cycled if short) or the default palette."""
    if colors:
        return list(islice(cycle(colors), n_sets))
    palette = FILL_COLORS[min(max(n_sets, 1), max(FILL_COLORS))]
    return list(islice(cycle(palette), n_sets))


def format_weight(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3g}"


def document_prefix(state: DiagramState, style: StyleConfig) -> str:
    """
    Identifier prefix of one rendered document: the diagram's creation token
    plus a digest of everything that is drawn, so two different documents
    never share an id or class name.
    """
    h = hashlib.blake2b(digest_size=4)
    h.update(np.ascontiguousarray(state.curves).tobytes())
    h.update(repr(state.region_weights).encode())
    h.update(repr(state.set_names).encode())
    h.update(repr(style).encode())
    return f"vf{state.diagram_id}-{h.hexdigest()}"


def _stylesheet(prefix: str, style: StyleConfig, colors: list[str]) -> str:
    rules = [
        f".{prefix}-set {{ fill-opacity: {style.opacity:g}; "
        f"stroke-width: {style.border_width:g}; stroke-opacity: 1; }}",
    ]
    for i, color in enumerate(colors):
        rules.append(f".{prefix}-set-{i} {{ fill: {color}; stroke: {color}; }}")
    rules.append(
        f".{prefix}-size {{ font-family: sans-serif; "
        f"font-size: {style.size_font_size:g}px; text-anchor: middle; "
        "dominant-baseline: central; fill: #222222; }"
    )
    rules.append(
        f".{prefix}-region {{ font-family: sans-serif; "
        f"font-size: {style.region_font_size:g}px; text-anchor: middle; "
        "dominant-baseline: central; fill: #555555; }"
    )
    rules.append(
        f".{prefix}-legend {{ font-family: sans-serif; "
        f"font-size: {1.5 * style.region_font_size:g}px; "
        "dominant-baseline: central; fill: #222222; }"
    )
    return "\n".join(rules)


def render_svg(state: DiagramState, style: StyleConfig | None = None) -> str:
    """
    Serialize the current curves of a diagram as a standalone SVG document.
    Deterministic for a given state and style.
    """
    if style is None:
        style = state.style
    X = state.curves
    n = state.set_count
    colors = set_colors(n, style.colors)
    prefix = document_prefix(state, style)

    minx, miny, maxx, maxy = bounding_box(X)
    extent = max(maxx - minx, maxy - miny, 1e-12)
    pad = 0.05 * extent
    scale = style.width / (maxx - minx + 2.0 * pad)
    plot_h = (maxy - miny + 2.0 * pad) * scale

    row_h = 2.0 * style.region_font_size
    legend_h = (n * row_h + row_h) if style.show_legend else 0.0
    width = style.width
    height = plot_h + legend_h

    def to_canvas(points: np.ndarray) -> np.ndarray:
        out = np.empty_like(points, dtype=np.float64)
        out[..., 0] = (points[..., 0] - minx + pad) * scale
        out[..., 1] = (maxy + pad - points[..., 1]) * scale
        return out

    dwg = svgwrite.Drawing(profile="full", size=(f"{width:.2f}", f"{height:.2f}"), debug=False)
    dwg.attribs["viewBox"] = f"0 0 {width:.2f} {height:.2f}"
    dwg.attribs["id"] = prefix
    dwg.defs.add(dwg.style(_stylesheet(prefix, style, colors)))

    curves_g = dwg.g(id=f"{prefix}-curves")
    for i in range(n):
        segs = closed_polyline_to_cubic_beziers(to_canvas(X[i]))
        curves_g.add(
            dwg.path(
                d=beziers_to_svg_path_d(segs),
                id=f"{prefix}-set-{i}",
                class_=f"{prefix}-set {prefix}-set-{i}",
            )
        )
    dwg.add(curves_g)

    if style.show_size_labels or style.show_region_labels:
        layout = decompose_regions(np.array(X, dtype=np.float64))
        labels_g = dwg.g(id=f"{prefix}-labels")
        for idx in sorted(layout.geoms):
            anchor = label_point(layout.geoms[idx])
            if anchor is None:
                continue
            x, y = to_canvas(np.asarray(anchor, dtype=np.float64))
            if style.show_size_labels:
                labels_g.add(
                    dwg.text(
                        format_weight(state.region_weights[idx]),
                        insert=(round(float(x), 2), round(float(y), 2)),
                        id=f"{prefix}-size-{idx}",
                        class_=f"{prefix}-size",
                    )
                )
                y = y + style.size_font_size
            if style.show_region_labels:
                labels_g.add(
                    dwg.text(
                        str(idx),
                        insert=(round(float(x), 2), round(float(y), 2)),
                        id=f"{prefix}-region-{idx}",
                        class_=f"{prefix}-region",
                    )
                )
        dwg.add(labels_g)

    if style.show_legend:
        legend_g = dwg.g(id=f"{prefix}-legend")
        for i, name in enumerate(state.set_names):
            y0 = plot_h + row_h * (i + 0.5)
            legend_g.add(
                dwg.rect(
                    insert=(row_h, round(y0, 2)),
                    size=(0.8 * row_h, 0.8 * row_h),
                    id=f"{prefix}-legend-swatch-{i}",
                    class_=f"{prefix}-set {prefix}-set-{i}",
                )
            )
            legend_g.add(
                dwg.text(
                    name,
                    insert=(2.2 * row_h, round(y0 + 0.4 * row_h, 2)),
                    id=f"{prefix}-legend-label-{i}",
                    class_=f"{prefix}-legend",
                )
            )
        dwg.add(legend_g)

    return dwg.tostring()
