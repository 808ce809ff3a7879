from __future__ import annotations

import argparse
import dataclasses
import time
from pathlib import Path
from typing import Protocol, cast

from .vennforce import (
    create_diagram,
    create_diagram_from_sets,
    save_svg,
    simulate,
)
from .vennforce.checkpoint import (
    METRICS_CSV_FIELDS,
    append_metrics_csv,
    load_state_npz,
    save_state_npz,
)
from .vennforce.diagram import set_style
from .vennforce.state import DiagramState, SimulationConfig, StyleConfig
from .utils import debug


class CliArgs(Protocol):
    sets: list[str] | None
    names: list[str] | None
    weights: list[float] | None
    n: int | None
    resume: str | None
    output: str
    cycles: int
    chunk: int
    seed: int | None
    points: int
    checkpoint: str | None
    metrics: str | None
    colors: list[str] | None
    opacity: float
    border_width: float
    font_scale: float
    width: float
    region_labels: bool
    no_size_labels: bool
    no_legend: bool
    verbose: bool


def read_element_file(path: Path) -> list[str]:
    """One element per line; blank lines are skipped."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Lay out a quasi-proportional Venn diagram and write it as SVG"
    )
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument(
        "--sets", nargs="+", help="Element files, one element per line, one file per set"
    )
    src.add_argument(
        "--weights",
        nargs="+",
        type=float,
        help="Region weights w0 .. w(2^n - 1), bit i of the index = inside set i",
    )
    src.add_argument("--resume", help="Resume from a saved .npz checkpoint")
    ap.add_argument("--names", nargs="+", help="Set names (default: file stems)")
    ap.add_argument("--n", type=int, help="Number of sets for --weights")
    ap.add_argument("--output", required=True, help="Output SVG path")
    ap.add_argument("--cycles", type=int, default=3000)
    ap.add_argument(
        "--chunk", type=int, default=500, help="Cycles per simulation call"
    )
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--points", type=int, default=64, help="Vertices per curve")
    ap.add_argument("--checkpoint", help="Write a .npz checkpoint after every chunk")
    ap.add_argument("--metrics", help="Append per-chunk metrics to this CSV")

    # Style
    ap.add_argument("--colors", nargs="+", help="One colour per set")
    ap.add_argument("--opacity", type=float, default=0.4)
    ap.add_argument("--border_width", type=float, default=1.0)
    ap.add_argument("--font_scale", type=float, default=1.0)
    ap.add_argument("--width", type=float, default=500.0)
    ap.add_argument("--region_labels", action="store_true")
    ap.add_argument("--no_size_labels", action="store_true")
    ap.add_argument("--no_legend", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logs")
    return ap


def style_from_args(args: CliArgs) -> StyleConfig:
    return StyleConfig(
        colors=tuple(args.colors) if args.colors else None,
        opacity=args.opacity,
        border_width=args.border_width,
        show_size_labels=not args.no_size_labels,
        show_region_labels=args.region_labels,
        show_legend=not args.no_legend,
        font_scale=args.font_scale,
        width=args.width,
    )


def initial_state(args: CliArgs) -> DiagramState:
    style = style_from_args(args)
    if args.resume is not None:
        state = load_state_npz(Path(args.resume))
        print(f"resumed {args.resume} at cycle {state.cycles}")
        return set_style(state, **dataclasses.asdict(style))

    config = SimulationConfig(points_per_curve=args.points, seed=args.seed)
    if args.sets is not None:
        paths = [Path(p) for p in args.sets]
        names = args.names if args.names else [p.stem for p in paths]
        lists = [read_element_file(p) for p in paths]
        return create_diagram_from_sets(
            lists, set_names=names, config=config, style=style
        )

    weights = cast(list[float], args.weights)
    n = args.n
    if n is None:
        n = max(len(weights).bit_length() - 1, 0)
    return create_diagram(n, weights, set_names=args.names, config=config, style=style)


def main() -> None:
    args = cast(CliArgs, build_parser().parse_args())
    debug.set_verbose(args.verbose)

    if args.cycles < 0:
        raise ValueError("cycles must be >= 0")
    if args.chunk <= 0:
        raise ValueError("chunk must be positive")

    state = initial_state(args)
    debug.log(f"sets={state.set_names} weights={state.region_weights}")

    start_time = time.perf_counter()
    remaining = args.cycles
    while remaining > 0:
        chunk_start = time.perf_counter()
        n_cycles = min(args.chunk, remaining)
        state = simulate(state, n_cycles, render=False)
        remaining -= n_cycles
        print(
            f"cycle {state.cycles:6d}  fit_error={state.simulation.fit_error:.6g}  "
            f"speed={state.speed:.4g}"
        )
        if args.metrics is not None:
            append_metrics_csv(
                Path(args.metrics),
                METRICS_CSV_FIELDS,
                {
                    "cycles": state.cycles,
                    "fit_error": state.simulation.fit_error,
                    "speed": state.speed,
                    "valid": state.simulation.valid,
                    "elapsed_s": time.perf_counter() - start_time,
                    "chunk_s": time.perf_counter() - chunk_start,
                },
            )
        if args.checkpoint is not None:
            save_state_npz(state, Path(args.checkpoint))

    out = save_svg(state, args.output)
    print(f"Saved: {out}  cycles={state.cycles}")


if __name__ == "__main__":
    main()
