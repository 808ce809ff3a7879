from __future__ import annotations

import csv
import dataclasses
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any

import numpy as np

from .state import DiagramState, SimulationConfig, SimulationState, StyleConfig, check_weights

METRICS_CSV_FIELDS = [
    "cycles",
    "fit_error",
    "speed",
    "valid",
    "elapsed_s",
    "chunk_s",
]


def save_state_npz(state: DiagramState, path: Path) -> Path:
    """
    Persist a diagram so that a later run resumes from its geometry.
    Elements are stored as JSON and must be JSON-serializable.
    """
    meta: dict[str, Any] = {
        "set_names": list(state.set_names),
        "diagram_id": state.diagram_id,
        "simulation": dataclasses.asdict(state.simulation),
        "config": dataclasses.asdict(state.config),
        "style": dataclasses.asdict(state.style),
        "elements": (
            None
            if state.element_index is None
            else {str(k): list(v) for k, v in state.element_index.items()}
        ),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as fh:
        np.savez_compressed(
            fh,
            curves=np.asarray(state.curves),
            weights=np.asarray(state.region_weights, dtype=np.float64),
            meta=np.asarray(json.dumps(meta, sort_keys=True)),
        )
    return path


def load_state_npz(path: Path) -> DiagramState:
    with np.load(path, allow_pickle=False) as data:
        curves = np.array(data["curves"], dtype=np.float64)
        weights = data["weights"].tolist()
        meta = json.loads(str(data["meta"]))

    names = tuple(meta["set_names"])
    style = dict(meta["style"])
    if style.get("colors") is not None:
        style["colors"] = tuple(style["colors"])
    element_index = None
    if meta["elements"] is not None:
        element_index = MappingProxyType(
            {int(k): tuple(v) for k, v in meta["elements"].items()}
        )
    return DiagramState(
        set_names=names,
        region_weights=check_weights(len(names), weights),
        curves=curves,
        simulation=SimulationState(**meta["simulation"]),
        config=SimulationConfig(**meta["config"]),
        style=StyleConfig(**style),
        diagram_id=meta["diagram_id"],
        element_index=element_index,
    )


def append_metrics_csv(
    csv_path: Path,
    fieldnames: list[str],
    row: dict[str, Any],
) -> None:
    write_header = not csv_path.exists()
    with csv_path.open("a", newline="") as csv_file:
        writer = csv.DictWriter(csv_file, fieldnames=fieldnames)
        if write_header:
            writer.writeheader()
        writer.writerow(row)
