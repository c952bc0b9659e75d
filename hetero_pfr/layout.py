"""State-vector layout of the 1-D PFR differential-algebraic system."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence, Tuple

import numpy as np

__all__ = ["RowKind", "StateSlot", "StateLayout"]

STATE_NAMES_ISOTHERMAL = ("Velocity", "Density", "Pressure")
STATE_NAMES_ENERGY = STATE_NAMES_ISOTHERMAL + ("Temperature",)


class RowKind(str, Enum):
    DIFFERENTIAL = "differential"
    ALGEBRAIC = "algebraic"


@dataclass(frozen=True)
class StateSlot:
    """One entry of the state vector and the residual row at the same index.

    ``row`` tells whether the residual row at this index contains
    derivatives; ``variable`` tells whether the derivative of this variable
    appears anywhere in the residual.  They differ for the pressure slot,
    whose row is the (algebraic) equation of state while pressure itself is
    differentiated in the momentum row.
    """

    name: str
    group: str
    row: RowKind
    variable: RowKind


@dataclass
class StateLayout:
    slots: Tuple[StateSlot, ...]
    neqs_extra: int
    nsp: int
    gas_closure: int
    surface_blocks: Tuple[Tuple[int, int], ...]
    surface_closures: Tuple[int, ...]
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls,
        energy: bool,
        gas_species: Sequence[str],
        gas_closure: int,
        surfaces: Sequence[Tuple[Sequence[str], int]],
    ) -> "StateLayout":
        """Build the layout.

        ``gas_closure`` and each surface's closure entry are local species
        indices whose balance row is replaced by the sum-to-one constraint.
        """

        diff, alg = RowKind.DIFFERENTIAL, RowKind.ALGEBRAIC
        slots: List[StateSlot] = [
            StateSlot("Velocity", "state", diff, diff),  # continuity
            StateSlot("Density", "state", diff, diff),  # momentum
            StateSlot("Pressure", "state", alg, diff),  # equation of state
        ]
        if energy:
            slots.append(StateSlot("Temperature", "state", diff, diff))
        neqs_extra = len(slots)

        for k, name in enumerate(gas_species):
            kind = alg if k == gas_closure else diff
            slots.append(StateSlot(name, "gas", kind, kind))

        blocks: List[Tuple[int, int]] = []
        closures: List[int] = []
        for names, closure in surfaces:
            start = len(slots)
            for name in names:
                slots.append(StateSlot(name, "surface", alg, alg))
            blocks.append((start, len(slots)))
            closures.append(start + int(closure))

        return cls(
            slots=tuple(slots),
            neqs_extra=neqs_extra,
            nsp=len(gas_species),
            gas_closure=neqs_extra + int(gas_closure),
            surface_blocks=tuple(blocks),
            surface_closures=tuple(closures),
        )

    def __post_init__(self) -> None:
        self._index = {}
        for i, slot in enumerate(self.slots):
            self._index.setdefault(slot.name, i)

    @property
    def neq(self) -> int:
        return len(self.slots)

    @property
    def energy(self) -> bool:
        return self.neqs_extra == len(STATE_NAMES_ENERGY)

    @property
    def gas_slice(self) -> slice:
        return slice(self.neqs_extra, self.neqs_extra + self.nsp)

    @property
    def surface_start(self) -> int:
        return self.neqs_extra + self.nsp

    def names(self, group: str | None = None) -> List[str]:
        return [slot.name for slot in self.slots if group is None or slot.group == group]

    def index(self, name: str) -> int:
        return self._index[name]

    def differential_rows(self) -> np.ndarray:
        return np.array([slot.row is RowKind.DIFFERENTIAL for slot in self.slots])

    def differential_variables(self) -> np.ndarray:
        return np.array([slot.variable is RowKind.DIFFERENTIAL for slot in self.slots])
