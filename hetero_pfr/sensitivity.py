"""Bookkeeping for locally perturbed kinetic and thermodynamic parameters."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Literal, Sequence

logger = logging.getLogger(__name__)

__all__ = ["SensitivityParameter", "SensitivityRegistry"]

DEFAULT_REACTION_DELTA = 1e-2  # relative change of the rate multiplier
DEFAULT_ENTHALPY_DELTA = 1e4  # J/kmol


@dataclass(frozen=True)
class SensitivityParameter:
    """One perturbable parameter.

    ``owner`` indexes the provider list passed to the registry: 0 is the gas,
    1.. are the surfaces in the order they were supplied to the reactor.
    ``target`` is a reaction index for ``kind == "reaction"`` and a species
    index for ``kind == "enthalpy"``.
    """

    name: str
    kind: Literal["reaction", "enthalpy"]
    owner: int
    target: int
    delta: float


class SensitivityRegistry:
    """Ordered list of sensitivity parameters with reversible perturbation."""

    def __init__(self, providers: Sequence[object]) -> None:
        self._providers = list(providers)
        self._params: List[SensitivityParameter] = []
        # index -> unperturbed value captured at apply time
        self._active: Dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._params)

    def __getitem__(self, index: int) -> SensitivityParameter:
        return self._params[index]

    def __iter__(self) -> Iterator[SensitivityParameter]:
        return iter(self._params)

    @property
    def names(self) -> List[str]:
        return [param.name for param in self._params]

    def add_reaction(
        self,
        owner: int,
        reaction: int,
        name: str | None = None,
        delta: float = DEFAULT_REACTION_DELTA,
    ) -> int:
        self._check_owner(owner)
        label = name or f"reaction {reaction} (provider {owner})"
        return self._append(SensitivityParameter(label, "reaction", owner, int(reaction), float(delta)))

    def add_species_enthalpy(
        self,
        owner: int,
        species: int,
        name: str | None = None,
        delta: float = DEFAULT_ENTHALPY_DELTA,
    ) -> int:
        self._check_owner(owner)
        label = name or f"species {species} enthalpy (phase {owner})"
        return self._append(SensitivityParameter(label, "enthalpy", owner, int(species), float(delta)))

    def apply(self, index: int, delta: float) -> None:
        """Perturb parameter ``index`` by ``delta``.

        Reaction parameters scale the stored multiplier by ``1 + delta``;
        enthalpy parameters add ``delta`` J/kmol to the stored offset.
        Applying an already active parameter re-applies from the stored
        original instead of compounding.
        """

        if index < 0 or delta == 0.0:
            return
        param = self._params[index]
        provider = self._providers[param.owner]
        if index in self._active:
            base = self._active[index]
        elif param.kind == "reaction":
            base = provider.multiplier(param.target)
        else:
            base = provider.enthalpy_offset(param.target)
        self._active[index] = base
        if param.kind == "reaction":
            provider.set_multiplier(param.target, base * (1.0 + delta))
        else:
            provider.set_enthalpy_offset(param.target, base + delta)

    def reset(self, index: int) -> None:
        if index not in self._active:
            return
        param = self._params[index]
        provider = self._providers[param.owner]
        base = self._active.pop(index)
        if param.kind == "reaction":
            provider.set_multiplier(param.target, base)
        else:
            provider.set_enthalpy_offset(param.target, base)

    def reset_all(self) -> None:
        for index in list(self._active):
            self.reset(index)

    @property
    def active(self) -> List[int]:
        return sorted(self._active)

    @contextmanager
    def perturbed(self, index: int, delta: float) -> Iterator[None]:
        """Apply a perturbation for the duration of a ``with`` block."""

        self.apply(index, delta)
        try:
            yield
        finally:
            self.reset(index)

    def _append(self, param: SensitivityParameter) -> int:
        self._params.append(param)
        logger.debug("Registered sensitivity parameter %d: %s", len(self._params) - 1, param.name)
        return len(self._params) - 1

    def _check_owner(self, owner: int) -> None:
        if not 0 <= owner < len(self._providers):
            raise IndexError(f"No provider with index {owner}")
