"""Identifier resolution for the chains of one model.

PDB-family data names chains twice: the internal asym id (unique per
model) and the public auth id (shared, for example, by a protein chain and
the ligands bound to it). ChainIndex keeps one read-only map per scheme and
owns the tie-break rule for auth id collisions: polymeric chains win, then
file order.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from molstruct.core.exceptions import ChainNotFoundError, GroupNotFoundError
from molstruct.structure.base import Chain, Group, ResidueNumber


class ChainIndex:
    """asym id -> Chain and auth id -> chains, for one model."""

    def __init__(self, chains: Iterable[Chain], modelnr: int = 0):
        by_asym: dict[str, Chain] = {}
        by_auth: dict[str, list[Chain]] = {}
        for chain in chains:
            if chain.asym_id in by_asym:
                raise ValueError(f"Duplicate asym id '{chain.asym_id}' in model {modelnr}")
            by_asym[chain.asym_id] = chain
            by_auth.setdefault(chain.auth_id, []).append(chain)
        self.modelnr = modelnr
        self._by_asym: Mapping[str, Chain] = MappingProxyType(by_asym)
        self._by_auth: Mapping[str, tuple[Chain, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in by_auth.items()}
        )

    @property
    def asym_ids(self) -> list[str]:
        return list(self._by_asym)

    @property
    def auth_ids(self) -> list[str]:
        return list(self._by_auth)

    def chains_for_auth(self, auth_id: str) -> tuple[Chain, ...]:
        return self._by_auth.get(auth_id, ())

    def lookup_asym(self, asym_id: str, polymer: Optional[bool] = None) -> Optional[Chain]:
        chain = self._by_asym.get(asym_id)
        if chain is None or (polymer is not None and chain.is_polymer != polymer):
            return None
        return chain

    def lookup_auth(self, auth_id: str, polymer: Optional[bool] = None) -> Optional[Chain]:
        """Non-raising auth id lookup.

        With ``polymer`` unset, a polymeric chain is preferred over a
        non-polymeric one carrying the same auth id.
        """
        candidates = self._by_auth.get(auth_id, ())
        if polymer is not None:
            candidates = tuple(c for c in candidates if c.is_polymer == polymer)
        if not candidates:
            return None
        for c in candidates:
            if c.is_polymer:
                return c
        return candidates[0]

    def by_asym(self, asym_id: str, polymer: Optional[bool] = None) -> Chain:
        chain = self.lookup_asym(asym_id, polymer)
        if chain is None:
            raise ChainNotFoundError(asym_id, self.modelnr, kind="asym")
        return chain

    def by_auth(self, auth_id: str, polymer: Optional[bool] = None) -> Chain:
        chain = self.lookup_auth(auth_id, polymer)
        if chain is None:
            raise ChainNotFoundError(auth_id, self.modelnr, kind="auth")
        return chain

    def find_group(self, auth_id: str, pdb_resnum: str) -> Group:
        """Resolve auth id to a chain, then the residue number within it.

        The preferred chain is searched first; ligand chains sharing the
        auth id are searched after it, since author numbering spans both.
        """
        number = ResidueNumber.parse(pdb_resnum)
        preferred = self.by_auth(auth_id)
        try:
            return preferred.find_group(number)
        except GroupNotFoundError:
            for chain in self._by_auth[auth_id]:
                if chain is preferred:
                    continue
                for g in chain:
                    if g.number == number:
                        return g
            raise

    def __contains__(self, asym_id: object) -> bool:
        return asym_id in self._by_asym

    def __len__(self) -> int:
        return len(self._by_asym)
