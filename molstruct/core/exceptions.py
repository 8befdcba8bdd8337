"""Error taxonomy for structure lookups and serialization.

Positional lookups out of range raise the builtin IndexError. Keyed
lookups raise one of the *NotFoundError classes below, which are also
LookupErrors so callers can catch them generically.
"""

from __future__ import annotations


class StructureError(Exception):
    """Base class for all molstruct errors."""


class ChainNotFoundError(StructureError, LookupError):
    """No chain matches the requested asym or auth id."""

    def __init__(self, chain_id: str, modelnr: int = 0, kind: str = "asym"):
        self.chain_id = chain_id
        self.modelnr = modelnr
        self.kind = kind
        super().__init__(f"No chain with {kind} id '{chain_id}' in model {modelnr}")


class GroupNotFoundError(StructureError, LookupError):
    """The chain exists but holds no residue with the requested number."""

    def __init__(self, chain_id: str, residue: str):
        self.chain_id = chain_id
        self.residue = residue
        super().__init__(f"No group '{residue}' in chain '{chain_id}'")


class EntityNotFoundError(StructureError, LookupError):
    """No EntityInfo carries the requested entity id."""

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"No entity with id {entity_id}")


class FormatOverflowError(StructureError, ValueError):
    """A value does not fit into its fixed-width output field."""

    def __init__(self, field: str, value: object, width: int):
        self.field = field
        self.value = value
        self.width = width
        super().__init__(f"{field} value {value!r} does not fit in {width} columns")
