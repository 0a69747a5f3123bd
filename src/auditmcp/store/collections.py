"""Known collection identifiers.

Collection names are resolved through an explicit lookup table rather
than by transforming caller-supplied strings.
"""

from __future__ import annotations

from enum import Enum

from auditmcp.errors import ValidationError


class Collection(str, Enum):
    """Every collection the service reads or writes."""

    ACTIVOS = "Activos"
    AMENAZAS = "Amenazas"
    VULNERABILIDADES = "Vulnerabilidades"
    SALVAGUARDAS = "Salvaguardas"
    RELACIONES = "Relaciones"
    AUDITORIAS = "Auditorias"
    BORRADORES = "Borradores"
    COUNTERS = "counters"

    @classmethod
    def resolve(cls, name: str) -> Collection:
        """Return the collection registered under *name* (case-insensitive)."""
        key = name.strip().casefold()
        try:
            return _LOOKUP[key]
        except KeyError:
            raise ValidationError(f"Unknown collection: {name!r}") from None


CATALOG_COLLECTIONS: tuple[Collection, ...] = (
    Collection.ACTIVOS,
    Collection.AMENAZAS,
    Collection.VULNERABILIDADES,
    Collection.SALVAGUARDAS,
    Collection.RELACIONES,
)

_LOOKUP: dict[str, Collection] = {member.value.casefold(): member for member in Collection}
# Aliases used by older clients
_LOOKUP.update(
    {
        "assets": Collection.ACTIVOS,
        "threats": Collection.AMENAZAS,
        "vulnerabilities": Collection.VULNERABILIDADES,
        "safeguards": Collection.SALVAGUARDAS,
        "relations": Collection.RELACIONES,
        "audits": Collection.AUDITORIAS,
        "drafts": Collection.BORRADORES,
    }
)
