"""
fetchgraph Data Definitions

Immutable descriptors of fetchable or derivable data units.

A definition names its store slot, the definitions it depends on and the
hooks the orchestrator calls while resolving it. Behaviour differences
("has a fetcher" vs. "waits for external input") are expressed through
optional fields, never through subclassing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from fetchgraph.core.ids import IdGenerator, get_default_generator


# =============================================================================
# HOOK SIGNATURES
# =============================================================================

# (mapped_parameters, raw_parameters) -> awaitable result
Fetcher = Callable[[Any, Dict[str, Any]], Union[Awaitable[Any], Any]]
# (mapped_parameters, raw_parameters) -> comparable signature
FetcherKey = Callable[[Any, Dict[str, Any]], Any]
# (mapped_parameters, raw_parameters) -> bool
AvailabilityPredicate = Callable[[Any, Dict[str, Any]], bool]
# raw_parameters -> mapped_parameters
ParameterMapper = Callable[[Dict[str, Any]], Any]
# {"store": ..., "dependencies": ...} -> consumable value
DataMapper = Callable[[Dict[str, Any]], Any]
# (response, mapped_parameters, raw_parameters) -> stored value
ResponseMapper = Callable[[Any, Any, Dict[str, Any]], Any]

DependencyMap = Mapping[str, "Definition"]
DependenciesSpec = Union[DependencyMap, Callable[[], DependencyMap]]


def default_is_data_available(mapped: Any, raw: Dict[str, Any]) -> bool:
    """Data is available once the resolved own value is defined."""
    data = raw.get("data")
    return bool(data) and data.get("value") is not None


# =============================================================================
# DEFINITION
# =============================================================================

@dataclass(frozen=True, eq=False)
class Definition:
    """
    One fetchable/derivable data unit.

    Equality and hashing follow `id`, so definitions can be collected in
    sets and used as mapping keys.
    """
    id: str
    store_id: str

    dependencies: Optional[DependenciesSpec] = None
    fetcher: Optional[Fetcher] = None
    fetcher_key: Optional[FetcherKey] = None
    is_data_available: AvailabilityPredicate = default_is_data_available

    map_parameters: Optional[ParameterMapper] = None
    map_data: Optional[DataMapper] = None
    map_fetcher_response: Optional[ResponseMapper] = None

    # Named overrides sharing this descriptor (and its store slot)
    variants: Mapping[str, "Definition"] = field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Definition):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Definition(id={self.id!r}, store_id={self.store_id!r})"

    @property
    def has_fetcher(self) -> bool:
        return self.fetcher is not None

    def variant(self, name: str) -> "Definition":
        """Get a named override of this definition."""
        try:
            return self.variants[name]
        except KeyError:
            raise KeyError(f"Definition {self.id} has no variant '{name}'") from None


SETTING_NAMES = frozenset(f.name for f in fields(Definition)) - {"variants"}


def _check_settings(settings: Mapping[str, Any]) -> None:
    unknown = set(settings) - SETTING_NAMES
    if unknown:
        raise TypeError(f"Unknown definition setting(s): {', '.join(sorted(unknown))}")


def define_data_handler(
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    id_generator: Optional[IdGenerator] = None,
    **settings: Any,
) -> Definition:
    """
    Create a definition, plus one variant per entry of `overrides`.

    Args:
        overrides: variant name -> settings merged over the base settings.
            Every variant receives its own id but shares the base store
            slot unless `store_id` is overridden.
        id_generator: source of generated ids (default: process-wide).
        **settings: any Definition field except `variants`.

    Returns:
        The base Definition; variants are reachable via `variant(name)`.
    """
    _check_settings(settings)
    ids = id_generator or get_default_generator()

    base: Dict[str, Any] = dict(settings)
    if "id" not in base:
        base["id"] = ids.next("definition")
    if "store_id" not in base:
        base["store_id"] = ids.next("store")

    variants: Dict[str, Definition] = {}
    for name, variant_settings in (overrides or {}).items():
        _check_settings(variant_settings)
        merged = dict(base)
        merged["id"] = ids.next("subdefinition")
        merged.update(variant_settings)
        variants[name] = Definition(**merged)

    return Definition(variants=variants, **base)
