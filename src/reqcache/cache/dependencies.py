"""Derived sub-resource extraction and dependency bookkeeping.

When a list response such as ``/users`` contains items that are
addressable on their own (``/users/5``), seeding those items into the
store makes a later direct read of ``/users/5`` a cache hit.  The parent
remembers which keys it produced so that evicting it can cascade to
derived entries nobody reads.

The extractor is pluggable: any ``(key, value) -> {derived_key: value}``
callable works.  :class:`IdExtractor` covers the common "items with an
``id``" shape.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from reqcache.cache.store import EntryStore
from reqcache.keys import strip_query

logger = logging.getLogger(__name__)

Extractor = Callable[[str, Any], Mapping[str, Any]]


def no_dependencies(key: str, value: Any) -> Mapping[str, Any]:
    return {}


class IdExtractor:
    """Derive ``<path>/<id>`` entries from items of a collection response.

    Args:
        id_field: Item field holding the identifier.
        collection_field: Optional envelope field holding the item list
            (``{"items": [...]}``).  Bare lists are always recognised.

    Example::

        >>> IdExtractor()("/users?active=true", [{"id": 5, "name": "A"}])
        {'/users/5': {'id': 5, 'name': 'A'}}
    """

    def __init__(self, id_field: str = "id", collection_field: Optional[str] = None) -> None:
        self.id_field = id_field
        self.collection_field = collection_field

    def __call__(self, key: str, value: Any) -> dict[str, Any]:
        items = value
        if isinstance(value, dict) and self.collection_field:
            items = value.get(self.collection_field)
        if not isinstance(items, list):
            return {}

        base = strip_query(key).rstrip("/")
        derived: dict[str, Any] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            ident = item.get(self.id_field)
            if ident is None or isinstance(ident, (dict, list)):
                continue
            derived[f"{base}/{ident}"] = item
        return derived


class DependencyResolver:
    """Applies an :data:`Extractor` to freshly written values."""

    def __init__(self, store: EntryStore, extractor: Optional[Extractor] = None) -> None:
        self._store = store
        self._extractor = extractor or no_dependencies

    def resolve(self, key: str, value: Any) -> list[str]:
        """Seed derived entries of *key* and reset its dependency list.

        Derived keys already in the store are left untouched, and keys that
        were derived by an earlier write but not this one are not deleted.

        Returns:
            The keys that were newly seeded.
        """
        parent = self._store.read(key)
        if parent is None:
            return []

        derived = {k: v for k, v in self._extractor(key, value).items() if k != key}
        seeded: list[str] = []
        for derived_key, derived_value in derived.items():
            if derived_key in self._store:
                continue
            self._store.write(derived_key, derived_value)
            seeded.append(derived_key)

        parent.dependent_keys = list(derived)
        if seeded:
            logger.debug("Seeded %d entries derived from %s", len(seeded), key)
        return seeded
