"""Catalog service and collection lookup tests."""

from __future__ import annotations

import pytest

from auditmcp.catalog import CatalogService
from auditmcp.catalog import resolve_catalog
from auditmcp.errors import NotFoundError
from auditmcp.errors import ValidationError
from auditmcp.store import Collection


@pytest.fixture()
def catalog(store) -> CatalogService:
    return CatalogService(store)


class TestCollectionLookup:
    @pytest.mark.parametrize("name", ["Activos", "activos", "ACTIVOS", " activos ", "assets"])
    def test_resolves_known_names(self, name):
        assert Collection.resolve(name) is Collection.ACTIVOS

    def test_unknown_name_rejected(self):
        with pytest.raises(ValidationError):
            Collection.resolve("Usuarios")

    def test_audit_collections_are_not_catalog(self):
        with pytest.raises(ValidationError):
            resolve_catalog("auditorias")
        with pytest.raises(ValidationError):
            resolve_catalog("counters")


class TestCatalogService:
    async def test_create_and_list(self, catalog):
        created = await catalog.create_item("activos", {"nombre": "firewall"})
        assert created["id"]
        items = await catalog.list_items("Activos")
        assert items == [{"id": created["id"], "nombre": "firewall"}]

    async def test_empty_item_rejected(self, catalog):
        with pytest.raises(ValidationError):
            await catalog.create_item("activos", {})

    async def test_update_overlays_fields(self, catalog):
        created = await catalog.create_item("amenazas", {"nombre": "phishing", "nivel": 1})
        updated = await catalog.update_item("amenazas", created["id"], {"nivel": 3})
        assert updated == {"id": created["id"], "nombre": "phishing", "nivel": 3}

    async def test_update_missing_item(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.update_item("amenazas", "missing", {"nivel": 3})

    async def test_delete(self, catalog):
        created = await catalog.create_item("salvaguardas", {"nombre": "backup"})
        await catalog.delete_item("salvaguardas", created["id"])
        assert await catalog.list_items("salvaguardas") == []
        with pytest.raises(NotFoundError):
            await catalog.delete_item("salvaguardas", created["id"])

    async def test_overview_counts_known_collections(self, catalog, manager):
        await catalog.create_item("activos", {"nombre": "a"})
        await catalog.create_item("activos", {"nombre": "b"})
        await manager.start_in_progress({"id": "u1"})

        overview = await catalog.overview()
        assert overview["Activos"] == 2
        assert overview["Auditorias"] == 1
        assert overview["Borradores"] == 0
        assert "counters" not in overview
