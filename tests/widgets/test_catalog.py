"""Tests for the builtin widget catalog."""

from statboard.widgets.catalog import (
    CATALOG,
    CATALOG_BY_ID,
    default_modules,
    descriptors_in,
    get_descriptor,
    is_builtin,
)
from statboard.widgets.contracts import Category, WidgetSize


class TestCatalog:

    def test_catalog_has_every_builtin_once(self):
        ids = [d.id for d in CATALOG]
        assert len(ids) == 23
        assert len(set(ids)) == len(ids)

    def test_default_order_follows_declaration(self):
        assert [d.default_order for d in CATALOG] == list(range(len(CATALOG)))
        assert CATALOG[0].id == "sav-types-grid"

    def test_categories(self):
        assert len(descriptors_in(Category.DASHBOARD)) == 6
        assert len(descriptors_in(Category.ADVANCED)) == 6
        assert len(descriptors_in(Category.STANDARD)) == 11
        assert get_descriptor("financial-overview").category is Category.ADVANCED

    def test_sizes(self):
        assert CATALOG_BY_ID["kpi-revenue"].default_size is WidgetSize.SMALL
        assert CATALOG_BY_ID["financial-overview"].default_size is WidgetSize.FULL
        assert CATALOG_BY_ID["annual-stats"].default_size is WidgetSize.LARGE
        assert CATALOG_BY_ID["top-devices"].default_size is WidgetSize.MEDIUM

    def test_builtins_are_never_custom(self):
        assert not any(d.is_custom for d in CATALOG)

    def test_default_modules(self):
        modules = default_modules()
        assert [m.id for m in modules] == [d.id for d in CATALOG]
        assert all(m.enabled for m in modules)
        assert not any(m.is_custom for m in modules)

    def test_lookup_unknown(self):
        assert get_descriptor("nope") is None
        assert is_builtin("kpi-profit")
        assert not is_builtin("custom-abc")
