# tests/core/graph/test_compose.py
"""
Testes da composição de grafos de várias localizações (code locations).

Os testes asseguram que:
- uma chave computada em duas localizações é DuplicateKey
- um source que colide com uma chave computada é descartado e a
  linhagem registra ambas as localizações
"""
import pytest

try:
    from atlas_assets.core.assets.definitions import SourceAsset
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.exceptions import DuplicateKey
    from atlas_assets.core.graph.resolver import compose_graphs, resolve
except Exception as e:  # noqa: BLE001
    compose_graphs = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing compose_graphs. Import error: {_IMPORT_ERR}")


def test_duplicate_computed_key_across_locations(make_step):
    _require_imports()
    g1 = resolve([make_step("orders")], location="sales")
    g2 = resolve([make_step("orders_v2", key="orders")], location="finance")
    with pytest.raises(DuplicateKey) as exc:
        compose_graphs(g1, g2)
    assert exc.value.details["sites"] == ["location 'sales'", "location 'finance'"]


def test_source_collision_keeps_computed_node(make_step):
    _require_imports()
    sales = resolve([make_step("orders")], location="sales")
    finance = resolve(
        [SourceAsset(AssetKey.of("orders")), make_step("report", inputs=["orders"])],
        location="finance",
    )
    composed = compose_graphs(sales, finance)

    orders = AssetKey.of("orders")
    assert composed.source_keys == frozenset()
    assert composed.node(orders).step_name == "orders"
    assert composed.lineage_locations(orders) == {"sales", "finance"}
    assert composed.lineage_locations(AssetKey.of("report")) == {"finance"}
    assert composed.children(orders) == {AssetKey.of("report")}
    assert composed.toposorted_keys == (orders, AssetKey.of("report"))
