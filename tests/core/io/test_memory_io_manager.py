# tests/core/io/test_memory_io_manager.py
"""
Testes do I/O manager em memória.

Os testes asseguram que:
- valores iniciais (sources) são carregáveis sem execução de Steps
- store/load preservam valores e metadados
- chaves ausentes levantam LoadError (nunca KeyError cru)
- `copy_on_load` isola computações que mutam seus inputs
"""

import pytest

try:
    from atlas_assets.core.assets.keys import AssetKey
    from atlas_assets.core.exceptions import LoadError
    from atlas_assets.core.io.manager import InMemoryIOManager, IOManager
except Exception as e:  # noqa: BLE001
    InMemoryIOManager = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing InMemoryIOManager. Import error: {_IMPORT_ERR}")


def test_initial_values_and_store(memory_io):
    _require_imports()
    io = InMemoryIOManager({"raw/orders": [1, 2]})
    assert io.load(AssetKey.of("raw", "orders")) == [1, 2]

    memory_io.store(AssetKey.of("a"), {"x": 1}, {"rows": 1})
    assert memory_io.load(AssetKey.of("a")) == {"x": 1}
    assert memory_io.metadata_for(AssetKey.of("a")) == {"rows": 1}
    assert memory_io.keys() == [AssetKey.of("a")]
    assert isinstance(memory_io, IOManager)


def test_missing_key_raises_load_error(memory_io):
    _require_imports()
    with pytest.raises(LoadError) as exc:
        memory_io.load(AssetKey.of("nope"))
    assert exc.value.details == {"key": "nope", "backend": "memory"}


def test_copy_on_load():
    _require_imports()
    key = AssetKey.of("a")
    isolated = InMemoryIOManager({key: [1]})
    isolated.load(key).append(2)
    assert isolated.load(key) == [1]

    shared = InMemoryIOManager({key: [1]}, copy_on_load=False)
    shared.load(key).append(2)
    assert shared.load(key) == [1, 2]
