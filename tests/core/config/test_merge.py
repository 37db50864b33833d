# tests/core/config/test_merge.py
"""
Testes da política de deep-merge de configuração.

Os testes asseguram que:
- valores escalares são sobrescritos corretamente
- dicionários são mesclados de forma recursiva
- listas são sobrescritas integralmente
- conflitos de tipo são detectados e rejeitados explicitamente
- int e float são tratados como compatíveis
- objetos de entrada não são mutados durante o merge

Decisões arquiteturais:
    - O merge é determinístico e puramente funcional
    - Não há heurísticas implícitas para listas ou tipos mistos
    - Conflitos estruturais são tratados como erro fatal

Limites explícitos:
    - Não valida carregamento de arquivos YAML
    - Não valida integração com a engine
"""
import pytest

try:
    from atlas_assets.core.config.merge import deep_merge
    from atlas_assets.core.config.errors import ConfigTypeConflictError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    ConfigTypeConflictError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing merge module. Implement:\n"
            "- src/atlas_assets/core/config/merge.py (deep_merge)\n"
            "- src/atlas_assets/core/config/errors.py (ConfigTypeConflictError)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    """
    Verifica o comportamento básico de override de valores escalares.

    Invariantes:
        - O valor sobrescrito reflete exatamente o override
        - Chaves não sobrescritas permanecem inalteradas
        - `base` e `override` não sofrem mutação
    """
    _require_imports()
    base = {"a": 1, "b": 2}
    override = {"b": 99}
    out = deep_merge(base, override)

    assert out == {"a": 1, "b": 99}
    assert base == {"a": 1, "b": 2}
    assert override == {"b": 99}


def test_merge_nested_dict():
    _require_imports()
    base = {"engine": {"max_workers": 4, "manifest_dir": "runs"}}
    override = {"engine": {"max_workers": 2}}
    out = deep_merge(base, override)

    assert out == {"engine": {"max_workers": 2, "manifest_dir": "runs"}}


def test_merge_list_override_total():
    _require_imports()
    base = {"engine": {"tags": ["a", "b"]}}
    out = deep_merge(base, {"engine": {"tags": ["c"]}})
    assert out["engine"]["tags"] == ["c"]


def test_merge_numeric_types_are_compatible():
    _require_imports()
    base = {"engine": {"default_retry": {"delay": 1}}}
    out = deep_merge(base, {"engine": {"default_retry": {"delay": 0.5}}})
    assert out["engine"]["default_retry"]["delay"] == 0.5


def test_merge_type_conflict_raises():
    _require_imports()
    base = {"engine": {"max_workers": 4}}
    with pytest.raises(ConfigTypeConflictError):
        deep_merge(base, {"engine": "fast"})
    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"steps": {"a": {"enabled": True}}}, {"steps": {"a": {"enabled": 1}}})
