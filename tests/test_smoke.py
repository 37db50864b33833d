# tests/test_smoke.py
"""
Testes de sanidade estrutural (smoke tests) do Atlas Assets.

Este módulo contém testes mínimos cujo único objetivo é garantir que:
- o repositório está estruturalmente válido
- o pacote raiz pode ser importado e expõe a API pública

Invariantes:
    - Estes testes devem sempre passar em um setup correto
    - Não dependem de configuração, filesystem ou I/O

Limites explícitos:
    - Não testar lógica de negócio
    - Não testar fluxo de execução
"""


def test_smoke():
    """Smoke test mínimo: o pacote raiz importa e expõe a API pública."""
    import atlas_assets

    for name in atlas_assets.__all__:
        assert hasattr(atlas_assets, name), name
    assert atlas_assets.__version__
