# src/atlas_assets/core/pipeline/__init__.py
"""
Pipeline do Atlas Assets.

Este pacote define os contratos usados por Steps e pela Engine:
    - step     → declaração imutável de uma unidade de computação
    - types    → Produced/Declined, estados e registros de resultado
    - context  → RunContext (log estruturado, warnings, cancelamento) e StepContext
    - retry    → política de retry com backoff e jitter
    - registry → registro estrutural de declarações

Limites explícitos:
    - Não executa Steps
    - Não resolve o grafo de dependências
"""
