# src/atlas_assets/core/engine/__init__.py
"""
Engine do Atlas Assets.

Este pacote contém a implementação responsável por **compilar** seleções
em planos e **executar** planos com paralelismo limitado.

Componentes principais:
    - planner → Step Compiler (ExecutionPlan, StepInvocation, InputBinding)
    - engine  → Execution Engine (retry, propagação de skip/falha, Manifest)

Invariantes:
    - Um Step aparece no máximo uma vez por plano
    - Um Step nunca é invocado duas vezes em paralelo na mesma run
    - Eventos gravados nunca são revertidos

Este pacote existe para garantir **execução determinística,
previsível e auditável** de materializações.
"""
