# src/atlas_assets/core/__init__.py
"""
Core do Atlas Assets.

Este pacote contém a implementação canônica do Atlas Assets, reunindo as
responsabilidades de modelagem, resolução, seleção, execução e
rastreabilidade de assets.

O core é projetado para ser:
    - determinístico
    - testável de forma isolada
    - livre de dependências de UI ou orquestradores externos
    - orientado a contratos explícitos

Componentes principais:
    - assets       → AssetKey e declarações (slots, sources, nós resolvidos)
    - pipeline     → contrato de Step, contextos de execução, retry e registro
    - graph        → resolver, AssetGraph imutável e Selection Engine
    - engine       → Step Compiler (planos) e Execution Engine
    - io           → contrato de I/O manager e backends (memória, joblib)
    - traceability → Event Log de materializações e Manifest por run
    - staleness    → classificação de assets stale
    - config       → resolução de configuração (merge, hashing, schema)

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Estado e efeitos colaterais são sempre rastreáveis
"""
