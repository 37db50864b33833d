# src/atlas_assets/core/config/__init__.py
"""
Camada de configuração do Atlas Assets.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução da configuração final via deep-merge determinístico
    - Hash canônico para rastreabilidade (gravado no Manifest)
    - Leitura tipada das opções da engine (`EngineSettings`)
    - Schema declarativo para configuração estruturada de Steps

Limites explícitos:
    - Não executa Steps
    - Não interage com o grafo de assets
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import canonical_hash, compute_config_hash
from .loader import load_config, load_config_text
from .merge import deep_merge
from .schema import MISSING, ConfigField, ConfigSchema, schema
from .settings import EngineSettings, StepSettings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "canonical_hash",
    "compute_config_hash",
    "load_config",
    "load_config_text",
    "deep_merge",
    "MISSING",
    "ConfigField",
    "ConfigSchema",
    "schema",
    "EngineSettings",
    "StepSettings",
]
