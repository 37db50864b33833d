# src/atlas_assets/core/config/errors.py
"""
Exceções da camada de configuração do Atlas Assets.

Todas herdam de `ConfigError` e representam violações estruturais
durante o carregamento e o merge de arquivos de configuração. Erros de
valores da engine (ex.: `max_workers` inválido) são reportados como
`EngineConfigurationError` por `core.config.settings`.
"""


class ConfigError(Exception):
    """Base para erros de carregamento/resolução de configuração."""


class DefaultsNotFoundError(ConfigError):
    """O arquivo de defaults (obrigatório) não existe."""


class UnsupportedConfigFormatError(ConfigError):
    """
    Extensão de arquivo não suportada.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do arquivo não é um dicionário."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos para a mesma chave durante o deep-merge.

    Exemplo:
        - base:     {"engine": {"max_workers": 4}}
        - override: {"engine": "fast"}
    """
