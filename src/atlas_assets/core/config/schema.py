# src/atlas_assets/core/config/schema.py
"""
Schema declarativo para a configuração estruturada de Steps.

A configuração de um Step é um valor estruturado simples (dict) validado
contra um schema declarado (`nome do campo → tipo/restrição`) e entregue
explicitamente à computação via `StepContext.config`.

Regras de validação (v1):
    - campos desconhecidos são rejeitados
    - campos obrigatórios ausentes sem default são rejeitados
    - tipos são verificados com `isinstance` (bool nunca conta como int)
    - `choices` restringe valores permitidos
    - todos os problemas são reportados de uma vez em `ConfigSchemaError`
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union

from atlas_assets.core.exceptions import ConfigSchemaError


class _Missing:
    def __repr__(self) -> str:  # pragma: no cover
        return "MISSING"


MISSING: Any = _Missing()

TypeSpec = Union[Type[Any], Tuple[Type[Any], ...]]


@dataclass(frozen=True)
class ConfigField:
    """Declaração de um campo de configuração."""
    type: TypeSpec
    required: bool = True
    default: Any = MISSING
    choices: Optional[Sequence[Any]] = None
    check: Optional[Callable[[Any], bool]] = field(default=None, compare=False)
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def type_name(self) -> str:
        if isinstance(self.type, tuple):
            return " | ".join(t.__name__ for t in self.type)
        return self.type.__name__


def _matches_type(value: Any, spec: TypeSpec) -> bool:
    types = spec if isinstance(spec, tuple) else (spec,)
    if isinstance(value, bool) and bool not in types:
        return False
    if float in types and isinstance(value, int) and not isinstance(value, bool):
        return True
    return isinstance(value, types)


@dataclass(frozen=True)
class ConfigSchema:
    """Schema `nome → ConfigField` de um Step."""
    fields: Mapping[str, ConfigField] = field(default_factory=dict)

    def validate(self, values: Optional[Mapping[str, Any]], *, step: Optional[str] = None) -> Dict[str, Any]:
        """
        Valida `values` e retorna a configuração resolvida (defaults aplicados).

        Raises:
            ConfigSchemaError: com a lista completa de problemas em `details["problems"]`.
        """
        values = dict(values or {})
        problems: List[str] = []
        resolved: Dict[str, Any] = {}

        for name in sorted(set(values) - set(self.fields)):
            problems.append(f"unknown field '{name}'")

        for name, spec in self.fields.items():
            if name not in values:
                if spec.has_default:
                    resolved[name] = deepcopy(spec.default)
                elif spec.required:
                    problems.append(f"missing required field '{name}'")
                continue

            value = values[name]
            if not _matches_type(value, spec.type):
                problems.append(
                    f"field '{name}' expected {spec.type_name()}, got {type(value).__name__}"
                )
                continue
            if spec.choices is not None and value not in spec.choices:
                problems.append(f"field '{name}' must be one of {list(spec.choices)!r}, got {value!r}")
                continue
            if spec.check is not None and not spec.check(value):
                problems.append(f"field '{name}' failed validation: {value!r}")
                continue
            resolved[name] = value

        if problems:
            raise ConfigSchemaError(
                message=f"Invalid config for step '{step}'" if step else "Invalid step config",
                details={"step": step, "problems": problems},
                hint="Ajuste `steps.<nome>.config` para satisfazer o schema declarado do Step.",
            )
        return resolved


def schema(**fields: ConfigField) -> ConfigSchema:
    return ConfigSchema(fields=dict(fields))
