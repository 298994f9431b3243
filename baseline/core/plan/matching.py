"""
Parser de expresiones de coincidencia (sintaxis de opciones de iptables).

Convierte '-p tcp --dport 22 -i eth0' en un conjunto de restricciones
normalizadas para poder decidir si una regla cubre a otra.
"""

import shlex
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Union

# Formas largas → forma canónica
ALIASES = {
    "--protocol": "-p",
    "--source": "-s",
    "--src": "-s",
    "--destination": "-d",
    "--dst": "-d",
    "--in-interface": "-i",
    "--out-interface": "-o",
    "--destination-port": "--dport",
    "--source-port": "--sport",
    "--destination-ports": "--dports",
    "--source-ports": "--sports",
}

# Opciones cuyo valor es una lista separada por comas (se comparan como conjuntos)
SET_VALUED = frozenset({"--state", "--ctstate", "--dports", "--sports"})

# Opciones que no restringen el tráfico
IGNORED = frozenset({"-m", "--match", "--comment"})

# Valores equivalentes a "sin restricción"
WILDCARDS = {
    "-s": {"0.0.0.0/0", "0/0", "::/0"},
    "-d": {"0.0.0.0/0", "0/0", "::/0"},
    "-p": {"all", "0"},
}

ConstraintValue = Union[str, FrozenSet[str]]


@dataclass(frozen=True)
class MatchSpec:
    """Restricciones normalizadas de una regla: opción → valor"""
    constraints: Dict[str, ConstraintValue] = field(default_factory=dict)

    @property
    def unconstrained(self) -> bool:
        """True si coincide con todo el tráfico (cobertura total)"""
        return not self.constraints

    def covers(self, other: "MatchSpec") -> bool:
        """
        True si todo paquete que coincide con `other` también coincide con esta.
        Cada restricción propia debe estar en `other` con un valor igual o más estrecho.
        """
        for option, value in self.constraints.items():
            if option not in other.constraints:
                if option.startswith("!") and _excludes(option[1:], value, other.constraints.get(option[1:])):
                    continue
                return False
            theirs = other.constraints[option]
            if isinstance(value, frozenset):
                if not isinstance(theirs, frozenset):
                    return False
                # Negado: solo el mismo conjunto; afirmado: subconjunto
                if option.startswith("!") and theirs != value:
                    return False
                if not theirs <= value:
                    return False
            elif not _value_covers(option, value, theirs):
                return False
        return True


def _excludes(option: str, negated: ConstraintValue, theirs: Optional[ConstraintValue]) -> bool:
    """True si el valor afirmativo `theirs` nunca coincide con el valor negado"""
    if theirs is None:
        return False
    if isinstance(negated, frozenset):
        if not isinstance(theirs, frozenset) or any(":" in v for v in negated | theirs):
            return False
        return not (negated & theirs)
    if isinstance(theirs, frozenset):
        return False
    # Rangos, redes y comodines requieren aritmética: no se deciden
    if any(c in v for v in (negated, theirs) for c in ":/+,"):
        return False
    if option == "-p" and (negated.isdigit() or theirs.isdigit()):
        return False
    return negated != theirs


def _value_covers(option: str, ours: str, theirs: ConstraintValue) -> bool:
    if ours == theirs:
        return True
    # Interfaces con comodín: eth+ cubre eth0
    if option in ("-i", "-o") and ours.endswith("+") and isinstance(theirs, str):
        return theirs.startswith(ours[:-1])
    return False


def parse_match(expression: str) -> MatchSpec:
    """Parsea una expresión de coincidencia. '' o 'all' = sin restricción."""
    text = (expression or "").strip()
    if not text or text.lower() == "all":
        return MatchSpec({})

    tokens = shlex.split(text)
    constraints: Dict[str, ConstraintValue] = {}
    negate = False
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "!":
            negate = True
            i += 1
            continue
        if not token.startswith("-"):
            # Valor huérfano: se conserva como restricción literal
            constraints[token] = token
            i += 1
            continue

        option = ALIASES.get(token, token)
        values: List[str] = []
        i += 1
        while i < len(tokens) and not tokens[i].startswith("-"):
            if tokens[i] == "!":
                if values or (i + 1 < len(tokens) and tokens[i + 1].startswith("-")):
                    # '! --opt' infijo: niega a la opción siguiente
                    break
                # Sintaxis antigua: '-s ! 10.0.0.1'
                negate = True
            else:
                values.append(tokens[i])
            i += 1

        if option in IGNORED:
            negate = False
            continue

        raw = " ".join(values)
        if not negate and raw in WILDCARDS.get(option, ()):
            continue

        key = f"!{option}" if negate else option
        negate = False
        if option in SET_VALUED:
            constraints[key] = frozenset(v.strip() for v in raw.split(",") if v.strip())
        else:
            constraints[key] = raw
    return MatchSpec(constraints)
