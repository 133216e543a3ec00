from __future__ import annotations

from typing import Any, Dict, Tuple

REGIME_CODE_SIMPLES = "SIMPLES"
REGIME_CODE_PRESUMIDO = "PRESUMIDO"
REGIME_CODE_REAL = "REAL"
REGIME_CODE_CBS_IBS = "CBS_IBS"

REGIME_DISPLAY_SIMPLES = "Simples Nacional"
REGIME_DISPLAY_PRESUMIDO = "Lucro Presumido"
REGIME_DISPLAY_REAL = "Lucro Real"
REGIME_DISPLAY_CBS_IBS = "CBS/IBS (Reforma)"

# Ordem de declaracao: desempate do melhor cenario favorece o primeiro.
REGIME_ORDER: Tuple[str, ...] = (
    REGIME_CODE_SIMPLES,
    REGIME_CODE_PRESUMIDO,
    REGIME_CODE_REAL,
    REGIME_CODE_CBS_IBS,
)

# Regimes que uma unidade pode ter configurado hoje (CBS/IBS e apenas projecao).
REGIMES_CONFIGURAVEIS: Tuple[str, ...] = (REGIME_CODE_SIMPLES, REGIME_CODE_PRESUMIDO, REGIME_CODE_REAL)

_DISPLAY_BY_CODE: Dict[str, str] = {
    REGIME_CODE_SIMPLES: REGIME_DISPLAY_SIMPLES,
    REGIME_CODE_PRESUMIDO: REGIME_DISPLAY_PRESUMIDO,
    REGIME_CODE_REAL: REGIME_DISPLAY_REAL,
    REGIME_CODE_CBS_IBS: REGIME_DISPLAY_CBS_IBS,
}

_ALIASES: Dict[str, str] = {
    "simples": REGIME_CODE_SIMPLES,
    "simples nacional": REGIME_CODE_SIMPLES,
    "sn": REGIME_CODE_SIMPLES,
    "presumido": REGIME_CODE_PRESUMIDO,
    "lucro presumido": REGIME_CODE_PRESUMIDO,
    "lp": REGIME_CODE_PRESUMIDO,
    "real": REGIME_CODE_REAL,
    "lucro real": REGIME_CODE_REAL,
    "lr": REGIME_CODE_REAL,
}


def _normalize_text(value: Any) -> str:
    return str(value or "").strip()


def display_by_code(code: str) -> str:
    return _DISPLAY_BY_CODE.get(code, code)


def canonicalize_regime(regime: Any) -> Dict[str, Any]:
    """
    Canonicaliza o rotulo de regime da configuracao da unidade:
    - regime_code: SIMPLES|PRESUMIDO|REAL
    - regime_display: rotulo unico de UI/relatorio
    - reconhecido: False quando o rotulo nao foi entendido e o default foi aplicado
    """
    raw = _normalize_text(regime)
    code = raw.upper()
    if code in REGIMES_CONFIGURAVEIS:
        return {"regime_code": code, "regime_display": display_by_code(code), "reconhecido": True}

    alias = _ALIASES.get(raw.lower())
    if alias:
        return {"regime_code": alias, "regime_display": display_by_code(alias), "reconhecido": True}

    return {
        "regime_code": REGIME_CODE_SIMPLES,
        "regime_display": REGIME_DISPLAY_SIMPLES,
        "reconhecido": False,
    }
