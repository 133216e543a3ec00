from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from dto import RegimeScenario
from regimes import VARIANTES, SimulationBase


def compare_regimes(base: SimulationBase) -> List[RegimeScenario]:
    """Os quatro cenarios sobre a mesma base, na ordem SIMPLES, PRESUMIDO, REAL, CBS_IBS."""
    return [variante.calcular(base) for variante in VARIANTES]


def melhor_cenario(cenarios: Sequence[RegimeScenario]) -> RegimeScenario:
    """Menor total; empate fica com o primeiro declarado."""
    if not cenarios:
        raise ValueError("Nenhum cenario para comparar.")
    melhor = cenarios[0]
    for cenario in cenarios[1:]:
        if cenario.total < melhor.total:
            melhor = cenario
    return melhor


def cenario_por_codigo(cenarios: Sequence[RegimeScenario], regime_code: str) -> Optional[RegimeScenario]:
    return next((c for c in cenarios if c.regime_code == regime_code), None)


def economia_vs_atual(cenarios: Sequence[RegimeScenario], regime_atual: str) -> Dict[str, Any]:
    """Economia do melhor cenario frente ao regime configurado (valor e fracao do atual)."""
    melhor = melhor_cenario(cenarios)
    atual = cenario_por_codigo(cenarios, regime_atual)
    if atual is None:
        return {"melhor": melhor.regime_code, "atual": None, "economia": 0.0, "economia_fracao": 0.0}

    economia = max(0.0, atual.total - melhor.total)
    return {
        "melhor": melhor.regime_code,
        "atual": atual.regime_code,
        "economia": economia,
        "economia_fracao": (economia / atual.total) if atual.total > 0 else 0.0,
    }


def tabela_comparativa(cenarios: Sequence[RegimeScenario]) -> List[Dict[str, Any]]:
    melhor = melhor_cenario(cenarios)
    return [
        {
            "regime_code": c.regime_code,
            "regime_display": c.regime_display,
            "total": c.total,
            "percentual_receita": c.percentual_receita,
            "diferenca_melhor": c.total - melhor.total,
            "melhor": c.regime_code == melhor.regime_code,
        }
        for c in cenarios
    ]
