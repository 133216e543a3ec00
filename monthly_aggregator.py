from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from categorizer import CategorizedIncrement, categorize
from dto import AGGREGATE_AMOUNT_FIELDS, LedgerEntry, MonthlyFinancialAggregate
from input_utils import janela_competencias


def empty_month(mes: str) -> MonthlyFinancialAggregate:
    return MonthlyFinancialAggregate(mes=mes)


def fold_increments(
    increments: Iterable[CategorizedIncrement],
    competencias: List[str],
) -> List[MonthlyFinancialAggregate]:
    """
    Soma incrementos por competência. Toda competência pedida gera um registro,
    mesmo sem lançamentos; incrementos fora da faixa são ignorados.
    """
    totais: Dict[str, Dict[str, float]] = {
        mes: {campo: 0.0 for campo in AGGREGATE_AMOUNT_FIELDS} for mes in competencias
    }
    for inc in increments:
        mes = totais.get(inc.mes)
        if mes is None:
            continue
        mes[inc.campo] += inc.valor

    return [MonthlyFinancialAggregate(mes=mes, **totais[mes]) for mes in competencias]


def aggregate_months(
    entries: Iterable[LedgerEntry],
    referencia: str,
    meses: int = 12,
    unidade_id: Optional[str] = None,
) -> List[MonthlyFinancialAggregate]:
    """Um agregado por mês da janela terminada em `referencia`, do mais antigo ao mais recente."""
    competencias = janela_competencias(referencia, meses)
    selecionados = (e for e in entries if unidade_id is None or e.unidade_id == unidade_id)
    return fold_increments((categorize(e) for e in selecionados), competencias)


def month_of(aggregates: List[MonthlyFinancialAggregate], mes: str) -> MonthlyFinancialAggregate:
    return next((m for m in aggregates if m.mes == mes), empty_month(mes))
