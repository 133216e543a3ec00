from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Sequence, Tuple

from dto import MonthlyFinancialAggregate
from monthly_aggregator import empty_month

JANELA_MESES = 12
RESIDUO_MAXIMO = 1e-6


@dataclass(frozen=True)
class RollingWindow:
    rbt12: float
    folha12: float
    folha_informal12: float
    meses: Tuple[MonthlyFinancialAggregate, ...]


def pad_window(
    aggregates: Sequence[MonthlyFinancialAggregate],
    tamanho: int = JANELA_MESES,
) -> List[MonthlyFinancialAggregate]:
    """Completa meses iniciais faltantes com registros zerados (nunca superestima o Fator R)."""
    ultimos = list(aggregates)[-tamanho:]
    faltantes = tamanho - len(ultimos)
    return [empty_month("") for _ in range(faltantes)] + ultimos


def calculate_rbt12(aggregates: Sequence[MonthlyFinancialAggregate]) -> float:
    total = 0.0
    for m in aggregates:
        total += m.receita_servicos + m.receita_outras
    return total


def calculate_folha12(aggregates: Sequence[MonthlyFinancialAggregate]) -> float:
    """Salários + pró-labore + encargos. Folha informal nunca entra."""
    total = 0.0
    for m in aggregates:
        total += m.folha_salarios + m.folha_prolabore + m.folha_encargos
    return total


def resolve_window(aggregates: Sequence[MonthlyFinancialAggregate]) -> RollingWindow:
    meses = pad_window(aggregates)
    informal = 0.0
    for m in meses:
        informal += m.folha_informal
    return RollingWindow(
        rbt12=calculate_rbt12(meses),
        folha12=calculate_folha12(meses),
        folha_informal12=informal,
        meses=tuple(meses),
    )


def _sem_residuo(total: float) -> float:
    # Somar e subtrair os mesmos valores deixa residuo de ponto flutuante (ex.: 2.7e-17);
    # com RBT12 residual o Fator R explodiria em vez de ser 0.
    if abs(total) < RESIDUO_MAXIMO:
        return 0.0
    return total


class SlidingWindowAccumulator:
    """
    Janela deslizante incremental de 12 meses: soma o mês novo e subtrai o que sai.
    Equivalente ao re-somatório completo a cada ponto, dentro de tolerância de ponto flutuante.
    """

    def __init__(self, tamanho: int = JANELA_MESES) -> None:
        self.tamanho = tamanho
        self._meses: Deque[MonthlyFinancialAggregate] = deque()
        self.rbt12 = 0.0
        self.folha12 = 0.0
        self.folha_informal12 = 0.0

    def push(self, mes: MonthlyFinancialAggregate) -> RollingWindow:
        self._meses.append(mes)
        self.rbt12 += mes.receita_servicos + mes.receita_outras
        self.folha12 += mes.folha_salarios + mes.folha_prolabore + mes.folha_encargos
        self.folha_informal12 += mes.folha_informal

        if len(self._meses) > self.tamanho:
            saiu = self._meses.popleft()
            self.rbt12 = _sem_residuo(self.rbt12 - (saiu.receita_servicos + saiu.receita_outras))
            self.folha12 = _sem_residuo(self.folha12 - (saiu.folha_salarios + saiu.folha_prolabore + saiu.folha_encargos))
            self.folha_informal12 = _sem_residuo(self.folha_informal12 - saiu.folha_informal)

        return self.snapshot()

    def snapshot(self) -> RollingWindow:
        return RollingWindow(
            rbt12=max(0.0, self.rbt12),
            folha12=max(0.0, self.folha12),
            folha_informal12=max(0.0, self.folha_informal12),
            meses=tuple(pad_window(list(self._meses), self.tamanho)),
        )


def trailing_windows(series: Sequence[MonthlyFinancialAggregate]) -> List[RollingWindow]:
    """Uma janela de 12 meses terminando em cada mês da série (incremental)."""
    acc = SlidingWindowAccumulator()
    return [acc.push(mes) for mes in series]


def trailing_windows_naive(series: Sequence[MonthlyFinancialAggregate]) -> List[RollingWindow]:
    return [resolve_window(series[: idx + 1]) for idx in range(len(series))]
