from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from dto import MonthlyFinancialAggregate, RegimeScenario, SimplesBracket, TaxConfig, TaxParameters
from fator_r import FATOR_R_LIMITE, calcular_fator_r, determinar_anexo
from regime_utils import (
    REGIME_CODE_CBS_IBS,
    REGIME_CODE_PRESUMIDO,
    REGIME_CODE_REAL,
    REGIME_CODE_SIMPLES,
    display_by_code,
)
from ruleset_loader import MODELO_REAL_APURACAO_SIMPLIFICADA

logger = logging.getLogger(__name__)

# Base mensal do Simples: receita efetiva do mes (default) ou media do RBT12.
BASE_RECEITA_MES = "receita_mes"
BASE_RBT12_MEDIA = "rbt12_media"
BASES_MENSAIS = (BASE_RECEITA_MES, BASE_RBT12_MEDIA)


# ==================== FAIXAS DO SIMPLES ====================


def escolher_faixa(rbt12: float, tabela: Sequence[SimplesBracket]) -> SimplesBracket:
    """Faixa com limite_inferior <= rbt12 < limite_superior (ultima faixa sem teto)."""
    if not tabela:
        raise ValueError("Tabela do anexo vazia.")
    if rbt12 < tabela[0].limite_inferior:
        return tabela[0]
    for faixa in tabela:
        if faixa.contem(rbt12):
            return faixa
    raise ValueError(f"Tabela do anexo invalida: nenhuma faixa contem RBT12={rbt12}.")


def calcular_aliquota_simples(rbt12: float, tabela: Sequence[SimplesBracket]) -> Tuple[float, Dict[str, Any]]:
    """
    Aliquota efetiva do Simples: (RBT12 x AliqNom - PD) / RBT12.
    Sem receita acumulada usa a aliquota nominal da primeira faixa.
    Resultado negativo indica tabela malformada: zera e sinaliza em detalhes.
    """
    if rbt12 <= 0:
        primeira = tabela[0]
        return primeira.aliquota, {
            "faixa": primeira.faixa,
            "aliquota_nominal": primeira.aliquota,
            "parcela_deduzir": primeira.deducao,
            "aliquota_negativa_ajustada": False,
        }

    faixa = escolher_faixa(rbt12, tabela)
    efetiva = ((rbt12 * faixa.aliquota) - faixa.deducao) / rbt12
    ajustada = efetiva < 0
    if ajustada:
        logger.warning(
            "Aliquota efetiva negativa (%.6f) na faixa %s para RBT12=%.2f; ajustada para 0.",
            efetiva,
            faixa.faixa,
            rbt12,
        )
        efetiva = 0.0

    return efetiva, {
        "faixa": faixa.faixa,
        "aliquota_nominal": faixa.aliquota,
        "parcela_deduzir": faixa.deducao,
        "aliquota_negativa_ajustada": ajustada,
    }


def aliquota_efetiva_simples(rbt12: float, tabela: Sequence[SimplesBracket]) -> float:
    aliquota, _ = calcular_aliquota_simples(rbt12, tabela)
    return aliquota


# ==================== BASE COMUM ====================


@dataclass(frozen=True)
class SimulationBase:
    """Dados comuns aos quatro regimes para uma competencia."""

    mes: MonthlyFinancialAggregate
    rbt12: float
    folha12: float
    params: TaxParameters
    config: TaxConfig
    base_mensal: str = BASE_RECEITA_MES

    def __post_init__(self) -> None:
        if self.base_mensal not in BASES_MENSAIS:
            raise ValueError(f"base_mensal invalida: {self.base_mensal} (use {', '.join(BASES_MENSAIS)}).")

    @property
    def receita_mes(self) -> float:
        return self.mes.receita_total

    @property
    def receita_base(self) -> float:
        if self.base_mensal == BASE_RBT12_MEDIA:
            return self.rbt12 / 12.0
        return self.receita_mes

    @property
    def fator_r(self) -> float:
        return calcular_fator_r(self.folha12, self.rbt12)

    @property
    def anexo(self) -> str:
        return determinar_anexo(self.fator_r)


def _cenario(
    regime_code: str,
    *,
    receita: float,
    base_calculo: float,
    federal: float,
    municipal: float,
    comentario: str,
    detalhes: Dict[str, Any],
) -> RegimeScenario:
    total = federal + municipal
    return RegimeScenario(
        regime_code=regime_code,
        regime_display=display_by_code(regime_code),
        base_calculo=base_calculo,
        impostos_federais=federal,
        iss_ibs=municipal,
        total=total,
        percentual_receita=(total / receita) * 100.0 if receita > 0 else 0.0,
        comentario_tecnico=comentario,
        detalhes=detalhes,
    )


def _irpj_csll(lucro: float, params: TaxParameters) -> Dict[str, float]:
    excedente = max(0.0, lucro - params.irpj_adicional_limite)
    return {
        "irpj": lucro * params.irpj_aliquota,
        "irpj_adicional": excedente * params.irpj_adicional,
        "csll": lucro * params.csll_aliquota,
    }


# ==================== REGIMES ====================


class SimplesNacional:
    regime_code = REGIME_CODE_SIMPLES

    def calcular(self, base: SimulationBase) -> RegimeScenario:
        receita = base.receita_base
        fator_r = base.fator_r
        anexo = base.anexo
        aliquota, faixa_info = calcular_aliquota_simples(base.rbt12, base.params.tabela_anexo(anexo))
        total = receita * aliquota

        # ISS esta dentro do DAS; parte estimada e retida pelo tomador.
        iss_retido = min(total, receita * base.config.iss_aliquota * base.params.fracao_iss_retido_simples)

        if fator_r < FATOR_R_LIMITE:
            comentario = (
                f"Fator R de {fator_r * 100:.1f}% abaixo de {FATOR_R_LIMITE * 100:.0f}%: "
                "Anexo V com alíquotas mais altas. Considere aumentar folha ou pró-labore."
            )
        else:
            comentario = (
                f"Fator R de {fator_r * 100:.1f}% acima de {FATOR_R_LIMITE * 100:.0f}%: "
                "Anexo III com alíquotas reduzidas."
            )

        detalhes: Dict[str, Any] = {
            "fator_r": fator_r,
            "anexo": anexo,
            "aliquota_efetiva": aliquota,
            "rbt12": base.rbt12,
            "folha12": base.folha12,
            "base_mensal": base.base_mensal,
            "receita_base_periodo": receita,
            "iss_retido_estimado": iss_retido,
            **faixa_info,
        }
        if base.rbt12 > base.params.limite_simples:
            detalhes["alerta_elegibilidade"] = (
                f"RBT12 acima de R$ {base.params.limite_simples:,.2f}: possível desenquadramento do Simples."
            )

        return _cenario(
            self.regime_code,
            receita=receita,
            base_calculo=receita,
            federal=total - iss_retido,
            municipal=iss_retido,
            comentario=comentario,
            detalhes=detalhes,
        )


class LucroPresumido:
    regime_code = REGIME_CODE_PRESUMIDO

    def calcular(self, base: SimulationBase) -> RegimeScenario:
        params = base.params
        receita = base.receita_base
        base_presumida = receita * params.presuncao_servicos

        tributos = _irpj_csll(base_presumida, params)
        tributos["pis"] = receita * params.pis_cumulativo
        tributos["cofins"] = receita * params.cofins_cumulativo
        federal = sum(tributos.values())
        iss = receita * base.config.iss_aliquota

        return _cenario(
            self.regime_code,
            receita=receita,
            base_calculo=base_presumida,
            federal=federal,
            municipal=iss,
            comentario=(
                f"Base presumida de {params.presuncao_servicos * 100:.0f}% sobre a receita. "
                "PIS/COFINS cumulativo sem direito a créditos."
            ),
            detalhes={
                **tributos,
                "iss": iss,
                "presuncao": params.presuncao_servicos,
                "base_mensal": base.base_mensal,
            },
        )


class LucroReal:
    """
    Estimativa de Lucro Real. O modelo default aplica aliquota combinada sobre a
    receita; `apuracao_simplificada` abate despesas do mes e credita PIS/COFINS.
    Nenhum dos dois substitui a apuracao contabil (LALUR).
    """

    regime_code = REGIME_CODE_REAL

    def calcular(self, base: SimulationBase) -> RegimeScenario:
        params = base.params
        receita = base.receita_base
        lucro_contabil = max(0.0, receita - base.mes.despesas_dedutiveis)
        margem = (lucro_contabil / receita) if receita > 0 else 0.0
        iss = receita * base.config.iss_aliquota

        if params.modelo_lucro_real == MODELO_REAL_APURACAO_SIMPLIFICADA:
            return self._apuracao_simplificada(base, receita, lucro_contabil, margem, iss)

        federal = receita * params.aliquota_combinada_real
        return _cenario(
            self.regime_code,
            receita=receita,
            base_calculo=receita,
            federal=federal,
            municipal=iss,
            comentario=(
                f"Estimativa por alíquota combinada de {params.aliquota_combinada_real * 100:.1f}% sobre a receita. "
                f"Margem líquida estimada de {margem * 100:.1f}%; não substitui apuração contábil."
            ),
            detalhes={
                "modelo": params.modelo_lucro_real,
                "aliquota_combinada": params.aliquota_combinada_real,
                "lucro_contabil": lucro_contabil,
                "margem_liquida": margem,
                "iss": iss,
                "base_mensal": base.base_mensal,
            },
        )

    def _apuracao_simplificada(
        self,
        base: SimulationBase,
        receita: float,
        lucro_contabil: float,
        margem: float,
        iss: float,
    ) -> RegimeScenario:
        params = base.params
        tributos = _irpj_csll(lucro_contabil, params)

        base_creditos = base.mes.insumos + base.mes.servicos_terceiros * params.fracao_credito_terceiros
        credito_pis = base_creditos * params.pis_nao_cumulativo
        credito_cofins = base_creditos * params.cofins_nao_cumulativo
        tributos["pis"] = max(0.0, receita * params.pis_nao_cumulativo - credito_pis)
        tributos["cofins"] = max(0.0, receita * params.cofins_nao_cumulativo - credito_cofins)
        federal = sum(tributos.values())

        if margem < params.presuncao_servicos:
            comentario = (
                f"Margem líquida de {margem * 100:.1f}% menor que a presunção de "
                f"{params.presuncao_servicos * 100:.0f}%: Lucro Real pode ser vantajoso."
            )
        else:
            comentario = (
                f"Margem líquida de {margem * 100:.1f}% acima da presunção: "
                "Lucro Presumido tende a ser mais econômico."
            )

        return _cenario(
            self.regime_code,
            receita=receita,
            base_calculo=lucro_contabil,
            federal=federal,
            municipal=iss,
            comentario=comentario,
            detalhes={
                **tributos,
                "modelo": params.modelo_lucro_real,
                "lucro_contabil": lucro_contabil,
                "margem_liquida": margem,
                "creditos_pis_cofins": credito_pis + credito_cofins,
                "iss": iss,
                "base_mensal": base.base_mensal,
            },
        )


class CbsIbs:
    regime_code = REGIME_CODE_CBS_IBS

    def calcular(self, base: SimulationBase) -> RegimeScenario:
        params = base.params
        receita = base.receita_base
        fator_reducao = 1.0 - params.reducao_saude
        cbs_aliquota = params.cbs_aliquota * fator_reducao
        ibs_aliquota = params.ibs_aliquota * fator_reducao

        return _cenario(
            self.regime_code,
            receita=receita,
            base_calculo=receita,
            federal=receita * cbs_aliquota,
            municipal=receita * ibs_aliquota,
            comentario=(
                f"Reforma Tributária (2027+): CBS/IBS com redução de {params.reducao_saude * 100:.0f}% para saúde, "
                f"alíquota efetiva de ~{(cbs_aliquota + ibs_aliquota) * 100:.1f}%. Valores estimados."
            ),
            detalhes={
                "cbs_aliquota_reduzida": cbs_aliquota,
                "ibs_aliquota_reduzida": ibs_aliquota,
                "reducao_saude": params.reducao_saude,
                "base_mensal": base.base_mensal,
            },
        )


# Ordem fixa de avaliacao; desempate do melhor cenario favorece o primeiro.
VARIANTES = (SimplesNacional(), LucroPresumido(), LucroReal(), CbsIbs())
