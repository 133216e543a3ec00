from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from diagnostics_engine import DiagnosticContext, gerar_diagnosticos
from dto import (
    AnexoSavings,
    CategoryRef,
    DiagnosticThresholds,
    FatorRAuditResult,
    LedgerEntry,
    MonthlyFinancialAggregate,
    PayableForFatorR,
    ProlaboreAdjustment,
    SimulationOutput,
    TaxConfig,
    TaxParameters,
    TrendPoint,
)
from fator_r_advisor import calcular_ajuste_prolabore, calcular_economia_anexo
from fator_r_audit import auditar_fator_r
from input_utils import parse_competencia
from monthly_aggregator import aggregate_months
from regime_comparator import compare_regimes, melhor_cenario
from regimes import BASE_RBT12_MEDIA, BASE_RECEITA_MES, SimulationBase
from regularization import RegularizationInput, RegularizationResult, encontrar_regularizacao_otima
from rolling_window import JANELA_MESES, resolve_window, trailing_windows
from ruleset_loader import (
    MODELO_REAL_APURACAO_SIMPLIFICADA,
    get_thresholds,
    resolve_tax_config,
    resolve_tax_parameters,
)

logger = logging.getLogger(__name__)

PONTOS_EVOLUCAO = 12


class TaxSimulationService:
    """
    Service Layer: lancamentos -> agregados mensais -> janela 12m -> cenarios -> diagnosticos.
    UI (CLI/Streamlit) apenas coleta inputs e exibe outputs. Cada chamada e independente.
    """

    def __init__(
        self,
        params: Optional[TaxParameters] = None,
        config: Optional[TaxConfig] = None,
        thresholds: Optional[DiagnosticThresholds] = None,
        base_mensal: str = BASE_RECEITA_MES,
    ) -> None:
        self.params = params
        self.config = config
        self.thresholds = thresholds
        self.base_mensal = base_mensal

    def _resolver(self, referencia: str) -> Tuple[TaxParameters, bool, TaxConfig, bool, DiagnosticThresholds]:
        ano, _ = parse_competencia(referencia)
        params, parametros_padrao = resolve_tax_parameters(self.params, ano=ano)
        config, config_padrao = resolve_tax_config(self.config)
        thresholds = self.thresholds or get_thresholds(params.ruleset_id)
        return params, parametros_padrao, config, config_padrao, thresholds

    @staticmethod
    def _premissas(params: TaxParameters, parametros_padrao: bool, config_padrao: bool, base_mensal: str) -> List[str]:
        premissas: List[str] = []
        if parametros_padrao:
            premissas.append(
                f"Parâmetros tributários padrão embutidos (ano-base {params.ano}); nenhum ruleset cadastrado para o período."
            )
        else:
            premissas.append(f"Parâmetros tributários do ruleset {params.ruleset_id} (ano {params.ano}).")
        if config_padrao:
            premissas.append("Configuração da unidade ausente: Simples Nacional com ISS padrão de 5%.")
        if base_mensal == BASE_RBT12_MEDIA:
            premissas.append("Base mensal dos cenários: média do RBT12 (RBT12 ÷ 12).")
        else:
            premissas.append("Base mensal dos cenários: receita efetiva do mês de referência.")
        if params.modelo_lucro_real == MODELO_REAL_APURACAO_SIMPLIFICADA:
            premissas.append("Lucro Real por apuração simplificada das despesas do mês (estimativa).")
        else:
            premissas.append("Lucro Real estimado por alíquota combinada sobre a receita (estimativa).")
        return premissas

    def simular_agregados(self, meses: Sequence[MonthlyFinancialAggregate], referencia: str) -> SimulationOutput:
        """Simula a partir de agregados ja montados; o ultimo e o mes de referencia."""
        if not meses:
            raise ValueError("Informe ao menos o agregado do mes de referencia.")
        if meses[-1].mes != referencia:
            raise ValueError(f"Ultimo agregado ({meses[-1].mes}) difere da referencia ({referencia}).")

        params, parametros_padrao, config, config_padrao, thresholds = self._resolver(referencia)
        janela = resolve_window(meses)
        base = SimulationBase(
            mes=meses[-1],
            rbt12=janela.rbt12,
            folha12=janela.folha12,
            params=params,
            config=config,
            base_mensal=self.base_mensal,
        )

        cenarios = compare_regimes(base)
        melhor = melhor_cenario(cenarios)
        detalhados = gerar_diagnosticos(
            DiagnosticContext(
                receita_mes=base.receita_base,
                rbt12=janela.rbt12,
                folha12=janela.folha12,
                folha_informal12=janela.folha_informal12,
                fator_r=base.fator_r,
                cenarios=cenarios,
                regime_atual=config.regime_atual,
                meses=janela.meses,
                params=params,
                thresholds=thresholds,
                parametros_padrao=parametros_padrao,
                config_padrao=config_padrao,
            )
        )

        logger.info(
            "Simulacao %s: receita=%.2f rbt12=%.2f fator_r=%.4f anexo=%s melhor=%s",
            referencia,
            base.receita_mes,
            janela.rbt12,
            base.fator_r,
            base.anexo,
            melhor.regime_code,
        )

        return SimulationOutput(
            competencia=referencia,
            receita_total=base.receita_mes,
            rbt12=janela.rbt12,
            folha12=janela.folha12,
            folha_informal12=janela.folha_informal12,
            fator_r=base.fator_r,
            anexo_simples=base.anexo,
            cenarios=tuple(cenarios),
            melhor_cenario=melhor,
            diagnosticos=tuple(d.render() for d in detalhados),
            diagnosticos_detalhados=tuple(detalhados),
            parametros_padrao=parametros_padrao,
            config_padrao=config_padrao,
            premissas=tuple(self._premissas(params, parametros_padrao, config_padrao, self.base_mensal)),
        )

    def simular(
        self,
        entries: Iterable[LedgerEntry],
        referencia: str,
        unidade_id: Optional[str] = None,
    ) -> SimulationOutput:
        meses = aggregate_months(entries, referencia, JANELA_MESES, unidade_id=unidade_id)
        return self.simular_agregados(meses, referencia)

    def simular_evolucao(
        self,
        entries: Iterable[LedgerEntry],
        referencia: str,
        pontos: int = PONTOS_EVOLUCAO,
        unidade_id: Optional[str] = None,
    ) -> List[TrendPoint]:
        """
        Evolucao mensal de Fator R e carga (% da receita) dos quatro regimes nos
        `pontos` meses terminados em `referencia`, com janela deslizante incremental.
        """
        if pontos <= 0:
            raise ValueError("pontos deve ser maior que zero.")
        params, _, config, _, _ = self._resolver(referencia)
        serie = aggregate_months(entries, referencia, pontos + JANELA_MESES - 1, unidade_id=unidade_id)
        janelas = trailing_windows(serie)

        evolucao: List[TrendPoint] = []
        for mes, janela in list(zip(serie, janelas))[-pontos:]:
            base = SimulationBase(
                mes=mes,
                rbt12=janela.rbt12,
                folha12=janela.folha12,
                params=params,
                config=config,
                base_mensal=self.base_mensal,
            )
            evolucao.append(
                TrendPoint(
                    mes=mes.mes,
                    receita=mes.receita_total,
                    fator_r=base.fator_r,
                    anexo=base.anexo,
                    percentuais={c.regime_code: c.percentual_receita for c in compare_regimes(base)},
                )
            )
        return evolucao

    def alerta_fator_r(self, output: SimulationOutput) -> Tuple[ProlaboreAdjustment, AnexoSavings]:
        params, _, _, _, thresholds = self._resolver(output.competencia)
        ajuste = calcular_ajuste_prolabore(
            output.folha12,
            output.rbt12,
            limite_abaixo=thresholds.fator_r_status_abaixo,
        )
        economia = calcular_economia_anexo(output.receita_total, output.rbt12, params)
        return ajuste, economia

    def regularizacao(self, output: SimulationOutput) -> Tuple[float, RegularizationResult]:
        params, _, _, _, _ = self._resolver(output.competencia)
        entrada = RegularizationInput(
            folha_oficial12=output.folha12,
            pagamentos_informais12=output.folha_informal12,
            rbt12=output.rbt12,
            receita_mensal=output.receita_total,
            params=params,
        )
        return encontrar_regularizacao_otima(entrada)

    def auditar(
        self,
        entries: Iterable[LedgerEntry],
        categorias: Iterable[CategoryRef],
        referencia: str,
        payables: Optional[Iterable[PayableForFatorR]] = None,
    ) -> FatorRAuditResult:
        _, _, _, _, thresholds = self._resolver(referencia)
        return auditar_fator_r(entries, categorias, referencia, payables=payables, thresholds=thresholds)
