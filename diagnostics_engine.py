from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from dto import Diagnostic, DiagnosticThresholds, MonthlyFinancialAggregate, RegimeScenario, TaxParameters
from fator_r import FATOR_R_LIMITE, pontos_para_limite
from formatters import formatar_percentual, formatar_pontos, formatar_reais
from regime_comparator import cenario_por_codigo, economia_vs_atual
from regime_utils import REGIME_CODE_CBS_IBS, REGIME_CODE_REAL, display_by_code

SEVERIDADE_ALERTA = "ALERTA"
SEVERIDADE_SUCESSO = "SUCESSO"
SEVERIDADE_INSIGHT = "INSIGHT"
SEVERIDADE_INFO = "INFO"

CODIGO_FATOR_R = "FATOR_R"
CODIGO_FOLHA_INFORMAL = "FOLHA_INFORMAL"
CODIGO_REGIME_MAIS_ECONOMICO = "REGIME_MAIS_ECONOMICO"
CODIGO_MARGEM_LUCRO_REAL = "MARGEM_LUCRO_REAL"
CODIGO_REFORMA_TRIBUTARIA = "REFORMA_TRIBUTARIA"
CODIGO_CONCENTRACAO_RECEITA = "CONCENTRACAO_RECEITA"
CODIGO_LIMITE_SIMPLES = "LIMITE_SIMPLES"
CODIGO_CONFIGURACAO_PADRAO = "CONFIGURACAO_PADRAO"


@dataclass(frozen=True)
class DiagnosticContext:
    """Estado ja calculado de uma simulacao; as regras so leem daqui."""

    receita_mes: float
    rbt12: float
    folha12: float
    folha_informal12: float
    fator_r: float
    cenarios: Sequence[RegimeScenario]
    regime_atual: str
    meses: Sequence[MonthlyFinancialAggregate]
    params: TaxParameters
    thresholds: DiagnosticThresholds
    parametros_padrao: bool = False
    config_padrao: bool = False


Regra = Callable[[DiagnosticContext], Optional[Diagnostic]]


def regra_fator_r(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    fr_txt = formatar_percentual(ctx.fator_r, casas=1)
    limite_txt = formatar_percentual(FATOR_R_LIMITE, casas=0)
    if ctx.rbt12 <= 0:
        return Diagnostic(
            SEVERIDADE_INFO,
            CODIGO_FATOR_R,
            "Sem receita nos últimos 12 meses: Fator R considerado 0% e Anexo V aplicado por padrão.",
        )
    if ctx.fator_r < FATOR_R_LIMITE:
        return Diagnostic(
            SEVERIDADE_ALERTA,
            CODIGO_FATOR_R,
            f"Fator R atual de {fr_txt}, {formatar_pontos(pontos_para_limite(ctx.fator_r))} abaixo de {limite_txt}: "
            "enquadrado no Anexo V. Considere aumentar pró-labore ou salários para migrar ao Anexo III.",
        )
    if ctx.fator_r < ctx.thresholds.fator_r_margem_seguranca:
        return Diagnostic(
            SEVERIDADE_SUCESSO,
            CODIGO_FATOR_R,
            f"Fator R atual de {fr_txt}, acima de {limite_txt} (Anexo III). "
            "Margem próxima do limite; monitore mensalmente.",
        )
    return Diagnostic(
        SEVERIDADE_SUCESSO,
        CODIGO_FATOR_R,
        f"Fator R atual de {fr_txt}, bem acima de {limite_txt}: benefício do Anexo III garantido.",
    )


def regra_folha_informal(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    custo_total = ctx.folha12 + ctx.folha_informal12
    if custo_total <= 0 or ctx.folha_informal12 <= 0:
        return None
    participacao = ctx.folha_informal12 / custo_total
    if participacao <= ctx.thresholds.informal_tolerancia:
        return None
    return Diagnostic(
        SEVERIDADE_ALERTA,
        CODIGO_FOLHA_INFORMAL,
        f"Pagamentos informais somam {formatar_reais(ctx.folha_informal12)} "
        f"({formatar_percentual(participacao, casas=1)} do custo de pessoal) e não contam para o Fator R. "
        "Avalie a regularização.",
    )


def regra_regime_mais_economico(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    comparacao = economia_vs_atual(ctx.cenarios, ctx.regime_atual)
    if comparacao["atual"] is None or comparacao["melhor"] == comparacao["atual"]:
        return None
    if comparacao["economia_fracao"] <= ctx.thresholds.materialidade_economia:
        return None
    return Diagnostic(
        SEVERIDADE_INSIGHT,
        CODIGO_REGIME_MAIS_ECONOMICO,
        f"{display_by_code(comparacao['melhor'])} seria {formatar_percentual(comparacao['economia_fracao'], casas=1)} "
        f"mais econômico que {display_by_code(comparacao['atual'])} neste mês "
        f"(economia de {formatar_reais(comparacao['economia'])}).",
    )


def regra_margem_lucro_real(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    real = cenario_por_codigo(ctx.cenarios, REGIME_CODE_REAL)
    if real is None or ctx.receita_mes <= 0:
        return None
    margem = float(real.detalhes.get("margem_liquida", 0.0))
    if margem >= ctx.params.presuncao_servicos:
        return None
    return Diagnostic(
        SEVERIDADE_INSIGHT,
        CODIGO_MARGEM_LUCRO_REAL,
        f"Margem líquida de {formatar_percentual(margem, casas=1)} menor que a presunção de "
        f"{formatar_percentual(ctx.params.presuncao_servicos, casas=0)}, favorecendo o Lucro Real.",
    )


def regra_reforma_tributaria(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    cbs = cenario_por_codigo(ctx.cenarios, REGIME_CODE_CBS_IBS)
    atual = cenario_por_codigo(ctx.cenarios, ctx.regime_atual)
    if cbs is None or atual is None or atual.total <= 0:
        return None
    impacto = ((cbs.total - atual.total) / atual.total) * 100.0
    if abs(impacto) > ctx.thresholds.impacto_reforma_relevante:
        direcao = "aumento" if impacto > 0 else "redução"
        return Diagnostic(
            SEVERIDADE_INFO,
            CODIGO_REFORMA_TRIBUTARIA,
            f"Reforma Tributária (2027+): {direcao} estimado de "
            f"{formatar_percentual(abs(impacto), casas=1, ja_percentual=True)} na carga frente ao regime atual.",
        )
    return Diagnostic(
        SEVERIDADE_INFO,
        CODIGO_REFORMA_TRIBUTARIA,
        f"Reforma Tributária (2027+): impacto neutro estimado (variação de "
        f"{formatar_percentual(impacto, casas=1, ja_percentual=True)}).",
    )


def regra_concentracao_receita(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    if ctx.rbt12 <= 0 or not ctx.meses:
        return None
    pico = max(ctx.meses, key=lambda m: m.receita_total)
    participacao = pico.receita_total / ctx.rbt12
    if participacao <= ctx.thresholds.concentracao_receita_max:
        return None
    return Diagnostic(
        SEVERIDADE_ALERTA,
        CODIGO_CONCENTRACAO_RECEITA,
        f"Receita concentrada: {pico.mes or 'um mês'} responde por {formatar_percentual(participacao, casas=1)} "
        "do RBT12. Picos isolados distorcem faixa e Fator R.",
    )


def regra_limite_simples(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    if ctx.rbt12 <= ctx.params.limite_simples:
        return None
    return Diagnostic(
        SEVERIDADE_ALERTA,
        CODIGO_LIMITE_SIMPLES,
        f"RBT12 de {formatar_reais(ctx.rbt12)} acima do limite do Simples "
        f"({formatar_reais(ctx.params.limite_simples)}): risco de desenquadramento.",
    )


def regra_configuracao_padrao(ctx: DiagnosticContext) -> Optional[Diagnostic]:
    usados: List[str] = []
    if ctx.parametros_padrao:
        usados.append("parâmetros tributários")
    if ctx.config_padrao:
        usados.append("configuração da unidade")
    if not usados:
        return None
    return Diagnostic(
        SEVERIDADE_INFO,
        CODIGO_CONFIGURACAO_PADRAO,
        f"Cálculo feito com valores padrão para {' e '.join(usados)}; cadastre os dados da unidade para maior precisão.",
    )


# Ordem fixa: a saida precisa ser reprodutivel.
REGRAS: Sequence[Regra] = (
    regra_fator_r,
    regra_folha_informal,
    regra_regime_mais_economico,
    regra_margem_lucro_real,
    regra_reforma_tributaria,
    regra_concentracao_receita,
    regra_limite_simples,
    regra_configuracao_padrao,
)


def gerar_diagnosticos(ctx: DiagnosticContext, regras: Sequence[Regra] = REGRAS) -> List[Diagnostic]:
    diagnosticos: List[Diagnostic] = []
    for regra in regras:
        diagnostico = regra(ctx)
        if diagnostico is not None:
            diagnosticos.append(diagnostico)
    return diagnosticos

