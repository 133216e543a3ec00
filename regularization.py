from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple

from dto import TaxParameters
from fator_r import ANEXO_III, ANEXO_V, calcular_fator_r, determinar_anexo
from formatters import formatar_meses, formatar_percentual, formatar_reais
from regimes import aliquota_efetiva_simples

# INSS patronal 20% + FGTS 8% + 13o 8,33% + ferias e 1/3 11,11% + RAT/Sistema S ~3%.
TAXA_ENCARGOS_REGULARIZACAO = 0.50
PASSO_PADRAO = 10


@dataclass(frozen=True)
class RegularizationInput:
    folha_oficial12: float
    pagamentos_informais12: float
    rbt12: float
    receita_mensal: float
    params: TaxParameters


@dataclass(frozen=True)
class RegularizationResult:
    percentual_regularizacao: float
    folha_oficial: float
    pagamentos_informais: float
    folha_simulada: float
    fator_r_atual: float
    fator_r_simulado: float
    anexo_atual: str
    anexo_simulado: str
    aliquota_atual: float
    aliquota_simulada: float
    custo_adicional_encargos: float  # anual
    economia_imposto: float  # anual
    resultado_liquido: float  # anual
    roi_regularizacao: float
    payback_meses: float  # inf quando nao ha economia

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def simular_regularizacao(entrada: RegularizationInput, percentual: float) -> RegularizationResult:
    """
    Simula formalizar `percentual` (0-100) dos pagamentos informais dos ultimos 12 meses:
    a folha oficial cresce, o Fator R pode mudar de anexo e os encargos aumentam.
    Ferramenta de diagnostico; nao substitui validacao contabil e trabalhista.
    """
    percentual = max(0.0, min(100.0, float(percentual)))
    valor_regularizado = entrada.pagamentos_informais12 * (percentual / 100.0)
    custo_encargos = valor_regularizado * TAXA_ENCARGOS_REGULARIZACAO
    folha_simulada = entrada.folha_oficial12 + valor_regularizado

    fator_r_atual = calcular_fator_r(entrada.folha_oficial12, entrada.rbt12)
    fator_r_simulado = calcular_fator_r(folha_simulada, entrada.rbt12)
    anexo_atual = determinar_anexo(fator_r_atual)
    anexo_simulado = determinar_anexo(fator_r_simulado)

    params = entrada.params
    aliquota_atual = aliquota_efetiva_simples(entrada.rbt12, params.tabela_anexo(anexo_atual))
    aliquota_simulada = aliquota_efetiva_simples(entrada.rbt12, params.tabela_anexo(anexo_simulado))

    economia_mensal = entrada.receita_mensal * (aliquota_atual - aliquota_simulada)
    economia_anual = economia_mensal * 12.0

    return RegularizationResult(
        percentual_regularizacao=percentual,
        folha_oficial=entrada.folha_oficial12,
        pagamentos_informais=entrada.pagamentos_informais12,
        folha_simulada=folha_simulada,
        fator_r_atual=fator_r_atual,
        fator_r_simulado=fator_r_simulado,
        anexo_atual=anexo_atual,
        anexo_simulado=anexo_simulado,
        aliquota_atual=aliquota_atual,
        aliquota_simulada=aliquota_simulada,
        custo_adicional_encargos=custo_encargos,
        economia_imposto=economia_anual,
        resultado_liquido=economia_anual - custo_encargos,
        roi_regularizacao=(economia_anual / custo_encargos) if custo_encargos > 0 else 0.0,
        payback_meses=(custo_encargos / economia_mensal) if economia_mensal > 0 else math.inf,
    )


def encontrar_regularizacao_otima(
    entrada: RegularizationInput,
    passo: int = PASSO_PADRAO,
) -> Tuple[float, RegularizationResult]:
    """Percentual (em passos de `passo`) com maior resultado liquido; empate fica com o menor."""
    if passo <= 0:
        raise ValueError("passo deve ser maior que zero.")

    melhor_percentual = 0.0
    melhor = simular_regularizacao(entrada, 0)
    for percentual in range(passo, 101, passo):
        resultado = simular_regularizacao(entrada, percentual)
        if resultado.resultado_liquido > melhor.resultado_liquido:
            melhor_percentual = float(percentual)
            melhor = resultado
    return melhor_percentual, melhor


def diagnosticos_regularizacao(resultado: RegularizationResult) -> List[str]:
    diagnosticos: List[str] = []
    percentual_txt = formatar_percentual(resultado.percentual_regularizacao, casas=0, ja_percentual=True)

    if resultado.anexo_atual == ANEXO_V and resultado.anexo_simulado == ANEXO_III:
        diagnosticos.append(
            f"[SUCESSO] Regularizar {percentual_txt} permitiria migrar do Anexo V para o Anexo III, "
            f"com economia anual estimada de {formatar_reais(resultado.economia_imposto)}."
        )

    if resultado.resultado_liquido > 0:
        diagnosticos.append(
            f"[INSIGHT] Resultado líquido positivo de {formatar_reais(resultado.resultado_liquido)} por ano "
            "após o custo adicional de encargos."
        )
    elif resultado.resultado_liquido < 0 and resultado.percentual_regularizacao > 0:
        diagnosticos.append(
            f"[ALERTA] Custo líquido de {formatar_reais(abs(resultado.resultado_liquido))} por ano, "
            "mas a regularização elimina riscos trabalhistas e fiscais."
        )

    if resultado.roi_regularizacao >= 1:
        diagnosticos.append(
            f"[INSIGHT] ROI de {formatar_percentual(resultado.roi_regularizacao, casas=0)}: cada R$ 1,00 em encargos "
            f"gera {formatar_reais(resultado.roi_regularizacao)} de economia tributária."
        )

    if resultado.payback_meses < 12:
        diagnosticos.append(
            f"[INFO] Payback em {formatar_meses(resultado.payback_meses)}: "
            "o custo adicional de encargos se paga com a economia tributária."
        )

    if resultado.percentual_regularizacao == 0 and resultado.pagamentos_informais > 0:
        diagnosticos.append(
            f"[ALERTA] {formatar_reais(resultado.pagamentos_informais)} em pagamentos informais representam "
            "passivo trabalhista e fiscal oculto. Consulte contador e advogado."
        )

    return diagnosticos
