from __future__ import annotations

from dto import AnexoSavings, ProlaboreAdjustment, TaxParameters
from fator_r import FATOR_R_LIMITE, calcular_fator_r
from regimes import aliquota_efetiva_simples

STATUS_ABAIXO = "ABAIXO"
STATUS_MARGEM = "MARGEM"
STATUS_SEGURO = "SEGURO"
STATUS_SEM_RECEITA = "SEM_RECEITA"

# Abaixo deste Fator R o risco de Anexo V e considerado alto.
FATOR_R_STATUS_ABAIXO = 0.25


def classificar_fator_r(fator_r: float, alvo: float = FATOR_R_LIMITE, limite_abaixo: float = FATOR_R_STATUS_ABAIXO) -> str:
    if fator_r >= alvo:
        return STATUS_SEGURO
    if fator_r >= limite_abaixo:
        return STATUS_MARGEM
    return STATUS_ABAIXO


def calcular_ajuste_prolabore(
    folha12: float,
    rbt12: float,
    alvo: float = FATOR_R_LIMITE,
    limite_abaixo: float = FATOR_R_STATUS_ABAIXO,
) -> ProlaboreAdjustment:
    """
    Aumento mensal minimo de pro-labore (delta) para que (Folha12 + 12*delta) / RBT12 = alvo.
    Delta <= 0 significa unidade ja enquadrada: ajuste zero e status SEGURO.
    Sem receita nao ha Fator R a atingir: ajuste zero e status SEM_RECEITA.
    """
    if rbt12 <= 0:
        return ProlaboreAdjustment(
            ajuste_necessario=0.0,
            ajuste_mensal=0.0,
            fator_r_atual=0.0,
            fator_r_projetado=0.0,
            status=STATUS_SEM_RECEITA,
            folha_atual=folha12,
            folha_necessaria=0.0,
        )

    fator_r_atual = calcular_fator_r(folha12, rbt12)
    folha_necessaria = rbt12 * alvo
    ajuste_mensal = (folha_necessaria - folha12) / 12.0
    if ajuste_mensal <= 0:
        return ProlaboreAdjustment(
            ajuste_necessario=0.0,
            ajuste_mensal=0.0,
            fator_r_atual=fator_r_atual,
            fator_r_projetado=fator_r_atual,
            status=STATUS_SEGURO,
            folha_atual=folha12,
            folha_necessaria=folha_necessaria,
        )

    return ProlaboreAdjustment(
        ajuste_necessario=ajuste_mensal * 12.0,
        ajuste_mensal=ajuste_mensal,
        fator_r_atual=fator_r_atual,
        fator_r_projetado=alvo,
        status=classificar_fator_r(fator_r_atual, alvo, limite_abaixo),
        folha_atual=folha12,
        folha_necessaria=folha_necessaria,
    )


def calcular_economia_anexo(receita_mensal: float, rbt12: float, params: TaxParameters) -> AnexoSavings:
    """Custo do Simples no Anexo V menos o custo no Anexo III, com o mesmo RBT12."""
    aliquota_anexo3 = aliquota_efetiva_simples(rbt12, params.simples_anexo3)
    aliquota_anexo5 = aliquota_efetiva_simples(rbt12, params.simples_anexo5)
    imposto_anexo3 = receita_mensal * aliquota_anexo3
    imposto_anexo5 = receita_mensal * aliquota_anexo5
    economia_mensal = imposto_anexo5 - imposto_anexo3
    return AnexoSavings(
        economia_mensal=economia_mensal,
        economia_anual=economia_mensal * 12.0,
        aliquota_anexo3=aliquota_anexo3,
        aliquota_anexo5=aliquota_anexo5,
        imposto_anexo3=imposto_anexo3,
        imposto_anexo5=imposto_anexo5,
    )
