from __future__ import annotations

# Limite legal do Fator R (LC 123/2006): a partir dele o servico vai para o Anexo III.
FATOR_R_LIMITE = 0.28

ANEXO_III = "III"
ANEXO_V = "V"


def calcular_fator_r(folha12: float, rbt12: float) -> float:
    """Folha12 / RBT12; sem receita no periodo o Fator R e 0 (unidade nova, nao erro)."""
    if rbt12 <= 0:
        return 0.0
    return max(0.0, folha12) / rbt12


def determinar_anexo(fator_r: float) -> str:
    return ANEXO_III if fator_r >= FATOR_R_LIMITE else ANEXO_V


def pontos_para_limite(fator_r: float) -> float:
    """Distancia ate o limite em pontos percentuais (0 quando ja atingido)."""
    return max(0.0, (FATOR_R_LIMITE - fator_r) * 100.0)
