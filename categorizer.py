from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional

from dto import (
    PAYROLL_SUBTYPE_ENCARGOS,
    PAYROLL_SUBTYPE_PROLABORE,
    PAYROLL_SUBTYPE_SALARIO,
    TAX_GROUP_ADMINISTRATIVAS,
    TAX_GROUP_FINANCEIRAS,
    TAX_GROUP_INSUMOS,
    TAX_GROUP_PESSOAL,
    TAX_GROUP_RECEITA_SERVICOS,
    TAX_GROUP_SERVICOS_TERCEIROS,
    TAX_GROUP_TRIBUTARIAS,
    TIPO_ENTRADA,
    TIPO_SAIDA,
    CategoryRef,
    LedgerEntry,
)
from input_utils import competencia_de_data

TERMOS_PROLABORE = ("pro-labore", "prolabore", "pro labore")
TERMOS_ENCARGOS = ("inss", "fgts", "encargo", "patronal", "gps")

_CAMPO_POR_TAX_GROUP: Dict[str, str] = {
    TAX_GROUP_INSUMOS: "insumos",
    TAX_GROUP_SERVICOS_TERCEIROS: "servicos_terceiros",
    TAX_GROUP_ADMINISTRATIVAS: "despesas_administrativas",
    TAX_GROUP_FINANCEIRAS: "despesas_financeiras",
    TAX_GROUP_TRIBUTARIAS: "impostos_pagos",
}

_CAMPO_POR_SUBTYPE: Dict[str, str] = {
    PAYROLL_SUBTYPE_SALARIO: "folha_salarios",
    PAYROLL_SUBTYPE_PROLABORE: "folha_prolabore",
    PAYROLL_SUBTYPE_ENCARGOS: "folha_encargos",
}


@dataclass(frozen=True)
class CategorizedIncrement:
    mes: str
    campo: str
    valor: float


def normalizar_nome(nome: Optional[str]) -> str:
    """Minúsculas e sem acentos ("Pró-Labore" -> "pro-labore")."""
    decomposto = unicodedata.normalize("NFKD", nome or "")
    return "".join(ch for ch in decomposto if not unicodedata.combining(ch)).lower().strip()


def subtipo_por_nome(nome: Optional[str]) -> str:
    """
    Heurística legada por substring no nome da categoria.
    Só é usada quando a categoria não tem `payroll_subtype` cadastrado.
    """
    texto = normalizar_nome(nome)
    if any(termo in texto for termo in TERMOS_PROLABORE):
        return PAYROLL_SUBTYPE_PROLABORE
    if any(termo in texto for termo in TERMOS_ENCARGOS):
        return PAYROLL_SUBTYPE_ENCARGOS
    return PAYROLL_SUBTYPE_SALARIO


def resolver_subtipo_folha(categoria: Optional[CategoryRef]) -> str:
    if categoria is None:
        return PAYROLL_SUBTYPE_SALARIO
    subtype = (categoria.payroll_subtype or "").strip().lower()
    if subtype in _CAMPO_POR_SUBTYPE:
        return subtype
    return subtipo_por_nome(categoria.nome)


def campo_pessoal(categoria: Optional[CategoryRef]) -> str:
    if categoria is not None and categoria.is_informal:
        return "folha_informal"
    # So entra na folha do Fator R com marcacao explicita; beneficios e categorias
    # ainda nao classificadas ficam em despesas administrativas, como na auditoria.
    if categoria is None or categoria.entra_fator_r is not True:
        return "despesas_administrativas"
    return _CAMPO_POR_SUBTYPE[resolver_subtipo_folha(categoria)]


def campo_destino(tipo: str, categoria: Optional[CategoryRef]) -> str:
    """Campo de MonthlyFinancialAggregate que recebe o lançamento."""
    tax_group = categoria.tax_group if categoria is not None else None
    tipo_norm = (tipo or "").strip().upper()

    if tipo_norm == TIPO_ENTRADA:
        if tax_group == TAX_GROUP_RECEITA_SERVICOS:
            return "receita_servicos"
        return "receita_outras"

    if tipo_norm != TIPO_SAIDA:
        raise ValueError(f"Tipo de lançamento inválido: {tipo!r} (esperado ENTRADA ou SAIDA).")

    if tax_group == TAX_GROUP_PESSOAL:
        return campo_pessoal(categoria)
    return _CAMPO_POR_TAX_GROUP.get(tax_group or "", "despesas_administrativas")


def categorize(entry: LedgerEntry) -> CategorizedIncrement:
    return CategorizedIncrement(
        mes=competencia_de_data(entry.data),
        campo=campo_destino(entry.tipo, entry.categoria),
        valor=abs(float(entry.valor)),
    )
