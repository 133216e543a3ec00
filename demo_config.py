from __future__ import annotations

import os
from datetime import date
from typing import Dict, List

from dto import (
    PAYROLL_SUBTYPE_ENCARGOS,
    PAYROLL_SUBTYPE_PROLABORE,
    PAYROLL_SUBTYPE_SALARIO,
    TAX_GROUP_ADMINISTRATIVAS,
    TAX_GROUP_INSUMOS,
    TAX_GROUP_PESSOAL,
    TAX_GROUP_RECEITA_SERVICOS,
    TAX_GROUP_SERVICOS_TERCEIROS,
    TIPO_ENTRADA,
    TIPO_SAIDA,
    CategoryRef,
    LedgerEntry,
    PayableForFatorR,
    TaxConfig,
)
from input_utils import janela_competencias, parse_competencia
from ledger_io import LedgerFile

DEMO_ENV_VAR = "TSE_DEMO"
DEMO_REFERENCIA = "2025-06"
DEMO_MESES = 18
DEMO_UNIDADE = "LAB-DEMO"


def _is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def resolve_demo_mode(toggle_enabled: bool = False) -> bool:
    """
    Resolve o modo DEMO por OR entre variavel de ambiente e toggle da UI.
    """
    return _is_truthy(os.getenv(DEMO_ENV_VAR)) or bool(toggle_enabled)


def resolve_storage_targets(demo_mode: bool) -> Dict[str, str]:
    """
    Retorna destinos das exportacoes (DEMO nunca mistura com arquivos reais).
    """
    if demo_mode:
        return {
            "outputs_txt_pasta": "outputs_demo",
            "outputs_pdf_pasta": "outputs_demo_pdfs",
        }
    return {
        "outputs_txt_pasta": "outputs",
        "outputs_pdf_pasta": "outputs_pdfs",
    }


def demo_categorias() -> List[CategoryRef]:
    return [
        CategoryRef("rec-exames", "Receita de exames", TAX_GROUP_RECEITA_SERVICOS),
        CategoryRef("sal", "Salários", TAX_GROUP_PESSOAL, True, payroll_subtype=PAYROLL_SUBTYPE_SALARIO),
        CategoryRef("pro", "Pró-labore sócios", TAX_GROUP_PESSOAL, True, payroll_subtype=PAYROLL_SUBTYPE_PROLABORE),
        CategoryRef("enc", "INSS e FGTS", TAX_GROUP_PESSOAL, True, payroll_subtype=PAYROLL_SUBTYPE_ENCARGOS),
        # sem marcacao: deve aparecer na auditoria
        CategoryRef("bon", "Bonificação plantão", TAX_GROUP_PESSOAL),
        CategoryRef("avulso", "Pagamentos avulsos", TAX_GROUP_PESSOAL, False, is_informal=True),
        CategoryRef("reag", "Reagentes", TAX_GROUP_INSUMOS),
        CategoryRef("apoio", "Laboratório de apoio", TAX_GROUP_SERVICOS_TERCEIROS),
        CategoryRef("aluguel", "Aluguel", TAX_GROUP_ADMINISTRATIVAS),
    ]


def demo_ledger(referencia: str = DEMO_REFERENCIA, meses: int = DEMO_MESES) -> LedgerFile:
    """
    Laboratorio ficticio com Fator R perto do limite de 28%: receita sazonal,
    folha estavel, pagamentos informais e uma categoria de pessoal sem marcacao.
    """
    parse_competencia(referencia)
    cats = {c.id: c for c in demo_categorias()}
    valores_fixos = (
        ("sal", 9000.0),
        ("pro", 5000.0),
        ("enc", 3000.0),
        ("bon", 800.0),
        ("avulso", 2000.0),
        ("reag", 6000.0),
        ("apoio", 4000.0),
        ("aluguel", 3500.0),
    )

    lancamentos: List[LedgerEntry] = []
    contas: List[PayableForFatorR] = []
    for i, competencia in enumerate(janela_competencias(referencia, meses)):
        ano, mes = parse_competencia(competencia)
        receita = 58000.0 + 4000.0 * (i % 4)
        lancamentos.append(
            LedgerEntry(date(ano, mes, 10), receita, TIPO_ENTRADA, cats["rec-exames"], DEMO_UNIDADE, f"r-{competencia}")
        )
        for cat_id, valor in valores_fixos:
            lancamentos.append(
                LedgerEntry(date(ano, mes, 5), valor, TIPO_SAIDA, cats[cat_id], DEMO_UNIDADE, f"{cat_id}-{competencia}")
            )
        contas.append(
            PayableForFatorR(
                id=f"cp-pro-{competencia}",
                vencimento=date(ano, mes, 5),
                valor=5000.0,
                status="pago",
                paid_amount=5000.0,
                beneficiario="Sócio administrador",
                matched_transaction_id=f"pro-{competencia}",
                categoria=cats["pro"],
            )
        )

    # guia quitada fora do extrato: so a auditoria enxerga
    ano, mes = parse_competencia(referencia)
    contas.append(
        PayableForFatorR(
            id=f"cp-gps-{referencia}",
            vencimento=date(ano, mes, 20),
            valor=1500.0,
            status="pago",
            beneficiario="GPS",
            categoria=cats["enc"],
        )
    )

    return LedgerFile(
        categorias=tuple(cats.values()),
        lancamentos=tuple(lancamentos),
        contas_pagar=tuple(contas),
        config=TaxConfig(regime_atual="SIMPLES", iss_aliquota=0.05, cnpj="00.000.000/0001-00"),
        referencia=referencia,
        unidade_id=DEMO_UNIDADE,
    )
