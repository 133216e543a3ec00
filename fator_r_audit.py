from __future__ import annotations

import logging
from dataclasses import dataclass, field
from statistics import mean, pstdev
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from categorizer import resolver_subtipo_folha, subtipo_por_nome
from dto import (
    PAYROLL_SUBTYPE_ENCARGOS,
    PAYROLL_SUBTYPE_PROLABORE,
    PAYROLL_SUBTYPE_SALARIO,
    TAX_GROUP_PESSOAL,
    TIPO_ENTRADA,
    CategoryDetail,
    CategoryRef,
    DiagnosticThresholds,
    FatorRAuditMonth,
    FatorRAuditResult,
    LedgerEntry,
    PayableForFatorR,
)
from fator_r import FATOR_R_LIMITE, calcular_fator_r
from fator_r_advisor import calcular_ajuste_prolabore
from formatters import formatar_percentual, formatar_reais
from input_utils import competencia_de_data, janela_competencias
from ruleset_loader import DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)

STATUS_PAGO = "pago"


@dataclass
class _MesAcumulado:
    folha_salarios: float = 0.0
    folha_prolabore: float = 0.0
    folha_encargos: float = 0.0
    folha_nao_fator_r: float = 0.0
    receita: float = 0.0
    categorias: List[CategoryDetail] = field(default_factory=list)

    @property
    def folha_total(self) -> float:
        return self.folha_salarios + self.folha_prolabore + self.folha_encargos


def categorias_fator_r_padrao() -> List[str]:
    return ["Salários", "Pró-labore", "13º Salário", "Férias", "INSS Patronal", "FGTS"]


def categorias_beneficios_padrao() -> List[str]:
    return [
        "Vale Transporte",
        "Vale Alimentação",
        "Plano de Saúde Funcionários",
        "Adiantamento Salarial",
        "Distribuição de Lucros",
    ]


def _resolver_categoria(
    categoria: Optional[CategoryRef],
    catalogo: Mapping[str, CategoryRef],
) -> Optional[CategoryRef]:
    """O catalogo e a fonte de verdade; a referencia do lancamento e so fallback."""
    if categoria is None:
        return None
    return catalogo.get(categoria.id, categoria)


def _somar_folha(acc: _MesAcumulado, subtipo: str, valor: float) -> None:
    if subtipo == PAYROLL_SUBTYPE_PROLABORE:
        acc.folha_prolabore += valor
    elif subtipo == PAYROLL_SUBTYPE_ENCARGOS:
        acc.folha_encargos += valor
    else:
        acc.folha_salarios += valor


def _registrar_pessoal(
    acc: _MesAcumulado,
    categoria: Optional[CategoryRef],
    valor: float,
    subtipo: str,
    nome_fallback: Optional[str] = None,
) -> None:
    conta = categoria is not None and categoria.entra_fator_r is True and not categoria.is_informal
    acc.categorias.append(
        CategoryDetail(
            category_id=categoria.id if categoria is not None else "unknown",
            category_name=(categoria.nome if categoria is not None else None) or nome_fallback or "Desconhecida",
            entra_fator_r=conta,
            valor=valor,
        )
    )
    if conta:
        _somar_folha(acc, subtipo, valor)
    else:
        acc.folha_nao_fator_r += valor


def _subtipo_payable(categoria: Optional[CategoryRef], beneficiario: Optional[str]) -> str:
    subtipo = resolver_subtipo_folha(categoria)
    if subtipo != PAYROLL_SUBTYPE_SALARIO:
        return subtipo
    if categoria is not None and categoria.payroll_subtype:
        return subtipo
    # Guias sem categoria especifica: tenta pelo beneficiario (ex.: "GPS", "FGTS").
    return subtipo_por_nome(beneficiario)


def _e_pessoal(categoria: Optional[CategoryRef]) -> bool:
    return categoria is not None and categoria.tax_group == TAX_GROUP_PESSOAL


def _nao_mapeadas(
    catalogo: Iterable[CategoryRef],
    referenciadas: Iterable[CategoryRef],
) -> List[str]:
    vistos: Dict[str, str] = {}
    for categoria in list(catalogo) + list(referenciadas):
        if not _e_pessoal(categoria) or categoria.is_informal:
            continue
        if categoria.entra_fator_r is None and categoria.id not in vistos:
            vistos[categoria.id] = categoria.nome or "Desconhecida"
    return list(vistos.values())


def _coeficiente_variacao(valores: Sequence[float]) -> float:
    if len(valores) < 2:
        return 0.0
    media = mean(valores)
    if media <= 0:
        return 0.0
    return pstdev(valores) / media


def _sugestoes(
    meses: Sequence[FatorRAuditMonth],
    folha12: float,
    rbt12: float,
    nao_mapeadas: Sequence[str],
    cv: float,
    thresholds: DiagnosticThresholds,
) -> List[str]:
    sugestoes: List[str] = []

    ajuste = calcular_ajuste_prolabore(folha12, rbt12)
    if ajuste.ajuste_mensal > 0:
        sugestoes.append(
            f"Para atingir {formatar_percentual(FATOR_R_LIMITE, casas=0)}, seria necessário adicionar "
            f"{formatar_reais(ajuste.ajuste_necessario)} em folha nos últimos 12 meses "
            f"(≈ {formatar_reais(ajuste.ajuste_mensal)}/mês em pró-labore)."
        )

    if nao_mapeadas:
        sugestoes.append(
            f"Existem {len(nao_mapeadas)} categoria(s) de PESSOAL sem marcação \"Entra no Fator R\": "
            f"{', '.join(nao_mapeadas)}. Verifique e marque as categorias corretas."
        )

    sem_receita = sum(1 for m in meses if m.receita <= 0)
    if sem_receita:
        sugestoes.append(
            f"{sem_receita} mês(es) sem dados de receita. Isso pode afetar o cálculo do RBT12 e do Fator R."
        )

    if cv > thresholds.cv_volatilidade_max:
        sugestoes.append(
            f"Fator R mensal volátil (coeficiente de variação de {formatar_percentual(cv, casas=1)}). "
            "Distribua pró-labore e folha de forma regular ao longo do ano."
        )

    return sugestoes


def auditar_fator_r(
    entries: Iterable[LedgerEntry],
    categorias: Iterable[CategoryRef],
    referencia: str,
    payables: Optional[Iterable[PayableForFatorR]] = None,
    thresholds: Optional[DiagnosticThresholds] = None,
) -> FatorRAuditResult:
    """
    Auditoria do Fator R nos 12 meses terminados em `referencia`: folha por subtipo,
    Fator R mensal, media simples dos meses com receita e categorias de PESSOAL
    sem marcacao explicita. Contas a pagar pagas sem transacao vinculada entram
    na folha para nao perder guias quitadas fora do extrato.
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    catalogo_lista = list(categorias)
    catalogo = {c.id: c for c in catalogo_lista}
    competencias = janela_competencias(referencia, 12)
    acumulado: Dict[str, _MesAcumulado] = {mes: _MesAcumulado() for mes in competencias}
    referenciadas: List[CategoryRef] = []

    for entry in entries:
        acc = acumulado.get(competencia_de_data(entry.data))
        if acc is None:
            continue
        valor = abs(float(entry.valor))
        if entry.tipo.strip().upper() == TIPO_ENTRADA:
            acc.receita += valor
            continue
        categoria = _resolver_categoria(entry.categoria, catalogo)
        if not _e_pessoal(categoria):
            continue
        referenciadas.append(categoria)
        _registrar_pessoal(acc, categoria, valor, resolver_subtipo_folha(categoria))

    for payable in payables or ():
        if payable.matched_transaction_id:
            continue
        if (payable.status or "").strip().lower() != STATUS_PAGO:
            continue
        acc = acumulado.get(competencia_de_data(payable.vencimento))
        if acc is None:
            continue
        categoria = _resolver_categoria(payable.categoria, catalogo)
        if not _e_pessoal(categoria):
            continue
        referenciadas.append(categoria)
        valor = abs(float(payable.paid_amount if payable.paid_amount else payable.valor))
        _registrar_pessoal(
            acc,
            categoria,
            valor,
            _subtipo_payable(categoria, payable.beneficiario),
            nome_fallback=payable.beneficiario,
        )

    meses: List[FatorRAuditMonth] = []
    for mes in competencias:
        acc = acumulado[mes]
        meses.append(
            FatorRAuditMonth(
                mes=mes,
                folha_salarios=acc.folha_salarios,
                folha_prolabore=acc.folha_prolabore,
                folha_encargos=acc.folha_encargos,
                folha_total=acc.folha_total,
                folha_nao_fator_r=acc.folha_nao_fator_r,
                receita=acc.receita,
                fator_r=calcular_fator_r(acc.folha_total, acc.receita),
                categorias_detalhadas=tuple(acc.categorias),
            )
        )

    folha12 = sum(m.folha_total for m in meses)
    rbt12 = sum(m.receita for m in meses)
    fator_r_medio = mean(m.fator_r for m in meses)
    # volatilidade so nos meses com receita; mes vazio nao e oscilacao da folha
    cv = _coeficiente_variacao([m.fator_r for m in meses if m.receita > 0])
    nao_mapeadas = _nao_mapeadas(
        (c for c in catalogo_lista if _e_pessoal(c)),
        referenciadas,
    )

    logger.info(
        "Auditoria Fator R %s: fator_r_medio=%.4f folha12=%.2f rbt12=%.2f nao_mapeadas=%d",
        referencia,
        fator_r_medio,
        folha12,
        rbt12,
        len(nao_mapeadas),
    )

    return FatorRAuditResult(
        meses=tuple(meses),
        folha12_total=folha12,
        rbt12=rbt12,
        fator_r_medio=fator_r_medio,
        coeficiente_variacao=cv,
        categorias_nao_mapeadas=tuple(nao_mapeadas),
        sugestoes=tuple(_sugestoes(meses, folha12, rbt12, nao_mapeadas, cv, thresholds)),
    )
