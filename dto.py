from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Any, Dict, Optional, Tuple

TIPO_ENTRADA = "ENTRADA"
TIPO_SAIDA = "SAIDA"

TAX_GROUP_RECEITA_SERVICOS = "RECEITA_SERVICOS"
TAX_GROUP_RECEITA_OUTRAS = "RECEITA_OUTRAS"
TAX_GROUP_PESSOAL = "PESSOAL"
TAX_GROUP_INSUMOS = "INSUMOS"
TAX_GROUP_SERVICOS_TERCEIROS = "SERVICOS_TERCEIROS"
TAX_GROUP_ADMINISTRATIVAS = "ADMINISTRATIVAS"
TAX_GROUP_FINANCEIRAS = "FINANCEIRAS"
TAX_GROUP_TRIBUTARIAS = "TRIBUTARIAS"

PAYROLL_SUBTYPE_SALARIO = "salario"
PAYROLL_SUBTYPE_PROLABORE = "prolabore"
PAYROLL_SUBTYPE_ENCARGOS = "encargos"
PAYROLL_SUBTYPES = (PAYROLL_SUBTYPE_SALARIO, PAYROLL_SUBTYPE_PROLABORE, PAYROLL_SUBTYPE_ENCARGOS)


@dataclass(frozen=True)
class CategoryRef:
    id: str
    nome: str
    tax_group: Optional[str] = None
    entra_fator_r: Optional[bool] = None  # None = nao classificada
    is_informal: bool = False
    payroll_subtype: Optional[str] = None  # salario | prolabore | encargos


@dataclass(frozen=True)
class LedgerEntry:
    data: date
    valor: float
    tipo: str  # ENTRADA | SAIDA
    categoria: Optional[CategoryRef] = None
    unidade_id: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class PayableForFatorR:
    id: str
    vencimento: date
    valor: float
    status: str
    paid_amount: Optional[float] = None
    beneficiario: Optional[str] = None
    matched_transaction_id: Optional[str] = None
    categoria: Optional[CategoryRef] = None


@dataclass(frozen=True)
class MonthlyFinancialAggregate:
    mes: str  # YYYY-MM
    receita_servicos: float = 0.0
    receita_outras: float = 0.0
    folha_salarios: float = 0.0
    folha_prolabore: float = 0.0
    folha_encargos: float = 0.0  # INSS patronal + FGTS
    folha_informal: float = 0.0  # pagamentos "por fora", fora do Fator R
    insumos: float = 0.0
    servicos_terceiros: float = 0.0
    despesas_administrativas: float = 0.0
    despesas_financeiras: float = 0.0
    impostos_pagos: float = 0.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name == "mes":
                continue
            if getattr(self, f.name) < 0:
                raise ValueError(f"mes={self.mes} | campo={f.name} | detalhe=valor negativo nao permitido")

    @property
    def receita_total(self) -> float:
        return self.receita_servicos + self.receita_outras

    @property
    def folha_fator_r(self) -> float:
        return self.folha_salarios + self.folha_prolabore + self.folha_encargos

    @property
    def despesas_dedutiveis(self) -> float:
        return (
            self.folha_salarios
            + self.folha_prolabore
            + self.folha_encargos
            + self.insumos
            + self.servicos_terceiros
            + self.despesas_administrativas
            + self.despesas_financeiras
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


AGGREGATE_AMOUNT_FIELDS: Tuple[str, ...] = tuple(
    f.name for f in fields(MonthlyFinancialAggregate) if f.name != "mes"
)


@dataclass(frozen=True)
class SimplesBracket:
    faixa: int
    limite_inferior: float
    limite_superior: Optional[float]  # None = sem teto (ultima faixa)
    aliquota: float
    deducao: float

    def contem(self, rbt12: float) -> bool:
        if rbt12 < self.limite_inferior:
            return False
        return self.limite_superior is None or rbt12 < self.limite_superior


@dataclass(frozen=True)
class TaxParameters:
    ano: int
    ruleset_id: str
    presuncao_servicos: float
    pis_cumulativo: float
    cofins_cumulativo: float
    irpj_aliquota: float
    irpj_adicional: float
    irpj_adicional_limite: float  # limite mensal do adicional
    csll_aliquota: float
    pis_nao_cumulativo: float
    cofins_nao_cumulativo: float
    cbs_aliquota: float
    ibs_aliquota: float
    reducao_saude: float
    aliquota_combinada_real: float
    modelo_lucro_real: str
    fracao_credito_terceiros: float
    fracao_iss_retido_simples: float
    limite_simples: float
    simples_anexo3: Tuple[SimplesBracket, ...]
    simples_anexo5: Tuple[SimplesBracket, ...]

    def tabela_anexo(self, anexo: str) -> Tuple[SimplesBracket, ...]:
        if anexo == "III":
            return self.simples_anexo3
        if anexo == "V":
            return self.simples_anexo5
        raise ValueError(f"Anexo desconhecido: {anexo}")


@dataclass(frozen=True)
class TaxConfig:
    regime_atual: str = "SIMPLES"
    iss_aliquota: float = 0.05
    cnpj: Optional[str] = None


@dataclass(frozen=True)
class DiagnosticThresholds:
    fator_r_margem_seguranca: float = 0.35
    fator_r_status_abaixo: float = 0.25
    informal_tolerancia: float = 0.10
    materialidade_economia: float = 0.02
    impacto_reforma_relevante: float = 5.0
    concentracao_receita_max: float = 0.20
    cv_volatilidade_max: float = 0.25


@dataclass(frozen=True)
class RegimeScenario:
    regime_code: str
    regime_display: str
    base_calculo: float
    impostos_federais: float
    iss_ibs: float
    total: float
    percentual_receita: float
    comentario_tecnico: str
    detalhes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regime_code": self.regime_code,
            "regime_display": self.regime_display,
            "base_calculo": self.base_calculo,
            "impostos_federais": self.impostos_federais,
            "iss_ibs": self.iss_ibs,
            "total": self.total,
            "percentual_receita": self.percentual_receita,
            "comentario_tecnico": self.comentario_tecnico,
            "detalhes": dict(self.detalhes),
        }


@dataclass(frozen=True)
class Diagnostic:
    severidade: str  # ALERTA | SUCESSO | INSIGHT | INFO
    codigo: str
    mensagem: str

    def render(self) -> str:
        return f"[{self.severidade}] {self.mensagem}"


@dataclass(frozen=True)
class SimulationOutput:
    competencia: str
    receita_total: float
    rbt12: float
    folha12: float
    folha_informal12: float
    fator_r: float
    anexo_simples: str
    cenarios: Tuple[RegimeScenario, ...]
    melhor_cenario: RegimeScenario
    diagnosticos: Tuple[str, ...]
    diagnosticos_detalhados: Tuple[Diagnostic, ...]
    parametros_padrao: bool
    config_padrao: bool
    premissas: Tuple[str, ...] = ()

    @property
    def custo_pessoal_total(self) -> float:
        return self.folha12 + self.folha_informal12

    def cenario(self, regime_code: str) -> Optional[RegimeScenario]:
        return next((c for c in self.cenarios if c.regime_code == regime_code), None)

    def to_event(self) -> Dict[str, Any]:
        return {
            "competencia": self.competencia,
            "receita_total": self.receita_total,
            "rbt12": self.rbt12,
            "folha12": self.folha12,
            "folha_informal12": self.folha_informal12,
            "custo_pessoal_total": self.custo_pessoal_total,
            "fator_r": self.fator_r,
            "anexo_simples": self.anexo_simples,
            "cenarios": [c.to_dict() for c in self.cenarios],
            "melhor_cenario": self.melhor_cenario.regime_code,
            "diagnosticos": list(self.diagnosticos),
            "parametros_padrao": self.parametros_padrao,
            "config_padrao": self.config_padrao,
            "premissas": list(self.premissas),
        }


@dataclass(frozen=True)
class ProlaboreAdjustment:
    ajuste_necessario: float  # anual (12 x ajuste_mensal)
    ajuste_mensal: float
    fator_r_atual: float
    fator_r_projetado: float
    status: str  # ABAIXO | MARGEM | SEGURO | SEM_RECEITA
    folha_atual: float
    folha_necessaria: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnexoSavings:
    economia_mensal: float
    economia_anual: float
    aliquota_anexo3: float
    aliquota_anexo5: float
    imposto_anexo3: float
    imposto_anexo5: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CategoryDetail:
    category_id: str
    category_name: str
    entra_fator_r: bool
    valor: float


@dataclass(frozen=True)
class FatorRAuditMonth:
    mes: str
    folha_salarios: float
    folha_prolabore: float
    folha_encargos: float
    folha_total: float
    folha_nao_fator_r: float
    receita: float
    fator_r: float
    categorias_detalhadas: Tuple[CategoryDetail, ...] = ()


@dataclass(frozen=True)
class FatorRAuditResult:
    meses: Tuple[FatorRAuditMonth, ...]
    folha12_total: float
    rbt12: float
    fator_r_medio: float
    coeficiente_variacao: float
    categorias_nao_mapeadas: Tuple[str, ...]
    sugestoes: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrendPoint:
    mes: str
    receita: float
    fator_r: float
    anexo: str
    percentuais: Dict[str, float]

