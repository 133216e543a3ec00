import json
import logging
import os
import sys
from copy import deepcopy
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dto import DiagnosticThresholds, SimplesBracket, TaxConfig, TaxParameters
from regime_utils import canonicalize_regime

logger = logging.getLogger(__name__)

DEFAULT_RULESET_ID = "BR_LAB_2025_V1"

MODELO_REAL_ALIQUOTA_COMBINADA = "aliquota_combinada"
MODELO_REAL_APURACAO_SIMPLIFICADA = "apuracao_simplificada"
MODELOS_LUCRO_REAL = (MODELO_REAL_ALIQUOTA_COMBINADA, MODELO_REAL_APURACAO_SIMPLIFICADA)

_CACHE: Dict[Tuple[str, str], Dict[str, Any]] = {}

_PARAMETROS_NUMERICOS = (
    "presuncao_servicos",
    "pis_cumulativo",
    "cofins_cumulativo",
    "irpj_aliquota",
    "irpj_adicional",
    "irpj_adicional_limite",
    "csll_aliquota",
    "pis_nao_cumulativo",
    "cofins_nao_cumulativo",
    "cbs_aliquota",
    "ibs_aliquota",
    "reducao_saude",
    "aliquota_combinada_real",
    "fracao_credito_terceiros",
    "fracao_iss_retido_simples",
    "limite_simples",
)


class RulesetError(ValueError):
    """Parametro tributario malformado; o calculo nao pode prosseguir."""


def _ruleset_error(
    ruleset_id: str,
    arquivo: str,
    chave: str,
    regime: str,
    impacto: str,
    detalhe: str = "",
) -> RulesetError:
    msg = (
        f"ruleset_id={ruleset_id} | arquivo={arquivo} | chave={chave} | "
        f"regime={regime} | impacto={impacto}"
    )
    if detalhe:
        msg += f" | detalhe={detalhe}"
    return RulesetError(msg)


def _runtime_base_dir() -> str:
    """
    Resolve diretorio base para modo normal e executavel PyInstaller.
    """
    if getattr(sys, "frozen", False):
        meipass = getattr(sys, "_MEIPASS", None)
        if isinstance(meipass, str) and meipass.strip():
            return meipass
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.abspath(__file__))


def _rulesets_dir() -> str:
    return os.path.join(_runtime_base_dir(), "rulesets")


def _ruleset_dir(ruleset_id: str) -> str:
    return os.path.join(_rulesets_dir(), ruleset_id)


def _load_json(ruleset_id: str, filename: str) -> Dict[str, Any]:
    key = (ruleset_id, filename)
    if key in _CACHE:
        return deepcopy(_CACHE[key])

    ruleset_path = _ruleset_dir(ruleset_id)
    if not os.path.isdir(ruleset_path):
        raise FileNotFoundError(f"Ruleset '{ruleset_id}' não encontrado em {ruleset_path}.")

    file_path = os.path.join(ruleset_path, filename)
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"Arquivo '{filename}' não encontrado para ruleset '{ruleset_id}'.")

    with open(file_path, "r", encoding="utf-8-sig") as f:
        payload = json.load(f)

    if not isinstance(payload, dict):
        raise RulesetError(f"Arquivo '{filename}' do ruleset '{ruleset_id}' deve conter objeto JSON.")

    _CACHE[key] = payload
    return deepcopy(payload)


def load_ruleset(ruleset_id: str) -> Dict[str, Any]:
    return _load_json(ruleset_id, "metadata.json")


def get_tax_parameters_payload(ruleset_id: str) -> Dict[str, Any]:
    return _load_json(ruleset_id, "tax_parameters.json")


def get_thresholds_payload(ruleset_id: str) -> Dict[str, Any]:
    return _load_json(ruleset_id, "thresholds.json")


def list_rulesets() -> List[str]:
    base = _rulesets_dir()
    if not os.path.isdir(base):
        return []
    return sorted(
        nome for nome in os.listdir(base) if os.path.isfile(os.path.join(base, nome, "metadata.json"))
    )


def ruleset_id_for_year(ano: int) -> Optional[str]:
    """Ruleset vigente para o ano fiscal, ou None quando nao ha ruleset publicado."""
    for ruleset_id in reversed(list_rulesets()):
        metadata = load_ruleset(ruleset_id)
        if metadata.get("ano") == ano:
            return ruleset_id
    return None


# ==================== TABELAS DO SIMPLES ====================


def validate_bracket_table(
    tabela: Sequence[SimplesBracket],
    *,
    ruleset_id: str,
    chave: str,
) -> None:
    """
    Rejeita tabela vazia, nao contigua, fora de ordem ou com aliquota/deducao negativa.
    Tabela invalida produziria aliquota efetiva negativa, entao falha na carga.
    """
    arquivo = "tax_parameters.json"
    regime = "Simples Nacional"
    impacto = "Nao e possivel calcular DAS"

    if not tabela:
        raise _ruleset_error(ruleset_id, arquivo, chave, regime, impacto, "tabela de faixas vazia")

    primeira = tabela[0]
    if primeira.limite_inferior != 0:
        raise _ruleset_error(
            ruleset_id, arquivo, f"{chave}[0].limite_inferior", regime, impacto, "primeira faixa deve iniciar em 0"
        )

    for idx, faixa in enumerate(tabela):
        ref = f"{chave}[{idx}]"
        if faixa.aliquota < 0:
            raise _ruleset_error(ruleset_id, arquivo, f"{ref}.aliquota", regime, impacto, "aliquota negativa")
        if faixa.deducao < 0:
            raise _ruleset_error(ruleset_id, arquivo, f"{ref}.deducao", regime, impacto, "deducao negativa")

        ultima = idx == len(tabela) - 1
        if ultima:
            if faixa.limite_superior is not None:
                raise _ruleset_error(
                    ruleset_id, arquivo, f"{ref}.limite_superior", regime, impacto, "ultima faixa deve ser sem teto"
                )
            continue

        if faixa.limite_superior is None:
            raise _ruleset_error(
                ruleset_id, arquivo, f"{ref}.limite_superior", regime, impacto, "faixa intermediaria sem teto"
            )
        if faixa.limite_superior <= faixa.limite_inferior:
            raise _ruleset_error(
                ruleset_id, arquivo, f"{ref}.limite_superior", regime, impacto, "limite superior nao crescente"
            )
        proxima = tabela[idx + 1]
        if proxima.limite_inferior != faixa.limite_superior:
            raise _ruleset_error(
                ruleset_id,
                arquivo,
                f"{chave}[{idx + 1}].limite_inferior",
                regime,
                impacto,
                f"faixas nao contiguas ({faixa.limite_superior} -> {proxima.limite_inferior})",
            )


def build_bracket_table(raw: Any, *, ruleset_id: str, chave: str) -> Tuple[SimplesBracket, ...]:
    arquivo = "tax_parameters.json"
    regime = "Simples Nacional"
    impacto = "Nao e possivel calcular DAS"
    if not isinstance(raw, list):
        raise _ruleset_error(ruleset_id, arquivo, chave, regime, impacto, "tabela de faixas invalida")

    faixas: List[SimplesBracket] = []
    for idx, item in enumerate(raw):
        ref = f"{chave}[{idx}]"
        if not isinstance(item, dict):
            raise _ruleset_error(ruleset_id, arquivo, ref, regime, impacto, "faixa deve ser objeto")
        for campo in ("limite_inferior", "aliquota", "deducao"):
            if not isinstance(item.get(campo), (int, float)):
                raise _ruleset_error(ruleset_id, arquivo, f"{ref}.{campo}", regime, impacto, "valor nao numerico")
        superior = item.get("limite_superior")
        if superior is not None and not isinstance(superior, (int, float)):
            raise _ruleset_error(ruleset_id, arquivo, f"{ref}.limite_superior", regime, impacto, "valor nao numerico")
        faixas.append(
            SimplesBracket(
                faixa=int(item.get("faixa", idx + 1)),
                limite_inferior=float(item["limite_inferior"]),
                limite_superior=float(superior) if superior is not None else None,
                aliquota=float(item["aliquota"]),
                deducao=float(item["deducao"]),
            )
        )

    tabela = tuple(faixas)
    validate_bracket_table(tabela, ruleset_id=ruleset_id, chave=chave)
    return tabela


# ==================== PARAMETROS TRIBUTARIOS ====================


def validate_tax_parameters(params: TaxParameters) -> None:
    for chave in _PARAMETROS_NUMERICOS:
        if getattr(params, chave) < 0:
            raise _ruleset_error(
                params.ruleset_id, "tax_parameters.json", chave, "Todos", "Parametro invalido", "valor negativo"
            )
    if params.modelo_lucro_real not in MODELOS_LUCRO_REAL:
        raise _ruleset_error(
            params.ruleset_id,
            "tax_parameters.json",
            "modelo_lucro_real",
            "Lucro Real",
            "Nao e possivel calcular Lucro Real",
            f"modelo desconhecido: {params.modelo_lucro_real}",
        )
    validate_bracket_table(params.simples_anexo3, ruleset_id=params.ruleset_id, chave="simples_anexo3")
    validate_bracket_table(params.simples_anexo5, ruleset_id=params.ruleset_id, chave="simples_anexo5")


def build_tax_parameters(payload: Dict[str, Any], ruleset_id: str) -> TaxParameters:
    arquivo = "tax_parameters.json"
    valores: Dict[str, float] = {}
    for chave in _PARAMETROS_NUMERICOS:
        if chave not in payload:
            raise _ruleset_error(ruleset_id, arquivo, chave, "Todos", "Parametro obrigatorio", "chave ausente")
        value = payload[chave]
        if not isinstance(value, (int, float)):
            raise _ruleset_error(ruleset_id, arquivo, chave, "Todos", "Parametro obrigatorio", "valor nao numerico")
        valores[chave] = float(value)

    ano = payload.get("ano")
    if not isinstance(ano, int):
        raise _ruleset_error(ruleset_id, arquivo, "ano", "Todos", "Parametro sem vigencia", "ano ausente/invalido")

    params = TaxParameters(
        ano=ano,
        ruleset_id=ruleset_id,
        modelo_lucro_real=str(payload.get("modelo_lucro_real", MODELO_REAL_ALIQUOTA_COMBINADA)),
        simples_anexo3=build_bracket_table(payload.get("simples_anexo3"), ruleset_id=ruleset_id, chave="simples_anexo3"),
        simples_anexo5=build_bracket_table(payload.get("simples_anexo5"), ruleset_id=ruleset_id, chave="simples_anexo5"),
        **valores,
    )
    validate_tax_parameters(params)
    return params


def get_tax_parameters(ruleset_id: str = DEFAULT_RULESET_ID) -> TaxParameters:
    return build_tax_parameters(get_tax_parameters_payload(ruleset_id), ruleset_id)


def _faixas(linhas: Sequence[Tuple[float, Optional[float], float, float]]) -> Tuple[SimplesBracket, ...]:
    return tuple(
        SimplesBracket(faixa=i, limite_inferior=inf, limite_superior=sup, aliquota=aliq, deducao=ded)
        for i, (inf, sup, aliq, ded) in enumerate(linhas, start=1)
    )


def default_tax_parameters() -> TaxParameters:
    """Parametros embutidos (ano-base 2025), usados quando nao ha ruleset para o periodo."""
    return TaxParameters(
        ano=2025,
        ruleset_id="BUILTIN_DEFAULT",
        presuncao_servicos=0.32,
        pis_cumulativo=0.0065,
        cofins_cumulativo=0.03,
        irpj_aliquota=0.15,
        irpj_adicional=0.10,
        irpj_adicional_limite=20000.0,
        csll_aliquota=0.09,
        pis_nao_cumulativo=0.0165,
        cofins_nao_cumulativo=0.076,
        cbs_aliquota=0.088,
        ibs_aliquota=0.175,
        reducao_saude=0.60,
        aliquota_combinada_real=0.12,
        modelo_lucro_real=MODELO_REAL_ALIQUOTA_COMBINADA,
        fracao_credito_terceiros=0.8,
        fracao_iss_retido_simples=0.2,
        limite_simples=4800000.0,
        simples_anexo3=_faixas(
            [
                (0.0, 180000.0, 0.06, 0.0),
                (180000.0, 360000.0, 0.112, 9360.0),
                (360000.0, 720000.0, 0.135, 17640.0),
                (720000.0, 1800000.0, 0.16, 35640.0),
                (1800000.0, 3600000.0, 0.21, 125640.0),
                (3600000.0, None, 0.33, 648000.0),
            ]
        ),
        simples_anexo5=_faixas(
            [
                (0.0, 180000.0, 0.155, 0.0),
                (180000.0, 360000.0, 0.18, 4500.0),
                (360000.0, 720000.0, 0.195, 9900.0),
                (720000.0, 1800000.0, 0.205, 17100.0),
                (1800000.0, 3600000.0, 0.23, 62100.0),
                (3600000.0, None, 0.305, 540000.0),
            ]
        ),
    )


def resolve_tax_parameters(
    params: Optional[TaxParameters] = None,
    ano: Optional[int] = None,
) -> Tuple[TaxParameters, bool]:
    """
    Retorna (parametros, usou_default). Parametros informados sao validados e
    usados como estao; sem parametros, tenta o ruleset do ano e depois o default.
    """
    if params is not None:
        validate_tax_parameters(params)
        return params, False

    if ano is not None:
        ruleset_id = ruleset_id_for_year(ano)
        if ruleset_id:
            return get_tax_parameters(ruleset_id), False

    logger.warning("Parametros tributarios ausentes para ano=%s; usando default embutido.", ano)
    return default_tax_parameters(), True


# ==================== CONFIGURACAO DA UNIDADE ====================

DEFAULT_TAX_CONFIG = TaxConfig(regime_atual="SIMPLES", iss_aliquota=0.05)


def build_tax_config(payload: Dict[str, Any]) -> TaxConfig:
    regime_info = canonicalize_regime(payload.get("regime_atual"))
    iss = payload.get("iss_aliquota", DEFAULT_TAX_CONFIG.iss_aliquota)
    if not isinstance(iss, (int, float)) or not (0.0 <= float(iss) <= 1.0):
        raise ValueError("iss_aliquota deve ser numero decimal entre 0 e 1 (ex: 0.05).")
    cnpj = payload.get("cnpj")
    return TaxConfig(
        regime_atual=regime_info["regime_code"],
        iss_aliquota=float(iss),
        cnpj=str(cnpj).strip() if cnpj else None,
    )


def resolve_tax_config(config: Optional[TaxConfig] = None) -> Tuple[TaxConfig, bool]:
    if config is not None:
        return config, False
    logger.warning("Configuracao tributaria da unidade ausente; usando Simples Nacional com ISS padrao.")
    return DEFAULT_TAX_CONFIG, True


# ==================== LIMIARES DE DIAGNOSTICO ====================

DEFAULT_THRESHOLDS = DiagnosticThresholds()


def build_thresholds(payload: Dict[str, Any], ruleset_id: str = "N/D") -> DiagnosticThresholds:
    valores: Dict[str, float] = {}
    for chave, default in asdict(DEFAULT_THRESHOLDS).items():
        value = payload.get(chave, default)
        if not isinstance(value, (int, float)) or value < 0:
            raise _ruleset_error(
                ruleset_id, "thresholds.json", chave, "Todos", "Diagnosticos sem limiar valido", "valor invalido"
            )
        valores[chave] = float(value)
    return DiagnosticThresholds(**valores)


def get_thresholds(ruleset_id: str = DEFAULT_RULESET_ID) -> DiagnosticThresholds:
    try:
        payload = get_thresholds_payload(ruleset_id)
    except FileNotFoundError:
        return DEFAULT_THRESHOLDS
    return build_thresholds(payload, ruleset_id)
