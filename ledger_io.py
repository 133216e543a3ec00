from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dto import PAYROLL_SUBTYPES, TIPO_ENTRADA, TIPO_SAIDA, CategoryRef, LedgerEntry, PayableForFatorR, TaxConfig
from input_utils import validar_competencia
from ruleset_loader import build_tax_config


@dataclass(frozen=True)
class LedgerFile:
    """Conteudo de um arquivo de lancamentos exportado pelo sistema financeiro."""

    categorias: Tuple[CategoryRef, ...]
    lancamentos: Tuple[LedgerEntry, ...]
    contas_pagar: Tuple[PayableForFatorR, ...] = ()
    config: Optional[TaxConfig] = None
    referencia: Optional[str] = None
    unidade_id: Optional[str] = None


def _erro(origem: str, detalhe: str) -> ValueError:
    return ValueError(f"arquivo=lancamentos | item={origem} | detalhe={detalhe}")


def _parse_data(raw: Any, origem: str) -> date:
    try:
        return date.fromisoformat(str(raw)[:10])
    except (TypeError, ValueError) as exc:
        raise _erro(origem, f"data invalida: {raw!r} (use YYYY-MM-DD)") from exc


def _parse_valor(raw: Any, origem: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise _erro(origem, f"valor nao numerico: {raw!r}")
    return float(raw)


def _flag_opcional(raw: Any, origem: str) -> Optional[bool]:
    if raw is None or isinstance(raw, bool):
        return raw
    raise _erro(origem, f"entra_fator_r deve ser true, false ou null (recebido {raw!r})")


def parse_categoria(payload: Mapping[str, Any]) -> CategoryRef:
    cat_id = str(payload.get("id") or "").strip()
    if not cat_id:
        raise _erro("categoria", "id ausente")
    subtype = payload.get("payroll_subtype")
    if subtype is not None and str(subtype).strip().lower() not in PAYROLL_SUBTYPES:
        raise _erro(f"categoria:{cat_id}", f"payroll_subtype invalido: {subtype!r}")
    tax_group = payload.get("tax_group")
    return CategoryRef(
        id=cat_id,
        nome=str(payload.get("nome") or payload.get("name") or cat_id),
        tax_group=str(tax_group).strip().upper() if tax_group else None,
        entra_fator_r=_flag_opcional(payload.get("entra_fator_r"), f"categoria:{cat_id}"),
        is_informal=bool(payload.get("is_informal", False)),
        payroll_subtype=str(subtype).strip().lower() if subtype is not None else None,
    )


def _categoria_ref(raw: Any, catalogo: Mapping[str, CategoryRef], origem: str) -> Optional[CategoryRef]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        return parse_categoria(raw)
    cat_id = str(raw)
    if cat_id not in catalogo:
        raise _erro(origem, f"categoria desconhecida: {cat_id}")
    return catalogo[cat_id]


def parse_lancamento(payload: Mapping[str, Any], catalogo: Mapping[str, CategoryRef]) -> LedgerEntry:
    origem = f"lancamento:{payload.get('id', '?')}"
    tipo = str(payload.get("tipo") or "").strip().upper()
    if tipo not in (TIPO_ENTRADA, TIPO_SAIDA):
        raise _erro(origem, f"tipo invalido: {payload.get('tipo')!r} (esperado ENTRADA ou SAIDA)")
    unidade = payload.get("unidade_id")
    return LedgerEntry(
        data=_parse_data(payload.get("data"), origem),
        valor=_parse_valor(payload.get("valor"), origem),
        tipo=tipo,
        categoria=_categoria_ref(payload.get("categoria", payload.get("categoria_id")), catalogo, origem),
        unidade_id=str(unidade) if unidade is not None else None,
        id=str(payload["id"]) if payload.get("id") is not None else None,
    )


def parse_conta_pagar(payload: Mapping[str, Any], catalogo: Mapping[str, CategoryRef]) -> PayableForFatorR:
    origem = f"conta_pagar:{payload.get('id', '?')}"
    pago = payload.get("paid_amount")
    return PayableForFatorR(
        id=str(payload.get("id") or ""),
        vencimento=_parse_data(payload.get("vencimento"), origem),
        valor=_parse_valor(payload.get("valor"), origem),
        status=str(payload.get("status") or ""),
        paid_amount=_parse_valor(pago, origem) if pago is not None else None,
        beneficiario=payload.get("beneficiario"),
        matched_transaction_id=payload.get("matched_transaction_id"),
        categoria=_categoria_ref(payload.get("categoria", payload.get("categoria_id")), catalogo, origem),
    )


def parse_ledger(payload: Mapping[str, Any]) -> LedgerFile:
    if not isinstance(payload, Mapping):
        raise _erro("raiz", "arquivo deve conter objeto JSON")

    categorias = [parse_categoria(c) for c in payload.get("categorias") or []]
    catalogo: Dict[str, CategoryRef] = {c.id: c for c in categorias}
    lancamentos = [parse_lancamento(item, catalogo) for item in payload.get("lancamentos") or []]
    contas = [parse_conta_pagar(item, catalogo) for item in payload.get("contas_pagar") or []]

    referencia = payload.get("referencia")
    if referencia is not None:
        ok, valor = validar_competencia(str(referencia))
        if not ok:
            raise _erro("referencia", valor)
        referencia = valor

    config_raw = payload.get("config")
    unidade = payload.get("unidade_id")
    return LedgerFile(
        categorias=tuple(categorias),
        lancamentos=tuple(lancamentos),
        contas_pagar=tuple(contas),
        config=build_tax_config(config_raw) if isinstance(config_raw, dict) else None,
        referencia=referencia,
        unidade_id=str(unidade) if unidade is not None else None,
    )


def load_ledger(path: str) -> LedgerFile:
    with open(path, "r", encoding="utf-8-sig") as f:
        return parse_ledger(json.load(f))


def categoria_to_dict(categoria: CategoryRef) -> Dict[str, Any]:
    return {
        "id": categoria.id,
        "nome": categoria.nome,
        "tax_group": categoria.tax_group,
        "entra_fator_r": categoria.entra_fator_r,
        "is_informal": categoria.is_informal,
        "payroll_subtype": categoria.payroll_subtype,
    }


def ledger_to_dict(ledger: LedgerFile) -> Dict[str, Any]:
    """Inverso de parse_ledger (usado pela demo para gravar o arquivo de exemplo)."""
    lancamentos: List[Dict[str, Any]] = []
    for e in ledger.lancamentos:
        lancamentos.append(
            {
                "id": e.id,
                "data": e.data.isoformat(),
                "valor": e.valor,
                "tipo": e.tipo,
                "categoria_id": e.categoria.id if e.categoria is not None else None,
                "unidade_id": e.unidade_id,
            }
        )
    contas: List[Dict[str, Any]] = []
    for p in ledger.contas_pagar:
        contas.append(
            {
                "id": p.id,
                "vencimento": p.vencimento.isoformat(),
                "valor": p.valor,
                "status": p.status,
                "paid_amount": p.paid_amount,
                "beneficiario": p.beneficiario,
                "matched_transaction_id": p.matched_transaction_id,
                "categoria_id": p.categoria.id if p.categoria is not None else None,
            }
        )
    payload: Dict[str, Any] = {
        "referencia": ledger.referencia,
        "unidade_id": ledger.unidade_id,
        "categorias": [categoria_to_dict(c) for c in ledger.categorias],
        "lancamentos": lancamentos,
        "contas_pagar": contas,
    }
    if ledger.config is not None:
        payload["config"] = {
            "regime_atual": ledger.config.regime_atual,
            "iss_aliquota": ledger.config.iss_aliquota,
            "cnpj": ledger.config.cnpj,
        }
    return payload
