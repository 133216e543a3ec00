from __future__ import annotations

import argparse
import hashlib
import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from dto import SimplesBracket, TaxParameters
from regimes import aliquota_efetiva_simples
from ruleset_loader import (
    DEFAULT_RULESET_ID,
    RulesetError,
    build_tax_parameters,
    build_thresholds,
    get_tax_parameters_payload,
    get_thresholds_payload,
    load_ruleset,
)

METADATA_CHAVES_OBRIGATORIAS = ("ruleset_id", "ano", "vigencia_inicio", "vigencia_fim", "descricao")
CONTINUIDADE_TOLERANCIA = 1e-6
SENTINELA_TOLERANCIA = 1e-4
# Acima do sublimite o ISS sai do DAS e a 6a faixa e descontinua na propria LC 123.
SUBLIMITE_ISS = 3_600_000

CHECKED_FILES = (
    "metadata.json",
    "tax_parameters.json",
    "thresholds.json",
)


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str  # PASS | FAIL
    expected: Any = None
    actual: Any = None
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "expected": self.expected,
            "actual": self.actual,
            "details": self.details,
        }


def _pass(name: str, details: str = "", expected: Any = None, actual: Any = None) -> CheckResult:
    return CheckResult(name=name, status="PASS", details=details, expected=expected, actual=actual)


def _fail(name: str, details: str = "", expected: Any = None, actual: Any = None) -> CheckResult:
    return CheckResult(name=name, status="FAIL", details=details, expected=expected, actual=actual)


def _hash_json_payload(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _hash_composite(items: Dict[str, str]) -> str:
    canonical = json.dumps(items, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _simples_sentinels(metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
    sentinels = metadata.get("audit_sentinels", {})
    if not isinstance(sentinels, dict):
        return []
    simples = sentinels.get("simples", [])
    if not isinstance(simples, list):
        return []
    return [item for item in simples if isinstance(item, dict)]


def _taxa_efetiva(faixa: SimplesBracket, rbt12: float) -> float:
    return (rbt12 * faixa.aliquota - faixa.deducao) / rbt12


def validate_metadata(metadata: Dict[str, Any], ruleset_id: str) -> List[CheckResult]:
    checks: List[CheckResult] = []
    ausentes = [k for k in METADATA_CHAVES_OBRIGATORIAS if k not in metadata]
    if ausentes:
        checks.append(_fail("Metadata: chaves obrigatorias", expected=list(METADATA_CHAVES_OBRIGATORIAS), actual=ausentes))
    else:
        checks.append(_pass("Metadata: chaves obrigatorias"))

    if metadata.get("ruleset_id") == ruleset_id:
        checks.append(_pass("Metadata: ruleset_id confere com diretorio"))
    else:
        checks.append(
            _fail("Metadata: ruleset_id confere com diretorio", expected=ruleset_id, actual=metadata.get("ruleset_id"))
        )

    fontes = metadata.get("fontes_oficiais")
    if isinstance(fontes, list) and fontes:
        checks.append(_pass("Metadata: fontes oficiais", actual=len(fontes)))
    else:
        checks.append(_fail("Metadata: fontes oficiais", expected="lista nao vazia", actual=fontes))
    return checks


def validate_bracket_continuity(anexo: str, tabela: Sequence[SimplesBracket]) -> List[CheckResult]:
    """
    Na fronteira entre faixas (ate o sublimite) a aliquota efetiva calculada pelas duas
    faixas deve coincidir; e em cada limite inferior positivo a aliquota efetiva nao pode ser negativa.
    """
    checks: List[CheckResult] = []
    for atual, proxima in zip(tabela, tabela[1:]):
        fronteira = proxima.limite_inferior
        if fronteira <= 0 or fronteira >= SUBLIMITE_ISS:
            continue
        antes = _taxa_efetiva(atual, fronteira)
        depois = _taxa_efetiva(proxima, fronteira)
        nome = f"Simples Anexo {anexo}: continuidade faixa {atual.faixa}->{proxima.faixa}"
        if abs(antes - depois) <= CONTINUIDADE_TOLERANCIA:
            checks.append(_pass(nome, actual=round(depois, 6)))
        else:
            checks.append(_fail(nome, expected=round(antes, 6), actual=round(depois, 6), details=f"rbt12={fronteira}"))

    negativas = [
        f.faixa for f in tabela if f.limite_inferior > 0 and _taxa_efetiva(f, f.limite_inferior) < 0
    ]
    nome = f"Simples Anexo {anexo}: aliquota efetiva nao negativa"
    if negativas:
        checks.append(_fail(nome, expected="todas >= 0", actual=negativas))
    else:
        checks.append(_pass(nome))
    return checks


def validate_sentinels(params: TaxParameters, sentinels: Sequence[Dict[str, Any]]) -> List[CheckResult]:
    checks: List[CheckResult] = []
    for item in sentinels:
        anexo = str(item.get("anexo", ""))
        rbt12 = item.get("rbt12")
        esperado = item.get("aliquota_efetiva")
        nome = f"Sentinela Simples Anexo {anexo} rbt12={rbt12}"
        if not isinstance(rbt12, (int, float)) or not isinstance(esperado, (int, float)):
            checks.append(_fail(nome, details="sentinela malformada"))
            continue
        try:
            obtido = aliquota_efetiva_simples(float(rbt12), params.tabela_anexo(anexo))
        except ValueError as exc:
            checks.append(_fail(nome, details=str(exc)))
            continue
        if abs(obtido - float(esperado)) <= SENTINELA_TOLERANCIA:
            checks.append(_pass(nome, expected=esperado, actual=round(obtido, 6)))
        else:
            checks.append(_fail(nome, expected=esperado, actual=round(obtido, 6)))
    return checks


def validate_thresholds(payload: Dict[str, Any], ruleset_id: str) -> List[CheckResult]:
    try:
        build_thresholds(payload, ruleset_id)
    except RulesetError as exc:
        return [_fail("Thresholds: valores validos", details=str(exc))]
    return [_pass("Thresholds: valores validos")]


def audit_ruleset(ruleset_id: str = DEFAULT_RULESET_ID) -> Dict[str, Any]:
    metadata = load_ruleset(ruleset_id)
    payloads = {
        "metadata.json": metadata,
        "tax_parameters.json": get_tax_parameters_payload(ruleset_id),
        "thresholds.json": get_thresholds_payload(ruleset_id),
    }

    checks: List[CheckResult] = []
    warnings: List[str] = []
    checks.extend(validate_metadata(metadata, ruleset_id))

    params: Optional[TaxParameters] = None
    try:
        params = build_tax_parameters(payloads["tax_parameters.json"], ruleset_id)
        checks.append(_pass("Tax parameters: estrutura e faixas"))
    except RulesetError as exc:
        checks.append(_fail("Tax parameters: estrutura e faixas", details=str(exc)))

    if params is not None:
        if params.ano == metadata.get("ano"):
            checks.append(_pass("Tax parameters: ano confere com metadata", actual=params.ano))
        else:
            checks.append(
                _fail("Tax parameters: ano confere com metadata", expected=metadata.get("ano"), actual=params.ano)
            )
        checks.extend(validate_bracket_continuity("III", params.simples_anexo3))
        checks.extend(validate_bracket_continuity("V", params.simples_anexo5))
        sentinels = _simples_sentinels(metadata)
        if sentinels:
            checks.extend(validate_sentinels(params, sentinels))
        else:
            warnings.append("metadata.json sem audit_sentinels.simples; sentinelas nao verificadas.")

    checks.extend(validate_thresholds(payloads["thresholds.json"], ruleset_id))

    file_hashes = {filename: _hash_json_payload(payloads[filename]) for filename in CHECKED_FILES}
    all_pass = all(c.status == "PASS" for c in checks)

    return {
        "ruleset_id": ruleset_id,
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "metadata": {
            "ruleset_id": metadata.get("ruleset_id"),
            "ano": metadata.get("ano"),
            "vigencia_inicio": metadata.get("vigencia_inicio"),
            "vigencia_fim": metadata.get("vigencia_fim"),
            "descricao": metadata.get("descricao"),
        },
        "checked_files": list(CHECKED_FILES),
        "ruleset_file_hashes": file_hashes,
        "ruleset_hash_sha256": _hash_composite(file_hashes),
        "overall_status": "PASS" if all_pass else "FAIL",
        "checks": [c.to_dict() for c in checks],
        "differences": [c.to_dict() for c in checks if c.status == "FAIL"],
        "warnings": warnings,
    }


def render_audit_report_text(result: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("=== RULESET AUDIT REPORT ===")
    lines.append(f"Ruleset: {result.get('ruleset_id')}")
    lines.append(f"Timestamp: {result.get('timestamp')}")
    lines.append(f"Overall: {result.get('overall_status')}")
    lines.append(f"Ruleset hash (SHA-256): {result.get('ruleset_hash_sha256')}")
    lines.append("")

    meta = result.get("metadata", {})
    lines.append("Metadata:")
    for chave in ("ruleset_id", "ano", "vigencia_inicio", "vigencia_fim", "descricao"):
        lines.append(f"- {chave}: {meta.get(chave)}")
    lines.append("")

    lines.append("File hashes:")
    for filename in result.get("checked_files", []):
        lines.append(f"- {filename}: {result.get('ruleset_file_hashes', {}).get(filename)}")

    lines.append("")
    lines.append("Warnings:")
    warnings = result.get("warnings", [])
    if not warnings:
        lines.append("- none")
    for warning in warnings:
        lines.append(f"- {warning}")
    lines.append("")
    lines.append("Checks:")
    for check in result.get("checks", []):
        lines.append(f"[{check.get('status')}] {check.get('name')}")
        expected = check.get("expected")
        actual = check.get("actual")
        details = check.get("details")
        if expected is not None or actual is not None:
            lines.append(f"  expected={expected} | actual={actual}")
        if details:
            lines.append(f"  details={details}")
    return "\n".join(lines)


def write_audit_report(result: Dict[str, Any], output_dir: str = "outputs") -> str:
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    name = f"ruleset_audit_{result.get('ruleset_id', 'unknown')}_{timestamp}.txt"
    path = os.path.join(output_dir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_audit_report_text(result))
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Audita integridade estrutural e consistencia das faixas de um ruleset fiscal.")
    parser.add_argument("--ruleset-id", default=DEFAULT_RULESET_ID)
    parser.add_argument("--output-dir", default="outputs")
    args = parser.parse_args(argv)

    try:
        result = audit_ruleset(args.ruleset_id)
    except (OSError, ValueError) as exc:
        print(f"Erro ao auditar ruleset '{args.ruleset_id}': {exc}")
        return 2

    report_path = write_audit_report(result, output_dir=args.output_dir)
    print(f"Relatorio de auditoria gerado: {report_path}")
    print(f"Status geral: {result.get('overall_status')}")
    print(f"Ruleset hash: {result.get('ruleset_hash_sha256')}")
    return 0 if result.get("overall_status") == "PASS" else 1


if __name__ == "__main__":
    raise SystemExit(main())
