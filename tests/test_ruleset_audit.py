import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from ruleset_loader import DEFAULT_RULESET_ID, get_tax_parameters, get_tax_parameters_payload, load_ruleset
from tools.ruleset_audit import (
    audit_ruleset,
    main,
    render_audit_report_text,
    validate_bracket_continuity,
    validate_metadata,
    validate_sentinels,
    write_audit_report,
)


class RulesetAuditTests(unittest.TestCase):
    def test_audit_ruleset_default_pass_and_hash(self) -> None:
        result = audit_ruleset(DEFAULT_RULESET_ID)
        self.assertEqual(result.get("overall_status"), "PASS", result.get("differences"))
        self.assertEqual(len(result.get("ruleset_hash_sha256", "")), 64)
        self.assertEqual(result.get("warnings"), [])

    def test_continuidade_das_tabelas_padrao(self) -> None:
        params = get_tax_parameters(DEFAULT_RULESET_ID)
        checks = validate_bracket_continuity("III", params.simples_anexo3)
        self.assertTrue(all(c.status == "PASS" for c in checks))

    def test_detecta_descontinuidade(self) -> None:
        payload = get_tax_parameters_payload(DEFAULT_RULESET_ID)
        payload["simples_anexo3"][1]["deducao"] = 5000
        with patch("tools.ruleset_audit.get_tax_parameters_payload", return_value=payload):
            result = audit_ruleset(DEFAULT_RULESET_ID)
        self.assertEqual(result["overall_status"], "FAIL")
        nomes = [c["name"] for c in result["differences"]]
        self.assertIn("Simples Anexo III: continuidade faixa 1->2", nomes)

    def test_parametros_malformados_viram_falha(self) -> None:
        payload = get_tax_parameters_payload(DEFAULT_RULESET_ID)
        del payload["cbs_aliquota"]
        with patch("tools.ruleset_audit.get_tax_parameters_payload", return_value=payload):
            result = audit_ruleset(DEFAULT_RULESET_ID)
        falha = next(c for c in result["differences"] if c["name"] == "Tax parameters: estrutura e faixas")
        self.assertIn("chave=cbs_aliquota", falha["details"])

    def test_sentinela_divergente(self) -> None:
        params = get_tax_parameters(DEFAULT_RULESET_ID)
        checks = validate_sentinels(params, [{"anexo": "III", "rbt12": 600000, "aliquota_efetiva": 0.2}])
        self.assertEqual(checks[0].status, "FAIL")
        checks = validate_sentinels(params, [{"anexo": "IV", "rbt12": 600000, "aliquota_efetiva": 0.1}])
        self.assertEqual(checks[0].status, "FAIL")

    def test_metadata_com_id_divergente(self) -> None:
        metadata = load_ruleset(DEFAULT_RULESET_ID)
        checks = validate_metadata(metadata, "OUTRO")
        self.assertTrue(any(c.status == "FAIL" and "ruleset_id" in c.name for c in checks))

    def test_sem_sentinelas_gera_aviso(self) -> None:
        metadata = load_ruleset(DEFAULT_RULESET_ID)
        metadata.pop("audit_sentinels")
        with patch("tools.ruleset_audit.load_ruleset", return_value=metadata):
            result = audit_ruleset(DEFAULT_RULESET_ID)
        self.assertEqual(result["overall_status"], "PASS")
        self.assertEqual(len(result["warnings"]), 1)

    def test_render_e_write_report(self) -> None:
        result = audit_ruleset(DEFAULT_RULESET_ID)
        texto = render_audit_report_text(result)
        self.assertIn("=== RULESET AUDIT REPORT ===", texto)
        self.assertIn("[PASS] Thresholds: valores validos", texto)
        with tempfile.TemporaryDirectory() as tmp:
            path = write_audit_report(result, output_dir=tmp)
            self.assertTrue(os.path.isfile(path))

    def test_main_exit_codes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, redirect_stdout(io.StringIO()):
            self.assertEqual(main(["--output-dir", tmp]), 0)
            self.assertEqual(main(["--ruleset-id", "NAO_EXISTE", "--output-dir", tmp]), 2)


if __name__ == "__main__":
    unittest.main()
