import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from main import build_parser, main


class MainCliTests(unittest.TestCase):
    def _rodar(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            codigo = main(argv)
        return codigo, out.getvalue(), err.getvalue()

    def test_simular_demo(self) -> None:
        codigo, out, _ = self._rodar(["simular", "--demo"])
        self.assertEqual(codigo, 0)
        self.assertIn("Unidade: LAB-DEMO", out)
        self.assertIn("=== ALERTA FATOR R ===", out)
        self.assertIn("=== REGULARIZAÇÃO DE PAGAMENTOS INFORMAIS (SIMULAÇÃO) ===", out)

    def test_evolucao_e_auditoria_demo(self) -> None:
        codigo, out, _ = self._rodar(["evolucao", "--demo", "--pontos", "6"])
        self.assertEqual(codigo, 0)
        self.assertIn("=== EVOLUÇÃO (% DA RECEITA) ===", out)
        self.assertIn("2025-06", out)

        codigo, out, _ = self._rodar(["auditar", "--demo"])
        self.assertEqual(codigo, 0)
        self.assertIn("- Bonificação plantão", out)

    def test_sem_arquivo_e_erro(self) -> None:
        codigo, _, err = self._rodar(["simular"])
        self.assertEqual(codigo, 2)
        self.assertIn("--demo", err)

        codigo, _, _ = self._rodar(["simular", os.path.join(tempfile.gettempdir(), "nao_existe_lancamentos.json")])
        self.assertEqual(codigo, 2)

    def test_demo_ledger_gravado_e_simulado(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            destino = os.path.join(tmp, "demo.json")
            codigo, _, _ = self._rodar(["demo-ledger", destino])
            self.assertEqual(codigo, 0)
            self.assertTrue(os.path.isfile(destino))

            codigo, out, _ = self._rodar(["simular", destino, "--base-mensal", "rbt12_media"])
            self.assertEqual(codigo, 0)
            self.assertIn("Competência: 2025-06", out)

    def test_parser_rejeita_formato_desconhecido(self) -> None:
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(["simular", "--demo", "--export", "docx"])


if __name__ == "__main__":
    unittest.main()
