import math
import unittest

from regularization import (
    RegularizationInput,
    diagnosticos_regularizacao,
    encontrar_regularizacao_otima,
    simular_regularizacao,
)
from ruleset_loader import DEFAULT_RULESET_ID, get_tax_parameters


class RegularizationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.entrada = RegularizationInput(
            folha_oficial12=96000.0,
            pagamentos_informais12=96000.0,
            rbt12=600000.0,
            receita_mensal=50000.0,
            params=get_tax_parameters(DEFAULT_RULESET_ID),
        )

    def test_regularizacao_total_muda_anexo(self) -> None:
        r = simular_regularizacao(self.entrada, 100)
        self.assertEqual(r.anexo_atual, "V")
        self.assertEqual(r.anexo_simulado, "III")
        self.assertAlmostEqual(r.fator_r_simulado, 0.32)
        self.assertAlmostEqual(r.custo_adicional_encargos, 48000.0)
        self.assertAlmostEqual(r.economia_imposto, 43740.0, places=2)
        self.assertAlmostEqual(r.resultado_liquido, -4260.0, places=2)

    def test_sem_mudanca_de_anexo_nao_ha_economia(self) -> None:
        r = simular_regularizacao(self.entrada, 70)
        self.assertEqual(r.anexo_simulado, "V")
        self.assertAlmostEqual(r.economia_imposto, 0.0)
        self.assertTrue(math.isinf(r.payback_meses))

    def test_percentual_otimo(self) -> None:
        percentual, r = encontrar_regularizacao_otima(self.entrada)
        self.assertEqual(percentual, 80.0)
        self.assertAlmostEqual(r.resultado_liquido, 5340.0, places=2)
        self.assertAlmostEqual(r.payback_meses, 38400.0 / 3645.0, places=4)

    def test_percentual_limitado_a_cem(self) -> None:
        self.assertEqual(simular_regularizacao(self.entrada, 150).percentual_regularizacao, 100.0)
        self.assertEqual(simular_regularizacao(self.entrada, -5).percentual_regularizacao, 0.0)

    def test_passo_invalido(self) -> None:
        with self.assertRaises(ValueError):
            encontrar_regularizacao_otima(self.entrada, passo=0)

    def test_diagnosticos(self) -> None:
        _, r = encontrar_regularizacao_otima(self.entrada)
        diagnosticos = diagnosticos_regularizacao(r)
        self.assertTrue(diagnosticos[0].startswith("[SUCESSO]"))
        self.assertTrue(any(d.startswith("[INFO] Payback") for d in diagnosticos))

    def test_sem_beneficio_mantem_zero_e_alerta_passivo(self) -> None:
        entrada = RegularizationInput(
            folha_oficial12=180000.0,
            pagamentos_informais12=24000.0,
            rbt12=600000.0,
            receita_mensal=50000.0,
            params=self.entrada.params,
        )
        percentual, r = encontrar_regularizacao_otima(entrada)
        self.assertEqual(percentual, 0.0)
        self.assertTrue(any(d.startswith("[ALERTA]") for d in diagnosticos_regularizacao(r)))


if __name__ == "__main__":
    unittest.main()
