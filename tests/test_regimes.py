import unittest
from dataclasses import replace

from dto import MonthlyFinancialAggregate, SimplesBracket, TaxConfig
from regime_utils import REGIME_CODE_CBS_IBS, REGIME_CODE_PRESUMIDO, REGIME_CODE_REAL, REGIME_CODE_SIMPLES
from regimes import (
    BASE_RBT12_MEDIA,
    VARIANTES,
    CbsIbs,
    LucroPresumido,
    LucroReal,
    SimplesNacional,
    SimulationBase,
    calcular_aliquota_simples,
    escolher_faixa,
)
from ruleset_loader import DEFAULT_RULESET_ID, MODELO_REAL_APURACAO_SIMPLIFICADA, get_tax_parameters

CONFIG = TaxConfig(regime_atual="SIMPLES", iss_aliquota=0.05)


def _base(receita=50000.0, rbt12=600000.0, folha12=180000.0, params=None, base_mensal="receita_mes", **mes):
    return SimulationBase(
        mes=MonthlyFinancialAggregate(mes="2025-06", receita_servicos=receita, **mes),
        rbt12=rbt12,
        folha12=folha12,
        params=params or get_tax_parameters(DEFAULT_RULESET_ID),
        config=CONFIG,
        base_mensal=base_mensal,
    )


class SimplesTablesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.params = get_tax_parameters(DEFAULT_RULESET_ID)

    def test_faixa_com_limite_inferior_inclusivo(self) -> None:
        self.assertEqual(escolher_faixa(179999.99, self.params.simples_anexo3).faixa, 1)
        self.assertEqual(escolher_faixa(180000.0, self.params.simples_anexo3).faixa, 2)
        self.assertEqual(escolher_faixa(10_000_000.0, self.params.simples_anexo3).faixa, 6)

    def test_aliquota_efetiva_conhecida(self) -> None:
        aliquota, info = calcular_aliquota_simples(600000.0, self.params.simples_anexo3)
        self.assertAlmostEqual(aliquota, 0.1056)
        self.assertEqual(info["faixa"], 3)
        self.assertFalse(info["aliquota_negativa_ajustada"])

    def test_sem_rbt12_usa_nominal_da_primeira_faixa(self) -> None:
        aliquota, info = calcular_aliquota_simples(0.0, self.params.simples_anexo5)
        self.assertEqual(aliquota, 0.155)
        self.assertEqual(info["faixa"], 1)

    def test_continuidade_nas_fronteiras_ate_o_sublimite(self) -> None:
        eps = 0.01
        for tabela in (self.params.simples_anexo3, self.params.simples_anexo5):
            for faixa in tabela[:4]:
                limite = faixa.limite_superior
                antes, _ = calcular_aliquota_simples(limite - eps, tabela)
                depois, _ = calcular_aliquota_simples(limite + eps, tabela)
                self.assertAlmostEqual(antes, depois, places=6)
                self.assertLessEqual(antes, depois + 1e-9)

    def test_aliquota_negativa_e_zerada_e_sinalizada(self) -> None:
        tabela = (SimplesBracket(1, 0.0, None, 0.05, 100000.0),)
        with self.assertLogs("regimes", level="WARNING"):
            aliquota, info = calcular_aliquota_simples(100000.0, tabela)
        self.assertEqual(aliquota, 0.0)
        self.assertTrue(info["aliquota_negativa_ajustada"])

    def test_tabela_vazia(self) -> None:
        with self.assertRaises(ValueError):
            escolher_faixa(1000.0, ())


class RegimeVariantsTests(unittest.TestCase):
    def test_total_e_soma_de_federal_e_municipal(self) -> None:
        base = _base()
        for variante in VARIANTES:
            c = variante.calcular(base)
            self.assertAlmostEqual(c.total, c.impostos_federais + c.iss_ibs)
            self.assertAlmostEqual(c.percentual_receita, c.total / 50000.0 * 100.0)
            self.assertGreaterEqual(c.total, 0.0)

    def test_ordem_das_variantes(self) -> None:
        self.assertEqual(
            [v.regime_code for v in VARIANTES],
            [REGIME_CODE_SIMPLES, REGIME_CODE_PRESUMIDO, REGIME_CODE_REAL, REGIME_CODE_CBS_IBS],
        )

    def test_simples_anexo_iii(self) -> None:
        c = SimplesNacional().calcular(_base())
        self.assertAlmostEqual(c.total, 5280.0, places=2)
        self.assertAlmostEqual(c.iss_ibs, 500.0, places=2)
        self.assertEqual(c.detalhes["anexo"], "III")
        self.assertNotIn("alerta_elegibilidade", c.detalhes)

    def test_simples_anexo_v(self) -> None:
        c = SimplesNacional().calcular(_base(folha12=96000.0))
        self.assertEqual(c.detalhes["anexo"], "V")
        self.assertAlmostEqual(c.total, 8925.0, places=2)

    def test_simples_alerta_acima_do_limite(self) -> None:
        c = SimplesNacional().calcular(_base(rbt12=5_000_000.0, folha12=2_000_000.0))
        self.assertIn("alerta_elegibilidade", c.detalhes)

    def test_presumido_sem_adicional(self) -> None:
        c = LucroPresumido().calcular(_base())
        self.assertAlmostEqual(c.base_calculo, 16000.0)
        self.assertAlmostEqual(c.detalhes["irpj"], 2400.0)
        self.assertEqual(c.detalhes["irpj_adicional"], 0.0)
        self.assertAlmostEqual(c.detalhes["csll"], 1440.0)
        self.assertAlmostEqual(c.impostos_federais, 5665.0, places=2)
        self.assertAlmostEqual(c.iss_ibs, 2500.0)

    def test_presumido_com_adicional_sobre_excedente(self) -> None:
        c = LucroPresumido().calcular(_base(receita=100000.0))
        self.assertAlmostEqual(c.detalhes["irpj_adicional"], 1200.0)

    def test_real_aliquota_combinada(self) -> None:
        c = LucroReal().calcular(_base(folha_salarios=10000.0))
        self.assertAlmostEqual(c.impostos_federais, 6000.0)
        self.assertAlmostEqual(c.total, 8500.0)
        self.assertAlmostEqual(c.detalhes["margem_liquida"], 0.8)

    def test_real_apuracao_simplificada_com_creditos(self) -> None:
        params = replace(get_tax_parameters(DEFAULT_RULESET_ID), modelo_lucro_real=MODELO_REAL_APURACAO_SIMPLIFICADA)
        c = LucroReal().calcular(
            _base(params=params, folha_salarios=10000.0, insumos=5000.0, servicos_terceiros=5000.0)
        )
        self.assertAlmostEqual(c.base_calculo, 30000.0)
        self.assertAlmostEqual(c.detalhes["irpj_adicional"], 1000.0)
        self.assertAlmostEqual(c.detalhes["creditos_pis_cofins"], 832.5, places=4)
        self.assertAlmostEqual(c.impostos_federais, 11992.5, places=4)

    def test_real_sem_lucro(self) -> None:
        params = replace(get_tax_parameters(DEFAULT_RULESET_ID), modelo_lucro_real=MODELO_REAL_APURACAO_SIMPLIFICADA)
        c = LucroReal().calcular(_base(params=params, folha_salarios=80000.0))
        self.assertEqual(c.base_calculo, 0.0)
        self.assertEqual(c.detalhes["irpj"], 0.0)

    def test_cbs_ibs_com_reducao(self) -> None:
        c = CbsIbs().calcular(_base())
        self.assertAlmostEqual(c.impostos_federais, 1760.0)
        self.assertAlmostEqual(c.iss_ibs, 3500.0)

    def test_sem_receita_percentual_zero(self) -> None:
        base = _base(receita=0.0, rbt12=0.0, folha12=0.0)
        for variante in VARIANTES:
            c = variante.calcular(base)
            self.assertEqual(c.total, 0.0)
            self.assertEqual(c.percentual_receita, 0.0)

    def test_base_media_do_rbt12(self) -> None:
        base = _base(receita=10000.0, base_mensal=BASE_RBT12_MEDIA)
        self.assertAlmostEqual(base.receita_base, 50000.0)
        self.assertAlmostEqual(SimplesNacional().calcular(base).base_calculo, 50000.0)

    def test_base_mensal_invalida(self) -> None:
        with self.assertRaises(ValueError):
            _base(base_mensal="anual")


if __name__ == "__main__":
    unittest.main()
