import unittest

from diagnostics_engine import CODIGO_CONFIGURACAO_PADRAO, CODIGO_FATOR_R
from dto import CategoryRef, MonthlyFinancialAggregate, TaxConfig
from ledger_fixtures import INFORMAL, SALARIOS, entrada, saida, serie_constante
from regimes import BASE_RBT12_MEDIA
from tax_engine import TaxSimulationService

CONFIG = TaxConfig(regime_atual="SIMPLES", iss_aliquota=0.05)


class TaxSimulationServiceTests(unittest.TestCase):
    def test_exemplo_anexo_iii(self) -> None:
        out = TaxSimulationService(config=CONFIG).simular(serie_constante("2025-12", salarios=15000.0), "2025-12")
        self.assertAlmostEqual(out.rbt12, 600000.0)
        self.assertAlmostEqual(out.folha12, 180000.0)
        self.assertAlmostEqual(out.fator_r, 0.30)
        self.assertEqual(out.anexo_simples, "III")
        self.assertFalse(out.parametros_padrao)
        self.assertFalse(out.config_padrao)
        self.assertTrue(any("BR_LAB_2025_V1" in p for p in out.premissas))

    def test_invariantes_dos_cenarios(self) -> None:
        out = TaxSimulationService(config=CONFIG).simular(serie_constante("2025-12", salarios=8000.0), "2025-12")
        self.assertEqual([c.regime_code for c in out.cenarios], ["SIMPLES", "PRESUMIDO", "REAL", "CBS_IBS"])
        for c in out.cenarios:
            self.assertAlmostEqual(c.total, c.impostos_federais + c.iss_ibs)
            self.assertLessEqual(out.melhor_cenario.total, c.total)
        self.assertEqual(out.diagnosticos_detalhados[0].codigo, CODIGO_FATOR_R)
        self.assertEqual(out.diagnosticos[0], out.diagnosticos_detalhados[0].render())

    def test_deterministico(self) -> None:
        service = TaxSimulationService(config=CONFIG)
        entries = serie_constante("2025-12", salarios=8000.0, informal=2000.0)
        self.assertEqual(service.simular(entries, "2025-12").to_event(), service.simular(entries, "2025-12").to_event())

    def test_defaults_sinalizados(self) -> None:
        with self.assertLogs("ruleset_loader", level="WARNING"):
            out = TaxSimulationService().simular(serie_constante("2031-06", salarios=15000.0), "2031-06")
        self.assertTrue(out.parametros_padrao)
        self.assertTrue(out.config_padrao)
        self.assertEqual(out.diagnosticos_detalhados[-1].codigo, CODIGO_CONFIGURACAO_PADRAO)
        self.assertTrue(out.to_event()["parametros_padrao"])

    def test_sem_lancamentos(self) -> None:
        out = TaxSimulationService(config=CONFIG).simular([], "2025-12")
        self.assertEqual(out.rbt12, 0.0)
        self.assertEqual(out.fator_r, 0.0)
        self.assertEqual(out.anexo_simples, "V")
        for c in out.cenarios:
            self.assertEqual(c.total, 0.0)
            self.assertEqual(c.percentual_receita, 0.0)

    def test_folha_informal_nao_entra_no_fator_r(self) -> None:
        entries = serie_constante("2025-12", salarios=8000.0, informal=4000.0)
        out = TaxSimulationService(config=CONFIG).simular(entries, "2025-12")
        self.assertAlmostEqual(out.folha12, 96000.0)
        self.assertAlmostEqual(out.folha_informal12, 48000.0)
        self.assertAlmostEqual(out.custo_pessoal_total, 144000.0)

    def test_base_media_do_rbt12(self) -> None:
        entries = serie_constante("2025-11", meses=11, receita=60000.0) + [entrada("2025-12", 0.0)]
        out = TaxSimulationService(config=CONFIG, base_mensal=BASE_RBT12_MEDIA).simular(entries, "2025-12")
        self.assertEqual(out.receita_total, 0.0)
        self.assertAlmostEqual(out.cenario("SIMPLES").base_calculo, 55000.0)
        self.assertTrue(any("média do RBT12" in p for p in out.premissas))

    def test_simular_agregados_exige_referencia_no_fim(self) -> None:
        service = TaxSimulationService(config=CONFIG)
        with self.assertRaises(ValueError):
            service.simular_agregados([MonthlyFinancialAggregate(mes="2025-11")], "2025-12")
        with self.assertRaises(ValueError):
            service.simular_agregados([], "2025-12")

    def test_referencia_invalida(self) -> None:
        with self.assertRaises(ValueError):
            TaxSimulationService(config=CONFIG).simular([], "2025-13")

    def test_filtra_unidade(self) -> None:
        entries = [entrada("2025-12", 1000.0, unidade="A"), entrada("2025-12", 9000.0, unidade="B")]
        out = TaxSimulationService(config=CONFIG).simular(entries, "2025-12", unidade_id="A")
        self.assertEqual(out.receita_total, 1000.0)


class ServiceExtrasTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service = TaxSimulationService(config=CONFIG)

    def test_evolucao_incremental(self) -> None:
        entries = serie_constante("2025-12", meses=24, salarios=8000.0)
        entries += [saida("2025-12", 120000.0, SALARIOS)]
        pontos = self.service.simular_evolucao(entries, "2025-12", pontos=12)
        self.assertEqual(len(pontos), 12)
        self.assertEqual(pontos[0].mes, "2025-01")
        self.assertEqual(pontos[-1].mes, "2025-12")
        out = self.service.simular(entries, "2025-12")
        self.assertAlmostEqual(pontos[-1].fator_r, out.fator_r)
        self.assertEqual(pontos[-1].anexo, "III")
        self.assertEqual(pontos[-2].anexo, "V")
        self.assertEqual(set(pontos[-1].percentuais), {"SIMPLES", "PRESUMIDO", "REAL", "CBS_IBS"})

    def test_evolucao_com_historico_curto(self) -> None:
        pontos = self.service.simular_evolucao(serie_constante("2025-12", meses=3, salarios=15000.0), "2025-12", pontos=6)
        self.assertEqual([p.receita for p in pontos], [0.0, 0.0, 0.0, 50000.0, 50000.0, 50000.0])
        self.assertAlmostEqual(pontos[-1].fator_r, 0.30)

    def test_evolucao_sem_receita_na_janela_segue_simulacao(self) -> None:
        entries = serie_constante("2025-12", meses=23, receita=0.0, prolabore=5000.0)
        entries += [entrada("2024-02", 0.1), entrada("2024-03", 0.2)]
        pontos = self.service.simular_evolucao(entries, "2025-12", pontos=12)
        out = self.service.simular(entries, "2025-12")
        self.assertEqual(out.fator_r, 0.0)
        self.assertEqual(out.anexo_simples, "V")
        for ponto in pontos[2:]:
            self.assertEqual(ponto.fator_r, 0.0)
            self.assertEqual(ponto.anexo, "V")

    def test_folha_da_simulacao_igual_a_da_auditoria(self) -> None:
        distribuicao = CategoryRef("dist", "Distribuição de Lucros", "PESSOAL")
        entries = serie_constante("2025-12", salarios=8000.0)
        entries += [saida(c.data.strftime("%Y-%m"), 8000.0, distribuicao) for c in entries if c.categoria is SALARIOS]
        out = self.service.simular(entries, "2025-12")
        audit = self.service.auditar(entries, [SALARIOS, distribuicao], "2025-12")
        self.assertAlmostEqual(out.folha12, 96000.0)
        self.assertAlmostEqual(out.folha12, audit.folha12_total)
        self.assertEqual(out.anexo_simples, "V")
        self.assertEqual(audit.categorias_nao_mapeadas, ("Distribuição de Lucros",))

    def test_evolucao_pontos_invalidos(self) -> None:
        with self.assertRaises(ValueError):
            self.service.simular_evolucao([], "2025-12", pontos=0)

    def test_alerta_fator_r(self) -> None:
        out = self.service.simular(serie_constante("2025-12", salarios=8000.0), "2025-12")
        ajuste, economia = self.service.alerta_fator_r(out)
        self.assertAlmostEqual(ajuste.ajuste_mensal, 6000.0)
        self.assertAlmostEqual(economia.economia_mensal, 3645.0, places=2)

    def test_regularizacao(self) -> None:
        out = self.service.simular(serie_constante("2025-12", salarios=8000.0, informal=8000.0), "2025-12")
        percentual, resultado = self.service.regularizacao(out)
        self.assertEqual(percentual, 80.0)
        self.assertEqual(resultado.anexo_simulado, "III")

    def test_auditoria(self) -> None:
        bonus = CategoryRef("bon", "Bônus", "PESSOAL")
        entries = serie_constante("2025-12", salarios=15000.0, informal=1000.0) + [saida("2025-12", 300.0, bonus)]
        audit = self.service.auditar(entries, [SALARIOS, INFORMAL, bonus], "2025-12")
        self.assertAlmostEqual(audit.fator_r_medio, 0.30)
        self.assertEqual(audit.categorias_nao_mapeadas, ("Bônus",))


if __name__ == "__main__":
    unittest.main()
