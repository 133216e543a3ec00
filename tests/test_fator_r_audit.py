import unittest
from datetime import date

from dto import TAX_GROUP_PESSOAL, CategoryRef, PayableForFatorR
from fator_r_audit import auditar_fator_r, categorias_beneficios_padrao, categorias_fator_r_padrao
from input_utils import janela_competencias
from ledger_fixtures import (
    BENEFICIO,
    ENCARGOS,
    INFORMAL,
    INSUMOS,
    PROLABORE,
    SALARIOS,
    SEM_MARCACAO,
    entrada,
    saida,
)

CATALOGO = [SALARIOS, PROLABORE, ENCARGOS, SEM_MARCACAO, INFORMAL, BENEFICIO, INSUMOS]


def _lancamentos(referencia="2025-06", meses=12, receita=50000.0, folhas=None):
    entries = []
    for i, competencia in enumerate(janela_competencias(referencia, meses)):
        if receita:
            entries.append(entrada(competencia, receita))
        salario = folhas[i % len(folhas)] if folhas else 10000.0
        entries.extend(
            [
                saida(competencia, salario, SALARIOS),
                saida(competencia, 4000.0, PROLABORE),
                saida(competencia, 2000.0, ENCARGOS),
                saida(competencia, 500.0, SEM_MARCACAO),
                saida(competencia, 1000.0, INFORMAL),
                saida(competencia, 300.0, BENEFICIO),
                saida(competencia, 7000.0, INSUMOS),
            ]
        )
    return entries


class FatorRAuditTests(unittest.TestCase):
    def test_folha_por_subtipo_e_fora_do_fator_r(self) -> None:
        audit = auditar_fator_r(_lancamentos(), CATALOGO, "2025-06")
        self.assertEqual(len(audit.meses), 12)
        mes = audit.meses[-1]
        self.assertEqual(mes.mes, "2025-06")
        self.assertEqual(mes.folha_salarios, 10000.0)
        self.assertEqual(mes.folha_prolabore, 4000.0)
        self.assertEqual(mes.folha_encargos, 2000.0)
        self.assertEqual(mes.folha_total, 16000.0)
        self.assertEqual(mes.folha_nao_fator_r, 1800.0)
        self.assertAlmostEqual(mes.fator_r, 0.32)
        self.assertAlmostEqual(audit.folha12_total, 192000.0)
        self.assertAlmostEqual(audit.rbt12, 600000.0)
        self.assertAlmostEqual(audit.fator_r_medio, 0.32)
        self.assertAlmostEqual(audit.coeficiente_variacao, 0.0)

    def test_detalhe_por_categoria(self) -> None:
        audit = auditar_fator_r(_lancamentos(), CATALOGO, "2025-06")
        detalhes = {d.category_id: d for d in audit.meses[0].categorias_detalhadas}
        self.assertTrue(detalhes["sal"].entra_fator_r)
        self.assertFalse(detalhes["bon"].entra_fator_r)
        self.assertFalse(detalhes["avulso"].entra_fator_r)
        self.assertNotIn("reag", detalhes)

    def test_categoria_sem_marcacao_aparece_uma_unica_vez(self) -> None:
        audit = auditar_fator_r(_lancamentos(), CATALOGO, "2025-06")
        self.assertEqual(audit.categorias_nao_mapeadas, ("Bonificação plantão",))
        self.assertTrue(any("sem marcação" in s for s in audit.sugestoes))

    def test_categoria_sem_marcacao_mesmo_sem_lancamentos(self) -> None:
        outra = CategoryRef("hora", "Hora extra", TAX_GROUP_PESSOAL)
        audit = auditar_fator_r([], CATALOGO + [outra], "2025-06")
        self.assertEqual(audit.categorias_nao_mapeadas, ("Bonificação plantão", "Hora extra"))

    def test_catalogo_prevalece_sobre_referencia_do_lancamento(self) -> None:
        marcada_no_lancamento = CategoryRef("bon", "Bonificação plantão", TAX_GROUP_PESSOAL, True)
        entries = [entrada("2025-06", 10000.0), saida("2025-06", 500.0, marcada_no_lancamento)]
        audit = auditar_fator_r(entries, CATALOGO, "2025-06")
        self.assertEqual(audit.meses[-1].folha_total, 0.0)
        self.assertEqual(audit.meses[-1].folha_nao_fator_r, 500.0)

    def test_media_inclui_meses_sem_receita_como_zero(self) -> None:
        entries = [e for e in _lancamentos() if e.data >= date(2025, 1, 1) or e.tipo != "ENTRADA"]
        audit = auditar_fator_r(entries, CATALOGO, "2025-06")
        self.assertAlmostEqual(audit.rbt12, 300000.0)
        self.assertAlmostEqual(audit.fator_r_medio, 0.16)
        self.assertEqual(sum(1 for m in audit.meses if m.fator_r == 0.0), 6)
        self.assertTrue(any("6 mês(es) sem dados de receita" in s for s in audit.sugestoes))

    def test_volatilidade(self) -> None:
        audit = auditar_fator_r(_lancamentos(folhas=[4000.0, 14000.0]), CATALOGO, "2025-06")
        # fator_r mensal alterna entre 0,20 e 0,40
        self.assertAlmostEqual(audit.fator_r_medio, 0.30)
        self.assertAlmostEqual(audit.coeficiente_variacao, 1.0 / 3.0)
        self.assertTrue(any("volátil" in s for s in audit.sugestoes))

    def test_sugere_ajuste_quando_abaixo_do_limite(self) -> None:
        audit = auditar_fator_r(_lancamentos(receita=100000.0), CATALOGO, "2025-06")
        self.assertAlmostEqual(audit.fator_r_medio, 0.16)
        self.assertTrue(any("pró-labore" in s for s in audit.sugestoes))

    def test_contas_pagas_sem_transacao_vinculada(self) -> None:
        guias = CategoryRef("guias", "Guias", TAX_GROUP_PESSOAL, True)
        payables = [
            PayableForFatorR("p1", date(2025, 6, 20), 1500.0, "pago", beneficiario="GPS", categoria=guias),
            PayableForFatorR("p2", date(2025, 6, 20), 800.0, "PAGO", paid_amount=700.0, categoria=PROLABORE),
            PayableForFatorR("p3", date(2025, 6, 20), 9999.0, "pago", matched_transaction_id="t1", categoria=SALARIOS),
            PayableForFatorR("p4", date(2025, 6, 20), 9999.0, "aberto", categoria=SALARIOS),
            PayableForFatorR("p5", date(2025, 6, 20), 9999.0, "pago", categoria=INSUMOS),
            PayableForFatorR("p6", date(2023, 6, 20), 9999.0, "pago", categoria=SALARIOS),
        ]
        audit = auditar_fator_r([entrada("2025-06", 50000.0)], CATALOGO + [guias], "2025-06", payables=payables)
        mes = audit.meses[-1]
        self.assertEqual(mes.folha_encargos, 1500.0)
        self.assertEqual(mes.folha_prolabore, 700.0)
        self.assertEqual(mes.folha_salarios, 0.0)

    def test_sem_receita_nenhuma(self) -> None:
        audit = auditar_fator_r([], [], "2025-06")
        self.assertEqual(audit.fator_r_medio, 0.0)
        self.assertEqual(audit.coeficiente_variacao, 0.0)
        self.assertEqual(audit.categorias_nao_mapeadas, ())

    def test_listas_padrao_sao_disjuntas(self) -> None:
        fator_r = set(categorias_fator_r_padrao())
        self.assertIn("Pró-labore", fator_r)
        self.assertFalse(fator_r & set(categorias_beneficios_padrao()))


if __name__ == "__main__":
    unittest.main()
