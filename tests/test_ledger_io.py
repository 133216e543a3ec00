import json
import os
import tempfile
import unittest
from datetime import date

from demo_config import demo_ledger
from ledger_io import ledger_to_dict, load_ledger, parse_ledger

PAYLOAD = {
    "referencia": "2025-06",
    "unidade_id": "LAB-1",
    "config": {"regime_atual": "Lucro Presumido", "iss_aliquota": 0.03},
    "categorias": [
        {"id": "rec", "nome": "Receita", "tax_group": "receita_servicos"},
        {"id": "pro", "name": "Pró-labore", "tax_group": "PESSOAL", "entra_fator_r": True, "payroll_subtype": "prolabore"},
    ],
    "lancamentos": [
        {"id": "1", "data": "2025-06-10", "valor": 50000, "tipo": "entrada", "categoria_id": "rec"},
        {"id": "2", "data": "2025-06-05T08:00:00", "valor": 4000.5, "tipo": "SAIDA", "categoria": "pro"},
        {"id": "3", "data": "2025-06-07", "valor": 100, "tipo": "SAIDA"},
    ],
    "contas_pagar": [
        {"id": "cp1", "vencimento": "2025-06-20", "valor": 1500, "status": "pago", "beneficiario": "GPS", "categoria_id": "pro"},
    ],
}


class LedgerIoTests(unittest.TestCase):
    def test_parse_ledger(self) -> None:
        ledger = parse_ledger(PAYLOAD)
        self.assertEqual(ledger.referencia, "2025-06")
        self.assertEqual(ledger.unidade_id, "LAB-1")
        self.assertEqual(ledger.config.regime_atual, "PRESUMIDO")
        self.assertEqual(ledger.categorias[0].tax_group, "RECEITA_SERVICOS")
        self.assertEqual(ledger.categorias[1].nome, "Pró-labore")
        self.assertEqual(len(ledger.lancamentos), 3)
        self.assertEqual(ledger.lancamentos[0].tipo, "ENTRADA")
        self.assertEqual(ledger.lancamentos[1].data, date(2025, 6, 5))
        self.assertIs(ledger.lancamentos[1].categoria, ledger.categorias[1])
        self.assertIsNone(ledger.lancamentos[2].categoria)
        self.assertEqual(ledger.contas_pagar[0].categoria.id, "pro")

    def _assert_invalido(self, trecho: str, **alteracoes) -> None:
        payload = json.loads(json.dumps(PAYLOAD))
        for chave, valor in alteracoes.items():
            payload["lancamentos"][0][chave] = valor
        with self.assertRaises(ValueError) as ctx:
            parse_ledger(payload)
        self.assertIn(trecho, str(ctx.exception))

    def test_categoria_desconhecida(self) -> None:
        self._assert_invalido("categoria desconhecida", categoria_id="nao-existe")

    def test_tipo_invalido(self) -> None:
        self._assert_invalido("tipo invalido", tipo="TRANSFERENCIA")

    def test_valor_nao_numerico(self) -> None:
        self._assert_invalido("valor nao numerico", valor="100")
        self._assert_invalido("valor nao numerico", valor=True)

    def test_data_invalida(self) -> None:
        self._assert_invalido("data invalida", data="10/06/2025")

    def test_referencia_invalida(self) -> None:
        payload = dict(PAYLOAD, referencia="2025-13")
        with self.assertRaises(ValueError):
            parse_ledger(payload)

    def test_flag_fator_r_invalida(self) -> None:
        payload = json.loads(json.dumps(PAYLOAD))
        payload["categorias"][1]["entra_fator_r"] = "sim"
        with self.assertRaises(ValueError):
            parse_ledger(payload)

    def test_subtipo_invalido(self) -> None:
        payload = json.loads(json.dumps(PAYLOAD))
        payload["categorias"][1]["payroll_subtype"] = "bonus"
        with self.assertRaises(ValueError):
            parse_ledger(payload)

    def test_raiz_deve_ser_objeto(self) -> None:
        with self.assertRaises(ValueError):
            parse_ledger([])

    def test_load_ledger_com_bom(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "lancamentos.json")
            with open(path, "w", encoding="utf-8-sig") as f:
                json.dump(PAYLOAD, f, ensure_ascii=False)
            self.assertEqual(len(load_ledger(path).lancamentos), 3)

    def test_arquivo_da_demo_e_relido_igual(self) -> None:
        original = demo_ledger()
        relido = parse_ledger(json.loads(json.dumps(ledger_to_dict(original))))
        self.assertEqual(relido.lancamentos, original.lancamentos)
        self.assertEqual(relido.contas_pagar, original.contas_pagar)
        self.assertEqual(relido.config, original.config)


if __name__ == "__main__":
    unittest.main()
