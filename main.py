from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

from demo_config import demo_ledger
from file_exporter import nome_arquivo_seguro, salvar_evento_json, salvar_relatorio_txt
from ledger_io import LedgerFile, ledger_to_dict, load_ledger
from pdf_exporter import salvar_relatorio_pdf
from regimes import BASE_RECEITA_MES, BASES_MENSAIS
from report_formatters import (
    montar_relatorio_simulacao,
    render_auditoria_section,
    render_evolucao_section,
    render_fator_r_section,
    render_regularizacao_section,
)
from tax_engine import PONTOS_EVOLUCAO, TaxSimulationService

logger = logging.getLogger(__name__)


def _referencia(args: argparse.Namespace, ledger: LedgerFile) -> str:
    referencia = args.referencia or ledger.referencia
    if not referencia:
        raise ValueError("Informe --referencia (YYYY-MM) ou 'referencia' no arquivo de lancamentos.")
    return referencia


def _carregar(args: argparse.Namespace) -> LedgerFile:
    if args.demo:
        return demo_ledger()
    if not args.lancamentos:
        raise ValueError("Informe o arquivo de lancamentos (JSON) ou use --demo.")
    return load_ledger(args.lancamentos)


def _service(args: argparse.Namespace, ledger: LedgerFile) -> TaxSimulationService:
    return TaxSimulationService(config=ledger.config, base_mensal=args.base_mensal)


def _exportar(conteudo: str, titulo: str, formatos: Sequence[str], evento: Optional[dict] = None) -> List[str]:
    base = nome_arquivo_seguro(titulo)
    caminhos: List[str] = []
    for formato in formatos:
        if formato == "txt":
            caminhos.append(salvar_relatorio_txt(conteudo, nome_base=base))
        elif formato == "pdf":
            caminhos.append(salvar_relatorio_pdf(conteudo, nome_base=base))
        elif formato == "json" and evento is not None:
            caminhos.append(salvar_evento_json(evento, nome_base=base))
    return caminhos


def cmd_simular(args: argparse.Namespace) -> int:
    ledger = _carregar(args)
    referencia = _referencia(args, ledger)
    service = _service(args, ledger)
    output = service.simular(ledger.lancamentos, referencia, unidade_id=ledger.unidade_id)

    ajuste, economia = service.alerta_fator_r(output)
    secoes = [render_fator_r_section(ajuste, economia)]
    if output.folha_informal12 > 0:
        percentual, regularizacao = service.regularizacao(output)
        secoes.append(render_regularizacao_section(percentual, regularizacao))

    titulo = ledger.unidade_id or "Unidade"
    relatorio = montar_relatorio_simulacao(output, titulo=titulo, secoes_extras=secoes)
    print(relatorio)
    if output.parametros_padrao or output.config_padrao:
        logger.warning("Simulacao %s calculada com valores padrao; revise as premissas.", referencia)
    for caminho in _exportar(relatorio, titulo, args.export, evento=output.to_event()):
        print(f"Arquivo gerado: {caminho}")
    return 0


def cmd_evolucao(args: argparse.Namespace) -> int:
    ledger = _carregar(args)
    referencia = _referencia(args, ledger)
    pontos = _service(args, ledger).simular_evolucao(
        ledger.lancamentos, referencia, pontos=args.pontos, unidade_id=ledger.unidade_id
    )
    texto = render_evolucao_section(pontos)
    print(texto)
    for caminho in _exportar(texto, f"evolucao_{ledger.unidade_id or 'unidade'}", args.export):
        print(f"Arquivo gerado: {caminho}")
    return 0


def cmd_auditar(args: argparse.Namespace) -> int:
    ledger = _carregar(args)
    referencia = _referencia(args, ledger)
    audit = _service(args, ledger).auditar(
        ledger.lancamentos, ledger.categorias, referencia, payables=ledger.contas_pagar
    )
    texto = render_auditoria_section(audit)
    print(texto)
    for caminho in _exportar(texto, f"auditoria_{ledger.unidade_id or 'unidade'}", args.export, evento=audit.to_dict()):
        print(f"Arquivo gerado: {caminho}")
    return 0


def cmd_demo_ledger(args: argparse.Namespace) -> int:
    with open(args.destino, "w", encoding="utf-8") as f:
        json.dump(ledger_to_dict(demo_ledger()), f, ensure_ascii=False, indent=2)
    print(f"Arquivo de lancamentos DEMO gravado em: {args.destino}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulacao tributaria multi-regime e auditoria do Fator R a partir de lancamentos financeiros."
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Exibe logs detalhados.")
    sub = parser.add_subparsers(dest="comando", required=True)

    comum = argparse.ArgumentParser(add_help=False)
    comum.add_argument("lancamentos", nargs="?", help="Arquivo JSON de lancamentos.")
    comum.add_argument("--referencia", help="Competencia de referencia (YYYY-MM).")
    comum.add_argument("--demo", action="store_true", help="Usa o laboratorio ficticio em vez de um arquivo.")
    comum.add_argument("--base-mensal", choices=BASES_MENSAIS, default=BASE_RECEITA_MES)
    comum.add_argument("--export", nargs="*", choices=("txt", "pdf", "json"), default=[])

    p = sub.add_parser("simular", parents=[comum], help="Compara os regimes no mes de referencia.")
    p.set_defaults(func=cmd_simular)

    p = sub.add_parser("evolucao", parents=[comum], help="Evolucao mensal de Fator R e carga por regime.")
    p.add_argument("--pontos", type=int, default=PONTOS_EVOLUCAO)
    p.set_defaults(func=cmd_evolucao)

    p = sub.add_parser("auditar", parents=[comum], help="Auditoria do Fator R nos ultimos 12 meses.")
    p.set_defaults(func=cmd_auditar)

    p = sub.add_parser("demo-ledger", help="Grava o arquivo de lancamentos DEMO.")
    p.add_argument("destino")
    p.set_defaults(func=cmd_demo_ledger)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (OSError, ValueError) as exc:
        print(f"Erro: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
