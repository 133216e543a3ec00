import json
from typing import Any, Dict, List, Optional

import streamlit as st

from demo_config import demo_ledger, resolve_demo_mode, resolve_storage_targets
from dto import TaxConfig
from fator_r_audit import categorias_beneficios_padrao, categorias_fator_r_padrao
from file_exporter import nome_arquivo_seguro, salvar_evento_json, salvar_relatorio_txt
from input_utils import validar_competencia
from ledger_io import LedgerFile, parse_ledger
from pdf_exporter import salvar_relatorio_pdf
from regime_comparator import tabela_comparativa
from regime_utils import REGIMES_CONFIGURAVEIS, display_by_code
from regimes import BASE_RBT12_MEDIA, BASE_RECEITA_MES
from report_formatters import (
    montar_relatorio_simulacao,
    render_auditoria_section,
    render_evolucao_section,
    render_fator_r_section,
    render_regularizacao_section,
    resumo_evento,
)
from ruleset_loader import DEFAULT_TAX_CONFIG
from tax_engine import TaxSimulationService


def parse_percent(texto: str) -> float:
    """Aceita '5', '5%' ou '0,05' e devolve fracao."""
    t = (texto or "").strip().replace("%", "").replace(",", ".")
    if not t:
        return 0.0
    valor = float(t)
    return valor / 100 if valor > 1 else valor


def _tabela_cenarios(output) -> List[Dict[str, Any]]:
    return [
        {
            "Regime": linha["regime_display"] + (" *" if linha["melhor"] else ""),
            "Total (R$)": round(linha["total"], 2),
            "% Receita": round(linha["percentual_receita"], 2),
            "Diferença vs melhor (R$)": round(linha["diferenca_melhor"], 2),
        }
        for linha in tabela_comparativa(output.cenarios)
    ]


def _carregar_ledger(demo_mode: bool, arquivo) -> Optional[LedgerFile]:
    if demo_mode:
        return demo_ledger()
    if arquivo is None:
        return None
    return parse_ledger(json.loads(arquivo.getvalue().decode("utf-8-sig")))


st.set_page_config(page_title="Tax Simulation Engine", layout="wide")
st.title("Tax Simulation Engine")
st.caption("Simulação multi-regime e auditoria do Fator R a partir dos lançamentos financeiros.")

with st.sidebar:
    st.header("Configurações")
    demo_toggle = st.toggle("Modo DEMO", value=resolve_demo_mode(toggle_enabled=False), key="demo_toggle")
    demo_mode = resolve_demo_mode(toggle_enabled=demo_toggle)
    storage_targets = resolve_storage_targets(demo_mode)
    if demo_mode:
        st.caption("DEMO ativa: laboratório fictício; exportações isoladas em pastas *_demo.")

    arquivo = None if demo_mode else st.file_uploader("Lançamentos (JSON)", type=["json"])

    st.markdown("---")
    base_label = st.radio(
        "Base mensal dos cenários",
        ["Receita do mês", "Média do RBT12"],
        horizontal=False,
    )
    base_mensal = BASE_RECEITA_MES if base_label == "Receita do mês" else BASE_RBT12_MEDIA

try:
    ledger = _carregar_ledger(demo_mode, arquivo)
except ValueError as exc:
    st.error(f"Arquivo de lançamentos inválido: {exc}")
    st.stop()

if ledger is None:
    st.info("Envie um arquivo de lançamentos ou ative o modo DEMO.")
    st.stop()

if demo_mode:
    st.warning("DEMO: não insira dados sensíveis.")

config_base = ledger.config or DEFAULT_TAX_CONFIG
col1, col2, col3 = st.columns(3)
with col1:
    referencia_input = st.text_input("Competência de referência (YYYY-MM)", value=ledger.referencia or "")
with col2:
    regimes = list(REGIMES_CONFIGURAVEIS)
    regime_atual = st.selectbox(
        "Regime atual",
        regimes,
        index=regimes.index(config_base.regime_atual) if config_base.regime_atual in regimes else 0,
        format_func=display_by_code,
    )
with col3:
    iss_txt = st.text_input("Alíquota de ISS", value=str(round(config_base.iss_aliquota * 100, 2)).replace(".", ","))

ok, referencia = validar_competencia(referencia_input)
if not ok:
    st.error(referencia)
    st.stop()
try:
    iss_aliquota = parse_percent(iss_txt)
except ValueError:
    st.error("Alíquota de ISS inválida. Ex: 5 ou 5%.")
    st.stop()

config: Optional[TaxConfig] = ledger.config
if config is not None or regime_atual != DEFAULT_TAX_CONFIG.regime_atual or iss_aliquota != DEFAULT_TAX_CONFIG.iss_aliquota:
    config = TaxConfig(regime_atual=regime_atual, iss_aliquota=iss_aliquota, cnpj=config_base.cnpj)

service = TaxSimulationService(config=config, base_mensal=base_mensal)
titulo = ledger.unidade_id or "Unidade"

try:
    output = service.simular(ledger.lancamentos, referencia, unidade_id=ledger.unidade_id)
    evolucao = service.simular_evolucao(ledger.lancamentos, referencia, unidade_id=ledger.unidade_id)
    audit = service.auditar(ledger.lancamentos, ledger.categorias, referencia, payables=ledger.contas_pagar)
except ValueError as exc:
    st.error(str(exc))
    st.stop()

if output.parametros_padrao or output.config_padrao:
    st.warning("Cálculo com valores padrão. Confira as premissas no relatório.")

resumo = resumo_evento(output)
m1, m2, m3, m4 = st.columns(4)
m1.metric("Receita do mês", f"R$ {resumo['receita']:,.2f}")
m2.metric("RBT12", f"R$ {output.rbt12:,.2f}")
m3.metric("Fator R", f"{resumo['fator_r'] * 100:.2f}%", help=f"Anexo {resumo['anexo']}")
m4.metric("Melhor cenário", resumo["melhor"], f"R$ {resumo['total_melhor']:,.2f}", delta_color="off")

aba_cenarios, aba_fator_r, aba_evolucao, aba_auditoria = st.tabs(
    ["Cenários", "Fator R", "Evolução", "Auditoria"]
)

with aba_cenarios:
    st.dataframe(_tabela_cenarios(output), hide_index=True, width="stretch")
    st.subheader("Diagnósticos")
    for texto in output.diagnosticos:
        st.write(f"- {texto}")

ajuste, economia = service.alerta_fator_r(output)
secoes = [render_fator_r_section(ajuste, economia)]
with aba_fator_r:
    st.text(secoes[0])
    if output.folha_informal12 > 0:
        percentual, regularizacao = service.regularizacao(output)
        secoes.append(render_regularizacao_section(percentual, regularizacao))
        st.text(secoes[-1])
    else:
        st.caption("Sem pagamentos informais na janela; simulação de regularização não se aplica.")

with aba_evolucao:
    st.line_chart(
        {"Fator R (%)": [p.fator_r * 100 for p in evolucao]}
        | {display_by_code(c): [p.percentuais.get(c, 0.0) for p in evolucao] for c in evolucao[0].percentuais},
    )
    st.text(render_evolucao_section(evolucao))

with aba_auditoria:
    if audit.categorias_nao_mapeadas:
        st.warning("Categorias de PESSOAL sem marcação: " + ", ".join(audit.categorias_nao_mapeadas))
        with st.expander("Referência de marcação"):
            st.write("Costumam entrar no Fator R: " + ", ".join(categorias_fator_r_padrao()))
            st.write("Não entram (benefícios e retiradas): " + ", ".join(categorias_beneficios_padrao()))
    st.text(render_auditoria_section(audit))

relatorio = montar_relatorio_simulacao(output, titulo=titulo, secoes_extras=secoes)
st.subheader("Relatório")
st.text_area("Conteúdo", value=relatorio, height=380)

base = nome_arquivo_seguro(titulo)
b1, b2, b3 = st.columns(3)
with b1:
    if st.button("Salvar TXT"):
        st.info(f"TXT salvo: {salvar_relatorio_txt(relatorio, nome_base=base, pasta=storage_targets['outputs_txt_pasta'])}")
with b2:
    if st.button("Salvar PDF"):
        st.info(f"PDF salvo: {salvar_relatorio_pdf(relatorio, nome_base=base, pasta=storage_targets['outputs_pdf_pasta'])}")
with b3:
    if st.button("Salvar JSON"):
        st.info(f"JSON salvo: {salvar_evento_json(output.to_event(), nome_base=base, pasta=storage_targets['outputs_txt_pasta'])}")
