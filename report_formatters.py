from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from dto import AnexoSavings, FatorRAuditResult, ProlaboreAdjustment, RegimeScenario, SimulationOutput, TrendPoint
from formatters import formatar_meses, formatar_percentual, formatar_reais
from regime_utils import REGIME_CODE_REAL, REGIME_CODE_SIMPLES, REGIME_ORDER, display_by_code
from regularization import RegularizationResult, diagnosticos_regularizacao

CABECALHO = "=============================================="


def _append_if(lines: List[str], label: str, value: Optional[str]) -> None:
    if value is None:
        return
    text = str(value).strip()
    if not text:
        return
    lines.append(f"{label}: {text}")


def _fmt_percent(value: Any, casas: int = 2) -> Optional[str]:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return formatar_percentual(float(value), casas=casas)


def _fmt_currency(value: Any) -> Optional[str]:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return formatar_reais(float(value))


def render_detalhes_regime(cenario: RegimeScenario) -> str:
    """Bloco de parametros tecnicos do cenario, sem dump de dict."""
    d = cenario.detalhes
    lines: List[str] = [f"--- {cenario.regime_display} ---"]
    if cenario.regime_code == REGIME_CODE_SIMPLES:
        _append_if(lines, "Anexo aplicado", d.get("anexo"))
        _append_if(lines, "Faixa", str(d.get("faixa", "")) or None)
        _append_if(lines, "Alíquota nominal", _fmt_percent(d.get("aliquota_nominal"), 2))
        _append_if(lines, "Parcela a deduzir", _fmt_currency(d.get("parcela_deduzir")))
        _append_if(lines, "Alíquota efetiva", _fmt_percent(d.get("aliquota_efetiva"), 4))
        _append_if(lines, "ISS retido estimado", _fmt_currency(d.get("iss_retido_estimado")))
        if d.get("aliquota_negativa_ajustada"):
            lines.append("ATENÇÃO: alíquota efetiva negativa ajustada para 0 (revise a tabela de faixas).")
        _append_if(lines, "Elegibilidade", d.get("alerta_elegibilidade"))
    elif cenario.regime_code == REGIME_CODE_REAL:
        _append_if(lines, "Modelo", d.get("modelo"))
        _append_if(lines, "Lucro contábil estimado", _fmt_currency(d.get("lucro_contabil")))
        _append_if(lines, "Margem líquida", _fmt_percent(d.get("margem_liquida"), 1))
        _append_if(lines, "Créditos PIS/COFINS", _fmt_currency(d.get("creditos_pis_cofins")))
    else:
        for chave in ("irpj", "irpj_adicional", "csll", "pis", "cofins"):
            _append_if(lines, chave.upper().replace("_", " "), _fmt_currency(d.get(chave)))
        _append_if(lines, "CBS (reduzida)", _fmt_percent(d.get("cbs_aliquota_reduzida"), 2))
        _append_if(lines, "IBS (reduzida)", _fmt_percent(d.get("ibs_aliquota_reduzida"), 2))
    lines.append(f"Comentário: {cenario.comentario_tecnico}")
    return "\n".join(lines)


def render_cenarios_section(cenarios: Sequence[RegimeScenario], melhor: RegimeScenario) -> str:
    lines: List[str] = ["=== CENÁRIOS TRIBUTÁRIOS ==="]
    if not cenarios:
        lines.append("Sem cenários calculados.")
        return "\n".join(lines)

    lines.append("Regime | Federal | ISS/IBS | Total | % Receita")
    lines.append("------------------------------------------------")
    for c in cenarios:
        marcador = " *" if c.regime_code == melhor.regime_code else ""
        lines.append(
            f"{c.regime_display}{marcador} | {formatar_reais(c.impostos_federais)} | {formatar_reais(c.iss_ibs)} | "
            f"{formatar_reais(c.total)} | {formatar_percentual(c.percentual_receita, ja_percentual=True)}"
        )
    lines.append("* menor carga no mês")
    for c in cenarios:
        lines.append("")
        lines.append(render_detalhes_regime(c))
    return "\n".join(lines)


def render_diagnosticos_section(diagnosticos: Sequence[str]) -> str:
    lines: List[str] = ["=== DIAGNÓSTICOS ==="]
    if not diagnosticos:
        lines.append("Nenhum diagnóstico relevante.")
    lines.extend(f"- {d}" for d in diagnosticos)
    return "\n".join(lines)


def render_fator_r_section(ajuste: ProlaboreAdjustment, economia: AnexoSavings) -> str:
    lines: List[str] = [
        "=== ALERTA FATOR R ===",
        f"Status: {ajuste.status}",
        f"Fator R atual: {formatar_percentual(ajuste.fator_r_atual, casas=1)}",
        f"Folha 12m atual: {formatar_reais(ajuste.folha_atual)}",
        f"Folha 12m necessária: {formatar_reais(ajuste.folha_necessaria)}",
    ]
    if ajuste.ajuste_mensal > 0:
        lines.append(
            f"Ajuste de pró-labore: {formatar_reais(ajuste.ajuste_mensal)}/mês "
            f"({formatar_reais(ajuste.ajuste_necessario)} em 12 meses)"
        )
    lines.append(
        f"Alíquota efetiva Anexo III: {formatar_percentual(economia.aliquota_anexo3)} | "
        f"Anexo V: {formatar_percentual(economia.aliquota_anexo5)}"
    )
    lines.append(
        f"Economia ao ficar no Anexo III: {formatar_reais(economia.economia_mensal)}/mês "
        f"({formatar_reais(economia.economia_anual)}/ano)"
    )
    return "\n".join(lines)


def render_regularizacao_section(percentual: float, resultado: RegularizationResult) -> str:
    lines: List[str] = [
        "=== REGULARIZAÇÃO DE PAGAMENTOS INFORMAIS (SIMULAÇÃO) ===",
        f"Percentual ótimo: {formatar_percentual(percentual, casas=0, ja_percentual=True)}",
        f"Fator R atual -> simulado: {formatar_percentual(resultado.fator_r_atual, casas=1)} -> "
        f"{formatar_percentual(resultado.fator_r_simulado, casas=1)} "
        f"(Anexo {resultado.anexo_atual} -> {resultado.anexo_simulado})",
        f"Custo adicional de encargos: {formatar_reais(resultado.custo_adicional_encargos)}/ano",
        f"Economia de imposto: {formatar_reais(resultado.economia_imposto)}/ano",
        f"Resultado líquido: {formatar_reais(resultado.resultado_liquido)}/ano",
        f"Payback: {formatar_meses(resultado.payback_meses)}",
    ]
    lines.extend(f"- {d}" for d in diagnosticos_regularizacao(resultado))
    return "\n".join(lines)


def render_evolucao_section(pontos: Sequence[TrendPoint]) -> str:
    lines: List[str] = ["=== EVOLUÇÃO (% DA RECEITA) ==="]
    if not pontos:
        lines.append("Sem pontos de evolução.")
        return "\n".join(lines)
    lines.append("Mês | Receita | Fator R | Anexo | " + " | ".join(display_by_code(c) for c in REGIME_ORDER))
    for p in pontos:
        percentuais = " | ".join(
            formatar_percentual(p.percentuais.get(c, 0.0), ja_percentual=True) for c in REGIME_ORDER
        )
        lines.append(
            f"{p.mes} | {formatar_reais(p.receita)} | {formatar_percentual(p.fator_r, casas=1)} | {p.anexo} | {percentuais}"
        )
    return "\n".join(lines)


def render_auditoria_section(audit: FatorRAuditResult) -> str:
    lines: List[str] = [
        "=== AUDITORIA DO FATOR R ===",
        f"Folha 12m (Fator R): {formatar_reais(audit.folha12_total)}",
        f"RBT12: {formatar_reais(audit.rbt12)}",
        f"Fator R médio mensal: {formatar_percentual(audit.fator_r_medio, casas=1)}",
        f"Coeficiente de variação: {formatar_percentual(audit.coeficiente_variacao, casas=1)}",
        "",
        "Mês | Salários | Pró-labore | Encargos | Fora do Fator R | Receita | Fator R",
    ]
    for m in audit.meses:
        lines.append(
            f"{m.mes} | {formatar_reais(m.folha_salarios)} | {formatar_reais(m.folha_prolabore)} | "
            f"{formatar_reais(m.folha_encargos)} | {formatar_reais(m.folha_nao_fator_r)} | "
            f"{formatar_reais(m.receita)} | {formatar_percentual(m.fator_r, casas=1)}"
        )
    if audit.categorias_nao_mapeadas:
        lines.append("")
        lines.append("Categorias de PESSOAL sem marcação:")
        lines.extend(f"- {nome}" for nome in audit.categorias_nao_mapeadas)
    if audit.sugestoes:
        lines.append("")
        lines.append("Sugestões:")
        lines.extend(f"- {s}" for s in audit.sugestoes)
    return "\n".join(lines)


def montar_relatorio_simulacao(
    output: SimulationOutput,
    titulo: str = "Unidade",
    secoes_extras: Sequence[str] = (),
) -> str:
    linhas: List[str] = [
        CABECALHO,
        "     RELATÓRIO - CENÁRIOS TRIBUTÁRIOS     ",
        CABECALHO,
        f"Unidade: {titulo}",
        f"Competência: {output.competencia}",
        f"Receita do mês: {formatar_reais(output.receita_total)}",
        f"RBT12: {formatar_reais(output.rbt12)}",
        f"Folha 12m oficial: {formatar_reais(output.folha12)}",
        f"Folha 12m informal: {formatar_reais(output.folha_informal12)}",
        f"Custo total de pessoal: {formatar_reais(output.custo_pessoal_total)}",
        f"Fator R: {formatar_percentual(output.fator_r, casas=2)} (Anexo {output.anexo_simples})",
        f"Melhor cenário: {output.melhor_cenario.regime_display} ({formatar_reais(output.melhor_cenario.total)})",
    ]
    if output.parametros_padrao or output.config_padrao:
        linhas.insert(0, "AVISO: cálculo com valores padrão (ver premissas).")
    linhas.append("")
    linhas.append(render_cenarios_section(output.cenarios, output.melhor_cenario))
    linhas.append("")
    linhas.append(render_diagnosticos_section(output.diagnosticos))
    for secao in secoes_extras:
        linhas.append("")
        linhas.append(secao)
    linhas.append("")
    linhas.append("=== PREMISSAS ===")
    linhas.extend(f"- {p}" for p in output.premissas)
    linhas.append("")
    linhas.append("Observação: Simulação estimativa para diagnóstico gerencial; valide com a contabilidade.")
    linhas.append(CABECALHO)
    return "\n".join(linhas)


def resumo_evento(output: SimulationOutput) -> Dict[str, Any]:
    """Resumo plano para tabelas da UI."""
    return {
        "competencia": output.competencia,
        "receita": output.receita_total,
        "fator_r": output.fator_r,
        "anexo": output.anexo_simples,
        "melhor": output.melhor_cenario.regime_display,
        "total_melhor": output.melhor_cenario.total,
    }
