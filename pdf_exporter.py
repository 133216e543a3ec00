import os
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

MARGEM_X = 40
MARGEM_TOPO = 50
MARGEM_RODAPE = 60
LINHA_ALTURA = 14
MAX_CHARS = 110  # wrap simples
FONTE = "Helvetica"
FONTE_TITULO = "Helvetica-Bold"


def _quebrar(linha: str, max_chars: int = MAX_CHARS):
    if not linha:
        return [""]
    return [linha[i : i + max_chars] for i in range(0, len(linha), max_chars)]


def salvar_relatorio_pdf(conteudo: str, nome_base: str = "relatorio", pasta: str = "outputs_pdfs") -> str:
    """Converte o relatorio texto em PDF A4; secoes "=== ... ===" saem em negrito."""
    os.makedirs(pasta, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    caminho = os.path.join(pasta, f"{nome_base}_{timestamp}.pdf")

    c = canvas.Canvas(caminho, pagesize=A4)
    _, height = A4
    y = height - MARGEM_TOPO

    for raw_line in conteudo.splitlines():
        titulo = raw_line.startswith("===")
        for trecho in _quebrar(raw_line.rstrip("\n")):
            c.setFont(FONTE_TITULO if titulo else FONTE, 10)
            if trecho:
                c.drawString(MARGEM_X, y, trecho)
            y -= LINHA_ALTURA
            if y < MARGEM_RODAPE:
                c.showPage()
                y = height - MARGEM_TOPO

    c.save()
    return caminho
