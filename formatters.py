def _separadores_br(texto: str) -> str:
    # troca separadores estilo US -> BR
    return texto.replace(",", "X").replace(".", ",").replace("X", ".")


def formatar_reais(valor: float) -> str:
    # Formato simples PT-BR aproximado (console)
    try:
        return f"R$ {_separadores_br(f'{float(valor):,.2f}')}"
    except (TypeError, ValueError):
        return f"R$ {valor}"


def formatar_percentual(valor: float, casas: int = 2, ja_percentual: bool = False) -> str:
    """Formata percentual em pt-BR (ex.: 11,37%)."""
    try:
        numero = float(valor)
        if not ja_percentual:
            numero *= 100.0
        return f"{_separadores_br(f'{numero:,.{casas}f}')}%"
    except (TypeError, ValueError):
        return f"{valor}%"


def formatar_pontos(valor: float, casas: int = 1) -> str:
    """Diferenca em pontos percentuais (ex.: 12,0 p.p.)."""
    return f"{_separadores_br(f'{float(valor):,.{casas}f}')} p.p."


def formatar_meses(valor: float) -> str:
    if valor == float("inf"):
        return "sem payback"
    return f"{_separadores_br(f'{float(valor):.1f}')} meses"
