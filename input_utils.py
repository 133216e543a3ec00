import re
from datetime import date
from typing import List, Tuple


_RE_MENSAL = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def validar_competencia(competencia: str) -> Tuple[bool, str]:
    """
    Valida competência mensal YYYY-MM.
    Retorna (True, valor_normalizado) ou (False, mensagem_erro).
    """
    c = (competencia or "").strip()
    if _RE_MENSAL.match(c):
        return True, c
    return False, "Competência inválida. Use formato YYYY-MM."


def parse_competencia(competencia: str) -> Tuple[int, int]:
    ok, valor = validar_competencia(competencia)
    if not ok:
        raise ValueError(f"{valor} (recebido: {competencia!r})")
    ano, mes = valor.split("-")
    return int(ano), int(mes)


def competencia_de_data(data: date) -> str:
    return f"{data.year:04d}-{data.month:02d}"


def deslocar_competencia(competencia: str, meses: int) -> str:
    ano, mes = parse_competencia(competencia)
    indice = ano * 12 + (mes - 1) + meses
    return f"{indice // 12:04d}-{indice % 12 + 1:02d}"


def janela_competencias(referencia: str, meses: int = 12) -> List[str]:
    """Competências contíguas terminando em `referencia`, da mais antiga para a mais recente."""
    if meses <= 0:
        raise ValueError("meses deve ser maior que zero.")
    return [deslocar_competencia(referencia, -offset) for offset in range(meses - 1, -1, -1)]
