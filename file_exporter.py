import json
import os
import re
from datetime import datetime
from typing import Any, Dict


def nome_arquivo_seguro(titulo: str, prefixo: str = "cenarios") -> str:
    nome_limpo = re.sub(r"[^a-zA-Z0-9_ -]", "", titulo or "")
    nome_limpo = nome_limpo.strip().replace(" ", "_")
    return f"{prefixo}_{nome_limpo or 'unidade'}"


def _caminho(pasta: str, nome_base: str, extensao: str) -> str:
    os.makedirs(pasta, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return os.path.join(pasta, f"{nome_base}_{timestamp}.{extensao}")


def salvar_relatorio_txt(conteudo: str, nome_base: str = "relatorio", pasta: str = "outputs") -> str:
    caminho = _caminho(pasta, nome_base, "txt")
    with open(caminho, "w", encoding="utf-8") as f:
        f.write(conteudo)
    return caminho


def salvar_evento_json(evento: Dict[str, Any], nome_base: str = "simulacao", pasta: str = "outputs") -> str:
    """Grava o resultado estruturado (SimulationOutput.to_event) para consumo por outras telas."""
    caminho = _caminho(pasta, nome_base, "json")
    with open(caminho, "w", encoding="utf-8") as f:
        json.dump(evento, f, ensure_ascii=False, indent=2)
    return caminho
