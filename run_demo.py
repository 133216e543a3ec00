from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from streamlit.web import cli as stcli

from demo_config import DEMO_ENV_VAR, DEMO_REFERENCIA, DEMO_UNIDADE

PORTA_PADRAO = 8501


def _app_path() -> Path:
    if getattr(sys, "frozen", False):
        base = getattr(sys, "_MEIPASS", None)
        if isinstance(base, str) and base:
            return Path(base) / "app.py"
        return Path(sys.executable).resolve().parent / "app.py"
    return Path(__file__).resolve().parent / "app.py"


def streamlit_argv(app_script: Path, porta: int, headless: bool) -> List[str]:
    return [
        "streamlit",
        "run",
        str(app_script),
        "--server.port",
        str(porta),
        "--server.headless",
        "true" if headless else "false",
        "--browser.gatherUsageStats",
        "false",
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Abre o painel de simulacao com o laboratorio ficticio.")
    parser.add_argument("--porta", type=int, default=PORTA_PADRAO)
    parser.add_argument("--sem-navegador", action="store_true", help="Nao abre o navegador (servidor headless).")
    args = parser.parse_args(argv)

    app_script = _app_path()
    if not app_script.exists():
        print(f"Erro: app.py nao encontrado em: {app_script}", file=sys.stderr)
        return 2

    os.environ[DEMO_ENV_VAR] = "1"
    print(f"Simulacao tributaria - DEMO ({DEMO_UNIDADE}, competencia {DEMO_REFERENCIA})")
    print(f"URL local esperada: http://localhost:{args.porta}")
    print("Para encerrar, pressione CTRL+C.")

    sys.argv = streamlit_argv(app_script, args.porta, args.sem_navegador)
    stcli.main()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
