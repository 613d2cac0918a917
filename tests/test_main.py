import json

import pytest

pytest.importorskip("uvicorn")

from salesboard import main as cli


def test_parse_args_date_flags() -> None:
    args = cli.parse_args(["--day", "5", "--month", "3", "--year", "2025", "--pretty"])
    assert (args.day, args.month, args.year) == ("5", "3", "2025")
    assert args.pretty is True
    assert args.serve is False
    assert args.mode == ""


def test_parse_args_rejects_unknown_mode() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--mode", "screenshot"])


def test_main_prints_envelope_and_exit_code(monkeypatch, capsys) -> None:
    async def fake_run(day, month, year, mode, *, settings):
        return {"ok": False, "error": "Parâmetros d/m/y obrigatórios", "tookMs": 0}

    monkeypatch.setattr(cli, "run_invocation", fake_run)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)

    exit_code = cli.main(["--day", "5"])

    assert exit_code == 1
    printed = json.loads(capsys.readouterr().out)
    assert printed["ok"] is False
