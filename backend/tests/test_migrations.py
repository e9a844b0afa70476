import importlib.util
from pathlib import Path

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "check_migrations.py"


def test_migrations_have_single_head_and_cover_every_table(capsys):
    spec = importlib.util.spec_from_file_location("check_migrations", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    assert module.main() == 0
    assert "[OK]" in capsys.readouterr().out
