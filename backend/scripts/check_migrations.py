"""Fail when Alembic has more than one head or a model table has no migration."""

import re
import sys
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BACKEND_DIR))

from portal.db.base import Base  # noqa: E402
import portal.db.models  # noqa: F401, E402

CREATE_TABLE = re.compile(r"op\.create_table\(\s*\"([a-z_]+)\"")


def migrated_tables(versions_dir: Path) -> set[str]:
    found: set[str] = set()
    for path in versions_dir.glob("*.py"):
        found.update(CREATE_TABLE.findall(path.read_text(encoding="utf-8")))
    return found


def main() -> int:
    cfg = Config()
    cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    heads = list(ScriptDirectory.from_config(cfg).get_heads())

    if len(heads) != 1:
        print(f"[FAIL] Alembic heads={len(heads)} -> {heads}")
        return 1

    missing = sorted(set(Base.metadata.tables) - migrated_tables(BACKEND_DIR / "alembic" / "versions"))
    if missing:
        print(f"[FAIL] Tables without a migration: {', '.join(missing)}")
        return 1

    print(f"[OK] Alembic single head: {heads[0]}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
