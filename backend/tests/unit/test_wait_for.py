import importlib.util
from pathlib import Path

_PATH = Path(__file__).resolve().parents[2] / "docker" / "wait_for.py"
_spec = importlib.util.spec_from_file_location("wait_for", _PATH)
wait_for = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(wait_for)


def test_normalize_dsn_drops_driver():
    assert wait_for.normalize_dsn("postgresql+psycopg://u:p@h:5432/d") == "postgresql://u:p@h:5432/d"
    assert wait_for.normalize_dsn("postgresql+asyncpg://u:p@h/d") == "postgresql://u:p@h/d"


def test_normalize_dsn_strips_quotes():
    assert wait_for.normalize_dsn(' "postgresql://u@h/d" ') == "postgresql://u@h/d"
    assert wait_for.normalize_dsn("") == ""
