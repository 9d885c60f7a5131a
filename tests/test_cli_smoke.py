from pathlib import Path

from typer.testing import CliRunner

from sqlitewrap.cli import app, parseBindings, parseBindValue

runner = CliRunner()


def _base_args(tmp_path: Path) -> list[str]:
    return ["--log-dir", str(tmp_path / "logs"), "--lock-dir", str(tmp_path / "locks")]


def test_help_shows_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "exec" in result.stdout
    assert "query" in result.stdout
    assert "check-table" in result.stdout
    assert "check-key" in result.stdout
    assert "demo" in result.stdout


def test_query_requires_database_and_sql(tmp_path: Path):
    result = runner.invoke(app, _base_args(tmp_path) + ["query"])
    assert result.exit_code == 2


def test_demo_runs_example_scenario(tmp_path: Path):
    db = str(tmp_path / "testDB")
    result = runner.invoke(app, _base_args(tmp_path) + ["--run-id", "r1", "demo", db])

    assert result.exit_code == 0, result.output
    assert "1\tName1\tPhone1\tAddress1" in result.stdout
    assert "1\tChanged Name1\tChanged Phone1\tChanged Address1" in result.stdout
    assert "Table: ccc  - True" in result.stdout
    assert "Table: cccc - False" in result.stdout
    assert "Table key is exists: False" in result.stdout
    assert "Table key is exists: True" in result.stdout
    assert (tmp_path / "testDB.sqlite").exists()
    assert (tmp_path / "logs" / "demo_r1.log").exists()


def test_exec_and_query_with_bindings(tmp_path: Path):
    db = str(tmp_path / "cli")
    result = runner.invoke(app, _base_args(tmp_path) + ["exec", db, "CREATE TABLE t(id INTEGER, name TEXT);"])
    assert result.exit_code == 0, result.output

    script = "INSERT INTO t VALUES(:id, :name); INSERT INTO t VALUES(:id + 1, :name);"
    result = runner.invoke(app, _base_args(tmp_path) + ["exec", db, script, "--bind", "id=1", "--bind", ":name=Ann"])
    assert result.exit_code == 0, result.output
    assert "ok changes=1" in result.stdout

    result = runner.invoke(
        app,
        _base_args(tmp_path) + ["query", db, "SELECT id, name FROM t WHERE id >= ? ORDER BY id;", "-b", "1=1", "--header"],
    )
    assert result.exit_code == 0, result.output
    lines = [line for line in result.stdout.splitlines() if line]
    assert lines[:3] == ["id\tname", "1\tAnn", "2\tAnn"]


def test_check_commands_exit_codes(tmp_path: Path):
    db = str(tmp_path / "checks")
    runner.invoke(app, _base_args(tmp_path) + ["exec", db, "CREATE TABLE t(name TEXT); INSERT INTO t VALUES('a''b');"])

    result = runner.invoke(app, _base_args(tmp_path) + ["check-table", db, "t"])
    assert result.exit_code == 0
    assert "exists=true" in result.stdout

    result = runner.invoke(app, _base_args(tmp_path) + ["check-table", db, "missing"])
    assert result.exit_code == 1
    assert "exists=false" in result.stdout

    result = runner.invoke(app, _base_args(tmp_path) + ["check-key", db, "t", "name", "a'b"])
    assert result.exit_code == 0
    assert "exists=true" in result.stdout


def test_invalid_sql_exits_with_error(tmp_path: Path):
    result = runner.invoke(app, _base_args(tmp_path) + ["query", str(tmp_path / "bad"), "SELEC 1;"])
    assert result.exit_code == 2
    assert "syntax error" in result.output


def test_bind_parsing():
    assert parseBindings(["1=5", "name=x", "@n=NULL", "$b=x:0aff", "f=1.5"]) == [
        (1, 5),
        (":name", "x"),
        ("@n", None),
        ("$b", b"\x0a\xff"),
        (":f", 1.5),
    ]
    assert parseBindValue("text with = sign") == "text with = sign"
