import io
import json
from unittest.mock import Mock, patch

import pytest
import requests

import goroutine_deadlock_analyzer as cli

DUMP = """goroutine 7 [select, 2 minutes]:
main.loop(0xc000010000)
	/src/app/loop.go:15 +0x1a
created by main.start in goroutine 1
	/src/app/main.go:20 +0x8f

goroutine 8 [select, 9 minutes]:
main.loop(0xc000020000)
	/src/app/loop.go:15 +0x1a
created by main.start in goroutine 1
	/src/app/main.go:20 +0x8f

goroutine 1 [chan receive]:
main.main()
	/src/app/main.go:31 +0x2b
main.main()
	/src/app/main.go:25 +0x1c5

goroutine 9 [broken
"""


@pytest.fixture(autouse=True)
def no_user_config(monkeypatch, tmp_path):
    monkeypatch.setenv("STACKDUMP_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("STACKDUMP_MIN_COUNT", raising=False)
    monkeypatch.delenv("STACKDUMP_JOBS", raising=False)


@pytest.fixture
def dump_file(tmp_path):
    path = tmp_path / "dump.txt"
    path.write_text(DUMP)
    return str(path)


def test_text_report(dump_file, capsys):
    assert cli.main([dump_file]) == 0

    out = capsys.readouterr().out
    assert out == ("count:1 waiting:0-0 status:chan receive\n"
                   "main.go:31  main.main\n"
                   "\n"
                   "count:2 waiting:2-9 status:select\n"
                   "loop.go:15  main.loop\n"
                   "\n")


def test_errors_and_count_filter(dump_file, capsys):
    assert cli.main(["-e", "-c", "2", dump_file]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "count:2 waiting:2-9 status:select"
    assert out[-1] == "errors:1"
    assert "count:1" not in "\n".join(out)


def test_sort_by_count(dump_file, capsys):
    cli.main(["--sort", "count", dump_file])
    out = capsys.readouterr().out
    assert out.index("count:2") < out.index("count:1")


def test_json_output(dump_file, capsys):
    assert cli.main(["--json", "-e", dump_file]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["errors"] == 1
    assert sorted(g["count"] for g in data["groups"]) == [1, 2]


def test_stdin_is_default(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(DUMP.encode()), encoding="utf-8"))
    assert cli.main(["-e"]) == 0
    assert capsys.readouterr().out.endswith("errors:1\n")


def test_stdin_with_invalid_bytes(monkeypatch, capsys):
    data = DUMP.encode() + b"\n\xff\xfe\n"
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(data), encoding="utf-8"))
    assert cli.main(["-e"]) == 0

    out = capsys.readouterr().out
    assert "count:2 waiting:2-9 status:select" in out
    assert out.endswith("errors:2\n")


def test_config_file_defaults(dump_file, tmp_path, capsys):
    config = tmp_path / "stackdump.yaml"
    config.write_text("min_count: 2\nprint_errors: true\n")

    cli.main(["--config", str(config), dump_file])
    out = capsys.readouterr().out
    assert "count:1" not in out
    assert out.endswith("errors:1\n")

    # flags win over the file
    cli.main(["--config", str(config), "-c", "0", dump_file])
    assert "count:1" in capsys.readouterr().out


def test_no_entry_point_sentinel(dump_file, capsys):
    cli.main(["-e", "--no-entry-point-sentinel", dump_file])
    assert capsys.readouterr().out.endswith("errors:2\n")


def test_bad_config(tmp_path, dump_file, capsys):
    config = tmp_path / "stackdump.yaml"
    config.write_text("min_count: lots\n")
    assert cli.main(["--config", str(config), dump_file]) == 1
    assert capsys.readouterr().out == ""


def test_unreadable_input(tmp_path, capsys):
    assert cli.main([str(tmp_path / "missing.txt")]) == 1
    assert capsys.readouterr().out == ""


def test_url_input(capsys):
    response = Mock()
    response.content = DUMP.encode()
    with patch("stackdump.dump_reader.requests.get", return_value=response):
        assert cli.main(["-c", "2", "http://localhost:6060/debug/pprof/goroutine?debug=2"]) == 0
    assert capsys.readouterr().out.startswith("count:2 waiting:2-9 status:select\n")


def test_url_failure(capsys):
    with patch("stackdump.dump_reader.requests.get",
               side_effect=requests.ConnectionError("refused")):
        assert cli.main(["http://localhost:6060/debug/pprof/goroutine?debug=2"]) == 1


def test_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--offset-base", "10"])
    assert excinfo.value.code == 2
