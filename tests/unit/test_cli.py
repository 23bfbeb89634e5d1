"""Tests for the command-line entry point."""

from cubescript.cli import main


class TestMain:
    def test_eval_prints_result(self, capsys):
        assert main(["-e", "result (+ 1 2)"]) == 0
        assert capsys.readouterr().out.strip() == "3"

    def test_snippets_share_one_vm(self, capsys):
        assert main(["-e", "x = 4", "-e", "result $x"]) == 0
        assert capsys.readouterr().out.strip() == "4"

    def test_runs_files_in_order(self, tmp_path, capsys):
        script = tmp_path / "main.cfg"
        script.write_text("greet = [concat hello $arg1]\ngreet there\n")
        assert main([str(script)]) == 0
        assert capsys.readouterr().out.strip() == "hello there"

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "none.cfg")]) == 1
        assert "could not read" in capsys.readouterr().err

    def test_compile_error_sets_status(self):
        assert main(["-e", "echo ["]) == 1

    def test_dump(self, capsys):
        assert main(["--dump", "-e", "echo hi"]) == 0
        out = capsys.readouterr().out
        assert "═══ -e1 ═══" in out
        assert "comc" in out

    def test_stats(self, capsys):
        assert main(["--stats", "-e", "+ 1 2"]) == 0
        out = capsys.readouterr().out
        assert "Run Statistics" in out
        assert "COM" in out

    def test_idents(self, capsys):
        assert main(["--idents"]) == 0
        assert "echo" in capsys.readouterr().out.splitlines()

    def test_write_config(self, tmp_path):
        path = tmp_path / "saved.cfg"
        assert main(["-e", "defvarp fov 10 90 150 []", "--write-config", str(path)]) == 0
        assert "fov 90" in path.read_text().splitlines()

    def test_write_config_unwritable_path(self, tmp_path, capsys):
        path = tmp_path / "missing" / "out.cfg"
        assert main(["-e", "x = 1", "--write-config", str(path)]) == 1
        assert "could not write" in capsys.readouterr().err

    def test_undecodable_file(self, tmp_path, capsys):
        script = tmp_path / "bad.cfg"
        script.write_bytes(b"x = \xff\xfe\n")
        assert main([str(script)]) == 1
        assert "could not read" in capsys.readouterr().err

    def test_search_path(self, tmp_path, capsys):
        (tmp_path / "lib.cfg").write_text("helper = [result found]\n")
        assert main(["-p", str(tmp_path), "-e", "exec lib.cfg; helper"]) == 0
        assert capsys.readouterr().out.strip() == "found"
