import pytest

from cli import main


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "transactions.csv"
    path.write_text("\n".join([
        "type, client, tx, amount",
        "deposit, 2, 1, 3.0",
        "deposit, 1, 2, 10.0",
        "dispute, 1, 2,",
        "resolve, 1, 2,",
        "withdrawal, 1, 3, 4.25",
        "withdrawal, 2, 4, 9.0",
    ]) + "\n")
    return path


class TestCli:
    """Test the ledger-replay command."""

    def test_prints_snapshot_to_stdout(self, events_file, capsys):
        assert main([str(events_file)]) == 0

        out = capsys.readouterr().out
        assert out == (
            "client,available,held,total,locked\n"
            "1,5.7500,0.0000,5.7500,false\n"
            "2,3.0000,0.0000,3.0000,false\n"
        )

    def test_strict_whitespace_flag(self, events_file, capsys):
        assert main([str(events_file), "--strict-whitespace"]) == 0
        assert capsys.readouterr().out == "client,available,held,total,locked\n"

    def test_invalid_utf8_row_dropped(self, tmp_path, capsys):
        """An undecodable byte drops its own row and the replay carries on."""
        path = tmp_path / "transactions.csv"
        path.write_bytes(
            b"type,client,tx,amount\n"
            b"deposit,1,1,1.0\n"
            b"deposit,2,2,\xff1.0\n"
            b"deposit,1,3,2.0\n"
        )

        assert main([str(path)]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,3.0000,0.0000,3.0000,false\n"
        )

    def test_byte_order_mark(self, tmp_path, capsys):
        path = tmp_path / "transactions.csv"
        path.write_bytes(b"\xef\xbb\xbftype,client,tx,amount\ndeposit,1,1,1.5\n")

        assert main([str(path)]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
        )

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.csv"), "--log-level", "ERROR"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Cannot read input file" in captured.err

    def test_path_is_required(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
