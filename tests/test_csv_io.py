import io

from csv_io import read_events, replay_csv, write_snapshot
from services import Ledger

SAMPLE = "\n".join([
    "type, client, tx, amount",
    "deposit, 1, 1, 1.0",
    "deposit, 2, 2, 2.0",
    "deposit, 1, 3, 2.0",
    "withdrawal, 1, 4, 1.5",
    "withdrawal, 2, 5, 3.0",
]) + "\n"


def render(ledger):
    out = io.StringIO()
    write_snapshot(ledger.snapshot(), out)
    return out.getvalue()


class TestReadEvents:
    """Test row decoding."""

    def test_trims_surrounding_whitespace(self):
        rows = list(read_events(io.StringIO(SAMPLE)))
        assert rows[0] == {"type": "deposit", "client": "1", "tx": "1", "amount": "1.0"}
        assert len(rows) == 5

    def test_keeps_whitespace_when_strict(self):
        rows = list(read_events(io.StringIO(SAMPLE), trim_whitespace=False))
        assert rows[0]["type"] == "deposit"
        assert rows[0][" client"] == " 1"

    def test_missing_trailing_amount(self):
        rows = list(read_events(io.StringIO("type,client,tx,amount\ndispute,1,1\ndispute,1,1,\n")))
        assert rows == [
            {"type": "dispute", "client": "1", "tx": "1", "amount": ""},
            {"type": "dispute", "client": "1", "tx": "1", "amount": ""},
        ]

    def test_surplus_columns_collected(self):
        (row,) = read_events(io.StringIO("type,client,tx,amount\ndeposit,1,1,1.0,surplus\n"))
        assert row["extra"] == ["surplus"]

    def test_blank_lines_skipped(self):
        rows = list(read_events(io.StringIO("type,client,tx,amount\n\ndeposit,1,1,1.0\n\n")))
        assert len(rows) == 1

    def test_empty_input(self):
        assert list(read_events(io.StringIO(""))) == []


class TestReplay:
    """Test CSV replay end to end."""

    def test_sample_file(self):
        ledger = replay_csv(io.StringIO(SAMPLE))
        assert render(ledger) == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,2.0000,0.0000,2.0000,false\n"
        )

    def test_disputes_and_chargeback(self):
        data = "\n".join([
            "type,client,tx,amount",
            "deposit,1,1,10.0",
            "deposit,1,2,5.0",
            "dispute,1,1,",
            "chargeback,1,1,",
            "deposit,1,3,100.0",
            "deposit,2,4,1.2345",
            "dispute,2,4,",
        ])
        ledger = replay_csv(io.StringIO(data))
        assert render(ledger) == (
            "client,available,held,total,locked\n"
            "1,5.0000,0.0000,5.0000,true\n"
            "2,0.0000,1.2345,1.2345,false\n"
        )

    def test_bad_rows_are_skipped(self):
        data = "\n".join([
            "type,client,tx,amount",
            "deposit,1,1,10.0",
            "deposit,1,2,-3.0",
            "deposit,1,3,ten",
            "deposit,1,4,1.0,extra",
            "refund,1,5,1.0",
            "withdrawal,1,6,2.5",
        ])
        ledger = replay_csv(io.StringIO(data))
        assert render(ledger).splitlines()[1] == "1,7.5000,0.0000,7.5000,false"
        assert ledger.stats.events_dropped == 4

    def test_strict_whitespace_drops_padded_rows(self):
        ledger = replay_csv(io.StringIO(SAMPLE), trim_whitespace=False)
        assert ledger.snapshot() == []
        assert ledger.stats.drop_reasons["MALFORMED_RECORD"] == 5

    def test_replays_into_existing_ledger(self):
        ledger = Ledger()
        replay_csv(io.StringIO("type,client,tx,amount\ndeposit,1,1,1.0\n"), ledger)
        replay_csv(io.StringIO("type,client,tx,amount\ndeposit,1,2,1.0\n"), ledger)
        assert str(ledger.account(1).available) == "2.0000"


class TestWriteSnapshot:
    def test_header_only_when_empty(self):
        out = io.StringIO()
        write_snapshot([], out)
        assert out.getvalue() == "client,available,held,total,locked\n"

    def test_negative_available_rendered(self):
        ledger = Ledger()
        ledger.apply_all([
            {"type": "deposit", "client": "3", "tx": "1", "amount": "2"},
            {"type": "withdrawal", "client": "3", "tx": "2", "amount": "2"},
            {"type": "dispute", "client": "3", "tx": "1", "amount": ""},
        ])
        assert render(ledger).splitlines()[1] == "3,-2.0000,2.0000,0.0000,false"
