from progress_helper import ProgressReporter


def test_events_go_to_console_and_log(tmp_path, capsys):
    log_file = tmp_path / "logs" / "migration.log"
    reporter = ProgressReporter(log_file=str(log_file))

    reporter.loaded(2, 3)
    reporter.warned("db.cpu", "boom")

    out = capsys.readouterr().out
    assert "Loaded [2/3] databases" in out
    assert "db.cpu: boom" in out
    assert log_file.read_text().count("\n") == 2


def test_quiet_mode_keeps_measurement_events_in_log_only(tmp_path, capsys):
    log_file = tmp_path / "migration.log"
    reporter = ProgressReporter(log_file=str(log_file), verbose=False)

    reporter.migrating("db", "cpu")
    reporter.skipped("db", "mem")

    assert capsys.readouterr().out == ""
    assert "Migrating measurement: db.cpu" in log_file.read_text()


def test_unwritable_log_is_swallowed(tmp_path, capsys):
    reporter = ProgressReporter(log_file=str(tmp_path))
    reporter.failed("db", "down")
    captured = capsys.readouterr()
    assert "FAILED db: down" in captured.out
    assert "Failed to write to log file" in captured.err


def test_without_log_file(capsys):
    reporter = ProgressReporter(log_file=None)
    reporter.created("db")
    assert "Database created on destination: db" in capsys.readouterr().out
