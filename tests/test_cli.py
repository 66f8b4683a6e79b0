import logging
import logging.handlers

import pytest

from simplexls.cli import main_cli, run_cli_app
from simplexls.converters import INVARIANT_CULTURE
from simplexls.errors import XLSXError
from simplexls.xlsx_api import export_to_xlsx
from simplexls.xlsx_common import SheetExportSettings


@pytest.fixture
def people_xlsx(tmp_path, sample_people):
    path = tmp_path / "people.xlsx"
    export_to_xlsx(sample_people, path, SheetExportSettings(culture=INVARIANT_CULTURE))
    return path


def test_run_cli_app_no_args_entrypoint(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["simplexls"])
    run_cli_app()
    captured = capsys.readouterr()
    assert "usage: simplexls" in captured.out


def test_run_cli_app_no_args(capsys):
    run_cli_app([])
    captured = capsys.readouterr()
    assert "usage: simplexls" in captured.out


def test_main_unknown_arg(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main_cli(["--unknown-arg"])
    assert exc_info.value.code == 2  # noqa: PLR2004
    captured = capsys.readouterr()
    assert "simplexls: error: unrecognized arguments: --unknown-arg" in captured.err


def test_main_version(capsys):
    main_cli(["--version"])
    captured = capsys.readouterr()
    assert captured.out.startswith("simplexls")


def test_main_subcmd_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(["raw", "--help"])
    assert exc_info.value.code == 0
    captured = capsys.readouterr()
    assert "usage: simplexls raw" in captured.out


# ===== raw =====


def test_raw(people_xlsx, capsys):
    main_cli(["raw", str(people_xlsx)])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Name column\tage\tbirthday\twork_hours"
    assert lines[1] == "Theodor Roosevelt\t27\t1990-02-14 00:00:00\t14:00:00"
    assert len(lines) == 3  # noqa: PLR2004


def test_raw_no_header(people_xlsx, capsys):
    main_cli(["raw", "--no-header", str(people_xlsx)])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Name column\tage\tbirthday\twork_hours"
    assert len(lines) == 3  # noqa: PLR2004


def test_raw_missing_file(tmp_path, caplog):
    with caplog.at_level(logging.ERROR), pytest.raises(XLSXError):
        main_cli(["raw", str(tmp_path / "missing.xlsx")])
    assert "File not found:" in caplog.text


def test_raw_missing_sheet_exit_code(people_xlsx, caplog):
    with caplog.at_level(logging.ERROR), pytest.raises(SystemExit) as exc_info:
        run_cli_app(["raw", "--sheet", "4", str(people_xlsx)])
    assert exc_info.value.code == 1
    assert "Terminating with error: Sheet with index 4 does not exist." in caplog.text


# ===== describe =====


def test_describe(capsys):
    main_cli(["describe", "tests.conftest:Person"])
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0] == "Sheet: Person"
    assert lines[1].split() == ["1", "name", "Name", "column", "plain"]
    assert lines[3].split() == ["3", "birthday", "birthday", "custom_converted"]
    assert lines[5].split() == ["-", "ignored_id", "ignored_id", "ignored"]


def test_describe_sheet_annotation(capsys):
    main_cli(["describe", "tests.conftest:Pet"])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Sheet: Pets"
    assert lines[1] == "Dictionary prefix: pets."
    assert lines[3].split() == ["2", "species", "species", "translated"]


@pytest.mark.parametrize(
    ("model", "message"),
    [
        ("Person", 'Expected model as "module:ClassName"'),
        ("not_a_module_xyz:Person", 'Cannot import module "not_a_module_xyz"'),
        ("tests.conftest:Missing", 'has no attribute "Missing"'),
        ("tests.conftest:Status", "Expected Pydantic BaseModel"),
    ],
)
def test_describe_errors(model, message, caplog):
    with caplog.at_level(logging.ERROR), pytest.raises(SystemExit) as exc_info:
        run_cli_app(["describe", model])
    assert exc_info.value.code == 1
    assert message in caplog.text


# ===== common options =====


def test_config_not_found(tmp_path, people_xlsx, caplog):
    with caplog.at_level(logging.ERROR), pytest.raises(XLSXError):
        main_cli(["raw", "--config", str(tmp_path / "missing.toml"), str(people_xlsx)])
    assert "Config file not found at:" in caplog.text


def test_config_used(tmp_path, people_xlsx, capsys, temp_config):
    config_file = tmp_path / "simplexls.toml"
    config_file.write_text("[import]\nhas_header = false\n", encoding="utf-8")
    main_cli(["raw", "--config", str(config_file), str(people_xlsx)])
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3  # noqa: PLR2004
    assert temp_config.CONFIG.import_.has_header is False


def test_logfile(tmp_path, people_xlsx, caplog):
    logfile = tmp_path / "logs" / "simplexls.log"
    with caplog.at_level(logging.DEBUG):
        main_cli(["raw", "-v", "--logfile", str(logfile), str(people_xlsx)])
    assert logfile.exists()
    assert "Executing cmd: simplexls raw" in logfile.read_text()

    # Remove the file handler added to the root logger.
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
