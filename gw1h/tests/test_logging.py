import json
import logging

import pytest

from common.app_setup import JSONFormatter, KeyValueFormatter, record_attrs, setup_logging


def _record(msg="gw started", **extra):
    record = logging.LogRecord("gw1h.launchers", logging.INFO, __file__, 42, msg, (), None)
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_record_attrs_only_returns_extras():
    assert record_attrs(_record()) == {}
    assert record_attrs(_record(role="gw", pid=6699)) == {"role": "gw", "pid": 6699}


def test_json_formatter_fields():
    payload = json.loads(JSONFormatter().format(_record(role="gw", pid=6699)))
    assert payload["level"] == "INFO"
    assert payload["msg"] == "gw started"
    assert payload["role"] == "gw"
    assert payload["pid"] == 6699
    assert "time" in payload
    assert "source" not in payload


def test_json_formatter_source_and_unserializable_values():
    payload = json.loads(JSONFormatter(add_source=True).format(_record(argv=("wine", "Gw.exe"), err=ValueError("x"))))
    assert payload["source"].endswith(":42")
    assert payload["argv"] == ["wine", "Gw.exe"]
    assert payload["err"] == "x"


def test_key_value_formatter_appends_attributes():
    text = KeyValueFormatter("%(message)s").format(_record(role="toolbox", pid=17))
    assert text == "gw started role=toolbox pid=17"


def test_json_logging_goes_to_stderr(capsys, restore_root_logger):
    setup_logging(log_format="json")
    logging.getLogger("gw1h.launchers").info("gw started", extra={"role": "gw", "pid": 6699})

    captured = capsys.readouterr()
    assert captured.out == ""
    payload = json.loads(captured.err.strip().splitlines()[-1])
    assert payload["msg"] == "gw started"
    assert (payload["role"], payload["pid"]) == ("gw", 6699)


def test_log_file_uses_selected_format(tmp_path, restore_root_logger):
    logfile = tmp_path / "logs" / "gw1h.log"
    setup_logging(logfile=str(logfile), log_format="json")
    logging.getLogger("gw1h.handoff").info("pid handed off", extra={"pid": 6699})
    for handler in logging.getLogger().handlers:
        handler.flush()

    payload = json.loads(logfile.read_text().strip().splitlines()[-1])
    assert payload["pid"] == 6699


def test_unknown_log_format():
    with pytest.raises(ValueError):
        setup_logging(log_format="xml")
