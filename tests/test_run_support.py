import logging

import pytest

from formfill.io_utils import prepare_run_directory, read_json, write_json
from formfill.logging_utils import PACKAGE_LOGGER, build_logger, log_path


@pytest.fixture(autouse=True)
def restore_package_logger():
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_prepare_run_directory(tmp_path):
    paths = prepare_run_directory("run-1", data_dir=tmp_path)
    assert paths.base_dir == tmp_path / "run-1"
    assert paths.base_dir.is_dir()
    assert paths.build_path("detect.json") == tmp_path / "run-1" / "detect.json"

    generated = prepare_run_directory(data_dir=tmp_path)
    assert generated.run_id
    assert generated.base_dir.is_dir()


def test_json_helpers(tmp_path):
    path = write_json(tmp_path / "nested" / "out.json", {"campo": "São Paulo"})
    assert read_json(path) == {"campo": "São Paulo"}
    assert read_json(tmp_path / "missing.json", default=[]) == []


def test_module_loggers_share_the_run_log(tmp_path):
    paths = prepare_run_directory("run-log", data_dir=tmp_path)
    run_logger = build_logger(paths)
    run_logger.info("run message")
    logging.getLogger(f"{PACKAGE_LOGGER}.similarity").warning("library message")

    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()
    content = log_path(paths).read_text(encoding="utf-8")
    assert "run message" in content
    assert "library message" in content


def test_rebuilding_replaces_previous_run_handlers(tmp_path):
    build_logger(prepare_run_directory("first", data_dir=tmp_path))
    build_logger(prepare_run_directory("second", data_dir=tmp_path), verbose=True)
    assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 2
