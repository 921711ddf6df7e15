import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

PACKAGE_LOGGER = "caip"
RUN_LOG_NAME = "run.log"

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(pipeline: str) -> logging.Logger:
    """
    Logger for one analysis run, e.g. "caip.run.triage".

    No handler of its own: records propagate to whatever the CLI (or
    the caller) configured, and into run.log while `run_log` is open.
    """
    logger = logging.getLogger(f"{PACKAGE_LOGGER}.run.{pipeline}")
    logger.setLevel(logging.INFO)
    return logger


@contextmanager
def run_log(pipeline: str, run_dir: Union[str, Path]) -> Iterator[logging.Logger]:
    """
    Copy every `caip.*` record at INFO and above into <run_dir>/run.log
    for the duration of one run.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    previous_level = package.level

    handler = logging.FileHandler(Path(run_dir) / RUN_LOG_NAME, encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    package.addHandler(handler)
    if previous_level == logging.NOTSET or previous_level > logging.INFO:
        package.setLevel(logging.INFO)

    try:
        yield get_logger(pipeline)
    finally:
        package.removeHandler(handler)
        package.setLevel(previous_level)
        handler.close()
