"""
Pytest configuration for the vivaldi_nc test suite.

Provides seeded randomness, small engine configurations and log streams
that write to a temporary directory instead of the console.
"""

import os
import random
import tempfile
from typing import Generator

import msgspec
import pytest

from vivaldi_nc.logging.config import LoggingConfig
from vivaldi_nc.logging.streams import LoggerStream
from vivaldi_nc.models import VivaldiConfig


@pytest.fixture(autouse=True)
def reset_logging_config() -> Generator[None, None, None]:
    yield
    LoggingConfig().update(
        log_level="info",
        log_output="stderr",
        disabled_loggers=[],
    )


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def planar_config() -> VivaldiConfig:
    return VivaldiConfig(dimensions=2, random_seed=1234)


@pytest.fixture
def temp_log_directory() -> Generator[str, None, None]:
    with tempfile.TemporaryDirectory() as temp_directory:
        yield temp_directory


@pytest.fixture
def file_logger(temp_log_directory: str) -> Generator[LoggerStream, None, None]:
    logger = LoggerStream(
        name="vivaldi.test",
        filename="vivaldi.json",
        directory=temp_log_directory,
    )
    yield logger
    logger.close()


@pytest.fixture
def read_logs(temp_log_directory: str):
    def read() -> list[dict]:
        logfile_path = os.path.join(temp_log_directory, "vivaldi.json")
        if not os.path.exists(logfile_path):
            return []

        with open(logfile_path, "rb") as logfile:
            return [msgspec.json.decode(line) for line in logfile if line.strip()]

    return read
