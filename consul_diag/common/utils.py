#!/usr/bin/env python3
"""Common utility functions for Consul diagnostics collection."""

import json
import logging
import subprocess
import sys
import tarfile
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'
LOG_FILE_NAME = "collector.log"


class Colors:
    """ANSI color codes for terminal output."""
    INFO = '\033[94m'  # Blue
    SUCCESS = '\033[92m'  # Green
    WARNING = '\033[93m'  # Yellow
    ERROR = '\033[91m'  # Red
    RESET = '\033[0m'  # Reset


class ColorFormatter(logging.Formatter):
    """Colorize the level name on console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.INFO,
        logging.INFO: Colors.SUCCESS,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.ERROR,
    }

    def format(self, record):
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return message.replace(record.levelname, f"{color}{record.levelname}{Colors.RESET}", 1)


def setup_logging(debug=False):
    """
    Configure console logging for a run.

    Args:
        debug: Log at DEBUG level
    """
    stream_handler = logging.StreamHandler(sys.stdout)
    if sys.stdout.isatty():
        stream_handler.setFormatter(ColorFormatter(LOG_FORMAT))
    else:
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[stream_handler],
        force=True
    )
    # urllib3 logs every retry at WARNING; keep it quiet unless debugging
    logging.getLogger("urllib3").setLevel(logging.DEBUG if debug else logging.ERROR)


@contextmanager
def log_to_file(log_dir):
    """
    Copy root log records into <log_dir>/collector.log while the block runs.

    Yields:
        Path: Log file path
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(file_handler)
    try:
        yield log_file
    finally:
        root.removeHandler(file_handler)
        file_handler.close()


def run_to_file(command, output_file):
    """
    Run a command and write its combined stdout/stderr to a file.

    The exit status is reported but never raised: the inspected system
    failing a command is itself diagnostic data.

    Args:
        command: Argument list to execute
        output_file: Path receiving the command output

    Returns:
        int: Exit code, or None if the command could not be started
    """
    logger.debug(f"Running: {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace"
        )
    except OSError as e:
        output, returncode = f"Failed to execute {command[0]}: {e}\n", None
    else:
        output, returncode = result.stdout, result.returncode

    with open(output_file, "w") as f:
        f.write(output)

    if returncode != 0:
        logger.warning(f"Command exited with {returncode}: {' '.join(command)} (see {output_file})")
    else:
        logger.debug(f"Saved to: {output_file}")
    return returncode


def save_to_file(data, filepath):
    """
    Save data to a file as indented JSON.

    Args:
        data: JSON-serializable data
        filepath: Path object or string for output file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    logger.debug(f"Saved: {filepath}")


def create_archive(output_dir):
    """
    Create a tar.gz archive next to a directory, named after it.

    Args:
        output_dir: Directory to archive

    Returns:
        Path: Path to the created archive
    """
    output_dir = Path(output_dir)
    tarball_path = output_dir.parent / f"{output_dir.name}.tar.gz"
    logger.info(f"Creating archive: {tarball_path}")
    with tarfile.open(tarball_path, "w:gz") as tar:
        tar.add(output_dir, arcname=output_dir.name)
    logger.info("Archive created.")
    return tarball_path
