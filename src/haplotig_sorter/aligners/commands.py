"""
Subprocess helpers shared by the aligner wrappers.
"""

import logging
import shutil
import subprocess
from typing import List, Optional

from haplotig_sorter.core.errors import ExternalToolFailure

logger = logging.getLogger(__name__)


def require_binary(binary: str) -> str:
    """
    :return: Full path of binary.
    :raises ExternalToolFailure: if binary is not on PATH.
    """
    path = shutil.which(binary)
    if path is None:
        raise ExternalToolFailure(binary, "not found in PATH")
    return path


def run_command(cmd: List[str], timeout: Optional[int] = None) -> subprocess.CompletedProcess:
    """
    Run cmd, capturing its output.

    :raises ExternalToolFailure: on a non-zero exit status or timeout.
    """
    tool = cmd[0]
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ExternalToolFailure(tool, f"timed out after {timeout}s") from e
    except OSError as e:
        raise ExternalToolFailure(tool, str(e)) from e

    if result.returncode != 0:
        message = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else "no error output"
        raise ExternalToolFailure(tool, f"exit status {result.returncode}: {message}")
    return result
