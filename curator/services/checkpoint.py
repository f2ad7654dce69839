"""
SyncCursor - resumable ledger checkpoint per tracked address.

Stored as a single decimal block number in `<state_dir>/last_block_<address>`.
The cursor only ever moves forward.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from curator.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SyncCursor:
    """Last processed ledger block number for one address."""

    def __init__(self, state_dir: Union[str, Path], address: str):
        self.state_dir = Path(state_dir)
        self.address = address
        self.path = self.state_dir / f"last_block_{address}"
        self._value = None

    def load(self) -> int:
        """
        Read the cursor; 0 when no checkpoint exists yet.

        Raises:
            ConfigurationError: checkpoint file is unreadable or not an integer
        """
        if self._value is not None:
            return self._value

        try:
            raw = self.path.read_text().strip()
        except FileNotFoundError:
            self._value = 0
            return self._value
        except OSError as e:
            raise ConfigurationError(f"can't read last block file {self.path}: {e}") from e

        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigurationError(f"can't parse last block file {self.path}: {raw!r}") from e
        if value < 0:
            raise ConfigurationError(f"negative block number in {self.path}: {value}")

        logger.info(f"Loaded last block number: {value} from: {self.path}")
        self._value = value
        return value

    def advance(self, block_number: int) -> int:
        """
        Persist max(current, block_number) and return the new value.

        Written via temp file + rename so a crash never leaves a torn file.
        """
        current = self.load()
        if block_number <= current:
            return current

        self.state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.state_dir, prefix=".last_block_")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(str(block_number))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        self._value = block_number
        logger.info(f"Saved block number: {block_number} to: {self.path}")
        return block_number
