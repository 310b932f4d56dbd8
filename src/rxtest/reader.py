"""Line input for test scripts."""

import logging
from typing import BinaryIO, Optional

from .output import Output

logger = logging.getLogger(__name__)


class LineReader:
    """Reads script lines one at a time.

    When interactive, a prompt is written before each read. Otherwise every
    line read is echoed to the output, so that the output of a batch run
    contains the script interleaved with its results.
    """

    def __init__(self, stream: BinaryIO, output: Output,
                 interactive: bool = False):
        self.stream = stream
        self.output = output
        self.interactive = interactive
        self.line_number = 0

    def read_line(self, prompt: str) -> Optional[bytes]:
        """Return the next line, with its newline, or None at end of input."""
        if self.interactive:
            self.output.write(prompt)
            self.output.flush()
        line = self.stream.readline()
        if not line:
            return None
        self.line_number += 1
        if not self.interactive:
            self.output.write_bytes(line)
        self.output.flush()
        return line
