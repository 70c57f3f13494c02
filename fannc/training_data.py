"""
training_data.py
~~~~~~~~~~~~~~~~

Reader for training and test data files.

The format is plain text: a header line ``num_pairs num_inputs
num_outputs`` followed, for every pair, by the input values and then the
output values, all whitespace separated.
"""

import logging
from typing import Iterator, TextIO, Tuple

import numpy as np

from fannc.errors import TrainingDataError

logger = logging.getLogger(__name__)


class TrainingData:
    """
    A set of input/output pairs.

    Args:
        inputs: Array of shape (num_data, num_input)
        outputs: Array of shape (num_data, num_output)
    """

    def __init__(self, inputs: np.ndarray, outputs: np.ndarray):
        self.inputs = np.asarray(inputs, dtype=np.float64)
        self.outputs = np.asarray(outputs, dtype=np.float64)
        if self.inputs.ndim != 2 or self.outputs.ndim != 2:
            raise ValueError("Inputs and outputs must be 2-dimensional")
        if len(self.inputs) != len(self.outputs):
            raise ValueError(
                f"{len(self.inputs)} input rows but "
                f"{len(self.outputs)} output rows"
            )

    @classmethod
    def single(cls, inputs, outputs) -> 'TrainingData':
        """Data set holding exactly one pair."""
        return cls(np.asarray([inputs], dtype=np.float64),
                   np.asarray([outputs], dtype=np.float64))

    @property
    def num_data(self) -> int:
        return len(self.inputs)

    @property
    def num_input(self) -> int:
        return self.inputs.shape[1]

    @property
    def num_output(self) -> int:
        return self.outputs.shape[1]

    def __len__(self) -> int:
        return self.num_data

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        return zip(self.inputs, self.outputs)


def read_training_data(stream: TextIO, source: str = 'STDIN') -> TrainingData:
    """
    Parse a data set from a text stream.

    Args:
        stream: Open text stream
        source: Name of the stream, used in error messages

    Returns:
        TrainingData: The parsed pairs

    Raises:
        TrainingDataError: If the header or the values are malformed
    """
    tokens = stream.read().split()
    if len(tokens) < 3:
        raise TrainingDataError(f"{source}: missing data header")

    try:
        num_data, num_input, num_output = (int(t) for t in tokens[:3])
    except ValueError:
        raise TrainingDataError(
            f"{source}: invalid data header '{' '.join(tokens[:3])}'"
        ) from None
    if num_data < 1 or num_input < 1 or num_output < 1:
        raise TrainingDataError(
            f"{source}: invalid data header "
            f"{num_data} {num_input} {num_output}"
        )

    expected = num_data * (num_input + num_output)
    values = tokens[3:]
    if len(values) < expected:
        raise TrainingDataError(
            f"{source}: expected {expected} values but found {len(values)}"
        )
    if len(values) > expected:
        logger.warning(
            f"{source}: ignoring {len(values) - expected} trailing value(s)"
        )

    try:
        table = np.array(values[:expected], dtype=np.float64)
    except ValueError as e:
        raise TrainingDataError(f"{source}: {e}") from None

    table = table.reshape(num_data, num_input + num_output)
    logger.debug(
        f"Read {num_data} pairs ({num_input} inputs, {num_output} outputs) "
        f"from {source}"
    )
    return TrainingData(table[:, :num_input], table[:, num_input:])


def read_training_file(path: str) -> TrainingData:
    """
    Read a data set from a file.

    Raises:
        TrainingDataError: If the file cannot be opened or parsed
    """
    try:
        with open(path, 'r') as f:
            return read_training_data(f, path)
    except OSError as e:
        raise TrainingDataError(f"Could not open data file {path}: {e}") from None
