"""
errors.py
~~~~~~~~~

Exception hierarchy shared by the command handlers.
"""

from typing import List


class FanncError(Exception):
    """Base class for errors reported to the user with exit code 1."""


class HelpRequested(FanncError):
    """Raised by the argument parser when ``--help`` was given."""

    def __init__(self, text: str):
        super().__init__(text)
        self.text = text


class ArgumentValidationError(FanncError):
    """One or more arguments did not satisfy their specification."""

    def __init__(self, prog: str, errors: List[str]):
        super().__init__(f"{prog}: {len(errors)} argument error(s)")
        self.prog = prog
        self.errors = errors


class UnknownNameError(FanncError):
    """An enumeration name is not present in its table."""

    def __init__(self, table: str, name: str):
        super().__init__(f"Unknown {table}: {name}")
        self.table = table
        self.name = name


class ArtifactError(FanncError):
    """A network artifact could not be read or decoded."""


class TrainingDataError(FanncError):
    """A training or test data file could not be read."""


class DimensionError(FanncError):
    """Input or output vectors do not match the network."""
