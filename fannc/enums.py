"""
enums.py
~~~~~~~~

Name tables for the runtime's enumerations.

Each table is an ``IntEnum`` whose member order matches the runtime's
numeric encoding, so decoding a name is a lookup of its ordinal and
encoding an ordinal is the reverse lookup.
"""

from enum import IntEnum
from typing import Type, TypeVar

from fannc.errors import UnknownNameError

E = TypeVar('E', bound=IntEnum)


class ActivationFunc(IntEnum):
    FANN_LINEAR = 0
    FANN_THRESHOLD = 1
    FANN_THRESHOLD_SYMMETRIC = 2
    FANN_SIGMOID = 3
    FANN_SIGMOID_STEPWISE = 4
    FANN_SIGMOID_SYMMETRIC = 5
    FANN_SIGMOID_SYMMETRIC_STEPWISE = 6
    FANN_GAUSSIAN = 7
    FANN_GAUSSIAN_SYMMETRIC = 8
    FANN_GAUSSIAN_STEPWISE = 9
    FANN_ELLIOT = 10
    FANN_ELLIOT_SYMMETRIC = 11
    FANN_LINEAR_PIECE = 12
    FANN_LINEAR_PIECE_SYMMETRIC = 13
    FANN_SIN_SYMMETRIC = 14
    FANN_COS_SYMMETRIC = 15
    FANN_SIN = 16
    FANN_COS = 17


class TrainingAlgorithm(IntEnum):
    FANN_TRAIN_INCREMENTAL = 0
    FANN_TRAIN_BATCH = 1
    FANN_TRAIN_RPROP = 2
    FANN_TRAIN_QUICKPROP = 3
    FANN_TRAIN_SARPROP = 4


class ErrorFunc(IntEnum):
    FANN_ERRORFUNC_LINEAR = 0
    FANN_ERRORFUNC_TANH = 1


class StopFunc(IntEnum):
    FANN_STOPFUNC_MSE = 0
    FANN_STOPFUNC_BIT = 1


class NetworkType(IntEnum):
    FANN_NETTYPE_LAYER = 0
    FANN_NETTYPE_SHORTCUT = 1


# Human readable table names, used in error messages
TABLE_NAMES = {
    ActivationFunc: 'activation function',
    TrainingAlgorithm: 'training algorithm',
    ErrorFunc: 'error function',
    StopFunc: 'stop function',
    NetworkType: 'network type',
}

# Activation functions whose output range is symmetric around zero
SYMMETRIC_FUNCS = frozenset({
    ActivationFunc.FANN_THRESHOLD_SYMMETRIC,
    ActivationFunc.FANN_SIGMOID_SYMMETRIC,
    ActivationFunc.FANN_SIGMOID_SYMMETRIC_STEPWISE,
    ActivationFunc.FANN_GAUSSIAN_SYMMETRIC,
    ActivationFunc.FANN_ELLIOT_SYMMETRIC,
    ActivationFunc.FANN_LINEAR_PIECE_SYMMETRIC,
    ActivationFunc.FANN_SIN_SYMMETRIC,
    ActivationFunc.FANN_COS_SYMMETRIC,
})


def decode(table: Type[E], name: str) -> E:
    """
    Look up a canonical name in a table.

    The match is exact and case sensitive.

    Args:
        table: One of the enumeration classes of this module
        name: Canonical name, e.g. ``FANN_SIGMOID``

    Returns:
        The enumeration member, whose value is the runtime ordinal

    Raises:
        UnknownNameError: If the name is not in the table
    """
    member = table.__members__.get(name)
    if member is None:
        raise UnknownNameError(TABLE_NAMES[table], name)
    return member


def encode(table: Type[E], ordinal: int) -> str:
    """
    Return the canonical name of an ordinal.

    Raises:
        UnknownNameError: If the ordinal is outside the table
    """
    try:
        return table(ordinal).name
    except ValueError:
        raise UnknownNameError(TABLE_NAMES[table], str(ordinal)) from None


def names(table: Type[IntEnum]) -> str:
    """Comma separated list of every name of a table, in ordinal order."""
    return ', '.join(member.name for member in table)
