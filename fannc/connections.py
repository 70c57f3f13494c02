"""
connections.py
~~~~~~~~~~~~~~

Parsers for the compact colon separated descriptors accepted on the
command line:

- ``SRC:DST:WEIGHT`` connection descriptors for ``set_weights``
- ``L:N:VALUE`` per-neuron overrides for ``setup_training``

Malformed entries are dropped without an error; only the well formed
ones are returned.
"""

import re
import logging
from dataclasses import dataclass
from typing import Iterable, List, Union

from fannc.argspec import parse_float

logger = logging.getLogger(__name__)

_TRIPLE = re.compile(r'^(\d+):(\d+):(.*)$', re.DOTALL | re.ASCII)


@dataclass(frozen=True)
class Connection:
    """A weighted edge between two neurons, by global neuron index."""

    from_neuron: int
    to_neuron: int
    weight: float


@dataclass(frozen=True)
class NeuronOverride:
    """A value addressed to one neuron by layer and position in the layer."""

    layer: int
    neuron: int
    value: Union[str, float]


def parse_connection(descriptor: str):
    """
    Parse one ``SRC:DST:WEIGHT`` descriptor.

    Returns:
        Connection, or None if the descriptor is malformed
    """
    match = _TRIPLE.match(descriptor)
    if match is None:
        return None
    weight = parse_float(match.group(3))
    if weight is None:
        return None
    return Connection(int(match.group(1)), int(match.group(2)), weight)


def parse_connections(descriptors: Iterable[str]) -> List[Connection]:
    """
    Parse a batch of connection descriptors, dropping malformed ones.

    Args:
        descriptors: Strings of the form ``SRC:DST:WEIGHT``

    Returns:
        list: Connections in input order
    """
    connections = []
    for descriptor in descriptors:
        connection = parse_connection(descriptor)
        if connection is None:
            logger.debug(f"Ignoring malformed connection '{descriptor}'")
            continue
        connections.append(connection)
    return connections


def parse_neuron_overrides(descriptors: Iterable[str]) -> List[NeuronOverride]:
    """
    Split ``L:N:VALUE`` descriptors into their coordinates and raw value.

    The value is returned unparsed; entries without two numeric
    coordinates are dropped.
    """
    overrides = []
    for descriptor in descriptors:
        match = _TRIPLE.match(descriptor)
        if match is None:
            logger.debug(f"Ignoring malformed neuron override '{descriptor}'")
            continue
        overrides.append(NeuronOverride(
            int(match.group(1)), int(match.group(2)), match.group(3)
        ))
    return overrides


def parse_steepness_overrides(descriptors: Iterable[str]) -> List[NeuronOverride]:
    """
    Parse ``L:N:S`` steepness overrides.

    Entries whose steepness is not a number are dropped like any other
    malformed entry. The returned ``value`` is a float.
    """
    overrides = []
    for override in parse_neuron_overrides(descriptors):
        steepness = parse_float(override.value)
        if steepness is None:
            logger.debug(
                f"Ignoring steepness override with bad value "
                f"'{override.value}'"
            )
            continue
        overrides.append(NeuronOverride(override.layer, override.neuron,
                                        steepness))
    return overrides
