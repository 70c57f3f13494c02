"""
model_io.py
~~~~~~~~~~~

Reading and writing network artifacts.

An artifact is a JSON document holding the topology, weights, neuron
activation settings and training parameters of one network. Networks
are read from a file or from standard input and written to standard
output, so commands can be chained in a shell pipeline.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional, TextIO

import numpy as np

from fannc.errors import ArtifactError, FanncError
from fannc.network import Network

# Configure module logger
logger = logging.getLogger(__name__)

ARTIFACT_FORMAT = 'FANNC_JSON_1'


class NetworkEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles numpy arrays and scalars."""

    def default(self, obj: Any) -> Any:
        """
        Convert numpy values to plain Python for JSON serialization.

        Args:
            obj: Object to serialize

        Returns:
            JSON-serializable representation
        """
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        return super().default(obj)


def dumps(network: Network) -> str:
    """Serialize a network to artifact text."""
    document = {'format': ARTIFACT_FORMAT}
    document.update(network.to_dict())
    return json.dumps(document, cls=NetworkEncoder)


def loads(text: str, source: str = 'STDIN') -> Network:
    """
    Decode artifact text.

    Args:
        text: Artifact contents
        source: Name of the origin, used in error messages

    Returns:
        Network: The decoded network

    Raises:
        ArtifactError: If the text is not a valid artifact
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ArtifactError(f"{source}: not a network artifact ({e})") from None

    if not isinstance(document, dict) or document.get('format') != ARTIFACT_FORMAT:
        raise ArtifactError(
            f"{source}: not a network artifact (expected format "
            f"{ARTIFACT_FORMAT})"
        )

    try:
        network = Network.from_dict(document)
    except KeyError as e:
        raise ArtifactError(f"{source}: missing entry {e}") from None
    except (AttributeError, TypeError, ValueError, IndexError) as e:
        raise ArtifactError(f"{source}: invalid artifact: {e}") from None
    except FanncError as e:
        raise ArtifactError(f"{source}: invalid artifact: {e}") from None

    logger.debug(
        f"Loaded {network.network_type.name} network {network.layer_sizes} "
        f"from {source}"
    )
    return network


def load(path: Optional[str], stdin: TextIO) -> Network:
    """
    Load a network from a file, or from stdin if no path is given.

    Raises:
        ArtifactError: If the source cannot be read or decoded
    """
    if path is None:
        return loads(stdin.read(), 'STDIN')

    try:
        with open(path, 'r') as f:
            text = f.read()
    except OSError as e:
        raise ArtifactError(f"Could not open network file {path}: {e}") from None
    return loads(text, path)


def save(network: Network, sink: TextIO) -> None:
    """Write a network to a text sink, normally stdout."""
    sink.write(dumps(network))
    sink.write('\n')
    sink.flush()
    logger.debug(f"Saved network {network.layer_sizes}")


@contextmanager
def opened_network(
    path: Optional[str],
    stdin: TextIO
) -> Generator[Network, None, None]:
    """
    Context manager for a loaded network.

    The network is destroyed when the block exits, whether it completes
    or raises.

    Yields:
        Network: Network read from ``path`` or stdin
    """
    network = load(path, stdin)
    try:
        yield network
    finally:
        network.destroy()


@contextmanager
def owned_network(network: Network) -> Generator[Network, None, None]:
    """Context manager destroying a freshly created network on exit."""
    try:
        yield network
    finally:
        network.destroy()
