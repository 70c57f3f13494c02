"""
commands.py
~~~~~~~~~~~

Command handlers and the command table.

Every handler takes the arguments following the command name and the
process streams, and returns the exit code: 0 on success, 1 on any
failure. Networks are read from ``--ann`` or stdin and, for commands
that create or modify one, written to stdout so commands can be chained:

    fannc create_std 2 3 1 | fannc setup_training --learning-rate 0.5 \\
        | fannc train --training-data xor.data --max-epochs 500 \\
          --target-error 0.001 > xor.net
"""

import os
import sys
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO, Tuple

from fannc import __version__, argspec
from fannc.argspec import FILE, FLOAT, INT, STRING, ArgumentParser, ParsedArguments
from fannc.configuration import SETUP_TRAINING_SPECS, apply_configuration
from fannc.connections import parse_connections
from fannc.errors import (
    ArgumentValidationError,
    DimensionError,
    FanncError,
    HelpRequested,
)
from fannc.introspection import describe_network
from fannc.model_io import opened_network, owned_network, save
from fannc.network import (
    DEFAULT_MAX_WEIGHT,
    DEFAULT_MIN_WEIGHT,
    Network,
    create_shortcut,
    create_sparse,
    create_standard,
)
from fannc.training_data import TrainingData, read_training_data, read_training_file

# Configure module logger
logger = logging.getLogger(__name__)

PROGRAM = 'fannc'


@dataclass
class Streams:
    """The standard streams a command reads from and writes to."""

    stdin: TextIO
    stdout: TextIO
    stderr: TextIO

    @classmethod
    def system(cls) -> 'Streams':
        return cls(sys.stdin, sys.stdout, sys.stderr)


Handler = Callable[[List[str], Streams], int]
Body = Callable[[ParsedArguments, Streams], int]


@dataclass(frozen=True)
class Command:
    """Entry of the command table."""

    name: str
    handler: Handler
    brief: str


def banner() -> str:
    return (
        f"{PROGRAM} {__version__}\n"
        "This is free software; see the source for copying conditions\n"
    )


def weight_seed() -> Optional[int]:
    """Seed for weight initialization, from the FANNC_SEED variable."""
    value = os.getenv('FANNC_SEED')
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer FANNC_SEED '{value}'")
        return None


def execute(
    parser: ArgumentParser,
    argv: List[str],
    streams: Streams,
    body: Body
) -> int:
    """
    Parse arguments and run a command body, mapping errors to exit codes.

    Help requests print the help and succeed. Argument errors are all
    printed, followed by a hint to use ``--help``. Errors raised by the
    body are printed and the command fails.
    """
    try:
        args = parser.parse(argv)
    except HelpRequested as e:
        streams.stdout.write(e.text)
        return 0
    except ArgumentValidationError as e:
        for message in e.errors:
            streams.stderr.write(f"{e.prog}: {message}\n")
        streams.stderr.write(
            f"Try '{e.prog} --help' for more information.\n"
        )
        return 1

    try:
        return body(args, streams)
    except FanncError as e:
        logger.debug(f"{parser.prog} failed: {e!r}")
        streams.stderr.write(f"{e}\n")
        return 1
    except OSError as e:
        streams.stderr.write(f"{parser.prog}: {e}\n")
        return 1
    except MemoryError:
        streams.stderr.write("Out of memory!\n")
        return 1
    except Exception:
        logger.exception(f"Unexpected error in {parser.prog}")
        streams.stderr.write(f"{parser.prog}: internal error\n")
        return 1


# ============================================================================
# SHARED ARGUMENTS
# ============================================================================

def ann_spec() -> argspec.ArgSpec:
    return argspec.option(
        'ann', FILE, 'filepath',
        'path to the ANN file. If unspecified, read from STDIN'
    )


def weight_specs() -> List[argspec.ArgSpec]:
    return [
        argspec.option(
            'min-random-weight', FLOAT, 'float',
            f"minimum random value for initializing weights. If omitted, "
            f"{DEFAULT_MIN_WEIGHT} is taken.",
            default=DEFAULT_MIN_WEIGHT
        ),
        argspec.option(
            'max-random-weight', FLOAT, 'float',
            f"maximum random value for initializing weights. If omitted, "
            f"{DEFAULT_MAX_WEIGHT} is taken.",
            default=DEFAULT_MAX_WEIGHT
        ),
        argspec.flag(
            'init-weights',
            "initialize weights with the Widrow-Nguyen algorithm from "
            "training data read from STDIN"
        ),
    ]


def layers_spec() -> argspec.ArgSpec:
    return argspec.positional(
        'layers', INT, 'n',
        'number of neurons in each layer, from the input layer to the '
        'output layer',
        min_count=2, minimum=1
    )


_LAYER_NOTES = [
    "There will be a bias neuron in each layer (except the output layer),",
    "and this bias neuron will be connected to all neurons in the next layer.",
    "When running the network, the bias nodes always emit 1.",
]


def initialize_weights(
    network: Network,
    args: ParsedArguments,
    streams: Streams
) -> None:
    if 'init_weights' in args:
        data = read_training_data(streams.stdin, 'STDIN')
        network.init_weights(data)
    else:
        network.randomize_weights(args.get('min_random_weight'),
                                  args.get('max_random_weight'))


def create_and_dump(network: Network, args: ParsedArguments, streams: Streams) -> int:
    with owned_network(network):
        initialize_weights(network, args, streams)
        save(network, streams.stdout)
    return 0


# ============================================================================
# NETWORK CREATION
# ============================================================================

def cmd_create_std(argv: List[str], streams: Streams) -> int:
    """Create a standard fully connected network."""
    parser = ArgumentParser(
        'create_std',
        ["Create a standard fully connected backpropagation neural network."]
        + _LAYER_NOTES,
        weight_specs() + [layers_spec()]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        network = create_standard(args.getall('layers'), seed=weight_seed())
        return create_and_dump(network, args, streams)

    return execute(parser, argv, streams, body)


def cmd_create_sparse(argv: List[str], streams: Streams) -> int:
    """Create a network that is not fully connected."""
    parser = ArgumentParser(
        'create_sparse',
        ["Create a backpropagation neural network which is not fully "
         "connected."] + _LAYER_NOTES,
        weight_specs() + [
            argspec.option(
                'rate', INT, 'int',
                'connection rate as a percentage. 100 yields a fully '
                'connected network, 50 keeps about half of the connections.',
                required=True, minimum=0, maximum=100
            ),
            layers_spec(),
        ]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        network = create_sparse(args.get('rate') / 100.0,
                                args.getall('layers'), seed=weight_seed())
        return create_and_dump(network, args, streams)

    return execute(parser, argv, streams, body)


def cmd_create_shortcut(argv: List[str], streams: Streams) -> int:
    """Create a network with shortcut connections."""
    parser = ArgumentParser(
        'create_shortcut',
        [
            "Create a backpropagation neural network with shortcut "
            "connections, which skip layers.",
            "Every neuron is connected to all neurons in later layers, "
            "including direct connections from the input layer to the "
            "output layer.",
            "Only the input layer has a bias neuron, connected to every "
            "other neuron.",
        ],
        weight_specs() + [layers_spec()]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        network = create_shortcut(args.getall('layers'), seed=weight_seed())
        return create_and_dump(network, args, streams)

    return execute(parser, argv, streams, body)


# ============================================================================
# CONFIGURATION AND INSPECTION
# ============================================================================

def cmd_set_weights(argv: List[str], streams: Streams) -> int:
    """Set the weights of individual connections."""
    parser = ArgumentParser(
        'set_weights',
        ["Set weights of the connections in a neural network."],
        [
            ann_spec(),
            argspec.positional(
                'connections', STRING, 'conn',
                'connection string SRC:DST:WEIGHT, where SRC is the index '
                'of the source neuron, DST the destination neuron and '
                'WEIGHT the weight. Malformed or nonexistent connections '
                'are ignored.'
            ),
        ]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        with opened_network(args.get('ann'), streams.stdin) as network:
            connections = parse_connections(args.getall('connections'))
            updated = network.set_weight_array(connections)
            logger.info(
                f"Updated {updated} of {args.count('connections')} "
                f"connection(s)"
            )
            save(network, streams.stdout)
        return 0

    return execute(parser, argv, streams, body)


def cmd_get_params(argv: List[str], streams: Streams) -> int:
    """Print the network's parameters."""
    parser = ArgumentParser(
        'get_params',
        ["Print ANN parameters in a JSON-like format."],
        [
            ann_spec(),
            argspec.flag('with-connections', "dump also ANN's connections"),
            argspec.flag('with-activation-functions',
                         "dump also neurons' activation functions"),
        ]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        with opened_network(args.get('ann'), streams.stdin) as network:
            streams.stdout.write(describe_network(
                network,
                with_connections='with_connections' in args,
                with_activation_functions='with_activation_functions' in args
            ))
        return 0

    return execute(parser, argv, streams, body)


def cmd_setup_training(argv: List[str], streams: Streams) -> int:
    """Set activation and training parameters."""
    parser = ArgumentParser(
        'setup_training',
        ["Set ANN training parameters."],
        [ann_spec()] + SETUP_TRAINING_SPECS
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        with opened_network(args.get('ann'), streams.stdin) as network:
            apply_configuration(network, args)
            save(network, streams.stdout)
        return 0

    return execute(parser, argv, streams, body)


# ============================================================================
# TRAINING AND EXECUTION
# ============================================================================

def progress_reporter(sink: TextIO) -> Callable[[Network, int, float], bool]:
    """Training callback writing one status line per report."""

    def report(network: Network, epoch: int, desired_error: float) -> bool:
        sink.write(
            f"Epochs     {epoch:8d}. MSE: {network.get_mse():.5f}. "
            f"Desired-MSE: {desired_error:.5f}\n"
        )
        sink.flush()
        return True

    return report


def cmd_train(argv: List[str], streams: Streams) -> int:
    """Train a network on a data file."""
    parser = ArgumentParser(
        'train',
        ["Train an ANN."],
        [
            ann_spec(),
            argspec.option('training-data', FILE, 'filepath',
                           'path to the training data file', required=True),
            argspec.option('max-epochs', INT, 'int',
                           'maximum number of epochs to train',
                           required=True, minimum=0),
            argspec.option('report-period', INT, 'int',
                           'number of epochs between status reports. If '
                           'omitted, no reports are printed.',
                           default=0, minimum=0),
            argspec.option('target-error', FLOAT, 'float',
                           'the desired target error', required=True),
            argspec.option('report-file', FILE, 'filepath',
                           'path to the report file. If omitted, STDERR '
                           'is used.'),
        ]
    )

    def train(network: Network, data: TrainingData, args: ParsedArguments,
              sink: TextIO) -> None:
        epochs = network.train_on_data(
            data,
            args.get('max_epochs'),
            args.get('report_period'),
            args.get('target_error'),
            progress_reporter(sink)
        )
        logger.info(f"Trained for {epochs} epoch(s), MSE {network.get_mse()}")

    def body(args: ParsedArguments, streams: Streams) -> int:
        with opened_network(args.get('ann'), streams.stdin) as network:
            data = read_training_file(args.get('training_data'))
            report_path = args.get('report_file')
            if report_path is None:
                train(network, data, args, streams.stderr)
            else:
                try:
                    report = open(report_path, 'w')
                except OSError as e:
                    raise FanncError(
                        f"Could not open report file {report_path}: {e}"
                    ) from None
                with report:
                    train(network, data, args, report)
            save(network, streams.stdout)
        return 0

    return execute(parser, argv, streams, body)


def read_input_file(path: str, count: int) -> List[float]:
    """
    Read the first ``count`` whitespace separated values of a file.

    Raises:
        FanncError: If the file cannot be read or has too few values
    """
    try:
        with open(path, 'r') as f:
            tokens = f.read().split()
    except OSError as e:
        raise FanncError(f"Could not open input file {path}: {e}") from None

    if len(tokens) < count:
        raise FanncError(
            "End of file reached! There are missing values in the file."
        )
    try:
        return [float(t) for t in tokens[:count]]
    except ValueError as e:
        raise FanncError(f"Invalid value in input file {path}: {e}") from None


def cmd_run(argv: List[str], streams: Streams) -> int:
    """Run a network on one input vector."""
    parser = ArgumentParser(
        'run',
        ["Run an ANN. Input values are read either from a file of "
         "space separated values (--input-file) or from the command line "
         "(-i once per input). The output values are printed to STDOUT "
         "separated with spaces."],
        [
            ann_spec(),
            argspec.option('input-file', FILE, 'filepath',
                           'path to the input file. If omitted, input values '
                           'are read from the command line'),
            argspec.repeated(FLOAT, 'float', 'input values', short='i',
                             dest='inputs'),
        ]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        if 'input_file' not in args and 'inputs' not in args:
            raise FanncError(
                "You must specify either a file with input data or pass "
                "data through the command line. See --help for further "
                "information"
            )

        with opened_network(args.get('ann'), streams.stdin) as network:
            if 'input_file' in args:
                inputs = read_input_file(args.get('input_file'),
                                         network.num_input)
            else:
                inputs = args.getall('inputs')
            outputs = network.run(inputs)
            streams.stdout.write(' '.join(f"{v:f}" for v in outputs) + '\n')
        return 0

    return execute(parser, argv, streams, body)


def cmd_test(argv: List[str], streams: Streams) -> int:
    """Measure the mean square error of a network."""
    parser = ArgumentParser(
        'test',
        ["Test an ANN. Test data is read either from a file (--test-data) "
         "or, for a single test, from the command line (-i and -o once per "
         "input and output). The resulting MSE is printed to STDOUT."],
        [
            ann_spec(),
            argspec.option('test-data', FILE, 'filepath',
                           'path to the test data file. If omitted, input '
                           'and output values are read from the command '
                           'line'),
            argspec.repeated(FLOAT, 'float', 'input values', short='i',
                             dest='inputs'),
            argspec.repeated(FLOAT, 'float', 'output values', short='o',
                             dest='outputs'),
        ]
    )

    def body(args: ParsedArguments, streams: Streams) -> int:
        if 'test_data' not in args and (
                'inputs' not in args or 'outputs' not in args):
            raise FanncError(
                "You must specify either a file with test data or pass "
                "data through the command line. See --help for further "
                "information"
            )

        with opened_network(args.get('ann'), streams.stdin) as network:
            if 'test_data' in args:
                data = read_training_file(args.get('test_data'))
            else:
                inputs = args.getall('inputs')
                outputs = args.getall('outputs')
                if (len(inputs) != network.num_input
                        or len(outputs) != network.num_output):
                    raise DimensionError(
                        f"Input or output dimension error. Expected "
                        f"{network.num_input} inputs and "
                        f"{network.num_output} outputs, but {len(inputs)} "
                        f"inputs and {len(outputs)} outputs were supplied"
                    )
                data = TrainingData.single(inputs, outputs)

            streams.stdout.write(f"{network.test_data(data):f}\n")
        return 0

    return execute(parser, argv, streams, body)


# ============================================================================
# COMMAND TABLE
# ============================================================================

def cmd_help(argv: List[str], streams: Streams) -> int:
    """List every command with its brief description."""
    streams.stdout.write(banner())
    streams.stdout.write("Command list:\n")
    for command in COMMANDS:
        streams.stdout.write(f" {command.name:<20} :{command.brief}\n")
    return 0


COMMANDS: Tuple[Command, ...] = (
    Command('help', cmd_help, "show a list of supported commands"),
    Command('create_std', cmd_create_std,
            "create a standard fully connected backpropagation neural network"),
    Command('create_sparse', cmd_create_sparse,
            "create a backpropagation neural network which is not fully "
            "connected"),
    Command('create_shortcut', cmd_create_shortcut,
            "create a backpropagation neural network with shortcut "
            "connections"),
    Command('set_weights', cmd_set_weights,
            "set weights of the connections in a neural network"),
    Command('get_params', cmd_get_params, "get ANN's parameters"),
    Command('setup_training', cmd_setup_training,
            "set ANN's training parameters"),
    Command('train', cmd_train, "train ANN from data file"),
    Command('run', cmd_run, "run an ANN"),
    Command('test', cmd_test, "test an ANN"),
)

_COMMANDS_BY_NAME = {command.name: command for command in COMMANDS}


def dispatch(
    name: str,
    argv: List[str],
    streams: Optional[Streams] = None
) -> int:
    """
    Run the named command.

    Args:
        name: Command name
        argv: Arguments following the command name
        streams: Streams to use; defaults to the process streams

    Returns:
        int: Exit code of the command, or 1 if the command is unknown
    """
    if streams is None:
        streams = Streams.system()

    command = _COMMANDS_BY_NAME.get(name)
    if command is None:
        logger.debug(f"Unknown command requested: {name}")
        streams.stderr.write(
            f"Invalid command: {name}. Type `{PROGRAM} help`.\n"
        )
        return 1

    logger.debug(f"Running command {name} with {len(argv)} argument(s)")
    return command.handler(argv, streams)
