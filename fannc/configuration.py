"""
configuration.py
~~~~~~~~~~~~~~~~

Applies training configuration arguments to a network.

The option specs of ``setup_training`` and the table mapping each
option to a network parameter live here, next to the code applying
them. Options are applied one by one in a fixed order; an unknown
enumeration name aborts the application with ``UnknownNameError``,
leaving the options applied before it in place on the network.
"""

import logging
from typing import List

from fannc import argspec
from fannc.argspec import FLOAT, INT, STRING, ArgSpec, ParsedArguments
from fannc.connections import parse_neuron_overrides, parse_steepness_overrides
from fannc.enums import (
    ActivationFunc,
    ErrorFunc,
    StopFunc,
    TrainingAlgorithm,
    decode,
    names,
)
from fannc.network import Network

logger = logging.getLogger(__name__)

_ACTIVATION_NAMES = names(ActivationFunc)

ACTIVATION_SPECS = [
    argspec.repeated(
        STRING, 'L:N:F',
        'activation function for a specific neuron, where L is the layer '
        '(1 being the first hidden layer), N the neuron index in the layer '
        'and F the function name. Entries with wrong layer or neuron '
        'numbers are ignored.',
        long='neuron-activation-function'
    ),
    argspec.option(
        'hidden-activation-function', STRING, 'string',
        f"activation function for the hidden layers: {_ACTIVATION_NAMES}"
    ),
    argspec.option(
        'output-activation-function', STRING, 'string',
        f"activation function for the output layer: {_ACTIVATION_NAMES}"
    ),
    argspec.repeated(
        STRING, 'L:N:S',
        'activation steepness for a specific neuron, where L is the layer '
        '(1 being the first hidden layer), N the neuron index in the layer '
        'and S the steepness. Entries with wrong layer or neuron numbers '
        'are ignored.',
        long='neuron-activation-steepness'
    ),
    argspec.option(
        'hidden-activation-steepness', FLOAT, 'float',
        'activation steepness for the hidden layers'
    ),
    argspec.option(
        'output-activation-steepness', FLOAT, 'float',
        'activation steepness for the output layer'
    ),
]

FUNCTION_SPECS = [
    argspec.option(
        'training-algorithm', STRING, 'string',
        f"training algorithm: {names(TrainingAlgorithm)}"
    ),
    argspec.option(
        'error-function', STRING, 'string',
        f"error function: {names(ErrorFunc)}"
    ),
    argspec.option(
        'stop-function', STRING, 'string',
        f"stop function: {names(StopFunc)}"
    ),
]

# (option, value kind, network parameter, help), in application order
NUMERIC_OPTIONS = [
    ('bit-fail-limit', FLOAT, 'bit_fail_limit',
     'largest difference between desired and actual output still counted '
     'as correct by FANN_STOPFUNC_BIT. Halved for symmetric activation '
     'functions.'),
    ('learning-rate', FLOAT, 'learning_rate',
     'how aggressive training should be for the incremental, batch and '
     'quickprop algorithms'),
    ('learning-momentum', FLOAT, 'learning_momentum',
     'momentum of FANN_TRAIN_INCREMENTAL, usually between 0.0 and 1.0. '
     '0 disables it.'),
    ('quickprop-decay', FLOAT, 'quickprop_decay',
     'small negative factor shrinking the weights on every quickprop '
     'iteration'),
    ('quickprop-mu', FLOAT, 'quickprop_mu',
     'quickprop step-size factor, should be above 1'),
    ('rprop-increase-factor', FLOAT, 'rprop_increase_factor',
     'factor above 1 growing the RPROP step size'),
    ('rprop-decrease-factor', FLOAT, 'rprop_decrease_factor',
     'factor below 1 shrinking the RPROP step size'),
    ('rprop-delta-min', FLOAT, 'rprop_delta_min',
     'smallest RPROP step size'),
    ('rprop-delta-max', FLOAT, 'rprop_delta_max',
     'largest RPROP step size'),
    ('rprop-delta-zero', FLOAT, 'rprop_delta_zero',
     'initial RPROP step size'),
    ('sarprop-weight-decay-shift', FLOAT, 'sarprop_weight_decay_shift',
     'SARPROP weight decay shift'),
    ('sarprop-step-error-threshold-factor', FLOAT,
     'sarprop_step_error_threshold_factor',
     'SARPROP step error threshold factor'),
    ('sarprop-step-error-shift', FLOAT, 'sarprop_step_error_shift',
     'SARPROP step error shift'),
    ('sarprop-temperature', FLOAT, 'sarprop_temperature',
     'SARPROP temperature'),
    ('cascade-output-change-fraction', FLOAT, 'cascade_output_change_fraction',
     'fraction (0 to 1) by which the MSE must change within '
     '--cascade-output-stagnation-epochs for output training not to '
     'stagnate'),
    ('cascade-output-stagnation-epochs', INT, 'cascade_output_stagnation_epochs',
     'epochs output training may run without changing the MSE by '
     '--cascade-output-change-fraction'),
    ('cascade-output-max-epochs', INT, 'cascade_max_out_epochs',
     'maximum epochs of output training after adding a candidate neuron'),
    ('cascade-output-min-epochs', INT, 'cascade_min_out_epochs',
     'minimum epochs of output training after adding a candidate neuron'),
    ('cascade-candidate-groups', INT, 'cascade_num_candidate_groups',
     'number of groups of identical candidates'),
    ('cascade-candidate-training-limit', FLOAT, 'cascade_candidate_limit',
     'limit on the proportion between the MSE and the candidate score'),
    ('cascade-candidate-change-fraction', FLOAT,
     'cascade_candidate_change_fraction',
     'fraction (0 to 1) by which the MSE must change within '
     '--cascade-candidate-stagnation-epochs for candidate training not '
     'to stagnate'),
    ('cascade-candidate-stagnation-epochs', INT,
     'cascade_candidate_stagnation_epochs',
     'epochs candidate training may run without changing the MSE by '
     '--cascade-candidate-change-fraction'),
    ('cascade-candidate-max-epochs', INT, 'cascade_max_cand_epochs',
     'maximum epochs of candidate training'),
    ('cascade-candidate-min-epochs', INT, 'cascade_min_cand_epochs',
     'minimum epochs of candidate training'),
    ('cascade-weight-multiplier', FLOAT, 'cascade_weight_multiplier',
     'factor applied to the weights of a candidate neuron before it is '
     'added to the network, usually between 0 and 1'),
]

NUMERIC_SPECS = [
    argspec.option(long, kind, 'int' if kind == INT else 'float', help,
                   minimum=0 if kind == INT else None)
    for long, kind, _, help in NUMERIC_OPTIONS
]

CASCADE_SPECS = [
    argspec.repeated(
        STRING, 'string',
        'activation function for cascade training. Repeat for as many '
        'functions as desired.',
        long='cascade-activation-function'
    ),
    argspec.repeated(
        FLOAT, 'float',
        'activation steepness for cascade training. Repeat for as many '
        'steepnesses as desired.',
        long='cascade-activation-steepness'
    ),
]


# Every configuration option of setup_training, in help order
SETUP_TRAINING_SPECS: List[ArgSpec] = (
    ACTIVATION_SPECS + FUNCTION_SPECS + NUMERIC_SPECS + CASCADE_SPECS
)


def apply_configuration(network: Network, args: ParsedArguments) -> None:
    """
    Apply every supplied setup_training option to a network.

    The order is fixed: hidden and output activation functions and
    steepnesses, per-neuron overrides, training algorithm, error and
    stop functions, numeric parameters, cascade functions and
    steepnesses.

    Args:
        network: Network to modify in place
        args: Validated setup_training arguments

    Raises:
        UnknownNameError: If any enumeration name is unknown; options
            before it have already been applied
    """
    if 'hidden_activation_function' in args:
        func = decode(ActivationFunc, args.get('hidden_activation_function'))
        network.set_activation_function_hidden(func)

    if 'hidden_activation_steepness' in args:
        network.set_activation_steepness_hidden(
            args.get('hidden_activation_steepness')
        )

    if 'output_activation_function' in args:
        func = decode(ActivationFunc, args.get('output_activation_function'))
        network.set_activation_function_output(func)

    if 'output_activation_steepness' in args:
        network.set_activation_steepness_output(
            args.get('output_activation_steepness')
        )

    for override in parse_neuron_overrides(args.getall('neuron_activation_function')):
        func = decode(ActivationFunc, override.value)
        network.set_activation_function(func, override.layer, override.neuron)

    for override in parse_steepness_overrides(args.getall('neuron_activation_steepness')):
        network.set_activation_steepness(override.value, override.layer,
                                         override.neuron)

    if 'training_algorithm' in args:
        network.set_parameter(
            'training_algorithm',
            decode(TrainingAlgorithm, args.get('training_algorithm'))
        )

    if 'error_function' in args:
        network.set_parameter(
            'train_error_function',
            decode(ErrorFunc, args.get('error_function'))
        )

    if 'stop_function' in args:
        network.set_parameter(
            'train_stop_function',
            decode(StopFunc, args.get('stop_function'))
        )

    for long, _, parameter, _ in NUMERIC_OPTIONS:
        dest = long.replace('-', '_')
        if dest in args:
            network.set_parameter(parameter, args.get(dest))
            logger.debug(f"Set {parameter} to {args.get(dest)}")

    if 'cascade_activation_function' in args:
        funcs = [decode(ActivationFunc, name)
                 for name in args.getall('cascade_activation_function')]
        network.set_parameter('cascade_activation_functions', funcs)

    if 'cascade_activation_steepness' in args:
        network.set_parameter('cascade_activation_steepnesses',
                              args.getall('cascade_activation_steepness'))
