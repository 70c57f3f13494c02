"""
introspection.py
~~~~~~~~~~~~~~~~

Human readable dump of a network's topology and configuration.

The dump is a nested, JSON-like text with unquoted keys. Every training
parameter is written regardless of the active training algorithm, so
the output is a complete snapshot of the configuration. The layout and
order of the fields are fixed.
"""

from typing import List

from fannc.enums import (
    ActivationFunc,
    ErrorFunc,
    NetworkType,
    StopFunc,
    TrainingAlgorithm,
    encode,
)
from fannc.network import Network


def _f(value: float) -> str:
    """Fixed six-decimal rendering used for every scalar parameter."""
    return f"{float(value):f}"


def describe_network(
    network: Network,
    with_connections: bool = False,
    with_activation_functions: bool = False
) -> str:
    """
    Render the parameters of a network.

    Args:
        network: Network to describe
        with_connections: Include every connection as [from,to,weight],
            weights with 20 significant decimals so they can be fed back
            to set_weights without loss
        with_activation_functions: Include the activation function and
            steepness of every hidden and output neuron

    Returns:
        str: The rendered dump, newline terminated
    """
    p = network.params
    layers = network.get_layer_array()
    biases = network.get_bias_array()
    lines: List[str] = []
    out = lines.append

    out("{")
    out(f'  type: "{encode(NetworkType, network.network_type)}",')
    out("  layers: {")
    out(f"    input:  {{neurons: {layers[0]}, bias: {biases[0]}}},")
    out(f"    output: {{neurons: {layers[-1]}}},")
    out("    hidden: [")
    for layer in range(1, network.num_layers - 1):
        out(f"      {{neurons: {layers[layer]}, bias: {biases[layer]}}},")
    out("    ]")
    out("  },")
    out(f"  connectionRate: {_f(network.connection_rate)},")

    if with_connections:
        connections = ','.join(
            f"[{f},{t},{w:.20e}]" for f, t, w in network.get_connection_array()
        )
        out(f"  connections: [{connections}],")

    out("  training: {")
    out(f'    algorithm: "{encode(TrainingAlgorithm, p.training_algorithm)}",')

    if with_activation_functions:
        neurons = []
        for layer in range(1, network.num_layers):
            for neuron in range(layers[layer]):
                func = encode(ActivationFunc,
                              network.get_activation_function(layer, neuron))
                steepness = network.get_activation_steepness(layer, neuron)
                neurons.append(
                    f'{{l: {layer}, n: {neuron}, f: "{func}", '
                    f's: {_f(steepness)}}}'
                )
        out("    activationF: [")
        out(','.join(neurons) + "],")

    out(f'    errorF: "{encode(ErrorFunc, p.train_error_function)}",')
    out(f'    stopF: "{encode(StopFunc, p.train_stop_function)}",')
    out("    stopParams: {")
    out(f"      bitFailLimit: {_f(p.bit_fail_limit)},")
    out("    },")
    out(f"    learningRate: {_f(p.learning_rate)},")
    out(f"    learningMomentum: {_f(p.learning_momentum)},")
    out("    quickPropParams: {")
    out(f"      decay: {_f(p.quickprop_decay)},")
    out(f"      mu: {_f(p.quickprop_mu)}")
    out("    },")
    out("    rPropParams: {")
    out(f"      increaseFactor: {_f(p.rprop_increase_factor)},")
    out(f"      decreaseFactor: {_f(p.rprop_decrease_factor)},")
    out(f"      deltaMin: {_f(p.rprop_delta_min)},")
    out(f"      deltaMax: {_f(p.rprop_delta_max)},")
    out(f"      deltaZero: {_f(p.rprop_delta_zero)}")
    out("    },")
    out("    sarPropParams: {")
    out(f"      weightDecayShift: {_f(p.sarprop_weight_decay_shift)},")
    out(f"      stepErrorThresholdFactor: "
        f"{_f(p.sarprop_step_error_threshold_factor)},")
    out(f"      stepErrorShift: {_f(p.sarprop_step_error_shift)},")
    out(f"      temperature: {_f(p.sarprop_temperature)}")
    out("    },")
    out("    cascadeParams: {")
    out("      output: {")
    out(f"        changeFraction: {_f(p.cascade_output_change_fraction)},")
    out(f"        stagnationEpochs: {p.cascade_output_stagnation_epochs},")
    out(f"        maxEpochs: {p.cascade_max_out_epochs},")
    out(f"        minEpochs: {p.cascade_min_out_epochs}")
    out("      },")
    out("      candidates: {")
    out(f"        count: {network.cascade_num_candidates},")
    out(f"        groups: {p.cascade_num_candidate_groups},")
    out(f"        trainingLimit: {_f(p.cascade_candidate_limit)},")
    out(f"        changeFraction: {_f(p.cascade_candidate_change_fraction)},")
    out(f"        stagnationEpochs: {p.cascade_candidate_stagnation_epochs},")
    out(f"        maxEpochs: {p.cascade_max_cand_epochs},")
    out(f"        minEpochs: {p.cascade_min_cand_epochs}")
    out("      },")
    out(f"      weightMultiplier: {_f(p.cascade_weight_multiplier)},")
    out("      activationParams: {")
    functions = ','.join(
        f'"{encode(ActivationFunc, f)}"' for f in p.cascade_activation_functions
    )
    steepnesses = ','.join(_f(s) for s in p.cascade_activation_steepnesses)
    out(f"        functions:[{functions}],")
    out(f"        steepnesses:[{steepnesses}]")
    out("      }")
    out("    }")
    out("  }")
    out("}")

    return '\n'.join(lines) + '\n'
