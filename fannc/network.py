"""
network.py
~~~~~~~~~~

Feed-forward neural network runtime.

A network is a sequence of layers of neurons joined by weighted
connections. Neurons are numbered globally, layer by layer, with the
bias neuron (constant output 1) last in its layer. Layered networks have
a bias neuron in every layer except the output layer; shortcut networks
only have one in the input layer, and every neuron is connected to all
neurons of all earlier layers.

Supports the incremental, batch, RPROP, QuickProp and SARProp training
algorithms. Cascade-correlation parameters are stored and reported but
cascade training itself is not implemented.
"""

import math
import logging
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from fannc.enums import (
    SYMMETRIC_FUNCS,
    ActivationFunc,
    ErrorFunc,
    NetworkType,
    StopFunc,
    TrainingAlgorithm,
    decode,
)
from fannc.errors import DimensionError

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_ACTIVATION = ActivationFunc.FANN_SIGMOID_STEPWISE
DEFAULT_STEEPNESS = 0.5
DEFAULT_MIN_WEIGHT = -0.1
DEFAULT_MAX_WEIGHT = 0.1

# Weights are kept within this magnitude by the adaptive algorithms
MAX_WEIGHT = 1500.0
# Steepness-scaled sums are clipped to keep the exponentials finite
MAX_SUM = 150.0

DEFAULT_CASCADE_FUNCS = (
    ActivationFunc.FANN_SIGMOID,
    ActivationFunc.FANN_SIGMOID_SYMMETRIC,
    ActivationFunc.FANN_GAUSSIAN,
    ActivationFunc.FANN_GAUSSIAN_SYMMETRIC,
    ActivationFunc.FANN_ELLIOT,
    ActivationFunc.FANN_ELLIOT_SYMMETRIC,
    ActivationFunc.FANN_SIN_SYMMETRIC,
    ActivationFunc.FANN_COS_SYMMETRIC,
    ActivationFunc.FANN_SIN,
    ActivationFunc.FANN_COS,
)
DEFAULT_CASCADE_STEEPNESSES = (0.25, 0.5, 0.75, 1.0)

_SYMMETRIC_ORDINALS = np.array(sorted(int(f) for f in SYMMETRIC_FUNCS))

# Signature of the progress callback: (network, epoch, desired_error) -> go on
ProgressCallback = Callable[['Network', int, float], bool]


@dataclass
class TrainingParameters:
    """Every training hyperparameter, with the runtime defaults."""

    training_algorithm: TrainingAlgorithm = TrainingAlgorithm.FANN_TRAIN_RPROP
    train_error_function: ErrorFunc = ErrorFunc.FANN_ERRORFUNC_TANH
    train_stop_function: StopFunc = StopFunc.FANN_STOPFUNC_MSE
    bit_fail_limit: float = 0.35
    learning_rate: float = 0.7
    learning_momentum: float = 0.0
    quickprop_decay: float = -0.0001
    quickprop_mu: float = 1.75
    rprop_increase_factor: float = 1.2
    rprop_decrease_factor: float = 0.5
    rprop_delta_min: float = 0.0
    rprop_delta_max: float = 50.0
    rprop_delta_zero: float = 0.1
    sarprop_weight_decay_shift: float = -6.644
    sarprop_step_error_threshold_factor: float = 0.1
    sarprop_step_error_shift: float = 1.385
    sarprop_temperature: float = 0.015
    cascade_output_change_fraction: float = 0.01
    cascade_output_stagnation_epochs: int = 12
    cascade_max_out_epochs: int = 150
    cascade_min_out_epochs: int = 50
    cascade_num_candidate_groups: int = 2
    cascade_candidate_limit: float = 1000.0
    cascade_candidate_change_fraction: float = 0.01
    cascade_candidate_stagnation_epochs: int = 12
    cascade_max_cand_epochs: int = 150
    cascade_min_cand_epochs: int = 50
    cascade_weight_multiplier: float = 0.4
    cascade_activation_functions: List[ActivationFunc] = field(
        default_factory=lambda: list(DEFAULT_CASCADE_FUNCS)
    )
    cascade_activation_steepnesses: List[float] = field(
        default_factory=lambda: list(DEFAULT_CASCADE_STEEPNESSES)
    )


_PARAMETER_TYPES = {f.name: f.type for f in fields(TrainingParameters)}


# ============================================================================
# ACTIVATION FUNCTIONS
# ============================================================================

def activate(func: ActivationFunc, x: np.ndarray) -> np.ndarray:
    """
    Apply an activation function to steepness-scaled sums.

    The stepwise variants are computed exactly rather than by their
    piecewise linear approximation.
    """
    if func == ActivationFunc.FANN_LINEAR:
        return x.copy()
    if func == ActivationFunc.FANN_THRESHOLD:
        return np.where(x < 0, 0.0, 1.0)
    if func == ActivationFunc.FANN_THRESHOLD_SYMMETRIC:
        return np.where(x < 0, -1.0, 1.0)
    if func in (ActivationFunc.FANN_SIGMOID,
                ActivationFunc.FANN_SIGMOID_STEPWISE):
        return 1.0 / (1.0 + np.exp(-2.0 * x))
    if func in (ActivationFunc.FANN_SIGMOID_SYMMETRIC,
                ActivationFunc.FANN_SIGMOID_SYMMETRIC_STEPWISE):
        return 2.0 / (1.0 + np.exp(-2.0 * x)) - 1.0
    if func in (ActivationFunc.FANN_GAUSSIAN,
                ActivationFunc.FANN_GAUSSIAN_STEPWISE):
        return np.exp(-x * x)
    if func == ActivationFunc.FANN_GAUSSIAN_SYMMETRIC:
        return 2.0 * np.exp(-x * x) - 1.0
    if func == ActivationFunc.FANN_ELLIOT:
        return (x / 2.0) / (1.0 + np.abs(x)) + 0.5
    if func == ActivationFunc.FANN_ELLIOT_SYMMETRIC:
        return x / (1.0 + np.abs(x))
    if func == ActivationFunc.FANN_LINEAR_PIECE:
        return np.clip(x, 0.0, 1.0)
    if func == ActivationFunc.FANN_LINEAR_PIECE_SYMMETRIC:
        return np.clip(x, -1.0, 1.0)
    if func == ActivationFunc.FANN_SIN_SYMMETRIC:
        return np.sin(x)
    if func == ActivationFunc.FANN_COS_SYMMETRIC:
        return np.cos(x)
    if func == ActivationFunc.FANN_SIN:
        return np.sin(x) / 2.0 + 0.5
    if func == ActivationFunc.FANN_COS:
        return np.cos(x) / 2.0 + 0.5
    raise ValueError(f"Unsupported activation function: {func}")


def derive(
    func: ActivationFunc,
    steepness: np.ndarray,
    y: np.ndarray,
    x: np.ndarray
) -> np.ndarray:
    """
    Derivative of an activation with respect to the unscaled sum.

    Args:
        func: Activation function
        steepness: Steepness of each neuron
        y: Neuron outputs
        x: Steepness-scaled sums
    """
    if func in (ActivationFunc.FANN_LINEAR,
                ActivationFunc.FANN_LINEAR_PIECE,
                ActivationFunc.FANN_LINEAR_PIECE_SYMMETRIC):
        return steepness * np.ones_like(y)
    if func in (ActivationFunc.FANN_SIGMOID,
                ActivationFunc.FANN_SIGMOID_STEPWISE):
        y = np.clip(y, 0.01, 0.99)
        return 2.0 * steepness * y * (1.0 - y)
    if func in (ActivationFunc.FANN_SIGMOID_SYMMETRIC,
                ActivationFunc.FANN_SIGMOID_SYMMETRIC_STEPWISE):
        y = np.clip(y, -0.98, 0.98)
        return steepness * (1.0 - y * y)
    if func in (ActivationFunc.FANN_GAUSSIAN,
                ActivationFunc.FANN_GAUSSIAN_STEPWISE):
        return -2.0 * x * y * steepness
    if func == ActivationFunc.FANN_GAUSSIAN_SYMMETRIC:
        return -2.0 * x * (y + 1.0) * steepness
    if func == ActivationFunc.FANN_ELLIOT:
        return steepness / (2.0 * (1.0 + np.abs(x)) ** 2)
    if func == ActivationFunc.FANN_ELLIOT_SYMMETRIC:
        return steepness / (1.0 + np.abs(x)) ** 2
    if func == ActivationFunc.FANN_SIN_SYMMETRIC:
        return steepness * np.cos(x)
    if func == ActivationFunc.FANN_COS_SYMMETRIC:
        return -steepness * np.sin(x)
    if func == ActivationFunc.FANN_SIN:
        return steepness * np.cos(x) / 2.0
    if func == ActivationFunc.FANN_COS:
        return -steepness * np.sin(x) / 2.0
    # Threshold functions are not differentiable
    return np.zeros_like(y)


# ============================================================================
# NETWORK
# ============================================================================

class Network:
    """
    A feed-forward network with per-neuron activation functions.

    Use ``create_standard``, ``create_sparse`` or ``create_shortcut`` to
    build a new one, or ``from_dict`` to restore a saved one.

    Args:
        layers: Neuron count of every layer, input layer first
        network_type: Layered or shortcut topology
        connection_rate: Fraction of possible connections present
        seed: Seed for the weight initializer
    """

    def __init__(
        self,
        layers: Sequence[int],
        network_type: NetworkType = NetworkType.FANN_NETTYPE_LAYER,
        connection_rate: float = 1.0,
        seed: Optional[int] = None
    ):
        layer_sizes = [int(n) for n in layers]
        if len(layer_sizes) < 2:
            raise ValueError("A network needs at least 2 layers")
        if any(n < 1 for n in layer_sizes):
            raise ValueError(f"Layer sizes must be positive, got {layer_sizes}")

        self.layer_sizes = layer_sizes
        self.network_type = NetworkType(network_type)
        self.connection_rate = float(connection_rate)
        self.params = TrainingParameters()
        self.destroyed = False
        self._rng = np.random.default_rng(seed)

        num_layers = len(layer_sizes)
        if self.network_type == NetworkType.FANN_NETTYPE_SHORTCUT:
            self.biases = [1] + [0] * (num_layers - 1)
        else:
            self.biases = [1] * (num_layers - 1) + [0]

        self.layer_first = []
        index = 0
        for size, bias in zip(layer_sizes, self.biases):
            self.layer_first.append(index)
            index += size + bias
        self.total_neurons = index

        self.is_bias = np.zeros(self.total_neurons, dtype=bool)
        for layer, bias in enumerate(self.biases):
            if bias:
                self.is_bias[self.bias_index(layer)] = True

        self.activation = np.full(self.total_neurons, int(DEFAULT_ACTIVATION),
                                  dtype=np.int64)
        self.steepness = np.full(self.total_neurons, DEFAULT_STEEPNESS)

        self._set_connections([], [], [])
        self.reset_mse()

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    @property
    def num_layers(self) -> int:
        return len(self.layer_sizes)

    @property
    def num_input(self) -> int:
        return self.layer_sizes[0]

    @property
    def num_output(self) -> int:
        return self.layer_sizes[-1]

    @property
    def total_connections(self) -> int:
        return len(self.weights)

    def neuron_index(self, layer: int, neuron: int) -> int:
        return self.layer_first[layer] + neuron

    def bias_index(self, layer: int) -> int:
        return self.layer_first[layer] + self.layer_sizes[layer]

    def layer_neurons(self, layer: int) -> np.ndarray:
        """Global indices of the non-bias neurons of a layer."""
        first = self.layer_first[layer]
        return np.arange(first, first + self.layer_sizes[layer])

    def layer_sources(self, layer: int) -> List[int]:
        """Global indices of a layer's neurons including its bias neuron."""
        first = self.layer_first[layer]
        return list(range(first,
                          first + self.layer_sizes[layer] + self.biases[layer]))

    def get_layer_array(self) -> List[int]:
        return list(self.layer_sizes)

    def get_bias_array(self) -> List[int]:
        return list(self.biases)

    def _set_connections(
        self,
        sources: Iterable[int],
        destinations: Iterable[int],
        weights: Iterable[float]
    ) -> None:
        """Install a connection list, stored destination-major."""
        sources = np.asarray(list(sources), dtype=np.int64)
        destinations = np.asarray(list(destinations), dtype=np.int64)
        weights = np.asarray(list(weights), dtype=np.float64)

        order = np.lexsort((sources, destinations))
        self.conn_from = sources[order]
        self.conn_to = destinations[order]
        self.weights = weights[order]
        self._index = {
            (int(f), int(t)): i
            for i, (f, t) in enumerate(zip(self.conn_from, self.conn_to))
        }

        # Connections feeding each layer form one contiguous slice
        self._slices = [(0, 0)]
        for layer in range(1, self.num_layers):
            first = self.layer_first[layer]
            last = first + self.layer_sizes[layer]
            self._slices.append((
                int(np.searchsorted(self.conn_to, first, side='left')),
                int(np.searchsorted(self.conn_to, last, side='left')),
            ))

        self._reset_train_state()

    # ------------------------------------------------------------------
    # Weights
    # ------------------------------------------------------------------

    def get_connection_array(self) -> List[Tuple[int, int, float]]:
        """Every connection as (from, to, weight), in storage order."""
        self._require_alive()
        return [
            (int(f), int(t), float(w))
            for f, t, w in zip(self.conn_from, self.conn_to, self.weights)
        ]

    def set_weight(self, from_neuron: int, to_neuron: int, weight: float) -> bool:
        """
        Set the weight of an existing connection.

        Returns:
            bool: False if the network has no such connection
        """
        self._require_alive()
        i = self._index.get((from_neuron, to_neuron))
        if i is None:
            logger.debug(
                f"No connection from {from_neuron} to {to_neuron}, ignored"
            )
            return False
        self.weights[i] = weight
        return True

    def set_weight_array(self, connections: Iterable[Any]) -> int:
        """
        Set weights from objects with from_neuron, to_neuron and weight.

        Returns:
            int: Number of connections actually updated
        """
        updated = 0
        for conn in connections:
            if self.set_weight(conn.from_neuron, conn.to_neuron, conn.weight):
                updated += 1
        return updated

    def randomize_weights(
        self,
        min_weight: float = DEFAULT_MIN_WEIGHT,
        max_weight: float = DEFAULT_MAX_WEIGHT
    ) -> None:
        """Draw every weight uniformly from [min_weight, max_weight)."""
        self._require_alive()
        self.weights = self._rng.uniform(min_weight, max_weight,
                                         size=self.total_connections)

    def init_weights(self, data) -> None:
        """
        Initialize weights from the range of the training inputs.

        Uses the Widrow-Nguyen scale factor: connections from bias neurons
        are drawn from [-scale, scale], all others from [0, scale].
        """
        self._require_alive()
        self._check_dimensions(data)
        smallest = float(np.min(data.inputs))
        largest = float(np.max(data.inputs))
        span = largest - smallest
        if span == 0:
            span = 1.0
        num_hidden = sum(self.layer_sizes[1:-1])
        scale = (0.7 * num_hidden) ** (1.0 / self.num_input) / span
        logger.debug(f"Initializing weights with scale factor {scale}")

        from_bias = self.is_bias[self.conn_from]
        low = np.where(from_bias, -scale, 0.0)
        self.weights = self._rng.uniform(low, scale)

    # ------------------------------------------------------------------
    # Activation functions
    # ------------------------------------------------------------------

    def _valid_neuron(self, layer: int, neuron: int) -> bool:
        return (1 <= layer < self.num_layers
                and 0 <= neuron < self.layer_sizes[layer])

    def _hidden_neurons(self) -> np.ndarray:
        if self.num_layers <= 2:
            return np.array([], dtype=np.int64)
        return np.concatenate([
            self.layer_neurons(layer) for layer in range(1, self.num_layers - 1)
        ])

    def set_activation_function_hidden(self, func: ActivationFunc) -> None:
        self.activation[self._hidden_neurons()] = int(func)

    def set_activation_function_output(self, func: ActivationFunc) -> None:
        self.activation[self.layer_neurons(self.num_layers - 1)] = int(func)

    def set_activation_steepness_hidden(self, steepness: float) -> None:
        self.steepness[self._hidden_neurons()] = steepness

    def set_activation_steepness_output(self, steepness: float) -> None:
        self.steepness[self.layer_neurons(self.num_layers - 1)] = steepness

    def set_activation_function(
        self,
        func: ActivationFunc,
        layer: int,
        neuron: int
    ) -> bool:
        """
        Set the activation function of one neuron.

        Layer 1 is the first hidden layer. Coordinates outside the network
        are ignored.

        Returns:
            bool: False if the coordinates were ignored
        """
        if not self._valid_neuron(layer, neuron):
            logger.debug(f"No neuron {neuron} in layer {layer}, ignored")
            return False
        self.activation[self.neuron_index(layer, neuron)] = int(func)
        return True

    def set_activation_steepness(
        self,
        steepness: float,
        layer: int,
        neuron: int
    ) -> bool:
        """Set the steepness of one neuron; see set_activation_function."""
        if not self._valid_neuron(layer, neuron):
            logger.debug(f"No neuron {neuron} in layer {layer}, ignored")
            return False
        self.steepness[self.neuron_index(layer, neuron)] = steepness
        return True

    def get_activation_function(self, layer: int, neuron: int) -> ActivationFunc:
        return ActivationFunc(int(self.activation[self.neuron_index(layer, neuron)]))

    def get_activation_steepness(self, layer: int, neuron: int) -> float:
        return float(self.steepness[self.neuron_index(layer, neuron)])

    # ------------------------------------------------------------------
    # Hyperparameters
    # ------------------------------------------------------------------

    def get_parameter(self, name: str) -> Any:
        if name not in _PARAMETER_TYPES:
            raise KeyError(f"Unknown parameter: {name}")
        return getattr(self.params, name)

    def set_parameter(self, name: str, value: Any) -> None:
        """
        Set a hyperparameter by name, converting to the parameter's type.

        Raises:
            KeyError: If there is no such parameter
        """
        kind = _PARAMETER_TYPES.get(name)
        if kind is None:
            raise KeyError(f"Unknown parameter: {name}")
        if name == 'cascade_activation_functions':
            value = [ActivationFunc(f) for f in value]
        elif name == 'cascade_activation_steepnesses':
            value = [float(s) for s in value]
        else:
            value = kind(value)
        setattr(self.params, name, value)

    @property
    def cascade_num_candidates(self) -> int:
        return (len(self.params.cascade_activation_functions)
                * len(self.params.cascade_activation_steepnesses)
                * self.params.cascade_num_candidate_groups)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def _require_alive(self) -> None:
        if self.destroyed:
            raise RuntimeError("Network has been destroyed")

    def _activate_neurons(self, neurons: np.ndarray, x: np.ndarray) -> np.ndarray:
        out = np.empty_like(x)
        funcs = self.activation[neurons]
        for func in np.unique(funcs):
            mask = funcs == func
            out[mask] = activate(ActivationFunc(int(func)), x[mask])
        return out

    def _derive_neurons(
        self,
        neurons: np.ndarray,
        values: np.ndarray,
        sums: np.ndarray
    ) -> np.ndarray:
        out = np.empty(len(neurons))
        funcs = self.activation[neurons]
        for func in np.unique(funcs):
            mask = funcs == func
            selected = neurons[mask]
            out[mask] = derive(ActivationFunc(int(func)),
                               self.steepness[selected],
                               values[selected], sums[selected])
        return out

    def _forward(self, inputs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Propagate inputs; returns (outputs, scaled sums) of every neuron."""
        values = np.zeros(self.total_neurons)
        sums = np.zeros(self.total_neurons)
        values[self.layer_neurons(0)] = inputs
        values[self.is_bias] = 1.0

        for layer in range(1, self.num_layers):
            lo, hi = self._slices[layer]
            neurons = self.layer_neurons(layer)
            acc = np.bincount(
                self.conn_to[lo:hi] - self.layer_first[layer],
                weights=self.weights[lo:hi] * values[self.conn_from[lo:hi]],
                minlength=len(neurons)
            )
            x = np.clip(self.steepness[neurons] * acc, -MAX_SUM, MAX_SUM)
            sums[neurons] = x
            values[neurons] = self._activate_neurons(neurons, x)

        return values, sums

    def run(self, inputs: Sequence[float]) -> np.ndarray:
        """
        Compute the network's outputs for one input vector.

        Raises:
            DimensionError: If the input count does not match
        """
        self._require_alive()
        inputs = np.asarray(inputs, dtype=np.float64)
        if len(inputs) != self.num_input:
            raise DimensionError(
                f"Input dimension error. Expected {self.num_input} inputs "
                f"but {len(inputs)} were supplied"
            )
        values, _ = self._forward(inputs)
        return values[self.layer_neurons(self.num_layers - 1)].copy()

    # ------------------------------------------------------------------
    # Error measurement
    # ------------------------------------------------------------------

    def reset_mse(self) -> None:
        self._mse_value = 0.0
        self._num_mse = 0
        self.bit_fail = 0

    def get_mse(self) -> float:
        if self._num_mse == 0:
            return 0.0
        return self._mse_value / self._num_mse

    def _update_mse(self, values: np.ndarray, targets: np.ndarray) -> np.ndarray:
        """Accumulate the error of one sample; returns the output differences."""
        outputs = self.layer_neurons(self.num_layers - 1)
        diff = targets - values[outputs]
        symmetric = np.isin(self.activation[outputs], _SYMMETRIC_ORDINALS)
        diff = np.where(symmetric, diff / 2.0, diff)

        self._mse_value += float(np.sum(diff * diff))
        self._num_mse += len(outputs)
        self.bit_fail += int(np.sum(np.abs(diff) >= self.params.bit_fail_limit))
        return diff

    def _check_dimensions(self, data) -> None:
        if data.num_input != self.num_input or data.num_output != self.num_output:
            raise DimensionError(
                f"Data dimension error. Expected {self.num_input} inputs and "
                f"{self.num_output} outputs, but the data has "
                f"{data.num_input} inputs and {data.num_output} outputs"
            )

    def test_data(self, data) -> float:
        """
        Mean square error of the network over a data set.

        Raises:
            DimensionError: If the data does not match the network
        """
        self._require_alive()
        self._check_dimensions(data)
        self.reset_mse()
        for inputs, targets in data:
            values, _ = self._forward(inputs)
            self._update_mse(values, targets)
        return self.get_mse()

    def desired_error_reached(self, desired_error: float) -> bool:
        if self.params.train_stop_function == StopFunc.FANN_STOPFUNC_BIT:
            return self.bit_fail <= desired_error
        return self.get_mse() <= desired_error

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _reset_train_state(self) -> None:
        n = len(self.weights)
        if self.params.training_algorithm == TrainingAlgorithm.FANN_TRAIN_RPROP:
            self._prev_steps = np.full(n, self.params.rprop_delta_zero)
        else:
            self._prev_steps = np.zeros(n)
        self._prev_slopes = np.zeros(n)
        self._prev_deltas = np.zeros(n)
        self._sarprop_epoch = 0

    def _sample_errors(
        self,
        inputs: np.ndarray,
        targets: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Forward pass and backpropagation for one sample."""
        values, sums = self._forward(inputs)
        diff = self._update_mse(values, targets)

        if self.params.train_error_function == ErrorFunc.FANN_ERRORFUNC_TANH:
            limit = 0.9999999
            clipped = np.clip(diff, -limit, limit)
            diff = np.log((1.0 + clipped) / (1.0 - clipped))
            diff[clipped <= -limit] = -17.0
            diff[clipped >= limit] = 17.0

        errors = np.zeros(self.total_neurons)
        outputs = self.layer_neurons(self.num_layers - 1)
        errors[outputs] = self._derive_neurons(outputs, values, sums) * diff

        for layer in range(self.num_layers - 1, 0, -1):
            lo, hi = self._slices[layer]
            np.add.at(errors, self.conn_from[lo:hi],
                      self.weights[lo:hi] * errors[self.conn_to[lo:hi]])
            if layer - 1 >= 1:
                previous = self.layer_neurons(layer - 1)
                errors[previous] *= self._derive_neurons(previous, values, sums)

        return errors, values

    def _slopes(self, errors: np.ndarray, values: np.ndarray) -> np.ndarray:
        return errors[self.conn_to] * values[self.conn_from]

    def train_epoch(self, data) -> float:
        """
        Train one epoch with the configured algorithm.

        Returns:
            float: MSE measured during the epoch
        """
        self._require_alive()
        self.reset_mse()
        algorithm = self.params.training_algorithm

        if algorithm == TrainingAlgorithm.FANN_TRAIN_INCREMENTAL:
            for inputs, targets in data:
                errors, values = self._sample_errors(inputs, targets)
                delta = (self.params.learning_rate * self._slopes(errors, values)
                         + self.params.learning_momentum * self._prev_deltas)
                self.weights += delta
                self._prev_deltas = delta
            return self.get_mse()

        slopes = np.zeros(len(self.weights))
        for inputs, targets in data:
            errors, values = self._sample_errors(inputs, targets)
            slopes += self._slopes(errors, values)

        if algorithm == TrainingAlgorithm.FANN_TRAIN_BATCH:
            self.weights += slopes * self.params.learning_rate / data.num_data
        elif algorithm == TrainingAlgorithm.FANN_TRAIN_RPROP:
            self._update_rprop(slopes)
        elif algorithm == TrainingAlgorithm.FANN_TRAIN_QUICKPROP:
            self._update_quickprop(slopes, data.num_data)
        elif algorithm == TrainingAlgorithm.FANN_TRAIN_SARPROP:
            self._update_sarprop(slopes)
            self._sarprop_epoch += 1

        return self.get_mse()

    def _update_rprop(self, slopes: np.ndarray) -> None:
        p = self.params
        prev_steps = np.maximum(self._prev_steps, 0.0001)
        same_sign = self._prev_slopes * slopes

        next_steps = np.where(
            same_sign >= 0,
            np.minimum(prev_steps * p.rprop_increase_factor, p.rprop_delta_max),
            np.maximum(prev_steps * p.rprop_decrease_factor, p.rprop_delta_min)
        )
        slopes = np.where(same_sign < 0, 0.0, slopes)

        self.weights = np.clip(self.weights + np.sign(slopes) * next_steps,
                               -MAX_WEIGHT, MAX_WEIGHT)
        self._prev_steps = next_steps
        self._prev_slopes = slopes

    def _update_quickprop(self, slopes: np.ndarray, num_data: int) -> None:
        p = self.params
        epsilon = p.learning_rate / num_data
        mu = p.quickprop_mu
        shrink = mu / (1.0 + mu)

        slope = slopes + p.quickprop_decay * self.weights
        prev_step = self._prev_steps
        prev_slope = self._prev_slopes

        with np.errstate(divide='ignore', invalid='ignore'):
            quadratic = prev_step * slope / (prev_slope - slope)
        quadratic = np.where(np.isfinite(quadratic), quadratic, 0.0)

        rising = (np.where(slope > 0, epsilon * slope, 0.0)
                  + np.where(slope > shrink * prev_slope, mu * prev_step,
                             quadratic))
        falling = (np.where(slope < 0, epsilon * slope, 0.0)
                   + np.where(slope < shrink * prev_slope, mu * prev_step,
                              quadratic))
        next_step = np.where(prev_step > 0.001, rising,
                             np.where(prev_step < -0.001, falling,
                                      epsilon * slope))

        self.weights = np.clip(self.weights + next_step, -MAX_WEIGHT, MAX_WEIGHT)
        self._prev_steps = next_step
        self._prev_slopes = slope

    def _update_sarprop(self, slopes: np.ndarray) -> None:
        p = self.params
        epoch = self._sarprop_epoch
        mse = self.get_mse()
        rmse = math.sqrt(mse)
        decay = 2.0 ** (-p.sarprop_temperature * epoch
                        + p.sarprop_weight_decay_shift)
        noise = rmse * 2.0 ** (-p.sarprop_temperature * epoch
                               + p.sarprop_step_error_shift)

        prev_steps = np.maximum(self._prev_steps, 0.000001)
        slope = -slopes - self.weights * decay
        same_sign = self._prev_slopes * slope

        grown = np.minimum(prev_steps * p.rprop_increase_factor,
                           p.rprop_delta_max)
        jitter = self._rng.random(len(prev_steps))
        shrunk = np.where(
            prev_steps < p.sarprop_step_error_threshold_factor * mse,
            prev_steps * p.rprop_decrease_factor + jitter * noise,
            np.maximum(prev_steps * p.rprop_decrease_factor, 0.000001)
        )
        next_steps = np.where(same_sign > 0, grown,
                              np.where(same_sign < 0, shrunk, prev_steps))

        moved = np.where(slope < 0, next_steps, -next_steps)
        self.weights = np.clip(
            self.weights + np.where(same_sign < 0, 0.0, moved),
            -MAX_WEIGHT, MAX_WEIGHT
        )
        self._prev_steps = next_steps
        self._prev_slopes = np.where(same_sign < 0, 0.0, slope)

    def train_on_data(
        self,
        data,
        max_epochs: int,
        epochs_between_reports: int,
        desired_error: float,
        callback: Optional[ProgressCallback] = None
    ) -> int:
        """
        Train until the desired error is reached or max_epochs have run.

        Args:
            data: Training data set
            max_epochs: Upper bound on the number of epochs
            epochs_between_reports: Callback period; 0 disables reports
            desired_error: Stop criterion target (MSE or bit fail count)
            callback: Called as callback(network, epoch, desired_error);
                training stops early when it returns False

        Returns:
            int: Number of epochs run

        Raises:
            DimensionError: If the data does not match the network
        """
        self._require_alive()
        self._check_dimensions(data)
        self._reset_train_state()

        logger.info(
            f"Training {self.params.training_algorithm.name} for at most "
            f"{max_epochs} epochs, desired error {desired_error}"
        )

        epoch = 0
        for epoch in range(1, max_epochs + 1):
            self.train_epoch(data)
            reached = self.desired_error_reached(desired_error)

            if epochs_between_reports and callback is not None and (
                    epoch % epochs_between_reports == 0
                    or epoch == max_epochs or epoch == 1 or reached):
                if not callback(self, epoch, desired_error):
                    logger.info(f"Training stopped by callback at epoch {epoch}")
                    break

            if reached:
                logger.info(f"Desired error reached at epoch {epoch}")
                break

        return epoch

    # ------------------------------------------------------------------
    # Lifetime and serialization
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Release the network's arrays; the handle is unusable afterwards."""
        self.destroyed = True
        self.weights = None
        self.conn_from = None
        self.conn_to = None
        self._index = {}

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation of the whole network, enums by name."""
        self._require_alive()
        training = {}
        for name in _PARAMETER_TYPES:
            value = getattr(self.params, name)
            if isinstance(value, IntEnum):
                value = value.name
            elif name == 'cascade_activation_functions':
                value = [f.name for f in value]
            training[name] = value

        return {
            'network_type': self.network_type.name,
            'layers': self.layer_sizes,
            'connection_rate': self.connection_rate,
            'activation_functions': [
                ActivationFunc(int(f)).name for f in self.activation
            ],
            'activation_steepnesses': self.steepness,
            'connections': [
                [f, t, w] for f, t, w in self.get_connection_array()
            ],
            'training': training,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Network':
        """
        Rebuild a network from ``to_dict`` output.

        Raises:
            KeyError: If a required entry is missing
            ValueError: If entries are inconsistent with the topology
            UnknownNameError: If an enumeration name is unknown
        """
        net = cls(
            data['layers'],
            decode(NetworkType, data['network_type']),
            data['connection_rate']
        )

        funcs = [int(decode(ActivationFunc, name))
                 for name in data['activation_functions']]
        steepnesses = [float(s) for s in data['activation_steepnesses']]
        if len(funcs) != net.total_neurons or len(steepnesses) != net.total_neurons:
            raise ValueError(
                f"Expected {net.total_neurons} neuron entries, got "
                f"{len(funcs)} functions and {len(steepnesses)} steepnesses"
            )
        net.activation = np.array(funcs, dtype=np.int64)
        net.steepness = np.array(steepnesses, dtype=np.float64)

        layer_of = np.zeros(net.total_neurons, dtype=np.int64)
        for layer in range(net.num_layers):
            sources = net.layer_sources(layer)
            layer_of[sources[0]:sources[-1] + 1] = layer

        sources, destinations, weights = [], [], []
        for entry in data['connections']:
            from_neuron, to_neuron, weight = int(entry[0]), int(entry[1]), float(entry[2])
            for neuron in (from_neuron, to_neuron):
                if not 0 <= neuron < net.total_neurons:
                    raise ValueError(f"Neuron {neuron} out of range")
            if net.is_bias[to_neuron] or layer_of[from_neuron] >= layer_of[to_neuron]:
                raise ValueError(
                    f"Invalid connection from {from_neuron} to {to_neuron}"
                )
            sources.append(from_neuron)
            destinations.append(to_neuron)
            weights.append(weight)
        net._set_connections(sources, destinations, weights)

        training = data['training']
        if not isinstance(training, dict):
            raise ValueError(
                f"Training parameters must be an object, got "
                f"{type(training).__name__}"
            )
        for name, value in training.items():
            kind = _PARAMETER_TYPES.get(name)
            if kind is None:
                logger.warning(f"Ignoring unknown parameter '{name}'")
                continue
            if isinstance(kind, type) and issubclass(kind, IntEnum):
                value = decode(kind, value)
            elif name == 'cascade_activation_functions':
                value = [decode(ActivationFunc, f) for f in value]
            net.set_parameter(name, value)

        net._reset_train_state()
        return net


# ============================================================================
# CONSTRUCTION
# ============================================================================

def create_standard(layers: Sequence[int], seed: Optional[int] = None) -> Network:
    """
    Create a fully connected layered network.

    Every neuron, including the bias neuron, of a layer is connected to
    every non-bias neuron of the next layer.
    """
    net = Network(layers, NetworkType.FANN_NETTYPE_LAYER, 1.0, seed)
    sources, destinations = [], []
    for layer in range(1, net.num_layers):
        for dst in net.layer_neurons(layer):
            for src in net.layer_sources(layer - 1):
                sources.append(src)
                destinations.append(int(dst))
    net._set_connections(sources, destinations, np.zeros(len(sources)))
    net.randomize_weights()
    logger.debug(
        f"Created standard network {net.layer_sizes} with "
        f"{net.total_connections} connections"
    )
    return net


def create_sparse(
    connection_rate: float,
    layers: Sequence[int],
    seed: Optional[int] = None
) -> Network:
    """
    Create a layered network that is not fully connected.

    Every neuron keeps its bias connection and at least one other input,
    and every neuron feeds at least one neuron of the next layer. The
    remaining connections are chosen at random until the rate is met.

    Args:
        connection_rate: Fraction in [0, 1]; 1 equals create_standard
        layers: Neuron count of every layer
        seed: Seed for connection selection and weights
    """
    rate = min(max(float(connection_rate), 0.0), 1.0)
    net = Network(layers, NetworkType.FANN_NETTYPE_LAYER, rate, seed)
    rng = net._rng
    pairs = set()

    for layer in range(1, net.num_layers):
        previous = [int(n) for n in net.layer_neurons(layer - 1)]
        following = [int(n) for n in net.layer_neurons(layer)]
        bias = net.bias_index(layer - 1)

        layer_pairs = {(bias, dst) for dst in following}
        order = rng.permutation(len(following))
        for k, src in enumerate(previous):
            layer_pairs.add((src, following[order[k % len(following)]]))
        fed = {dst for src, dst in layer_pairs if src != bias}
        for dst in following:
            if dst not in fed:
                layer_pairs.add((previous[rng.integers(len(previous))], dst))

        wanted = max(max(len(previous), len(following)),
                     int(0.5 + rate * len(previous) * len(following)))
        wanted += len(following)
        candidates = [(src, dst) for dst in following for src in previous
                      if (src, dst) not in layer_pairs]
        missing = min(wanted - len(layer_pairs), len(candidates))
        if missing > 0:
            for i in rng.choice(len(candidates), size=missing, replace=False):
                layer_pairs.add(candidates[i])
        pairs |= layer_pairs

    sources = [src for src, _ in pairs]
    destinations = [dst for _, dst in pairs]
    net._set_connections(sources, destinations, np.zeros(len(pairs)))
    net.randomize_weights()
    logger.debug(
        f"Created sparse network {net.layer_sizes} at rate {rate} with "
        f"{net.total_connections} connections"
    )
    return net


def create_shortcut(layers: Sequence[int], seed: Optional[int] = None) -> Network:
    """
    Create a fully connected network with shortcut connections.

    Every neuron is connected to all neurons of all earlier layers,
    including the single bias neuron of the input layer.
    """
    net = Network(layers, NetworkType.FANN_NETTYPE_SHORTCUT, 1.0, seed)
    sources, destinations = [], []
    for layer in range(1, net.num_layers):
        earlier = [src for previous in range(layer)
                   for src in net.layer_sources(previous)]
        for dst in net.layer_neurons(layer):
            for src in earlier:
                sources.append(src)
                destinations.append(int(dst))
    net._set_connections(sources, destinations, np.zeros(len(sources)))
    net.randomize_weights()
    logger.debug(
        f"Created shortcut network {net.layer_sizes} with "
        f"{net.total_connections} connections"
    )
    return net
