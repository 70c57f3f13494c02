"""
test_network.py
~~~~~~~~~~~~~~~

Unit tests for the feed-forward network runtime.
"""

import pytest
import os
import sys

import numpy as np

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fannc.connections import Connection
from fannc.enums import (
    ActivationFunc,
    ErrorFunc,
    NetworkType,
    StopFunc,
    TrainingAlgorithm,
)
from fannc.errors import DimensionError
from fannc.network import (
    DEFAULT_ACTIVATION,
    Network,
    activate,
    create_shortcut,
    create_sparse,
    create_standard,
)
from fannc.training_data import TrainingData


@pytest.fixture
def standard_network():
    """Create a 2-3-1 fully connected network."""
    return create_standard([2, 3, 1], seed=1)


@pytest.fixture
def linear_network():
    """
    Create a 1-1 network computing 2 * x + 0.5.

    Neuron 0 is the input, 1 the input bias and 2 the output.
    """
    net = create_standard([1, 1], seed=1)
    net.set_activation_function_output(ActivationFunc.FANN_LINEAR)
    net.set_activation_steepness_output(1.0)
    net.set_weight(0, 2, 2.0)
    net.set_weight(1, 2, 0.5)
    return net


@pytest.fixture
def linear_data():
    """Create samples of y = 0.5 * x."""
    xs = np.linspace(-1.0, 1.0, 9).reshape(-1, 1)
    return TrainingData(xs, 0.5 * xs)


@pytest.mark.unit
class TestTopology:
    """Test the construction of each network type."""

    def test_standard_layers(self, standard_network):
        """Test layer and bias arrays of a layered network."""
        assert standard_network.get_layer_array() == [2, 3, 1]
        assert standard_network.get_bias_array() == [1, 1, 0]
        assert standard_network.total_neurons == 8

    def test_standard_connections(self, standard_network):
        """Test that every neuron feeds every neuron of the next layer."""
        assert standard_network.total_connections == 3 * 3 + 4 * 1
        pairs = {(f, t) for f, t, _ in standard_network.get_connection_array()}
        assert (2, 3) in pairs    # input bias to first hidden neuron
        assert (6, 7) in pairs    # hidden bias to output neuron
        assert (0, 7) not in pairs

    def test_standard_weights_in_default_range(self, standard_network):
        """Test that initial weights lie within [-0.1, 0.1]."""
        assert np.all(np.abs(standard_network.weights) <= 0.1)

    def test_connection_order(self, standard_network):
        """Test that connections are sorted by destination then source."""
        pairs = [(t, f) for f, t, _ in standard_network.get_connection_array()]
        assert pairs == sorted(pairs)

    def test_shortcut_network(self):
        """Test that shortcut networks connect all earlier layers."""
        net = create_shortcut([2, 3, 1], seed=1)

        assert net.network_type == NetworkType.FANN_NETTYPE_SHORTCUT
        assert net.get_bias_array() == [1, 0, 0]
        assert net.total_connections == 3 * 3 + 6 * 1
        pairs = {(f, t) for f, t, _ in net.get_connection_array()}
        assert (0, 6) in pairs

    def test_sparse_full_rate_matches_standard(self, standard_network):
        """Test that a rate of 1 yields a fully connected network."""
        net = create_sparse(1.0, [2, 3, 1], seed=1)
        assert net.total_connections == standard_network.total_connections

    def test_sparse_keeps_every_neuron_connected(self):
        """Test that a rate of 0 still feeds and uses every neuron."""
        net = create_sparse(0.0, [4, 5, 2], seed=3)
        pairs = [(f, t) for f, t, _ in net.get_connection_array()]
        full = create_standard([4, 5, 2]).total_connections

        assert len(pairs) < full
        for layer in range(1, net.num_layers):
            for neuron in net.layer_neurons(layer):
                sources = {f for f, t in pairs if t == neuron}
                assert net.bias_index(layer - 1) in sources
                assert len(sources) >= 2
        for neuron in net.layer_neurons(1):
            assert any(f == neuron for f, _ in pairs)

    def test_same_seed_same_weights(self):
        """Test that a seed makes weight initialization reproducible."""
        a = create_standard([3, 2], seed=42)
        b = create_standard([3, 2], seed=42)
        assert np.array_equal(a.weights, b.weights)

    def test_invalid_layers(self):
        """Test that degenerate topologies are rejected."""
        with pytest.raises(ValueError):
            Network([3])
        with pytest.raises(ValueError):
            Network([2, 0, 1])


@pytest.mark.unit
class TestWeights:
    """Test weight access and initialization."""

    def test_set_weight_existing(self, standard_network):
        """Test that an existing connection is updated."""
        assert standard_network.set_weight(0, 3, 0.25) is True
        assert (0, 3, 0.25) in standard_network.get_connection_array()

    def test_set_weight_missing_connection(self, standard_network):
        """Test that a nonexistent connection is ignored."""
        before = standard_network.get_connection_array()

        assert standard_network.set_weight(0, 7, 1.0) is False
        assert standard_network.set_weight(99, 100, 1.0) is False
        assert standard_network.get_connection_array() == before

    def test_set_weight_array_counts_updates(self, standard_network):
        """Test that only existing connections are counted."""
        updated = standard_network.set_weight_array([
            Connection(0, 3, 1.0),
            Connection(3, 7, 2.0),
            Connection(7, 0, 3.0),
        ])
        assert updated == 2

    def test_randomize_range(self, standard_network):
        """Test that randomization honours the requested range."""
        standard_network.randomize_weights(0.5, 0.6)
        assert np.all(standard_network.weights >= 0.5)
        assert np.all(standard_network.weights <= 0.6)

    def test_init_weights(self, standard_network):
        """Test Widrow-Nguyen ranges for bias and regular connections."""
        data = TrainingData([[0, 0], [0, 1], [1, 0], [1, 1]],
                            [[0], [1], [1], [0]])
        standard_network.init_weights(data)

        scale = (0.7 * 3) ** (1.0 / 2)
        from_bias = standard_network.is_bias[standard_network.conn_from]
        weights = standard_network.weights
        assert np.all(np.abs(weights) <= scale)
        assert np.all(weights[~from_bias] >= 0.0)

    def test_init_weights_dimension_mismatch(self, standard_network):
        """Test that data of the wrong shape is rejected."""
        with pytest.raises(DimensionError):
            standard_network.init_weights(TrainingData([[0, 0, 0]], [[1]]))


@pytest.mark.unit
class TestActivation:
    """Test activation functions and their configuration."""

    def test_default_activation(self, standard_network):
        """Test the default activation of hidden and output neurons."""
        assert standard_network.get_activation_function(1, 0) == DEFAULT_ACTIVATION
        assert standard_network.get_activation_steepness(2, 0) == 0.5

    def test_activation_values(self):
        """Test a few reference values of the activation functions."""
        x = np.array([0.0])
        assert activate(ActivationFunc.FANN_SIGMOID, x)[0] == pytest.approx(0.5)
        assert activate(ActivationFunc.FANN_SIGMOID_SYMMETRIC, x)[0] == pytest.approx(0.0)
        assert activate(ActivationFunc.FANN_GAUSSIAN, x)[0] == pytest.approx(1.0)
        assert activate(ActivationFunc.FANN_THRESHOLD, np.array([-0.1]))[0] == 0.0
        assert activate(ActivationFunc.FANN_LINEAR_PIECE, np.array([2.0]))[0] == 1.0

    def test_hidden_setter_leaves_output(self, standard_network):
        """Test that the hidden setter only touches hidden neurons."""
        standard_network.set_activation_function_hidden(ActivationFunc.FANN_ELLIOT)

        for neuron in range(3):
            assert (standard_network.get_activation_function(1, neuron)
                    == ActivationFunc.FANN_ELLIOT)
        assert standard_network.get_activation_function(2, 0) == DEFAULT_ACTIVATION

    def test_per_neuron_setter(self, standard_network):
        """Test that a single neuron can be configured."""
        assert standard_network.set_activation_function(
            ActivationFunc.FANN_COS, 1, 2) is True
        assert standard_network.get_activation_function(1, 2) == ActivationFunc.FANN_COS
        assert standard_network.get_activation_function(1, 1) == DEFAULT_ACTIVATION

    @pytest.mark.parametrize('layer, neuron', [(0, 0), (1, 3), (3, 0), (1, -1)])
    def test_per_neuron_setter_out_of_range(self, standard_network, layer, neuron):
        """Test that coordinates outside the network are ignored."""
        assert standard_network.set_activation_steepness(0.9, layer, neuron) is False
        assert standard_network.set_activation_function(
            ActivationFunc.FANN_LINEAR, layer, neuron) is False


@pytest.mark.unit
class TestRunning:
    """Test execution and error measurement."""

    def test_run_known_weights(self, linear_network):
        """Test the output of a network with fixed weights."""
        assert linear_network.run([3.0])[0] == pytest.approx(6.5)

    def test_run_dimension_mismatch(self, standard_network):
        """Test that a wrong input count raises DimensionError."""
        with pytest.raises(DimensionError) as excinfo:
            standard_network.run([1.0])
        assert str(excinfo.value) == (
            "Input dimension error. Expected 2 inputs but 1 were supplied"
        )

    def test_test_data_exact_outputs(self, linear_network):
        """Test that matching targets give an MSE of zero."""
        data = TrainingData([[3.0], [-1.0]], [[6.5], [-1.5]])
        assert linear_network.test_data(data) == pytest.approx(0.0)

    def test_test_data_mse(self, linear_network):
        """Test the MSE for a known error."""
        data = TrainingData([[3.0]], [[7.5]])
        assert linear_network.test_data(data) == pytest.approx(1.0)

    def test_bit_fail(self, linear_network):
        """Test that outputs off by more than the limit count as failures."""
        linear_network.set_parameter('bit_fail_limit', 0.5)
        data = TrainingData([[3.0], [3.0]], [[6.6], [7.5]])

        linear_network.test_data(data)

        assert linear_network.bit_fail == 1

    def test_destroyed_network(self, linear_network):
        """Test that a destroyed network can no longer run."""
        linear_network.destroy()
        with pytest.raises(RuntimeError):
            linear_network.run([1.0])


@pytest.mark.unit
class TestParameters:
    """Test hyperparameter access."""

    def test_defaults(self, standard_network):
        """Test a sample of the default hyperparameters."""
        params = standard_network.params
        assert params.training_algorithm == TrainingAlgorithm.FANN_TRAIN_RPROP
        assert params.learning_rate == pytest.approx(0.7)
        assert params.bit_fail_limit == pytest.approx(0.35)
        assert standard_network.cascade_num_candidates == 10 * 4 * 2

    def test_set_parameter_converts(self, standard_network):
        """Test that values are converted to the parameter's type."""
        standard_network.set_parameter('cascade_max_out_epochs', 12.0)
        assert standard_network.get_parameter('cascade_max_out_epochs') == 12
        assert isinstance(standard_network.params.cascade_max_out_epochs, int)

    def test_set_unknown_parameter(self, standard_network):
        """Test that unknown parameter names raise KeyError."""
        with pytest.raises(KeyError):
            standard_network.set_parameter('no_such_parameter', 1)

    def test_cascade_candidates_follow_lists(self, standard_network):
        """Test that the candidate count tracks the cascade lists."""
        standard_network.set_parameter('cascade_activation_functions',
                                       [ActivationFunc.FANN_SIGMOID])
        standard_network.set_parameter('cascade_activation_steepnesses',
                                       [0.5, 1.0])
        assert standard_network.cascade_num_candidates == 1 * 2 * 2


@pytest.mark.unit
class TestTraining:
    """Test the training loop and its progress callback."""

    @pytest.mark.parametrize('algorithm', list(TrainingAlgorithm))
    def test_training_reduces_error(self, linear_data, algorithm):
        """Test that every algorithm lowers the MSE on a linear problem."""
        net = create_standard([1, 1], seed=5)
        net.set_activation_function_output(ActivationFunc.FANN_LINEAR)
        net.set_parameter('training_algorithm', algorithm)
        net.set_parameter('train_error_function', ErrorFunc.FANN_ERRORFUNC_LINEAR)
        net.set_parameter('learning_rate', 0.1)
        before = net.test_data(linear_data)

        net.train_on_data(linear_data, 50, 0, 0.0)

        assert net.test_data(linear_data) < before

    def test_report_epochs(self, linear_network, linear_data):
        """Test that reports happen on epoch 1, every period and the last."""
        epochs = []

        def callback(net, epoch, desired_error):
            epochs.append(epoch)
            return True

        ran = linear_network.train_on_data(linear_data, 10, 3, -1.0, callback)

        assert ran == 10
        assert epochs == [1, 3, 6, 9, 10]

    def test_no_reports_when_period_zero(self, linear_network, linear_data):
        """Test that a report period of 0 disables the callback."""
        calls = []
        linear_network.train_on_data(linear_data, 5, 0, -1.0,
                                     lambda *args: calls.append(args) or True)
        assert calls == []

    def test_callback_can_stop_training(self, linear_network, linear_data):
        """Test that a False return from the callback ends training."""
        ran = linear_network.train_on_data(linear_data, 100, 1, -1.0,
                                           lambda *args: False)
        assert ran == 1

    def test_stops_at_desired_error(self, linear_data):
        """Test that training stops once the target is reached."""
        net = create_standard([1, 1], seed=5)
        net.set_parameter('train_stop_function', StopFunc.FANN_STOPFUNC_BIT)
        net.set_parameter('bit_fail_limit', 10.0)

        assert net.train_on_data(linear_data, 100, 0, 0) == 1

    def test_training_dimension_mismatch(self, standard_network, linear_data):
        """Test that data of the wrong shape is rejected."""
        with pytest.raises(DimensionError):
            standard_network.train_on_data(linear_data, 1, 0, 0.0)


@pytest.mark.unit
class TestSerialization:
    """Test conversion to and from plain dictionaries."""

    def test_round_trip(self, standard_network):
        """Test that weights, activations and parameters survive."""
        standard_network.set_activation_function(ActivationFunc.FANN_SIN, 1, 1)
        standard_network.set_parameter('training_algorithm',
                                       TrainingAlgorithm.FANN_TRAIN_BATCH)
        standard_network.set_parameter('learning_momentum', 0.3)

        restored = Network.from_dict(standard_network.to_dict())

        assert restored.get_layer_array() == [2, 3, 1]
        assert (restored.get_connection_array()
                == standard_network.get_connection_array())
        assert restored.get_activation_function(1, 1) == ActivationFunc.FANN_SIN
        assert restored.params == standard_network.params

    def test_enums_stored_by_name(self, standard_network):
        """Test that enumerations are written as canonical names."""
        data = standard_network.to_dict()
        assert data['network_type'] == 'FANN_NETTYPE_LAYER'
        assert data['training']['training_algorithm'] == 'FANN_TRAIN_RPROP'
        assert data['activation_functions'][3] == 'FANN_SIGMOID_STEPWISE'

    def test_rejects_backward_connection(self, standard_network):
        """Test that a connection into an earlier layer is rejected."""
        data = standard_network.to_dict()
        data['connections'].append([7, 0, 1.0])
        with pytest.raises(ValueError):
            Network.from_dict(data)

    def test_rejects_wrong_neuron_count(self, standard_network):
        """Test that the per-neuron lists must match the topology."""
        data = standard_network.to_dict()
        data['activation_functions'] = data['activation_functions'][:-1]
        with pytest.raises(ValueError):
            Network.from_dict(data)
