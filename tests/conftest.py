# tests/conftest.py
import pytest
import numpy as np

from amsim_core import (
    Network, SimulationConfig, SimulationContext, TransientIntegrator,
    AcrossSource, Resistor, Capacitor, VoltageSource,
)
from amsim_core.components import PulseWaveform


# Helper to solve the quiescent point of a network and return the integrator
def quiescent(network: Network, config: SimulationConfig = None):
    integrator = TransientIntegrator(SimulationContext.build(network, config or SimulationConfig(tstop=1.0)))
    return integrator, integrator.solve_quiescent()


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def divider_network():
    """10 V across two 1 kohm resistors in series; node 'mid' sits at 5 V."""
    net = Network()
    net.add(VoltageSource("v1", {"dc_value": "10 V"}), p="in", n="gnd")
    net.add(Resistor("r1", {"resistance": "1 kohm"}), p="in", n="mid")
    net.add(Resistor("r2", {"resistance": "1 kohm"}), p="mid", n="gnd")
    return net


@pytest.fixture
def rc_step_network():
    """A 1 V ideal step at t = 1 ms into R = 1 kohm, C = 1 uF (tau = 1 ms)."""
    net = Network()
    step = PulseWaveform(initial=0.0, pulse=1.0, delay=1.0e-3, width=1.0, period=2.0)
    net.add(AcrossSource("vs", waveform=step), p="in", n="gnd")
    net.add(Resistor("r", {"resistance": 1.0e3}), p="in", n="out")
    net.add(Capacitor("c", {"capacitance": 1.0e-6}), p="out", n="gnd")
    return net
