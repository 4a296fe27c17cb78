# src/amsim_core/components/__init__.py
from .exceptions import (
    ModelError,
    ParameterDefinitionError,
    ParameterConstraintError,
    ModelDefinitionError,
    ModelEvaluationError,
    UnsupportedModeSelectorError,
)
from .parameters import ParameterSpec, REQUIRED, bind_parameters
from .capabilities import ModelCapability, Guard, IGuardProvider, IEventSource, provides
from .base import ModelBase, Evaluation, MODEL_REGISTRY, register_model
from .waveforms import (
    Waveform,
    ConstantWaveform,
    SineWaveform,
    PulseWaveform,
    RampWaveform,
    PiecewiseLinearWaveform,
    NoiseWaveform,
)
from .sources import AcrossSource, ThroughSource, VoltageSource
from .electrical import Resistor, Capacitor, OpAmp, OpAmpMode
from .mechanical import Stop, StopMode
from .solar import SolarPanel, SolarCurve, SolarSegment
from .thermal import (
    ThermalResistor,
    ThermalCapacitor,
    Thermistor,
    ThermistorMode,
    ThermoelectricCooler,
)

__all__ = [
    # Exceptions
    "ModelError", "ParameterDefinitionError", "ParameterConstraintError", "ModelDefinitionError",
    "ModelEvaluationError", "UnsupportedModeSelectorError",
    # Parameters
    "ParameterSpec", "REQUIRED", "bind_parameters",
    # Capability system
    "ModelCapability", "Guard", "IGuardProvider", "IEventSource", "provides",
    # Base class and registry
    "ModelBase", "Evaluation", "MODEL_REGISTRY", "register_model",
    # Waveforms
    "Waveform", "ConstantWaveform", "SineWaveform", "PulseWaveform", "RampWaveform",
    "PiecewiseLinearWaveform", "NoiseWaveform",
    # Device library
    "AcrossSource", "ThroughSource", "VoltageSource",
    "Resistor", "Capacitor", "OpAmp", "OpAmpMode",
    "Stop", "StopMode",
    "SolarPanel", "SolarCurve", "SolarSegment",
    "ThermalResistor", "ThermalCapacitor", "Thermistor", "ThermistorMode", "ThermoelectricCooler",
]
