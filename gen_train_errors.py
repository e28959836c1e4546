"""
Exceptions raised by the spike train simulator.
"""


class GenTrainError(Exception):
    """Base class for simulator errors."""


class ConfigurationError(GenTrainError, ValueError):
    """Malformed options or inputs."""


class SamplingError(GenTrainError, ValueError):
    """More picks without replacement than the population holds."""
