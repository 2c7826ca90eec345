"""Adaptive condition-polling waits for browser automation."""

from .adaptive import AdaptiveTimeoutPolicy, ReliabilityTuning, update_reliability
from .composite import ActivitySample, FallbackChain, IdleCondition, StabilityCondition, Strategy, StrategyChain
from .conditions import NOT_YET, NotYetSatisfied, PermanentFailure, Satisfied
from .engine import WaitEngine, wait_for
from .errors import ConfigFileError, ConfigurationError, WaitError, WaitFailedError
from .network import NetworkProfile, StaticNetworkProvider, get_profile, scaling_factor
from .outcome import FailureKind, WaitOutcome
from .policy import PollPolicy

__all__ = [
    "ActivitySample",
    "AdaptiveTimeoutPolicy",
    "ConfigFileError",
    "ConfigurationError",
    "FailureKind",
    "FallbackChain",
    "IdleCondition",
    "NOT_YET",
    "NetworkProfile",
    "NotYetSatisfied",
    "PermanentFailure",
    "PollPolicy",
    "ReliabilityTuning",
    "Satisfied",
    "StabilityCondition",
    "StaticNetworkProvider",
    "Strategy",
    "StrategyChain",
    "WaitEngine",
    "WaitError",
    "WaitFailedError",
    "WaitOutcome",
    "get_profile",
    "scaling_factor",
    "update_reliability",
    "wait_for",
]
