"""
chat-probe: end-to-end check of a streaming chat client against a local provider.
"""

from chat_probe.accumulator import Failure, ResponseAccumulator, Success, accumulate
from chat_probe.orchestrator import DiscoveryEmpty, ProbeReport, ProbeSettings, run_probe

__all__ = [
    "DiscoveryEmpty",
    "Failure",
    "ProbeReport",
    "ProbeSettings",
    "ResponseAccumulator",
    "Success",
    "accumulate",
    "run_probe",
]
