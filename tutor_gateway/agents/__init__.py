"""
Request Agents for the Tutor Gateway

Agents:
    - SafetyClassifier: Deterministic prompt screening and canned refusals
    - TutorGateway: End-to-end request orchestration
"""

from tutor_gateway.agents.safety import SafetyClassifier, SafetyPolicy
from tutor_gateway.agents.orchestrator import TutorGateway, create_gateway

__all__ = [
    "SafetyClassifier",
    "SafetyPolicy",
    "TutorGateway",
    "create_gateway",
]
