"""
Tutor Gateway

Mediates AI tutor and marketing-assistant requests between the ElevatED
clients and the upstream model provider.
"""

__version__ = "0.1.0"
