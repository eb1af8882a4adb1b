"""
upstaint: taint Kubernetes nodes according to the power state of their UPS.
"""

__version__ = "0.1.0"
