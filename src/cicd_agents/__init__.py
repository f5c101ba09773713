"""
cicd_agents: CI/CD pipeline approximated by a chain of agents.

This package provides agents (code review, build prediction, image build,
deploy, monitor), AKS cluster provisioning with a readiness waiter, a
sequential pipeline flow, and an HTTP service exposing each stage.
"""

__version__ = "0.1.0"
