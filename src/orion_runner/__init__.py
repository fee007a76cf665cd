"""Orion phase runner: executes a project's phased backlog against LLM-backed agents."""

__version__ = "0.1.0"
