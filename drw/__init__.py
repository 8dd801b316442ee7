"""Durable multi-step research workflow: plan, research each section, compile."""

__version__ = "0.1.0"
