"""Cosmic Watch: NEO data orchestration, caching and risk-engine integration."""

__version__ = "0.1.0"
