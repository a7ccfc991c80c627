"""
Core Infrastructure for voice-queue.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Exception hierarchy with error codes
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
