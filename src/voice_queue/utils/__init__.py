"""
Utility Modules for voice-queue.

    - timeit.py: Performance measurement utilities
"""
