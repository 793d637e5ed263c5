"""
moveobject: bulk migrate, move, copy and delete objects in S3-compatible storage.

A bounded worker pool drives one remote operation per listed key and records
every outcome in append-only success/failure logs.
"""

__version__ = "0.1.0"
