"""
distsort - sort integer lists across a pool of networked worker processes.
"""

__version__ = "0.1.0"
