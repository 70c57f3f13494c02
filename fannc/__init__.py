"""
fannc package
~~~~~~~~~~~~~

Command-line front end for feed-forward neural networks.
Contains the command table, the argument validation framework,
configuration and introspection of networks, and the network runtime.
"""

__version__ = "1.0.0"
