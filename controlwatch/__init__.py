"""controlwatch: continuous evaluation of security controls against assessment results."""

__version__ = "0.2.0"
