"""Differential verification harness for the HelpMeSave savings contract."""

__version__ = "0.1.0"
