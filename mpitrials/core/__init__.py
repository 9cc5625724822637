"""Numerical and simulation building blocks shared by the designs."""
