"""Swachh Netra trip & attendance coordination engine.

This package is organized by feature modules (feeder points, workers, trips,
attendance, analytics) with a thin Flask controller layer over service and
repository layers that talk to an abstract document store.
"""
