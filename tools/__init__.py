"""
Tools package for the PTP simulator.

Command-line helpers for running the simulation headless and exporting traces.
"""
