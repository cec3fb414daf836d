#!/usr/bin/env python3
"""Entrypoint script for evaluating mean average precision.

This script is a convenience wrapper. Users can also run:
    map-evaluator evaluate [OPTIONS] FEATURES ANNOTATIONS
"""

from map_evaluator.cli import app

if __name__ == "__main__":
    app()
