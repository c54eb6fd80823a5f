from __future__ import annotations

"""Centralized path utilities for the project.

These provide absolute `Path` objects to key files and directories, avoiding
hard-coded relative paths throughout the codebase.
"""

from pathlib import Path


# The package directory is one level below the project root
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Canonical locations used throughout the project
INPUTS_FILE = PROJECT_ROOT / "inputs.json"
SCENARIOS_DIR = PROJECT_ROOT / "scenarios"
OUTPUT_DIR = PROJECT_ROOT / "output"
LOGS_DIR = PROJECT_ROOT / "logs"
