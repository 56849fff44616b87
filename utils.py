# utils.py
"""
Utility functions for the simulation framework.

This module provides helper functions, such as logging setup and config
loading, that are used across different parts of the application but do
not belong to a specific domain like physics or rendering.
"""
import copy
import logging
import logging.handlers
import json
import os
from typing import Dict, Any, Sequence

import numpy as np

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary containing a "logging" key with "level",
#       "format", and "log_file" sub-keys.
#   - Outputs: None
#   - Side Effects: Configures the root Python logger. Creates a log
#     directory if it doesn't exist. Sets up a console handler and a
#     rotating file handler.
#   - Invariants: After this function runs, the logging system is
#     initialized and ready for use throughout the application.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Inputs: path to a JSON file.
#   - Outputs: The file's content merged over DEFAULT_CONFIG.
#   - Side Effects: None. Re-raises FileNotFoundError / JSONDecodeError.
#
# as_vector3(value, name) -> np.ndarray:
#   - Outputs: A float64 array of shape (3,).
#   - Raises: ValueError if value is not three finite numbers.

# Every key the application reads. Sections of a user config are merged
# over these, so a config file only has to name what it changes.
DEFAULT_CONFIG: Dict[str, Any] = {
    "simulation_parameters": {
        "seed": 42,
        "particle_count": 1000,
        "field_radius": 10.0,
        "field_depth": -5.0,
        "swirl_base_offset": 1.0,
        "swirl_pointer_gain": 0.3,
        "spring_factor": 2.0,
        "damping": 0.95,
        "pointer_threshold": 7.0,
        "pointer_force_multiplier": 100.0,
        "min_separation": 0.2,
        "repulsion_factor": 2.0,
    },
    "camera": {
        "position": [20.0, 20.0, 10.0],
        "look_at": [0.0, 0.0, 0.0],
        "fov": 50.0,
        "near": 0.1,
        "far": 1000.0,
    },
    "run_control": {
        "max_steps": 0,
        "log_throttle_steps": 300,
        "max_delta_time": 0.1,
        "profile": False,
    },
    "visualization": {
        "particle_color": [255, 255, 255],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "log_file": "logs/swirl.log",
    },
}


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to both the console and a rotating file.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    log_file_path = log_config.get('log_file', 'logs/swirl.log')

    # Ensure the log directory exists
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Rotates when the log reaches 1MB, keeps 5 backup logs.
    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=1024*1024, backupCount=5
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path}")


def merge_config(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a deep copy of `defaults` with `overrides` merged on top."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file and fills in missing defaults."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise
    logging.info("Configuration loaded successfully.")
    return merge_config(DEFAULT_CONFIG, config)


def as_vector3(value: Sequence[float], name: str) -> np.ndarray:
    """Converts a 3-element sequence to a float64 vector, or raises ValueError."""
    try:
        vector = np.array(value, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a sequence of 3 numbers, got {value!r}.") from e
    if vector.shape != (3,) or not np.all(np.isfinite(vector)):
        raise ValueError(f"{name} must be 3 finite numbers, got {value!r}.")
    return vector
