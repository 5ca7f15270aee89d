# main.py

"""
Main module to authenticate against the local Envoy and read current power.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import argparse
import sys
import time
from datetime import datetime

from config.config import get_config, ConfigError
from processor.processor import PowerDataProcessor, PowerDataProcessorError
from shutdown.shutdown_controller import install_signal_handlers
from utils.utils import print_header

DEFAULT_CONFIG_PATH = "config/config.yaml"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read production, consumption and net power from a local Enphase Envoy."
    )
    parser.add_argument(
        "--config",
        help="YAML or JSON file overriding the built-in defaults (default: config/config.yaml, optional)",
    )
    parser.add_argument(
        "--samples", type=int, help="Number of readings to take (0 = until stopped)"
    )
    parser.add_argument("--interval", type=float, help="Seconds between readings")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print every HTTP exchange with credentials and tokens redacted",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Load the configuration, authenticate and poll the Envoy.

    Returns 0 on success and 1 when configuration, authentication or a
    reading fails."""

    args = parse_args(argv)
    install_signal_handlers()

    # =============================================================================
    # STEP 1: INITIALIZATION
    # =============================================================================
    start_time = time.time()
    print_header(
        f"Starting Envoy Power Monitor at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
    )

    # =============================================================================
    # STEP 2: Load Configuration
    # =============================================================================
    print_header("Loading Configuration")

    try:
        app_config = get_config(
            args.config or DEFAULT_CONFIG_PATH, required=args.config is not None
        )
    except ConfigError as e:
        print(f"✖  Error loading configuration: {e}")
        return 1

    if args.samples is not None:
        app_config["polling"]["samples"] = max(args.samples, 0)
    if args.interval is not None:
        app_config["polling"]["interval"] = max(args.interval, 0)
    if args.debug:
        app_config["http_settings"]["debug"] = True

    print(f"• Identity service: {app_config['auth_url']}")
    print(f"• Envoy: {app_config['envoy_url']} (serial {app_config['serial_num']})")

    # =============================================================================
    # STEP 3: Authenticate and Poll
    # =============================================================================
    try:
        processor = PowerDataProcessor(app_config)
        processor.run()
    except PowerDataProcessorError as e:
        print(f"✖  {e}")
        return 1

    print(f"\n⏱  Total time: {time.time() - start_time:.2f} seconds")
    print("\n-- End")
    return 0


if __name__ == "__main__":
    sys.exit(main())
