#!/usr/bin/env python3
"""
Run the development trusted setup for the pickup circuit.

Writes ``proving_key.json`` (buyer side) and ``verification_key.json``
(authority side) to the output directory. The setup is single-party: the
machine running it learns the toxic waste, so keys produced here are for
development and testing only.
"""

import json
import sys
import time
from pathlib import Path

from anonpickup.crypto.zkp import ZKPType
from anonpickup.crypto.zkp.generation import groth16_setup, mock_setup
from anonpickup.logging import LogConfig, LogLevel, get_logger, setup_logging
from anonpickup.pickup import PickupCircuit

logger = get_logger("scripts.setup")


def write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, indent=2, sort_keys=True))
    logger.info("Wrote %s", path)


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the pickup circuit development setup")
    parser.add_argument(
        "--output-dir",
        default="keys",
        help="Directory for proving_key.json and verification_key.json",
    )
    parser.add_argument(
        "--backend",
        choices=[t.value for t in ZKPType],
        default=ZKPType.GROTH16.value,
        help="Proof system to generate keys for",
    )
    parser.add_argument("--force", action="store_true", help="Overwrite existing key files")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    setup_logging(
        LogConfig(format_type="text", level=LogLevel.DEBUG if args.verbose else LogLevel.INFO)
    )

    output_dir = Path(args.output_dir)
    proving_path = output_dir / "proving_key.json"
    verification_path = output_dir / "verification_key.json"
    if not args.force and (proving_path.exists() or verification_path.exists()):
        logger.error("Key files already exist in %s; pass --force to replace them", output_dir)
        return 1
    output_dir.mkdir(parents=True, exist_ok=True)

    circuit = PickupCircuit()
    system = circuit.build()
    logger.info(
        "Running %s setup for %s (%d constraints, %d public signals)",
        args.backend,
        circuit.circuit_id,
        system.get_constraint_count(),
        system.num_public,
    )

    start = time.time()
    if args.backend == ZKPType.GROTH16.value:
        setup = groth16_setup(system, circuit.circuit_id)
    else:
        setup = mock_setup(system, circuit.circuit_id)
    if not setup.validate():
        logger.error("Setup produced inconsistent keys")
        return 1

    write_json(proving_path, setup.proving_key.to_dict())
    write_json(verification_path, setup.verification_key.to_dict())

    logger.info(
        "Setup finished in %.1fs; key id %s", time.time() - start, setup.verification_key.key_id
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
