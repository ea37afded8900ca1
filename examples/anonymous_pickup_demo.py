#!/usr/bin/env python3
"""
Anonymous Package Pickup Demo.

Walks through the three-party flow: the buyer enrolls and shares a
commitment, the seller registers the package, the store binds its
commitment, and at the counter the buyer proves the right to collect it
without revealing name, phone number or age.
"""

import sys

from anonpickup.commitment import CommitmentEngine, CommitmentKind, SellerInputs
from anonpickup.crypto.field import encode_amount, encode_identifier
from anonpickup.crypto.zkp import ZKPConfig, ZKPManager, ZKPType
from anonpickup.errors import AnonPickupError
from anonpickup.logging import LogConfig, get_logger, setup_logging
from anonpickup.pickup import (
    BuyerIdentity,
    PickupAuthority,
    PickupProver,
    decode_pickup_payload,
    encode_pickup_payload,
)

logger = get_logger("examples.pickup")

STORE = "STORE-BERLIN-04"
PACKAGE = "PKG-2024-000817"


def main():
    """Run the pickup demo."""
    use_groth16 = "--groth16" in sys.argv
    setup_logging(LogConfig(format_type="text"))

    logger.info("Anonymous Package Pickup Demo")
    logger.info("=" * 50)

    backend = ZKPType.GROTH16 if use_groth16 else ZKPType.MOCK
    manager = ZKPManager(ZKPConfig(backend_type=backend))
    prover = PickupProver(manager)
    logger.info("Running %s setup for %s...", backend.value, prover.circuit.circuit_id)
    verification_key = manager.setup(prover.circuit)
    logger.info("Verification key %s", verification_key.key_id[:16])

    with PickupAuthority(manager) as authority:
        authority.authorize_store(STORE)

        # Buyer: enroll locally, share only commitments
        buyer = BuyerIdentity.enroll("Jane Doe", "+49 30 1234567", 27)
        buyer_commitment = buyer.buyer_commitment()
        logger.info("Buyer commitment: %s", buyer_commitment.to_hex())

        # Seller: bind the package terms to the buyer commitment
        price, fee, min_age = "59.90", "4.99", 18
        seller_commitment = CommitmentEngine().derive(
            CommitmentKind.SELLER,
            SellerInputs(
                encode_identifier(PACKAGE),
                encode_amount(price),
                encode_amount(fee),
                encode_identifier(STORE),
                min_age,
            ),
            prior=buyer_commitment,
        )
        record = authority.register(
            PACKAGE,
            buyer_commitment,
            seller_commitment,
            STORE,
            min_age,
            item_price=price,
            shipping_fee=fee,
            pickup_credential=buyer.pickup_credential(),
            seller="demo-shop",
        )
        logger.info("Package %s registered, pickup until %.0f", PACKAGE, record.expires_at)

        # Store: package arrives, store commitment is bound
        store_commitment = authority.generate_store_commitment(PACKAGE, STORE)
        logger.info("Store commitment: %s", store_commitment.to_hex())

        # Buyer: prove at the counter
        proof, signals = prover.generate_proof(
            buyer.witness(),
            buyer.public_inputs(encode_identifier(PACKAGE), min_age, encode_identifier(STORE)),
        )
        request = encode_pickup_payload(PACKAGE, proof, signals)
        logger.info("Pickup request: %d bytes", len(request))

        # Store: scan and submit
        payload = decode_pickup_payload(request)
        picked_up = authority.authorize_pickup(
            payload.package_id, payload.proof, payload.public_signals, STORE
        )
        logger.info("Package %s is %s", picked_up.package_id, picked_up.status.value)

        # A second scan of the same request is refused
        try:
            authority.authorize_pickup(
                payload.package_id, payload.proof, payload.public_signals, STORE
            )
        except AnonPickupError as e:
            logger.info("Replay refused: %s", e.to_response()["reason"])

        stats = authority.get_statistics()
        logger.info("Packages: %s", stats["packages_by_status"])
        logger.info("Nullifiers used: %d", stats["nullifiers_used"])
        logger.info("Rejections: %s", stats["rejections"])

    return 0


if __name__ == "__main__":
    sys.exit(main())
