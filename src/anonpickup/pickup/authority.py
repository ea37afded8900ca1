"""
Pickup authority: owner of package records and the nullifier set.

The authority registers packages, lets the assigned store bind its
commitment, and authorizes pickups. ``authorize_pickup`` runs its checks
cheapest first (record state, expiry, nullifier) and only then verifies
the proof. The final nullifier insert and ``PICKED_UP`` transition happen in
one storage transaction under the authority's writer lock, so two pickups
carrying the same nullifier can never both succeed.
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..commitment.engine import (
    Commitment,
    CommitmentEngine,
    CommitmentKind,
    SellerInputs,
    StoreInputs,
    validate_age,
)
from ..crypto.field import FieldElement, FieldLike, encode_amount, encode_identifier
from ..crypto.zkp.core import Proof, ZKPManager
from ..errors import (
    AgeRequirementNotMetError,
    AnonPickupError,
    InputValidationError,
    InvalidProofError,
    InvalidStateError,
    MalformedInputError,
    NullifierReusedError,
    PackageExpiredError,
    PackageNotFoundError,
    UnauthorizedError,
    VerificationKeyMismatchError,
)
from ..logging import LogContext
from .buyer import random_field_element
from .circuit import PICKUP_CIRCUIT_ID, PickupPublicSignals
from .config import AuthorityConfig
from .package import ChallengeLink, PackageRecord, PackageStatus
from .storage import LedgerStore

logger = logging.getLogger(__name__)

CommitmentLike = Union[Commitment, FieldLike]
SignalsLike = Union[PickupPublicSignals, Sequence[FieldLike]]


def _commitment_value(value: CommitmentLike, name: str) -> FieldElement:
    if isinstance(value, Commitment):
        return value.value
    return FieldElement.parse(value, name)


class PickupAuthority:
    """Verifying authority for anonymous package pickups."""

    def __init__(
        self,
        zkp_manager: ZKPManager,
        storage: Optional[LedgerStore] = None,
        config: Optional[AuthorityConfig] = None,
        clock: Callable[[], float] = time.time,
        engine: Optional[CommitmentEngine] = None,
        circuit_id: str = PICKUP_CIRCUIT_ID,
    ):
        self.config = config or AuthorityConfig()
        self.config.validate()
        self.zkp_manager = zkp_manager
        self.verification_key = zkp_manager.get_verification_key(circuit_id)
        self.storage = storage or self.config.create_storage()
        self.engine = engine or CommitmentEngine()
        self._clock = clock
        self._lock = threading.RLock()
        self._stores: Dict[str, FieldElement] = {}
        self._rejections: Counter = Counter()
        self._executor: Optional[ThreadPoolExecutor] = None

        logger.info(
            "Pickup authority ready for %s (key %s, challenge %s)",
            circuit_id,
            self.verification_key.key_id[:16],
            self.config.challenge_link.value,
        )

    # Store registry

    def authorize_store(self, store_address: str, store_secret: Optional[FieldLike] = None) -> None:
        """Allow a store to receive packages; draws a store secret if none is given."""
        encode_identifier(store_address, "store_address")
        secret = (
            FieldElement.parse(store_secret, "store_secret")
            if store_secret is not None
            else random_field_element()
        )
        with self._lock:
            self._stores[store_address] = secret
        logger.info("Store %s authorized", store_address)

    def revoke_store(self, store_address: str) -> None:
        with self._lock:
            if self._stores.pop(store_address, None) is None:
                raise UnauthorizedError(
                    f"Store {store_address} is not authorized", caller=store_address
                )
        logger.info("Store %s revoked", store_address)

    def is_store_authorized(self, store_address: str) -> bool:
        with self._lock:
            return store_address in self._stores

    # Mutating operations

    def register(
        self,
        package_id: str,
        buyer_commitment: CommitmentLike,
        seller_commitment: CommitmentLike,
        store_address: str,
        min_age_required: int,
        pickup_window: Optional[float] = None,
        *,
        item_price: Any = 0,
        shipping_fee: Any = 0,
        pickup_credential: Optional[FieldLike] = None,
        seller: Optional[str] = None,
    ) -> PackageRecord:
        """Create a ``REGISTERED`` record.

        ``seller_commitment`` must equal the seller link recomputed from the
        buyer commitment and the public package terms. ``pickup_window`` is
        in seconds and defaults to ``config.default_pickup_window``.
        """
        try:
            return self._register(
                package_id,
                buyer_commitment,
                seller_commitment,
                store_address,
                min_age_required,
                pickup_window,
                item_price,
                shipping_fee,
                pickup_credential,
                seller,
            )
        except AnonPickupError as e:
            self._record_rejection("register", package_id, e)
            raise

    def generate_store_commitment(self, package_id: str, caller: str) -> Commitment:
        """Bind the assigned store's commitment and move to ``STORE_COMMITTED``."""
        try:
            return self._generate_store_commitment(package_id, caller)
        except AnonPickupError as e:
            self._record_rejection("generate_store_commitment", package_id, e)
            raise

    def authorize_pickup(
        self,
        package_id: str,
        proof: Proof,
        public_signals: SignalsLike,
        caller: str,
    ) -> PackageRecord:
        """Accept a pickup proof and move the package to ``PICKED_UP``.

        Check order: record and caller, state, expiry, public signal
        ranges, nullifier reuse, verification key, binding of the signals to
        the record, proof verification, age flag. Returns the updated record.
        """
        try:
            return self._authorize_pickup(package_id, proof, public_signals, caller)
        except AnonPickupError as e:
            self._record_rejection("authorize_pickup", package_id, e)
            raise

    def submit_pickup(
        self,
        package_id: str,
        proof: Proof,
        public_signals: SignalsLike,
        caller: str,
    ) -> "Future[PackageRecord]":
        """Run ``authorize_pickup`` on the verification worker pool."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.verification_workers,
                    thread_name_prefix="anonpickup-verify",
                )
            executor = self._executor
        return executor.submit(self.authorize_pickup, package_id, proof, public_signals, caller)

    def expire_package(self, package_id: str) -> PackageRecord:
        """Move an overdue package to ``EXPIRED``."""
        record = self._load(package_id)
        if record.status.is_terminal:
            raise InvalidStateError(
                f"Package {package_id} is {record.status.value}",
                current_state=record.status.value,
            )
        if not record.is_expired(self._clock()):
            raise InvalidStateError(
                f"Package {package_id} has not expired", current_state=record.status.value
            )
        return self._expire(record)

    def expire_overdue(self) -> List[str]:
        """Expire every overdue open package; returns the expired ids."""
        now = self._clock()
        expired = []
        for status in (PackageStatus.REGISTERED, PackageStatus.STORE_COMMITTED):
            for record in self.storage.list_packages(status):
                if not record.is_expired(now):
                    continue
                try:
                    self._expire(record)
                except InvalidStateError:
                    # moved on concurrently
                    continue
                expired.append(record.package_id)
        return expired

    # Queries

    def get_package(self, package_id: str) -> PackageRecord:
        return self._load(package_id)

    def can_pickup(self, package_id: str) -> bool:
        """True while the package awaits pickup and its window is open."""
        record = self.storage.get_package(package_id)
        return (
            record is not None
            and record.status is PackageStatus.STORE_COMMITTED
            and not record.is_expired(self._clock())
        )

    def list_packages(self, status: Optional[PackageStatus] = None) -> List[PackageRecord]:
        return self.storage.list_packages(status)

    def is_nullifier_used(self, nullifier: FieldLike) -> bool:
        return self.storage.nullifier_exists(FieldElement.parse(nullifier, "nullifier"))

    def get_statistics(self) -> Dict[str, Any]:
        records = self.storage.list_packages()
        by_status = Counter(r.status.value for r in records)
        with self._lock:
            rejections = dict(self._rejections)
            stores = len(self._stores)
        return {
            "total_packages": len(records),
            "packages_by_status": {s.value: by_status.get(s.value, 0) for s in PackageStatus},
            "nullifiers_used": self.storage.count_nullifiers(),
            "authorized_stores": stores,
            "rejections": rejections,
            "verification_key_id": self.verification_key.key_id,
        }

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
        self.storage.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    # Internals

    def _register(
        self,
        package_id,
        buyer_commitment,
        seller_commitment,
        store_address,
        min_age_required,
        pickup_window,
        item_price,
        shipping_fee,
        pickup_credential,
        seller,
    ) -> PackageRecord:
        package_field = encode_identifier(package_id, "package_id")
        store_field = encode_identifier(store_address, "store_address")
        buyer = _commitment_value(buyer_commitment, "buyer_commitment")
        seller_value = _commitment_value(seller_commitment, "seller_commitment")
        min_age = validate_age(min_age_required, "min_age_required")
        price = encode_amount(item_price, "item_price")
        fee = encode_amount(shipping_fee, "shipping_fee")
        credential = (
            FieldElement.parse(pickup_credential, "pickup_credential")
            if pickup_credential is not None
            else None
        )

        window = self.config.default_pickup_window if pickup_window is None else pickup_window
        if isinstance(window, bool) or not isinstance(window, (int, float)):
            raise InputValidationError("pickup_window must be a number", field="pickup_window")
        if not 0 < window <= self.config.max_pickup_window:
            raise InputValidationError(
                "pickup_window out of range",
                field="pickup_window",
                expected=f"(0, {self.config.max_pickup_window}]",
            )

        if self.config.challenge_link is ChallengeLink.CREDENTIAL and credential is None:
            raise InputValidationError(
                "pickup_credential is required", field="pickup_credential"
            )

        if self.config.require_store_authorization and not self.is_store_authorized(
            store_address
        ):
            raise UnauthorizedError(
                f"Store {store_address} is not authorized", caller=store_address
            )

        expected_seller = self.engine.derive(
            CommitmentKind.SELLER,
            SellerInputs(package_field, price, fee, store_field, min_age),
            prior=Commitment(CommitmentKind.BUYER, buyer),
        )
        if expected_seller.value != seller_value:
            raise InputValidationError(
                "seller_commitment does not match the package terms",
                field="seller_commitment",
            )

        now = self._clock()
        record = PackageRecord(
            package_id=package_id,
            buyer_commitment=buyer,
            seller_commitment=seller_value,
            store_address=store_address,
            min_age_required=min_age,
            created_at=now,
            expires_at=now + window,
            item_price=int(price),
            shipping_fee=int(fee),
            pickup_credential=credential,
            seller=seller,
        )
        with self._lock:
            self.storage.insert_package(record)
        self._log_transition(record, None, PackageStatus.REGISTERED)
        return record

    def _generate_store_commitment(self, package_id: str, caller: str) -> Commitment:
        with self._lock:
            record = self._load(package_id)
            self._check_caller(record, caller)
            self._require_status(record, PackageStatus.REGISTERED)
            self._check_expiry(record)

            store_secret = self._stores.get(record.store_address)
            if store_secret is None:
                raise UnauthorizedError(
                    f"Store {record.store_address} is not authorized", caller=caller
                )
            commitment = self.engine.derive(
                CommitmentKind.STORE,
                StoreInputs(store_secret, record.package_field),
                prior=Commitment(CommitmentKind.SELLER, record.seller_commitment),
            )
            record.store_commitment = commitment.value
            record.status = PackageStatus.STORE_COMMITTED
            self.storage.save_package(record, PackageStatus.REGISTERED)

        self._log_transition(record, PackageStatus.REGISTERED, PackageStatus.STORE_COMMITTED)
        return commitment

    def _authorize_pickup(
        self, package_id: str, proof: Proof, public_signals: SignalsLike, caller: str
    ) -> PackageRecord:
        record = self._load(package_id)
        self._check_caller(record, caller)
        self._require_status(record, PackageStatus.STORE_COMMITTED)
        self._check_expiry(record)

        if not isinstance(proof, Proof):
            raise MalformedInputError("proof must be a Proof", field="proof")
        signals = self._parse_signals(public_signals)

        if self.storage.nullifier_exists(signals.nullifier):
            raise NullifierReusedError("Nullifier already used")

        self._check_verification_key(proof)
        self._check_binding(record, signals)
        result = self.zkp_manager.verify_proof(proof, signals.to_list())
        if not result.is_success:
            raise InvalidProofError(
                "Proof verification failed", circuit_id=proof.circuit_id
            )

        if record.min_age_required > 0 and int(signals.age_ok) != 1:
            raise AgeRequirementNotMetError("Age requirement not met")

        with self._lock:
            current = self._load(package_id)
            self._require_status(current, PackageStatus.STORE_COMMITTED)
            self._check_expiry(current)
            current.status = PackageStatus.PICKED_UP
            current.nullifier = signals.nullifier
            current.picked_up_at = self._clock()
            self.storage.commit_pickup(current, signals.nullifier)

        self._log_transition(current, PackageStatus.STORE_COMMITTED, PackageStatus.PICKED_UP)
        return current

    def _parse_signals(self, public_signals: SignalsLike) -> PickupPublicSignals:
        if isinstance(public_signals, PickupPublicSignals):
            return public_signals
        if isinstance(public_signals, (str, bytes)) or not isinstance(public_signals, Sequence):
            raise InputValidationError(
                "public_signals must be a sequence", field="public_signals"
            )
        return PickupPublicSignals.from_list(public_signals)

    def _check_verification_key(self, proof: Proof) -> None:
        expected = self.verification_key
        if proof.key_id != expected.key_id or proof.circuit_id != expected.circuit_id:
            logger.critical(
                "Proof produced against unknown verification key %s for %s",
                proof.key_id[:16],
                proof.circuit_id,
            )
            raise VerificationKeyMismatchError(
                "Proof was produced against an unrecognized verification key",
                expected_key_id=expected.key_id,
                received_key_id=proof.key_id,
            )

    def _check_binding(self, record: PackageRecord, signals: PickupPublicSignals) -> None:
        challenge = record.commitment_for(self.config.challenge_link)
        bound = (
            challenge is not None
            and signals.expected_commitment == challenge
            and signals.package_id == record.package_field
            and signals.store_address == record.store_field
            and int(signals.min_age_required) == record.min_age_required
        )
        if not bound:
            raise InvalidProofError("Public signals do not match the package record")

    def _check_caller(self, record: PackageRecord, caller: str) -> None:
        if caller != record.store_address:
            raise UnauthorizedError(
                f"Caller is not the assigned store for {record.package_id}", caller=caller
            )

    def _require_status(self, record: PackageRecord, status: PackageStatus) -> None:
        if record.status is not status:
            raise InvalidStateError(
                f"Package {record.package_id} is {record.status.value}, "
                f"expected {status.value}",
                current_state=record.status.value,
            )

    def _check_expiry(self, record: PackageRecord) -> None:
        if record.is_expired(self._clock()):
            self._expire(record)
            raise PackageExpiredError(
                f"Pickup window for {record.package_id} has closed",
                current_state=PackageStatus.EXPIRED.value,
            )

    def _expire(self, record: PackageRecord) -> PackageRecord:
        previous = record.status
        expired = record.copy()
        expired.status = PackageStatus.EXPIRED
        with self._lock:
            self.storage.save_package(expired, previous)
        self._log_transition(expired, previous, PackageStatus.EXPIRED)
        return expired

    def _load(self, package_id: str) -> PackageRecord:
        record = self.storage.get_package(package_id)
        if record is None:
            raise PackageNotFoundError(f"Package {package_id} not found")
        return record

    def _log_transition(
        self,
        record: PackageRecord,
        old: Optional[PackageStatus],
        new: PackageStatus,
    ) -> None:
        context = LogContext(
            component="authority",
            operation="transition",
            package_id=record.package_id,
            metadata={"from": old.value if old else None, "to": new.value},
        )
        logger.info(
            "Package %s: %s -> %s",
            record.package_id,
            old.value if old else "none",
            new.value,
            extra=context.as_extra(),
        )

    def _record_rejection(self, operation: str, package_id: str, error: AnonPickupError) -> None:
        with self._lock:
            self._rejections[error.reason_code.value] += 1
        context = LogContext(
            component="authority",
            operation=operation,
            package_id=package_id if isinstance(package_id, str) else None,
            metadata={"reason": error.reason_code.value},
        )
        logger.warning(
            "%s rejected for %s: %s",
            operation,
            package_id,
            error.reason_code.value,
            extra=context.as_extra(),
        )
