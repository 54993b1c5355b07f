"""
eSIM purchase orchestration.

A purchase touches three systems that cannot share a transaction: the
payment processor (or the local wallet), the carrier, and our database. The
flow is ordered so every failure has a defined outcome:

    1. idempotency lookup on the payment reference (replay, no side effects)
    2. authorization: wallet balance pre-check or processor verification
    3. carrier provisioning, outside any database transaction
    4. one atomic commit of debit, payment row, eSIM and order
    5. on commit failure, compensation of the carrier resource

Activation runs after the commit and never undoes it.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Optional

from django.db import DatabaseError, IntegrityError, transaction

from airswitch.exceptions import (
    AirswitchError,
    AlreadyProcessed,
    ConsistencyViolation,
    GatewayError,
    GatewayTimeout,
    InsufficientFunds,
    InsufficientPoints,
    NotFound,
    PaymentNotConfirmed,
    ProvisioningFailed,
    ValidationError,
)
from airswitch.models import ESim, EsimOrder, PaymentMethod, Transaction, UserPoints
from airswitch.services.compensation import CompensationService
from airswitch.services.points import PointsService, points_per_usd, points_value
from airswitch.services.wallet import WalletService, clean_currency
from airswitch.utils.carrier import get_carrier_client
from airswitch.utils.fx import get_rate_provider
from airswitch.utils.payments import ChargeStatus, get_payment_gateway
from airswitch.utils.plans import get_plan

logger = logging.getLogger(__name__)

WALLET_REFERENCE_PREFIX = "wallet_"
CARD_METHODS = (PaymentMethod.STRIPE, PaymentMethod.PAYSTACK)
CARRIER_TIMEOUT_REASON = "carrier_timeout"


@dataclass
class PurchaseRequest:
    user_id: int
    plan_id: str
    payment_method: str
    # Processor reference for card/bank payments; client idempotency key for
    # wallet payments.
    payment_reference: Optional[str] = None
    currency: str = "USD"
    use_points: bool = False
    is_gift: bool = False
    gift_email: str = ""


@dataclass
class PurchaseResult:
    order: EsimOrder
    replayed: bool = False

    @property
    def esim(self) -> Optional[ESim]:
        return self.order.esim

    @property
    def activated(self) -> bool:
        return self.order.status == EsimOrder.Status.ACTIVATED


@dataclass(frozen=True)
class Quote:
    amount: Decimal
    currency: str
    points: int = 0


class ProvisioningOrchestrator:
    def __init__(self, carrier=None, gateway_factory=None, rates=None):
        self.carrier = carrier or get_carrier_client()
        self.gateway_factory = gateway_factory or get_payment_gateway
        self.rates = rates or get_rate_provider()

    # ── Purchase ──────────────────────────────────────────────

    def purchase(self, request: PurchaseRequest) -> PurchaseResult:
        """
        Pay for a plan and provision it, at most once per payment reference.

        Returns:
            PurchaseResult; replayed=True when the reference was already
            fulfilled (by an earlier call or a concurrent one).

        Raises:
            ValidationError / NotFound: bad input, unknown plan, reused reference.
            InsufficientFunds / PaymentNotConfirmed: nothing was provisioned.
            GatewayError: carrier did not provision; no local writes.
            GatewayTimeout: outcome unknown; a FAILED order records the attempt.
            ConsistencyViolation: balance changed before commit; resource compensated.
            ProvisioningFailed: commit failed; resource compensated.
        """
        plan = get_plan(request.plan_id)
        reference = self._resolve_reference(request)

        replay = self._replay(request, reference)
        if replay is not None:
            return replay

        quote = self._authorize(request, plan, reference)
        resource = self._provision(request, plan, reference, quote)

        try:
            order = self._commit(request, plan, reference, quote, resource)
        except AlreadyProcessed as exc:
            logger.warning(
                "Payment fulfilled concurrently, releasing duplicate SIM: reference=%s external_id=%s",
                reference,
                resource.external_id,
            )
            CompensationService.run(
                resource.external_id,
                reference,
                "Duplicate provisioning for an already fulfilled payment",
                carrier=self.carrier,
            )
            return PurchaseResult(exc.order, replayed=True)
        except AirswitchError as exc:
            self._roll_back(request, plan, reference, quote, resource, exc.message)
            raise
        except Exception as exc:  # every commit failure releases the SIM
            logger.exception(
                "Purchase commit failed: user=%s reference=%s external_id=%s",
                request.user_id,
                reference,
                resource.external_id,
            )
            self._roll_back(request, plan, reference, quote, resource, str(exc))
            raise ProvisioningFailed() from exc

        logger.info(
            "Purchase committed: user=%s order=%d plan=%s amount=%s %s points=%d reference=%s",
            request.user_id,
            order.id,
            plan.id,
            quote.amount,
            quote.currency,
            quote.points,
            reference,
        )
        self._activate(order)
        return PurchaseResult(order)

    def _resolve_reference(self, request: PurchaseRequest) -> str:
        method = request.payment_method
        if method == PaymentMethod.WALLET:
            # Client keys are only unique per user.
            key = request.payment_reference or uuid.uuid4().hex
            return f"{WALLET_REFERENCE_PREFIX}{request.user_id}_{key}"
        if method not in CARD_METHODS:
            raise ValidationError(f"Unsupported payment method: {method}")
        if not request.payment_reference:
            raise ValidationError(f"A payment reference is required for {method.lower()} payments.")
        return request.payment_reference

    def _replay(self, request, reference) -> Optional[PurchaseResult]:
        order = (
            EsimOrder.objects.select_related("esim")
            .filter(payment_reference=reference)
            .exclude(status=EsimOrder.Status.FAILED)
            .first()
        )
        if order is not None:
            if order.user_id != request.user_id:
                raise ValidationError("Payment reference already used.")
            logger.info("Idempotent purchase replay: reference=%s order=%d", reference, order.id)
            return PurchaseResult(order, replayed=True)

        tx = (
            Transaction.objects.filter(reference=reference)
            .exclude(status=Transaction.Status.FAILED)
            .first()
        )
        if tx is not None and (
            tx.status == Transaction.Status.SUCCESS
            or tx.user_id != request.user_id
            or tx.transaction_type != Transaction.TransactionType.DEBIT
        ):
            raise ValidationError("Payment reference already used.")
        return None

    # ── Authorization ─────────────────────────────────────────

    def _authorize(self, request, plan, reference) -> Quote:
        if request.payment_method == PaymentMethod.WALLET:
            return self._authorize_wallet(request, plan)
        if request.use_points:
            raise ValidationError("Points can only be combined with wallet payments.")
        return self._authorize_charge(request, plan, reference)

    def _authorize_wallet(self, request, plan) -> Quote:
        currency = clean_currency(request.currency)
        price = plan.price_in(currency)
        points, amount = 0, price
        if request.use_points:
            points, amount = self._apply_points(request.user_id, price, currency)

        if amount > 0:
            wallet = WalletService.get_wallet(request.user_id)
            balance = wallet.balance_for(currency)
            if balance < amount:
                logger.info(
                    "Purchase rejected (insufficient funds): user=%s balance=%s required=%s %s",
                    request.user_id,
                    balance,
                    amount,
                    currency,
                )
                raise InsufficientFunds()
        return Quote(amount, currency, points)

    def _apply_points(self, user_id, price, currency):
        """Spend as few points as cover the price, or all of them if they fall short."""
        user_points = UserPoints.objects.filter(user_id=user_id).first()
        available = user_points.available_points if user_points else 0
        if available <= 0:
            return 0, price

        try:
            per_point = self.rates.get_rate("USD", currency) / points_per_usd()
        except ValueError as exc:
            raise ValidationError(str(exc))
        needed = int((price / per_point).to_integral_value(rounding=ROUND_CEILING))
        if available >= needed:
            return needed, Decimal("0.00")
        return available, price - points_value(available, currency, self.rates)

    def _authorize_charge(self, request, plan, reference) -> Quote:
        method = request.payment_method
        gateway = self.gateway_factory(method)
        try:
            verification = gateway.verify_charge(reference)
        except GatewayError as exc:
            logger.warning(
                "Payment verification unavailable: provider=%s reference=%s error=%s",
                method,
                reference,
                exc,
            )
            raise PaymentNotConfirmed(f"Could not verify payment: {exc.message}") from exc

        if not verification.succeeded:
            logger.info(
                "Purchase rejected (payment not settled): provider=%s reference=%s status=%s",
                method,
                reference,
                verification.status.value,
            )
            if verification.status == ChargeStatus.FAILED:
                Transaction.objects.filter(
                    reference=reference, status=Transaction.Status.PENDING
                ).update(status=Transaction.Status.FAILED)
            raise PaymentNotConfirmed(
                f"Payment not successful ({verification.reason or verification.status.value.lower()})."
            )
        if verification.currency not in plan.prices:
            raise PaymentNotConfirmed("Payment currency does not match the plan.")
        if verification.amount < plan.prices[verification.currency]:
            raise PaymentNotConfirmed("Paid amount does not cover the plan price.")
        return Quote(verification.amount, verification.currency)

    # ── Provisioning and commit ───────────────────────────────

    def _provision(self, request, plan, reference, quote):
        try:
            return self.carrier.create_resource()
        except GatewayTimeout:
            logger.error(
                "Carrier timed out provisioning, outcome unknown: user=%s reference=%s",
                request.user_id,
                reference,
            )
            # The carrier may hold a SIM we never learned the id of.
            self._record_failure(request, plan, reference, quote, "", CARRIER_TIMEOUT_REASON)
            raise
        except GatewayError as exc:
            logger.error(
                "Carrier provisioning failed: user=%s reference=%s status=%s error=%s",
                request.user_id,
                reference,
                exc.status,
                exc,
            )
            raise GatewayError(
                "Failed to provision eSIM from provider. No funds deducted.",
                status=exc.status,
                payload=exc.payload,
            ) from exc

    def _commit(self, request, plan, reference, quote, resource) -> EsimOrder:
        try:
            return self._record(request, plan, reference, quote, resource)
        except IntegrityError:
            winner = (
                EsimOrder.objects.select_related("esim")
                .filter(payment_reference=reference)
                .exclude(status=EsimOrder.Status.FAILED)
                .first()
            )
            if winner is None:
                raise
            raise AlreadyProcessed(winner)

    @transaction.atomic
    def _record(self, request, plan, reference, quote, resource) -> EsimOrder:
        if quote.points:
            try:
                PointsService.deduct(
                    request.user_id,
                    quote.points,
                    description=f"Used for {plan.name} eSIM",
                )
            except InsufficientPoints:
                raise ConsistencyViolation(
                    "Insufficient points (balance changed during transaction)."
                )

        if request.payment_method == PaymentMethod.WALLET and quote.amount > 0:
            WalletService.debit(request.user_id, quote.amount, quote.currency)

        if quote.amount > 0:
            self._record_payment(request, plan, reference, quote)

        esim = ESim.objects.create(
            user_id=request.user_id,
            external_id=resource.external_id,
            iccid=resource.iccid,
            status=ESim.Status.INACTIVE,
            plan_id=plan.id,
            region=plan.region,
            qr_code_url=resource.qr_url,
            activation_code=resource.activation_code,
            smdp_address=resource.smdp_address,
        )
        return EsimOrder.objects.create(
            user_id=request.user_id,
            esim=esim,
            plan_id=plan.id,
            payment_reference=reference,
            payment_method=request.payment_method,
            external_order_id=resource.external_id,
            status=EsimOrder.Status.PENDING,
            amount=quote.amount,
            currency=quote.currency,
            points_used=quote.points,
            is_gift=request.is_gift,
            gift_email=request.gift_email or "",
        )

    def _record_payment(self, request, plan, reference, quote) -> Transaction:
        """Promote the PENDING payment row for this reference, or insert one."""
        tx = (
            Transaction.objects.select_for_update()
            .filter(reference=reference)
            .exclude(status=Transaction.Status.FAILED)
            .first()
        )
        description = f"eSIM purchase: {plan.name}"
        if tx is None:
            return Transaction.objects.create(
                user_id=request.user_id,
                amount=quote.amount,
                currency=quote.currency,
                transaction_type=Transaction.TransactionType.DEBIT,
                status=Transaction.Status.SUCCESS,
                reference=reference,
                provider=request.payment_method,
                description=description,
                metadata={"plan_id": plan.id, "points_used": quote.points},
            )

        if tx.status == Transaction.Status.SUCCESS:
            winner = (
                EsimOrder.objects.select_related("esim")
                .filter(payment_reference=reference)
                .exclude(status=EsimOrder.Status.FAILED)
                .first()
            )
            if winner is not None:
                raise AlreadyProcessed(winner)
            raise ValidationError("Payment reference already used.")
        if (
            tx.user_id != request.user_id
            or tx.transaction_type != Transaction.TransactionType.DEBIT
        ):
            raise ValidationError("Payment reference already used.")

        tx.status = Transaction.Status.SUCCESS
        tx.amount = quote.amount
        tx.currency = quote.currency
        tx.description = description
        tx.save(update_fields=["status", "amount", "currency", "description", "updated_at"])
        return tx

    def _roll_back(self, request, plan, reference, quote, resource, reason):
        CompensationService.run(resource.external_id, reference, reason, carrier=self.carrier)
        self._record_failure(request, plan, reference, quote, resource.external_id, reason)

    def _record_failure(self, request, plan, reference, quote, external_id, reason):
        try:
            EsimOrder.objects.create(
                user_id=request.user_id,
                plan_id=plan.id,
                payment_reference=reference,
                payment_method=request.payment_method,
                external_order_id=external_id,
                status=EsimOrder.Status.FAILED,
                amount=quote.amount,
                currency=quote.currency,
                points_used=quote.points,
                is_gift=request.is_gift,
                gift_email=request.gift_email or "",
                failure_reason=(reason or "")[:255],
            )
        except DatabaseError:
            logger.exception("Could not record failed order: reference=%s", reference)

    def _activate(self, order: EsimOrder) -> None:
        """Best effort; a SIM that fails to activate stays PENDING for a manual retry."""
        try:
            self.carrier.activate(order.esim.external_id)
        except GatewayError as exc:
            logger.warning(
                "Activation deferred: order=%d external_id=%s error=%s",
                order.id,
                order.esim.external_id,
                exc,
            )
            return

        with transaction.atomic():
            ESim.objects.filter(pk=order.esim_id).update(status=ESim.Status.ACTIVE)
            EsimOrder.objects.filter(pk=order.pk, status=EsimOrder.Status.PENDING).update(
                status=EsimOrder.Status.ACTIVATED
            )
        order.refresh_from_db()
        order.esim.refresh_from_db()

    # ── Card payment initiation ───────────────────────────────

    def create_payment(self, user, plan_id, method, currency="USD", email=None, gift_email=""):
        """
        Open a processor charge for a plan and record it as a PENDING debit.

        The webhook (or a client call to purchase) later fulfils it with the
        returned reference.

        Returns:
            (ChargeIntent, Transaction)
        """
        if method not in CARD_METHODS:
            raise ValidationError(f"Unsupported payment method: {method}")
        plan = get_plan(plan_id)
        currency = clean_currency(currency)
        price = plan.price_in(currency)

        metadata = {"plan_id": plan.id, "purpose": "esim"}
        if gift_email:
            metadata["gift_email"] = gift_email

        gateway = self.gateway_factory(method)
        intent = gateway.create_charge(
            price, currency, user.pk, metadata=metadata, email=email or user.email
        )
        tx = Transaction.objects.create(
            user=user,
            amount=price,
            currency=currency,
            transaction_type=Transaction.TransactionType.DEBIT,
            status=Transaction.Status.PENDING,
            reference=intent.reference,
            provider=method,
            description=f"eSIM purchase: {plan.name}",
            metadata=metadata,
        )
        logger.info(
            "eSIM payment initiated: user=%s plan=%s provider=%s reference=%s",
            user.pk,
            plan.id,
            method,
            intent.reference,
        )
        return intent, tx

    # ── Lifecycle ─────────────────────────────────────────────

    @staticmethod
    def get_esim(user_id, esim_id) -> ESim:
        esim = ESim.objects.filter(pk=esim_id, user_id=user_id).first()
        if esim is None:
            raise NotFound("eSIM not found.")
        return esim

    @staticmethod
    def list_esims(user_id):
        return ESim.objects.filter(user_id=user_id).select_related("order")

    def activate_esim(self, user_id, esim_id) -> ESim:
        esim = self.get_esim(user_id, esim_id)
        if esim.status == ESim.Status.ACTIVE:
            return esim
        if esim.status == ESim.Status.EXPIRED:
            raise ValidationError("eSIM has expired.")

        self.carrier.activate(esim.external_id)
        with transaction.atomic():
            ESim.objects.filter(pk=esim.pk).update(status=ESim.Status.ACTIVE)
            EsimOrder.objects.filter(esim=esim, status=EsimOrder.Status.PENDING).update(
                status=EsimOrder.Status.ACTIVATED
            )
        esim.refresh_from_db()
        logger.info("eSIM activated: user=%s esim=%d", user_id, esim.id)
        return esim

    def deactivate_esim(self, user_id, esim_id) -> ESim:
        esim = self.get_esim(user_id, esim_id)
        if esim.status != ESim.Status.ACTIVE:
            return esim

        self.carrier.deactivate(esim.external_id)
        ESim.objects.filter(pk=esim.pk).update(status=ESim.Status.INACTIVE)
        esim.refresh_from_db()
        logger.info("eSIM deactivated: user=%s esim=%d", user_id, esim.id)
        return esim

    def get_usage(self, user_id, esim_id):
        esim = self.get_esim(user_id, esim_id)
        return self.carrier.get_usage(esim.external_id)
