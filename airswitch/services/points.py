import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, Sum

from airswitch.exceptions import InsufficientPoints, NotFound, ValidationError
from airswitch.models import PointsTransaction, Transaction, UserPoints
from airswitch.services.wallet import CENT, WalletService, clean_currency
from airswitch.utils.fx import get_rate_provider

logger = logging.getLogger(__name__)


def points_per_usd() -> int:
    return int(getattr(settings, "POINTS_PER_USD", 100))


def clean_points(points) -> int:
    try:
        value = int(points)
    except (TypeError, ValueError):
        raise ValidationError("Points must be a whole number.")
    if value <= 0 or str(points).strip() != str(value):
        raise ValidationError("Points must be a positive whole number.")
    return value


def points_value(points: int, currency: str, rates=None) -> Decimal:
    """Monetary value of points in the given currency, rounded down to the cent."""
    rates = rates or get_rate_provider()
    usd = Decimal(points) / points_per_usd()
    return (usd * rates.get_rate("USD", currency)).quantize(CENT, rounding=ROUND_DOWN)


@dataclass
class Redemption:
    points_transaction: PointsTransaction
    transaction: Transaction
    amount: Decimal
    currency: str


class PointsService:
    """
    Loyalty points ledger.

    available/redeemed/total are always changed together in one UPDATE and
    every change is mirrored by a PointsTransaction row.
    """

    @staticmethod
    def get_or_create(user_id) -> UserPoints:
        user_points, _ = UserPoints.objects.get_or_create(user_id=user_id)
        return user_points

    @staticmethod
    def credit(user_id, points: int, points_type, description="", referral=None):
        """Add earned points. Call inside an atomic block."""
        user_points = PointsService.get_or_create(user_id)
        UserPoints.objects.filter(pk=user_points.pk).update(
            total_points=F("total_points") + points,
            available_points=F("available_points") + points,
        )
        return PointsTransaction.objects.create(
            user_id=user_id,
            user_points=user_points,
            amount=points,
            points_type=points_type,
            description=description,
            referral=referral,
        )

    @staticmethod
    def deduct(user_id, points: int, description="", points_type=None):
        """
        Spend available points. Call inside an atomic block.

        Raises:
            InsufficientPoints: fewer than `points` are available at commit time.
        """
        updated = UserPoints.objects.filter(
            user_id=user_id, available_points__gte=points
        ).update(
            available_points=F("available_points") - points,
            redeemed_points=F("redeemed_points") + points,
        )
        if not updated:
            raise InsufficientPoints()
        user_points = UserPoints.objects.get(user_id=user_id)
        return PointsTransaction.objects.create(
            user_id=user_id,
            user_points=user_points,
            amount=-points,
            points_type=points_type or PointsTransaction.PointsType.REDEEM,
            description=description,
        )

    @staticmethod
    def redeem(user_id, points, currency="USD", rates=None) -> Redemption:
        """
        Convert points into wallet balance.

        100 points are worth 1 USD by default; other currencies go through the
        rate provider and are rounded down to the cent. The points debit, the
        wallet credit and both audit rows commit together.

        Raises:
            ValidationError: invalid points/currency or a value under one cent.
            InsufficientPoints: not enough available points.
            NotFound: no points account or no wallet.
        """
        points = clean_points(points)
        currency = clean_currency(currency)
        try:
            amount = points_value(points, currency, rates)
        except ValueError as exc:
            raise ValidationError(str(exc))
        if amount <= 0:
            raise ValidationError("Too few points to redeem.")

        with transaction.atomic():
            user_points = (
                UserPoints.objects.select_for_update().filter(user_id=user_id).first()
            )
            if user_points is None:
                raise NotFound("Points account not found.")
            if user_points.available_points < points:
                raise InsufficientPoints()

            ptx = PointsService.deduct(
                user_id,
                points,
                description=f"Redeemed {points} points for {amount} {currency}",
            )
            WalletService.credit(user_id, amount, currency)
            tx = Transaction.objects.create(
                user_id=user_id,
                amount=amount,
                currency=currency,
                transaction_type=Transaction.TransactionType.CREDIT,
                status=Transaction.Status.SUCCESS,
                description=f"Redeemed {points} points",
                metadata={"points": points},
            )

        logger.info(
            "Points redeemed: user=%s points=%d credit=%s %s",
            user_id,
            points,
            amount,
            currency,
        )
        return Redemption(ptx, tx, amount, currency)

    @staticmethod
    @transaction.atomic
    def award_bonus(user_id, points, reason="") -> PointsTransaction:
        """Operator-granted points."""
        points = clean_points(points)
        ptx = PointsService.credit(
            user_id,
            points,
            PointsTransaction.PointsType.BONUS,
            description=reason or "Bonus points",
        )
        logger.info("Bonus points awarded: user=%s points=%d", user_id, points)
        return ptx

    @staticmethod
    def history(user_id):
        return PointsTransaction.objects.filter(user_id=user_id).order_by(
            "-created_at", "-id"
        )

    @staticmethod
    def breakdown(user_id) -> dict:
        """Points earned per source plus points redeemed."""
        types = PointsTransaction.PointsType
        earned = Q(amount__gt=0)
        totals = PointsTransaction.objects.filter(user_id=user_id).aggregate(
            referral=Sum("amount", filter=earned & Q(points_type=types.REFERRAL)),
            purchase=Sum("amount", filter=earned & Q(points_type=types.PURCHASE)),
            bonus=Sum("amount", filter=earned & Q(points_type=types.BONUS)),
            adjustment=Sum("amount", filter=Q(points_type=types.ADJUSTMENT)),
            redeemed=Sum("amount", filter=Q(points_type=types.REDEEM)),
        )
        result = {key: value or 0 for key, value in totals.items()}
        result["redeemed"] = abs(result["redeemed"])
        return result
