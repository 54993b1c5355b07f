import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from airswitch.exceptions import ValidationError
from airswitch.models import PointsTransaction, Referral
from airswitch.services.points import PointsService

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 5


def generate_referral_code() -> str:
    return f"AIR-{secrets.token_hex(4).upper()}"


def referral_points() -> int:
    return int(getattr(settings, "REFERRAL_POINTS", 500))


@dataclass
class ReferralClaim:
    referral: Referral
    awarded: bool


class ReferralService:
    @staticmethod
    def _create(referrer, referee_email="") -> Referral:
        for _ in range(CODE_ATTEMPTS):
            try:
                with transaction.atomic():
                    return Referral.objects.create(
                        referrer=referrer,
                        referee_email=referee_email,
                        referral_code=generate_referral_code(),
                    )
            except IntegrityError:
                logger.warning("Referral code collision, regenerating")
        raise ValidationError("Could not allocate a referral code.")

    @staticmethod
    def get_or_create_code(user) -> Referral:
        """The user's open shareable code, created on first request."""
        referral = Referral.objects.filter(
            referrer=user, referee_email="", status=Referral.Status.PENDING
        ).first()
        if referral is None:
            referral = ReferralService._create(user)
            logger.info("Referral code issued: user=%s code=%s", user.pk, referral.referral_code)
        return referral

    @staticmethod
    def invite(user, email: str) -> Referral:
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required.")
        if email == (user.email or "").lower():
            raise ValidationError("You cannot invite yourself.")
        if Referral.objects.filter(referrer=user, referee_email__iexact=email).exists():
            raise ValidationError("This email has already been invited.")
        referral = ReferralService._create(user, referee_email=email)
        logger.info("Referral invite created: user=%s code=%s", user.pk, referral.referral_code)
        return referral

    @staticmethod
    def claim(code: str, referee) -> Optional[ReferralClaim]:
        """
        Complete a referral when the referee signs up and credit the referrer.

        The PENDING -> COMPLETED transition is a conditional update, so of any
        number of concurrent claims exactly one awards points. Unknown and
        expired codes, self-referrals and users who were already referred are
        ignored so signup never fails because of a referral.

        Returns:
            ReferralClaim, with awarded=False for an already completed code,
            or None when the code is not claimable.
        """
        if not code:
            return None
        points = referral_points()

        with transaction.atomic():
            referral = Referral.objects.filter(referral_code=code).first()
            if referral is None:
                logger.info("Referral code not found: code=%s", code)
                return None
            if referral.status == Referral.Status.EXPIRED:
                logger.info("Referral code expired: code=%s", code)
                return None
            if referral.referrer_id == referee.pk:
                logger.warning("Self-referral ignored: user=%s code=%s", referee.pk, code)
                return None
            if (
                referral.status == Referral.Status.PENDING
                and Referral.objects.filter(
                    referee=referee, status=Referral.Status.COMPLETED
                ).exists()
            ):
                logger.info("Referee already referred: user=%s code=%s", referee.pk, code)
                return None

            updated = Referral.objects.filter(
                pk=referral.pk, status=Referral.Status.PENDING
            ).update(
                status=Referral.Status.COMPLETED,
                referee=referee,
                points_awarded=points,
                completed_at=timezone.now(),
            )
            referral.refresh_from_db()
            if not updated:
                logger.info("Referral already completed: code=%s", code)
                return ReferralClaim(referral, awarded=False)

            PointsService.credit(
                referral.referrer_id,
                points,
                PointsTransaction.PointsType.REFERRAL,
                description=f"Referral bonus for inviting {referee.email or referee.pk}",
                referral=referral,
            )

        logger.info(
            "Referral completed: code=%s referrer=%s referee=%s points=%d",
            code,
            referral.referrer_id,
            referee.pk,
            points,
        )
        return ReferralClaim(referral, awarded=True)

    @staticmethod
    def progress(user) -> dict:
        stats = Referral.objects.filter(referrer=user).aggregate(
            total=Count("id"),
            completed=Count("id", filter=Q(status=Referral.Status.COMPLETED)),
            pending=Count("id", filter=Q(status=Referral.Status.PENDING)),
            points_earned=Sum("points_awarded"),
        )
        stats["points_earned"] = stats["points_earned"] or 0
        return stats

    @staticmethod
    def history(user, limit: int = 50):
        """The user's most recent referrals, newest first, with the referee joined."""
        return Referral.objects.filter(referrer=user).select_related("referee")[:limit]
