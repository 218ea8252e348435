"""
scoring/tiering.py — Monthly tier, action and fine decision table

Maps a 0-100 monthly score (plus the subject's previous tier and fine streak)
to a performance tier and its consequences.

Default decision table:
    score >= 90  BONUS
    score >= 80  APPRECIATION
    score >= 70  IMPROVEMENT   (fined only if the previous month was IMPROVEMENT too)
    score <  70  FINE          (60-69 → 300, 50-59 → 600, < 50 → 1000)

Fine escalation for consecutive fined months:
    month_fine_count = prior_fine_count + 1   when base_fine > 0, else 0
    final_fine       = base_fine × min(cap, multiplier ** (month_fine_count - 1))

All thresholds and amounts come from settings; nothing here touches storage.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Optional

import structlog

from hrm_kpi.config import Settings, settings as default_settings
from hrm_kpi.models.enumerations import ActionType, Tier
from hrm_kpi.scoring.utils import round2

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class TierDecision:
    """Output of TieringPolicy.classify()."""
    tier: Tier
    action_type: ActionType
    base_fine: Decimal
    month_fine_count: int
    final_fine: Decimal
    gift_type: Optional[ActionType] = None

    @property
    def action_label(self) -> str:
        return self.action_type.label


@dataclass(frozen=True)
class TieringPolicy:
    """Configurable thresholds, fine bands and escalation."""
    bonus_min: Decimal = Decimal("90")
    appreciation_min: Decimal = Decimal("80")
    improvement_min: Decimal = Decimal("70")
    fine_band_low_min: Decimal = Decimal("60")
    fine_band_low_amount: Decimal = Decimal("300")
    fine_band_mid_min: Decimal = Decimal("50")
    fine_band_mid_amount: Decimal = Decimal("600")
    fine_band_high_amount: Decimal = Decimal("1000")
    repeated_improvement_fine: Decimal = Decimal("300")
    escalation_multiplier: Decimal = Decimal("1")
    escalation_cap: Decimal = Decimal("4")
    streak_tiers: FrozenSet[Tier] = field(default_factory=lambda: frozenset({Tier.IMPROVEMENT}))

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "TieringPolicy":
        s = s or default_settings
        return cls(
            bonus_min=s.TIER_BONUS_MIN,
            appreciation_min=s.TIER_APPRECIATION_MIN,
            improvement_min=s.TIER_IMPROVEMENT_MIN,
            fine_band_low_min=s.FINE_BAND_LOW_MIN,
            fine_band_low_amount=s.FINE_BAND_LOW_AMOUNT,
            fine_band_mid_min=s.FINE_BAND_MID_MIN,
            fine_band_mid_amount=s.FINE_BAND_MID_AMOUNT,
            fine_band_high_amount=s.FINE_BAND_HIGH_AMOUNT,
            repeated_improvement_fine=s.REPEATED_IMPROVEMENT_FINE,
            escalation_multiplier=s.FINE_ESCALATION_MULTIPLIER,
            escalation_cap=s.FINE_ESCALATION_CAP,
            streak_tiers=frozenset(Tier(t) for t in s.IMPROVEMENT_STREAK_TIERS),
        )

    # ------------------------------------------------------------------
    # Individual rules
    # ------------------------------------------------------------------

    def tier_for(self, monthly_score: Decimal) -> Tier:
        if monthly_score >= self.bonus_min:
            return Tier.BONUS
        if monthly_score >= self.appreciation_min:
            return Tier.APPRECIATION
        if monthly_score >= self.improvement_min:
            return Tier.IMPROVEMENT
        return Tier.FINE

    def score_band_fine(self, monthly_score: Decimal) -> Decimal:
        """Base fine from the score band; zero at or above the improvement threshold."""
        if monthly_score >= self.improvement_min:
            return ZERO
        if monthly_score >= self.fine_band_low_min:
            return self.fine_band_low_amount
        if monthly_score >= self.fine_band_mid_min:
            return self.fine_band_mid_amount
        return self.fine_band_high_amount

    def base_fine(self, monthly_score: Decimal, tier: Tier, previous_tier: Optional[Tier]) -> Decimal:
        """Score-band fine dominates; otherwise two IMPROVEMENT months in a row are fined."""
        band = self.score_band_fine(monthly_score)
        if band > 0:
            return band
        if tier == Tier.IMPROVEMENT and previous_tier == Tier.IMPROVEMENT:
            return self.repeated_improvement_fine
        return ZERO

    def escalation_factor(self, month_fine_count: int) -> Decimal:
        if month_fine_count <= 1:
            return Decimal("1")
        factor = self.escalation_multiplier ** (month_fine_count - 1)
        return min(factor, self.escalation_cap)

    @staticmethod
    def action_for(tier: Tier, base_fine: Decimal) -> ActionType:
        if tier == Tier.BONUS:
            return ActionType.BONUS
        if tier == Tier.APPRECIATION:
            return ActionType.APPRECIATION
        if tier == Tier.IMPROVEMENT:
            return ActionType.FINE if base_fine > 0 else ActionType.SHOW_CAUSE
        return ActionType.FINE

    @staticmethod
    def gift_type_for(tier: Tier) -> Optional[ActionType]:
        if tier == Tier.BONUS:
            return ActionType.BONUS
        if tier == Tier.APPRECIATION:
            return ActionType.APPRECIATION
        return None

    # ------------------------------------------------------------------
    # Decision table
    # ------------------------------------------------------------------

    def classify(
        self,
        monthly_score: Decimal,
        previous_tier: Optional[Tier],
        prior_fine_count: int = 0,
    ) -> TierDecision:
        """
        Classify a monthly score.

        Args:
            monthly_score: Monthly score in [0, 100]
            previous_tier: Tier of the subject's previous computed month, or None
            prior_fine_count: Consecutive fined months before this one

        Returns:
            TierDecision

        Examples:
            >>> policy = TieringPolicy()
            >>> policy.classify(Decimal("82.5"), None).tier
            <Tier.APPRECIATION: 'APPRECIATION'>
            >>> policy.classify(Decimal("55"), None).final_fine
            Decimal('600.00')
        """
        if not isinstance(monthly_score, Decimal):
            monthly_score = Decimal(str(monthly_score))
        if not Decimal("0") <= monthly_score <= Decimal("100"):
            raise ValueError(f"monthly_score must be in [0, 100], got {monthly_score}")
        if prior_fine_count < 0:
            raise ValueError(f"prior_fine_count must be >= 0, got {prior_fine_count}")

        tier = self.tier_for(monthly_score)
        base_fine = self.base_fine(monthly_score, tier, previous_tier)
        month_fine_count = prior_fine_count + 1 if base_fine > 0 else 0
        final_fine = round2(base_fine * self.escalation_factor(month_fine_count)) if base_fine > 0 else round2(ZERO)

        decision = TierDecision(
            tier=tier,
            action_type=self.action_for(tier, base_fine),
            base_fine=round2(base_fine),
            month_fine_count=month_fine_count,
            final_fine=final_fine,
            gift_type=self.gift_type_for(tier),
        )

        logger.debug(
            "tier_classified",
            monthly_score=str(monthly_score),
            previous_tier=previous_tier.value if previous_tier else None,
            tier=tier.value,
            base_fine=str(decision.base_fine),
            month_fine_count=month_fine_count,
            final_fine=str(final_fine),
        )
        return decision

    def update_consecutive_improvement_months(self, tier: Tier, previous_count: int) -> int:
        """Extend the streak for streak tiers; any other tier (always FINE) resets it."""
        if tier != Tier.FINE and tier in self.streak_tiers:
            return previous_count + 1
        return 0


def classify(
    monthly_score: Decimal,
    previous_tier: Optional[Tier],
    prior_fine_count: int = 0,
    policy: Optional[TieringPolicy] = None,
) -> TierDecision:
    """Module-level shortcut using the configured policy."""
    return (policy or TieringPolicy.from_settings()).classify(
        monthly_score, previous_tier, prior_fine_count
    )
