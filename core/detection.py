"""
Recurring subscription detection.

Transactions are grouped by merchant identity (catalog service or cleaned
label), each group is tested for a monthly or annual cadence, and accepted
groups are turned into DetectedSubscription records.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional, Tuple

import pandas as pd

from core.logger import setup_logger
from core.matching import ServiceMatcher
from core.normalize import LabelNormalizer, display_name, initial_icon, normalize_label
from core.schema import ConfidencePolicy, DetectedSubscription, KnownService, Transaction

logger = setup_logger(__name__)

# Day gaps between the two latest payments, bounds inclusive
MONTHLY_WINDOW: Tuple[int, int] = (20, 45)
ANNUAL_WINDOW: Tuple[int, int] = (350, 380)

# Latest gap from which the renewal is pushed a year ahead
ANNUAL_RENEWAL_MIN_DAYS = 300

MIN_UNKNOWN_OCCURRENCES = 2

CostStrategy = Literal["latest", "mean"]
Cadence = Literal["monthly", "annual"]


@dataclass
class TransactionGroup:
    """Transactions sharing one merchant identity."""
    key: str
    service: Optional[KnownService] = None
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return self.service is not None

    def newest_first(self) -> List[Transaction]:
        return sorted(self.transactions, key=lambda t: t.date, reverse=True)

    def latest_gap(self) -> Optional[int]:
        """Days between the two most recent transactions."""
        ordered = self.newest_first()
        if len(ordered) < 2:
            return None
        return abs((ordered[0].date - ordered[1].date).days)


def classify_interval(days: Optional[int]) -> Optional[Cadence]:
    """Map a day gap to a billing cadence, None when it fits neither window."""
    if days is None:
        return None
    if MONTHLY_WINDOW[0] <= days <= MONTHLY_WINDOW[1]:
        return "monthly"
    if ANNUAL_WINDOW[0] <= days <= ANNUAL_WINDOW[1]:
        return "annual"
    return None


def next_renewal(latest: date, annual: bool = False) -> date:
    """One calendar month after the latest payment, twelve for annual plans."""
    months = 12 if annual else 1
    return (pd.Timestamp(latest) + pd.DateOffset(months=months)).date()


class SubscriptionDetector:
    """Infer recurring subscriptions from an ordered transaction sequence."""

    def __init__(
        self,
        matcher: Optional[ServiceMatcher] = None,
        cost_strategy: CostStrategy = "latest",
        confidence_policy: ConfidencePolicy = "by_count",
        name_max_length: int = 20,
        normalizer: LabelNormalizer = normalize_label
    ):
        """
        Args:
            matcher: Known service matcher (defaults to the bundled catalog)
            cost_strategy: "latest" uses the most recent amount, "mean" the group average
            confidence_policy: "by_count" grades unknown merchants by occurrences, "flat" keeps them medium
            name_max_length: Cap for display names built from labels
            normalizer: Label -> grouping key function
        """
        if cost_strategy not in ("latest", "mean"):
            raise ValueError(f"Unknown cost strategy: {cost_strategy}")
        self.matcher = matcher or ServiceMatcher()
        self.cost_strategy = cost_strategy
        self.confidence_policy = confidence_policy
        self.name_max_length = name_max_length
        self.normalizer = normalizer

    def group(self, transactions: Iterable[Transaction]) -> List[TransactionGroup]:
        """
        Group transactions by merchant identity, in first-seen order.

        Labels that clean up to nothing are left out.
        """
        groups: Dict[Tuple[str, str], TransactionGroup] = {}
        for txn in transactions:
            service = self.matcher.match(txn.label)
            if service is not None:
                key = ("known", service.keyword)
            else:
                cleaned = self.normalizer(txn.label)
                if not cleaned:
                    logger.debug(f"Label '{txn.label}' has no merchant text left, ignored")
                    continue
                key = ("label", cleaned)

            group = groups.get(key)
            if group is None:
                group = groups[key] = TransactionGroup(key=key[1], service=service)
            group.transactions.append(txn)

        return list(groups.values())

    def _monthly_cost(self, ordered: List[Transaction]) -> Decimal:
        if self.cost_strategy == "mean":
            return sum((t.amount for t in ordered), Decimal("0")) / len(ordered)
        return ordered[0].amount

    def _confidence(self, group: TransactionGroup, policy: ConfidencePolicy) -> str:
        if group.is_known:
            return "high"
        if policy == "flat":
            return "medium"
        return "high" if len(group.transactions) >= 3 else "medium"

    def evaluate(
        self,
        group: TransactionGroup,
        confidence_policy: Optional[ConfidencePolicy] = None
    ) -> Optional[DetectedSubscription]:
        """
        Test one group for recurrence.

        Known services are always accepted. Unknown merchants need at least
        two payments whose latest gap is monthly or annual.

        Returns:
            DetectedSubscription, or None when the group is not recurring
        """
        if not group.transactions:
            return None

        ordered = group.newest_first()
        gap = group.latest_gap()

        if not group.is_known:
            if len(ordered) < MIN_UNKNOWN_OCCURRENCES:
                return None
            if classify_interval(gap) is None:
                logger.debug(f"Group '{group.key}' rejected: latest gap {gap} days")
                return None

        annual = gap is not None and gap >= ANNUAL_RENEWAL_MIN_DAYS
        policy = confidence_policy or self.confidence_policy

        if group.is_known:
            name, icon = group.service.name, group.service.icon
        else:
            name = display_name(group.key, self.name_max_length)
            icon = initial_icon(name)

        return DetectedSubscription(
            service_name=name,
            monthly_cost=self._monthly_cost(ordered),
            renewal_date=next_renewal(ordered[0].date, annual=annual),
            confidence=self._confidence(group, policy),
            icon=icon,
        )

    def detect(
        self,
        transactions: Iterable[Transaction],
        confidence_policy: Optional[ConfidencePolicy] = None
    ) -> List[DetectedSubscription]:
        """
        Detect recurring subscriptions.

        Args:
            transactions: Parsed transactions, any order
            confidence_policy: Override the detector's policy for this call

        Returns:
            Subscriptions sorted by monthly cost, highest first
        """
        groups = self.group(transactions)
        subscriptions = [
            sub for sub in (self.evaluate(g, confidence_policy) for g in groups)
            if sub is not None
        ]
        logger.info(f"Detected {len(subscriptions)} subscriptions from {len(groups)} merchant groups")
        # sorted() is stable, ties keep group order
        return sorted(subscriptions, key=lambda s: s.monthly_cost, reverse=True)
