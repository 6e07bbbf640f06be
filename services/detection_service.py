"""
Subscription detection service.
Encapsulates the parse -> detect pipeline for one statement file.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

from core.catalog import DEFAULT_CATALOG, ServiceCatalog, load_known_services
from core.config import Settings, get_settings
from core.detection import SubscriptionDetector
from core.exceptions import DataNotFoundError, ValidationError
from core.logger import setup_logger
from core.matching import ServiceMatcher
from core.parsing import StatementParser
from core.profiles import BANK_PROFILES, get_profile
from core.schema import BankProfile, DetectedSubscription, DetectionResult

logger = setup_logger(__name__)

NO_SUBSCRIPTIONS_MESSAGE = "No recurring subscriptions detected"


class SubscriptionDetectionService:
    """Service running bank statements through the subscription detection pipeline."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[ServiceCatalog] = None,
        profiles: Optional[Sequence[BankProfile]] = None
    ):
        """
        Initialize the service from settings.

        Args:
            settings: Application settings (defaults to the singleton)
            catalog: Known service catalog (defaults to KNOWN_SERVICES_PATH or the bundled file)
            profiles: Bank profile table (defaults to BANK_PROFILES)
        """
        self.settings = settings or get_settings()

        if catalog is None:
            if self.settings.known_services_path:
                catalog = load_known_services(self.settings.known_services_path)
            else:
                catalog = DEFAULT_CATALOG
        self.catalog = catalog
        self.profiles = tuple(BANK_PROFILES if profiles is None else profiles)

        self.parser = StatementParser(self.profiles)
        self.detector = SubscriptionDetector(
            matcher=ServiceMatcher(
                self.catalog.services,
                fuzzy_threshold=self.settings.fuzzy_match_threshold
            ),
            cost_strategy=self.settings.cost_strategy,
            name_max_length=self.settings.service_name_max_length,
        )

    def resolve_profile(self, name: Optional[str]) -> Optional[BankProfile]:
        """
        Turn a caller-supplied profile name into a profile.

        Raises:
            ValidationError: If the name matches no configured profile
        """
        if not name:
            return None
        try:
            return get_profile(name, self.profiles)
        except DataNotFoundError as e:
            raise ValidationError(e.message, details=e.details)

    def detect(self, text: str, profile: Optional[str] = None) -> List[DetectedSubscription]:
        """
        Detect subscriptions in raw statement text.

        Args:
            text: Full CSV file content
            profile: Optional profile name forcing the layout

        Returns:
            Subscriptions sorted by monthly cost, highest first
        """
        return self.analyze(text, profile=profile).subscriptions

    def analyze(
        self,
        text: str,
        filename: Optional[str] = None,
        profile: Optional[str] = None
    ) -> DetectionResult:
        """
        Run the full pipeline and collect statistics.

        Args:
            text: Full CSV file content
            filename: Original file name, reported back as-is
            profile: Optional profile name forcing the layout

        Returns:
            DetectionResult with subscriptions and parsing statistics
        """
        forced = self.resolve_profile(profile)
        logger.info(f"Analyzing statement {filename or '<text>'} (profile={forced.name if forced else 'auto'})")

        statement = self.parser.parse(text, forced)

        confidence_policy = None
        if statement.profile:
            used = next((p for p in self.profiles if p.name == statement.profile), None)
            confidence_policy = used.confidence_policy if used else None

        subscriptions = self.detector.detect(statement.transactions, confidence_policy=confidence_policy)
        total = sum((s.monthly_cost for s in subscriptions), Decimal("0"))

        if subscriptions:
            message = f"Found {len(subscriptions)} recurring subscription{'s' if len(subscriptions) > 1 else ''}"
        else:
            message = NO_SUBSCRIPTIONS_MESSAGE
            logger.warning(f"No subscriptions detected in {filename or '<text>'}")

        logger.info(
            f"Statement {filename or '<text>'}: {len(statement.transactions)} transactions, "
            f"{len(subscriptions)} subscriptions, total {total:.2f}/month"
        )

        return DetectionResult(
            filename=filename,
            profile=statement.profile,
            line_count=statement.line_count,
            transaction_count=len(statement.transactions),
            skipped_lines=statement.skipped_lines,
            subscriptions=subscriptions,
            total_monthly_cost=total,
            message=message,
        )
