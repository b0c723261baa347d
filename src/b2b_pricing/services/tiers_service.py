"""
Tiers Service - CRUD operations for incentive tiers.
Handles reading/writing incentive_tiers.csv.
"""
import csv
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from ..engine.incentives import load_tiers, sample_label, select_tier
from ..engine.models import IncentiveTier
from ..exceptions import TierNotFoundError, TierValidationError

logger = logging.getLogger(__name__)


@dataclass
class Tier:
    """Represents an editable incentive tier row."""
    threshold_netto: str
    sample_count: int
    label: str = ""
    active: bool = True

    def to_csv_row(self) -> dict:
        """Convert to CSV row format."""
        return {
            'threshold_netto': self.threshold_netto,
            'sample_count': str(self.sample_count),
            'label': self.label or '',
            'active': 'true' if self.active else 'false',
        }

    @classmethod
    def from_csv_row(cls, row: dict) -> 'Tier':
        """Create Tier from CSV row."""
        return cls(
            threshold_netto=(row.get('threshold_netto') or '').strip(),
            sample_count=int(row.get('sample_count') or 0),
            label=row.get('label') or '',
            active=(row.get('active') or 'true').lower() == 'true',
        )


@dataclass
class ValidationResult:
    """Result of tier validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class TiersService:
    """Service for managing incentive tiers."""

    CSV_COLUMNS = ['threshold_netto', 'sample_count', 'label', 'active']

    def __init__(self, tiers_csv_path: Path, currency: str = 'zł'):
        self.tiers_csv_path = tiers_csv_path
        self.currency = currency

    def list_tiers(self, include_inactive: bool = True) -> list[Tier]:
        """List all tiers from CSV, ordered by threshold."""
        tiers = []
        if not self.tiers_csv_path.exists():
            return tiers

        with open(self.tiers_csv_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for row in reader:
                if not row.get('threshold_netto'):
                    continue
                try:
                    tier = Tier.from_csv_row(row)
                except ValueError:
                    logger.warning("Skipping unreadable tier row: %s", row)
                    continue
                if include_inactive or tier.active:
                    tiers.append(tier)

        return sorted(tiers, key=self._sort_key)

    def active_tiers(self) -> list[IncentiveTier]:
        """The tier table exactly as the engine loads it."""
        return load_tiers(self.tiers_csv_path, self.currency)

    def get_tier(self, threshold: str) -> Optional[Tier]:
        """Get a single tier by threshold."""
        key = self._normalize(threshold)
        for tier in self.list_tiers():
            if self._normalize(tier.threshold_netto) == key:
                return tier
        return None

    def create_tier(self, tier: Tier) -> Tier:
        """Create a new tier; raises TierValidationError when it does not validate."""
        validation = self.validate_tier(tier)
        if not validation.valid:
            raise TierValidationError(validation.errors)

        if not tier.label:
            tier.label = self.default_label(tier)

        tiers = self.list_tiers()
        tiers.append(tier)
        self._write_tiers(tiers)
        return tier

    def update_tier(self, threshold: str, updates: dict) -> Tier:
        """
        Update an existing tier.

        The merged tier is validated before anything is written. A generated
        label follows a changed sample count; a custom label is kept.
        """
        tiers = self.list_tiers()
        key = self._normalize(threshold)
        if key is None:
            raise TierNotFoundError(threshold)

        for i, tier in enumerate(tiers):
            if self._normalize(tier.threshold_netto) == key:
                break
        else:
            raise TierNotFoundError(threshold)

        merged = replace(tier, **{k: v for k, v in updates.items() if hasattr(tier, k) and v is not None})
        validation = self.validate_tier(merged, is_new=False)
        if not validation.valid:
            raise TierValidationError(validation.errors)

        if updates.get('label') is None and (not tier.label or tier.label == self.default_label(tier)):
            merged.label = self.default_label(merged)

        tiers[i] = merged
        self._write_tiers(tiers)
        return merged

    def default_label(self, tier: Tier) -> str:
        """Generated display name of a tier's sample bundle."""
        return sample_label(self._normalize(tier.threshold_netto), tier.sample_count, self.currency)

    def delete_tier(self, threshold: str) -> bool:
        """Delete a tier."""
        tiers = self.list_tiers()
        key = self._normalize(threshold)
        remaining = [t for t in tiers if self._normalize(t.threshold_netto) != key]

        if len(remaining) == len(tiers):
            raise TierNotFoundError(threshold)

        self._write_tiers(remaining)
        return True

    def validate_tier(self, tier: Tier, is_new: bool = True) -> ValidationResult:
        """Validate a tier before saving."""
        result = ValidationResult(valid=True)

        threshold = self._normalize(tier.threshold_netto)
        if threshold is None:
            result.errors.append("Threshold must be a number")
            result.valid = False
        elif threshold <= 0:
            result.errors.append("Threshold must be positive")
            result.valid = False

        if tier.sample_count <= 0:
            result.errors.append("Sample count must be positive")
            result.valid = False

        if result.valid and is_new and self.get_tier(tier.threshold_netto):
            result.errors.append(f"Tier with threshold '{tier.threshold_netto}' already exists")
            result.valid = False

        # Check the table stays monotone
        if result.valid:
            result.warnings.extend(self._check_monotone(tier, threshold))

        return result

    def preview(self, net_subtotal: Decimal) -> Optional[IncentiveTier]:
        """Tier a cart with this net subtotal would earn."""
        return select_tier(net_subtotal, self.active_tiers())

    def get_stats(self) -> dict:
        """Get statistics about tiers."""
        tiers = self.list_tiers()
        active = [t for t in tiers if t.active]
        return {
            'total': len(tiers),
            'active': len(active),
            'inactive': len(tiers) - len(active),
            'max_samples': max((t.sample_count for t in active), default=0),
        }

    def _check_monotone(self, tier: Tier, threshold: Decimal) -> list[str]:
        """Warn when a higher threshold would grant fewer samples than a lower one."""
        warnings = []
        for existing in self.list_tiers():
            existing_threshold = self._normalize(existing.threshold_netto)
            if existing_threshold is None or existing_threshold == threshold:
                continue
            lower_gives_more = existing_threshold < threshold and existing.sample_count > tier.sample_count
            higher_gives_less = existing_threshold > threshold and existing.sample_count < tier.sample_count
            if lower_gives_more or higher_gives_less:
                warnings.append(
                    f"Tier {existing.threshold_netto} grants {existing.sample_count} samples; "
                    f"sample counts should grow with the threshold"
                )
        return warnings

    @staticmethod
    def _normalize(threshold) -> Optional[Decimal]:
        try:
            value = Decimal(str(threshold).strip())
        except (InvalidOperation, ValueError):
            return None
        return value if value.is_finite() else None

    def _sort_key(self, tier: Tier):
        threshold = self._normalize(tier.threshold_netto)
        return threshold if threshold is not None else Decimal('Infinity')

    def _write_tiers(self, tiers: list[Tier]):
        """Write tiers back to CSV."""
        self.tiers_csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.tiers_csv_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
            writer.writeheader()
            for tier in tiers:
                writer.writerow(tier.to_csv_row())
