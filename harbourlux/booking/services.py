"""Add-on service catalog helpers: legacy migration and per-booking snapshots."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from harbourlux.schemas.boat_schema import Service, ServicePricingType

logger = logging.getLogger(__name__)

# Phrases that legacy listings used in free text instead of a pricing tag.
PRICING_TYPE_ALIASES: dict[str, ServicePricingType] = {
    "per hour": ServicePricingType.PER_HOUR,
    "per hr": ServicePricingType.PER_HOUR,
    "/hour": ServicePricingType.PER_HOUR,
    "hourly": ServicePricingType.PER_HOUR,
    "per person": ServicePricingType.PER_PERSON,
    "per guest": ServicePricingType.PER_PERSON,
    "per head": ServicePricingType.PER_PERSON,
    "/person": ServicePricingType.PER_PERSON,
}


def infer_pricing_type(text: str) -> ServicePricingType:
    """Guess a pricing type from free text. Only used to migrate legacy records."""
    normalized = (text or "").lower()
    for alias, pricing_type in PRICING_TYPE_ALIASES.items():
        if alias in normalized:
            return pricing_type
    return ServicePricingType.FIXED


def migrate_service(raw: dict[str, Any]) -> Service:
    """Convert a legacy service dict into a Service with an explicit pricing type.

    Records that already carry ``pricing_type`` keep it. The rest are
    tagged from their description and name.
    """
    data = dict(raw)
    if not data.get("pricing_type"):
        text = f"{data.get('description', '')} {data.get('name', '')}"
        data["pricing_type"] = infer_pricing_type(text)
        logger.info(
            "Migrated service '%s' to pricing type '%s'",
            data.get("name", ""), data["pricing_type"].value,
        )
    try:
        data["price"] = Decimal(str(data.get("price") or 0))
    except InvalidOperation:
        logger.warning("Service '%s' has unparsable price %r, using 0", data.get("name"), raw.get("price"))
        data["price"] = Decimal("0")
    return Service.model_validate(data)


def migrate_catalog(raw_services: Iterable[dict[str, Any]]) -> list[Service]:
    return [migrate_service(raw) for raw in raw_services]


def find_service(catalog: Iterable[Service], name: str) -> Optional[Service]:
    """Match a service by name, case-insensitively."""
    normalized = name.lower().strip()
    for service in catalog:
        if service.name.lower().strip() == normalized:
            return service
    return None


def snapshot_services(catalog: Iterable[Service], names: Iterable[str]) -> list[Service]:
    """Copy the selected services so later catalog edits don't leak into a booking.

    Unknown names are skipped.
    """
    catalog = list(catalog)
    selected = []
    for name in names:
        service = find_service(catalog, name)
        if service is None:
            logger.debug("Selected service '%s' not in catalog, skipping", name)
            continue
        selected.append(service.model_copy(deep=True))
    return selected
