"""
Input normalization for charge contexts.

Operational events arrive with free-text task types, shipment directions and
legacy price-list values. These helpers turn them into the category keys,
service codes and enum members the resolver works with. None of this affects
rate math.
"""
import re
from typing import Optional

from stride_billing.models.service_catalog import BillingTrigger, BillingUnit

# Legacy price-list codes for tasks without a category
TASK_TYPE_TO_SERVICE_CODE = {
    "Inspection": "INSP",
    "Will Call": "Will_Call",
    "Disposal": "Disposal",
    "Assembly": "15MA",
    "Repair": "1HRO",
    "Receiving": "RCVG",
    "Returns": "Returns",
}

DEFAULT_TASK_SERVICE_CODE = "INSP"

# Outbound uses Will_Call for class-based pickup/release fees
SHIPMENT_DIRECTION_TO_SERVICE_CODE = {
    "inbound": "RCVG",
    "outbound": "Will_Call",
    "return": "Returns",
}

DEFAULT_SHIPMENT_SERVICE_CODE = "RCVG"

# Task types billed once per task when a quantity override is supplied
PER_TASK_TASK_TYPES = {"Assembly", "Repair"}

_LEGACY_UNITS = {
    "day": BillingUnit.PER_DAY,
    "per_day": BillingUnit.PER_DAY,
    "perday": BillingUnit.PER_DAY,
    "item": BillingUnit.PER_ITEM,
    "per_item": BillingUnit.PER_ITEM,
    "peritem": BillingUnit.PER_ITEM,
    "task": BillingUnit.PER_TASK,
    "per_task": BillingUnit.PER_TASK,
    "pertask": BillingUnit.PER_TASK,
}


def normalize_category(value: Optional[str]) -> Optional[str]:
    """
    Lowercase snake-case category key.

    Examples:
        >>> normalize_category("Will Call")
        'will_call'
        >>> normalize_category("  Receiving ")
        'receiving'
    """
    if value is None:
        return None
    key = re.sub(r"[\s\-]+", "_", value.strip().lower())
    return key or None


def category_for_task_type(task_type: str) -> Optional[str]:
    return normalize_category(task_type)


def service_code_for_task_type(task_type: Optional[str]) -> str:
    return TASK_TYPE_TO_SERVICE_CODE.get(task_type or "", DEFAULT_TASK_SERVICE_CODE)


def service_code_for_direction(direction: Optional[str]) -> str:
    return SHIPMENT_DIRECTION_TO_SERVICE_CODE.get(
        (direction or "").lower(), DEFAULT_SHIPMENT_SERVICE_CODE
    )


def is_per_task_billing(task_type: Optional[str]) -> bool:
    return task_type in PER_TASK_TASK_TYPES


def map_legacy_unit(value) -> BillingUnit:
    """
    Map a price-list unit ("Day", "Item", "Task", "PER_DAY") to BillingUnit.

    Raises:
        ValueError: unit has no billing equivalent (e.g. "Hour")
    """
    if isinstance(value, BillingUnit):
        return value
    key = re.sub(r"[\s\-]+", "_", str(value or "").strip().lower())
    unit = _LEGACY_UNITS.get(key)
    if unit is None:
        raise ValueError(f"Unsupported billing unit: {value!r}")
    return unit


def map_legacy_trigger(value) -> BillingTrigger:
    """
    Map a price-list trigger ("SCAN EVENT", "Task Completion", ...) to
    BillingTrigger. Manual and unrecognized triggers are scan events, which
    is how manual charges are raised.
    """
    if isinstance(value, BillingTrigger):
        return value
    if not value:
        return BillingTrigger.SCAN_EVENT
    lower = str(value).strip().lower()
    upper = lower.upper().replace(" ", "_")
    if upper in BillingTrigger.__members__:
        return BillingTrigger[upper]

    if "stocktake" in lower:
        return BillingTrigger.STOCKTAKE
    if "flag" in lower:
        return BillingTrigger.FLAG
    if "auto" in lower or "calculate" in lower or "storage" in lower:
        return BillingTrigger.AUTOCALCULATE
    if "task" in lower or "completion" in lower:
        return BillingTrigger.THROUGH_TASK
    if any(word in lower for word in ("ship", "receiv", "inbound", "outbound")):
        return BillingTrigger.SHIPMENT
    return BillingTrigger.SCAN_EVENT
