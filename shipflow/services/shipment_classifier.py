"""
Shipment classification and courier payer assignment.

Both functions are total: any combination of roles and reasons resolves to
a classification and a payer. Unknown combinations degrade to the
FORWARD / BRAND default and are logged as anomalies instead of failing
shipment creation.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from shipflow.models.party import PartyRole
from shipflow.models.shipment import ShipmentType, ShipmentDirection, ReturnReason, PayerRole

logger = logging.getLogger(__name__)

RoleLike = Union[PartyRole, str, None]
ReasonLike = Union[ReturnReason, str, None]

# Reasons a service center may select when returning stock to the brand
SERVICE_CENTER_RETURN_REASONS = {
    ReturnReason.DEFECTIVE,
    ReturnReason.EXCESS,
    ReturnReason.WRONG_PART,
}


@dataclass(frozen=True)
class ShipmentClassification:
    """Logical type, direction and optional return reason of a shipment."""
    shipment_type: ShipmentType
    direction: ShipmentDirection
    return_reason: Optional[ReturnReason] = None

    def to_dict(self) -> dict:
        return {
            "shipment_type": self.shipment_type.value,
            "direction": self.direction.value,
            "return_reason": self.return_reason.value if self.return_reason else None,
        }


@dataclass(frozen=True)
class PayerAssignment:
    """Responsible payer plus audit-facing justification."""
    payer: PayerRole
    justification: str

    def to_dict(self) -> dict:
        return {
            "payer": self.payer.value,
            "justification": self.justification,
        }


DEFAULT_CLASSIFICATION = ShipmentClassification(
    shipment_type=ShipmentType.FORWARD,
    direction=ShipmentDirection.BRAND,
)


def _role_value(role: RoleLike) -> str:
    if role is None:
        return ""
    if isinstance(role, Enum):
        return str(role.value).strip().upper()
    return str(role).strip().upper()


def _parse_reason(reason: ReasonLike) -> Optional[ReturnReason]:
    if reason is None or isinstance(reason, ReturnReason):
        return reason
    try:
        return ReturnReason(str(reason).strip().upper())
    except ValueError:
        return None


def classify_shipment(
    origin_role: RoleLike,
    destination_role: RoleLike,
    return_reason: ReasonLike = None,
) -> ShipmentClassification:
    """
    Classify a shipment from the roles of its two parties.

    Rules are evaluated in order, first match wins:
        BRAND -> SERVICE_CENTER | DISTRIBUTOR   FORWARD / BRAND
        SERVICE_CENTER -> CUSTOMER              FORWARD / SERVICE_CENTER
        SERVICE_CENTER -> BRAND                 REVERSE / SERVICE_CENTER / reason
                                                (DEFECTIVE, EXCESS, WRONG_PART;
                                                anything else becomes EXCESS)
        CUSTOMER -> SERVICE_CENTER              REVERSE / SERVICE_CENTER / WARRANTY_RETURN
        DISTRIBUTOR -> SERVICE_CENTER           FORWARD / DISTRIBUTOR
        anything else                           FORWARD / BRAND
    """
    origin = _role_value(origin_role)
    destination = _role_value(destination_role)

    if origin == PartyRole.BRAND.value and destination in (
        PartyRole.SERVICE_CENTER.value,
        PartyRole.DISTRIBUTOR.value,
    ):
        return ShipmentClassification(ShipmentType.FORWARD, ShipmentDirection.BRAND)

    if origin == PartyRole.SERVICE_CENTER.value and destination == PartyRole.CUSTOMER.value:
        return ShipmentClassification(ShipmentType.FORWARD, ShipmentDirection.SERVICE_CENTER)

    if origin == PartyRole.SERVICE_CENTER.value and destination == PartyRole.BRAND.value:
        reason = _parse_reason(return_reason)
        if reason not in SERVICE_CENTER_RETURN_REASONS:
            reason = ReturnReason.EXCESS
        return ShipmentClassification(
            ShipmentType.REVERSE,
            ShipmentDirection.SERVICE_CENTER,
            reason,
        )

    if origin == PartyRole.CUSTOMER.value and destination == PartyRole.SERVICE_CENTER.value:
        return ShipmentClassification(
            ShipmentType.REVERSE,
            ShipmentDirection.SERVICE_CENTER,
            ReturnReason.WARRANTY_RETURN,
        )

    if origin == PartyRole.DISTRIBUTOR.value and destination == PartyRole.SERVICE_CENTER.value:
        return ShipmentClassification(ShipmentType.FORWARD, ShipmentDirection.DISTRIBUTOR)

    logger.warning(
        f"Unknown shipment classification {origin or '?'} -> {destination or '?'} "
        f"(reason={return_reason}), using default FORWARD/BRAND"
    )
    return DEFAULT_CLASSIFICATION


def assign_payer(classification: ShipmentClassification) -> PayerAssignment:
    """Resolve who pays the courier for a classified shipment."""
    shipment_type = classification.shipment_type
    direction = classification.direction

    if shipment_type == ShipmentType.FORWARD:
        if direction == ShipmentDirection.BRAND:
            return PayerAssignment(
                PayerRole.BRAND,
                "Brand initiated forward shipment to service center/distributor",
            )
        if direction == ShipmentDirection.SERVICE_CENTER:
            return PayerAssignment(
                PayerRole.SERVICE_CENTER,
                "Service center delivering to customer",
            )
        if direction == ShipmentDirection.DISTRIBUTOR:
            return PayerAssignment(
                PayerRole.SERVICE_CENTER,
                "Service center receiving stock from distributor",
            )

    if shipment_type == ShipmentType.REVERSE and direction == ShipmentDirection.SERVICE_CENTER:
        reason = classification.return_reason
        if reason == ReturnReason.DEFECTIVE:
            return PayerAssignment(
                PayerRole.BRAND,
                "Brand responsible for defective parts return",
            )
        if reason == ReturnReason.WRONG_PART:
            return PayerAssignment(
                PayerRole.BRAND,
                "Brand responsible for wrong parts return",
            )
        if reason == ReturnReason.EXCESS:
            return PayerAssignment(
                PayerRole.SERVICE_CENTER,
                "Service center returning excess stock",
            )
        if reason == ReturnReason.WARRANTY_RETURN:
            # Warranty reimbursement is decided outside this core
            return PayerAssignment(
                PayerRole.CUSTOMER,
                "Customer warranty return (reimbursable if warranty is valid)",
            )

    logger.warning(f"No payer rule for {classification.to_dict()}, defaulting to BRAND")
    return PayerAssignment(PayerRole.BRAND, "Default shipment payer")
