"""
serialization.py - Record codecs for the persistence boundary

Converts frozen records to JSON-ready dicts and back. Persisted blobs use the
camelCase field names of the stored collections; Decimals are written as
strings so values survive the round trip exactly, datetimes as ISO-8601.

Every *_from_dict function validates its input and raises
RecordValidationError on a missing field or a malformed value. This is the
only place raw blobs are turned into records.
"""

from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, TypeVar

from .core import (
    Activity, ActivityType, Holding, Portfolio, Property, Snapshot, User,
    RecordValidationError, to_decimal,
)


T = TypeVar("T")


# ============================================================================
# SCALAR HELPERS
# ============================================================================

def _dec(value: Decimal) -> str:
    return str(value)


def _ts(value: datetime) -> str:
    return value.isoformat()


def _field(raw: Mapping[str, Any], key: str, record: str) -> Any:
    try:
        return raw[key]
    except KeyError:
        raise RecordValidationError(f"{record} record missing field '{key}'") from None
    except TypeError:
        raise RecordValidationError(f"{record} record must be an object, got {type(raw).__name__}") from None


def parse_datetime(value: Any) -> datetime:
    """
    Parse an ISO-8601 string or an epoch timestamp in milliseconds.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        result = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            result = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise RecordValidationError(f"Invalid timestamp {value!r}") from e
    else:
        raise RecordValidationError(f"Invalid timestamp {value!r}")
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


def _decode(decoder: Callable[[Mapping[str, Any]], T], raw: Any, record: str) -> T:
    """Run a decoder, folding stray TypeErrors into RecordValidationError."""
    try:
        return decoder(raw)
    except TypeError as e:
        raise RecordValidationError(f"Malformed {record} record: {e}") from e


# ============================================================================
# PROPERTY
# ============================================================================

def property_to_dict(prop: Property) -> Dict[str, Any]:
    return {
        "id": prop.id,
        "name": prop.name,
        "segment": prop.segment,
        "description": prop.description,
        "location": prop.location,
        "yearBuilt": prop.year_built,
        "totalUnits": prop.total_units,
        "occupancyRate": _dec(prop.occupancy_rate),
        "currentValueMMK": _dec(prop.current_value_mmk),
        "sharePriceMMK": _dec(prop.share_price_mmk),
        "totalShares": prop.total_shares,
        "availableShares": prop.available_shares,
        "cisOwnershipPct": _dec(prop.cis_ownership_pct),
    }


def _property(raw: Mapping[str, Any]) -> Property:
    return Property(
        id=_field(raw, "id", "Property"),
        name=_field(raw, "name", "Property"),
        segment=_field(raw, "segment", "Property"),
        description=raw.get("description", ""),
        location=raw.get("location", ""),
        year_built=raw.get("yearBuilt", 0),
        total_units=raw.get("totalUnits", 0),
        occupancy_rate=to_decimal(raw.get("occupancyRate", 0)),
        current_value_mmk=to_decimal(_field(raw, "currentValueMMK", "Property")),
        share_price_mmk=to_decimal(_field(raw, "sharePriceMMK", "Property")),
        total_shares=_field(raw, "totalShares", "Property"),
        available_shares=_field(raw, "availableShares", "Property"),
        cis_ownership_pct=to_decimal(_field(raw, "cisOwnershipPct", "Property")),
    )


def property_from_dict(raw: Mapping[str, Any]) -> Property:
    return _decode(_property, raw, "Property")


# ============================================================================
# HOLDING / ACTIVITY / SNAPSHOT
# ============================================================================

def holding_to_dict(holding: Holding) -> Dict[str, Any]:
    return {
        "propertyId": holding.property_id,
        "userSharePct": _dec(holding.user_share_pct),
        "userValueMMK": _dec(holding.user_value_mmk),
        "purchaseValueMMK": _dec(holding.purchase_value_mmk),
        "pnlAbs": _dec(holding.pnl_abs),
        "pnlPct": _dec(holding.pnl_pct),
        "purchaseDate": _ts(holding.purchase_date),
        "sharesOwned": _dec(holding.shares_owned),
        "currentSharePriceMMK": _dec(holding.current_share_price_mmk),
        "averagePurchasePriceMMK": _dec(holding.average_purchase_price_mmk),
    }


def _holding(raw: Mapping[str, Any]) -> Holding:
    return Holding(
        property_id=_field(raw, "propertyId", "Holding"),
        user_share_pct=to_decimal(_field(raw, "userSharePct", "Holding")),
        user_value_mmk=to_decimal(_field(raw, "userValueMMK", "Holding")),
        purchase_value_mmk=to_decimal(_field(raw, "purchaseValueMMK", "Holding")),
        pnl_abs=to_decimal(_field(raw, "pnlAbs", "Holding")),
        pnl_pct=to_decimal(_field(raw, "pnlPct", "Holding")),
        purchase_date=parse_datetime(_field(raw, "purchaseDate", "Holding")),
        shares_owned=to_decimal(raw.get("sharesOwned", 0)),
        current_share_price_mmk=to_decimal(raw.get("currentSharePriceMMK", 0)),
        average_purchase_price_mmk=to_decimal(raw.get("averagePurchasePriceMMK", 0)),
    )


def holding_from_dict(raw: Mapping[str, Any]) -> Holding:
    return _decode(_holding, raw, "Holding")


def activity_to_dict(activity: Activity) -> Dict[str, Any]:
    return {
        "id": activity.id,
        "type": activity.type.value,
        "propertyId": activity.property_id,
        "amountMMK": _dec(activity.amount_mmk),
        "ts": _ts(activity.ts),
        "description": activity.description,
    }


def _activity(raw: Mapping[str, Any]) -> Activity:
    kind = _field(raw, "type", "Activity")
    try:
        activity_type = ActivityType(kind)
    except ValueError as e:
        raise RecordValidationError(f"Unknown activity type {kind!r}") from e
    return Activity(
        id=_field(raw, "id", "Activity"),
        type=activity_type,
        property_id=raw.get("propertyId", ""),
        amount_mmk=to_decimal(_field(raw, "amountMMK", "Activity")),
        ts=parse_datetime(_field(raw, "ts", "Activity")),
        description=raw.get("description", ""),
    )


def activity_from_dict(raw: Mapping[str, Any]) -> Activity:
    return _decode(_activity, raw, "Activity")


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "companyValueMMK": _dec(snapshot.company_value_mmk),
        "companyShares": snapshot.company_shares,
        "weightedSharePct": _dec(snapshot.weighted_share_pct),
        "propertiesCount": snapshot.properties_count,
    }


def _snapshot(raw: Mapping[str, Any]) -> Snapshot:
    return Snapshot(
        company_value_mmk=to_decimal(_field(raw, "companyValueMMK", "Snapshot")),
        company_shares=_field(raw, "companyShares", "Snapshot"),
        weighted_share_pct=to_decimal(raw.get("weightedSharePct", 0)),
        properties_count=raw.get("propertiesCount", 0),
    )


def snapshot_from_dict(raw: Mapping[str, Any]) -> Snapshot:
    return _decode(_snapshot, raw, "Snapshot")


# ============================================================================
# PORTFOLIO / USER
# ============================================================================

def portfolio_to_dict(portfolio: Portfolio) -> Dict[str, Any]:
    return {
        "userId": portfolio.user_id,
        "cashMMK": _dec(portfolio.cash_mmk),
        "totalValueMMK": _dec(portfolio.total_value_mmk),
        "netPnlAbs": _dec(portfolio.net_pnl_abs),
        "netPnlPct": _dec(portfolio.net_pnl_pct),
        "holdings": [holding_to_dict(h) for h in portfolio.holdings],
        "snapshot": snapshot_to_dict(portfolio.snapshot),
        "activities": [activity_to_dict(a) for a in portfolio.activities],
        "lastUpdated": _ts(portfolio.last_updated),
    }


def _portfolio(raw: Mapping[str, Any]) -> Portfolio:
    holdings = _field(raw, "holdings", "Portfolio")
    activities = raw.get("activities", [])
    if not isinstance(holdings, list) or not isinstance(activities, list):
        raise RecordValidationError("Portfolio holdings and activities must be lists")
    return Portfolio(
        user_id=_field(raw, "userId", "Portfolio"),
        cash_mmk=to_decimal(_field(raw, "cashMMK", "Portfolio")),
        total_value_mmk=to_decimal(raw.get("totalValueMMK", 0)),
        net_pnl_abs=to_decimal(raw.get("netPnlAbs", 0)),
        net_pnl_pct=to_decimal(raw.get("netPnlPct", 0)),
        holdings=tuple(holding_from_dict(h) for h in holdings),
        snapshot=snapshot_from_dict(_field(raw, "snapshot", "Portfolio")),
        activities=tuple(activity_from_dict(a) for a in activities),
        last_updated=parse_datetime(_field(raw, "lastUpdated", "Portfolio")),
    )


def portfolio_from_dict(raw: Mapping[str, Any]) -> Portfolio:
    return _decode(_portfolio, raw, "Portfolio")


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "password": user.password,
        "name": user.name,
        "createdAt": _ts(user.created_at),
        "lastLogin": _ts(user.last_login),
    }


def _user(raw: Mapping[str, Any]) -> User:
    return User(
        id=_field(raw, "id", "User"),
        email=_field(raw, "email", "User"),
        password=_field(raw, "password", "User"),
        name=raw.get("name", ""),
        created_at=parse_datetime(_field(raw, "createdAt", "User")),
        last_login=parse_datetime(_field(raw, "lastLogin", "User")),
    )


def user_from_dict(raw: Mapping[str, Any]) -> User:
    return _decode(_user, raw, "User")


def records_from_list(decoder: Callable[[Mapping[str, Any]], T], raw: Any, record: str) -> List[T]:
    """Decode a JSON list of records, rejecting anything that is not a list."""
    if not isinstance(raw, list):
        raise RecordValidationError(f"Expected a list of {record} records, got {type(raw).__name__}")
    return [decoder(item) for item in raw]
