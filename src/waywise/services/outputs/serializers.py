"""JSON codecs for domain entities.

The same documents are persisted in the entity store and returned by the API,
so every ``*_to_json`` has a matching ``*_from_json`` where the entity is
stored.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Any, Optional

from ...models.domain import (
    ConstraintKind,
    Coordinates,
    Destination,
    Route,
    RouteSummary,
    Schedule,
    Stop,
    TimeConstraint,
    TrafficForecast,
    User,
)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _minutes(value: float) -> float:
    return round(value, 2)


def coordinates_to_json(coordinates: Coordinates) -> dict:
    return {"lat": coordinates.lat, "lon": coordinates.lon}


def coordinates_from_json(data: Optional[dict]) -> Optional[Coordinates]:
    if not data:
        return None
    return Coordinates(lat=float(data["lat"]), lon=float(data["lon"]))


def time_constraint_to_json(constraint: TimeConstraint) -> dict:
    return {
        "type": constraint.kind.value,
        "time": constraint.at.strftime("%H:%M") if constraint.at else None,
    }


def time_constraint_from_json(data: Optional[dict]) -> TimeConstraint:
    if not data:
        return TimeConstraint.flexible()
    kind = ConstraintKind(data.get("type", ConstraintKind.FLEXIBLE.value))
    raw_time = data.get("time")
    return TimeConstraint(kind, time.fromisoformat(raw_time) if raw_time else None)


def destination_to_json(destination: Destination) -> dict:
    return {
        "id": destination.id,
        "name": destination.name,
        "address": destination.address,
        "coordinates": coordinates_to_json(destination.coordinates) if destination.coordinates else None,
        "time_constraint": time_constraint_to_json(destination.time_constraint),
        "required": destination.required,
        "visit_minutes": destination.visit_minutes,
    }


def destination_from_json(data: dict) -> Destination:
    return Destination(
        id=data["id"],
        name=data["name"],
        address=data.get("address"),
        coordinates=coordinates_from_json(data.get("coordinates")),
        time_constraint=time_constraint_from_json(data.get("time_constraint")),
        required=bool(data.get("required", True)),
        visit_minutes=data.get("visit_minutes"),
    )


def schedule_to_json(schedule: Schedule) -> dict:
    return {
        "schedule_id": schedule.schedule_id,
        "owner_id": schedule.owner_id,
        "original_text": schedule.original_text,
        "timezone": schedule.timezone,
        "destinations": [destination_to_json(dest) for dest in schedule.destinations],
        "ambiguities": list(schedule.ambiguities),
        "created_at": _dt(schedule.created_at),
        "expires_at": _dt(schedule.expires_at),
    }


def schedule_from_json(data: dict) -> Schedule:
    return Schedule(
        schedule_id=data["schedule_id"],
        owner_id=data["owner_id"],
        original_text=data["original_text"],
        timezone=data["timezone"],
        destinations=tuple(destination_from_json(item) for item in data["destinations"]),
        ambiguities=tuple(data.get("ambiguities") or ()),
        created_at=_parse_dt(data["created_at"]),
        expires_at=_parse_dt(data["expires_at"]),
    )


def stop_to_json(stop: Stop) -> dict:
    return {
        "order": stop.order,
        "destination": destination_to_json(stop.destination),
        "arrival_time": _dt(stop.arrival_time),
        "departure_time": _dt(stop.departure_time),
        "travel_time_from_previous_minutes": _minutes(stop.travel_time_from_previous_minutes),
        "traffic_delay_minutes": _minutes(stop.traffic_delay_minutes),
        "distance_from_previous_meters": round(stop.distance_from_previous_meters, 1),
        "wait_minutes": _minutes(stop.wait_minutes),
    }


def stop_from_json(data: dict) -> Stop:
    return Stop(
        order=int(data["order"]),
        destination=destination_from_json(data["destination"]),
        arrival_time=_parse_dt(data["arrival_time"]),
        departure_time=_parse_dt(data["departure_time"]),
        travel_time_from_previous_minutes=float(data["travel_time_from_previous_minutes"]),
        traffic_delay_minutes=float(data["traffic_delay_minutes"]),
        distance_from_previous_meters=float(data["distance_from_previous_meters"]),
        wait_minutes=float(data.get("wait_minutes", 0.0)),
    )


def summary_to_json(summary: RouteSummary) -> dict:
    return {
        "total_distance_meters": round(summary.total_distance_meters, 1),
        "total_time_minutes": _minutes(summary.total_time_minutes),
        "total_traffic_delay_minutes": _minutes(summary.total_traffic_delay_minutes),
        "departure_time": _dt(summary.departure_time),
        "arrival_time": _dt(summary.arrival_time),
        "completion_time": _dt(summary.completion_time),
        "skipped_destinations": [
            {"id": dest.id, "name": dest.name} for dest in summary.skipped_destinations
        ],
        "algorithm": summary.algorithm,
    }


def summary_from_json(data: dict, destinations_by_id: dict[str, Destination]) -> RouteSummary:
    skipped = tuple(
        destinations_by_id.get(item["id"]) or Destination(id=item["id"], name=item["name"])
        for item in data.get("skipped_destinations", [])
    )
    return RouteSummary(
        total_distance_meters=float(data["total_distance_meters"]),
        total_time_minutes=float(data["total_time_minutes"]),
        total_traffic_delay_minutes=float(data["total_traffic_delay_minutes"]),
        departure_time=_parse_dt(data["departure_time"]),
        arrival_time=_parse_dt(data.get("arrival_time")),
        completion_time=_parse_dt(data.get("completion_time")),
        skipped_destinations=skipped,
        algorithm=data.get("algorithm", "exhaustive"),
    )


def route_to_json(route: Route) -> dict:
    return {
        "route_id": route.route_id,
        "owner_id": route.owner_id,
        "schedule_id": route.schedule_id,
        "timezone": route.timezone,
        "origin": coordinates_to_json(route.origin),
        "optimized_sequence": [stop_to_json(stop) for stop in route.optimized_sequence],
        "summary": summary_to_json(route.summary),
        "polyline": route.polyline,
        "created_at": _dt(route.created_at),
        "expires_at": _dt(route.expires_at),
    }


def route_from_json(data: dict) -> Route:
    stops = tuple(stop_from_json(item) for item in data["optimized_sequence"])
    by_id = {stop.destination.id: stop.destination for stop in stops}
    return Route(
        route_id=data["route_id"],
        owner_id=data["owner_id"],
        origin=coordinates_from_json(data["origin"]),
        optimized_sequence=stops,
        summary=summary_from_json(data["summary"], by_id),
        polyline=data["polyline"],
        created_at=_parse_dt(data["created_at"]),
        expires_at=_parse_dt(data["expires_at"]),
        schedule_id=data.get("schedule_id"),
        timezone=data.get("timezone", "UTC"),
    )


def forecast_to_json(forecast: TrafficForecast) -> dict:
    return {
        "origin": coordinates_to_json(forecast.origin),
        "destination": coordinates_to_json(forecast.destination),
        "departure_time": _dt(forecast.departure_time),
        "travel_time": {
            "typical_minutes": _minutes(forecast.travel_time.typical_minutes),
            "current_minutes": _minutes(forecast.travel_time.current_minutes),
            "best_case_minutes": _minutes(forecast.travel_time.best_case_minutes),
            "worst_case_minutes": _minutes(forecast.travel_time.worst_case_minutes),
        },
        "distance_meters": round(forecast.distance_meters, 1),
        "traffic_conditions": forecast.traffic_conditions,
        "delay_minutes": _minutes(forecast.delay_minutes),
        "confidence": round(forecast.confidence, 2),
        "retrieved_at": _dt(forecast.retrieved_at),
    }


def user_to_json(user: User) -> dict:
    return {
        "user_id": user.user_id,
        "email": user.email,
        "name": user.name,
        "password_hash": user.password_hash,
        "created_at": _dt(user.created_at),
    }


def user_from_json(data: dict) -> User:
    return User(
        user_id=data["user_id"],
        email=data["email"],
        name=data["name"],
        password_hash=data["password_hash"],
        created_at=_parse_dt(data["created_at"]),
    )


def public_user_json(user: User) -> dict[str, Any]:
    """User document without the password hash."""
    data = user_to_json(user)
    data.pop("password_hash")
    return data
