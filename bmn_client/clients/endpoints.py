"""
Endpoint descriptors for the MLS REST API.

An :class:`APIEndpoint` is a plain description of one call; the API client
turns it into an HTTP request. Factory functions below cover the endpoints the
mobile app uses most.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

SCHOOLS_BASE_PATH = "/bmn-schools/v1"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class APINamespace(str, Enum):
    """Which configured base URL an endpoint path is appended to."""

    DEFAULT = "default"  # /mld-mobile/v1
    BASE = "base"  # WordPress REST root, path carries its own namespace
    MLD_V1 = "mld_v1"  # /mld/v1


@dataclass(frozen=True)
class APIEndpoint:
    path: str
    method: HTTPMethod = HTTPMethod.GET
    parameters: Optional[Mapping[str, Any]] = None
    requires_auth: bool = False
    namespace: APINamespace = APINamespace.DEFAULT


def _nocache() -> int:
    # CDN in front of WordPress caches GETs by URL; per-user reads bust it.
    return int(time.time())


# Authentication


def login(email: str, password: str) -> APIEndpoint:
    return APIEndpoint(
        path="/auth/login",
        method=HTTPMethod.POST,
        parameters={"email": email, "password": password},
    )


def register(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: Optional[str] = None,
    referral_code: Optional[str] = None,
) -> APIEndpoint:
    params: Dict[str, Any] = {
        "email": email,
        "password": password,
        "first_name": first_name,
        "last_name": last_name,
    }
    if phone:
        params["phone"] = phone
    if referral_code:
        params["referral_code"] = referral_code
    return APIEndpoint(path="/auth/register", method=HTTPMethod.POST, parameters=params)


def refresh_token(token: str) -> APIEndpoint:
    return APIEndpoint(
        path="/auth/refresh",
        method=HTTPMethod.POST,
        parameters={"refresh_token": token},
    )


def me() -> APIEndpoint:
    return APIEndpoint(path=f"/auth/me?_nocache={_nocache()}", requires_auth=True)


def logout() -> APIEndpoint:
    return APIEndpoint(path="/auth/logout", method=HTTPMethod.POST, requires_auth=True)


def delete_account() -> APIEndpoint:
    return APIEndpoint(
        path="/auth/delete-account", method=HTTPMethod.DELETE, requires_auth=True
    )


def forgot_password(email: str) -> APIEndpoint:
    return APIEndpoint(
        path="/auth/forgot-password",
        method=HTTPMethod.POST,
        parameters={"email": email},
    )


# Properties


def properties(filters: Mapping[str, Any]) -> APIEndpoint:
    return APIEndpoint(path="/properties", parameters=dict(filters))


def property_detail(listing_id: str) -> APIEndpoint:
    return APIEndpoint(path=f"/properties/{quote(listing_id)}?_nocache={_nocache()}")


# Favorites and hidden listings


def favorites() -> APIEndpoint:
    return APIEndpoint(path=f"/favorites?_nocache={_nocache()}", requires_auth=True)


def add_favorite(listing_id: str) -> APIEndpoint:
    return APIEndpoint(
        path=f"/favorites/{quote(listing_id)}", method=HTTPMethod.POST, requires_auth=True
    )


def remove_favorite(listing_id: str) -> APIEndpoint:
    return APIEndpoint(
        path=f"/favorites/{quote(listing_id)}",
        method=HTTPMethod.DELETE,
        requires_auth=True,
    )


def hidden() -> APIEndpoint:
    return APIEndpoint(path=f"/hidden?_nocache={_nocache()}", requires_auth=True)


def hide_property(listing_id: str) -> APIEndpoint:
    return APIEndpoint(
        path=f"/hidden/{quote(listing_id)}", method=HTTPMethod.POST, requires_auth=True
    )


def unhide_property(listing_id: str) -> APIEndpoint:
    return APIEndpoint(
        path=f"/hidden/{quote(listing_id)}", method=HTTPMethod.DELETE, requires_auth=True
    )


# Saved searches


def saved_searches() -> APIEndpoint:
    return APIEndpoint(path=f"/saved-searches?_nocache={_nocache()}", requires_auth=True)


def create_saved_search(
    name: str,
    filters: Mapping[str, Any],
    notification_frequency: str = "daily",
    description: Optional[str] = None,
    polygon_shapes: Optional[Sequence[Iterable[Tuple[float, float]]]] = None,
) -> APIEndpoint:
    params: Dict[str, Any] = {
        "name": name,
        "filters": dict(filters),
        "notification_frequency": notification_frequency,
    }
    if description is not None:
        params["description"] = description
    if polygon_shapes is not None:
        shapes: List[List[Dict[str, float]]] = [
            [{"lat": lat, "lng": lng} for lat, lng in polygon] for polygon in polygon_shapes
        ]
        params["polygon_shapes"] = shapes
    return APIEndpoint(
        path="/saved-searches",
        method=HTTPMethod.POST,
        parameters=params,
        requires_auth=True,
    )


def delete_saved_search(search_id: int) -> APIEndpoint:
    return APIEndpoint(
        path=f"/saved-searches/{search_id}", method=HTTPMethod.DELETE, requires_auth=True
    )


# Other namespaces


def property_schools(
    latitude: float, longitude: float, radius: float = 2.0, city: Optional[str] = None
) -> APIEndpoint:
    params: Dict[str, Any] = {"lat": latitude, "lng": longitude, "radius": radius}
    if city:
        params["city"] = city
    return APIEndpoint(
        path=f"{SCHOOLS_BASE_PATH}/property/schools",
        parameters=params,
        namespace=APINamespace.BASE,
    )


def city_market_insights(city: str) -> APIEndpoint:
    return APIEndpoint(
        path=f"/property-analytics/{quote(city)}?tab=overview&lite=true",
        namespace=APINamespace.MLD_V1,
    )


__all__ = [
    "APIEndpoint",
    "APINamespace",
    "HTTPMethod",
    "SCHOOLS_BASE_PATH",
    "add_favorite",
    "city_market_insights",
    "create_saved_search",
    "delete_account",
    "delete_saved_search",
    "favorites",
    "forgot_password",
    "hidden",
    "hide_property",
    "login",
    "logout",
    "me",
    "properties",
    "property_detail",
    "property_schools",
    "refresh_token",
    "register",
    "remove_favorite",
    "saved_searches",
    "unhide_property",
]
