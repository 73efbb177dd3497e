try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from bmn_client.clients import endpoints
from bmn_client.clients.endpoints import APINamespace, HTTPMethod


def test_refresh_endpoint_is_public_post() -> None:
    endpoint = endpoints.refresh_token("refresh-a")

    assert endpoint.method is HTTPMethod.POST
    assert endpoint.requires_auth is False
    assert endpoint.parameters == {"refresh_token": "refresh-a"}


def test_user_scoped_reads_bust_the_cache() -> None:
    for endpoint in (endpoints.me(), endpoints.favorites(), endpoints.saved_searches()):
        assert endpoint.requires_auth is True
        assert "?_nocache=" in endpoint.path


def test_register_omits_empty_optional_fields() -> None:
    endpoint = endpoints.register("a@example.com", "pw", "Robin", "Lee")

    assert endpoint.parameters == {
        "email": "a@example.com",
        "password": "pw",
        "first_name": "Robin",
        "last_name": "Lee",
    }


def test_saved_search_polygons_become_lat_lng_objects() -> None:
    endpoint = endpoints.create_saved_search(
        "Back Bay",
        {"city": "Boston"},
        polygon_shapes=[[(42.35, -71.08), (42.36, -71.07)]],
    )

    assert endpoint.parameters["polygon_shapes"] == [
        [{"lat": 42.35, "lng": -71.08}, {"lat": 42.36, "lng": -71.07}]
    ]
    assert endpoint.parameters["notification_frequency"] == "daily"
    assert "description" not in endpoint.parameters


def test_listing_ids_are_path_quoted() -> None:
    assert endpoints.add_favorite("MLS 123/4").path == "/favorites/MLS%20123/4"
    assert endpoints.remove_favorite("73012345").method is HTTPMethod.DELETE


def test_cross_namespace_endpoints() -> None:
    schools = endpoints.property_schools(42.35, -71.06)
    insights = endpoints.city_market_insights("Newton")

    assert schools.namespace is APINamespace.BASE
    assert schools.path == "/bmn-schools/v1/property/schools"
    assert insights.namespace is APINamespace.MLD_V1
    assert insights.path == "/property-analytics/Newton?tab=overview&lite=true"
