"""
Tests unitaires du client HTTP avec retry.

Ces tests verifient:
- Les codes de statut transitoires (504) sont relances
- L'epuisement des tentatives leve TransportError
- Les autres codes sont rendus tels quels a l'appelant
"""

import json

import httpx
import pytest
import respx

from wantarr.errors import TransportError
from wantarr.utils.http_client import RobustHTTPClient, join_url

URL = "http://pvr.local/api/v3/queue"


@pytest.fixture
def http() -> RobustHTTPClient:
    client = RobustHTTPClient(
        service_name="test",
        max_attempts=3,
        retry_status_codes=[504],
        backoff_min=0,
        backoff_max=0,
        headers={"X-Api-Key": "secret"},
    )
    yield client
    client.close()


class TestJoinUrl:
    def test_join_url_strips_duplicate_slashes(self) -> None:
        assert join_url("http://host/", "/api/v3/", "/queue") == "http://host/api/v3/queue"

    def test_join_url_keeps_base_path(self) -> None:
        assert join_url("http://host/sonarr", "api/v3") == "http://host/sonarr/api/v3"


class TestRequestRetry:
    def test_retries_on_504_then_succeeds(self, http: RobustHTTPClient, respx_mock: respx.Router) -> None:
        """Un 504 est relance, la reponse suivante est rendue."""
        route = respx_mock.get(URL).mock(side_effect=[
            httpx.Response(504),
            httpx.Response(200, json={"totalRecords": 3}),
        ])

        response = http.request("GET", URL)

        assert response.status_code == 200
        assert response.json() == {"totalRecords": 3}
        assert route.call_count == 2

    def test_raises_transport_error_after_max_attempts(self, http: RobustHTTPClient, respx_mock: respx.Router) -> None:
        route = respx_mock.get(URL).mock(return_value=httpx.Response(504))

        with pytest.raises(TransportError, match="HTTP 504 after 3 attempts"):
            http.request("GET", URL)
        assert route.call_count == 3

    def test_non_retryable_status_returned_untouched(self, http: RobustHTTPClient, respx_mock: respx.Router) -> None:
        """Un 500 n'est pas dans la liste: pas de retry, la reponse remonte."""
        route = respx_mock.get(URL).mock(return_value=httpx.Response(500))

        response = http.request("GET", URL)

        assert response.status_code == 500
        assert route.call_count == 1

    def test_connection_errors_are_retried(self, http: RobustHTTPClient, respx_mock: respx.Router) -> None:
        route = respx_mock.get(URL).mock(side_effect=[
            httpx.ConnectError("refused"),
            httpx.Response(200, json=[]),
        ])

        assert http.request("GET", URL).status_code == 200
        assert route.call_count == 2

    def test_connection_error_exhausted_raises_transport_error(
        self, http: RobustHTTPClient, respx_mock: respx.Router
    ) -> None:
        respx_mock.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransportError, match="refused"):
            http.request("GET", URL)

    def test_sends_api_key_header_and_json_body(self, http: RobustHTTPClient, respx_mock: respx.Router) -> None:
        route = respx_mock.post("http://pvr.local/api/v3/command").mock(
            return_value=httpx.Response(201, json={"id": 1})
        )

        http.request("POST", "http://pvr.local/api/v3/command", json={"name": "EpisodeSearch", "episodeIds": [1]})

        request = route.calls.last.request
        assert request.headers["X-Api-Key"] == "secret"
        assert json.loads(request.content) == {"name": "EpisodeSearch", "episodeIds": [1]}
