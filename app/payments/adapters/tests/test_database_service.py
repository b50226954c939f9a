"""
Tests for the database service client.

Tests cover:
- URL and method for each accessor
- 404 translation (error vs. None for lookups)
- Error statuses surfaced with status code and body
- Connection failures, without retry
"""

import pytest
import requests

from payments.adapters.database_service import record_id
from payments.exceptions import (
    DatabaseServiceError,
    DatabaseServiceUnavailableError,
    RecordNotFoundError,
)


class TestDatabaseServiceRequests:
    """Tests for request construction."""

    def test_get_user_by_email(self, db_client, db_session, json_response):
        """Should GET the user by email with the configured timeout."""
        db_session.request.return_value = json_response(
            200, {"id": 7, "email": "a+b@example.com"}
        )

        user = db_client.get_user_by_email("a+b@example.com")

        db_session.request.assert_called_once_with(
            "GET",
            "http://db.test/api/users/email/a%2Bb@example.com",
            json=None,
            timeout=4.0,
        )
        assert user["id"] == 7

    def test_get_user_by_id(self, db_client, db_session):
        """Should GET the user by internal id."""
        db_client.get_user_by_id(7)

        assert db_session.request.call_args.args == (
            "GET",
            "http://db.test/api/users/7",
        )

    def test_update_user_subscription(self, db_client, db_session):
        """Should PUT the projection fields for the email."""
        data = {"isSubscribed": True, "stripeSubscriptionId": "sub_123"}

        db_client.update_user_subscription("a@b.com", data)

        db_session.request.assert_called_once_with(
            "PUT",
            "http://db.test/api/users/subscription/a@b.com",
            json=data,
            timeout=4.0,
        )

    def test_create_subscription(self, db_client, db_session, json_response):
        """Should POST the record and return the created body."""
        db_session.request.return_value = json_response(201, {"internalId": 42})

        record = db_client.create_subscription({"stripeSubscriptionId": "sub_123"})

        assert db_session.request.call_args.args == (
            "POST",
            "http://db.test/api/subscriptions",
        )
        assert record_id(record) == 42

    def test_update_subscription(self, db_client, db_session):
        """Should PATCH the record by internal id."""
        db_client.update_subscription(42, {"status": "canceled"})

        db_session.request.assert_called_once_with(
            "PATCH",
            "http://db.test/api/subscriptions/42",
            json={"status": "canceled"},
            timeout=4.0,
        )


class TestFindSubscriptionByStripeId:
    """Tests for the Stripe-id lookup."""

    def test_found(self, db_client, db_session, json_response):
        """Should return the record."""
        db_session.request.return_value = json_response(
            200, {"internalId": 42, "stripeSubscriptionId": "sub_123"}
        )

        record = db_client.find_subscription_by_stripe_id("sub_123")

        assert db_session.request.call_args.args[1] == (
            "http://db.test/api/subscriptions/stripe/sub_123"
        )
        assert record["internalId"] == 42

    def test_not_found_returns_none(self, db_client, db_session, json_response):
        """Should return None on 404."""
        db_session.request.return_value = json_response(404, {"error": "not found"})

        assert db_client.find_subscription_by_stripe_id("sub_123") is None

    def test_empty_body_returns_none(self, db_client, db_session, json_response):
        """Should return None when the service answers with no body."""
        db_session.request.return_value = json_response(200, None)

        assert db_client.find_subscription_by_stripe_id("sub_123") is None


class TestDatabaseServiceErrors:
    """Tests for error translation."""

    def test_user_not_found(self, db_client, db_session, json_response):
        """Should raise RecordNotFoundError on 404."""
        db_session.request.return_value = json_response(404, {"error": "no user"})

        with pytest.raises(RecordNotFoundError) as exc_info:
            db_client.get_user_by_email("a@b.com")

        assert exc_info.value.status_code == 404

    def test_error_status_surfaced(self, db_client, db_session, json_response):
        """Should surface the status code and body untouched."""
        db_session.request.return_value = json_response(
            422, {"error": "endDate is invalid"}
        )

        with pytest.raises(DatabaseServiceError) as exc_info:
            db_client.update_subscription(42, {"endDate": "soon"})

        assert exc_info.value.status_code == 422
        assert exc_info.value.response_body == {"error": "endDate is invalid"}
        assert not isinstance(exc_info.value, RecordNotFoundError)

    def test_connection_error_not_retried(self, db_client, db_session):
        """Should raise DatabaseServiceUnavailableError after a single attempt."""
        db_session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(DatabaseServiceUnavailableError):
            db_client.create_subscription({"stripeSubscriptionId": "sub_123"})

        assert db_session.request.call_count == 1

    def test_timeout(self, db_client, db_session):
        """Should treat a timeout as unavailable."""
        db_session.request.side_effect = requests.Timeout("timed out")

        with pytest.raises(DatabaseServiceUnavailableError):
            db_client.get_user_by_id(7)


class TestRecordId:
    """Tests for record_id."""

    @pytest.mark.parametrize(
        "record,expected",
        [
            ({"internalId": 42, "id": 1}, 42),
            ({"id": 1}, 1),
            ({}, None),
        ],
    )
    def test_record_id(self, record, expected):
        """Should prefer internalId over id."""
        assert record_id(record) == expected
