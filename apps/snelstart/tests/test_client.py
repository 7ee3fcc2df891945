from datetime import date, datetime
from decimal import Decimal
from unittest import mock

import requests
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings

from apps.snelstart.client import MockSnelStartClient, SnelStartClient, get_gateway
from apps.snelstart.dto import RemoteSalesOrder, SalesOrderLine, SalesOrderRequest
from apps.snelstart.exceptions import SnelStartAPIError, SnelStartConfigurationError
from apps.snelstart.models import SnelStartConnection


def _response(status_code, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = b"" if body is None else b"{}"
    response.json.return_value = body
    response.text = str(body)
    return response


def _order_request():
    return SalesOrderRequest(
        customer_ref="REL-1",
        order_date=date(2024, 3, 5),
        lines=[SalesOrderLine(product_ref="ART-1", quantity=Decimal("2"), unit_price=Decimal("10.50"))],
        memo="test",
    )


class SnelStartClientTests(SimpleTestCase):
    def setUp(self):
        cache.clear()
        self.session = mock.Mock()
        self.session.post.return_value = _response(200, {"access_token": "tok", "expires_in": 3600})
        self.sleep = mock.Mock()
        self.client = SnelStartClient(
            base_url="https://b2bapi.example/",
            auth_url="https://auth.example/token",
            subscription_key="sub",
            integration_key="int",
            session=self.session,
            sleep=self.sleep,
        )

    def tearDown(self):
        cache.clear()

    def test_create_sales_order_posts_payload_with_auth_headers(self):
        self.session.request.return_value = _response(201, {"id": "SO-1", "procesStatus": "Order"})

        remote = self.client.create_sales_order(_order_request())

        self.assertEqual(remote.id, "SO-1")
        self.assertFalse(remote.is_invoiced)
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "POST")
        self.assertEqual(kwargs["url"], "https://b2bapi.example/v2/verkooporders")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["headers"]["Ocp-Apim-Subscription-Key"], "sub")
        self.assertEqual(kwargs["timeout"], 30)
        self.assertEqual(kwargs["json"]["datum"], "2024-03-05T00:00:00")

    def test_rate_limit_is_retried_with_backoff(self):
        self.session.request.side_effect = [_response(429, {"message": "slow down"}), _response(201, {"id": "SO-2"})]

        remote = self.client.create_sales_order(_order_request())

        self.assertEqual(remote.id, "SO-2")
        self.assertEqual(self.session.request.call_count, 2)
        (delay,), _ = self.sleep.call_args
        self.assertGreaterEqual(delay, 1.0)
        self.assertLessEqual(delay, 2.0)

    def test_server_errors_exhaust_internal_retries(self):
        self.session.request.return_value = _response(503, {"message": "down"})

        with self.assertRaises(SnelStartAPIError) as ctx:
            self.client.create_sales_order(_order_request())

        self.assertEqual(ctx.exception.error_code, "server_error")
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(self.session.request.call_count, 3)
        self.assertEqual(self.sleep.call_count, 2)

    def test_validation_error_is_not_retried(self):
        self.session.request.return_value = _response(400, [{"errorCode": "E1", "message": "Artikel onbekend"}])

        with self.assertRaises(SnelStartAPIError) as ctx:
            self.client.create_sales_order(_order_request())

        self.assertEqual(ctx.exception.error_code, "validation_error")
        self.assertFalse(ctx.exception.retryable)
        self.assertIn("Artikel onbekend", str(ctx.exception))
        self.assertEqual(self.session.request.call_count, 1)
        self.sleep.assert_not_called()

    def test_network_errors_are_retryable(self):
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(SnelStartAPIError) as ctx:
            self.client.get_orders_for_customer("REL-1")

        self.assertEqual(ctx.exception.error_code, "network_error")
        self.assertEqual(self.session.request.call_count, 3)

    def test_token_is_cached_between_calls(self):
        self.session.request.return_value = _response(200, [])

        self.client.get_orders_for_customer("REL-1")
        self.client.get_orders_for_customer("REL-1")

        self.assertEqual(self.session.post.call_count, 1)
        self.assertEqual(self.session.post.call_args.kwargs["data"]["grant_type"], "clientkey")

    def test_unauthorized_response_drops_cached_token(self):
        self.session.request.return_value = _response(401, {"message": "expired"})

        with self.assertRaises(SnelStartAPIError):
            self.client.get_orders_for_customer("REL-1")

        self.assertIsNone(cache.get("snelstart:token:default"))

    def test_failed_token_request_raises_authentication_error(self):
        self.session.post.return_value = _response(400, {"error": "invalid_client"})

        with self.assertRaises(SnelStartAPIError) as ctx:
            self.client.get_orders_for_customer("REL-1")

        self.assertEqual(ctx.exception.error_code, "authentication_error")
        self.session.request.assert_not_called()

    def test_missing_id_in_create_response_is_invalid(self):
        self.session.request.return_value = _response(201, {"procesStatus": "Order"})

        with self.assertRaises(SnelStartAPIError) as ctx:
            self.client.create_sales_order(_order_request())

        self.assertEqual(ctx.exception.error_code, "invalid_response")

    def test_orders_for_customer_are_typed(self):
        self.session.request.return_value = _response(
            200,
            [
                {"id": "SO-1", "procesStatus": "Factuur", "relatie": {"id": "REL-1"}, "datum": "2024-03-05T00:00:00"},
                "garbage",
            ],
        )

        orders = self.client.get_orders_for_customer("REL-1")

        self.assertEqual(len(orders), 1)
        self.assertTrue(orders[0].is_invoiced)
        self.assertEqual(orders[0].customer_ref, "REL-1")
        self.assertEqual(self.session.request.call_args.kwargs["params"], {"relatie": "REL-1"})


class SalesOrderDtoTests(SimpleTestCase):
    def test_order_date_is_truncated_to_day(self):
        request = SalesOrderRequest(customer_ref="REL-1", order_date=datetime(2024, 3, 5, 17, 45))

        self.assertEqual(request.to_payload()["datum"], "2024-03-05T00:00:00")

    def test_payload_shape(self):
        payload = _order_request().to_payload()

        self.assertEqual(payload["relatie"], {"id": "REL-1"})
        self.assertEqual(payload["verkooporderBtwIngaveModel"], "Exclusief")
        self.assertEqual(payload["regels"], [{"artikel": {"id": "ART-1"}, "aantal": 2.0, "stuksprijs": 10.5}])
        self.assertEqual(payload["memo"], "test")

    def test_remote_order_accepts_plain_relation_id(self):
        remote = RemoteSalesOrder.from_payload({"id": 7, "relatie": "REL-9"})

        self.assertEqual(remote.id, "7")
        self.assertEqual(remote.customer_ref, "REL-9")
        self.assertFalse(remote.is_invoiced)


class GetGatewayTests(TestCase):
    @override_settings(SNELSTART_MOCK=True)
    def test_mock_mode_returns_offline_client(self):
        gateway = get_gateway()

        self.assertIsInstance(gateway, MockSnelStartClient)
        self.assertTrue(gateway.create_sales_order(_order_request()).id.startswith("mock-order-"))

    def test_active_connection_is_used(self):
        connection = SnelStartConnection.objects.create(subscription_key="sub-db", integration_key="int-db")

        gateway = get_gateway()

        self.assertIsInstance(gateway, SnelStartClient)
        self.assertEqual(gateway.subscription_key, "sub-db")
        self.assertEqual(gateway.integration_key, "int-db")
        self.assertEqual(gateway.connection_id, str(connection.id))

    @override_settings(SNELSTART_SUBSCRIPTION_KEY="", SNELSTART_INTEGRATION_KEY="")
    def test_missing_configuration_raises(self):
        with self.assertRaises(SnelStartConfigurationError):
            get_gateway()
