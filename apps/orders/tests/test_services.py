from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings

from apps.audit.models import AuditLog
from apps.orders.exceptions import (
    InvalidOrderTransition,
    InvoicedOrderConflict,
    OrderAlreadySynced,
    OrderNotFound,
    OrderValidationError,
)
from apps.orders.models import LocalOrder
from apps.orders.queue import InMemoryOrderSyncQueue
from apps.orders.services import OrderService
from apps.snelstart.dto import RemoteSalesOrder
from apps.snelstart.exceptions import SnelStartAPIError

from .fakes import FakeGateway


def _payload(key="k1", items=None, customer_id="CUST-1"):
    return {
        "idempotency_key": key,
        "customer_id": customer_id,
        "items": items if items is not None else [{"product_id": "p1", "quantity": 2, "unit_price": "10"}],
    }


def _server_error():
    return SnelStartAPIError("SnelStart responded 503", status_code=503, error_code="server_error", retryable=True)


class OrderServiceTestCase(TestCase):
    def make_service(self, gateway):
        self.gateway = gateway
        self.queue = InMemoryOrderSyncQueue()
        return OrderService(gateway_factory=lambda: gateway, queue=self.queue)

    def audit_actions(self, order_id):
        return list(
            AuditLog.objects.for_entity(AuditLog.ENTITY_ORDER, order_id)
            .order_by("created_at")
            .values_list("action", flat=True)
        )


class CreateOrderTests(OrderServiceTestCase):
    def test_successful_create_syncs_immediately(self):
        service = self.make_service(FakeGateway())

        order = service.create_order(_payload(), user_id="u-1")

        self.assertEqual(order.status, LocalOrder.STATUS_SYNCED)
        self.assertEqual(order.snelstart_order_id, "SS-1")
        self.assertIsNotNone(order.synced_at)
        self.assertEqual(order.error_message, "")
        self.assertEqual(self.queue.jobs, [])
        self.assertEqual(self.audit_actions(order.id), ["ORDER_SYNCED"])

        request = self.gateway.created[0]
        payload = request.to_payload()
        self.assertEqual(payload["relatie"], {"id": "CUST-1"})
        self.assertEqual(payload["regels"], [{"artikel": {"id": "p1"}, "aantal": 2.0, "stuksprijs": 10.0}])
        self.assertTrue(payload["datum"].endswith("T00:00:00"))

    def test_order_is_pending_with_totals_before_gateway_answers(self):
        service = self.make_service(FakeGateway(fail_with=_server_error()))

        order = service.create_order(_payload(key="k1"))

        self.assertEqual(self.gateway.seen_states, [(LocalOrder.STATUS_PENDING_SYNC, Decimal("20.00"), Decimal("20.00"))])
        self.assertEqual(order.status, LocalOrder.STATUS_PENDING_SYNC)
        self.assertEqual(order.subtotal, Decimal("20"))
        self.assertEqual(order.total, Decimal("20"))
        self.assertIn("503", order.error_message)
        self.assertEqual(order.retry_count, 0)
        self.assertEqual(self.queue.order_ids, [str(order.id)])
        self.assertEqual(self.audit_actions(order.id), ["ORDER_SYNC_FAILED"])

    def test_duplicate_key_returns_first_order_without_second_gateway_call(self):
        service = self.make_service(FakeGateway())

        first = service.create_order(_payload(key="dup"))
        second, created = service.place_order(
            _payload(key="dup", items=[{"product_id": "p9", "quantity": 7, "unit_price": "3"}])
        )

        self.assertFalse(created)
        self.assertEqual(second.id, first.id)
        self.assertEqual(second.total, Decimal("20.00"))
        self.assertEqual(len(self.gateway.created), 1)
        self.assertEqual(LocalOrder.objects.count(), 1)

    def test_lost_idempotency_race_returns_winner(self):
        service = self.make_service(FakeGateway())
        winner = service.create_order(_payload(key="race"))

        with mock.patch("django.db.models.query.QuerySet.first", side_effect=[None, winner]):
            order, created = service.place_order(_payload(key="race"))

        self.assertFalse(created)
        self.assertEqual(order.id, winner.id)
        self.assertEqual(LocalOrder.objects.count(), 1)

    def test_sum_invariant_over_multiple_lines(self):
        service = self.make_service(FakeGateway())

        order = service.create_order(
            _payload(
                items=[
                    {"product_id": "p1", "quantity": 3, "unit_price": "1.25"},
                    {"product_id": "p2", "quantity": "0.5", "unit_price": "9.99"},
                ]
            )
        )

        self.assertEqual(order.subtotal, Decimal("8.75"))
        self.assertEqual(order.total, order.subtotal)
        self.assertEqual(order.items[0]["total_price"], "3.75")
        self.assertEqual(order.items[1]["base_price"], "9.99")

    def test_invalid_input_is_rejected_before_persistence(self):
        service = self.make_service(FakeGateway())

        for items in ([], [{"product_id": "p1", "quantity": 0, "unit_price": "1"}],
                      [{"product_id": "p1", "quantity": 1, "unit_price": "-1"}]):
            with self.subTest(items=items):
                with self.assertRaises(OrderValidationError) as ctx:
                    service.create_order(_payload(items=items))
                self.assertIn("items", ctx.exception.errors)

        self.assertFalse(LocalOrder.objects.exists())
        self.assertEqual(self.gateway.created, [])

    def test_enqueue_failure_still_returns_pending_order(self):
        gateway = FakeGateway(fail_with=_server_error())
        queue = mock.Mock()
        queue.enqueue.side_effect = RuntimeError("broker unavailable")
        service = OrderService(gateway_factory=lambda: gateway, queue=queue)

        with self.assertLogs("apps.orders.services", level="ERROR") as logs:
            order, created = service.place_order(_payload(key="no-broker"))

        self.assertTrue(created)
        self.assertEqual(order.status, LocalOrder.STATUS_PENDING_SYNC)
        self.assertIn("503", order.error_message)
        self.assertTrue(LocalOrder.objects.filter(pk=order.pk, status=LocalOrder.STATUS_PENDING_SYNC).exists())
        queue.enqueue.assert_called_once()
        self.assertIn("Could not enqueue order", logs.output[0])

    @override_settings(ORDER_SYNC_FAIL_FAST_ON_PERMANENT_ERRORS=True)
    def test_permanent_error_fails_fast_when_enabled(self):
        error = SnelStartAPIError("bad payload", status_code=400, error_code="validation_error", retryable=False)
        service = self.make_service(FakeGateway(fail_with=error))

        order = service.create_order(_payload())

        self.assertEqual(order.status, LocalOrder.STATUS_FAILED)
        self.assertEqual(self.queue.jobs, [])
        self.assertCountEqual(self.audit_actions(order.id), ["ORDER_SYNC_FAILED", "ORDER_SYNC_EXHAUSTED"])

    def test_permanent_error_is_retried_by_default(self):
        error = SnelStartAPIError("bad payload", status_code=400, error_code="validation_error", retryable=False)
        service = self.make_service(FakeGateway(fail_with=error))

        order = service.create_order(_payload())

        self.assertEqual(order.status, LocalOrder.STATUS_PENDING_SYNC)
        self.assertEqual(len(self.queue.jobs), 1)


class SyncOrderTests(OrderServiceTestCase):
    def test_retry_ceiling_marks_failed_after_five_attempts(self):
        service = self.make_service(FakeGateway(fail_with=_server_error()))
        order = service.create_order(_payload())

        for attempt in range(1, 6):
            with self.assertRaises(SnelStartAPIError):
                service.sync_order_to_snelstart(order.id, attempt=attempt)
            order.refresh_from_db()
            self.assertEqual(order.retry_count, attempt)

        self.assertEqual(order.status, LocalOrder.STATUS_FAILED)
        calls = len(self.gateway.created)

        service.sync_order_to_snelstart(order.id, attempt=6)

        self.assertEqual(len(self.gateway.created), calls)
        self.assertIn("ORDER_SYNC_EXHAUSTED", self.audit_actions(order.id))

    def test_without_attempt_number_retry_count_increments(self):
        service = self.make_service(FakeGateway(fail_with=_server_error()))
        order = service.create_order(_payload())

        with self.assertRaises(SnelStartAPIError):
            service.sync_order_to_snelstart(order.id)
        with self.assertRaises(SnelStartAPIError):
            service.sync_order_to_snelstart(order.id)

        order.refresh_from_db()
        self.assertEqual(order.retry_count, 2)
        self.assertEqual(order.status, LocalOrder.STATUS_PENDING_SYNC)

    def test_successful_background_sync_clears_error(self):
        gateway = FakeGateway(fail_with=_server_error())
        service = self.make_service(gateway)
        order = service.create_order(_payload())

        gateway.fail_with = None
        order = service.sync_order_to_snelstart(order.id, attempt=1)

        self.assertEqual(order.status, LocalOrder.STATUS_SYNCED)
        self.assertEqual(order.snelstart_order_id, "SS-2")
        self.assertEqual(order.error_message, "")

    def test_synced_order_is_terminal(self):
        service = self.make_service(FakeGateway())
        order = service.create_order(_payload())

        service.sync_order_to_snelstart(order.id, attempt=1)
        self.assertEqual(len(self.gateway.created), 1)

        with self.assertRaises(OrderAlreadySynced):
            service.retry_order(order.id)
        with self.assertRaises(InvalidOrderTransition):
            order.record_sync_failure("late failure", retry_count=1, exhausted=True)

        order.refresh_from_db()
        self.assertEqual(order.status, LocalOrder.STATUS_SYNCED)

    def test_retry_order_resets_failed_order(self):
        service = self.make_service(FakeGateway(fail_with=_server_error()))
        order = service.create_order(_payload())
        order.record_sync_failure("boom", retry_count=5, exhausted=True)
        self.queue.jobs.clear()

        order = service.retry_order(order.id, user_id="u-2")

        self.assertEqual(order.status, LocalOrder.STATUS_PENDING_SYNC)
        self.assertEqual(order.retry_count, 0)
        self.assertEqual(order.error_message, "")
        self.assertEqual(self.queue.order_ids, [str(order.id)])
        self.assertEqual(
            AuditLog.objects.for_entity(AuditLog.ENTITY_ORDER, order.id).get(action="ORDER_RETRY").user_id,
            "u-2",
        )

    def test_unknown_order_raises_not_found(self):
        service = self.make_service(FakeGateway())

        with self.assertRaises(OrderNotFound):
            service.sync_order_to_snelstart("00000000-0000-0000-0000-000000000000")
        with self.assertRaises(OrderNotFound):
            service.get_order("not-a-uuid")


class UpdateDeleteOrderTests(OrderServiceTestCase):
    def test_update_recomputes_totals_and_keeps_status(self):
        service = self.make_service(FakeGateway(fail_with=_server_error()))
        order = service.create_order(_payload())

        updated = service.update_order(
            order.id,
            {"items": [{"product_id": "p1", "quantity": 4, "unit_price": "10"}], "customer_id": "CUST-2"},
            user_id="u-1",
        )

        self.assertEqual(updated.subtotal, Decimal("40.00"))
        self.assertEqual(updated.total, Decimal("40.00"))
        self.assertEqual(updated.customer_id, "CUST-2")
        self.assertEqual(updated.status, LocalOrder.STATUS_PENDING_SYNC)
        log = AuditLog.objects.for_entity(AuditLog.ENTITY_ORDER, order.id).get(action="ORDER_UPDATED")
        self.assertEqual(log.changes["customer_id"], {"old": "CUST-1", "new": "CUST-2"})

    def test_update_rejects_invoiced_order(self):
        gateway = FakeGateway(remote_orders=[RemoteSalesOrder(id="SS-1", proces_status="Factuur")])
        service = self.make_service(gateway)
        order = service.create_order(_payload())

        with self.assertRaises(InvoicedOrderConflict):
            service.update_order(order.id, {"customer_id": "CUST-2"})
        with self.assertRaises(InvoicedOrderConflict):
            service.delete_order(order.id)

        self.assertTrue(LocalOrder.objects.filter(pk=order.id).exists())

    def test_non_invoiced_remote_order_can_be_deleted(self):
        gateway = FakeGateway(remote_orders=[RemoteSalesOrder(id="SS-1", proces_status="Order")])
        service = self.make_service(gateway)
        order = service.create_order(_payload())

        service.delete_order(order.id, user_id="u-1")

        self.assertFalse(LocalOrder.objects.filter(pk=order.id).exists())
        self.assertIn("ORDER_DELETED", self.audit_actions(order.id))

    def test_invoice_check_failure_allows_change(self):
        gateway = FakeGateway(list_error=_server_error())
        service = self.make_service(gateway)
        order = service.create_order(_payload())

        with self.assertLogs("apps.orders.services", level="WARNING"):
            service.delete_order(order.id)

        self.assertFalse(LocalOrder.objects.filter(pk=order.id).exists())

    def test_list_orders_filters_by_status(self):
        service = self.make_service(FakeGateway())
        synced = service.create_order(_payload(key="a"))
        self.gateway.fail_with = _server_error()
        pending = service.create_order(_payload(key="b"))

        self.assertEqual([o.id for o in service.list_orders(LocalOrder.STATUS_SYNCED)], [synced.id])
        self.assertEqual([o.id for o in service.list_orders(LocalOrder.STATUS_PENDING_SYNC)], [pending.id])
        self.assertEqual(service.list_orders().count(), 2)
        with self.assertRaises(OrderValidationError):
            service.list_orders("BOGUS")
