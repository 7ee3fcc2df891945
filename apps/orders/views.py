from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import OrderError, OrderValidationError
from .serializers import LocalOrderSerializer
from .services import OrderService


def _user_id(request):
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return str(user.pk)
    return None


def _error_response(exc: OrderError) -> Response:
    body = {"error": str(exc), "code": exc.error_code}
    if isinstance(exc, OrderValidationError):
        body["details"] = exc.errors
    return Response(body, status=exc.status_code)


class OrderListView(APIView):
    """Create wholesale orders and list them, optionally by status."""

    def get(self, request, *args, **kwargs):
        try:
            orders = OrderService().list_orders(status=request.query_params.get("status"))
        except OrderError as exc:
            return _error_response(exc)
        return Response(LocalOrderSerializer(orders, many=True).data)

    def post(self, request, *args, **kwargs):
        try:
            order, created = OrderService().place_order(request.data, user_id=_user_id(request))
        except OrderError as exc:
            return _error_response(exc)
        return Response(
            LocalOrderSerializer(order).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class OrderDetailView(APIView):
    def get(self, request, order_id, *args, **kwargs):
        try:
            order = OrderService().get_order(order_id)
        except OrderError as exc:
            return _error_response(exc)
        return Response(LocalOrderSerializer(order).data)

    def put(self, request, order_id, *args, **kwargs):
        try:
            order = OrderService().update_order(order_id, request.data, user_id=_user_id(request))
        except OrderError as exc:
            return _error_response(exc)
        return Response(LocalOrderSerializer(order).data)

    def delete(self, request, order_id, *args, **kwargs):
        try:
            OrderService().delete_order(order_id, user_id=_user_id(request))
        except OrderError as exc:
            return _error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrderRetryView(APIView):
    """Reset a pending or failed order and queue a fresh sync job."""

    def post(self, request, order_id, *args, **kwargs):
        try:
            order = OrderService().retry_order(order_id, user_id=_user_id(request))
        except OrderError as exc:
            return _error_response(exc)
        return Response(LocalOrderSerializer(order).data, status=status.HTTP_202_ACCEPTED)
