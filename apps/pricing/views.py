from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import PricingError, PriceRuleValidationError
from .serializers import PriceOverrideRuleSerializer, PriceQuerySerializer
from .services import PricingService


def _user_id(request):
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return str(user.pk)
    return None


def _error_response(exc: PricingError) -> Response:
    body = {"error": str(exc), "code": exc.error_code}
    if isinstance(exc, PriceRuleValidationError):
        body["details"] = exc.errors
    return Response(body, status=exc.status_code)


class PriceRuleListView(APIView):
    """List price override rules or create a new one."""

    def get(self, request, *args, **kwargs):
        rules = PricingService().list_rules(product_id=request.query_params.get("product_id"))
        return Response(PriceOverrideRuleSerializer(rules, many=True).data)

    def post(self, request, *args, **kwargs):
        try:
            rule = PricingService().create_rule(request.data, user_id=_user_id(request))
        except PricingError as exc:
            return _error_response(exc)
        return Response(PriceOverrideRuleSerializer(rule).data, status=status.HTTP_201_CREATED)


class PriceRuleDetailView(APIView):
    def get(self, request, rule_id, *args, **kwargs):
        try:
            rule = PricingService().get_rule(rule_id)
        except PricingError as exc:
            return _error_response(exc)
        return Response(PriceOverrideRuleSerializer(rule).data)

    def put(self, request, rule_id, *args, **kwargs):
        try:
            rule = PricingService().update_rule(rule_id, request.data, user_id=_user_id(request))
        except PricingError as exc:
            return _error_response(exc)
        return Response(PriceOverrideRuleSerializer(rule).data)

    def delete(self, request, rule_id, *args, **kwargs):
        try:
            PricingService().delete_rule(rule_id, user_id=_user_id(request))
        except PricingError as exc:
            return _error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PriceCalculateView(APIView):
    """Resolve the effective price for a product/customer pair."""

    def post(self, request, *args, **kwargs):
        serializer = PriceQuerySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"error": "Invalid price query", "code": "validation_error", "details": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = serializer.validated_data
        price = PricingService().get_customer_price(
            data["product_id"],
            data.get("category_id") or None,
            data.get("customer_id") or None,
            data["base_price"],
        )
        return Response(
            {
                "product_id": data["product_id"],
                "customer_id": data.get("customer_id") or None,
                "base_price": str(data["base_price"]),
                "price": str(price),
            }
        )
