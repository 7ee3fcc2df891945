class PricingError(Exception):
    """Base class for pricing errors surfaced to API callers."""

    error_code = "pricing_error"
    status_code = 400


class PriceRuleNotFound(PricingError):
    error_code = "price_rule_not_found"
    status_code = 404

    def __init__(self, rule_id) -> None:
        super().__init__(f"Price rule {rule_id} not found")
        self.rule_id = rule_id


class PriceRuleValidationError(PricingError):
    error_code = "validation_error"
    status_code = 400

    def __init__(self, errors) -> None:
        super().__init__("Invalid price rule")
        self.errors = errors
