"""
Custom exceptions
"""


class B2BPricingError(Exception):
    """Base exception"""
    pass


class InvalidStatusTransition(B2BPricingError, ValueError):
    """A customer status change not allowed by the B2B workflow"""

    def __init__(self, current, event: str):
        self.current = current
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a customer in status '{current.value}'")


class TierNotFoundError(B2BPricingError, ValueError):
    """Incentive tier threshold doesn't exist"""

    def __init__(self, threshold):
        self.threshold = threshold
        super().__init__(f"Incentive tier with threshold '{threshold}' not found")


class CustomerNotFoundError(B2BPricingError, ValueError):
    """Customer id doesn't exist in the customer store"""

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer '{customer_id}' not found")


class TierValidationError(B2BPricingError, ValueError):
    """Incentive tier rejected by validation"""

    def __init__(self, errors: list):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid incentive tier")
