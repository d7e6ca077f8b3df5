"""Role-based views of transactions for delivery to callers."""

from .models import Role, Transaction

ANONYMOUS_CUSTOMER_NAME = "Anonymous Customer"


def redact(event: Transaction, role: Role | str) -> dict:
    """Return the JSON-ready view of ``event`` that ``role`` may see.

    Admins get the event unmodified. Viewers get the customer name replaced
    by a placeholder and the email dropped; every other field passes through.
    """
    view = event.model_dump(mode="json")
    if Role(role) == Role.ADMIN:
        return view

    customer = dict(view["customer"])
    customer["name"] = ANONYMOUS_CUSTOMER_NAME
    customer.pop("email", None)
    view["customer"] = customer
    return view
