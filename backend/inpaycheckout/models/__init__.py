from .currency import Currency  # noqa: F401
from .invoice import Invoice  # noqa: F401
from .invoice_payment import InvoicePayment  # noqa: F401
from .gateway_log import GatewayLog  # noqa: F401
