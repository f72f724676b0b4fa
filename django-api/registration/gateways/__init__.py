from registration.gateways.interfaces import (
    CalendarMirror,
    ChargeResult,
    EmailGateway,
    EmailTemplate,
    PaymentGateway,
    PaymentRecord,
    Product,
    ProductCatalog,
    RefundResult,
    SendResult,
    TemplateProvider,
)

__all__ = [
    "CalendarMirror",
    "ChargeResult",
    "EmailGateway",
    "EmailTemplate",
    "PaymentGateway",
    "PaymentRecord",
    "Product",
    "ProductCatalog",
    "RefundResult",
    "SendResult",
    "TemplateProvider",
]
