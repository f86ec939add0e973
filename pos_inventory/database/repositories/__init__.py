from .customers_repo import CustomersRepo
from .dues_repo import DuesRepo
from .inventory_repo import InventoryRepo
from .invoices_repo import InvoicesRepo
from .products_repo import ProductsRepo
from .reporting_repo import ReportingRepo
from .returns_repo import ReturnsRepo

__all__ = [
    "CustomersRepo",
    "DuesRepo",
    "InventoryRepo",
    "InvoicesRepo",
    "ProductsRepo",
    "ReportingRepo",
    "ReturnsRepo",
]
