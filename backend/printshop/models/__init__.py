from .branches import Branch, BranchPricingConfig, BranchExtra
from .catalog import CatalogEntry
from .auth import User, SessionToken
from .vouchers import VoucherCode
from .products import Product
from .orders import Order, OrderLine
from .security import BlockEvent

__all__ = [
    'Branch', 'BranchPricingConfig', 'BranchExtra',
    'CatalogEntry',
    'User', 'SessionToken',
    'VoucherCode',
    'Product',
    'Order', 'OrderLine',
    'BlockEvent',
]
