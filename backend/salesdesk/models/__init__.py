from .currency import Currency
from .catalog import (
    Product, Customer, CustomerSpecialPrice, SpecialPriceUpdate, CompanySettings,
    UNIT_PIECE, UNIT_BOX, VALID_UNIT_TYPES,
)
from .orders import ReturnableItem, OriginalOrder
from .quotes import Quote, QuoteItem
from .baskets import (
    CartLine, ReturnLine,
    RETURN_REASONS, ITEM_CONDITIONS, INVENTORY_ACTIONS,
)

__all__ = [
    'Currency',
    'Product', 'Customer', 'CustomerSpecialPrice', 'SpecialPriceUpdate', 'CompanySettings',
    'UNIT_PIECE', 'UNIT_BOX', 'VALID_UNIT_TYPES',
    'ReturnableItem', 'OriginalOrder',
    'Quote', 'QuoteItem',
    'CartLine', 'ReturnLine',
    'RETURN_REASONS', 'ITEM_CONDITIONS', 'INVENTORY_ACTIONS',
]
