"""
Checkout Session

Orchestrates one cashier's checkout: the sale cart, the return basket and
the exchange basket, the selected customer and their special prices.

LOADS:
Catalog, customer special prices, invoices and saved quotes arrive
asynchronously from the backend and may arrive in any order. Each load is
stamped with a LoadToken from begin_load(). A result is applied only if its
token is still current:
- a newer load of the same kind supersedes older ones
- switching customer invalidates pending special-price loads
- reset invalidates every pending load
Stale results are discarded wholesale and logged. Prices are re-derived once
the catalog and the selected customer's prices are both present.

SUBMISSION:
Submissions go through an injected submitter callable (payload -> result).
Any failure is re-raised as SubmissionError and the cart/baskets are left
intact for retry. On success the cart or baskets are replaced by empty ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping

from ..models import (
    CartLine, Customer, CustomerSpecialPrice, OriginalOrder, Product, Quote, QuoteItem,
    ReturnLine, SpecialPriceUpdate, UNIT_PIECE,
)
from ..time_utils import today
from .cart_service import Cart, CartError, LineKey
from .payload_service import (
    build_quote_payload, build_return_exchange_payload, build_sale_payload, quote_conversion_payload,
)
from .pricing_service import (
    PriceOverride, ResolvedPrice, apply_price_override, find_by_barcode, resolve_price,
)
from .return_service import ReturnBasket
from .settings_service import CheckoutSettings
from .settlement_service import (
    ReturnExchangeSettlement, SaleSettlement, SettlementMethods,
    compute_return_exchange_settlement, compute_sale_settlement, debt_adjustment,
    validate_methods,
)

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised for checkout session errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SubmissionError(CheckoutError):
    """The backend rejected (or never received) a submission. State is kept."""


# =============================================================================
# LOAD KINDS (CONSTANTS)
# =============================================================================

LOAD_CATALOG = "catalog"
LOAD_CUSTOMER_PRICES = "customer_prices"
LOAD_INVOICE = "invoice"
LOAD_QUOTE = "quote"

VALID_LOAD_KINDS = [LOAD_CATALOG, LOAD_CUSTOMER_PRICES, LOAD_INVOICE, LOAD_QUOTE]

DEFAULT_SUBMISSION_ERROR = "Submission failed"

Submitter = Callable[[dict], Any]
QuoteConverter = Callable[[int, dict], Any]


@dataclass(frozen=True)
class LoadToken:
    kind: str
    sequence: int


def backend_message(exc: Exception) -> str:
    """Best available message from a submitter failure."""
    for attr in ("payload", "details"):
        data = getattr(exc, attr, None)
        if isinstance(data, Mapping):
            message = data.get("message") or data.get("error")
            if message:
                return str(message)
    return str(exc) or DEFAULT_SUBMISSION_ERROR


def _order_id(result: Any) -> int | None:
    """Order id from a sale submission result, if the backend returned one."""
    if not isinstance(result, Mapping):
        return None
    data = result.get("data")
    if isinstance(data, Mapping) and data.get("orderId") is not None:
        return data["orderId"]
    return result.get("orderId", result.get("order_id"))


def _special_price_from(update: SpecialPriceUpdate) -> CustomerSpecialPrice:
    return CustomerSpecialPrice(
        customer_id=update.customer_id,
        product_id=update.product_id,
        unit_type=update.unit_type,
        special_price=update.special_price,
    )


class CheckoutSession:
    """State and workflow of one checkout screen."""

    def __init__(self, settings: CheckoutSettings, on: date | None = None):
        self.settings = settings
        self.table = settings.table
        self.on = on

        self.cart = Cart(self.table)
        self.return_basket = ReturnBasket()
        self.exchange_cart = Cart(self.table)

        self.customer: Customer | None = None
        self.special_prices: list[CustomerSpecialPrice] = []
        self.pending_special_prices: list[SpecialPriceUpdate] = []
        self.loaded_quote: Quote | None = None

        self._products: list[Product] = []
        self._catalog_loaded = False
        self._prices_loaded_for: int | None = None

        self._sequences: dict[str, int] = {kind: 0 for kind in VALID_LOAD_KINDS}

    # -------------------------------------------------------------------------
    # Load tokens
    # -------------------------------------------------------------------------

    def begin_load(self, kind: str) -> LoadToken:
        if kind not in VALID_LOAD_KINDS:
            raise CheckoutError(f"Unknown load kind: {kind}", details={"kind": kind})
        self._sequences[kind] += 1
        return LoadToken(kind=kind, sequence=self._sequences[kind])

    def is_current(self, token: LoadToken) -> bool:
        return token.sequence == self._sequences.get(token.kind)

    def _accept(self, token: LoadToken, kind: str) -> bool:
        if token.kind != kind:
            raise CheckoutError(
                f"Token for {token.kind} used to deliver {kind}",
                details={"expected": kind, "got": token.kind},
            )
        if not self.is_current(token):
            logger.info(
                "Discarding stale %s load (token %s, current %s)",
                kind, token.sequence, self._sequences[kind],
            )
            return False
        return True

    def _invalidate_loads(self, *kinds: str) -> None:
        for kind in kinds or VALID_LOAD_KINDS:
            self._sequences[kind] += 1

    # -------------------------------------------------------------------------
    # Catalog / customer
    # -------------------------------------------------------------------------

    @property
    def products(self) -> list[Product]:
        return list(self._products)

    @property
    def prices_ready(self) -> bool:
        if not self._catalog_loaded:
            return False
        return self.customer is None or self._prices_loaded_for == self.customer.customer_id

    def load_catalog(self, token: LoadToken, products: Iterable[Product]) -> bool:
        """Apply a catalog load. Returns False if the result was stale."""
        if not self._accept(token, LOAD_CATALOG):
            return False
        self._products = list(products)
        self._catalog_loaded = True
        self._rederive_prices()
        return True

    def load_customer_prices(
        self,
        token: LoadToken,
        customer_id: int,
        prices: Iterable[CustomerSpecialPrice],
    ) -> bool:
        """Apply the selected customer's special prices. Returns False if stale."""
        if not self._accept(token, LOAD_CUSTOMER_PRICES):
            return False
        if self.customer is None or self.customer.customer_id != customer_id:
            logger.info("Discarding special prices for customer %s (not selected)", customer_id)
            return False
        loaded = [p for p in prices if p.customer_id in (None, customer_id)]
        self.special_prices = self._with_pending_overrides(loaded)
        self._prices_loaded_for = customer_id
        self._rederive_prices()
        return True

    def _with_pending_overrides(self, loaded: list[CustomerSpecialPrice]) -> list[CustomerSpecialPrice]:
        """Loaded special prices with unsaved cashier overrides laid on top."""
        pending = {(u.product_id, u.unit_type): u for u in self.pending_special_prices}
        kept = [p for p in loaded if (p.product_id, p.unit_type) not in pending]
        return kept + [_special_price_from(update) for update in pending.values()]

    def select_customer(
        self,
        customer: Customer | None,
        special_prices: Iterable[CustomerSpecialPrice] | None = None,
    ) -> None:
        """
        Switch the selected customer and re-price every line.

        Special prices can be passed directly; otherwise they are expected
        through load_customer_prices and lines are re-priced again then.
        """
        self._invalidate_loads(LOAD_CUSTOMER_PRICES)
        self.customer = customer
        self.pending_special_prices = []
        if customer is not None and special_prices is not None:
            self.special_prices = [p for p in special_prices if p.customer_id in (None, customer.customer_id)]
            self._prices_loaded_for = customer.customer_id
        else:
            self.special_prices = []
            self._prices_loaded_for = None
        self._reprice_all()

    def resolve(self, product: Product, unit_type: str = UNIT_PIECE) -> ResolvedPrice:
        return resolve_price(
            product, unit_type, self.customer, self.special_prices, self.on or today()
        )

    def _resolve_line(self, line: CartLine) -> ResolvedPrice:
        return self.resolve(line.product, line.unit_type)

    def _reprice_all(self) -> None:
        self.cart.reprice(self._resolve_line)
        self.exchange_cart.reprice(self._resolve_line)

    def _rederive_prices(self) -> None:
        if self.prices_ready:
            self._reprice_all()

    def find_product(self, product_id: int, variant_id: int | None = None) -> Product:
        for product in self._products:
            if product.product_id == product_id and (variant_id is None or product.variant_id == variant_id):
                return product
        raise CheckoutError(
            f"Product {product_id} not in catalog",
            details={"product_id": product_id, "variant_id": variant_id},
        )

    # -------------------------------------------------------------------------
    # Sale cart
    # -------------------------------------------------------------------------

    def _add_to(
        self,
        cart: Cart,
        product: Product | int,
        unit_type: str,
        quantity: int,
        variant_id: int | None,
    ) -> CartLine | None:
        if not isinstance(product, Product):
            product = self.find_product(product, variant_id)
        resolved = self.resolve(product, unit_type)
        return cart.add_line(
            product,
            unit_type,
            resolved.price,
            variant_id=variant_id if variant_id is not None else product.variant_id,
            quantity=quantity,
            is_special=resolved.is_special,
        )

    def add_product(
        self,
        product: Product | int,
        unit_type: str = UNIT_PIECE,
        quantity: int = 1,
        variant_id: int | None = None,
    ) -> CartLine | None:
        return self._add_to(self.cart, product, unit_type, quantity, variant_id)

    def scan(self, code: str) -> CartLine | None:
        """Add the product matching a scanned barcode or SKU."""
        match = find_by_barcode(self._products, code)
        if match is None:
            raise CheckoutError(f"No product matches '{code}'", details={"code": code})
        product, unit_type = match
        return self.add_product(product, unit_type)

    def change_unit(self, key: LineKey, unit_type: str, cart: Cart | None = None) -> CartLine:
        cart = cart or self.cart
        line = cart.find(key)
        if line is None:
            raise CartError("Cart line not found", details={"key": list(key)})
        return cart.change_unit(key, unit_type, self.resolve(line.product, unit_type))

    def override_price(self, key: LineKey, price: Decimal, cart: Cart | None = None) -> PriceOverride:
        """
        Cashier-entered unit price. Floored to cost; with a customer selected
        the price becomes their special price for this product and unit.
        """
        cart = cart or self.cart
        line = cart.find(key)
        if line is None:
            raise CartError("Cart line not found", details={"key": list(key)})

        result = apply_price_override(line.product, line.unit_type, price, self.customer)
        cart.set_unit_price(key, result.price, is_special=result.special_price_update is not None)

        update = result.special_price_update
        if update is not None:
            self.pending_special_prices = [
                p for p in self.pending_special_prices
                if (p.product_id, p.unit_type) != (update.product_id, update.unit_type)
            ] + [update]
            self.special_prices = [
                p for p in self.special_prices
                if (p.product_id, p.unit_type) != (update.product_id, update.unit_type)
            ] + [_special_price_from(update)]
        return result

    def quote_sale(self, payment_type: str, tendered: Mapping[str, Decimal] | None = None) -> SaleSettlement:
        return compute_sale_settlement(
            self.cart.totals(), payment_type, self.table, tendered, self.customer
        )

    def build_sale_payload(
        self,
        payment_type: str,
        *,
        warehouse_id: int,
        tendered: Mapping[str, Decimal] | None = None,
        notes: str | None = None,
    ) -> dict:
        totals = self.cart.totals()
        settlement = compute_sale_settlement(totals, payment_type, self.table, tendered, self.customer)
        return build_sale_payload(
            self.cart.lines, totals, settlement, self.table,
            warehouse_id=warehouse_id,
            customer_id=self.customer.customer_id if self.customer else None,
            notes=notes or (self.loaded_quote.order_notes if self.loaded_quote else None),
        )

    def submit_sale(
        self,
        submitter: Submitter,
        payment_type: str,
        *,
        warehouse_id: int,
        tendered: Mapping[str, Decimal] | None = None,
        notes: str | None = None,
        convert_quote: QuoteConverter | None = None,
    ) -> Any:
        """
        Build and submit the sale. On success the cart is replaced by an
        empty one; on failure it is left as is.

        A sale made from a loaded quote marks that quote converted through
        convert_quote(quote_id, body). The sale stands if that call fails.

        Raises:
            SubmissionError: the submitter failed
        """
        payload = self.build_sale_payload(
            payment_type, warehouse_id=warehouse_id, tendered=tendered, notes=notes
        )
        result = self._submit(submitter, payload, "sale")
        self.cart = Cart(self.table)

        quote, self.loaded_quote = self.loaded_quote, None
        order_id = _order_id(result)
        if quote is not None and convert_quote is not None and order_id is not None:
            try:
                convert_quote(quote.quote_id, quote_conversion_payload(order_id))
            except Exception as e:
                logger.warning(
                    "Failed to mark quote %s converted to order %s: %s",
                    quote.quote_number, order_id, backend_message(e),
                )
        return result

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    def _quote_product(self, item: QuoteItem) -> Product:
        for product in self._products:
            if product.product_id == item.product_id:
                return product
        # not in the loaded catalog: sell it at the quoted price
        return Product(
            product_id=item.product_id,
            name=item.product_name,
            sku=item.product_sku,
            retail_price=item.unit_price,
            wholesale_price=item.unit_price,
            box_retail_price=item.unit_price,
            box_wholesale_price=item.unit_price,
        )

    def load_quote(
        self,
        token: LoadToken,
        quote: Quote,
        customer: Customer | None = None,
        special_prices: Iterable[CustomerSpecialPrice] | None = None,
    ) -> bool:
        """
        Load a saved quote into the sale cart at its quoted prices.

        Replaces the cart and, when given, selects the quote's customer.
        Returns False if stale.

        Raises:
            CheckoutError: the quote was already converted to an order
        """
        if not self._accept(token, LOAD_QUOTE):
            return False
        if quote.is_converted:
            raise CheckoutError(
                "Quote has already been converted to an order",
                details={"quote_number": quote.quote_number},
            )

        cart = Cart(self.table)
        for item in quote.items:
            line = cart.add_line(
                self._quote_product(item), UNIT_PIECE, item.unit_price, quantity=item.quantity,
            )
            if item.discount_amount:
                cart.update_discount(line.key, line.discount + item.discount_amount)

        if customer is not None:
            self.select_customer(customer, special_prices)
        self.cart = cart
        self.loaded_quote = quote
        logger.info("Loaded quote %s (%s items)", quote.quote_number, len(quote.items))
        return True

    def build_quote_payload(self, notes: str | None = None, now: datetime | None = None) -> dict:
        return build_quote_payload(
            self.cart.lines,
            self.cart.totals(),
            customer_id=self.customer.customer_id if self.customer else None,
            notes=notes,
            now=now,
        )

    def submit_quote(self, submitter: Submitter, notes: str | None = None) -> Any:
        """
        Save the cart as a quote. On success the cart and the customer are
        cleared; on failure both are left as is.

        Raises:
            SubmissionError: the submitter failed
        """
        payload = self.build_quote_payload(notes)
        result = self._submit(submitter, payload, "quote")
        self.cart = Cart(self.table)
        self.loaded_quote = None
        self.select_customer(None)
        return result

    # -------------------------------------------------------------------------
    # Return / exchange
    # -------------------------------------------------------------------------

    @property
    def original_order(self) -> OriginalOrder | None:
        return self.return_basket.order

    def load_invoice(self, token: LoadToken, order: OriginalOrder, customer: Customer | None = None) -> bool:
        """
        Load the original order for a return. Replaces both baskets and, when
        the invoice has a customer, selects them. Returns False if stale.
        """
        if not self._accept(token, LOAD_INVOICE):
            return False
        self.return_basket = ReturnBasket(order)
        self.exchange_cart = Cart(self.table)
        if customer is not None:
            self.select_customer(customer)
        return True

    def add_to_return_basket(self, order_item_id: int, quantity: int = 1) -> ReturnLine | None:
        if self.original_order is None:
            raise CheckoutError("Load an invoice before adding returns")
        return self.return_basket.add_to_return_basket(order_item_id, quantity)

    def add_to_exchange_basket(
        self,
        product: Product | int,
        unit_type: str = UNIT_PIECE,
        quantity: int = 1,
        variant_id: int | None = None,
    ) -> CartLine | None:
        return self._add_to(self.exchange_cart, product, unit_type, quantity, variant_id)

    def quote_return_exchange(self) -> ReturnExchangeSettlement:
        return compute_return_exchange_settlement(
            self.return_basket.lines,
            self.exchange_cart.lines,
            self.table,
            self.settings.refund_approval_threshold,
        )

    def settle_return_exchange(
        self,
        refund_method: str | None = None,
        payment_method: str | None = None,
    ) -> tuple[ReturnExchangeSettlement, SettlementMethods]:
        settlement = self.quote_return_exchange()
        return settlement, validate_methods(settlement, refund_method, payment_method)

    def build_return_exchange_payload(
        self,
        *,
        warehouse_id: int,
        refund_method: str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> dict:
        if self.original_order is None:
            raise CheckoutError("No invoice loaded")
        settlement, methods = self.settle_return_exchange(refund_method, payment_method)
        return build_return_exchange_payload(
            self.original_order.order_id,
            self.return_basket.lines,
            self.exchange_cart.lines,
            settlement,
            methods,
            warehouse_id=warehouse_id,
            notes=notes,
            base_code=self.table.base_code,
        )

    def submit_return_exchange(
        self,
        submitter: Submitter,
        *,
        warehouse_id: int,
        refund_method: str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> Any:
        """
        Build and submit the return/exchange. On success both baskets are
        replaced and the customer's debt balance is adjusted locally.

        Raises:
            SubmissionError: the submitter failed
        """
        if self.original_order is None:
            raise CheckoutError("No invoice loaded")
        settlement, methods = self.settle_return_exchange(refund_method, payment_method)
        payload = build_return_exchange_payload(
            self.original_order.order_id,
            self.return_basket.lines,
            self.exchange_cart.lines,
            settlement,
            methods,
            warehouse_id=warehouse_id,
            notes=notes,
            base_code=self.table.base_code,
        )
        result = self._submit(submitter, payload, "return/exchange")

        adjustment = debt_adjustment(settlement, methods)
        if adjustment and self.customer is not None:
            self.customer = replace(self.customer, debt_balance=self.customer.debt_balance + adjustment)
        self.return_basket = ReturnBasket()
        self.exchange_cart = Cart(self.table)
        return result

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _submit(self, submitter: Submitter, payload: dict, what: str) -> Any:
        try:
            return submitter(payload)
        except Exception as e:
            message = backend_message(e)
            logger.warning("%s submission failed: %s", what.capitalize(), message)
            raise SubmissionError(message, details={"submission": what}) from e

    def reset(self) -> None:
        """Start over: empty cart and baskets, no customer, pending loads invalidated."""
        self._invalidate_loads()
        self.cart = Cart(self.table)
        self.return_basket = ReturnBasket()
        self.exchange_cart = Cart(self.table)
        self.customer = None
        self.special_prices = []
        self.pending_special_prices = []
        self.loaded_quote = None
        self._prices_loaded_for = None

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict() if self.customer else None,
            "cart": self.cart.to_dict(),
            "return_basket": self.return_basket.to_dict(),
            "exchange_basket": self.exchange_cart.to_dict(),
            "pending_special_prices": [p.to_payload() for p in self.pending_special_prices],
            "loaded_quote": self.loaded_quote.to_dict() if self.loaded_quote else None,
        }
