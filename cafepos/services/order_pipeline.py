import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

from cafepos.core.exceptions import InvalidTransitionError, OrderRejectedError, StorageError
from cafepos.models.cash_flow import TransactionCategory, TransactionType
from cafepos.models.order import OrderStatus
from cafepos.schemas.cash_flow import SummaryPeriod, TransactionInput
from cafepos.schemas.catalog import CatalogType, ProductRecord
from cafepos.schemas.common import money, quantity, utc_now
from cafepos.schemas.order import Cart, LinkedAddonSnapshot, OrderFilter, OrderItemSnapshot, OrderRecord
from cafepos.schemas.stock import ConsumptionEntry, ItemType
from cafepos.services.cash_flow_ledger import CashFlowLedger, period_start
from cafepos.services.catalog_store import CatalogStore
from cafepos.services.stock_ledger import StockLedger
from cafepos.storage.base import StorageBackend

log = logging.getLogger(__name__)

# Statuses an order can never leave
FINAL_STATUSES = (OrderStatus.CANCELLED,)


class OrderCommitPipeline:
    """
    Turns a cart into a committed order.

    A commit validates the cart, expands every line into the materials,
    ingredients and add-ons it consumes, then deducts stock, stores the order
    and records the payment as one unit of work. Stock events are published
    once that unit of work has finished.
    """

    def __init__(self, backend: StorageBackend, catalog: CatalogStore, stock: StockLedger, cash_flow: CashFlowLedger):
        self.backend = backend
        self.catalog = catalog
        self.stock = stock
        self.cash_flow = cash_flow

    async def _expand(self, cart: Cart) -> Tuple[List[OrderItemSnapshot], List[ConsumptionEntry], Decimal]:
        """Validates the cart lines and returns (snapshots, consumption, total)."""
        if not cart.lines:
            raise OrderRejectedError("Cart is empty.")

        products: Dict[UUID, ProductRecord] = {}
        items: List[OrderItemSnapshot] = []
        entries: List[ConsumptionEntry] = []
        total = Decimal("0")

        for line in cart.lines:
            product = products.get(line.product_id)
            if product is None:
                product = await self.catalog.get(CatalogType.PRODUCT, line.product_id)
                if product is None:
                    raise OrderRejectedError(f"Product {line.product_id} not found.")
                products[line.product_id] = product

            size = next((s for s in product.sizes if s.id == line.size_id), None)
            if size is None:
                raise OrderRejectedError(f"Size {line.size_id} does not belong to product '{product.name}'.")

            flavor = None
            if line.flavor_id is not None:
                flavor = await self.catalog.get(CatalogType.FLAVOR, line.flavor_id)
                if flavor is None:
                    raise OrderRejectedError(f"Flavor {line.flavor_id} not found.")

            addons = []
            addon_total = Decimal("0")
            for selected in line.addons:
                addon = await self.catalog.get(CatalogType.ADDON, selected.addon_id)
                if addon is None:
                    raise OrderRejectedError(f"Add-on {selected.addon_id} not found.")
                addons.append(LinkedAddonSnapshot(
                    addon_id=addon.id, name=addon.name, price=addon.price, quantity=selected.quantity,
                ))
                addon_total += addon.price * selected.quantity
                # Add-ons are consumed in their own units, independent of the line quantity
                entries.append(ConsumptionEntry(
                    item_type=ItemType.ADDON, item_id=addon.id, quantity=Decimal(selected.quantity),
                ))

            for usage in size.materials:
                entries.append(ConsumptionEntry(
                    item_type=ItemType.MATERIAL, item_id=usage.material_id,
                    quantity=quantity(usage.quantity * line.quantity),
                ))
            for usage in size.ingredients:
                entries.append(ConsumptionEntry(
                    item_type=ItemType.INGREDIENT, item_id=usage.ingredient_id,
                    quantity=quantity(usage.quantity * line.quantity),
                ))

            line_total = money(size.price * line.quantity + addon_total)
            total += line_total
            items.append(OrderItemSnapshot(
                product_id=product.id,
                product_name=product.name,
                flavor_id=flavor.id if flavor else None,
                flavor_name=flavor.name if flavor else None,
                size_id=size.id,
                size_name=size.name,
                unit_price=size.price,
                quantity=line.quantity,
                addons=addons,
                line_total=line_total,
            ))

        return items, entries, money(total)

    async def commit(self, cart: Cart) -> OrderRecord:
        items, entries, total = await self._expand(cart)
        paid = money(cart.paid)
        if cart.require_full_payment and paid < total:
            raise OrderRejectedError(f"Insufficient payment: paid {paid}, total {total}.")
        change = money(max(Decimal("0"), paid - total))

        try:
            async with self.backend.unit_of_work():
                report = await self.stock.deduct(entries)
                row = await self.backend.create_entity("orders", {
                    "order_type": cart.order_type,
                    "order_status": OrderStatus.QUEUING,
                    "total": total,
                    "paid": paid,
                    "change": change,
                    "items": [item.model_dump(mode="json") for item in items],
                    "created_at": utc_now(),
                })
                order = OrderRecord.model_validate(row)
                if paid > 0:
                    await self.cash_flow.append(TransactionInput(
                        type=TransactionType.INFLOW,
                        category=TransactionCategory.ORDER_PAYMENT,
                        amount=paid,
                        description=f"Payment for order {order.id}",
                        order_id=order.id,
                    ))
        except StorageError as e:
            log.error(f"Order commit failed: {e}")
            if not self.backend.transactional:
                log.warning("Fallback storage: stock deducted before the failure stays deducted.")
            raise

        log.info(f"Order {order.id} committed: total {total}, paid {paid}, change {change}.")
        await self.stock.publish(report)
        return order

    async def create_order(self, cart: Cart) -> OrderRecord:
        return await self.commit(cart)

    async def get_order(self, order_id: Union[UUID, str]) -> Optional[OrderRecord]:
        row = await self.backend.read_entity("orders", order_id)
        return OrderRecord.model_validate(row) if row else None

    async def list_orders(self, order_filter: OrderFilter = OrderFilter.ALL, now: Optional[datetime] = None) -> List[OrderRecord]:
        """Orders newest first; ``today`` keeps those created since UTC midnight."""
        rows = await self.backend.read_entities("orders", order_by=["-created_at"])
        orders = [OrderRecord.model_validate(row) for row in rows]
        if order_filter == OrderFilter.TODAY:
            since = period_start(SummaryPeriod.TODAY, now or utc_now())
            orders = [o for o in orders if o.created_at >= since]
        return orders

    async def update_order_status(self, order_id: Union[UUID, str], new_status: OrderStatus) -> Optional[OrderRecord]:
        """
        Changes the status only. Stock and payments recorded at commit time
        are left as they are.
        """
        async with self.backend.unit_of_work():
            row = await self.backend.read_entity("orders", order_id)
            if row is None:
                return None
            order = OrderRecord.model_validate(row)
            # Block status updates if the order is in a final, irreversible state.
            if order.order_status in FINAL_STATUSES:
                raise InvalidTransitionError(
                    f"Order is already in a final state: {order.order_status.value}. Status cannot be updated."
                )
            row = await self.backend.update_entity("orders", order_id, {"order_status": new_status})
        log.info(f"Order {order_id}: {order.order_status.value} -> {new_status.value}.")
        return OrderRecord.model_validate(row)
