"""
Bundle resolver — expands composite products into their components.

A bundle never receives sale movements itself; only its expanded
components do.
"""

import logging
from dataclasses import dataclass

from stockledger.conf import stockledger_settings
from stockledger.exceptions import StockError
from stockledger.models.bundle import BundleComponent
from stockledger.models.product import Product

logger = logging.getLogger('stockledger')


@dataclass(frozen=True)
class ResolvedComponent:
    """A stocked product and the units consumed from it."""

    product: Product
    quantity: int


class BundleResolver:
    """Weighted, depth-limited bundle expansion."""

    def __init__(self, max_depth: int | None = None):
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        if self._max_depth is not None:
            return self._max_depth
        return stockledger_settings.BUNDLE_MAX_DEPTH

    def expand(self, product: Product, sale_quantity: int) -> list[ResolvedComponent]:
        """
        Components consumed by selling sale_quantity units of product.

        Non-bundle → the product itself. Nested bundles are expanded
        recursively; a component reached through several paths is summed.

        Raises:
            StockError('INVALID_QUANTITY'): sale_quantity <= 0
            StockError('BUNDLE_TOO_DEEP'): nesting beyond max_depth
                (also what a cyclic definition ends up hitting)
        """
        if sale_quantity is None or sale_quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=sale_quantity)

        totals: dict[int, int] = {}
        products: dict[int, Product] = {}
        self._expand_into(product, sale_quantity, 0, totals, products)

        if product.is_bundle and not totals:
            logger.warning("bundle.empty", extra={"sku": product.sku})

        return [ResolvedComponent(product=products[pk], quantity=qty) for pk, qty in totals.items()]

    def _expand_into(self, product, quantity, depth, totals, products):
        if not product.is_bundle:
            products.setdefault(product.pk, product)
            totals[product.pk] = totals.get(product.pk, 0) + quantity
            return

        if depth >= self.max_depth:
            raise StockError('BUNDLE_TOO_DEEP', sku=product.sku, max_depth=self.max_depth)

        lines = BundleComponent.objects.filter(parent=product).select_related('component').order_by('pk')
        for line in lines:
            self._expand_into(
                line.component,
                quantity * line.component_quantity,
                depth + 1,
                totals,
                products,
            )

    @classmethod
    def validate_component(cls, parent: Product, component: Product) -> None:
        """
        Refuse a component line that would make parent contain itself.

        Raises:
            StockError('BUNDLE_CYCLE')
        """
        if parent.pk == component.pk:
            raise StockError('BUNDLE_CYCLE', parent=parent.sku, component=component.sku)

        # Walk down from component; reaching parent means a cycle
        seen = set()
        frontier = [component.pk]
        while frontier:
            children = list(
                BundleComponent.objects.filter(parent_id__in=frontier)
                .values_list('component_id', flat=True)
            )
            if parent.pk in children:
                raise StockError('BUNDLE_CYCLE', parent=parent.sku, component=component.sku)
            seen.update(frontier)
            frontier = [pk for pk in set(children) if pk not in seen]
