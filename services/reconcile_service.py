"""
Order reconciliation.

Turns a client's desired order configuration into scheduled rows in
the future partition. Per delivery-day partition:

    1. validate (vendors, delivery days, menu items, non-empty)
    2. compute take-effect and delivery dates
    3. find the existing scheduled order for (client, kind, weekday)
    4. user_modified -> additive merge, otherwise full replace
    5. recompute totals from the stored child rows

Every partition is planned (and so validated) before anything is
written. Partitions commit independently: a write failure aborts
only its own partition.
"""

from typing import Optional, Union
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
import structlog

from models.order_config import (
    ServiceType,
    Weekday,
    FoodOrderConfig,
    BoxesOrderConfig,
    CustomOrderConfig,
    ProduceOrderConfig,
)
from models.upcoming_order import (
    OrderStatus,
    LineItemResponse,
    VendorSelectionResponse,
    BoxSelectionResponse,
    UpcomingOrderResponse,
    NamedItem,
    PartitionOutcome,
    ReconcileResponse,
)
from models.catalog import CatalogEntry
from models.vendor import Vendor
from exceptions import (
    AppError,
    ValidationError,
    DatabaseError,
    EmptyOrderError,
    VendorNotFoundError,
    VendorMissingDeliveryDaysError,
    VendorDeliveryDayMismatchError,
    MenuItemNotFoundError,
    OrderNotEditableError,
    UpcomingOrderNotFoundError,
    AllocationExhaustedError,
    PersistenceError,
    ReconciliationFailedError,
)
from services.order_repository import OrderRepository, get_order_repository
from services.vendor_service import VendorService, get_vendor_service
from services.client_service import ClientService, get_client_service
from services.order_number_service import OrderNumberService
from services.delivery_date_service import (
    DeliveryDateService,
    ScheduleDates,
    get_delivery_date_service,
    normalize_delivery_day,
    earliest_vendor_delivery,
    earliest_shared_delivery,
)
from utils.text_utils import clean_item_name, item_name_key
from utils.time_utils import utc_now_iso

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

AnyOrderConfig = Union[FoodOrderConfig, BoxesOrderConfig, CustomOrderConfig, ProduceOrderConfig]


def to_decimal(value) -> Decimal:
    """Stored numbers come back as float or str; None counts as zero."""
    if value is None:
        return ZERO
    return Decimal(str(value))


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


# ===================
# PLANS
# ===================

@dataclass
class LinePlan:
    """Desired line item. Menu items are keyed by id, named items by name."""
    quantity: int
    unit_value: Decimal
    menu_item_id: Optional[str] = None
    custom_name: Optional[str] = None
    custom_price: Optional[Decimal] = None
    sort_order: Optional[int] = None

    @property
    def key(self) -> tuple:
        if self.menu_item_id:
            return ("menu", self.menu_item_id)
        return ("name", item_name_key(self.custom_name))

    def to_row(self, order_id: str, selection_id: Optional[str]) -> dict:
        return {
            "order_id": order_id,
            "vendor_selection_id": selection_id,
            "menu_item_id": self.menu_item_id,
            "custom_name": self.custom_name,
            "custom_price": float(self.custom_price) if self.custom_price is not None else None,
            "unit_value": float(self.unit_value),
            "quantity": self.quantity,
            "sort_order": self.sort_order,
        }


def line_key(row: dict) -> tuple:
    """Key of a stored line item, comparable with LinePlan.key."""
    if row.get("menu_item_id"):
        return ("menu", row["menu_item_id"])
    return ("name", item_name_key(row.get("custom_name")))


@dataclass
class VendorPlan:
    vendor_id: str
    lines: list[LinePlan] = field(default_factory=list)


def box_total(items: dict, quantity: int, fallback_price: Decimal) -> Decimal:
    """Sum of price x quantity over the item map, else box type price x box count."""
    total = sum(
        (to_decimal(entry.get("price")) * int(entry.get("quantity") or 0) for entry in (items or {}).values()),
        ZERO,
    )
    if total > 0:
        return total
    return fallback_price * quantity


@dataclass
class BoxPlan:
    vendor_id: str
    box_type_id: Optional[str]
    quantity: int
    items: dict
    fallback_price: Decimal = ZERO

    @property
    def key(self) -> tuple:
        return (self.vendor_id, self.box_type_id)

    def to_row(self, order_id: str) -> dict:
        return {
            "order_id": order_id,
            "vendor_id": self.vendor_id,
            "box_type_id": self.box_type_id,
            "quantity": self.quantity,
            "items": self.items,
            "total_value": float(box_total(self.items, self.quantity, self.fallback_price)),
        }


@dataclass
class PartitionPlan:
    """Everything needed to write one delivery-day partition."""
    service_type: ServiceType
    delivery_day: Optional[Weekday]
    dates: ScheduleDates
    vendor_id: Optional[str]
    vendors: list[VendorPlan] = field(default_factory=list)
    boxes: list[BoxPlan] = field(default_factory=list)
    fixed_value: Optional[Decimal] = None

    @property
    def label(self) -> Optional[str]:
        return self.delivery_day.value if self.delivery_day else None


def totals_from_children(children: dict) -> tuple[int, Decimal]:
    """Order totals from stored line items and box selections."""
    items = children.get("items") or []
    boxes = children.get("box_selections") or []

    total_items = sum(int(row.get("quantity") or 0) for row in items)
    total_items += sum(int(row.get("quantity") or 0) for row in boxes)

    total_value = sum(
        (to_decimal(row.get("unit_value")) * int(row.get("quantity") or 0) for row in items),
        ZERO,
    )
    total_value += sum((to_decimal(row.get("total_value")) for row in boxes), ZERO)

    return total_items, total_value


def named_lines(entries: list[Union[NamedItem, CatalogEntry]]) -> list[LinePlan]:
    """Line plans for name-keyed items; zero quantities and repeated names are dropped."""
    lines = []
    seen = set()
    for index, entry in enumerate(entries):
        if entry.quantity <= 0:
            continue
        name = clean_item_name(entry.name)
        if item_name_key(name) in seen:
            continue
        seen.add(item_name_key(name))

        price = to_decimal(entry.price)
        lines.append(LinePlan(
            quantity=entry.quantity,
            unit_value=price,
            custom_name=name,
            custom_price=price,
            sort_order=entry.sort_order if entry.sort_order is not None else index,
        ))
    return lines


def placeholder_row(
    client_id: str,
    service_type: ServiceType,
    order_number: int,
    updated_by: Optional[str] = None,
    case_id: Optional[str] = None,
) -> dict:
    """Empty scheduled order with no dates, so a new client has a row to edit."""
    return {
        "client_id": client_id,
        "service_type": service_type.value,
        "order_number": order_number,
        "case_id": case_id,
        "status": OrderStatus.SCHEDULED.value,
        "delivery_day": None,
        "take_effect_date": None,
        "scheduled_delivery_date": None,
        "total_items": 0,
        "total_value": 0,
        "user_modified": False,
        "updated_by": updated_by,
        "last_updated": utc_now_iso(),
    }


class ReconcileService:
    """
    Order reconciler.

    Collaborators are injectable; defaults are the shared services.
    """

    def __init__(
        self,
        repository: Optional[OrderRepository] = None,
        vendor_service: Optional[VendorService] = None,
        client_service: Optional[ClientService] = None,
        number_service: Optional[OrderNumberService] = None,
        date_service: Optional[DeliveryDateService] = None,
    ):
        self.repository = repository or get_order_repository()
        self.vendor_service = vendor_service or get_vendor_service()
        self.client_service = client_service or get_client_service()
        self.number_service = number_service or OrderNumberService(self.repository)
        self.date_service = date_service or get_delivery_date_service()

    # ===================
    # RECONCILE
    # ===================

    def reconcile(self, client_id: str, config: AnyOrderConfig) -> ReconcileResponse:
        """
        Make the client's scheduled orders match `config`.

        Raises:
            ClientNotFoundError: Unknown client
            ValidationError: Any invalid vendor, day, item or empty order
            DateComputationError: Dates mandatory for the kind but unresolvable
            PersistenceError / AllocationExhaustedError: Single-partition write failure
            ReconciliationFailedError: Some partitions of a multi-day order failed
        """
        service_type = ServiceType(config.service_type)
        logger.info("reconciling_order", client_id=client_id, service_type=service_type.value)

        client = self.client_service.get_client(client_id)
        now = self.date_service.now()
        existing_orders = self.repository.find_client_orders(client_id, status=OrderStatus.SCHEDULED.value)

        try:
            plans = self._plan(config, now)
        except EmptyOrderError:
            if service_type in (ServiceType.FOOD, ServiceType.CUSTOM) and self._is_brand_new(client_id, client, existing_orders):
                outcome = self._create_placeholder(client_id, service_type, config)
                return ReconcileResponse(
                    client_id=client_id,
                    service_type=service_type.value,
                    partitions=[outcome],
                )
            raise

        outcomes: list[PartitionOutcome] = []
        committed: list[Optional[str]] = []
        failed: list[dict] = []
        errors: list[AppError] = []
        matched_ids: set[str] = set()

        for plan in plans:
            existing = self._find_existing(existing_orders, plan, matched_ids)
            if existing is not None:
                matched_ids.add(existing["id"])

            try:
                outcome = self._apply_partition(client_id, config, plan, existing)
            except (PersistenceError, AllocationExhaustedError, UpcomingOrderNotFoundError) as e:
                logger.error(
                    "reconcile_partition_failed",
                    client_id=client_id,
                    delivery_day=plan.label,
                    code=e.code,
                    error=e.message
                )
                failed.append({
                    "delivery_day": plan.label,
                    "code": e.code,
                    "message": e.message,
                    "details": e.details,
                })
                errors.append(e)
                continue

            outcomes.append(outcome)
            committed.append(plan.label)
            logger.info(
                "reconcile_partition_committed",
                client_id=client_id,
                delivery_day=plan.label,
                action=outcome.action,
                order_number=outcome.order_number
            )

        if failed:
            if len(plans) == 1:
                raise errors[0]
            raise ReconciliationFailedError(client_id, committed, failed)

        deleted = self._delete_stale(existing_orders, matched_ids)

        if config.total_value is not None:
            recomputed = sum((outcome.total_value for outcome in outcomes), ZERO)
            if to_decimal(config.total_value) != recomputed:
                logger.warning(
                    "caller_total_mismatch",
                    client_id=client_id,
                    caller_total=str(config.total_value),
                    recomputed_total=str(recomputed)
                )

        self.client_service.save_snapshot(client_id, config.model_dump(mode="json"))

        logger.info(
            "order_reconciled",
            client_id=client_id,
            partitions=len(outcomes),
            deleted=len(deleted)
        )

        return ReconcileResponse(
            client_id=client_id,
            service_type=service_type.value,
            partitions=outcomes,
            deleted_order_ids=deleted,
        )

    def _is_brand_new(self, client_id: str, client: dict, existing_orders: list[dict]) -> bool:
        if existing_orders or client.get("upcoming_order"):
            return False
        return self.repository.count_client_orders(client_id) == 0

    def _create_placeholder(self, client_id: str, service_type: ServiceType, config: AnyOrderConfig) -> PartitionOutcome:
        number = self.number_service.allocate_one()
        order = self.repository.insert_order(
            placeholder_row(client_id, service_type, number, config.updated_by, config.case_id)
        )

        logger.info("placeholder_order_created", client_id=client_id, order_number=number)

        return PartitionOutcome(
            delivery_day=None,
            order_id=order["id"],
            order_number=number,
            action="placeholder",
        )

    @staticmethod
    def _find_existing(existing_orders: list[dict], plan: PartitionPlan, matched_ids: set[str]) -> Optional[dict]:
        """
        Scheduled order for (kind, weekday).

        A dateless placeholder of the same kind is reused when no order
        for the weekday exists yet.
        """
        same_kind = [
            order for order in existing_orders
            if order.get("service_type") == plan.service_type.value and order["id"] not in matched_ids
        ]
        for order in same_kind:
            if (order.get("delivery_day") or None) == plan.label:
                return order
        for order in same_kind:
            if not order.get("delivery_day"):
                return order
        return None

    def _delete_stale(self, existing_orders: list[dict], matched_ids: set[str]) -> list[str]:
        deleted = []
        for order in existing_orders:
            if order["id"] in matched_ids:
                continue
            self.repository.delete_subtree(order["id"])
            deleted.append(order["id"])
            logger.info(
                "stale_order_deleted",
                order_id=order["id"],
                order_number=order.get("order_number"),
                delivery_day=order.get("delivery_day")
            )
        return deleted

    # ===================
    # PLANNING (NO WRITES)
    # ===================

    def _plan(self, config: AnyOrderConfig, now: datetime) -> list[PartitionPlan]:
        if isinstance(config, FoodOrderConfig):
            return self._plan_food(config, now)
        if isinstance(config, BoxesOrderConfig):
            return self._plan_boxes(config, now)
        if isinstance(config, CustomOrderConfig):
            return self._plan_custom(config, now)
        return self._plan_produce(config, now)

    def _resolve_vendors(self, vendor_ids: list[str], weekday: Optional[Weekday]) -> list[Vendor]:
        """Vendors must exist, have delivery days, and deliver on weekday when one is given."""
        vendors = []
        for vendor_id in vendor_ids:
            vendor = self.vendor_service.get_vendor(vendor_id)

            if not vendor.delivery_days:
                raise VendorMissingDeliveryDaysError(vendor.id, vendor.name)

            if weekday is not None and not vendor.delivers_on(weekday):
                raise VendorDeliveryDayMismatchError(
                    vendor.id,
                    vendor.name,
                    weekday.value,
                    [day.value for day in vendor.delivery_days],
                )

            vendors.append(vendor)
        return vendors

    def food_groups(self, config: FoodOrderConfig) -> dict[Weekday, dict[str, dict[str, int]]]:
        """
        Weekday -> vendor id -> positive item quantities.

        delivery_day_orders keep the caller's days; days without any
        positive quantity are dropped. Flat vendor_selections go on every
        weekday each vendor delivers on.
        """
        groups: dict[Weekday, dict[str, dict[str, int]]] = {}

        if config.delivery_day_orders:
            for key, day_order in config.delivery_day_orders.items():
                weekday = normalize_delivery_day(key)
                for selection in day_order.vendor_selections:
                    if selection.positive_items:
                        groups.setdefault(weekday, {}).setdefault(selection.vendor_id, {}).update(selection.positive_items)
            return groups

        vendor_items: dict[str, dict[str, int]] = {}
        for selection in config.vendor_selections:
            if selection.positive_items:
                vendor_items.setdefault(selection.vendor_id, {}).update(selection.positive_items)

        for vendor in self._resolve_vendors(list(vendor_items), None):
            for weekday in vendor.delivery_days:
                groups.setdefault(weekday, {})[vendor.id] = vendor_items[vendor.id]

        return {weekday: groups[weekday] for weekday in sorted(groups, key=lambda day: day.index)}

    def _plan_food(self, config: FoodOrderConfig, now: datetime) -> list[PartitionPlan]:
        groups = self.food_groups(config)
        if not groups:
            raise EmptyOrderError(ServiceType.FOOD.value, None)

        menu_item_ids = [
            item_id
            for vendor_items in groups.values()
            for items in vendor_items.values()
            for item_id in items
        ]
        menu_items = self.vendor_service.get_menu_items(menu_item_ids)

        plans = []
        for weekday, vendor_items in groups.items():
            vendors = self._resolve_vendors(list(vendor_items), weekday)

            vendor_plans = []
            sort_order = 0
            for vendor in vendors:
                lines = []
                for item_id, quantity in vendor_items[vendor.id].items():
                    menu_item = menu_items.get(item_id)
                    if menu_item is None:
                        raise MenuItemNotFoundError(item_id, vendor.id)
                    lines.append(LinePlan(
                        quantity=quantity,
                        unit_value=menu_item.unit_value,
                        menu_item_id=item_id,
                        sort_order=sort_order,
                    ))
                    sort_order += 1
                vendor_plans.append(VendorPlan(vendor.id, lines))

            dates = self.date_service.compute_dates(ServiceType.FOOD, weekday, vendors, now)
            plans.append(PartitionPlan(
                service_type=ServiceType.FOOD,
                delivery_day=weekday,
                dates=dates,
                vendor_id=vendors[0].id,
                vendors=vendor_plans,
            ))

        return plans

    def _plan_boxes(self, config: BoxesOrderConfig, now: datetime) -> list[PartitionPlan]:
        boxes = [box for box in config.boxes if box.quantity > 0]
        if not boxes:
            raise EmptyOrderError(ServiceType.BOXES.value, config.delivery_day)

        weekday = normalize_delivery_day(config.delivery_day) if config.delivery_day else None
        vendor_ids = list(dict.fromkeys(box.vendor_id for box in boxes))
        vendors = self._resolve_vendors(vendor_ids, weekday)
        if weekday is None:
            weekday, _ = earliest_shared_delivery(vendors, now)

        box_types = self.vendor_service.get_box_types([box.box_type_id for box in boxes])

        box_plans: dict[tuple, BoxPlan] = {}
        for box in boxes:
            box_type = box_types.get(box.box_type_id) if box.box_type_id else None
            if box.box_type_id and box_type is None:
                logger.warning("box_type_not_found", box_type_id=box.box_type_id, vendor_id=box.vendor_id)

            items = {
                item_id: {"quantity": quantity, "price": float(box.item_prices.get(item_id, ZERO))}
                for item_id, quantity in box.items.items()
                if quantity > 0
            }
            plan = BoxPlan(
                vendor_id=box.vendor_id,
                box_type_id=box.box_type_id,
                quantity=box.quantity,
                items=items,
                fallback_price=box_type.price_each if box_type else ZERO,
            )
            box_plans[plan.key] = plan

        dates = self.date_service.compute_dates(ServiceType.BOXES, weekday, vendors, now)
        return [PartitionPlan(
            service_type=ServiceType.BOXES,
            delivery_day=weekday,
            dates=dates,
            vendor_id=vendors[0].id,
            boxes=list(box_plans.values()),
        )]

    def _plan_custom(self, config: CustomOrderConfig, now: datetime) -> list[PartitionPlan]:
        if not config.vendor_id or not (config.custom_name or "").strip() or config.quantity <= 0:
            raise EmptyOrderError(ServiceType.CUSTOM.value, config.delivery_day)

        weekday = normalize_delivery_day(config.delivery_day) if config.delivery_day else None
        vendors = self._resolve_vendors([config.vendor_id], weekday)
        if weekday is None:
            weekday, _ = earliest_shared_delivery(vendors, now)

        price = config.custom_price or ZERO
        line = LinePlan(
            quantity=config.quantity,
            unit_value=price,
            custom_name=clean_item_name(config.custom_name),
            custom_price=price,
            sort_order=0,
        )

        dates = self.date_service.compute_dates(ServiceType.CUSTOM, weekday, vendors, now)
        return [PartitionPlan(
            service_type=ServiceType.CUSTOM,
            delivery_day=weekday,
            dates=dates,
            vendor_id=config.vendor_id,
            vendors=[VendorPlan(config.vendor_id, [line])],
        )]

    def _plan_produce(self, config: ProduceOrderConfig, now: datetime) -> list[PartitionPlan]:
        if config.vendor_id:
            vendor_id = config.vendor_id
        else:
            default_vendor = self.vendor_service.get_default_vendor()
            if default_vendor is None:
                raise VendorNotFoundError("default")
            vendor_id = default_vendor.id

        vendors = self._resolve_vendors([vendor_id], None)
        weekday, _ = earliest_vendor_delivery(vendors[0], now)

        dates = self.date_service.compute_dates(ServiceType.PRODUCE, weekday, vendors, now)
        return [PartitionPlan(
            service_type=ServiceType.PRODUCE,
            delivery_day=weekday,
            dates=dates,
            vendor_id=vendor_id,
            fixed_value=config.bill_amount,
        )]

    # ===================
    # WRITES
    # ===================

    def _apply_partition(
        self,
        client_id: str,
        config: AnyOrderConfig,
        plan: PartitionPlan,
        existing: Optional[dict],
    ) -> PartitionOutcome:
        header = {
            "client_id": client_id,
            "service_type": plan.service_type.value,
            "case_id": config.case_id,
            "status": OrderStatus.SCHEDULED.value,
            "delivery_day": plan.label,
            "take_effect_date": _iso(plan.dates.take_effect_date),
            "scheduled_delivery_date": _iso(plan.dates.scheduled_delivery_date),
            "vendor_id": plan.vendor_id,
            "notes": config.notes,
            "updated_by": config.updated_by,
            "last_updated": utc_now_iso(),
        }

        created_id = None
        try:
            if existing is None:
                order_number = self.number_service.allocate_one()
                order = self.repository.insert_order({
                    **header,
                    "order_number": order_number,
                    "user_modified": False,
                    "total_items": 0,
                    "total_value": 0,
                })
                created_id = order["id"]
                self._insert_children(order["id"], plan)
                action = "created"
            else:
                order = self.repository.update_order(existing["id"], header)
                if existing.get("user_modified"):
                    self._merge_children(order["id"], plan)
                    action = "merged"
                else:
                    self.repository.delete_subtree(order["id"], include_header=False)
                    self._insert_children(order["id"], plan)
                    action = "replaced"

            total_items, total_value = self._refresh_totals(order["id"], plan.fixed_value)

        except DatabaseError as e:
            if created_id:
                self._discard_order(created_id)
            if isinstance(e, PersistenceError):
                raise
            raise self._persistence_error(e, plan) from e

        return PartitionOutcome(
            delivery_day=plan.label,
            order_id=order["id"],
            order_number=order.get("order_number"),
            action=action,
            total_items=total_items,
            total_value=total_value,
        )

    def _discard_order(self, order_id: str) -> None:
        """Remove a header created by a partition that failed to write its children."""
        try:
            self.repository.delete_subtree(order_id)
        except DatabaseError as e:
            logger.error("discard_partial_order_failed", order_id=order_id, error=e.reason)

    @staticmethod
    def _persistence_error(
        error: DatabaseError,
        plan: PartitionPlan,
        vendor_id: Optional[str] = None,
        item: Optional[str] = None,
    ) -> PersistenceError:
        return PersistenceError(
            operation=error.operation,
            message=error.reason,
            delivery_day=plan.label,
            vendor_id=vendor_id,
            item=item,
        )

    def _insert_children(self, order_id: str, plan: PartitionPlan) -> None:
        for vendor_plan in plan.vendors:
            try:
                selection = self.repository.insert_vendor_selection(order_id, vendor_plan.vendor_id)
                self.repository.insert_items([
                    line.to_row(order_id, selection["id"]) for line in vendor_plan.lines
                ])
            except DatabaseError as e:
                raise self._persistence_error(e, plan, vendor_id=vendor_plan.vendor_id) from e

        for box in plan.boxes:
            try:
                self.repository.insert_box_selections([box.to_row(order_id)])
            except DatabaseError as e:
                raise self._persistence_error(e, plan, vendor_id=box.vendor_id, item=box.box_type_id) from e

    def _merge_children(self, order_id: str, plan: PartitionPlan) -> None:
        """
        Additive merge for user-modified orders.

        Missing keys are added and removed keys deleted; rows present on
        both sides keep their stored quantities.
        """
        children = self.repository.get_children(order_id)

        selections = {row["vendor_id"]: row for row in children["vendor_selections"]}
        vendor_of_selection = {row["id"]: row["vendor_id"] for row in children["vendor_selections"]}
        existing_lines = {
            (vendor_of_selection.get(row.get("vendor_selection_id")), line_key(row)): row
            for row in children["items"]
        }

        desired_keys = set()
        for vendor_plan in plan.vendors:
            try:
                selection = selections.get(vendor_plan.vendor_id)
                if selection is None:
                    selection = self.repository.insert_vendor_selection(order_id, vendor_plan.vendor_id)
                    selections[vendor_plan.vendor_id] = selection

                new_rows = []
                for line in vendor_plan.lines:
                    key = (vendor_plan.vendor_id, line.key)
                    desired_keys.add(key)
                    if key not in existing_lines:
                        new_rows.append(line.to_row(order_id, selection["id"]))
                self.repository.insert_items(new_rows)

            except DatabaseError as e:
                raise self._persistence_error(e, plan, vendor_id=vendor_plan.vendor_id) from e

        desired_vendors = {vendor_plan.vendor_id for vendor_plan in plan.vendors}
        stale_items = [row["id"] for key, row in existing_lines.items() if key not in desired_keys]
        stale_selections = [row["id"] for vendor_id, row in selections.items() if vendor_id not in desired_vendors]
        self.repository.delete_rows("items", stale_items)
        self.repository.delete_rows("vendor_selections", stale_selections)

        existing_boxes = {(row["vendor_id"], row.get("box_type_id")): row for row in children["box_selections"]}
        for box in plan.boxes:
            current = existing_boxes.get(box.key)
            try:
                if current is None:
                    self.repository.insert_box_selections([box.to_row(order_id)])
                    continue

                stored = dict(current.get("items") or {})
                merged = {item_id: entry for item_id, entry in stored.items() if item_id in box.items}
                for item_id, entry in box.items.items():
                    merged.setdefault(item_id, entry)

                if merged != stored:
                    quantity = int(current.get("quantity") or 0)
                    self.repository.update_row("box_selections", current["id"], {
                        "items": merged,
                        "total_value": float(box_total(merged, quantity, box.fallback_price)),
                    })

            except DatabaseError as e:
                raise self._persistence_error(e, plan, vendor_id=box.vendor_id, item=box.box_type_id) from e

        desired_boxes = {box.key for box in plan.boxes}
        self.repository.delete_rows(
            "box_selections",
            [row["id"] for key, row in existing_boxes.items() if key not in desired_boxes],
        )

    def _refresh_totals(
        self,
        order_id: str,
        fixed_value: Optional[Decimal] = None,
        extra: Optional[dict] = None,
    ) -> tuple[int, Decimal]:
        """Recompute totals from stored rows (Produce: one bill line) and write them."""
        if fixed_value is not None:
            total_items, total_value = 1, to_decimal(fixed_value)
        else:
            total_items, total_value = totals_from_children(self.repository.get_children(order_id))

        self.repository.update_order(order_id, {
            "total_items": total_items,
            "total_value": float(total_value),
            **(extra or {}),
        })
        return total_items, total_value

    # ===================
    # NAMED ITEMS (CATALOG / CLIENT EDITS)
    # ===================

    def _named_item_selection(self, order: dict, children: dict) -> dict:
        """Vendor selection that named items attach to, created if missing."""
        if children["vendor_selections"]:
            return children["vendor_selections"][0]

        vendor_id = order.get("vendor_id")
        if not vendor_id:
            default_vendor = self.vendor_service.get_default_vendor()
            if default_vendor is None:
                raise VendorNotFoundError("default")
            vendor_id = default_vendor.id

        selection = self.repository.insert_vendor_selection(order["id"], vendor_id)
        children["vendor_selections"].append(selection)
        return selection

    def apply_named_items(
        self,
        order: dict,
        entries: list[Union[NamedItem, CatalogEntry]],
        updated_by: Optional[str] = None,
    ) -> str:
        """
        Sync an order's named items to a catalog item list.

        user_modified orders get an additive merge (only names the order
        lacks are added, names no longer listed are removed); other
        orders are fully replaced.

        Returns:
            "merged" or "replaced"
        """
        if order.get("status") != OrderStatus.SCHEDULED.value:
            raise OrderNotEditableError(order["id"], order.get("status"))

        lines = named_lines(entries)

        if order.get("user_modified"):
            children = self.repository.get_children(order["id"])
            existing = {
                item_name_key(row["custom_name"]): row
                for row in children["items"]
                if row.get("custom_name")
            }
            desired = {line.key[1] for line in lines}

            selection = self._named_item_selection(order, children)
            self.repository.insert_items([
                line.to_row(order["id"], selection["id"])
                for line in lines
                if line.key[1] not in existing
            ])
            self.repository.delete_rows(
                "items",
                [row["id"] for name, row in existing.items() if name not in desired],
            )
            action = "merged"
        else:
            self.repository.delete_subtree(order["id"], include_header=False)
            selection = self._named_item_selection(order, {"vendor_selections": []})
            self.repository.insert_items([line.to_row(order["id"], selection["id"]) for line in lines])
            action = "replaced"

        self._refresh_totals(order["id"], extra={
            "last_updated": utc_now_iso(),
            "updated_by": updated_by or order.get("updated_by"),
        })

        logger.info(
            "named_items_applied",
            order_id=order["id"],
            action=action,
            item_count=len(lines)
        )
        return action

    def save_client_edits(
        self,
        order_id: str,
        items: list[NamedItem],
        updated_by: Optional[str] = None,
    ) -> UpcomingOrderResponse:
        """
        Replace the named items of a scheduled order with the client's edit.

        Sets user_modified so later catalog changes only merge additively.

        Raises:
            UpcomingOrderNotFoundError: Unknown order
            OrderNotEditableError: Order is no longer scheduled
        """
        order = self.repository.get_order(order_id)

        if order.get("status") != OrderStatus.SCHEDULED.value:
            raise OrderNotEditableError(order_id, order.get("status"))
        if order.get("service_type") not in (ServiceType.FOOD.value, ServiceType.CUSTOM.value):
            raise ValidationError(
                f"{order.get('service_type')} orders do not have editable items",
                code="ORDER_KIND_NOT_EDITABLE",
                details={"order_id": order_id, "service_type": order.get("service_type")}
            )

        children = self.repository.get_children(order_id)
        self.repository.delete_rows(
            "items",
            [row["id"] for row in children["items"] if row.get("custom_name")],
        )

        selection = self._named_item_selection(order, children)
        self.repository.insert_items([
            line.to_row(order_id, selection["id"]) for line in named_lines(items)
        ])

        self._refresh_totals(order_id, extra={
            "user_modified": True,
            "updated_by": updated_by,
            "last_updated": utc_now_iso(),
        })

        logger.info("client_edits_saved", order_id=order_id, updated_by=updated_by)
        return self.get_upcoming(order_id)

    # ===================
    # BULK / READ
    # ===================

    def create_placeholders(
        self,
        client_ids: list[str],
        service_type: ServiceType,
        updated_by: Optional[str] = None,
    ) -> list[dict]:
        """Placeholder orders for newly imported clients, numbered as one contiguous block."""
        if not client_ids:
            return []

        numbers = self.number_service.allocate(len(client_ids))
        rows = [
            placeholder_row(client_id, service_type, number, updated_by)
            for client_id, number in zip(client_ids, numbers)
        ]
        created = self.repository.insert_orders(rows)

        logger.info(
            "placeholder_orders_created",
            count=len(created),
            first_number=numbers[0],
            last_number=numbers[-1]
        )
        return created

    def get_upcoming(self, order_id: str) -> UpcomingOrderResponse:
        order = self.repository.get_order(order_id)
        return self._to_response(order, self.repository.get_children(order_id))

    def list_upcoming(self, client_id: str) -> list[UpcomingOrderResponse]:
        """All future-partition orders of a client, with children."""
        self.client_service.get_client(client_id)

        return [
            self._to_response(order, self.repository.get_children(order["id"]))
            for order in self.repository.find_client_orders(client_id)
        ]

    @staticmethod
    def _to_response(order: dict, children: dict) -> UpcomingOrderResponse:
        items_by_selection: dict[Optional[str], list[LineItemResponse]] = {}
        for row in children["items"]:
            items_by_selection.setdefault(row.get("vendor_selection_id"), []).append(LineItemResponse(**row))

        selections = [
            VendorSelectionResponse(
                id=row["id"],
                order_id=row["order_id"],
                vendor_id=row["vendor_id"],
                items=items_by_selection.get(row["id"], []),
            )
            for row in children["vendor_selections"]
        ]

        return UpcomingOrderResponse(
            **{key: value for key, value in order.items() if key not in ("vendor_selections", "box_selections")},
            vendor_selections=selections,
            box_selections=[BoxSelectionResponse(**row) for row in children["box_selections"]],
        )


# Singleton instance
_reconcile_service: Optional[ReconcileService] = None


def get_reconcile_service() -> ReconcileService:
    """Get or create ReconcileService instance."""
    global _reconcile_service
    if _reconcile_service is None:
        _reconcile_service = ReconcileService()
    return _reconcile_service
