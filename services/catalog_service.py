"""
Catalog service.

Admins keep a default catalog per calendar date (client_id null);
clients may keep their own rows for the same date. The effective
catalog for a client is the default merged with the client's rows by
item name, the client row winning entirely on a name collision.
"""

from typing import Optional
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import structlog

from config import get_supabase_client, settings
from models.order_config import FoodOrderConfig, ServiceType, Weekday, parse_order_config
from models.upcoming_order import NamedItem, OrderStatus
from models.vendor import MenuItem
from models.catalog import (
    CatalogEntry,
    PropagationError,
    PropagationResponse,
    ExpiredOrdersResponse,
)
from exceptions import DatabaseError
from services.order_repository import OrderRepository, Partition, get_order_repository
from services.reconcile_service import (
    ReconcileService,
    LinePlan,
    get_reconcile_service,
    named_lines,
    ZERO,
)
from services.client_service import ClientService, get_client_service
from services.settings_service import SettingsService, get_settings_service
from services.vendor_service import VendorService, get_vendor_service
from services.delivery_date_service import DeliveryDateService, get_delivery_date_service
from utils.text_utils import clean_item_name, item_name_key
from utils.time_utils import utc_now_iso

logger = structlog.get_logger(__name__)


def _to_entry(row: dict) -> CatalogEntry:
    return CatalogEntry(
        name=clean_item_name(row.get("name")),
        quantity=int(row.get("quantity") or 0),
        price=Decimal(str(row.get("price") or 0)),
        sort_order=int(row.get("sort_order") or 0),
        client_id=row.get("client_id"),
    )


def merge_catalog(default_rows: list[dict], client_rows: list[dict]) -> list[CatalogEntry]:
    """
    Merge default and client rows by normalized name.

    Within one scope the first row of a name (by sort order) counts.
    The client row replaces the default row entirely.

    Returns:
        Entries sorted by sort order, then name
    """
    merged: dict[str, CatalogEntry] = {}

    for rows in (default_rows, client_rows):
        scope: dict[str, CatalogEntry] = {}
        for row in sorted(rows, key=lambda r: int(r.get("sort_order") or 0)):
            entry = _to_entry(row)
            scope.setdefault(item_name_key(entry.name), entry)
        merged.update(scope)

    return sorted(merged.values(), key=lambda e: (e.sort_order, e.name.casefold()))


def food_config_for(client: dict, template: Optional[FoodOrderConfig]) -> Optional[FoodOrderConfig]:
    """The client's own Food configuration when it selects anything, else the template."""
    snapshot = client.get("upcoming_order") or {}
    if snapshot.get("vendor_selections") or snapshot.get("delivery_day_orders"):
        return parse_order_config({**snapshot, "service_type": ServiceType.FOOD.value})
    return template


@dataclass
class ExpiredOrderDraft:
    """One realized order to create for a client and catalog date."""
    client_id: str
    delivery_date: date
    case_id: Optional[str]
    vendor_items: dict[str, dict[str, int]]
    entries: list[CatalogEntry]
    vendor_lines: list[tuple[str, list[LinePlan]]] = field(default_factory=list)

    def build_lines(self, menu_items: dict[str, MenuItem]) -> None:
        """Menu lines per vendor (unknown menu items are left out); catalog lines go with the first vendor."""
        sort_order = 0
        for vendor_id, items in self.vendor_items.items():
            lines = []
            for item_id, quantity in items.items():
                menu_item = menu_items.get(item_id)
                if menu_item is None:
                    logger.warning("expired_order_menu_item_missing", client_id=self.client_id, menu_item_id=item_id)
                    continue
                lines.append(LinePlan(
                    quantity=quantity,
                    unit_value=menu_item.unit_value,
                    menu_item_id=item_id,
                    sort_order=sort_order,
                ))
                sort_order += 1
            self.vendor_lines.append((vendor_id, lines))

        catalog_lines = named_lines(self.entries)
        for offset, line in enumerate(catalog_lines):
            line.sort_order = sort_order + offset
        if self.vendor_lines:
            self.vendor_lines[0][1].extend(catalog_lines)

    @property
    def lines(self) -> list[LinePlan]:
        return [line for _, lines in self.vendor_lines for line in lines]

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_value(self) -> Decimal:
        return sum((line.unit_value * line.quantity for line in self.lines), ZERO)


class CatalogService:
    """
    Catalog reads, writes and propagation to scheduled orders.
    """

    def __init__(
        self,
        repository: Optional[OrderRepository] = None,
        reconciler: Optional[ReconcileService] = None,
        client_service: Optional[ClientService] = None,
        settings_service: Optional[SettingsService] = None,
        vendor_service: Optional[VendorService] = None,
        date_service: Optional[DeliveryDateService] = None,
    ):
        self.db = get_supabase_client()
        self.table = "catalog_items"
        self.repository = repository or get_order_repository()
        self.reconciler = reconciler or get_reconcile_service()
        self.client_service = client_service or get_client_service()
        self.settings_service = settings_service or get_settings_service()
        self.vendor_service = vendor_service or get_vendor_service()
        self.date_service = date_service or get_delivery_date_service()

    # ===================
    # READ OPERATIONS
    # ===================

    def _default_rows(self, calendar_date: date) -> list[dict]:
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("calendar_date", calendar_date.isoformat())
                .is_("client_id", "null")
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("catalog_default_read_failed", calendar_date=str(calendar_date), error=str(e))
            raise DatabaseError("select", str(e))

    def _client_rows(self, calendar_date: date, client_ids: list[str]) -> list[dict]:
        if not client_ids:
            return []

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("calendar_date", calendar_date.isoformat())
                .in_("client_id", client_ids)
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("catalog_client_read_failed", calendar_date=str(calendar_date), error=str(e))
            raise DatabaseError("select", str(e))

    def effective(self, calendar_date: date, client_id: Optional[str] = None) -> list[CatalogEntry]:
        """
        Effective catalog for one client.

        Without a client id this is the default catalog.
        """
        default_rows = self._default_rows(calendar_date)
        client_rows = self._client_rows(calendar_date, [client_id]) if client_id else []

        entries = merge_catalog(default_rows, client_rows)
        logger.debug(
            "effective_catalog_built",
            calendar_date=str(calendar_date),
            client_id=client_id,
            count=len(entries)
        )
        return entries

    def effective_batch(self, calendar_date: date, client_ids: list[str]) -> dict[str, list[CatalogEntry]]:
        """
        Effective catalogs for many clients.

        Two reads in total, whatever the number of clients.
        """
        default_rows = self._default_rows(calendar_date)
        client_rows = self._client_rows(calendar_date, list(client_ids))

        rows_by_client: dict[str, list[dict]] = {}
        for row in client_rows:
            rows_by_client.setdefault(row["client_id"], []).append(row)

        return {
            client_id: merge_catalog(default_rows, rows_by_client.get(client_id, []))
            for client_id in client_ids
        }

    def list_dates(self, start: date, end: date) -> list[date]:
        """Dates in [start, end] that have default catalog rows."""
        try:
            result = (
                self.db.table(self.table)
                .select("calendar_date")
                .is_("client_id", "null")
                .gte("calendar_date", start.isoformat())
                .lte("calendar_date", end.isoformat())
                .order("calendar_date")
                .execute()
            )

            return sorted({date.fromisoformat(str(row["calendar_date"])[:10]) for row in result.data})

        except Exception as e:
            logger.error("catalog_dates_failed", start=str(start), end=str(end), error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def save_entries(
        self,
        calendar_date: date,
        client_id: Optional[str],
        entries: list[NamedItem],
        expiration_date: Optional[date] = None,
    ) -> list[CatalogEntry]:
        """
        Replace one scope's rows for one date.

        Names are normalized; a repeated name keeps its first row.
        expiration_date is stored on default rows only.
        """
        logger.info(
            "saving_catalog_entries",
            calendar_date=str(calendar_date),
            client_id=client_id,
            count=len(entries)
        )

        rows = []
        seen = set()
        for index, entry in enumerate(entries):
            name = clean_item_name(entry.name)
            if item_name_key(name) in seen:
                continue
            seen.add(item_name_key(name))
            rows.append({
                "calendar_date": calendar_date.isoformat(),
                "client_id": client_id,
                "name": name,
                "quantity": entry.quantity,
                "price": float(entry.price),
                "sort_order": entry.sort_order if entry.sort_order is not None else index,
                "expiration_date": expiration_date.isoformat() if expiration_date and not client_id else None,
            })

        try:
            query = (
                self.db.table(self.table)
                .delete()
                .eq("calendar_date", calendar_date.isoformat())
            )
            if client_id:
                query = query.eq("client_id", client_id)
            else:
                query = query.is_("client_id", "null")
            query.execute()

            if rows:
                self.db.table(self.table).insert(rows).execute()

        except Exception as e:
            logger.error("save_catalog_entries_failed", calendar_date=str(calendar_date), error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("catalog_entries_saved", calendar_date=str(calendar_date), count=len(rows))
        return merge_catalog([] if client_id else rows, rows if client_id else [])

    # ===================
    # PROPAGATION
    # ===================

    def propagate(self, calendar_date: date, updated_by: Optional[str] = None) -> PropagationResponse:
        """
        Push the effective catalog of a date to scheduled Food orders.

        Clients run in parallel; one client's orders run in sequence.
        User-modified orders only receive additive changes. Failures
        are reported per client and never stop the batch.
        """
        orders = self.repository.find_scheduled_for_delivery_date(calendar_date, ServiceType.FOOD.value)

        orders_by_client: dict[str, list[dict]] = {}
        for order in orders:
            orders_by_client.setdefault(order["client_id"], []).append(order)

        response = PropagationResponse(calendar_date=calendar_date)
        if not orders_by_client:
            logger.info("catalog_propagation_nothing_to_do", calendar_date=str(calendar_date))
            return response

        catalogs = self.effective_batch(calendar_date, list(orders_by_client))

        logger.info(
            "catalog_propagation_started",
            calendar_date=str(calendar_date),
            clients=len(orders_by_client),
            orders=len(orders)
        )

        with ThreadPoolExecutor(max_workers=settings.propagation_max_workers) as executor:
            futures = {
                executor.submit(
                    self._propagate_client,
                    client_id,
                    client_orders,
                    catalogs.get(client_id, []),
                    updated_by,
                ): client_id
                for client_id, client_orders in orders_by_client.items()
            }

            for future in as_completed(futures):
                updated, skipped, errors = future.result()
                response.updated += updated
                response.skipped += skipped
                response.errors.extend(errors)

        logger.info(
            "catalog_propagation_finished",
            calendar_date=str(calendar_date),
            updated=response.updated,
            skipped=response.skipped,
            errors=len(response.errors)
        )
        return response

    def _propagate_client(
        self,
        client_id: str,
        orders: list[dict],
        entries: list[CatalogEntry],
        updated_by: Optional[str],
    ) -> tuple[int, int, list[PropagationError]]:
        updated = 0
        skipped = 0
        errors = []

        for order in orders:
            if not entries:
                skipped += 1
                continue
            try:
                self.reconciler.apply_named_items(order, entries, updated_by=updated_by)
                updated += 1
            except Exception as e:
                logger.error(
                    "catalog_propagation_failed",
                    client_id=client_id,
                    order_id=order["id"],
                    error=str(e)
                )
                errors.append(PropagationError(client_id=client_id, order_id=order["id"], error=str(e)))

        return updated, skipped, errors

    # ===================
    # EXPIRED CATALOG DATES
    # ===================

    def expired_dates(self, expiration_date: date) -> list[date]:
        """Calendar dates whose default rows expire on expiration_date."""
        try:
            result = (
                self.db.table(self.table)
                .select("calendar_date")
                .is_("client_id", "null")
                .eq("expiration_date", expiration_date.isoformat())
                .execute()
            )

            return sorted({date.fromisoformat(str(row["calendar_date"])[:10]) for row in result.data})

        except Exception as e:
            logger.error("catalog_expired_dates_failed", expiration_date=str(expiration_date), error=str(e))
            raise DatabaseError("select", str(e))

    def create_expired_orders(self, expiration_date: Optional[date] = None) -> ExpiredOrdersResponse:
        """
        Create realized Food orders for the catalog dates expiring on a day.

        Every active Food client gets one order per expired date that its
        Food configuration delivers on. The configuration is the client's
        own, or the default order template when the client selected
        nothing. The order holds the configured menu items plus the
        client's effective catalog for the date. Dates that already have
        a realized Food order for the client are skipped.

        Order numbers come from one batch allocation. Orders are written
        one by one; a failed order is removed again and reported.

        Args:
            expiration_date: Defaults to today in the application time zone
        """
        expiration_date = expiration_date or self.date_service.today()
        response = ExpiredOrdersResponse(expiration_date=expiration_date)

        response.expired_dates = self.expired_dates(expiration_date)
        if not response.expired_dates:
            logger.info("no_expired_catalog_dates", expiration_date=str(expiration_date))
            return response

        clients = self.client_service.list_active_clients(ServiceType.FOOD.value)
        response.clients_processed = len(clients)
        if not clients:
            return response

        client_ids = [client["id"] for client in clients]
        template = self.settings_service.get_default_order_template()
        realized = {
            (row["client_id"], str(row["scheduled_delivery_date"])[:10])
            for row in self.repository.find_for_delivery_dates(
                response.expired_dates, client_ids, ServiceType.FOOD.value
            )
        }
        catalogs = {day: self.effective_batch(day, client_ids) for day in response.expired_dates}

        drafts: list[ExpiredOrderDraft] = []
        for client in clients:
            try:
                drafts.extend(self._drafts_for_client(client, template, response, realized, catalogs))
            except Exception as e:
                logger.error("expired_orders_client_failed", client_id=client["id"], error=str(e))
                response.errors.append(PropagationError(client_id=client["id"], error=str(e)))

        menu_items = self.vendor_service.get_menu_items([
            item_id for draft in drafts for items in draft.vendor_items.values() for item_id in items
        ])
        ready = []
        for draft in drafts:
            draft.build_lines(menu_items)
            if draft.lines:
                ready.append(draft)
            else:
                response.skipped.append(f"{draft.client_id}: nothing to order for {draft.delivery_date}")

        if not ready:
            return response

        numbers = self.reconciler.number_service.allocate(len(ready))
        for draft, number in zip(ready, numbers):
            try:
                self._write_expired_order(draft, number)
            except Exception as e:
                logger.error(
                    "expired_order_failed",
                    client_id=draft.client_id,
                    delivery_date=str(draft.delivery_date),
                    order_number=number,
                    error=str(e)
                )
                response.errors.append(PropagationError(client_id=draft.client_id, error=str(e)))
                continue

            response.orders_created += 1
            response.order_numbers.append(number)

        logger.info(
            "expired_orders_created",
            expiration_date=str(expiration_date),
            dates=len(response.expired_dates),
            clients=response.clients_processed,
            created=response.orders_created,
            skipped=len(response.skipped),
            errors=len(response.errors)
        )
        return response

    def _drafts_for_client(
        self,
        client: dict,
        template: Optional[FoodOrderConfig],
        response: ExpiredOrdersResponse,
        realized: set[tuple[str, str]],
        catalogs: dict[date, dict[str, list[CatalogEntry]]],
    ) -> list[ExpiredOrderDraft]:
        config = food_config_for(client, template)
        if config is None:
            response.skipped.append(f"{client['id']}: no Food configuration and no default template")
            return []

        groups = self.reconciler.food_groups(config)
        drafts = []
        for day in response.expired_dates:
            vendor_items = groups.get(Weekday.of(day))
            if not vendor_items:
                response.skipped.append(f"{client['id']}: no delivery on {day}")
                continue
            if (client["id"], day.isoformat()) in realized:
                response.skipped.append(f"{client['id']}: order already exists for {day}")
                continue

            drafts.append(ExpiredOrderDraft(
                client_id=client["id"],
                delivery_date=day,
                case_id=config.case_id,
                vendor_items=vendor_items,
                entries=catalogs[day].get(client["id"], []),
            ))
        return drafts

    def _write_expired_order(self, draft: ExpiredOrderDraft, order_number: int) -> dict:
        """Insert one realized order with its vendor selections and lines."""
        order = self.repository.insert_order({
            "client_id": draft.client_id,
            "service_type": ServiceType.FOOD.value,
            "case_id": draft.case_id,
            "status": OrderStatus.PENDING.value,
            "order_number": order_number,
            "delivery_day": Weekday.of(draft.delivery_date).value,
            "scheduled_delivery_date": draft.delivery_date.isoformat(),
            "vendor_id": draft.vendor_lines[0][0],
            "notes": "Created from expired catalog",
            "user_modified": False,
            "total_items": draft.total_items,
            "total_value": float(draft.total_value),
            "updated_by": "system",
            "last_updated": utc_now_iso(),
        }, Partition.REALIZED)

        try:
            for vendor_id, lines in draft.vendor_lines:
                selection = self.repository.insert_vendor_selection(order["id"], vendor_id, Partition.REALIZED)
                self.repository.insert_items(
                    [line.to_row(order["id"], selection["id"]) for line in lines],
                    Partition.REALIZED,
                )
        except Exception:
            self.repository.delete_subtree(order["id"], Partition.REALIZED)
            raise

        logger.info(
            "expired_order_created",
            client_id=draft.client_id,
            order_id=order["id"],
            order_number=order_number,
            delivery_date=str(draft.delivery_date)
        )
        return order


# Singleton instance
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
