"""
Settings service.

Key-value settings stored in the database. The scheduling engine reads
the weekly cutoff pair (missing rows fall back to the defaults in
config.settings) and the default Food order template, stored as JSON
text.
"""

from typing import Optional
from datetime import datetime
import json
import structlog
from pydantic import ValidationError as SchemaValidationError

from config import get_supabase_client, settings as app_settings
from models.order_config import FoodOrderConfig, Weekday, parse_order_config
from models.settings import (
    SettingKey,
    SettingUpdate,
    SettingResponse,
    WeeklyCutoff,
)
from exceptions import (
    DatabaseError,
    ValidationError,
    SettingNotFoundError,
)

logger = structlog.get_logger(__name__)


def parse_order_template(value: str) -> FoodOrderConfig:
    """
    Read the default order template from its JSON text.

    Raises:
        ValidationError: If the text is not a Food order configuration
    """
    try:
        config = parse_order_config(json.loads(value))
    except (ValueError, TypeError, SchemaValidationError) as e:
        raise ValidationError(
            f"Invalid default order template: {e}",
            code="INVALID_SETTING",
            details={"key": SettingKey.DEFAULT_ORDER_TEMPLATE}
        )

    if not isinstance(config, FoodOrderConfig):
        raise ValidationError(
            "Default order template must be a Food order",
            code="INVALID_SETTING",
            details={"key": SettingKey.DEFAULT_ORDER_TEMPLATE, "service_type": config.service_type}
        )
    return config


class SettingsService:
    """
    Settings business logic.

    Handles reads and upserts of key-value settings.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "settings"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(self) -> list[SettingResponse]:
        """
        Get all settings ordered by key.

        Returns:
            List of settings
        """
        logger.info("getting_settings")

        try:
            response = (
                self.db.table(self.table)
                .select("*")
                .order("key")
                .execute()
            )

            settings = [SettingResponse(**row) for row in response.data]

            logger.info("settings_retrieved", count=len(settings))
            return settings

        except Exception as e:
            logger.error("settings_get_all_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_key(self, key: str) -> SettingResponse:
        """
        Get setting by key.

        Raises:
            SettingNotFoundError: If setting doesn't exist
        """
        logger.debug("getting_setting", key=key)

        try:
            response = (
                self.db.table(self.table)
                .select("*")
                .eq("key", key)
                .execute()
            )

            if not response.data:
                raise SettingNotFoundError(key)

            return SettingResponse(**response.data[0])

        except SettingNotFoundError:
            raise
        except Exception as e:
            logger.error("setting_get_failed", key=key, error=str(e))
            raise DatabaseError("select", str(e))

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Setting value, or default when the row is missing or blank."""
        try:
            value = self.get_by_key(key).value
        except SettingNotFoundError:
            return default
        return value if value and value.strip() else default

    def get_by_keys(self, keys: list[str]) -> dict[str, str]:
        """
        Get multiple settings by keys.

        Returns:
            Dictionary of key -> value
        """
        logger.debug("getting_settings_bulk", keys=keys)

        try:
            response = (
                self.db.table(self.table)
                .select("key, value")
                .in_("key", keys)
                .execute()
            )

            return {row["key"]: row["value"] for row in response.data}

        except Exception as e:
            logger.error("settings_bulk_get_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_weekly_cutoff(self) -> WeeklyCutoff:
        """
        Weekly cutoff day and time.

        Values are returned unparsed; the date calculator rejects
        anything it cannot interpret.
        """
        values = self.get_by_keys([SettingKey.WEEKLY_CUTOFF_DAY, SettingKey.WEEKLY_CUTOFF_TIME])

        day = values.get(SettingKey.WEEKLY_CUTOFF_DAY) or app_settings.default_weekly_cutoff_day
        cutoff_time = values.get(SettingKey.WEEKLY_CUTOFF_TIME) or app_settings.default_weekly_cutoff_time

        return WeeklyCutoff(cutoff_day=day, cutoff_time=cutoff_time)

    def get_default_order_template(self) -> Optional[FoodOrderConfig]:
        """Food order used for clients without a configuration of their own; None if unset."""
        value = self.get_value(SettingKey.DEFAULT_ORDER_TEMPLATE)
        if value is None:
            return None
        return parse_order_template(value)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def _validate(self, key: str, value: str) -> None:
        """Reject cutoff values the date rules cannot read, and unreadable templates."""
        if key == SettingKey.DEFAULT_ORDER_TEMPLATE:
            parse_order_template(value)
        if key == SettingKey.WEEKLY_CUTOFF_DAY and Weekday.from_name(value) is None:
            raise ValidationError(
                f"Invalid weekly cutoff day: {value}",
                code="INVALID_SETTING",
                details={"key": key, "value": value}
            )
        if key == SettingKey.WEEKLY_CUTOFF_TIME:
            try:
                datetime.strptime(value.strip()[:5], "%H:%M")
            except ValueError:
                raise ValidationError(
                    f"Invalid weekly cutoff time: {value}",
                    code="INVALID_SETTING",
                    details={"key": key, "value": value}
                )

    def upsert(self, key: str, data: SettingUpdate) -> SettingResponse:
        """
        Create or update a setting value.

        Args:
            key: Setting key
            data: New value (and optional description)

        Returns:
            Stored setting
        """
        logger.info("upserting_setting", key=key)
        self._validate(key, data.value)

        try:
            existing = (
                self.db.table(self.table)
                .select("id")
                .eq("key", key)
                .execute()
            )

            payload = {"value": data.value}
            if data.description is not None:
                payload["description"] = data.description

            if existing.data:
                response = (
                    self.db.table(self.table)
                    .update(payload)
                    .eq("key", key)
                    .execute()
                )
            else:
                response = (
                    self.db.table(self.table)
                    .insert({"key": key, **payload})
                    .execute()
                )

            if not response.data:
                raise SettingNotFoundError(key)

            logger.info("setting_saved", key=key, created=not existing.data)
            return SettingResponse(**response.data[0])

        except SettingNotFoundError:
            raise
        except Exception as e:
            logger.error("setting_upsert_failed", key=key, error=str(e))
            raise DatabaseError("upsert", str(e))


# Singleton instance
_settings_service: Optional[SettingsService] = None


def get_settings_service() -> SettingsService:
    """Get or create SettingsService instance."""
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService()
    return _settings_service
