# apps/adsheets/api/v1/helpers/ggAd.py

import threading
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from pathlib import Path
from uuid import uuid4

from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException

from shared.constants import (
    GGADS_ALLOWED_CAMPAIGN_STATUSES,
    GGADS_ALLOWED_MATCH_TYPES,
    GGADS_MIN_BUDGET,
)
from shared.logger import get_logger
from shared.tenant import TenantConfigError
from shared.utils import LOCAL_SECRETS_DIR
from apps.adsheets.api.v1.helpers.config import get_google_ads_settings
from apps.adsheets.api.v1.helpers.errors import PlatformDispatchError

logger = get_logger("Google Ads")


# =====================
# CLIENT
# =====================


def _resolve_key_path(raw_path: str) -> Path | None:
    candidate = Path(raw_path)
    if candidate.is_file():
        return candidate
    if not candidate.is_absolute():
        for base in (Path("/etc/secrets"), LOCAL_SECRETS_DIR):
            alt = base / str(candidate)
            if alt.is_file():
                return alt
    return None


def get_client(settings: dict[str, str]) -> GoogleAdsClient:
    """
    Create a Google Ads client from tenant settings.
    """
    key_path = _resolve_key_path(settings["json_key_file_path"])
    if key_path is None:
        raise TenantConfigError(
            "Google Ads json_key_file_path not found. Tried: "
            + settings["json_key_file_path"]
        )

    config = {
        "developer_token": settings["developer_token"],
        "login_customer_id": settings["login_customer_id"],
        "json_key_file_path": str(key_path),
        "use_proto_plus": str(settings.get("use_proto_plus", "true")).lower()
        in {"1", "true", "yes", "on"},
    }
    return GoogleAdsClient.load_from_dict(config)


# =====================
# VALUE HELPERS
# =====================


def to_micros(amount: object) -> int:
    """Currency amount -> micros, quantized to cents. Empty or <= 0 -> minimum."""
    try:
        value = Decimal(str(amount).strip()) if amount not in (None, "") else None
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite() or value <= 0:
        value = Decimal(str(GGADS_MIN_BUDGET))

    quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int((quantized * Decimal("1000000")).to_integral_value(rounding=ROUND_HALF_UP))


def _iso_date(value: object) -> str | None:
    text = str(value or "").strip()
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%d.%m.%Y", "%d/%m/%Y", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _status(value: object, default: str = "ENABLED") -> str:
    text = str(value or "").strip().upper()
    return text if text in GGADS_ALLOWED_CAMPAIGN_STATUSES else default


def _set_campaign_dates(campaign, start_date: str | None, end_date: str | None) -> None:
    """
    API versions with start_date_time/end_date_time take those; older ones
    take start_date/end_date.
    """
    for prefix, value, time_part in (
        ("start", start_date, "00:00:00"),
        ("end", end_date, "23:59:59"),
    ):
        if not value:
            continue
        for field, formatted in (
            (f"{prefix}_date_time", f"{value} {time_part}"),
            (f"{prefix}_date", value),
        ):
            try:
                setattr(campaign, field, formatted)
                break
            except (AttributeError, KeyError, ValueError):
                continue


# =====================
# PLATFORM
# =====================


class GoogleAdsPlatform:
    """
    Ad-platform capability: one batched create call per resource kind.

    Each call returns the created resource names, skips the remote call for
    an empty batch and raises PlatformDispatchError when Google Ads rejects
    the request. Per-operation results are not correlated back to rows.
    """

    def __init__(self, *, client: GoogleAdsClient | None = None, customer_id: str | None = None) -> None:
        self._client = client
        self._customer_id = customer_id
        self._client_lock = threading.Lock()

    def prepare(self) -> tuple[GoogleAdsClient, str]:
        """
        Resolve the client and customer id once for this platform.
        Call before fanning batches out to worker threads.
        """
        with self._client_lock:
            if self._client is None or self._customer_id is None:
                settings = get_google_ads_settings()
                if self._client is None:
                    self._client = get_client(settings)
                if self._customer_id is None:
                    self._customer_id = settings["customer_id"]
            return self._client, self._customer_id

    def _mutate(self, resource: str, service_name: str, request_type: str, method: str, operations: list):
        client, customer_id = self.prepare()
        service = client.get_service(service_name)
        request = client.get_type(request_type)
        request.customer_id = customer_id
        request.operations.extend(operations)

        try:
            response = getattr(service, method)(request=request)
        except GoogleAdsException as ex:
            messages = [error.message for error in ex.failure.errors]
            logger.error(
                "Google Ads batch failed",
                extra={
                    "extra_fields": {
                        "resource": resource,
                        "customer_id": customer_id,
                        "operations": len(operations),
                        "request_id": ex.request_id,
                        "errors": messages,
                    }
                },
            )
            raise PlatformDispatchError(resource, "; ".join(messages) or str(ex)) from ex

        names = [result.resource_name for result in response.results]
        logger.info(
            "Google Ads batch created",
            extra={
                "extra_fields": {
                    "resource": resource,
                    "customer_id": customer_id,
                    "created": len(names),
                }
            },
        )
        return names

    # -------------------------------------------------
    # Campaigns
    # -------------------------------------------------

    def create_campaigns(self, ops: list[dict]) -> list[str]:
        if not ops:
            return []
        client, customer_id = self.prepare()

        budget_ops = []
        for op in ops:
            budget_op = client.get_type("CampaignBudgetOperation")
            budget = budget_op.create
            budget.name = f"{op.get('name') or 'Campaign'} budget {uuid4().hex[:8]}"
            budget.amount_micros = to_micros(op.get("budget"))
            budget.delivery_method = client.enums.BudgetDeliveryMethodEnum.STANDARD
            budget.explicitly_shared = False
            budget_ops.append(budget_op)

        budget_names = self._mutate(
            "campaignBudget",
            "CampaignBudgetService",
            "MutateCampaignBudgetsRequest",
            "mutate_campaign_budgets",
            budget_ops,
        )

        campaign_ops = []
        for op, budget_name in zip(ops, budget_names):
            campaign_op = client.get_type("CampaignOperation")
            campaign = campaign_op.create
            campaign.name = op.get("name") or f"Campaign {op.get('id')}"
            campaign.campaign_budget = budget_name
            campaign.advertising_channel_type = (
                client.enums.AdvertisingChannelTypeEnum.SEARCH
            )
            campaign.status = getattr(
                client.enums.CampaignStatusEnum, _status(op.get("status"))
            )
            campaign.manual_cpc.enhanced_cpc_enabled = False
            campaign.network_settings.target_google_search = True
            campaign.network_settings.target_search_network = True
            _set_campaign_dates(
                campaign,
                _iso_date(op.get("startDate")),
                _iso_date(op.get("endDate")),
            )
            campaign_ops.append(campaign_op)

        return self._mutate(
            "campaign",
            "CampaignService",
            "MutateCampaignsRequest",
            "mutate_campaigns",
            campaign_ops,
        )

    # -------------------------------------------------
    # Ad groups
    # -------------------------------------------------

    def create_ad_groups(self, ops: list[dict]) -> list[str]:
        if not ops:
            return []
        client, customer_id = self.prepare()
        campaign_service = client.get_service("CampaignService")

        operations = []
        for op in ops:
            ad_group_op = client.get_type("AdGroupOperation")
            ad_group = ad_group_op.create
            ad_group.name = op.get("name") or f"Ad group {op.get('id')}"
            ad_group.campaign = campaign_service.campaign_path(customer_id, op["parentId"])
            ad_group.status = getattr(
                client.enums.AdGroupStatusEnum, _status(op.get("status"))
            )
            ad_group.type_ = client.enums.AdGroupTypeEnum.SEARCH_STANDARD
            operations.append(ad_group_op)

        return self._mutate(
            "adGroup",
            "AdGroupService",
            "MutateAdGroupsRequest",
            "mutate_ad_groups",
            operations,
        )

    # -------------------------------------------------
    # Ads
    # -------------------------------------------------

    def create_ads(self, ops: list[dict]) -> list[str]:
        if not ops:
            return []
        client, customer_id = self.prepare()
        ad_group_service = client.get_service("AdGroupService")

        operations = []
        for op in ops:
            ad_group_ad_op = client.get_type("AdGroupAdOperation")
            ad_group_ad = ad_group_ad_op.create
            ad_group_ad.ad_group = ad_group_service.ad_group_path(customer_id, op["parentId"])
            ad_group_ad.status = client.enums.AdGroupAdStatusEnum.ENABLED

            ad = ad_group_ad.ad
            if op.get("finalUrl"):
                ad.final_urls.append(op["finalUrl"])
            for text in (op.get("headline1"), op.get("headline2")):
                if text:
                    asset = client.get_type("AdTextAsset")
                    asset.text = text
                    ad.responsive_search_ad.headlines.append(asset)
            if op.get("description"):
                asset = client.get_type("AdTextAsset")
                asset.text = op["description"]
                ad.responsive_search_ad.descriptions.append(asset)
            operations.append(ad_group_ad_op)

        return self._mutate(
            "ad",
            "AdGroupAdService",
            "MutateAdGroupAdsRequest",
            "mutate_ad_group_ads",
            operations,
        )

    # -------------------------------------------------
    # Keyword criteria
    # -------------------------------------------------

    def create_criteria(self, ops: list[dict]) -> list[str]:
        if not ops:
            return []
        client, customer_id = self.prepare()
        ad_group_service = client.get_service("AdGroupService")

        operations = []
        for op in ops:
            criterion_op = client.get_type("AdGroupCriterionOperation")
            criterion = criterion_op.create
            criterion.ad_group = ad_group_service.ad_group_path(customer_id, op["parentId"])
            criterion.status = client.enums.AdGroupCriterionStatusEnum.ENABLED
            criterion.keyword.text = op.get("keywordText") or ""
            match_type = str(op.get("matchType") or "").strip().upper()
            if match_type not in GGADS_ALLOWED_MATCH_TYPES:
                match_type = "BROAD"
            criterion.keyword.match_type = getattr(
                client.enums.KeywordMatchTypeEnum, match_type
            )
            operations.append(criterion_op)

        return self._mutate(
            "keyword",
            "AdGroupCriterionService",
            "MutateAdGroupCriteriaRequest",
            "mutate_ad_group_criteria",
            operations,
        )
