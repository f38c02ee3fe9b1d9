import logging
import math
from dataclasses import asdict

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from .domain_models import CalculationInputs, CalculationResult, FeeMode, validate_inputs
from .fee_tiers import DEFAULT_TIER_TABLE, MARKETPLACE_PRESETS
from .pricing_engine import evaluate
from .roas_ladder import build_roas_ladder, ladder_markers
from .services.sku_csv_loader import SkuCsvError, load_sku_catalog_from_csv
from .services.sku_lookup import apply_sku_cost
from .services.tier_csv_loader import TierCsvError, load_tier_table_from_csv
from .state import (
    get_all_marketplaces,
    get_sku_catalog,
    get_tier_table,
    set_sku_catalog,
    set_tier_table,
)

logger = logging.getLogger(__name__)

# Form defaults when a field is left out.
FIELD_DEFAULTS = {
    "cost_product": 0.0,
    "op_cost_absolute": 0.0,
    "op_cost_percent": 0.0,
    "fixed_cost_or_shipping": MARKETPLACE_PRESETS["MANUAL"].fixed_fee,
    "commission_percent": MARKETPLACE_PRESETS["MANUAL"].commission_percent,
    "tax_percent": 4.0,
    "ads_percent": 5.0,
    "discount_percent": 0.0,
}


def _error_response(*errors: str, status: int = 400) -> JsonResponse:
    return JsonResponse({"errors": list(errors)}, status=status)


def _require_float(value, field_name: str) -> float:
    if value is None or value == "":
        raise ValueError(f"{field_name} is required.")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number.") from exc


def _optional_float(value, field_name: str, default: float | None) -> float | None:
    if value is None or value == "":
        return default
    return _require_float(value, field_name)


def _inputs_from_request(data) -> CalculationInputs:
    mode = data.get("mode")
    if not mode:
        raise ValueError("mode is required.")

    values = {
        name: _optional_float(data.get(name), name, default)
        for name, default in FIELD_DEFAULTS.items()
    }
    return CalculationInputs(
        mode=mode,
        target_value=_require_float(data.get("target_value"), "target_value"),
        tax_emitted_percent=_optional_float(
            data.get("tax_emitted_percent"), "tax_emitted_percent", None
        ),
        fee_mode=data.get("fee_mode") or "MANUAL",
        **values,
    )


def _tier_table_for(data):
    marketplace = data.get("marketplace") or settings.MARGINS_DEFAULT_MARKETPLACE
    table = get_tier_table(marketplace)
    if table is None:
        raise ValueError(
            f"Unknown marketplace '{marketplace}'. Known: {', '.join(get_all_marketplaces())}"
        )
    return table


def _finite_or_none(value):
    return value if value is None or math.isfinite(value) else None


def serialize_result(result: CalculationResult) -> dict[str, object]:
    payload = asdict(result)
    # JSON has no infinity; an unbounded ideal ROAS is sent as null plus a flag.
    payload["ideal_roas_unbounded"] = math.isinf(result.ideal_roas)
    payload["ideal_roas"] = _finite_or_none(result.ideal_roas)
    payload["best_effort_price"] = _finite_or_none(result.best_effort_price)
    payload["is_valid"] = result.is_valid
    return payload


@require_http_methods(["GET", "POST"])
def calculate_view(request):
    data = request.POST if request.method == "POST" else request.GET

    try:
        inputs = _inputs_from_request(data)
        validate_inputs(inputs)
        table = _tier_table_for(data) if inputs.fee_mode == FeeMode.TIERED else DEFAULT_TIER_TABLE
    except ValueError as exc:
        return _error_response(str(exc))

    payload: dict[str, object] = {}

    sku = data.get("sku")
    if sku is not None:
        outcome = apply_sku_cost(inputs, sku, get_sku_catalog())
        inputs = outcome.inputs
        payload["sku"] = {
            "product_name": outcome.product_name,
            "cost_locked": outcome.cost_locked,
            "warning": outcome.warning,
        }

    payload["result"] = serialize_result(evaluate(inputs, table))
    return JsonResponse(payload)


@require_http_methods(["GET", "POST"])
def roas_ladder_view(request):
    data = request.POST if request.method == "POST" else request.GET

    try:
        inputs = _inputs_from_request(data)
        validate_inputs(inputs)
        table = _tier_table_for(data) if inputs.fee_mode == FeeMode.TIERED else DEFAULT_TIER_TABLE
        current_roas_7d = _optional_float(data.get("current_roas_7d"), "current_roas_7d", None)
    except ValueError as exc:
        return _error_response(str(exc))

    ladder = build_roas_ladder(
        inputs,
        table,
        max_roas=settings.MARGINS_ROAS_LADDER_MAX,
        current_roas_7d=current_roas_7d,
    )

    return JsonResponse(
        {
            "ladder": asdict(ladder),
            "markers": {
                "platform_only": asdict(ladder_markers(ladder.rows, platform_only=True)),
                "full_costs": asdict(ladder_markers(ladder.rows, platform_only=False)),
            },
        }
    )


@require_POST
def tier_upload_view(request):
    marketplace = (request.POST.get("marketplace") or "").strip()
    tier_file = request.FILES.get("tier_file")

    if not marketplace:
        return _error_response("Please name the marketplace.")
    if not tier_file:
        return _error_response("Please select a tier CSV file to upload.")
    if not tier_file.name.lower().endswith(".csv"):
        return _error_response("The uploaded file must be a .csv file.")

    try:
        table = load_tier_table_from_csv(tier_file)
    except TierCsvError as exc:
        return _error_response(str(exc))

    set_tier_table(marketplace, table)
    logger.info("Loaded %d fee tiers for %s", len(table), marketplace)
    return JsonResponse(
        {
            "marketplace": marketplace.upper(),
            "tiers": [asdict(tier) for tier in table],
            "marketplaces": get_all_marketplaces(),
        }
    )


@require_POST
def sku_upload_view(request):
    sku_file = request.FILES.get("sku_file")

    if not sku_file:
        return _error_response("Please select a SKU CSV file to upload.")
    if not sku_file.name.lower().endswith(".csv"):
        return _error_response("The uploaded file must be a .csv file.")

    try:
        catalog = load_sku_catalog_from_csv(sku_file)
    except SkuCsvError as exc:
        return _error_response(str(exc))

    set_sku_catalog(catalog)
    logger.info("Loaded %d SKUs", len(catalog))
    return JsonResponse({"products": len(catalog)})
