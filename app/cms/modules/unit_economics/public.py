from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, jsonify, request

from app.cms.modules.unit_economics.calculator import (
    CATEGORY_COMMISSIONS,
    CURRENCIES,
    BasicInputs,
    CalculatorInputError,
    UnitInputs,
    build_report,
    calculate_basic_metrics,
    calculate_unit_economics,
    estimate_improvement,
)
from app.cms.utils import request_payload

bp = Blueprint("unit_economics", __name__)


def _section(payload: dict, *keys: str) -> dict:
    """Inputs may be posted flat or nested under one of `keys`."""
    for key in keys:
        if isinstance(payload.get(key), dict):
            return payload[key]
    return payload


def _nested(payload: dict, name: str, *keys: str) -> dict:
    """The first of `keys` present in the payload; it must be an object when given."""
    for key in keys:
        value = payload.get(key)
        if value in (None, ""):
            continue
        if not isinstance(value, dict):
            raise CalculatorInputError(f"{name} must be an object.")
        return value
    return {}


@bp.post("/calculator/unit-economics")
def unit_economics():
    inputs = UnitInputs.from_mapping(_section(request_payload(), "unit_economics", "unitEconomics"))
    return jsonify({"inputs": asdict(inputs), "result": calculate_unit_economics(inputs)})


@bp.post("/calculator/basic")
def basic_metrics():
    inputs = BasicInputs.from_mapping(_section(request_payload(), "basic_data", "basicData"))
    return jsonify({"inputs": asdict(inputs), "result": calculate_basic_metrics(inputs)})


@bp.post("/calculator/report")
def report():
    payload = request_payload()
    basic = BasicInputs.from_mapping(_nested(payload, "basic_data", "basic_data", "basicData"))
    unit = UnitInputs.from_mapping(_nested(payload, "unit_economics", "unit_economics", "unitEconomics"))
    body = build_report(
        currency=str(payload.get("currency") or "EUR"),
        category=str(payload.get("category") or "electronics"),
        basic=basic,
        unit=unit,
    )
    resp = jsonify(body)
    resp.headers["Content-Disposition"] = f'attachment; filename="{body["filename"]}"'
    return resp


@bp.get("/calculator/categories")
def categories():
    return jsonify(
        {
            "currencies": list(CURRENCIES),
            "categories": [
                {"category": name, "min": lo, "max": hi} for name, (lo, hi) in CATEGORY_COMMISSIONS.items()
            ],
        }
    )


@bp.get("/calculator/estimate")
def estimate():
    revenue = request.args.get("revenue")
    margin = request.args.get("margin")
    return jsonify({"improvement": estimate_improvement(revenue, margin)})
