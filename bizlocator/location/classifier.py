"""Ordered heuristic rules mapping place tags or business names to a BusinessType.

Both tables are evaluated top to bottom and the first matching rule wins, so the
position of a rule in the table is its priority. Financial rules come first,
dining tags precede generic retail, and pharmacy precedes general retail.
"""

import logging
from typing import Iterable, NamedTuple, Optional, Tuple

from bizlocator.models import BusinessType

logger = logging.getLogger(__name__)


class Rule(NamedTuple):
    business_type: BusinessType
    keywords: Tuple[str, ...]


TAG_RULES: Tuple[Rule, ...] = (
    Rule(BusinessType.FINANCIAL, ("bank", "atm", "finance")),
    Rule(BusinessType.RESTAURANT, ("restaurant", "food", "meal_takeaway", "meal_delivery")),
    Rule(BusinessType.CAFE, ("cafe", "bakery", "coffee_shop")),
    Rule(BusinessType.BAR, ("bar", "night_club", "liquor_store")),
    Rule(BusinessType.GROCERY, ("grocery_or_supermarket", "supermarket")),
    Rule(BusinessType.PHARMACY, ("pharmacy", "drugstore")),
    Rule(BusinessType.HEALTHCARE, ("hospital", "doctor")),
    Rule(BusinessType.CLINIC, ("dentist", "veterinary_care", "physiotherapist")),
    Rule(BusinessType.GAS_STATION, ("gas_station", "fuel")),
    Rule(BusinessType.AUTOMOTIVE, ("car_dealer", "car_repair", "car_wash", "auto_parts_store")),
    Rule(BusinessType.HOTEL, ("lodging", "hotel", "motel")),
    Rule(BusinessType.GYM, ("gym", "fitness")),
    Rule(BusinessType.SALON, ("beauty_salon", "hair_care", "spa")),
    Rule(BusinessType.OFFICE, ("real_estate_agency", "lawyer", "accounting", "insurance_agency", "office")),
    Rule(BusinessType.WAREHOUSE, ("storage", "moving_company")),
    Rule(
        BusinessType.RETAIL,
        (
            "convenience_store",
            "store",
            "shopping_mall",
            "clothing_store",
            "electronics_store",
            "department_store",
            "shoe_store",
            "jewelry_store",
            "book_store",
            "home_goods_store",
            "furniture_store",
            "hardware_store",
            "pet_store",
            "florist",
        ),
    ),
)

NAME_RULES: Tuple[Rule, ...] = (
    Rule(BusinessType.FINANCIAL, ("bank", "citi", "wells fargo", "chase", "atm")),
    # CVS and Walgreens sell groceries too, they are pharmacies first.
    Rule(BusinessType.PHARMACY, ("pharmacy", "cvs", "walgreens", "rite aid", "drug")),
    Rule(BusinessType.RETAIL, ("7-eleven", "convenience")),
    Rule(BusinessType.AUTOMOTIVE, ("auto", "repair", "car", "tire")),
    Rule(BusinessType.GAS_STATION, ("gas", "shell", "chevron", "exxon")),
    Rule(BusinessType.HOTEL, ("hotel", "inn", "motel")),
    Rule(BusinessType.CAFE, ("cafe", "coffee", "starbucks")),
    Rule(BusinessType.BAR, ("bar", "pub", "tavern")),
    Rule(BusinessType.FITNESS, ("gym", "fitness", "equinox")),
    Rule(BusinessType.GROCERY, ("trader joe", "whole foods", "safeway", "kroger")),
    Rule(BusinessType.RESTAURANT, ("restaurant", "grill", "pizza", "kitchen", "diner")),
)


def classify_tags(tags: Optional[Iterable[str]]) -> BusinessType:
    normalized = {str(tag).strip().lower() for tag in tags or [] if tag}
    if not normalized:
        return BusinessType.OTHER
    for rule in TAG_RULES:
        if normalized.intersection(rule.keywords):
            return rule.business_type
    return BusinessType.OTHER


def classify_name(name: Optional[str]) -> BusinessType:
    lowered = (name or "").strip().lower()
    if not lowered:
        return BusinessType.OTHER
    for rule in NAME_RULES:
        if any(keyword in lowered for keyword in rule.keywords):
            logger.debug("Classified %r as %s", name, rule.business_type.value)
            return rule.business_type
    logger.debug("No name rule matched %r", name)
    return BusinessType.OTHER
