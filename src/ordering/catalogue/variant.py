"""Variant value object — an option picked for a product (size, colour...)."""

from protean.fields import Float, String

from ordering.domain import ordering


@ordering.value_object
class Variant:
    """A product option and the amount it adds to the unit price.

    Two lines with the same product but different variant name or value are
    distinct lines.
    """

    name = String(required=True, max_length=50)
    value = String(required=True, max_length=100)
    price = Float(default=0.0, min_value=0.0)


def variant_key(variant) -> tuple:
    """Identity of a variant within a line: ``(name, value)`` or ``(None, None)``."""
    if variant is None:
        return (None, None)
    if isinstance(variant, dict):
        return (variant.get("name") or None, variant.get("value") or None)
    return (variant.name or None, variant.value or None)


def as_variant(variant) -> Variant | None:
    if variant is None or isinstance(variant, Variant):
        return variant
    if not variant.get("name") or not variant.get("value"):
        return None
    return Variant(
        name=variant["name"],
        value=variant["value"],
        price=variant.get("price") or 0.0,
    )
