"""Listing form fields, validation and change detection."""
import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from seller_dashboard.errors import ValidationError

BULLET = "•"

SNAPSHOT_FIELDS = (
    "title",
    "description",
    "quantity",
    "price",
    "type",
    "session",
    "categories",
    "images",
)


class ListingType(enum.Enum):
    BUY = "buy"
    RENT = "rent"

    @classmethod
    def parse(cls, value):
        try:
            return cls((value or "buy").lower())
        except ValueError:
            raise ValidationError("Type must be buy or rent.", field="type")


def coerce_quantity(raw):
    """Quantity as typed by the seller; anything malformed becomes 1."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    return value if value >= 1 else 1


def format_price(value):
    """Stored price as the form shows it: 12.50 → '12.5', 100.00 → '100'."""
    if value is None:
        return ""
    d = Decimal(str(value)).normalize()
    return format(d, "f")


@dataclass
class ProductForm:
    title: str = ""
    description: str = ""
    categories: list = field(default_factory=list)
    type: ListingType = ListingType.BUY
    quantity: int = 1
    price: str = ""
    session: str = ""

    @classmethod
    def from_payload(cls, data):
        categories = data.get("categories") or data.get("category") or []
        if isinstance(categories, str):
            categories = [c.strip() for c in categories.split(",")]
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            categories=[c for c in categories if c],
            type=ListingType.parse(data.get("type")),
            quantity=coerce_quantity(data.get("quantity", data.get("quantity_left", 1))),
            price=str(data.get("price") if data.get("price") is not None else "").strip(),
            session=str(data.get("session") or ""),
        )

    @classmethod
    def from_version(cls, version):
        return cls(
            title=version.title,
            description=version.description,
            categories=list(version.category or []),
            type=ListingType.parse(version.type),
            quantity=version.quantity_left,
            price=format_price(version.price),
            session=version.session or "",
        )

    @property
    def price_value(self):
        try:
            return Decimal(self.price)
        except (InvalidOperation, TypeError, ValueError):
            return None

    def validate(self, image_count):
        """Field name → message for every rule that fails."""
        errors = {}
        if not self.title.strip():
            errors["title"] = "Title is required."
        if not self.description.strip():
            errors["description"] = "Description is required."
        price = self.price_value
        if price is None or not price.is_finite() or price <= 0:
            errors["price"] = "Please enter a valid price."
        if not isinstance(self.quantity, int) or self.quantity < 1:
            errors["quantity"] = "Quantity must be at least 1."
        if self.type is ListingType.RENT and not self.session.strip():
            errors["session"] = "Session is required for rental items."
        if image_count < 1:
            errors["images"] = "Please upload at least one image."
        return errors

    def clean(self, image_count):
        errors = self.validate(image_count)
        if errors:
            first = next(iter(errors.values()))
            raise ValidationError(first, fields=errors)
        return self

    def to_row_values(self):
        """Column values for a product version row."""
        return {
            "title": self.title.strip(),
            "description": self.description.strip(),
            "category": list(self.categories) or None,
            "type": self.type.value,
            "quantity_left": self.quantity,
            "price": self.price_value.quantize(Decimal("0.01")),
            "session": self.session.strip() if self.type is ListingType.RENT else None,
        }


@dataclass(frozen=True)
class FormSnapshot:
    title: str
    description: str
    quantity: int
    price: str
    type: ListingType
    session: str
    categories: tuple
    existing_urls: tuple
    new_image_count: int = 0


def take_snapshot(form, existing_urls, new_image_count=0):
    return FormSnapshot(
        title=form.title,
        description=form.description,
        quantity=form.quantity,
        price=str(form.price),
        type=form.type,
        session=form.session or "",
        categories=tuple(sorted(form.categories)),
        existing_urls=tuple(existing_urls),
        new_image_count=new_image_count,
    )


def diff_snapshot(initial, current):
    """Names of the fields in SNAPSHOT_FIELDS that differ, in that order."""
    changed = []
    for name in SNAPSHOT_FIELDS:
        if name == "session":
            if current.type is ListingType.RENT:
                differs = current.session != initial.session
            else:
                differs = bool(initial.session)
        elif name == "images":
            differs = current.new_image_count > 0 or (
                sorted(current.existing_urls) != sorted(initial.existing_urls)
            )
        else:
            differs = getattr(current, name) != getattr(initial, name)
        if differs:
            changed.append(name)
    return changed


def is_dirty(initial, current):
    return bool(diff_snapshot(initial, current))


def insert_bullet(text, start, end=None):
    """Replace the selection with a bullet. Returns (text, cursor)."""
    end = start if end is None else end
    new_text = text[:start] + BULLET + " " + text[end:]
    return new_text, start + 2


def continue_bullet(text, cursor):
    """Handle a line break typed at ``cursor`` inside a bullet list.

    Returns (text, cursor), or None when the current line is not a bullet
    line and the break should be inserted normally.
    """
    line_start = text.rfind("\n", 0, cursor) + 1
    current_line = text[line_start:cursor]
    if not current_line.strip().startswith(BULLET):
        return None
    if current_line.strip() == BULLET:
        # second break on an empty bullet ends the list
        return text[:line_start] + text[cursor:], line_start
    return text[:cursor] + "\n" + BULLET + " " + text[cursor:], cursor + 3
