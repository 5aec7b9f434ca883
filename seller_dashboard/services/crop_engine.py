"""Percentage-based cropping of product photos."""
import enum
import io
import os
from dataclasses import dataclass, asdict

from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from seller_dashboard.errors import CropError, ValidationError
from seller_dashboard.services.previews import PreviewHandle

INITIAL_COVERAGE = 0.9
_EPSILON = 1e-6


class CropMode(enum.Enum):
    AUTO = "auto"
    SQUARE = "square"
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"

    @property
    def aspect(self):
        """Fixed width/height ratio, or None when the crop is freeform."""
        if self is CropMode.AUTO:
            return None
        if self is CropMode.SQUARE:
            return 1.0
        if self is CropMode.PORTRAIT:
            return 3 / 4
        if self is CropMode.LANDSCAPE:
            return 16 / 9
        raise AssertionError(f"Unhandled crop mode {self!r}")

    @property
    def reference_aspect(self):
        # auto centers like square, then resizes freely
        return self.aspect or 1.0

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown crop mode: {value!r}", field="mode")


@dataclass(frozen=True)
class PercentCrop:
    """Crop rectangle in percent of the image's natural size."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValidationError(f"Crop {name} must be between 0 and 100.", field="crop")
        if self.x + self.width > 100 + _EPSILON or self.y + self.height > 100 + _EPSILON:
            raise ValidationError("Crop must lie inside the image.", field="crop")

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                x=float(data["x"]),
                y=float(data["y"]),
                width=float(data["width"]),
                height=float(data["height"]),
            )
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Crop needs numeric x, y, width and height.", field="crop")

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PixelCrop:
    """Crop rectangle in on-screen pixels of the displayed image."""

    x: float
    y: float
    width: float
    height: float


def centered_crop(mode, width, height):
    """Centered crop covering 90% of the bounding box at the mode's ratio.

    ``width`` and ``height`` are the image's pixel dimensions (any scale).
    """
    if width <= 0 or height <= 0:
        raise CropError("Image is empty.")
    aspect = mode.reference_aspect
    crop_w = width * INITIAL_COVERAGE
    crop_h = crop_w / aspect
    if crop_h > height * INITIAL_COVERAGE:
        crop_h = height * INITIAL_COVERAGE
        crop_w = crop_h * aspect
    pct_w = crop_w / width * 100
    pct_h = crop_h / height * 100
    return PercentCrop(
        x=(100 - pct_w) / 2,
        y=(100 - pct_h) / 2,
        width=pct_w,
        height=pct_h,
    )


def _clamp(value):
    return min(100.0, max(0.0, value))


def to_percent(pixel_crop, display_width, display_height):
    """Mirror an on-screen pixel crop into percent space."""
    if display_width <= 0 or display_height <= 0:
        raise ValidationError("Display size must be positive.", field="crop")
    x = _clamp(pixel_crop.x / display_width * 100)
    y = _clamp(pixel_crop.y / display_height * 100)
    width = min(_clamp(pixel_crop.width / display_width * 100), 100 - x)
    height = min(_clamp(pixel_crop.height / display_height * 100), 100 - y)
    return PercentCrop(x=x, y=y, width=width, height=height)


def to_natural_pixels(crop, natural_width, natural_height):
    """Map a percent crop to a (left, top, right, bottom) box in natural pixels."""
    exact_width = natural_width * crop.width / 100
    exact_height = natural_height * crop.height / 100
    if exact_width < 1 or exact_height < 1:
        raise CropError("Crop dimensions are too small.")
    left = round(natural_width * crop.x / 100)
    top = round(natural_height * crop.y / 100)
    width = round(exact_width)
    height = round(exact_height)
    right = min(natural_width, left + width)
    bottom = min(natural_height, top + height)
    # rounding can push the box past the edge; slide it back in
    left = max(0, right - width)
    top = max(0, bottom - height)
    return left, top, right, bottom


def _open_image(image_bytes):
    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise CropError(f"Could not read image: {e}")
    return ImageOps.exif_transpose(img)


def crop_image(image_bytes, crop, quality=95):
    """Rasterize only the cropped pixels and re-encode as JPEG.

    Returns (jpeg_bytes, (width, height)).
    """
    img = _open_image(image_bytes)
    box = to_natural_pixels(crop, img.width, img.height)
    region = img.crop(box)
    if region.mode not in ("RGB", "L"):
        region = region.convert("RGB")
    buffer = io.BytesIO()
    region.save(buffer, format="JPEG", quality=quality)
    data = buffer.getvalue()
    if not data:
        raise CropError("Canvas is empty")
    return data, region.size


class CropSession:
    """Interactive crop of one image.

    Starts from the stored crop and mode when re-entering a crop that was
    already confirmed, otherwise from a centered square.
    """

    def __init__(self, image_bytes, filename="image.jpg", crop=None,
                 mode=CropMode.SQUARE, quality=95):
        self.image_bytes = image_bytes
        self.filename = filename
        self.quality = quality
        self.natural_width, self.natural_height = self._decode_dimensions()
        self.mode = mode
        self.crop = crop or centered_crop(mode, self.natural_width, self.natural_height)

    def _decode_dimensions(self):
        suffix = os.path.splitext(self.filename)[1] or ".img"
        with PreviewHandle(self.image_bytes, suffix=suffix) as handle:
            try:
                with PILImage.open(handle.path) as img:
                    img = ImageOps.exif_transpose(img)
                    return img.width, img.height
            except (UnidentifiedImageError, OSError) as e:
                raise CropError(f"Could not read image: {e}")

    def set_mode(self, mode):
        self.mode = mode
        self.crop = centered_crop(mode, self.natural_width, self.natural_height)
        return self.crop

    def move(self, pixel_crop, display_width, display_height):
        self.crop = to_percent(pixel_crop, display_width, display_height)
        return self.crop

    def adjust(self, crop):
        self.crop = crop
        return self.crop

    def confirm(self):
        data, _ = crop_image(self.image_bytes, self.crop, quality=self.quality)
        return data

    def to_dict(self):
        return {
            "filename": self.filename,
            "natural_width": self.natural_width,
            "natural_height": self.natural_height,
            "mode": self.mode.value,
            "aspect": self.mode.aspect,
            "crop": self.crop.to_dict(),
        }
