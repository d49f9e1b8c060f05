from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from starlette.datastructures import FormData, UploadFile

from src.api.core.exceptions.base import ValidationError
from src.api.core.messages import MessageCode
from src.modules.detection.infrastructure.temp_files import TemporaryUpload
from src.utils.settings.upload import UploadSettings

IMAGE_FIELD = "image"


@dataclass(frozen=True)
class ImageMetadata:
    content_type: str
    size_bytes: int
    width: int | None = None
    height: int | None = None


def extract_image_upload(form: FormData) -> UploadFile:
    """Return the uploaded image part of a multipart form."""
    upload = form.get(IMAGE_FIELD)
    if not isinstance(upload, UploadFile) or not upload.filename:
        raise ValidationError(MessageCode.NO_IMAGE_PROVIDED)
    return upload


def _read_dimensions(data: bytes) -> tuple[int, int]:
    try:
        with Image.open(BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValidationError(
            MessageCode.INVALID_IMAGE, details={"reason": str(e)}
        ) from e


def validate_image_upload(
    upload: TemporaryUpload, settings: UploadSettings
) -> ImageMetadata:
    """Validate uploaded image content type, size and pixel dimensions."""
    content_type = (upload.content_type or "").lower()
    if content_type not in settings.ALLOWED_TYPES:
        raise ValidationError(MessageCode.INVALID_FILE_TYPE)

    if upload.size_bytes == 0:
        raise ValidationError(MessageCode.EMPTY_FILE)

    if upload.size_bytes > settings.MAX_FILE_SIZE:
        raise ValidationError(MessageCode.FILE_TOO_LARGE)

    if not settings.ENFORCE_PIXEL_BOUNDS:
        return ImageMetadata(content_type=content_type, size_bytes=upload.size_bytes)

    width, height = _read_dimensions(upload.read_bytes())
    low, high = settings.MIN_IMAGE_DIMENSION, settings.MAX_IMAGE_DIMENSION
    if width < low or height < low:
        raise ValidationError(
            MessageCode.IMAGE_TOO_SMALL,
            message=(
                f"Image is too small ({width}x{height}). "
                f"Minimum size is {low}x{low} pixels."
            ),
        )
    if width > high or height > high:
        raise ValidationError(
            MessageCode.IMAGE_TOO_LARGE,
            message=(
                f"Image is too large ({width}x{height}). "
                f"Maximum size is {high}x{high} pixels."
            ),
        )

    return ImageMetadata(
        content_type=content_type,
        size_bytes=upload.size_bytes,
        width=width,
        height=height,
    )
