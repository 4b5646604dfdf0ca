"""Tesseract-based OCR for images and scanned PDFs."""

from __future__ import annotations

import io
import logging

import pytesseract
from pdf2image import convert_from_bytes
from PIL import Image, ImageFilter, ImageOps, ImageSequence, UnidentifiedImageError

from ..classifier import is_pdf
from ..media import MediaDescriptor
from ..schema import BackendKind, ExtractionOutcome
from ..utils import BackendError, ensure_binaries, read_stream

logger = logging.getLogger(__name__)

OCR_OEM = 1
OCR_PSM_CANDIDATES = (3, 6)
OCR_LANG = "eng"
OCR_THRESHOLD = 200
OCR_USE_OTSU = True
OCR_PREPROCESS = {
    "median_size": 3,
    "unsharp": (1, 150, 3),
    "autocontrast_cutoff": 1,
}


def _build_config(psm: int, lang: str = OCR_LANG, tessdata_path: str | None = None) -> str:
    parts = [f"--oem {OCR_OEM}", f"--psm {psm}", f"-l {lang}"]
    if tessdata_path:
        parts.append(f"--tessdata-dir \"{tessdata_path}\"")
    return " ".join(parts)


def _binarize_level(gray: Image.Image, base: int = OCR_THRESHOLD) -> int:
    """Cut level for binarizing *gray*: midway between *base* and the Otsu level.

    Falls back to *base* for a blank or single-tone page.
    """

    histogram = gray.histogram()[:256]
    pixels = sum(histogram)
    if not pixels:
        return base
    weighted_total = sum(level * count for level, count in enumerate(histogram))

    otsu_level, best_spread = base, 0.0
    below = below_weighted = 0
    for level, count in enumerate(histogram[:-1]):
        below += count
        below_weighted += level * count
        above = pixels - below
        if not below or not above:
            continue
        gap = below_weighted / below - (weighted_total - below_weighted) / above
        spread = below * above * gap * gap
        if spread > best_spread:
            otsu_level, best_spread = level, spread
    return (otsu_level + base) // 2


def preprocess_image(
    image: Image.Image,
    threshold: int = OCR_THRESHOLD,
    median_size: int = 3,
    unsharp: tuple[int, int, int] = (1, 150, 3),
    autocontrast_cutoff: int = 1,
) -> Image.Image:
    """Apply Pillow preprocessing to improve OCR quality."""

    gray = image.convert("L")
    gray = ImageOps.autocontrast(gray, cutoff=autocontrast_cutoff)
    gray = gray.filter(ImageFilter.MedianFilter(size=median_size))
    gray = gray.filter(
        ImageFilter.UnsharpMask(
            radius=unsharp[0], percent=unsharp[1], threshold=unsharp[2]
        )
    )
    level = _binarize_level(gray, threshold) if OCR_USE_OTSU else threshold
    return gray.point(lambda x: 255 if x > level else 0, mode="1")


def _extract_words(ocr_data: dict) -> tuple[list[str], list[float]]:
    """Return recognized words and their non-negative confidences."""

    words: list[str] = []
    confidences: list[float] = []
    text_items = ocr_data.get("text", [])
    for index in range(len(text_items)):
        text = (text_items[index] or "").strip()
        if not text:
            continue
        try:
            confidence = float(ocr_data["conf"][index])
        except (KeyError, IndexError, TypeError, ValueError):
            confidence = -1.0
        words.append(text)
        if confidence >= 0:
            confidences.append(confidence)
    return words, confidences


def ocr_page(
    image: Image.Image,
    ocr_lang: str = OCR_LANG,
    tessdata_path: str | None = None,
    psm_candidates: tuple[int, ...] = OCR_PSM_CANDIDATES,
) -> tuple[str, list[float]]:
    """OCR one page, keeping the PSM candidate with the best mean confidence."""

    processed = preprocess_image(image, threshold=OCR_THRESHOLD, **OCR_PREPROCESS)
    best_text = ""
    best_confidences: list[float] = []
    best_mean = -1.0
    for psm in psm_candidates:
        ocr_data = pytesseract.image_to_data(
            processed,
            output_type=pytesseract.Output.DICT,
            config=_build_config(psm, lang=ocr_lang, tessdata_path=tessdata_path),
        )
        words, confidences = _extract_words(ocr_data)
        mean = sum(confidences) / len(confidences) if confidences else 0.0
        if mean > best_mean:
            best_text = " ".join(words).strip()
            best_confidences = confidences
            best_mean = mean
    return best_text, best_confidences


def native_confidence(confidences: list[float]) -> int | None:
    """Mean word confidence as an int in [0, 100], or None without words."""

    if not confidences:
        return None
    return max(0, min(100, round(sum(confidences) / len(confidences))))


class OcrBackend:
    """Rasterize images or PDF pages and recognize text with Tesseract."""

    kind = BackendKind.OCR

    def __init__(
        self,
        ocr_lang: str = OCR_LANG,
        tessdata_path: str | None = None,
        dpi: int = 300,
        max_pages: int | None = 20,
        max_bytes: int | None = None,
    ) -> None:
        self.ocr_lang = ocr_lang
        self.tessdata_path = tessdata_path
        self.dpi = dpi
        self.max_pages = max_pages
        self.max_bytes = max_bytes

    def extract(self, descriptor: MediaDescriptor) -> ExtractionOutcome:
        ensure_binaries(["tesseract"], backend=self.kind)
        try:
            with descriptor.open() as stream:
                data = read_stream(stream, self.max_bytes)
        except OSError as exc:
            raise BackendError(
                f"Failed to read media: {exc}", backend=self.kind, recoverable=True
            ) from exc

        images = self._load_pages(data, descriptor.content_type)
        page_texts: list[str] = []
        confidences: list[float] = []
        try:
            for page_number, image in enumerate(images, start=1):
                text, page_confidences = ocr_page(
                    image, ocr_lang=self.ocr_lang, tessdata_path=self.tessdata_path
                )
                logger.debug(
                    "OCR page %d of %s: %d chars, %d words with confidence",
                    page_number, descriptor.id, len(text), len(page_confidences),
                )
                if text:
                    page_texts.append(text)
                confidences.extend(page_confidences)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise BackendError(
                f"Tesseract failed: {exc}", backend=self.kind, recoverable=True
            ) from exc

        return ExtractionOutcome(
            text="\n\n".join(page_texts),
            confidence=native_confidence(confidences),
            backend=self.kind,
            note=f"Tesseract OCR ({self.ocr_lang}) over {len(images)} page(s)",
            page_count=len(images),
        )

    def _load_pages(self, data: bytes, content_type: str | None) -> list[Image.Image]:
        if is_pdf(content_type):
            ensure_binaries(["pdftoppm"], backend=self.kind)
            try:
                return convert_from_bytes(
                    data, dpi=self.dpi, first_page=1, last_page=self.max_pages
                )
            except Exception as exc:  # pragma: no cover - depends on system binaries
                raise BackendError(
                    f"PDF rendering failed: {exc}", backend=self.kind, recoverable=True
                ) from exc
        try:
            source = Image.open(io.BytesIO(data))
            pages: list[Image.Image] = []
            for frame in ImageSequence.Iterator(source):
                pages.append(frame.convert("RGB"))
                if self.max_pages is not None and len(pages) >= self.max_pages:
                    break
            return pages
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise BackendError(
                f"Image could not be decoded: {exc}", backend=self.kind, recoverable=True
            ) from exc
