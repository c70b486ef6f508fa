# merchantconnect/services/ai_service.py
import json
import logging

import google.generativeai as genai
from sqlmodel import SQLModel

from merchantconnect.schemas.product import ProductRead
from merchantconnect.schemas.user import EmailDraft, UserProfileRead

logger = logging.getLogger(__name__)

ANALYZE_PROMPT = (
    "Analyze this product image. Provide a catchy product name, a short sales "
    "description (max 2 sentences), and an estimated retail price in USD. "
    'Return JSON with "name", "description" and "retail_price_estimate".'
)


class ImageAnalysis(SQLModel):
    """Suggested product fields; empty values mean "no suggestion"."""

    name: str = ""
    description: str = ""
    retail_price_estimate: float = 0


def product_lines(products: list[tuple[ProductRead, int]]) -> str:
    return "\n".join(
        f"- {p.name} x{qty} (Wholesale: ${p.wholesale_price:.2f})" for p, qty in products
    )


def fallback_email(user: UserProfileRead, products: list[tuple[ProductRead, int]]) -> EmailDraft:
    """Deterministic draft used when text generation is unavailable or fails."""
    name = f"{user.first_name} {user.last_name}".strip()
    lines = [
        "Hi,",
        "",
        "I am interested in buying:",
        product_lines(products),
        "",
        f"Please contact me at {user.phone} or {user.email}.",
    ]
    if user.business_name:
        lines.append(f"Business: {user.business_name}")
    if name:
        lines += ["", "Thanks,", name]
    return EmailDraft(
        subject=f"Interest in {len(products)} products",
        body="\n".join(lines),
    )


class TextGenerator:
    """
    Gemini-backed suggestions for the admin form and merchant inquiries.

    Without GEMINI_API_KEY the generator is unavailable: `analyze_image`
    raises (analysis is optional for its callers) and `draft_email`
    returns the deterministic fallback, same shape as a real draft.
    """

    def __init__(self, api_key: str | None = None, model_name: str = "gemini-2.5-flash"):
        self.model_name = model_name
        self.available = bool(api_key)
        if api_key:
            genai.configure(api_key=api_key)

    def _model(self) -> genai.GenerativeModel:
        return genai.GenerativeModel(
            self.model_name,
            generation_config={"response_mime_type": "application/json"},
        )

    async def analyze_image(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> ImageAnalysis:
        """
        Suggest name/description/retail price for a product photo.

        Raises:
            RuntimeError: if no API key is configured.
            Any Gemini or parsing error (callers treat analysis as optional).
        """
        if not self.available:
            raise RuntimeError("Text generation is not configured")

        response = await self._model().generate_content_async(
            [{"mime_type": mime_type, "data": image_bytes}, ANALYZE_PROMPT]
        )
        if not response.text:
            raise RuntimeError("No response from Gemini")
        return ImageAnalysis.model_validate(json.loads(response.text))

    async def draft_email(
        self,
        user: UserProfileRead,
        products: list[tuple[ProductRead, int]],
    ) -> EmailDraft:
        """Draft the inquiry email; falls back to the template on any failure."""
        if not self.available:
            return fallback_email(user, products)

        prompt = f"""
You are an AI assistant for a wholesale platform.
Write a professional email from a merchant named "{user.first_name} {user.last_name}" to the supplier.

The merchant's contact info:
Phone: {user.phone}
Email: {user.email}
Business: {user.business_name or ""}

They are interested in the following products:
{product_lines(products)}

The email should be polite, concise, and ask for next steps regarding ordering.
Return the result as a JSON object with "subject" and "body" fields.
"""
        try:
            response = await self._model().generate_content_async(prompt)
            if not response.text:
                raise ValueError("No response from Gemini")
            return EmailDraft.model_validate(json.loads(response.text))
        except Exception as e:
            logger.error("Error generating email: %s", e)
        return fallback_email(user, products)
