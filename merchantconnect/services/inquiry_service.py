# merchantconnect/services/inquiry_service.py
import logging
from urllib.parse import quote

from fastapi import HTTPException, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from merchantconnect.core.auth import Identity
from merchantconnect.core.config import Settings
from merchantconnect.core.email_client import is_smtp_configured, send_email
from merchantconnect.schemas.product import ProductRead
from merchantconnect.schemas.user import EmailDraft, InquiryRequest, InquiryResponse
from merchantconnect.services.ai_service import TextGenerator
from merchantconnect.services.user_service import UserService

logger = logging.getLogger(__name__)


def build_mailto(to_email: str, draft: EmailDraft) -> str:
    return (
        f"mailto:{to_email}"
        f"?subject={quote(draft.subject, safe='')}"
        f"&body={quote(draft.body, safe='')}"
    )


class InquiryService:
    """
    "I'm interested" submission.

    Steps:
      1. merge-persist the merchant's contact fields
      2. draft the email to the supplier (generated or fallback)
      3. build the mailto: link when the merchant asked for a draft
      4. send a copy to the supplier when SMTP is configured
    """

    def __init__(
        self,
        settings: Settings,
        users: UserService,
        text_generator: TextGenerator,
    ):
        self.settings = settings
        self.users = users
        self.text_generator = text_generator

    def _notify_supplier(self, draft: EmailDraft, reply_to: str) -> bool:
        if not is_smtp_configured(self.settings):
            return False
        try:
            send_email(
                self.settings,
                to_email=self.settings.ADMIN_EMAIL,
                subject=draft.subject,
                text_body=draft.body,
                reply_to=reply_to,
            )
        except Exception as e:
            logger.error("Failed to send inquiry copy to supplier: %s", e)
            return False
        return True

    async def submit(
        self,
        session: Session,
        identity: Identity,
        payload: InquiryRequest,
        products: list[tuple[ProductRead, int]],
    ) -> InquiryResponse:
        if not products:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No products selected",
            )

        profile = await run_in_threadpool(
            self.users.merge_profile,
            session,
            identity,
            payload.model_dump(exclude={"email", "draft_email_for_me"}),
        )

        # The draft carries the address the merchant typed, not the login key
        contact = profile.model_copy(update={"email": payload.email})
        draft = await self.text_generator.draft_email(contact, products)

        mailto_url = None
        if payload.draft_email_for_me:
            mailto_url = build_mailto(self.settings.ADMIN_EMAIL, draft)

        notified = await run_in_threadpool(self._notify_supplier, draft, payload.email)

        logger.info(
            "Inquiry from %s for %d products (notified=%s)",
            identity.email,
            len(products),
            notified,
        )
        return InquiryResponse(
            subject=draft.subject,
            body=draft.body,
            mailto_url=mailto_url,
            product_count=len(products),
            notified_supplier=notified,
            profile=profile,
        )
