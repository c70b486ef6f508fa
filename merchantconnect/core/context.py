# merchantconnect/core/context.py
import logging

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import Session

from merchantconnect.core.config import Settings
from merchantconnect.core.errors import ServiceNotInitializedError
from merchantconnect.core.storage_utils import BlobStore
from merchantconnect.core.supabase_client import supabase_admin, supabase_public
from merchantconnect.database import create_db_and_tables, dispose_engine, init_engine
from merchantconnect.repositories.product_repo import ProductRepository
from merchantconnect.repositories.user_repo import UserRepository
from merchantconnect.services.ai_service import TextGenerator
from merchantconnect.services.batch_upload import BatchUploadService
from merchantconnect.services.catalog_store import CatalogFeed, CatalogStore
from merchantconnect.services.feed_session import FeedSessionRegistry
from merchantconnect.services.inquiry_service import InquiryService
from merchantconnect.services.product_form import ProductFormRegistry
from merchantconnect.services.product_service import CatalogWriter, ProductService
from merchantconnect.services.storage_cleanup import StorageCleanupService
from merchantconnect.services.user_service import UserService

logger = logging.getLogger(__name__)


class ServiceContext:
    """
    Every backend handle the application uses, built once at startup.

    Lifecycle:
      - init():     engine + tables, storage client, catalog feed primed
                    with the current products, service objects
      - teardown(): close open forms (rolling back unsaved placeholders),
                    drop feed sessions, dispose the engine

    Components receive what they need from here instead of reaching for
    module globals. Using the context before init() (or after teardown())
    raises ServiceNotInitializedError.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        blob_store: BlobStore | None = None,
        text_generator: TextGenerator | None = None,
    ):
        self.settings = settings
        self.initialized = False

        self._blob_store = blob_store
        self._text_generator = text_generator

        self.engine: Engine | None = None
        self.blob_store: BlobStore | None = None
        self.text_generator: TextGenerator | None = None
        self.catalog_feed: CatalogFeed | None = None
        self.catalog_store: CatalogStore | None = None
        self.product_service: ProductService | None = None
        self.catalog_writer: CatalogWriter | None = None
        self.user_service: UserService | None = None
        self.inquiry_service: InquiryService | None = None
        self.feed_sessions: FeedSessionRegistry | None = None
        self.product_forms: ProductFormRegistry | None = None
        self.batch_upload: BatchUploadService | None = None
        self.storage_cleanup: StorageCleanupService | None = None

    def _build_blob_store(self) -> BlobStore:
        if self._blob_store is not None:
            return self._blob_store
        if self.settings.SUPABASE_SERVICE_ROLE_KEY:
            client = supabase_admin(self.settings)
        else:
            logger.warning(
                "SUPABASE_SERVICE_ROLE_KEY not set; storage writes use the anon key"
            )
            client = supabase_public(self.settings)
        return BlobStore(client, bucket=self.settings.STORAGE_BUCKET)

    def init(self, **engine_kwargs) -> "ServiceContext":
        settings = self.settings

        self.engine = init_engine(settings.DATABASE_URL, **engine_kwargs)
        create_db_and_tables()

        self.blob_store = self._build_blob_store()
        self.text_generator = self._text_generator or TextGenerator(
            settings.GEMINI_API_KEY, settings.GEMINI_MODEL
        )
        if not self.text_generator.available:
            logger.info("GEMINI_API_KEY not set; using fallback email drafts")

        self.catalog_feed = CatalogFeed()
        self.catalog_store = CatalogStore(self.catalog_feed)
        self.product_service = ProductService(ProductRepository(), self.catalog_feed)
        self.catalog_writer = CatalogWriter(self.product_service, self.engine)

        with Session(self.engine) as session:
            self.product_service.publish(session)

        self.user_service = UserService(UserRepository())
        self.inquiry_service = InquiryService(
            settings, self.user_service, self.text_generator
        )
        self.feed_sessions = FeedSessionRegistry(
            self.catalog_store,
            rows_per_batch=settings.ROWS_PER_BATCH,
            max_quantity=settings.MAX_SELECT_QUANTITY,
            max_sessions=settings.FEED_MAX_SESSIONS,
            idle_seconds=settings.FEED_SESSION_IDLE_SECONDS,
        )
        self.product_forms = ProductFormRegistry(
            self.catalog_writer,
            self.blob_store,
            analyzer=self.text_generator if self.text_generator.available else None,
        )
        self.batch_upload = BatchUploadService(self.blob_store)
        self.storage_cleanup = StorageCleanupService(self.blob_store)

        self.initialized = True
        logger.info("Service context initialized")
        return self

    async def teardown(self) -> None:
        if not self.initialized:
            return
        self.initialized = False

        try:
            await self.product_forms.close_all()
        except Exception:
            logger.exception("Failed to close open product forms")
        self.feed_sessions.close_all()
        self.catalog_store.close()

        dispose_engine()
        self.engine = None
        logger.info("Service context torn down")


def get_service_context(request: Request) -> ServiceContext:
    """
    FastAPI dependency: the context stored on app.state by the lifespan.

    Raises:
        ServiceNotInitializedError: outside the application's lifespan.
    """
    ctx: ServiceContext | None = getattr(request.app.state, "services", None)
    if ctx is None or not ctx.initialized:
        raise ServiceNotInitializedError("service context")
    return ctx
