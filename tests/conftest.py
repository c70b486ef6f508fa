"""Shared fixtures: test settings, in-memory storage, SQLite-backed app."""

import io
import os
import time

# Settings are read at import time by merchantconnect.main
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "anon-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_EMAIL", "supplier@example.com")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from merchantconnect.core.config import get_settings
from merchantconnect.core.context import ServiceContext
from merchantconnect.core.storage_utils import BlobStore, StorageListing
from merchantconnect.repositories.config_repo import ConfigRepository
from merchantconnect.schemas.image import ImageVariantSet, VariantUrls
from merchantconnect.schemas.product import ProductRead
from merchantconnect.services.ai_service import TextGenerator

ADMIN = "admin@example.com"
MERCHANT = "merchant@example.com"
PUBLIC_PREFIX = "https://test.supabase.co/storage/v1/object/public/assets/"


class FakeBlobStore(BlobStore):
    """BlobStore keeping objects in a dict; uploads fail for paths containing `fail_on`."""

    def __init__(self):
        super().__init__(client=None, bucket="assets")
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_on: str | None = None

    async def upload(self, path, data, content_type="image/jpeg"):
        if self.fail_on and self.fail_on in path:
            raise RuntimeError(f"upload failed: {path}")
        self.objects[path] = data
        return PUBLIC_PREFIX + path

    async def delete_path(self, path):
        self.objects.pop(path, None)
        self.deleted.append(path)

    async def list(self, prefix):
        prefix = prefix.rstrip("/") + "/"
        listing = StorageListing()
        for path in self.objects:
            if not path.startswith(prefix):
                continue
            head, _, rest = path[len(prefix):].partition("/")
            if rest:
                if head not in listing.subfolders:
                    listing.subfolders.append(head)
            else:
                listing.items.append(head)
        return listing


def make_product(product_id: str, **kwargs) -> ProductRead:
    data = {"name": product_id, "wholesale_price": 10, "stock": 5, "created_at": 0}
    data.update(kwargs)
    return ProductRead(id=product_id, **data)


def make_image(name: str = "shoe.jpg", path: str = "products/p1/1_shoe") -> ImageVariantSet:
    return ImageVariantSet(
        name=name,
        urls=VariantUrls(
            small=f"{PUBLIC_PREFIX}{path}_small.jpg",
            medium=f"{PUBLIC_PREFIX}{path}_medium.jpg",
            big=f"{PUBLIC_PREFIX}{path}_big.jpg",
        ),
    )


def png_bytes(width: int = 300, height: int = 150, mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (width, height), "red").save(buf, format="PNG")
    return buf.getvalue()


def auth_headers(email: str, name: str = "") -> dict[str, str]:
    token = jwt.encode(
        {
            "email": email,
            "user_metadata": {"full_name": name},
            "exp": int(time.time()) + 3600,
        },
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def services(blob_store):
    ctx = ServiceContext(
        get_settings(),
        blob_store=blob_store,
        text_generator=TextGenerator(api_key=None),
    )
    ctx.init(poolclass=StaticPool, connect_args={"check_same_thread": False})
    with Session(ctx.engine) as session:
        ConfigRepository().replace(session, "adminEmails", {"emails": [ADMIN]})
    return ctx


@pytest.fixture
def client(services):
    from merchantconnect.main import create_app

    with TestClient(create_app(services)) as c:
        yield c


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(ADMIN, "Ada Admin")


@pytest.fixture
def merchant_headers() -> dict[str, str]:
    return auth_headers(MERCHANT, "Mia Merchant Jones")
