"""
Client directory service.

Two duplicate-detection strategies:
- interactive create warns on *similar* names (normalized substring or token
  overlap) and lets the user confirm;
- bulk import hard-skips *exact* case-insensitive name matches.
"""
import logging
import re
import unicodedata
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.client import ClientMaster
from app.schemas.client import (
    BulkImportRow,
    ClientCreate,
    ClientUpdate,
)


logger = logging.getLogger(__name__)

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")

CLIENT_FIELDS = (
    "client_name",
    "contact_person",
    "phone",
    "email",
    "gstin",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "pincode",
)


def is_valid_gstin(gstin: Optional[str]) -> bool:
    return bool(gstin) and GSTIN_PATTERN.match(gstin) is not None


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone) is not None


def normalize_name(text: Optional[str]) -> str:
    """Casefold, punctuation to spaces, collapsed whitespace. Any script's letters and marks are kept."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text).casefold()
    text = "".join(ch if unicodedata.category(ch)[0] in "LMN" else " " for ch in text)
    return " ".join(text.split())


def name_similarity(a: str, b: str) -> float:
    """Jaccard overlap of the word sets of two normalized names."""
    words_a = set(normalize_name(a).split())
    words_b = set(normalize_name(b).split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def is_similar_name(candidate: str, existing: str, threshold: float) -> bool:
    """
    Names match when either normalized form contains the other, or when
    their word overlap reaches the threshold. User input is never used as
    a SQL pattern.
    """
    a = normalize_name(candidate)
    b = normalize_name(existing)
    if not a or not b:
        return False
    if a in b or b in a:
        return True
    return name_similarity(a, b) >= threshold


class ClientService:
    """Client CRUD, search and bulk import."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Validation ====================

    @staticmethod
    def _validate_contact(phone: Optional[str], gstin: Optional[str], phone_required: bool) -> None:
        if phone_required or phone is not None:
            if not is_valid_phone(phone):
                raise ValidationError("Phone number must be 10 digits")
        if gstin and not is_valid_gstin(gstin):
            raise ValidationError("Invalid GSTIN format")

    async def _ensure_gstin_free(self, gstin: Optional[str], exclude_id: Optional[UUID] = None) -> None:
        if not gstin:
            return
        stmt = select(ClientMaster.id).where(ClientMaster.gstin == gstin)
        if exclude_id is not None:
            stmt = stmt.where(ClientMaster.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise ConflictError("GSTIN already exists", details={"gstin": gstin})

    # ==================== Reads ====================

    async def list_clients(self, include_inactive: bool = False) -> List[ClientMaster]:
        stmt = select(ClientMaster).order_by(ClientMaster.client_name)
        if not include_inactive:
            stmt = stmt.where(ClientMaster.is_active == True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_client(self, client_id: UUID) -> ClientMaster:
        client = await self.db.get(ClientMaster, client_id)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    async def search_clients(self, q: Optional[str]) -> List[ClientMaster]:
        """Case-insensitive substring search on active client names."""
        q = (q or "").strip()
        if len(q) < settings.CLIENT_SEARCH_MIN_LENGTH:
            raise ValidationError(
                f"Search query must be at least {settings.CLIENT_SEARCH_MIN_LENGTH} characters"
            )
        result = await self.db.execute(
            select(ClientMaster)
            .where(
                ClientMaster.is_active == True,
                ClientMaster.client_name.icontains(q, autoescape=True),
            )
            .order_by(ClientMaster.client_name)
            .limit(settings.CLIENT_SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def find_similar(self, client_name: str) -> List[ClientMaster]:
        """Active clients whose name looks like client_name."""
        result = await self.db.execute(
            select(ClientMaster)
            .where(ClientMaster.is_active == True)
            .order_by(ClientMaster.client_name)
        )
        threshold = settings.CLIENT_SIMILARITY_THRESHOLD
        return [
            client for client in result.scalars().all()
            if is_similar_name(client_name, client.client_name, threshold)
        ]

    async def find_exact(self, client_name: str) -> Optional[ClientMaster]:
        result = await self.db.execute(
            select(ClientMaster)
            .where(func.lower(ClientMaster.client_name) == client_name.strip().lower())
            .order_by(ClientMaster.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ==================== Writes ====================

    async def create_client(self, data: ClientCreate) -> Tuple[Optional[ClientMaster], List[ClientMaster]]:
        """
        Create a client unless similar names exist and the caller has not
        confirmed. Returns (client, []) on creation or (None, similar) when
        the caller must confirm first.
        """
        self._validate_contact(data.phone, data.gstin, phone_required=True)

        if not data.confirm_duplicate:
            similar = await self.find_similar(data.client_name)
            if similar:
                logger.info(
                    f"Client '{data.client_name}' resembles {len(similar)} existing client(s); asking to confirm"
                )
                return None, similar

        await self._ensure_gstin_free(data.gstin)

        client = ClientMaster(**data.model_dump(include=set(CLIENT_FIELDS)))
        self.db.add(client)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create client '{data.client_name}': {e}")
            raise

        logger.info(f"Client created: {client.client_name} ({client.id})")
        return client, []

    async def update_client(self, client_id: UUID, data: ClientUpdate) -> ClientMaster:
        client = await self.get_client(client_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        self._validate_contact(changes.get("phone"), changes.get("gstin"), phone_required=False)
        if "gstin" in changes and changes["gstin"] != client.gstin:
            await self._ensure_gstin_free(changes["gstin"], exclude_id=client.id)

        for field, value in changes.items():
            setattr(client, field, value)

        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update client {client_id}: {e}")
            raise

        await self.db.refresh(client)
        return client

    async def delete_client(self, client_id: UUID) -> None:
        """Soft delete. Bills keep pointing at the client."""
        client = await self.get_client(client_id)
        client.is_active = False
        await self.db.commit()
        logger.info(f"Client deactivated: {client.client_name} ({client.id})")

    # ==================== Bulk import ====================

    def _row_error(self, row: BulkImportRow) -> Optional[str]:
        if not row.client_name or not row.contact_person or not row.phone:
            return "Missing required fields (name, contact, or phone)"
        if not is_valid_phone(row.phone):
            return "Invalid phone number (must be 10 digits)"
        if row.gstin and not is_valid_gstin(row.gstin):
            return "Invalid GSTIN format"
        return None

    async def bulk_import(self, rows: List[BulkImportRow]) -> dict:
        """
        Import rows one by one. Each row is validated, checked for an exact
        (case-insensitive) name duplicate, then inserted in its own savepoint,
        so one bad row never aborts the others. Rows are numbered from 1.
        """
        if not rows:
            raise ValidationError("No client data provided")

        imported: List[dict] = []
        duplicates: List[dict] = []
        errors: List[dict] = []

        for index, row in enumerate(rows, start=1):
            error = self._row_error(row)
            if error:
                errors.append({"row": index, "client_name": row.client_name or "Unknown", "error": error})
                continue

            existing = await self.find_exact(row.client_name)
            if existing is not None:
                duplicates.append({"row": index, "client_name": row.client_name, "existing_id": existing.id})
                continue

            values = row.model_dump(include=set(CLIENT_FIELDS))
            if values.get("gstin"):
                try:
                    await self._ensure_gstin_free(values["gstin"])
                except ConflictError as e:
                    errors.append({"row": index, "client_name": row.client_name, "error": e.message})
                    continue

            try:
                async with self.db.begin_nested():
                    client = ClientMaster(**values)
                    self.db.add(client)
                    await self.db.flush()
            except IntegrityError as e:
                logger.warning(f"Bulk import row {index} rejected by database: {e.orig}")
                message = "GSTIN already exists" if values.get("gstin") else "Invalid data"
                errors.append({"row": index, "client_name": row.client_name, "error": message})
                continue

            imported.append({"id": client.id, "client_name": client.client_name})

        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Bulk import commit failed: {e}")
            raise

        logger.info(
            f"Bulk import finished: {len(imported)} imported, "
            f"{len(duplicates)} duplicates, {len(errors)} errors"
        )
        return {
            "imported": len(imported),
            "imported_clients": imported,
            "duplicates": duplicates,
            "errors": errors,
        }
