"""API endpoints for the client directory."""
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from app.api.deps import DB, CurrentUser
from app.schemas.base import ApiResponse, ListResponse, MessageResponse
from app.schemas.client import (
    ClientCreate,
    ClientUpdate,
    ClientResponse,
    SimilarClientsWarning,
    BulkImportRequest,
    BulkImportResult,
)
from app.services.client_service import ClientService

router = APIRouter()


@router.get("", response_model=ListResponse[ClientResponse])
async def list_clients(
    db: DB,
    current_user: CurrentUser,
    include_inactive: bool = Query(False),
):
    """Active clients ordered by name."""
    clients = await ClientService(db).list_clients(include_inactive=include_inactive)
    return ListResponse(count=len(clients), data=[ClientResponse.model_validate(c) for c in clients])


@router.get("/search", response_model=ListResponse[ClientResponse])
async def search_clients(
    db: DB,
    current_user: CurrentUser,
    q: Optional[str] = Query(None),
    query: Optional[str] = Query(None, include_in_schema=False),
):
    """Case-insensitive name search over active clients."""
    clients = await ClientService(db).search_clients(q if q is not None else query)
    return ListResponse(count=len(clients), data=[ClientResponse.model_validate(c) for c in clients])


@router.post("/bulk-import", response_model=ApiResponse[BulkImportResult])
async def bulk_import_clients(data: BulkImportRequest, db: DB, current_user: CurrentUser):
    """
    Import clients row by row. Rows whose name already exists
    (case-insensitive) are reported as duplicates and skipped.
    """
    result = await ClientService(db).bulk_import(data.clients)
    return ApiResponse(
        message=(
            f"Imported {result['imported']} clients, "
            f"{len(result['duplicates'])} duplicates, {len(result['errors'])} errors"
        ),
        data=BulkImportResult(**result),
    )


@router.post(
    "",
    response_model=Union[ApiResponse[ClientResponse], SimilarClientsWarning],
    status_code=status.HTTP_201_CREATED,
)
async def create_client(data: ClientCreate, response: Response, db: DB, current_user: CurrentUser):
    """
    Create a client.

    When similar names already exist the client is not created; a 200
    warning lists them and the caller resubmits with confirm_duplicate=true.
    """
    client, similar = await ClientService(db).create_client(data)
    if client is None:
        response.status_code = status.HTTP_200_OK
        return SimilarClientsWarning(
            message="Similar client names found. Please confirm if you want to create a new client.",
            similar_clients=[ClientResponse.model_validate(c) for c in similar],
        )
    return ApiResponse(message="Client created successfully", data=ClientResponse.model_validate(client))


@router.get("/{client_id}", response_model=ApiResponse[ClientResponse])
async def get_client(client_id: UUID, db: DB, current_user: CurrentUser):
    client = await ClientService(db).get_client(client_id)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.put("/{client_id}", response_model=ApiResponse[ClientResponse])
async def update_client(client_id: UUID, data: ClientUpdate, db: DB, current_user: CurrentUser):
    client = await ClientService(db).update_client(client_id, data)
    return ApiResponse(message="Client updated successfully", data=ClientResponse.model_validate(client))


@router.delete("/{client_id}", response_model=MessageResponse)
async def delete_client(client_id: UUID, db: DB, current_user: CurrentUser):
    """Soft delete; existing bills keep their client."""
    await ClientService(db).delete_client(client_id)
    return MessageResponse(message="Client deleted successfully")
