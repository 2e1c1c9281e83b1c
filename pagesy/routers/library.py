from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.database import get_db
from pagesy.models import User
from pagesy.routers.chapters import parse_id
from pagesy.schemas import ErrorResponse, LibraryRead
from pagesy.services.library import add_to_library, list_user_library, remove_from_library
from pagesy.users import current_active_user

router = APIRouter(prefix="/api/v1/library", tags=["library"])


@router.get("", response_model=LibraryRead)
async def library_view(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return LibraryRead(books=await list_user_library(db, user.id))


@router.put(
    "/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def library_add(
    book_id: str,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await add_to_library(db, user.id, parse_id(book_id, "book"))
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def library_remove(
    book_id: str,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await remove_from_library(db, user.id, parse_id(book_id, "book"))
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
