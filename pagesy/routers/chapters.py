import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.broker import ChapterPublisher
from pagesy.database import get_db
from pagesy.errors import BadRequest
from pagesy.hub import EventHub
from pagesy.models import User
from pagesy.routes_shared import get_hub, get_publisher
from pagesy.schemas import ChapterEdit, ChapterRead, ChapterUpload, ChapterUploadResponse, ErrorResponse
from pagesy.services.chapter_upload import upload_chapter
from pagesy.services.chapters import delete_chapter, edit_chapter, get_chapter
from pagesy.users import current_active_user

router = APIRouter(prefix="/api/v1/books", tags=["chapters"])

_errors = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def parse_id(raw: str, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise BadRequest(f"{what} id is not a valid uuid") from None


@router.post(
    "/{book_id}/chapters",
    response_model=ChapterUploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_errors, 409: {"model": ErrorResponse}},
)
async def upload_chapter_route(
    book_id: str,
    payload: ChapterUpload,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChapterPublisher = Depends(get_publisher),
    hub: EventHub = Depends(get_hub),
):
    chapter_id = await upload_chapter(
        db,
        publisher,
        hub,
        book_id=parse_id(book_id, "book"),
        actor_id=user.id,
        chapter=payload,
    )
    return ChapterUploadResponse(id=chapter_id)


@router.get("/chapters/{chapter_id}", response_model=ChapterRead, responses=_errors)
async def get_chapter_route(
    chapter_id: str,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    chapter = await get_chapter(db, user.id, parse_id(chapter_id, "chapter"))
    await db.commit()
    return ChapterRead.model_validate(chapter)


@router.patch(
    "/{book_id}/chapters/{chapter_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_errors,
)
async def edit_chapter_route(
    book_id: str,
    chapter_id: str,
    payload: ChapterEdit,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await edit_chapter(db, user.id, parse_id(book_id, "book"), parse_id(chapter_id, "chapter"), payload)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{book_id}/chapters/{chapter_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_errors,
)
async def delete_chapter_route(
    book_id: str,
    chapter_id: str,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_chapter(db, user.id, parse_id(book_id, "book"), parse_id(chapter_id, "chapter"))
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
