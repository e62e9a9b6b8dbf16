from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from dentalsync.models.feedback import FeedbackCreate, FeedbackUpdate, Testimonial
from dentalsync.sync.feedback_store import FeedbackStore

router = APIRouter(tags=['feedback'])


class FeedbackSyncResponse(BaseModel):
    synced: int


def get_feedback_store(request: Request) -> FeedbackStore:
    return request.app.state.feedback_store


def ensure_connected(store: FeedbackStore) -> None:
    if not store.is_connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Supabase not connected.',
        )


@router.post('', status_code=status.HTTP_201_CREATED)
async def create_feedback(data: FeedbackCreate, store: FeedbackStore = Depends(get_feedback_store)):
    ensure_connected(store)

    row = await store.save(data)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Feedback could not be saved.',
        )
    return row


@router.get('')
async def list_feedback(store: FeedbackStore = Depends(get_feedback_store)):
    return await store.load_all()


@router.get('/testimonials', response_model=list[Testimonial])
async def list_homepage_testimonials(store: FeedbackStore = Depends(get_feedback_store)):
    return await store.load_homepage_testimonials()


@router.patch('/{feedback_id}')
async def update_feedback(
    feedback_id: int,
    data: FeedbackUpdate,
    store: FeedbackStore = Depends(get_feedback_store),
):
    ensure_connected(store)

    row = await store.update(feedback_id, data)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Feedback not found.',
        )
    return row


@router.delete('/{feedback_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_feedback(feedback_id: int, store: FeedbackStore = Depends(get_feedback_store)):
    ensure_connected(store)

    if not await store.delete(feedback_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Feedback not found.',
        )


@router.post('/sync', response_model=FeedbackSyncResponse)
async def sync_feedback(items: list[FeedbackCreate], store: FeedbackStore = Depends(get_feedback_store)):
    ensure_connected(store)

    return FeedbackSyncResponse(synced=await store.sync_local_to_remote(items))
