"""Offer API endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pricetrack.exceptions import OfferConflict, OfferNotFound
from pricetrack.models.base import get_sync_db
from pricetrack.schemas.offer import OfferChangeSet, OfferRead
from pricetrack.services.offers import update_offer

router = APIRouter(prefix="/offers", tags=["offers"])


@router.patch("/{offer_id}", response_model=OfferRead)
def patch_offer(
    offer_id: int,
    change_set: OfferChangeSet,
    db: Session = Depends(get_sync_db),
):
    """Partially update an offer; deactivated offers drop out of future runs."""
    try:
        offer = update_offer(db, offer_id, change_set)
    except OfferNotFound:
        raise HTTPException(status_code=404, detail="Offer not found")
    except OfferConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    return OfferRead.model_validate(offer)
