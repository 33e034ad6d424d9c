"""Offer maintenance — partial updates used by operators to retune tracked offers."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pricetrack.exceptions import OfferConflict, OfferNotFound
from pricetrack.models.offer import Offer
from pricetrack.schemas.offer import OfferChangeSet
from pricetrack.services.changeset import build_update_values

logger = logging.getLogger(__name__)


def update_offer(db: Session, offer_id: int, change_set: OfferChangeSet) -> Offer:
    offer = db.get(Offer, offer_id)
    if offer is None:
        raise OfferNotFound(offer_id)

    values = build_update_values(change_set)
    if values:
        try:
            db.query(Offer).filter(Offer.id == offer_id).update(values, synchronize_session=False)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise OfferConflict(f"Offer {offer_id}: another offer already tracks that url and presentation")
        logger.info(f"Offer {offer_id} updated: {sorted(values)}")

    db.refresh(offer)
    return offer
