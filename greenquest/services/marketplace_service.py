"""
Marketplace Service for GreenQuest
Handles student-to-student listings: create, browse, search, update, delete
"""

import logging

from firebase_admin import firestore

from greenquest.schemas import Listing, ListingCreate, ListingUpdate
from greenquest.utils.error_handler import (
    AuthorizationError,
    DatabaseError,
    GreenQuestError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

LISTING_POINTS = 10

# A listing leaves 'active' once and never comes back
STATUS_TRANSITIONS = {
    'active': {'sold', 'reserved'},
    'sold': set(),
    'reserved': set(),
}


def matches_query(listing, query):
    """
    True when query is a case-insensitive substring of the title or the
    description. A blank query matches everything.
    """
    if not query or not query.strip():
        return True
    needle = query.strip().lower()
    title = (listing.get('title') or '').lower()
    description = (listing.get('description') or '').lower()
    return needle in title or needle in description


def check_status_transition(current, new):
    if new == current:
        return
    if new not in STATUS_TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change listing status from '{current}' to '{new}'", field='status')


def _timestamp_key(item):
    ts = item.get('timestamp')
    return ts.timestamp() if hasattr(ts, 'timestamp') else 0


def _owned_listing(listing_doc, seller_id):
    if not listing_doc.exists:
        raise NotFoundError("Listing not found")
    listing = listing_doc.to_dict() or {}
    if listing.get('seller_id') != seller_id:
        logger.warning(f"User {seller_id} attempted to modify listing {listing_doc.id}")
        raise AuthorizationError("Only the seller can modify this listing")
    return listing


def _apply_listing_update(transaction, listing_ref, seller_id, changes):
    listing = _owned_listing(listing_ref.get(transaction=transaction), seller_id)

    if 'status' in changes:
        check_status_transition(listing.get('status', 'active'), changes['status'])

    transaction.update(listing_ref, {**changes, 'updated_at': firestore.SERVER_TIMESTAMP})
    return sorted(changes)


# The status check and the write commit together; a concurrent status change
# makes Firestore retry against the fresh document.
_update_listing_in_transaction = firestore.transactional(_apply_listing_update)


class MarketplaceService:
    def __init__(self, db, user_service):
        self.db = db
        self.listings_ref = db.collection('marketplace')
        self.chats_ref = db.collection('chats')
        self.user_service = user_service

    def create_listing(self, seller_id, listing_data, seller=None):
        """
        Create an active listing and award the seller points for reusing
        """
        listing = ListingCreate.model_validate(listing_data)
        seller = seller or {}

        document = {
            **listing.model_dump(mode='json'),
            'seller_id': seller_id,
            'seller_name': seller.get('display_name') or 'Anonymous',
            'seller_avatar': seller.get('photo_url') or '',
            'school': seller.get('school') or 'Not specified',
            'status': 'active',
            'likes': 0,
            'timestamp': firestore.SERVER_TIMESTAMP
        }

        try:
            _, listing_ref = self.listings_ref.add(document)
        except Exception as e:
            logger.error(f"Error creating listing: {str(e)}")
            raise DatabaseError(f"Failed to create listing: {str(e)}")

        logger.info(f"Listing created - Seller: {seller_id}, Listing: {listing_ref.id}")

        # Continue even if points update fails
        user_result = self.user_service.try_award_points(seller_id, LISTING_POINTS)

        return {
            'listing_id': listing_ref.id,
            'points_awarded': LISTING_POINTS if user_result else 0,
            'user': user_result,
            'message': 'Your item has been listed on the marketplace.'
        }

    def get_listings(self, school=None, seller_id=None, query=None, limit=20, before=None):
        """
        Active listings, newest first, optionally narrowed to a school or a
        seller and filtered by a search query.

        Equality filters run in Firestore; ordering, search and the before
        cursor are applied here.
        """
        try:
            firestore_query = self.listings_ref.where('status', '==', 'active')
            if school:
                firestore_query = firestore_query.where('school', '==', school)
            if seller_id:
                firestore_query = firestore_query.where('seller_id', '==', seller_id)

            listings = []
            for doc in firestore_query.stream():
                try:
                    listings.append(Listing.from_snapshot(doc).to_public())
                except ValueError as e:
                    logger.warning(f"Skipping malformed listing {doc.id}: {str(e)}")

            listings = [listing for listing in listings if matches_query(listing, query)]
            if before is not None:
                listings = [l for l in listings if l.get('timestamp') and l['timestamp'] < before]
            listings.sort(key=_timestamp_key, reverse=True)
            return listings[:limit]

        except Exception as e:
            logger.error(f"Error fetching listings: {str(e)}")
            return []

    def get_listing(self, listing_id, with_chat_count=False):
        try:
            listing_doc = self.listings_ref.document(listing_id).get()
            if not listing_doc.exists:
                return None
            listing = Listing.from_snapshot(listing_doc).to_public()
        except Exception as e:
            logger.error(f"Error fetching listing: {str(e)}")
            return None

        if with_chat_count:
            listing['chat_count'] = self.get_listing_chat_count(listing_id)
        return listing

    def update_listing(self, listing_id, seller_id, update_data):
        """
        Seller-only edit. Status may only move from active to sold or reserved.
        An explicit null image_url removes the photo.
        """
        update = ListingUpdate.model_validate(update_data)
        changes = update.model_dump(mode='json', exclude_none=True)
        if 'image_url' in update.model_fields_set and update.image_url is None:
            changes['image_url'] = None
        if not changes:
            raise ValidationError("No valid fields to update")

        try:
            transaction = self.db.transaction()
            updated_fields = _update_listing_in_transaction(
                transaction,
                self.listings_ref.document(listing_id),
                seller_id,
                changes
            )

            logger.info(f"Listing updated: {listing_id}, fields={updated_fields}")
            return {
                'success': True,
                'updated_fields': updated_fields,
                'message': 'Listing updated successfully'
            }

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error updating listing: {str(e)}")
            raise DatabaseError(f"Failed to update listing: {str(e)}")

    def delete_listing(self, listing_id, seller_id):
        try:
            listing_ref = self.listings_ref.document(listing_id)
            self._get_owned_listing(listing_ref, seller_id)
            listing_ref.delete()

            logger.info(f"Listing deleted: {listing_id}")
            return {'success': True, 'message': 'Listing deleted'}

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error deleting listing: {str(e)}")
            raise DatabaseError(f"Failed to delete listing: {str(e)}")

    def like_listing(self, listing_id):
        """
        Increment the like counter and return the new count
        """
        try:
            listing_ref = self.listings_ref.document(listing_id)
            if not listing_ref.get().exists:
                raise NotFoundError("Listing not found")

            listing_ref.update({'likes': firestore.Increment(1)})
            return listing_ref.get().to_dict().get('likes', 0)

        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error liking listing: {str(e)}")
            raise DatabaseError(f"Failed to like listing: {str(e)}")

    def get_listing_chat_count(self, listing_id):
        try:
            return len(list(self.chats_ref.where('listing_id', '==', listing_id).stream()))
        except Exception as e:
            logger.error(f"Error getting chat count: {str(e)}")
            return 0

    def _get_owned_listing(self, listing_ref, seller_id):
        return _owned_listing(listing_ref.get(), seller_id)
